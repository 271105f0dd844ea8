"""Post listings for Banana templates.

Key classes:
- PostCollection: Dated posts ordered newest first.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .context import PageContext


def date_key(value: datetime) -> datetime:
    """Comparable form of a post date; naive datetimes are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class PostCollection(Sequence["PageContext"]):
    """Dated posts ordered newest first, for listings in templates.

    Undated entries are left out. Entries with equal dates are all kept, in
    no particular order.
    """

    def __init__(self, posts: Iterable[PageContext]):
        dated = [p for p in posts if p.date is not None]
        self._posts = sorted(dated, key=lambda p: date_key(p.date), reverse=True)

    def __iter__(self) -> Iterator[PageContext]:
        return iter(self._posts)

    def __len__(self) -> int:
        return len(self._posts)

    def __getitem__(self, item):
        return self._posts[item]

    def latest(self, count: int = 5) -> list[PageContext]:
        return self._posts[:count]

    def by_author(self, author: str) -> PostCollection:
        return PostCollection(p for p in self._posts if p.author == author)

    def __repr__(self) -> str:  # pragma: no cover - for debugging
        return f"PostCollection({len(self._posts)} posts)"
