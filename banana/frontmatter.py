"""Front matter model and decoding strategies for Banana.

Front matter is the metadata block at the top of a content or layout file::

    ---
    layout: post
    title: My First Post
    date: 2021-06-01
    ---

Key classes:
- FrontMatter: Frozen dataclass of the known keys plus any extra keys.
- YAMLFrontMatter: FrontMatterStrategy that decodes the block with PyYAML.

Functions:
- default_strategies: Delimiter to strategy mapping used by the parser.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from .errors import ParseError
from .protocols import FrontMatterStrategy

YAML_DELIMITER = "---"

STRING_FIELDS = ("layout", "permalink", "title", "author", "meta")


@dataclass(frozen=True)
class FrontMatter:
    """Metadata declared at the top of a content or layout file.

    Attributes:
        layout: Name of the layout to render through (no extension).
        permalink: Explicit output path, overrides the title slug.
        title: Page title.
        author: Page author.
        meta: Free-form string.
        date: Publication date, None for undated content.
        extra: Any other keys found in the block.
    """

    layout: str = ""
    permalink: str = ""
    title: str = ""
    author: str = ""
    meta: str = ""
    date: datetime | None = None
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


def coerce_date(value: Any, path: Path | None = None) -> datetime | None:
    """Normalize a front matter date to a datetime.

    YAML already turns ISO timestamps into date/datetime objects; quoted
    strings are parsed with datetime.fromisoformat.

    Args:
        value: Raw value from the decoded block.
        path: Source file for error messages.

    Returns:
        A datetime, or None when no date was given.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError as exc:
            raise ParseError(f"Invalid date {value!r}", path, exc) from exc
    raise ParseError(f"Invalid date {value!r}", path)


def front_matter_from_mapping(
    data: Mapping[str, Any], path: Path | None = None
) -> FrontMatter:
    """Build a FrontMatter from a decoded mapping.

    Scalars in string fields are coerced with str(); nested values there are
    rejected.
    """
    values: dict[str, Any] = {}
    for key in STRING_FIELDS:
        raw = data.get(key)
        if raw is None:
            continue
        if isinstance(raw, (Mapping, list, tuple, set)):
            raise ParseError(f"Front matter field '{key}' must be a string", path)
        values[key] = str(raw)
    values["date"] = coerce_date(data.get("date"), path)
    known = set(STRING_FIELDS) | {"date"}
    extra = {str(k): v for k, v in data.items() if k not in known}
    return FrontMatter(extra=MappingProxyType(extra), **values)


class YAMLFrontMatter:
    """Decodes a front-matter block as YAML."""

    def parse(self, raw: bytes, path: Path | None = None) -> FrontMatter:
        try:
            data = yaml.safe_load(raw.decode("utf-8"))
        except UnicodeDecodeError as exc:
            raise ParseError("Front matter is not valid UTF-8", path, exc) from exc
        except yaml.YAMLError as exc:
            raise ParseError(f"Malformed front matter: {exc}", path, exc) from exc
        if data is None:
            return FrontMatter()
        if not isinstance(data, dict):
            raise ParseError("Front matter must be a mapping", path)
        return front_matter_from_mapping(data, path)


def default_strategies() -> dict[str, FrontMatterStrategy]:
    """Return the delimiter to strategy mapping Banana uses by default."""
    return {YAML_DELIMITER: YAMLFrontMatter()}
