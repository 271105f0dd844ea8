"""Template helper functions for Banana.

These are registered as Jinja2 globals on every composed template::

    {{ date("%B %d, %Y", page.date) }}
    {{ truncateWords(30, stripHtml(post.content)) }}
    <link rel="stylesheet" href="{{ static('css/site.css') }}">

The resolver receives the mapping from default_helpers() (or a caller's own
mapping) at construction time; nothing is registered globally.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import date as date_type
from typing import Any

from .renderers import pygments_css

TAG_RE = re.compile(r"</?[^>]*>")


def date(format: str, timestamp: date_type | None) -> str:
    """Format a timestamp with a strftime format. None formats as ''."""
    if timestamp is None:
        return ""
    return timestamp.strftime(format)


def lower(value: str) -> str:
    return str(value).lower()


def upper(value: str) -> str:
    return str(value).upper()


def static(path: str) -> str:
    """Return the URL of a file copied from static/."""
    return "/static/" + path


def strip_html(fragment: Any) -> str:
    """Remove tag markup from an HTML fragment, keeping the text."""
    return TAG_RE.sub("", str(fragment))


def truncate_words(n: int, text: Any) -> str:
    """Return the first n whitespace-delimited words joined by single spaces.

    Fewer than n words returns what exists.
    """
    return " ".join(str(text).split()[: max(int(n), 0)])


def default_helpers() -> dict[str, Callable[..., Any]]:
    """Return the helper mapping installed in every template."""
    return {
        "date": date,
        "lower": lower,
        "upper": upper,
        "static": static,
        "stripHtml": strip_html,
        "truncateWords": truncate_words,
        "pygmentsCss": pygments_css,
    }
