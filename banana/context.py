"""Rendering context for Banana templates.

Every template is rendered with the same three names::

    site   SiteContext for the whole build
    page   PageContext of the page being rendered, None on the index
    posts  PostCollection of dated posts, newest first

Key classes:
- SiteContext: Site metadata plus the build timestamp.
- PageContext: Template-facing view of a Page.

Key functions:
- make_site_context: Build the SiteContext once per build.
- make_page_context: Build a PageContext, rendering Markdown bodies.
- render_context: Assemble the mapping passed to a template.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from markupsafe import Markup

from .collections import PostCollection
from .config import SiteConfig
from .content import Page
from .renderers import MarkdownRenderer


@dataclass(frozen=True)
class SiteContext:
    """Site-level values shared by every page of one build.

    Attributes:
        title: Site title.
        description: Site description.
        author: Site author.
        vars: Custom variables from banana.yml.
        time: When the build started.
    """

    title: str
    description: str
    author: str
    vars: Mapping[str, Any]
    time: datetime


@dataclass(frozen=True)
class PageContext:
    """Template-facing view of a Page.

    Attributes:
        url: Site-relative URL, e.g. ``/my-first-post/``.
        slug: URL slug.
        date: Publication date or None.
        title: Page title.
        author: Page author.
        meta: Free-form meta string.
        content: Rendered HTML body (posts only).
        params: Extra front-matter keys.
    """

    url: str
    slug: str
    date: datetime | None
    title: str
    author: str
    meta: str
    content: Markup = Markup("")
    params: Mapping[str, Any] = field(default_factory=dict)


def make_site_context(site: SiteConfig, now: datetime | None = None) -> SiteContext:
    """Capture the site values and the build timestamp.

    Args:
        site: The ``site`` section of the configuration.
        now: Build timestamp; defaults to the current local time.
    """
    return SiteContext(
        title=site.title,
        description=site.description,
        author=site.author,
        vars=site.vars,
        time=now or datetime.now().astimezone(),
    )


def make_page_context(page: Page, renderer: MarkdownRenderer | None = None) -> PageContext:
    """Build the context for one page.

    Post bodies are rendered from Markdown. Standalone page bodies are
    template source and are rendered through the layout chain instead, so
    their ``content`` is empty.
    """
    content = Markup("")
    if page.kind == "post":
        renderer = renderer or MarkdownRenderer()
        content = Markup(renderer.render(page.text()))
    fm = page.front_matter
    return PageContext(
        url=page.url,
        slug=page.slug,
        date=fm.date,
        title=fm.title,
        author=fm.author,
        meta=fm.meta,
        content=content,
        params=fm.extra,
    )


def render_context(
    site: SiteContext,
    page: PageContext | None,
    posts: Iterable[PageContext],
) -> dict[str, Any]:
    """Assemble the mapping handed to a composed template."""
    if not isinstance(posts, PostCollection):
        posts = PostCollection(posts)
    return {"site": site, "page": page, "posts": posts}
