"""Content model for Banana.

This module turns files in ``posts/`` and ``pages/`` into Page objects.

Key classes:
- Page: Frozen dataclass of one parsed content file with derived slug/URL.
- ContentLoader: Discovers and parses posts and standalone pages.

Posts are the files directly inside ``posts/``; their bodies are Markdown.
Pages are the ``*.tmpl`` files anywhere below ``pages/``; their bodies are
templates that take part in the layout chain.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from .errors import ParseError
from .frontmatter import FrontMatter
from .parser import ContentParser
from .utils import is_template, iter_files, slugify

POSTS_DIR = "posts"
PAGES_DIR = "pages"


@dataclass(frozen=True)
class Page:
    """A parsed content file.

    Pages are never mutated; every build parses them again from disk. The
    slug and URL are computed on access so they always agree with the
    front matter.

    Attributes:
        front_matter: Metadata declared at the top of the file.
        body: Raw bytes after the front-matter block.
        path: Source file, when the page came from disk.
        kind: "post" or "page".
    """

    front_matter: FrontMatter = field(default_factory=FrontMatter)
    body: bytes = b""
    path: Path | None = None
    kind: str = "post"

    @property
    def title(self) -> str:
        return self.front_matter.title

    @property
    def layout(self) -> str:
        return self.front_matter.layout

    @property
    def date(self) -> datetime | None:
        return self.front_matter.date

    @property
    def slug(self) -> str:
        """URL slug for the page.

        An explicit permalink wins, trimmed of slashes. Otherwise the title
        is slugified, and a page with neither falls back to its file name.
        """
        permalink = self.front_matter.permalink.strip("/")
        if permalink:
            return permalink
        slug = slugify(self.front_matter.title)
        if not slug and self.path is not None:
            slug = slugify(self.path.stem)
        return slug

    @property
    def url(self) -> str:
        return f"/{self.slug}/"

    def text(self) -> str:
        """Return the body decoded as UTF-8.

        Raises:
            ParseError: If the body is not valid UTF-8.
        """
        try:
            return self.body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ParseError("Body is not valid UTF-8", self.path, exc) from exc


def load_page(path: Path, parser: ContentParser, kind: str = "post") -> Page:
    """Parse a content file into a Page.

    Args:
        path: File to parse.
        parser: Configured content parser.
        kind: "post" or "page".

    Returns:
        The parsed Page.
    """
    parsed = parser.parse_path(path)
    return Page(front_matter=parsed.front_matter, body=parsed.body, path=path, kind=kind)


class ContentLoader:
    """Discovers and parses a project's posts and pages.

    Attributes:
        project_root: Root of the Banana project.
        parser: Parser used for every file.
    """

    def __init__(self, project_root: Path, parser: ContentParser | None = None):
        self.project_root = project_root
        self.parser = parser or ContentParser()

    @property
    def posts_dir(self) -> Path:
        return self.project_root / POSTS_DIR

    @property
    def pages_dir(self) -> Path:
        return self.project_root / PAGES_DIR

    def post_files(self) -> list[Path]:
        """Files directly inside posts/, skipping directories and dotfiles."""
        return iter_files(self.posts_dir)

    def page_files(self) -> list[Path]:
        """Template files anywhere below pages/."""
        return [p for p in iter_files(self.pages_dir, recursive=True) if is_template(p)]

    def load_posts(self) -> list[Page]:
        """Parse every post. The first failure aborts the whole load."""
        return [load_page(path, self.parser, kind="post") for path in self.post_files()]

    def load_pages(self) -> list[Page]:
        """Parse every standalone page. The first failure aborts the whole load."""
        return [load_page(path, self.parser, kind="page") for path in self.page_files()]
