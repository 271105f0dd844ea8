"""Site building functionality for Banana.

This module contains the core logic for building a static site from source
files. A build is one synchronous, all-or-nothing pass:

1. Load banana.yml.
2. Parse every post and standalone page.
3. Render the index, every post and every page.
4. Write the rendered files and replace the copy of static/.

Every step re-reads its input from disk; nothing survives from one build to
the next.

Key classes:
- SiteBuilder: Builds, cleans and watches one project.
- BuildResult: What a build produced.

Key functions:
- build_site: Build a project in one call.
- clean_site: Remove a project's build output.
"""

from __future__ import annotations

import logging
import shutil
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

from .collections import PostCollection
from .config import Config, load_config
from .content import ContentLoader, Page
from .context import (
    PageContext,
    SiteContext,
    make_page_context,
    make_site_context,
    render_context,
)
from .errors import ParseError, WriteError
from .parser import ContentParser
from .renderers import MarkdownRenderer
from .templates import DEFAULT_LAYOUT, TemplateResolver
from .utils import STATIC_DIR, copy_tree, remove_tree
from .watch import Watcher, watch, watch_targets

logger = logging.getLogger(__name__)

INDEX_TEMPLATE = "index.tmpl"

# Output names that a page slug may not claim.
RESERVED_SLUGS = {STATIC_DIR}


@dataclass
class BuildResult:
    """Result of a site build operation.

    Attributes:
        posts: Every post that was rendered.
        pages: Every standalone page that was rendered.
        output_dir: Directory where the site was built.
        site: Site context the build rendered with.
        files: Every HTML file written, in write order.
    """

    posts: list[Page]
    pages: list[Page]
    output_dir: Path
    site: SiteContext
    files: list[Path] = field(default_factory=list)


class SiteBuilder:
    """Builds a Banana project into its output directory.

    Attributes:
        project_root: Root of the Banana project.
        output_dir: Explicit output directory, or None to use banana.yml.
        parser: Parser shared by content and layouts.
        helpers: Template helpers, None for the defaults.
    """

    def __init__(
        self,
        project_root: Path,
        output_dir: Path | None = None,
        parser: ContentParser | None = None,
        helpers: Mapping[str, Callable[..., Any]] | None = None,
    ):
        self.project_root = project_root
        self.output_dir = output_dir
        self.parser = parser or ContentParser()
        self.helpers = helpers

    def resolve_output_dir(self, config: Config | None = None) -> Path:
        """Return the output directory, reading banana.yml when needed."""
        if self.output_dir is not None:
            return self.output_dir
        config = config or load_config(self.project_root)
        return self.project_root / config.output_dir

    def build(self) -> BuildResult:
        """Build the entire site.

        Returns:
            BuildResult describing the output.

        Raises:
            ConfigError: If banana.yml cannot be loaded.
            ParseError: If any content file is malformed.
            TemplateError: If any template cannot be resolved or rendered.
            WriteError: If the output cannot be written.
        """
        config = load_config(self.project_root)
        output_dir = self.resolve_output_dir(config)

        loader = ContentLoader(self.project_root, self.parser)
        posts = loader.load_posts()
        pages = loader.load_pages()
        _check_slugs(posts + pages)
        logger.debug("Parsed %d posts and %d pages", len(posts), len(pages))

        site = make_site_context(config.site)
        resolver = TemplateResolver(self.project_root, self.parser, self.helpers)
        renderer = MarkdownRenderer()
        post_contexts = [make_page_context(p, renderer) for p in posts]
        listing = PostCollection(post_contexts)
        undated = [p for p in posts if p.date is None]
        for page in undated:
            logger.debug("%s has no date and is left out of the listing", page.path)

        rendered = self._render(resolver, site, posts, post_contexts, pages, listing, output_dir)

        files: list[Path] = []
        for target, html in rendered:
            _write_file(target, html)
            files.append(target)
        self._sync_static(output_dir)

        logger.info(
            "Built %d posts and %d pages into %s", len(posts), len(pages), output_dir
        )
        return BuildResult(posts=posts, pages=pages, output_dir=output_dir, site=site, files=files)

    def _render(
        self,
        resolver: TemplateResolver,
        site: SiteContext,
        posts: list[Page],
        post_contexts: list[PageContext],
        pages: list[Page],
        listing: PostCollection,
        output_dir: Path,
    ) -> list[tuple[Path, str]]:
        """Render every output file in memory, index first."""
        rendered: list[tuple[Path, str]] = []

        index = resolver.resolve(self.project_root / INDEX_TEMPLATE, DEFAULT_LAYOUT)
        rendered.append(
            (output_dir / "index.html", index.render(render_context(site, None, listing)))
        )

        for post, context in zip(posts, post_contexts):
            template = resolver.resolve_layout(post.layout or DEFAULT_LAYOUT)
            html = template.render(render_context(site, context, listing))
            rendered.append((_page_target(output_dir, post), html))

        for page in pages:
            template = resolver.resolve(page.path, DEFAULT_LAYOUT)
            html = template.render(render_context(site, make_page_context(page), listing))
            rendered.append((_page_target(output_dir, page), html))

        return rendered

    def _sync_static(self, output_dir: Path) -> None:
        """Replace the output copy of static/ with a fresh copy."""
        source = self.project_root / STATIC_DIR
        dest = output_dir / STATIC_DIR
        try:
            remove_tree(dest)
            if source.is_dir():
                copy_tree(source, dest)
            else:
                logger.debug("No %s directory to copy", source)
        except (OSError, shutil.Error) as exc:
            raise WriteError(f"Cannot copy static files: {exc}", dest, exc) from exc

    def clean(self) -> None:
        """Remove the output directory. A missing directory is not an error.

        Raises:
            WriteError: If the directory cannot be removed, or if it is the
                project root or one of its parents.
        """
        output_dir = self.resolve_output_dir()
        root = self.project_root.resolve()
        target = output_dir.resolve()
        if target == root or target in root.parents:
            raise WriteError("Refusing to remove a directory containing the project", output_dir)
        try:
            remove_tree(output_dir)
        except OSError as exc:
            raise WriteError(f"Cannot remove output: {exc}", output_dir, exc) from exc
        logger.debug("Removed %s", output_dir)

    def watch_targets(self) -> list[Path]:
        """Directories whose changes should trigger a rebuild."""
        return watch_targets(self.project_root)

    def watch(self) -> Watcher:
        """Rebuild the whole site whenever a watched directory changes.

        Returns:
            A started Watcher; close it to stop watching.
        """
        return watch(self.watch_targets(), self, ignore=[self.resolve_output_dir()])

    def on_change(self) -> BuildResult:
        """Rebuild after a change; used as the watcher's listener."""
        logger.info("Change detected. Rebuilding...")
        result = self.build()
        logger.info("Rebuild complete")
        return result


def _page_target(output_dir: Path, page: Page) -> Path:
    return output_dir.joinpath(*PurePosixPath(page.slug).parts) / "index.html"


def _check_slugs(pages: Iterable[Page]) -> None:
    """Reject empty, escaping, reserved or duplicate slugs before any output."""
    owners: dict[str, Page] = {}
    for page in pages:
        slug = page.slug
        if not slug:
            raise ParseError("Cannot derive a slug; set a title or permalink", page.path)
        parts = PurePosixPath(slug).parts
        if ".." in parts or slug.startswith("/"):
            raise ParseError(f"Slug '{slug}' escapes the output directory", page.path)
        if parts[0] in RESERVED_SLUGS:
            raise ParseError(f"Slug '{slug}' is reserved", page.path)
        if slug in owners:
            raise ParseError(
                f"Slug '{slug}' is also used by {owners[slug].path}", page.path
            )
        owners[slug] = page


def _write_file(target: Path, html: str) -> None:
    """Write one rendered file, creating its directory."""
    try:
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "w", encoding="utf-8") as f:
            f.write(html)
    except OSError as exc:
        raise WriteError(f"Cannot write output: {exc.strerror or exc}", target, exc) from exc
    logger.debug("Wrote %s", target)


def build_site(project_root: Path, output_dir: Path | None = None) -> BuildResult:
    """Build the site at project_root.

    Args:
        project_root: Root directory of the project.
        output_dir: Optional path to write the build output instead of the
            configured output_dir.

    Returns:
        BuildResult for the build.
    """
    return SiteBuilder(project_root, output_dir=output_dir).build()


def clean_site(project_root: Path, output_dir: Path | None = None) -> None:
    """Remove the build output of the site at project_root."""
    SiteBuilder(project_root, output_dir=output_dir).clean()
