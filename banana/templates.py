"""Layout-chain resolution and rendering for Banana.

A template file may name a parent layout in its front matter::

    ---
    layout: post
    ---
    {% block content %}{{ page.content }}{% endblock %}

Starting from one file, the resolver follows ``layout`` references until it
reaches a layout without a parent. The root of that chain is the outermost
skeleton; every file below it overrides the root's ``{% block %}``s. The
chain is compiled into one Jinja2 environment and rendered once per page.

Key classes:
- TemplateSource: One link of a layout chain.
- ComposedTemplate: A render-ready chain named after its root layout.
- TemplateResolver: Resolves layout names and composes chains.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import jinja2
from jinja2 import DictLoader, Environment, StrictUndefined, Undefined

from .errors import LayoutCycleError, ParseError, TemplateError
from .helpers import default_helpers
from .parser import ContentParser
from .utils import TEMPLATE_SUFFIX

LAYOUTS_DIR = "layouts"

DEFAULT_LAYOUT = "layout"

# Longest chain accepted before it is treated as runaway.
MAX_LAYOUT_DEPTH = 32


@dataclass(frozen=True)
class TemplateSource:
    """One link of a layout chain.

    Attributes:
        name: Loader name, the file path relative to the project root.
        path: Source file.
        source: Template text with the front matter removed.
    """

    name: str
    path: Path
    source: str


@dataclass
class ComposedTemplate:
    """A whole layout chain compiled into one renderable unit.

    Attributes:
        name: File stem of the root layout.
        sources: Chain from the start file to the root layout.
        env: Jinja2 environment holding every link of the chain.
    """

    name: str
    sources: list[TemplateSource]
    env: Environment = field(repr=False)

    @property
    def root(self) -> TemplateSource:
        return self.sources[-1]

    def _path_for(self, template_name: str | None) -> Path:
        for source in self.sources:
            if source.name == template_name:
                return source.path
        return self.sources[0].path

    def render(self, context: Mapping[str, Any]) -> str:
        """Render the chain with one context value.

        Raises:
            TemplateError: If a template fails to compile or render.
        """
        start = self.sources[0]
        try:
            template = self.env.get_template(start.name)
            return template.render(context)
        except jinja2.TemplateSyntaxError as exc:
            raise TemplateError(
                f"Template syntax error on line {exc.lineno}: {exc.message}",
                self._path_for(exc.name),
                exc,
            ) from exc
        except jinja2.TemplateError as exc:
            raise TemplateError(
                f"{type(exc).__name__}: {exc.message or exc}", start.path, exc
            ) from exc
        except (TypeError, ValueError, AttributeError) as exc:
            raise TemplateError(f"{type(exc).__name__}: {exc}", start.path, exc) from exc


class TemplateResolver:
    """Resolves layout chains into ComposedTemplates.

    Attributes:
        project_root: Root of the Banana project.
        parser: Parser used to split front matter from template text.
        helpers: Functions installed as globals in every composed template.
        strict: Whether undefined template variables are errors.
    """

    def __init__(
        self,
        project_root: Path,
        parser: ContentParser | None = None,
        helpers: Mapping[str, Callable[..., Any]] | None = None,
        strict: bool = False,
    ):
        """Initialize the resolver.

        Args:
            project_root: Root of the Banana project.
            parser: Content parser; defaults to YAML front matter.
            helpers: Template helpers; defaults to default_helpers().
            strict: Raise on undefined variables instead of rendering ''.
        """
        self.project_root = project_root
        self.parser = parser or ContentParser()
        self.helpers = dict(helpers if helpers is not None else default_helpers())
        self.strict = strict

    @property
    def layouts_dir(self) -> Path:
        return self.project_root / LAYOUTS_DIR

    def layout_path(self, name: str) -> Path:
        """Resolve a layout name to its file.

        ``layouts/<name>.tmpl`` is preferred; ``<root>/<name>.tmpl`` is the
        fallback, which is how the shared ``layout.tmpl`` is found.

        Raises:
            TemplateError: If no file exists for the name.
        """
        candidates = [
            self.layouts_dir / f"{name}{TEMPLATE_SUFFIX}",
            self.project_root / f"{name}{TEMPLATE_SUFFIX}",
        ]
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        searched = ", ".join(str(c) for c in candidates)
        raise TemplateError(f"Layout '{name}' not found. Searched: {searched}")

    def _name(self, path: Path) -> str:
        try:
            return path.relative_to(self.project_root).as_posix()
        except ValueError:
            return path.as_posix()

    def chain(self, start: Path, default_layout: str | None = None) -> list[TemplateSource]:
        """Collect the layout chain beginning at a file.

        Args:
            start: First template of the chain.
            default_layout: Parent used when the start file names none.

        Returns:
            Links from the start file to the root layout.

        Raises:
            TemplateError: If a layout is missing.
            LayoutCycleError: If a layout repeats or the chain is too deep.
        """
        sources: list[TemplateSource] = []
        visited: list[Path] = []
        seen: set[Path] = set()
        path = start
        fallback = default_layout
        while True:
            if not path.is_file():
                raise TemplateError("Template not found", path)
            resolved = path.resolve()
            if resolved in seen:
                visited.append(path)
                names = " -> ".join(self._name(p) for p in visited)
                raise LayoutCycleError(f"Layout cycle detected: {names}", visited)
            if len(sources) >= MAX_LAYOUT_DEPTH:
                visited.append(path)
                raise LayoutCycleError(
                    f"Layout chain deeper than {MAX_LAYOUT_DEPTH} templates", visited
                )
            seen.add(resolved)
            visited.append(path)

            parsed = self.parser.parse_path(path)
            try:
                text = parsed.body.decode("utf-8")
            except UnicodeDecodeError as exc:
                raise ParseError("Template is not valid UTF-8", path, exc) from exc
            sources.append(TemplateSource(self._name(path), path, text))

            parent = parsed.front_matter.layout or fallback
            fallback = None
            if not parent:
                return sources
            try:
                path = self.layout_path(parent)
            except TemplateError as exc:
                raise TemplateError(exc.message, path) from exc

    def compose(self, sources: list[TemplateSource]) -> ComposedTemplate:
        """Compile a chain into one environment.

        Each non-root link extends the link after it, so the root supplies
        the skeleton and the links below it fill in blocks.
        """
        mapping: dict[str, str] = {}
        for child, parent in zip(sources, sources[1:]):
            mapping[child.name] = "{% extends " + json.dumps(parent.name) + " %}" + child.source
        mapping[sources[-1].name] = sources[-1].source

        env = Environment(
            loader=DictLoader(mapping),
            autoescape=True,
            keep_trailing_newline=True,
            undefined=StrictUndefined if self.strict else Undefined,
        )
        env.globals.update(self.helpers)
        return ComposedTemplate(name=sources[-1].path.stem, sources=sources, env=env)

    def resolve(self, start: Path, default_layout: str | None = None) -> ComposedTemplate:
        """Resolve and compose the chain beginning at a file."""
        return self.compose(self.chain(start, default_layout))

    def resolve_layout(self, name: str) -> ComposedTemplate:
        """Resolve and compose the chain beginning at a named layout."""
        return self.resolve(self.layout_path(name))
