"""Banana static site generator.

Banana turns a directory of posts, pages, layouts and static files into a tree
of HTML files, rendering Markdown posts through chains of Jinja2 layouts. It
can also serve the result and rebuild it whenever the sources change.

The main entry point is the CLI module, which provides commands for building,
cleaning and serving a site.

Layout of a Banana project:
- banana.yml: Site configuration.
- index.tmpl, layout.tmpl: The listing page and the shared top-level layout.
- posts/: Dated Markdown content listed on the index.
- pages/: Standalone .tmpl pages.
- layouts/: Named .tmpl layouts.
- static/: Files copied verbatim.
"""

__all__ = ["__version__"]
__version__ = "0.2.0"
