"""Utility functions for Banana.

String and filesystem helpers shared by the content model, the build and the
watcher.

Key functions:
    slugify: Convert a title to a URL slug.
    is_template: Check if a path is a .tmpl template.
    is_hidden: Check if a path component is a dotfile.
    iter_files: List files in a directory, optionally recursively.
    iter_dirs: List a directory and all of its subdirectories.
    remove_tree: Remove a directory tree, tolerating its absence.
    copy_tree: Copy a directory tree verbatim.
"""

from __future__ import annotations

import re
import shutil
from pathlib import Path

TEMPLATE_SUFFIX = ".tmpl"

STATIC_DIR = "static"

NON_WORD_RE = re.compile(r"\W+", re.ASCII)


def slugify(text: str) -> str:
    """Convert text to a slug.

    Lower-cases the text and collapses every run of non-word characters
    into a single hyphen, trimming hyphens at both ends.

    Args:
        text: Title or filename stem.

    Returns:
        URL-friendly slug, possibly empty.

    Examples:
        >>> slugify("My First Post!")
        'my-first-post'
    """
    return NON_WORD_RE.sub("-", text.lower()).strip("-")


def is_template(path: Path) -> bool:
    """Check if a path is a Banana template file.

    Args:
        path: Path to check.

    Returns:
        True if the file has the .tmpl extension.
    """
    return path.suffix == TEMPLATE_SUFFIX


def is_hidden(path: Path) -> bool:
    """Check if a path's name starts with a dot."""
    return path.name.startswith(".")


def iter_files(directory: Path, recursive: bool = False) -> list[Path]:
    """List the regular, non-hidden files in a directory in name order.

    Hidden and symlinked directories are not descended into.

    Args:
        directory: Directory to list. A missing directory yields nothing.
        recursive: Whether to include files in subdirectories.

    Returns:
        Sorted list of file paths.
    """
    if not directory.is_dir():
        return []
    files: list[Path] = []
    for path in sorted(directory.iterdir()):
        if is_hidden(path):
            continue
        if path.is_dir():
            if recursive and not path.is_symlink():
                files.extend(iter_files(path, recursive=True))
            continue
        files.append(path)
    return files


def iter_dirs(directory: Path) -> list[Path]:
    """Return a directory and every subdirectory below it, parents first.

    Args:
        directory: Root of the walk. A missing directory yields nothing.
    """
    if not directory.is_dir():
        return []
    dirs = [directory]
    for path in sorted(directory.iterdir()):
        if path.is_dir() and not path.is_symlink():
            dirs.extend(iter_dirs(path))
    return dirs


def remove_tree(path: Path) -> None:
    """Remove a directory tree. Removing a missing path is not an error.

    Args:
        path: Directory to remove.
    """
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.exists():
        shutil.rmtree(path)


def copy_tree(source: Path, dest: Path) -> None:
    """Copy a directory tree verbatim, preserving file metadata.

    Args:
        source: Directory to copy.
        dest: Destination; must not exist yet.
    """
    shutil.copytree(source, dest)
