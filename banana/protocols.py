"""Protocol definitions for Banana.

This module defines the small interfaces that the parser, the template
resolver and the watcher depend on, so that each of them receives its
collaborators explicitly instead of reaching for module-level registries.

These protocols enable:
- Alternative front-matter formats keyed by delimiter
- Easy testing through fake observers and listeners
"""

from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .frontmatter import FrontMatter


@runtime_checkable
class FrontMatterStrategy(Protocol):
    """Protocol for decoding the raw text between front-matter fences.

    The content parser keeps a mapping of delimiter to strategy. Only YAML
    exists today, but a TOML or JSON block would plug in here without
    touching the parser's control flow.
    """

    @abstractmethod
    def parse(self, raw: bytes, path: Path | None = None) -> FrontMatter:
        """Decode a front-matter block.

        Args:
            raw: Bytes between the opening and closing fences.
            path: Source file, used for error messages only.

        Returns:
            Decoded FrontMatter.

        Raises:
            ParseError: If the block is malformed.
        """
        ...


@runtime_checkable
class ChangeListener(Protocol):
    """Protocol for objects notified when watched sources change."""

    @abstractmethod
    def on_change(self) -> Any:
        """Handle a (coalesced) change notification.

        Exceptions raised here are logged by the watcher and never stop it.
        """
        ...


@runtime_checkable
class EventObserver(Protocol):
    """The subset of watchdog's observer API the watcher relies on."""

    def schedule(self, event_handler: Any, path: str, recursive: bool = False) -> Any:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def join(self, timeout: float | None = None) -> None:
        ...
