"""Error types for Banana.

Every failure a build can hit is raised as a subclass of BananaError so the
command line (and the rebuild worker in watch mode) can catch one type and
report it.

Key classes:
- BananaError: Base error with optional file context.
- ConfigError: Missing, unreadable or malformed banana.yml.
- ParseError: Malformed or unterminated front matter, unreadable content.
- TemplateError: Missing layout, template syntax or render failure.
- LayoutCycleError: Layout chain that revisits a layout or is too deep.
- WriteError: Output directory or file cannot be written.
- WatchError: Filesystem watch failure.
"""

from __future__ import annotations

from pathlib import Path


class BananaError(Exception):
    """Base error for Banana with file context.

    Attributes:
        message: Human-readable error message.
        source_path: Path to the file that caused the error, if known.
        original_error: The original exception that was caught.
    """

    def __init__(
        self,
        message: str,
        source_path: Path | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.source_path = source_path
        self.original_error = original_error
        if source_path is not None:
            super().__init__(f"{source_path}: {message}")
        else:
            super().__init__(message)


class ConfigError(BananaError):
    """Configuration could not be loaded."""


class ParseError(BananaError):
    """A content or layout file could not be parsed."""


class TemplateError(BananaError):
    """A template could not be resolved, compiled or rendered."""


class LayoutCycleError(TemplateError):
    """A layout chain refers back to itself or exceeds the maximum depth.

    Attributes:
        chain: Paths visited before the cycle was detected.
    """

    def __init__(self, message: str, chain: list[Path]):
        self.chain = chain
        super().__init__(message, source_path=chain[-1] if chain else None)


class WriteError(BananaError):
    """Build output could not be written."""


class WatchError(BananaError):
    """The filesystem watcher reported a failure."""
