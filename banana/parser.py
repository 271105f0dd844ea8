"""Content parser for Banana.

Splits a raw content or layout file into front matter and body bytes.

A file whose first line is a registered delimiter carries a front-matter
block that ends at the next line equal to the same delimiter. Any other file
is all body: content does not have to declare metadata.

Key classes:
- ParsedContent: Result of parsing one file.
- ContentParser: Parser configured with a delimiter to strategy mapping.
"""

from __future__ import annotations

import io
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from .errors import ParseError
from .frontmatter import FrontMatter, default_strategies
from .protocols import FrontMatterStrategy

LINE_ENDINGS = b"\r\n"


@dataclass(frozen=True)
class ParsedContent:
    """Front matter and body of one file.

    Attributes:
        front_matter: Decoded metadata, empty when the file has none.
        body: Everything after the closing fence, byte for byte.
    """

    front_matter: FrontMatter = field(default_factory=FrontMatter)
    body: bytes = b""


class ContentParser:
    """Parses content streams into ParsedContent.

    Attributes:
        strategies: Mapping of delimiter line to front-matter strategy.
    """

    def __init__(self, strategies: Mapping[str, FrontMatterStrategy] | None = None):
        """Initialize the parser.

        Args:
            strategies: Delimiter to strategy mapping. Defaults to YAML
                between ``---`` fences.
        """
        self.strategies = dict(
            strategies if strategies is not None else default_strategies()
        )

    def parse(self, stream: BinaryIO, path: Path | None = None) -> ParsedContent:
        """Parse a binary stream.

        Args:
            stream: Readable binary stream positioned at the start of the file.
            path: Source file, used for error messages only.

        Returns:
            ParsedContent with the decoded front matter and the body.

        Raises:
            ParseError: If the block is unterminated or malformed.
        """
        first = stream.readline()
        delimiter = first.rstrip(LINE_ENDINGS).decode("utf-8", errors="replace")
        strategy = self.strategies.get(delimiter) if first else None
        if strategy is None:
            return ParsedContent(FrontMatter(), first + stream.read())

        fence = first.rstrip(LINE_ENDINGS)
        buffer = bytearray()
        while True:
            line = stream.readline()
            if not line:
                raise ParseError(
                    f"Unterminated front matter: no closing '{delimiter}'", path
                )
            if line.rstrip(LINE_ENDINGS) == fence:
                break
            buffer.extend(line)

        front_matter = strategy.parse(bytes(buffer), path)
        return ParsedContent(front_matter, stream.read())

    def parse_bytes(self, data: bytes, path: Path | None = None) -> ParsedContent:
        """Parse an in-memory file."""
        return self.parse(io.BytesIO(data), path)

    def parse_path(self, path: Path) -> ParsedContent:
        """Open and parse a file.

        Raises:
            ParseError: If the file cannot be read or parsed.
        """
        try:
            with open(path, "rb") as f:
                return self.parse(f, path)
        except OSError as exc:
            raise ParseError(f"Cannot read file: {exc.strerror or exc}", path, exc) from exc
