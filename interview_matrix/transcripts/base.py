# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""Transcript parser interface."""

from pathlib import Path
from typing import Protocol


class TranscriptParser(Protocol):
    """Reads one source format into raw text blocks.

    Parsers know nothing about speakers or metadata lines. They only return
    the paragraphs of the file in reading order.
    """

    #: Lower-case file suffixes handled by the parser, including the dot.
    suffixes: frozenset[str]

    def read_blocks(self, path: Path) -> list[str]:
        """Return the non-empty paragraphs of the transcript file."""
        ...


class ParserError(RuntimeError):
    """A transcript file could not be read."""

    def __init__(self, message: str, path: Path) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
