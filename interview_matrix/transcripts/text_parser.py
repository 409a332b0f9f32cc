# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""TXT/Markdown transcript parser.

Blocks are separated by blank lines. Line breaks inside a block are kept
because speaker labels are detected per line.
"""

import re
from pathlib import Path

from interview_matrix.transcripts.base import ParserError

_BLANK_LINES_RE = re.compile(r"\n[ \t]*(?:\n[ \t]*)+")


class TextTranscriptParser:
    """Parse .txt and .md transcripts into text blocks."""

    suffixes = frozenset({".txt", ".md"})

    def read_blocks(self, path: Path) -> list[str]:
        try:
            raw = path.read_text(encoding="utf-8-sig")
        except (OSError, UnicodeDecodeError) as exc:
            raise ParserError(f"Failed to read text file: {exc}", path) from exc

        text = raw.replace("\r\n", "\n").replace("\r", "\n")
        blocks = (block.strip("\n") for block in _BLANK_LINES_RE.split(text))

        return [
            "\n".join(line.rstrip() for line in block.split("\n") if line.strip())
            for block in blocks
            if block.strip()
        ]
