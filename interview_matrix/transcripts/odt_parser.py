# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""ODT transcript parser."""

from pathlib import Path

from odfdo import Document

from interview_matrix.transcripts.base import ParserError


def _node_text(node: object) -> str:
    # odfdo Paragraph objects often expose richer text via
    # `inner_text`/`text_recursive` than via `.text`.
    for attr in ("inner_text", "text_recursive", "text"):
        value = getattr(node, attr, None)
        if callable(value):
            value = value()
        if value is not None:
            return str(value)
    return str(node)


class OdtTranscriptParser:
    """Parse ODT files into text blocks, one per paragraph or heading."""

    suffixes = frozenset({".odt"})

    def read_blocks(self, path: Path) -> list[str]:
        try:
            body = Document(path).body

            # XPath also finds paragraphs nested in lists, tables and frames,
            # which is common for documents converted from DOCX.
            nodes = list(body.xpath(".//text:p | .//text:h"))
            if not nodes:
                nodes = list(body.get_paragraphs())

            return [text for text in (_node_text(n).strip() for n in nodes) if text]
        except Exception as exc:  # noqa: BLE001
            raise ParserError(f"Failed to parse ODT file: {exc}", path) from exc
