# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""Shared statement parsing helpers.

File format parsers (TXT/MD/ODT) extract *raw* text blocks/paragraphs. This
module turns those blocks into one transcript text plus metadata:

- Metadata blocks (`key = value`) are removed from the text. Supported keys:
  `interviewer` (comma-separated labels of the interviewer/moderator) and
  `respondent` (the respondent label used in the result matrix). Other keys
  are kept as free-form fields.
- Markdown prefixes (block quotes, bullet points, numbered lists) in front of
  a `Label: ...` line are removed so that speaker labels start the line.
- Blocks are joined with blank lines, so paragraph breaks survive for the
  segmenter's boundary snapping.
"""

import re
from dataclasses import dataclass, field
from typing import Iterable

# Markdown prefixes in front of a `Label: ...` pattern.
_LABEL_PREFIX_RE = re.compile(
    r"^[ \t]*(?:>[ \t]*)*(?:[-+*][ \t]+|\d+[\.)][ \t]+)?(?=[^:\n]{1,80}:[ \t]*\S)",
    re.MULTILINE,
)

# Allow the metadata marker to be formatted like normal statements in Markdown
# (e.g., block quotes or list items) and ignore case.
_META_RE = re.compile(
    r"^\s*(?:>\s*)*(?:[-+*]\s+|\d+[\.)]\s+)?(?P<key>[A-Za-z][A-Za-z0-9_\-]{0,63})\s*=\s*(?P<value>.*?)\s*$",
)

_RESPONDENT_KEYS = {"respondent", "participant", "label"}


@dataclass(frozen=True)
class TranscriptMetadata:
    """
    Metadata declared inside a transcript.

    Attributes:
        interviewers:
            Interviewer/moderator labels (deduplicated, original casing).
        respondent:
            Respondent label, if declared.
        fields:
            Other `key = value` entries.
    """

    interviewers: tuple[str, ...] = ()
    respondent: str | None = None
    fields: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "interviewers": list(self.interviewers),
            "respondent": self.respondent,
            "fields": dict(self.fields),
        }


@dataclass(frozen=True)
class ParsedTranscript:
    text: str
    metadata: TranscriptMetadata


def _split_labels(raw_value: str) -> list[str]:
    labels: list[str] = []
    for part in raw_value.split(","):
        label = " ".join(part.split()).rstrip(" :\t-–—").strip()
        if label:
            labels.append(label)
    return labels


def parse_statement_blocks(blocks: Iterable[str]) -> ParsedTranscript:
    """Parse extracted blocks into transcript text and metadata.

    Args:
        blocks:
            Iterable of raw text blocks/paragraphs. Empty/whitespace-only blocks
            are ignored.

    Returns:
        The joined transcript text with its metadata.
    """

    interviewers: list[str] = []
    seen: set[str] = set()
    respondent: str | None = None
    fields: dict[str, str] = {}
    kept: list[str] = []

    for block in blocks:
        stripped = str(block).strip()
        if not stripped:
            continue

        meta = _META_RE.match(stripped) if "\n" not in stripped else None
        if meta:
            key = meta.group("key").strip().lower()
            value = meta.group("value").strip()

            if key in {"interviewer", "interviewers", "moderator"}:
                for label in _split_labels(value):
                    if label.casefold() not in seen:
                        interviewers.append(label)
                        seen.add(label.casefold())
            elif key in _RESPONDENT_KEYS:
                if value and respondent is None:
                    respondent = " ".join(value.split())
            elif value:
                fields.setdefault(key, value)
            continue

        kept.append(_LABEL_PREFIX_RE.sub("", stripped))

    return ParsedTranscript(
        text="\n\n".join(kept),
        metadata=TranscriptMetadata(
            interviewers=tuple(interviewers),
            respondent=respondent,
            fields=fields,
        ),
    )
