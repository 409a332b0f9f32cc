# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Transcript segmentation.

A transcript is cut into large chunks (with a small overlap for context), and
each chunk into overlapping windows. Windows are the unit for retrieval and
extraction. Cut points are snapped to the nearest sentence end or paragraph
break so that quotes are not split mid-sentence where avoidable.

Before segmentation, interviewer/moderator turns can be removed with
`filter_moderator_turns()` so that only respondent speech is analyzed.
"""

import re
from typing import Iterable

from interview_matrix.config import SegmentationConfig
from interview_matrix.models import Chunk, Window
from interview_matrix.tokenizer import token_count, tokens_to_chars

_SENTENCE_END_RE = re.compile(r"[.!?](?=\s)")
_PARAGRAPH_BREAK_RE = re.compile(r"\n[ \t]*\n")

MODERATOR_LABELS = ("interviewer", "moderator", "facilitator", "i", "q")
RESPONDENT_LABELS = ("respondent", "participant", "subject", "patient", "doctor", "nurse", "hcp", "r", "p")


def snap_boundary(text: str, target: int, slack: int) -> int:
    """
    Move a cut offset to a natural boundary near the target.

    Sentence ends (`.`, `!`, `?` followed by whitespace) are preferred, the cut
    is placed right after the punctuation. Otherwise a paragraph break (blank
    line) is used, the cut is placed after it. If neither is found within
    `slack` characters of the target, the target is returned unchanged.

    Args:
        text:
            Text to cut.
        target:
            Desired cut offset.
        slack:
            Maximum distance (in characters) from the target.

    Returns:
        The snapped offset. Targets at or beyond the end snap to `len(text)`.
    """

    n = len(text)
    if target >= n:
        return n

    lo = max(0, target - slack)
    hi = min(n, target + slack)

    candidates = [
        m.start() + 1
        for m in _SENTENCE_END_RE.finditer(text, max(0, lo - 1), min(n, hi + 1))
        if lo <= m.start() + 1 <= hi
    ]
    if not candidates:
        candidates = [
            m.end()
            for m in _PARAGRAPH_BREAK_RE.finditer(text, max(0, lo - slack), hi)
            if lo <= m.end() <= hi
        ]

    if not candidates:
        return target

    return min(candidates, key=lambda b: (abs(b - target), b))


class Segmenter:
    """Split transcript text into chunks and windows."""

    def __init__(self, config: SegmentationConfig | None = None) -> None:
        self.config = config or SegmentationConfig()

        self._chunk_chars = tokens_to_chars(self.config.chunk_tokens)
        self._overlap_chars = tokens_to_chars(self.config.chunk_overlap_tokens)
        self._window_chars = tokens_to_chars(self.config.window_tokens)
        self._step_chars = tokens_to_chars(self.config.window_step_tokens)
        self._slack_chars = tokens_to_chars(self.config.boundary_slack_tokens)

    def segment(self, text: str, source_id: str) -> list[Chunk]:
        """
        Segment a transcript.

        Args:
            text:
                Transcript text (usually already speaker-filtered).
            source_id:
                Document identifier used as prefix of chunk/window ids.

        Returns:
            Chunks in positional order, each with at least one window. Empty
            for whitespace-only input.
        """

        if not text.strip():
            return []

        prefix = re.sub(r"\s+", "_", source_id.strip()) or "document"
        n = len(text)

        chunks: list[Chunk] = []
        start = 0
        while start < n:
            end = snap_boundary(text, start + self._chunk_chars, self._slack_chars)
            if end <= start:
                end = min(start + self._chunk_chars, n)

            chunk_id = f"{prefix}_c{len(chunks):02d}"
            chunk_text = text[start:end]
            chunks.append(
                Chunk(
                    id=chunk_id,
                    text=chunk_text,
                    start_offset=start,
                    end_offset=end,
                    token_count=token_count(chunk_text),
                    windows=tuple(self._windows(chunk_text, chunk_id=chunk_id, offset=start)),
                )
            )

            if end >= n:
                break

            next_start = max(start, end - self._overlap_chars)
            start = next_start if next_start > start else end

        return chunks

    def _windows(self, chunk_text: str, *, chunk_id: str, offset: int) -> list[Window]:
        """Build the windows of one chunk. Offsets are shifted by `offset`."""

        n = len(chunk_text)
        windows: list[Window] = []
        start = 0
        while start < n:
            end = snap_boundary(chunk_text, start + self._window_chars, self._slack_chars)
            if end <= start:
                end = min(start + self._window_chars, n)

            window_text = chunk_text[start:end]
            windows.append(
                Window(
                    id=f"{chunk_id}_w{len(windows)}",
                    chunk_id=chunk_id,
                    text=window_text,
                    start_offset=offset + start,
                    end_offset=offset + end,
                    token_count=token_count(window_text),
                )
            )

            if end >= n:
                break

            # Never step past the current end, otherwise text would be skipped.
            start = min(start + self._step_chars, end)

        return windows


def _label_re(labels: Iterable[str]) -> re.Pattern[str] | None:
    cleaned = sorted({" ".join(x.split()) for x in labels if x and x.strip()}, key=len, reverse=True)
    if not cleaned:
        return None
    alternatives = "|".join(re.escape(x) for x in cleaned)
    return re.compile(rf"^\s*(?:{alternatives})\s*:", re.IGNORECASE)


def filter_moderator_turns(
    text: str,
    interviewer_labels: Iterable[str] = (),
    respondent_labels: Iterable[str] = (),
) -> str:
    """
    Remove interviewer/moderator turns from a transcript.

    A line starting with a moderator label (e.g. `Interviewer:` or `Q:`) starts
    a moderator turn and is dropped together with all following unlabeled
    lines. A line starting with a respondent label (e.g. `Respondent:` or
    `Nurse:`) ends the moderator turn and is kept. Unlabeled lines outside a
    moderator turn are kept unchanged.

    Args:
        text:
            Raw transcript text.
        interviewer_labels:
            Additional interviewer labels from the transcript metadata.
        respondent_labels:
            Additional respondent labels from the transcript metadata.

    Returns:
        The filtered text (lines joined with newlines).
    """

    moderator_re = _label_re([*MODERATOR_LABELS, *interviewer_labels])
    respondent_re = _label_re([*RESPONDENT_LABELS, *respondent_labels])

    kept: list[str] = []
    in_moderator_turn = False

    for line in text.splitlines():
        if moderator_re is not None and moderator_re.match(line):
            in_moderator_turn = True
            continue

        if respondent_re is not None and respondent_re.match(line):
            in_moderator_turn = False
            kept.append(line)
            continue

        if not in_moderator_turn:
            kept.append(line)

    return "\n".join(kept)
