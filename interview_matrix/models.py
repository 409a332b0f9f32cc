# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Value types shared by the segmentation, retrieval and extraction steps.

All types are immutable. Chunks and windows are produced once per transcript
by the segmenter, extracted answers once per (window, respondent) call, and the
final `AnalysisResult` once per run.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping


@dataclass(frozen=True)
class Window:
    """
    Overlapping sub-span of a chunk, the unit of retrieval and extraction.

    Attributes:
        id:
            Stable identifier derived from the chunk id and window index.
        chunk_id:
            Identifier of the chunk this window belongs to.
        text:
            Window text (exact slice of the filtered transcript text).
        start_offset:
            Absolute start offset (inclusive) in the filtered transcript text.
        end_offset:
            Absolute end offset (exclusive).
        token_count:
            Estimated token count.
    """

    id: str
    chunk_id: str
    text: str
    start_offset: int
    end_offset: int
    token_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "start": self.start_offset,
            "end": self.end_offset,
            "token_count": self.token_count,
            "text": self.text,
        }


@dataclass(frozen=True)
class Chunk:
    """
    Large contiguous transcript segment with its windows.

    Attributes:
        id:
            Stable identifier derived from the source id and chunk index.
        text:
            Chunk text (exact slice of the filtered transcript text).
        start_offset:
            Absolute start offset (inclusive).
        end_offset:
            Absolute end offset (exclusive).
        token_count:
            Estimated token count.
        windows:
            Windows inside this chunk, in positional order.
    """

    id: str
    text: str
    start_offset: int
    end_offset: int
    token_count: int
    windows: tuple[Window, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "start": self.start_offset,
            "end": self.end_offset,
            "token_count": self.token_count,
            "text": self.text,
            "windows": [w.to_dict() for w in self.windows],
        }


def chunk_from_dict(value: dict[str, Any]) -> Chunk:
    """Rebuild a chunk (with windows) from its work file representation."""

    chunk_id = str(value["id"])
    windows = tuple(
        Window(
            id=str(w["id"]),
            chunk_id=chunk_id,
            text=str(w["text"]),
            start_offset=int(w["start"]),
            end_offset=int(w["end"]),
            token_count=int(w.get("token_count") or 0),
        )
        for w in value.get("windows") or []
    )
    return Chunk(
        id=chunk_id,
        text=str(value["text"]),
        start_offset=int(value["start"]),
        end_offset=int(value["end"]),
        token_count=int(value.get("token_count") or 0),
        windows=windows,
    )


@dataclass(frozen=True)
class TranscriptDocument:
    """
    One segmented transcript as supplied to the orchestrator.

    Attributes:
        file_id:
            Stable document identifier.
        label:
            Respondent label used as key in the result matrix.
        chunks:
            Segmented chunks of the filtered transcript text.
    """

    file_id: str
    label: str
    chunks: tuple[Chunk, ...]

    @property
    def windows(self) -> list[Window]:
        return [w for c in self.chunks for w in c.windows]


@dataclass(frozen=True)
class GuideItem:
    """One question of the discussion guide with its theme category."""

    theme: str
    question: str


@dataclass(frozen=True)
class RetrievalHit:
    """A window ranked for a question by cosine similarity."""

    window: Window
    score: float


@dataclass(frozen=True)
class ExtractedAnswer:
    """
    Normalized structured answer for one window.

    Attributes:
        quote:
            Verbatim quote from the window.
        summary:
            Short summary of the respondent's answer.
        theme:
            Theme from the controlled vocabulary (or `Other`).
        supported_by_quote:
            Whether the quote directly supports the summary.
        confidence:
            Model confidence in [0, 1] (capped at 0.5 when unsupported).
        speaker_label:
            Optional speaker label reported by the model.
        time_start:
            Optional start time in seconds.
        time_end:
            Optional end time in seconds.
        is_fallback:
            True if the model output was unusable and replaced.
    """

    quote: str
    summary: str
    theme: str
    supported_by_quote: bool
    confidence: float
    speaker_label: str | None = None
    time_start: float | None = None
    time_end: float | None = None
    is_fallback: bool = False


@dataclass(frozen=True)
class ScoredAnswer:
    """An extracted answer with its traceability ids and scores."""

    answer: ExtractedAnswer
    respondent_label: str
    window_id: str
    chunk_id: str
    similarity: float
    specificity: float
    composite_score: float


@dataclass(frozen=True)
class AnswerSource:
    participant_label: str
    chunk_id: str
    window_id: str
    time_start: float | None = None
    time_end: float | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "participantLabel": self.participant_label,
            "chunkId": self.chunk_id,
            "windowId": self.window_id,
        }
        if self.time_start is not None:
            out["timeStart"] = self.time_start
        if self.time_end is not None:
            out["timeEnd"] = self.time_end
        return out


@dataclass(frozen=True)
class RespondentAnswer:
    quote: str
    summary: str
    theme: str
    source: AnswerSource

    def to_dict(self) -> dict[str, Any]:
        return {
            "quote": self.quote,
            "summary": self.summary,
            "theme": self.theme,
            "source": self.source.to_dict(),
        }


@dataclass(frozen=True)
class MatrixQuestion:
    """
    Final output row for one guide question.

    Respondents without a usable answer have no entry in `respondents`. The
    mapping is a read-only copy of the one passed in.
    """

    question_type: str
    question: str
    respondents: Mapping[str, RespondentAnswer] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "respondents", MappingProxyType(dict(self.respondents)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "question_type": self.question_type,
            "question": self.question,
            "respondents": {label: a.to_dict() for label, a in self.respondents.items()},
        }


@dataclass(frozen=True)
class AnalysisMetadata:
    total_tokens: int
    supported_quote_count: int
    answered_question_count: int
    total_question_count: int
    total_respondent_count: int
    retry_count: int
    rate_limit_hit_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalTokens": self.total_tokens,
            "supportedQuoteCount": self.supported_quote_count,
            "answeredQuestionCount": self.answered_question_count,
            "totalQuestionCount": self.total_question_count,
            "totalRespondentCount": self.total_respondent_count,
            "retryCount": self.retry_count,
            "rateLimitHitCount": self.rate_limit_hit_count,
        }


@dataclass(frozen=True)
class AnalysisResult:
    questions: tuple[MatrixQuestion, ...]
    metadata: AnalysisMetadata

    def to_dict(self) -> dict[str, Any]:
        return {
            "questions": [q.to_dict() for q in self.questions],
            "metadata": self.metadata.to_dict(),
        }
