# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Matrix assembly and run metrics.

The orchestrator produces one `QuestionResult` per guide question. This module
folds them into the final `AnalysisResult` and derives the run metrics that are
logged after each run (counts and rates only, no transcript content).
"""

import logging
from dataclasses import dataclass, field
from typing import Sequence

from interview_matrix.models import (
    AnalysisMetadata,
    AnalysisResult,
    AnswerSource,
    GuideItem,
    MatrixQuestion,
    RespondentAnswer,
    ScoredAnswer,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuestionResult:
    """
    Selection result for one guide question.

    Attributes:
        guide_item:
            The guide question.
        winners:
            Best answer per respondent label. Respondents without a usable
            answer are missing.
        tokens_used:
            Tokens used by all extraction calls for this question.
        retries:
            Retries over all extraction calls for this question.
        rate_limit_hits:
            Rate-limit hits over all extraction calls for this question.
    """

    guide_item: GuideItem
    winners: dict[str, ScoredAnswer] = field(default_factory=dict)
    tokens_used: int = 0
    retries: int = 0
    rate_limit_hits: int = 0


def _respondent_answer(label: str, scored: ScoredAnswer) -> RespondentAnswer:
    answer = scored.answer
    return RespondentAnswer(
        quote=answer.quote,
        summary=answer.summary,
        theme=answer.theme,
        source=AnswerSource(
            participant_label=label,
            chunk_id=scored.chunk_id,
            window_id=scored.window_id,
            time_start=answer.time_start,
            time_end=answer.time_end,
        ),
    )


def assemble_result(question_results: Sequence[QuestionResult], respondent_count: int) -> AnalysisResult:
    """
    Build the final analysis result.

    Args:
        question_results:
            One result per guide question, in guide order.
        respondent_count:
            Number of analyzed transcripts.

    Returns:
        The analysis result with one matrix row per question.
    """

    questions: list[MatrixQuestion] = []
    total_tokens = 0
    retries = 0
    rate_limit_hits = 0
    supported = 0
    answered = 0

    for qr in question_results:
        total_tokens += qr.tokens_used
        retries += qr.retries
        rate_limit_hits += qr.rate_limit_hits

        respondents = {label: _respondent_answer(label, s) for label, s in qr.winners.items()}
        supported += sum(1 for s in qr.winners.values() if s.answer.supported_by_quote)
        if respondents:
            answered += 1

        questions.append(
            MatrixQuestion(
                question_type=qr.guide_item.theme,
                question=qr.guide_item.question,
                respondents=respondents,
            )
        )

    return AnalysisResult(
        questions=tuple(questions),
        metadata=AnalysisMetadata(
            total_tokens=total_tokens,
            supported_quote_count=supported,
            answered_question_count=answered,
            total_question_count=len(question_results),
            total_respondent_count=respondent_count,
            retry_count=retries,
            rate_limit_hit_count=rate_limit_hits,
        ),
    )


@dataclass(frozen=True)
class RunMetrics:
    files_count: int
    questions_count: int
    tokens_used: int
    latency_ms: int
    supported_by_quote_rate: float
    coverage_rate: float
    retry_count: int
    rate_limit_hits: int


def run_metrics(result: AnalysisResult, *, latency_ms: int) -> RunMetrics:
    """
    Derive run metrics from a result.

    The supported-by-quote rate is relative to all answered cells, the
    coverage rate to all (question, respondent) cells.
    """

    meta = result.metadata
    answered_cells = sum(len(q.respondents) for q in result.questions)
    total_cells = meta.total_question_count * meta.total_respondent_count

    return RunMetrics(
        files_count=meta.total_respondent_count,
        questions_count=meta.total_question_count,
        tokens_used=meta.total_tokens,
        latency_ms=latency_ms,
        supported_by_quote_rate=(meta.supported_quote_count / answered_cells) if answered_cells else 0.0,
        coverage_rate=(answered_cells / total_cells) if total_cells else 0.0,
        retry_count=meta.retry_count,
        rate_limit_hits=meta.rate_limit_hit_count,
    )


def log_run_metrics(metrics: RunMetrics) -> None:
    logger.info(
        "Analysis metrics: files=%d questions=%d tokens=%d latency_ms=%d "
        "supported_by_quote_rate=%.2f coverage_rate=%.2f retries=%d rate_limit_hits=%d",
        metrics.files_count,
        metrics.questions_count,
        metrics.tokens_used,
        metrics.latency_ms,
        metrics.supported_by_quote_rate,
        metrics.coverage_rate,
        metrics.retry_count,
        metrics.rate_limit_hits,
    )
