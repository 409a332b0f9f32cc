# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Answer scoring and selection.

Each extracted answer gets a composite score from retrieval similarity, model
confidence and a specificity heuristic. Per respondent and question the
answer with the highest composite score wins.
"""

import re
from typing import Iterable

from interview_matrix.extraction import ExtractionOutcome
from interview_matrix.models import ScoredAnswer

SIMILARITY_WEIGHT = 0.45
CONFIDENCE_WEIGHT = 0.35
SPECIFICITY_WEIGHT = 0.20

_NUMBER_RE = re.compile(r"\d")
_ROLE_RE = re.compile(r"doctor|nurse|specialist|technician|pharmacist|administrator", re.IGNORECASE)
_TIME_UNIT_RE = re.compile(r"\b(?:days|weeks|months|years|hours|minutes)\b", re.IGNORECASE)
_PRODUCT_RE = re.compile(r"brand|product|device|medication|drug|therapy|treatment", re.IGNORECASE)


def specificity(quote: str, summary: str) -> float:
    """
    Score how concrete an answer is, in [0, 1].

    Numbers add 0.3, named roles 0.2, time units 0.25 and product or treatment
    words 0.25.
    """

    text = f"{quote} {summary}"

    score = 0.0
    if _NUMBER_RE.search(text):
        score += 0.3
    if _ROLE_RE.search(text):
        score += 0.2
    if _TIME_UNIT_RE.search(text):
        score += 0.25
    if _PRODUCT_RE.search(text):
        score += 0.25

    return min(score, 1.0)


def composite_score(similarity: float, confidence: float, specificity_score: float) -> float:
    return (
        SIMILARITY_WEIGHT * similarity
        + CONFIDENCE_WEIGHT * confidence
        + SPECIFICITY_WEIGHT * specificity_score
    )


def score_answer(outcome: ExtractionOutcome, respondent_label: str) -> ScoredAnswer:
    """Score one extraction outcome. Window and chunk ids come from its hit."""

    answer = outcome.answer
    window = outcome.hit.window
    detail = specificity(answer.quote, answer.summary)

    return ScoredAnswer(
        answer=answer,
        respondent_label=respondent_label,
        window_id=window.id,
        chunk_id=window.chunk_id,
        similarity=outcome.hit.score,
        specificity=detail,
        composite_score=composite_score(outcome.hit.score, answer.confidence, detail),
    )


def select_best(scored: Iterable[ScoredAnswer], min_score: float = 0.0) -> ScoredAnswer | None:
    """
    Pick the best usable answer.

    Fallback answers and answers scoring below `min_score` are not usable.
    On equal scores the first answer wins.

    Returns:
        The winning answer, or None if no answer is usable.
    """

    best: ScoredAnswer | None = None
    for candidate in scored:
        if candidate.answer.is_fallback or candidate.composite_score < min_score:
            continue
        if best is None or candidate.composite_score > best.composite_score:
            best = candidate
    return best
