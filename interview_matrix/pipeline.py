# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Extraction pipeline.

Drives retrieval, extraction, scoring and selection for every (question,
transcript) pair and assembles the final matrix:

- Guide questions are processed one after another, in guide order.
- Within a question, all transcripts are processed concurrently.
- Within a transcript, all retrieved windows are extracted concurrently
  through the chat task pool and joined before scoring.

Two task pools bound the load on the external service: one for embeddings
(used by the retrieval engine) and one for chat completions.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Sequence

from interview_matrix.ai_llm import ChatClient, EmbeddingClient, create_llm_clients
from interview_matrix.config import InterviewConfig
from interview_matrix.errors import EmbeddingUnavailableError, PipelineError
from interview_matrix.extraction import AnswerExtractor, ExtractionOutcome
from interview_matrix.matrix import QuestionResult, assemble_result
from interview_matrix.models import AnalysisResult, GuideItem, RetrievalHit, ScoredAnswer, TranscriptDocument
from interview_matrix.retrieval import RetrievalEngine
from interview_matrix.retry import RetryCaller, RetryPolicy
from interview_matrix.scoring import score_answer, select_best
from interview_matrix.task_pool import TaskPool
from interview_matrix.vocabulary import ThemeVocabulary

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, GuideItem], None]


class PairState(enum.Enum):
    """Processing state of one (question, transcript) pair."""

    PENDING = "pending"
    RETRIEVED = "retrieved"
    EXTRACTED = "extracted"
    SCORED = "scored"
    ASSEMBLED = "assembled"


@dataclass(frozen=True)
class TranscriptSelection:
    """Outcome of one (question, transcript) pair."""

    label: str
    winner: ScoredAnswer | None = None
    outcomes: tuple[ExtractionOutcome, ...] = field(default_factory=tuple)


class ExtractionOrchestrator:
    """
    Run the extraction pipeline over all guide questions and transcripts.

    Args:
        retrieval:
            Retrieval engine (owns the embedding pool).
        extractor:
            Answer extractor (owns the retry caller).
        chat_pool:
            Task pool limiting concurrent extraction calls.
        min_composite_score:
            Usability threshold for answers.
    """

    def __init__(
        self,
        retrieval: RetrievalEngine,
        extractor: AnswerExtractor,
        chat_pool: TaskPool,
        *,
        min_composite_score: float = 0.0,
    ) -> None:
        self.retrieval = retrieval
        self.extractor = extractor
        self.chat_pool = chat_pool
        self.min_composite_score = min_composite_score

    async def run(
        self,
        transcripts: Sequence[TranscriptDocument],
        guide: Sequence[GuideItem],
        *,
        progress: ProgressCallback | None = None,
    ) -> AnalysisResult:
        """
        Build the question-by-respondent matrix.

        Args:
            transcripts:
                Segmented transcripts with unique labels.
            guide:
                Discussion guide in display order.
            progress:
                Optional callback invoked before each question with
                (1-based index, total, guide item).

        Returns:
            The analysis result.

        Raises:
            PipelineError:
                If there are no transcripts or no guide questions.
            EmbeddingUnavailableError:
                If no embedding call of the run returned a vector.
            RetryExhaustedError:
                If an extraction call kept failing.
            FatalCallError:
                If an extraction call failed with a non-retryable error.
        """

        if not transcripts:
            raise PipelineError("No transcripts to analyze")
        if not guide:
            raise PipelineError("The discussion guide contains no questions")

        labels = [t.label for t in transcripts]
        if len(set(labels)) != len(labels):
            raise PipelineError("Transcript labels must be unique")

        question_results: list[QuestionResult] = []
        for idx, guide_item in enumerate(guide, start=1):
            if progress is not None:
                progress(idx, len(guide), guide_item)
            question_results.append(await self._process_question(guide_item, transcripts))

        if self.retrieval.embedding_unavailable:
            raise EmbeddingUnavailableError("The embedding service returned no vector during the whole run")

        return assemble_result(question_results, respondent_count=len(transcripts))

    async def _process_question(
        self,
        guide_item: GuideItem,
        transcripts: Sequence[TranscriptDocument],
    ) -> QuestionResult:
        selections = await asyncio.gather(*(self._process_pair(guide_item, t) for t in transcripts))

        winners: dict[str, ScoredAnswer] = {}
        tokens_used = 0
        retries = 0
        rate_limit_hits = 0

        for selection in selections:
            for outcome in selection.outcomes:
                tokens_used += outcome.tokens_used
                retries += outcome.retries
                rate_limit_hits += outcome.rate_limit_hits
            if selection.winner is not None:
                winners[selection.label] = selection.winner
            self._transition(guide_item, selection.label, PairState.ASSEMBLED)

        return QuestionResult(
            guide_item=guide_item,
            winners=winners,
            tokens_used=tokens_used,
            retries=retries,
            rate_limit_hits=rate_limit_hits,
        )

    async def _process_pair(self, guide_item: GuideItem, transcript: TranscriptDocument) -> TranscriptSelection:
        label = transcript.label
        self._transition(guide_item, label, PairState.PENDING)

        hits = await self.retrieval.find_relevant_windows(guide_item.question, transcript.windows)
        self._transition(guide_item, label, PairState.RETRIEVED, f"{len(hits)} window(s)")
        if not hits:
            return TranscriptSelection(label=label)

        outcomes = await asyncio.gather(*(self._extract(guide_item, hit, label) for hit in hits))
        self._transition(guide_item, label, PairState.EXTRACTED)

        scored = [score_answer(o, label) for o in outcomes]
        winner = select_best(scored, self.min_composite_score)
        self._transition(
            guide_item,
            label,
            PairState.SCORED,
            f"winner={winner.window_id}" if winner is not None else "no usable answer",
        )

        return TranscriptSelection(label=label, winner=winner, outcomes=tuple(outcomes))

    async def _extract(self, guide_item: GuideItem, hit: RetrievalHit, label: str) -> ExtractionOutcome:
        return await self.chat_pool.submit(lambda: self.extractor.extract_answer(guide_item, hit, label))

    def _transition(self, guide_item: GuideItem, label: str, state: PairState, detail: str = "") -> None:
        logger.debug(
            "%s / %s -> %s%s",
            guide_item.question[:60],
            label,
            state.value,
            f" ({detail})" if detail else "",
        )


def create_orchestrator(
    config: InterviewConfig,
    *,
    chat: ChatClient | None = None,
    embedder: EmbeddingClient | None = None,
) -> ExtractionOrchestrator:
    """
    Wire up the pipeline from a configuration.

    Args:
        config:
            Loaded configuration.
        chat:
            Chat client. Created from the environment if omitted.
        embedder:
            Embedding client. Created from the environment if omitted.

    Returns:
        A ready-to-run orchestrator.
    """

    if chat is None or embedder is None:
        default_chat, default_embedder = create_llm_clients()
        chat = chat or default_chat
        embedder = embedder or default_embedder

    embed_pool = TaskPool(config.concurrency.embed, name="embed")
    chat_pool = TaskPool(config.concurrency.chat, name="chat")

    retry = config.retry
    retry_caller = RetryCaller(
        RetryPolicy(
            attempts=retry.attempts,
            initial_delay=retry.initial_delay_ms / 1000.0,
            multiplier=retry.multiplier,
            max_delay=retry.max_delay_ms / 1000.0,
        )
    )

    retrieval = RetrievalEngine(
        embedder,
        embed_pool,
        top_k=config.retrieval.top_k,
        batch_size=config.retrieval.embed_batch_size,
    )
    extractor = AnswerExtractor(
        chat,
        retry_caller,
        ThemeVocabulary(config.vocabulary),
        temperature=config.analysis.temperature,
    )

    return ExtractionOrchestrator(
        retrieval,
        extractor,
        chat_pool,
        min_composite_score=config.analysis.min_composite_score,
    )
