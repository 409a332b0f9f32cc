# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Window retrieval for a guide question.

Retrieval runs in two stages:

1. A cheap keyword pre-filter drops windows that do not mention any content
   word of the question. If nothing survives, no embedding call is made.
2. The question and the surviving windows are embedded and ranked by cosine
   similarity. The top-K windows are returned.

A failed embedding call yields an empty vector. A window without a vector
scores 0, a question without one retrieves nothing for that transcript.
"""

import asyncio
import logging
import re
from typing import Sequence

import numpy as np

from interview_matrix.ai_llm import EmbeddingClient
from interview_matrix.models import RetrievalHit, Window
from interview_matrix.task_pool import TaskPool

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset(
    {
        "a", "an", "the", "and", "or", "but", "is", "are", "was", "were",
        "be", "been", "being", "have", "has", "had", "do", "does", "did",
        "to", "from", "in", "out", "on", "off", "over", "under", "again",
        "further", "then", "once", "here", "there", "when", "where", "why",
        "how", "all", "any", "both", "each", "few", "more", "most", "other",
        "some", "such", "no", "nor", "not", "only", "own", "same", "so",
        "than", "too", "very", "can", "will", "just", "should", "now",
    }
)  # fmt: skip

_PUNCTUATION_RE = re.compile(r"[^\w\s]")


def extract_keywords(text: str) -> list[str]:
    """
    Extract content words from a question.

    Words are lowercased and stripped of punctuation. Words shorter than three
    characters and stop words are dropped. Duplicates keep their first
    position.
    """

    words = _PUNCTUATION_RE.sub("", text.lower()).split()
    return list(dict.fromkeys(w for w in words if len(w) > 2 and w not in STOP_WORDS))


def keyword_patterns(keywords: Sequence[str]) -> list[re.Pattern[str]]:
    """Build one case-insensitive whole-word pattern per keyword."""

    return [re.compile(rf"\b{re.escape(k)}\b", re.IGNORECASE) for k in keywords]


def prefilter_windows(windows: Sequence[Window], keywords: Sequence[str]) -> list[Window]:
    """Keep windows matching at least one keyword. No keywords keeps all."""

    if not keywords:
        return list(windows)

    patterns = keyword_patterns(keywords)
    return [w for w in windows if any(p.search(w.text) for p in patterns)]


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Calculate cosine similarity between two vectors.

    Returns 0 for empty vectors, vectors of different length, and zero-length
    vectors.
    """

    if len(vec1) == 0 or len(vec2) == 0 or len(vec1) != len(vec2):
        return 0.0

    a = np.asarray(vec1, dtype=float)
    b = np.asarray(vec2, dtype=float)

    norm1 = np.linalg.norm(a)
    norm2 = np.linalg.norm(b)
    if norm1 == 0 or norm2 == 0:
        return 0.0

    return float(np.dot(a, b) / (norm1 * norm2))


class RetrievalEngine:
    """
    Rank transcript windows by relevance to a question.

    Args:
        embedder:
            Embedding capability.
        embed_pool:
            Task pool limiting concurrent embedding calls.
        top_k:
            Number of windows to return.
        batch_size:
            Number of window texts per embedding call.
    """

    def __init__(
        self,
        embedder: EmbeddingClient,
        embed_pool: TaskPool,
        *,
        top_k: int = 8,
        batch_size: int = 8,
    ) -> None:
        self.embedder = embedder
        self.embed_pool = embed_pool
        self.top_k = top_k
        self.batch_size = batch_size
        self.successful_embed_calls = 0
        self.failed_embed_calls = 0

    async def find_relevant_windows(self, question: str, windows: Sequence[Window]) -> list[RetrievalHit]:
        """
        Find the windows most relevant to a question.

        Args:
            question:
                Guide question text.
            windows:
                Candidate windows of one transcript.

        Returns:
            Up to `top_k` hits, highest similarity first. Ties keep the window
            order. Empty if no window passes the keyword pre-filter or the
            question could not be embedded.
        """

        keywords = extract_keywords(question)
        candidates = prefilter_windows(windows, keywords)
        if not candidates:
            logger.debug("No window matches keywords %s", keywords)
            return []

        question_vector = await self._embed_question(question)
        if not question_vector:
            logger.warning("No embedding for question %r, skipping %d window(s)", question[:60], len(candidates))
            return []

        batches = [candidates[i : i + self.batch_size] for i in range(0, len(candidates), self.batch_size)]
        batch_vectors = await asyncio.gather(*(self._embed_batch(batch) for batch in batches))
        window_vectors = [v for vectors in batch_vectors for v in vectors]

        hits: list[RetrievalHit] = []
        for i, window in enumerate(candidates):
            vector = window_vectors[i] if i < len(window_vectors) else []
            hits.append(RetrievalHit(window=window, score=cosine_similarity(question_vector, vector)))

        # Stable sort: equal scores keep the window order.
        hits.sort(key=lambda h: h.score, reverse=True)
        return hits[: self.top_k]

    @property
    def embedding_unavailable(self) -> bool:
        """True if embedding calls were made and none of them returned a vector."""

        return self.failed_embed_calls > 0 and self.successful_embed_calls == 0

    def _count_embed_call(self, vectors: Sequence[Sequence[float]]) -> None:
        if any(len(v) for v in vectors):
            self.successful_embed_calls += 1
        else:
            self.failed_embed_calls += 1

    async def _embed_question(self, question: str) -> list[float]:
        vector = await self.embed_pool.submit(lambda: self.embedder.embed(question))
        self._count_embed_call([vector])
        return vector

    async def _embed_batch(self, batch: list[Window]) -> list[list[float]]:
        texts = [w.text for w in batch]
        vectors = await self.embed_pool.submit(lambda: self.embedder.embed_batch(texts))
        self._count_embed_call(vectors)
        return vectors
