# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Answer extraction.

One LLM call per retrieved window asks for a verbatim quote, a short summary
and a theme from the controlled vocabulary. The model output is validated and
normalized; unusable output is replaced by a fallback answer that never wins
the selection.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Sequence

import yaml

from interview_matrix.ai_llm import ChatClient, StructuredCompletion
from interview_matrix.models import ExtractedAnswer, GuideItem, RetrievalHit
from interview_matrix.retry import RetryCaller
from interview_matrix.vocabulary import OTHER_THEME, ThemeVocabulary

FALLBACK_QUOTE = "[No direct quote found]"
FALLBACK_SUMMARY = "The respondent did not directly address this question."
FALLBACK_CONFIDENCE = 0.1
UNSUPPORTED_CONFIDENCE_CAP = 0.5

_CLOCK_RE = re.compile(r"^\s*(?:(?P<h>\d{1,2}):)?(?P<m>\d{1,2}):(?P<s>\d{1,2}(?:\.\d+)?)\s*$")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionOutcome:
    """
    Result of extracting one window.

    The hit is carried along so the winning answer can be traced back to its
    window and chunk.
    """

    answer: ExtractedAnswer
    hit: RetrievalHit
    tokens_used: int = 0
    retries: int = 0
    rate_limit_hits: int = 0


def fallback_answer() -> ExtractedAnswer:
    return ExtractedAnswer(
        quote=FALLBACK_QUOTE,
        summary=FALLBACK_SUMMARY,
        theme=OTHER_THEME,
        supported_by_quote=False,
        confidence=FALLBACK_CONFIDENCE,
        is_fallback=True,
    )


def build_system_prompt(guide_item: GuideItem, allowed_themes: Sequence[str]) -> str:
    """
    Build the system prompt for one extraction call.

    Args:
        guide_item:
            The guide question to answer.
        allowed_themes:
            Allowed themes for the guide item's category.

    Returns:
        System prompt text.
    """

    themes = ", ".join(t for t in allowed_themes if t != OTHER_THEME)

    system_parts = [
        "You are extracting answers from interview transcripts.",
        "Focus only on the respondent's speech and ignore any moderator/interviewer text.",
        f'The question is: "{guide_item.question}"',
        "Return a JSON object with these fields:",
        "quote: a single verbatim sentence from the respondent that directly supports the answer (must be exact text from the excerpt);",
        "summary: a 1-3 sentence specific summary of the respondent's answer;",
        f'theme: one of these allowed themes: {themes}, or "{OTHER_THEME}";',
        "supported_by_quote: boolean indicating whether the quote directly supports the summary;",
        "confidence: number from 0 to 1 indicating your confidence in this extraction.",
        "If the excerpt contains timestamps like [MM:SS], also include time_start and time_end in seconds.",
        "If the text does not answer the question, return low confidence and supported_by_quote=false.",
    ]

    return " ".join(system_parts)


def build_user_payload(guide_item: GuideItem, excerpt: str, respondent_label: str) -> str:
    """Serialize the user message as YAML for readability."""

    payload = {
        "respondent": respondent_label,
        "question": guide_item.question,
        "transcript_excerpt": excerpt,
    }
    return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True)


def parse_time(value: Any) -> float | None:
    """Parse a time in seconds from a number or a `MM:SS`/`HH:MM:SS` string."""

    if isinstance(value, bool) or value is None:
        return None

    if isinstance(value, (int, float)):
        return float(value) if value >= 0 else None

    if isinstance(value, str):
        text = value.strip().strip("[]")
        match = _CLOCK_RE.match(text)
        if match:
            hours = int(match.group("h") or 0)
            return hours * 3600 + int(match.group("m")) * 60 + float(match.group("s"))
        try:
            seconds = float(text)
        except ValueError:
            return None
        return seconds if seconds >= 0 else None

    return None


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if confidence != confidence:  # NaN
        return 0.0
    return min(1.0, max(0.0, confidence))


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"true", "yes", "1"}
    return bool(value)


def _text_field(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def normalize_answer(data: Any, allowed_themes: Sequence[str]) -> ExtractedAnswer:
    """
    Validate and normalize raw model output.

    - Output without a non-empty `quote`, `summary` and `theme` is replaced by
      the fallback answer.
    - A theme outside the allowed vocabulary becomes `Other`.
    - Confidence is clamped to [0, 1], and capped at 0.5 if the quote does not
      support the summary.

    Args:
        data:
            Parsed JSON value from the model.
        allowed_themes:
            Allowed themes for the guide item's category.

    Returns:
        A normalized answer.
    """

    if not isinstance(data, dict):
        return fallback_answer()

    quote = _text_field(data, "quote")
    summary = _text_field(data, "summary")
    theme = _text_field(data, "theme")
    if not quote or not summary or not theme:
        return fallback_answer()

    if theme not in allowed_themes and theme != OTHER_THEME:
        theme = OTHER_THEME

    supported = _coerce_bool(data.get("supported_by_quote"))
    confidence = _coerce_confidence(data.get("confidence"))
    if not supported:
        confidence = min(confidence, UNSUPPORTED_CONFIDENCE_CAP)

    speaker = data.get("speaker")

    return ExtractedAnswer(
        quote=quote,
        summary=summary,
        theme=theme,
        supported_by_quote=supported,
        confidence=confidence,
        speaker_label=speaker.strip() if isinstance(speaker, str) and speaker.strip() else None,
        time_start=parse_time(data.get("time_start", data.get("timeStart"))),
        time_end=parse_time(data.get("time_end", data.get("timeEnd"))),
    )


class AnswerExtractor:
    """
    Extract structured answers from retrieved windows.

    Args:
        chat:
            Chat completion capability.
        retry_caller:
            Retry/backoff wrapper for the chat calls.
        vocabulary:
            Controlled theme vocabulary.
        temperature:
            Sampling temperature.
    """

    def __init__(
        self,
        chat: ChatClient,
        retry_caller: RetryCaller,
        vocabulary: ThemeVocabulary | None = None,
        *,
        temperature: float = 0.1,
    ) -> None:
        self.chat = chat
        self.retry_caller = retry_caller
        self.vocabulary = vocabulary or ThemeVocabulary()
        self.temperature = temperature

    async def extract_answer(
        self,
        guide_item: GuideItem,
        hit: RetrievalHit,
        respondent_label: str,
    ) -> ExtractionOutcome:
        """
        Run one extraction call for a window.

        Raises:
            RetryExhaustedError:
                If the call kept failing.
            FatalCallError:
                If the call failed with a non-retryable error.
        """

        allowed_themes = self.vocabulary.allowed_themes(guide_item.theme)
        system_prompt = build_system_prompt(guide_item, allowed_themes)
        user_content = build_user_payload(guide_item, hit.window.text, respondent_label)

        outcome = await self.retry_caller.call(
            lambda: self.chat.complete_structured(
                system_prompt,
                user_content,
                temperature=self.temperature,
                json_mode=True,
            )
        )

        completion: StructuredCompletion = outcome.value
        answer = normalize_answer(completion.data, allowed_themes)
        if answer.is_fallback:
            logger.debug("Unusable model output for window %s: %.200s", hit.window.id, completion.raw)

        return ExtractionOutcome(
            answer=answer,
            hit=hit,
            tokens_used=completion.usage.total_tokens,
            retries=outcome.retries,
            rate_limit_hits=outcome.rate_limit_hits,
        )
