# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

from __future__ import annotations

"""
Retry with exponential backoff for external model calls.

Calls report failures as values (`Err`) instead of raising, so that the retry
decision can depend on the error kind:

- `RETRYABLE`: transient failure, retried with jittered exponential backoff.
- `RATE_LIMITED`: like `RETRYABLE`, but counted separately. A server-provided
  `retry_after` hint is waited in addition to the backoff delay.
- `FATAL`: not retried (e.g. invalid credentials).

The actual retry loop is driven by tenacity.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Generic, TypeVar, Union

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_random_exponential
from tenacity.wait import wait_base

T = TypeVar("T")

logger = logging.getLogger(__name__)


class ErrorKind(enum.Enum):
    RETRYABLE = "retryable"
    RATE_LIMITED = "rate_limited"
    FATAL = "fatal"


@dataclass(frozen=True)
class CallError:
    """
    Failure of a single external call.

    Attributes:
        kind:
            Error classification that drives the retry decision.
        message:
            Human-readable description.
        retry_after:
            Optional server hint (seconds) before the next attempt.
        status_code:
            Optional HTTP status code.
    """

    kind: ErrorKind
    message: str
    retry_after: float | None = None
    status_code: int | None = None


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Err:
    error: CallError


Result = Union[Ok[T], Err]


@dataclass(frozen=True)
class RetryPolicy:
    """
    Backoff parameters.

    The delay before retry n (starting at 1) is drawn uniformly from
    `[0, min(max_delay, initial_delay * multiplier ** (n - 1))]`.
    """

    attempts: int = 6
    initial_delay: float = 0.4
    multiplier: float = 2.0
    max_delay: float = 8.0


@dataclass(frozen=True)
class CallOutcome(Generic[T]):
    """Successful call result with its retry counters."""

    value: T
    retries: int = 0
    rate_limit_hits: int = 0


class RetryExhaustedError(RuntimeError):
    """Raised when a call still fails after the last permitted attempt."""

    def __init__(self, error: CallError, *, attempts: int, retries: int, rate_limit_hits: int) -> None:
        super().__init__(f"Call failed after {attempts} attempt(s): {error.message}")
        self.error = error
        self.attempts = attempts
        self.retries = retries
        self.rate_limit_hits = rate_limit_hits


class FatalCallError(RuntimeError):
    """Raised for errors that must not be retried."""

    def __init__(self, error: CallError) -> None:
        super().__init__(error.message)
        self.error = error


def _should_retry(result: Any) -> bool:
    return isinstance(result, Err) and result.error.kind is not ErrorKind.FATAL


class wait_retry_after(wait_base):
    """Wait for the `retry_after` hint of a rate-limited result, if any."""

    def __call__(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        if outcome is None or outcome.failed:
            return 0.0

        result = outcome.result()
        if isinstance(result, Err) and result.error.kind is ErrorKind.RATE_LIMITED:
            return max(0.0, result.error.retry_after or 0.0)
        return 0.0


def _log_before_sleep(retry_state: RetryCallState) -> None:
    outcome = retry_state.outcome
    result = outcome.result() if outcome is not None and not outcome.failed else None
    message = result.error.message if isinstance(result, Err) else "unknown error"
    delay = retry_state.next_action.sleep if retry_state.next_action is not None else 0.0
    logger.warning(
        "Attempt %d failed (%s), retrying in %.2fs",
        retry_state.attempt_number,
        message,
        delay,
    )


class RetryCaller:
    """
    Run calls returning `Result` values with retry and backoff.

    Args:
        policy:
            Backoff parameters.
        sleep:
            Async sleep function (injectable for tests).
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        *,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def call(self, fn: Callable[[], Awaitable[Ok[T] | Err]]) -> CallOutcome[T]:
        """
        Call `fn` until it succeeds, fails fatally, or runs out of attempts.

        Exceptions raised by `fn` are treated as retryable errors.

        Args:
            fn:
                Zero-argument async callable returning `Ok` or `Err`.

        Returns:
            The successful value with the number of retries and rate-limit
            hits it took.

        Raises:
            FatalCallError:
                If `fn` returned a fatal error.
            RetryExhaustedError:
                If the last permitted attempt failed.
        """

        attempts = 0
        rate_limit_hits = 0

        async def _attempt() -> Ok[T] | Err:
            nonlocal attempts, rate_limit_hits
            attempts += 1

            try:
                result = await fn()
            except Exception as exc:  # noqa: BLE001
                result = Err(CallError(ErrorKind.RETRYABLE, f"{type(exc).__name__}: {exc}"))

            if isinstance(result, Err) and result.error.kind is ErrorKind.RATE_LIMITED:
                rate_limit_hits += 1
            return result

        policy = self.policy
        retrying = AsyncRetrying(
            stop=stop_after_attempt(policy.attempts),
            retry=retry_if_result(_should_retry),
            wait=wait_retry_after()
            + wait_random_exponential(
                multiplier=policy.initial_delay,
                max=policy.max_delay,
                exp_base=policy.multiplier,
            ),
            sleep=self._sleep,
            before_sleep=_log_before_sleep,
            retry_error_callback=lambda state: state.outcome.result() if state.outcome else None,
        )

        result = await retrying(_attempt)

        if isinstance(result, Ok):
            return CallOutcome(value=result.value, retries=attempts - 1, rate_limit_hits=rate_limit_hits)

        if not isinstance(result, Err):
            raise RuntimeError(f"Unexpected call result: {result!r}")

        if result.error.kind is ErrorKind.FATAL:
            raise FatalCallError(result.error)

        raise RetryExhaustedError(
            result.error,
            attempts=attempts,
            retries=attempts - 1,
            rate_limit_hits=rate_limit_hits,
        )
