# Interview Matrix
# © 2026 Dennis Schulmeister-Zimolong <dennis@wpvs.de>
#
# This source code is licensed under the BSD 3-Clause License found in the
# LICENSE file in the root directory of this source tree.

"""
Low-level LLM API wrapper.

This module encapsulates the direct OpenAI SDK calls behind two small
capability interfaces:

- `ChatClient`: structured (JSON) chat completions. Failures are returned as
  `Err` values classified for the retry caller instead of being raised.
- `EmbeddingClient`: text embeddings. Failures are logged and yield empty
  vectors.

Environment variables:
    - `LLM_OPENAI_API_KEY`: API key for the OpenAI-compatible endpoint
    - `LLM_OPENAI_MODEL`: Chat model identifier
    - `LLM_OPENAI_EMBED_MODEL`: Embedding model (default: text-embedding-3-small)
    - `LLM_OPENAI_BASE_URL`: Optional explicit base URL (preferred)
    - `LLM_OPENAI_HOST`: Hostname (legacy)
    - `LLM_OPENAI_PATH`: Optional path (legacy)
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Protocol, TypeAlias, cast

from openai import AsyncOpenAI, AuthenticationError, PermissionDeniedError, RateLimitError
from openai.types.chat import ChatCompletionMessageParam

from interview_matrix.retry import CallError, Err, ErrorKind, Ok, Result

JsonValue: TypeAlias = (
    dict[str, "JsonValue"]
    | list["JsonValue"]
    | str
    | int
    | float
    | bool
    | None
)

DEFAULT_EMBED_MODEL = "text-embedding-3-small"
DEFAULT_EMBED_DIMENSIONS = 1536

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass(frozen=True)
class StructuredCompletion:
    """
    Result of a structured chat completion.

    Attributes:
        data:
            Parsed JSON value, or None if the content could not be parsed.
        usage:
            Token usage reported by the API.
        raw:
            Raw response content.
    """

    data: JsonValue
    usage: TokenUsage = field(default_factory=TokenUsage)
    raw: str = ""


class ChatClient(Protocol):
    """Chat completion capability returning JSON objects."""

    async def complete_structured(
        self,
        system_prompt: str,
        user_content: str,
        *,
        temperature: float = 0.1,
        json_mode: bool = True,
    ) -> Result[StructuredCompletion]:
        ...


class EmbeddingClient(Protocol):
    """Embedding capability. Failures yield empty vectors."""

    async def embed(self, text: str) -> list[float]:
        ...

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        ...


def _require_env(name: str) -> str:
    """
    Get a required environment variable.

    Args:
        name:
            Environment variable name.

    Returns:
        The environment variable value.

    Raises:
        RuntimeError:
            If the variable is missing or empty.
    """

    value = os.environ.get(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _openai_base_url() -> str:
    """
    Determine the base URL for the OpenAI-compatible endpoint.

    Returns:
        Base URL ending with `/v1`.
    """

    base_url = os.environ.get("LLM_OPENAI_BASE_URL")
    if base_url:
        return base_url.rstrip("/")

    host = _require_env("LLM_OPENAI_HOST")
    path = os.environ.get("LLM_OPENAI_PATH", "")

    # LLM_OPENAI_PATH historically points to the full endpoint (e.g. /v1/chat/completions).
    # The OpenAI SDK expects a base URL that ends with /v1.
    if "/v1" in path:
        prefix = path.split("/v1", 1)[0] + "/v1"
    else:
        prefix = "/v1"

    return f"https://{host}{prefix}"


def create_openai_client() -> AsyncOpenAI:
    """
    Create the shared SDK client from the environment.

    The SDK's built-in retries are disabled because retries are handled by
    `interview_matrix.retry`.

    Raises:
        RuntimeError:
            If required environment variables are missing.
    """

    return AsyncOpenAI(
        api_key=_require_env("LLM_OPENAI_API_KEY"),
        base_url=_openai_base_url(),
        max_retries=0,
    )


def parse_json_loose(content: str) -> JsonValue:
    """
    Parse JSON content from the model response.

    Strict parsing is tried first. If that fails, the largest balanced
    `{...}` span is parsed (models sometimes wrap JSON in prose or code
    fences).

    Args:
        content:
            Raw string content.

    Returns:
        Parsed JSON value. Returns None for empty or unparseable responses.
    """

    if not content or not content.strip():
        return None

    try:
        return cast(JsonValue, json.loads(content))
    except json.JSONDecodeError:
        pass

    best: str | None = None
    depth = 0
    start = -1
    in_string = False
    escaped = False

    for idx, ch in enumerate(content):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"' and depth > 0:
            in_string = True
        elif ch == "{":
            if depth == 0:
                start = idx
            depth += 1
        elif ch == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                span = content[start : idx + 1]
                if best is None or len(span) > len(best):
                    best = span

    if best is None:
        return None

    try:
        return cast(JsonValue, json.loads(best))
    except json.JSONDecodeError:
        return None


def _ensure_json_instruction(messages: list[ChatCompletionMessageParam]) -> list[ChatCompletionMessageParam]:
    """Ensure at least one message contains the word 'json'.

    Some OpenAI-compatible endpoints require that the prompt contains the word
    'json' when using response_format of type json_object/json_schema.
    """

    for m in messages:
        content = m.get("content")
        if isinstance(content, str) and "json" in content.lower():
            return messages

    # Prefer appending to an existing system message to avoid changing turn order.
    if messages:
        first = messages[0]
        if first.get("role") == "system" and isinstance(first.get("content"), str):
            patched = list(messages)
            patched[0] = cast(
                ChatCompletionMessageParam,
                {**first, "content": (first.get("content") or "") + " Respond with valid JSON."},
            )
            return patched

    return [
        {"role": "system", "content": "Respond with valid JSON."},
        *messages,
    ]


def _retry_after_seconds(headers: Any) -> float | None:
    """Read the retry hint from `retry-after-ms` or `retry-after` headers."""

    if headers is None:
        return None

    value = headers.get("retry-after-ms")
    if value:
        try:
            return float(value) / 1000.0
        except ValueError:
            pass

    value = headers.get("retry-after")
    if value:
        try:
            return float(value)
        except ValueError:
            return None

    return None


def classify_error(error: Exception) -> CallError:
    """
    Map an SDK exception to a `CallError`.

    HTTP 429 is rate limiting, authentication/permission errors are fatal, and
    everything else (timeouts, connection errors, 5xx, ...) is retryable.
    """

    status_code = getattr(error, "status_code", None)

    if isinstance(error, RateLimitError):
        response = getattr(error, "response", None)
        return CallError(
            ErrorKind.RATE_LIMITED,
            f"Rate limited by the OpenAI API: {error}",
            retry_after=_retry_after_seconds(getattr(response, "headers", None)),
            status_code=status_code,
        )

    if isinstance(error, (AuthenticationError, PermissionDeniedError)):
        return CallError(ErrorKind.FATAL, f"OpenAI API rejected the credentials: {error}", status_code=status_code)

    return CallError(ErrorKind.RETRYABLE, f"Error calling the OpenAI API: {error}", status_code=status_code)


class OpenAIChatClient:
    """
    `ChatClient` implementation on top of `AsyncOpenAI`.

    Args:
        client:
            Shared SDK client.
        model:
            Chat model identifier.
        max_tokens:
            Upper bound for completion tokens.
    """

    def __init__(self, client: AsyncOpenAI, model: str, *, max_tokens: int = 1000) -> None:
        self.client = client
        self.model = model
        self.max_tokens = max_tokens

    async def complete_structured(
        self,
        system_prompt: str,
        user_content: str,
        *,
        temperature: float = 0.1,
        json_mode: bool = True,
    ) -> Result[StructuredCompletion]:
        """
        Run a chat completion call and parse the content as JSON.

        Returns:
            `Ok(StructuredCompletion)` on a successful API call (even if the
            content is not valid JSON; `data` is None then), or `Err` with a
            classified error.
        """

        messages: list[ChatCompletionMessageParam] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_content},
        ]

        completion_kwargs: dict[str, Any] = {}
        if json_mode:
            messages = _ensure_json_instruction(messages)
            completion_kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=self.max_tokens,
                **completion_kwargs,
            )
        except Exception as error:  # noqa: BLE001
            return Err(classify_error(error))

        content = (response.choices[0].message.content or "") if response.choices else ""

        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens or 0,
                completion_tokens=response.usage.completion_tokens or 0,
                total_tokens=response.usage.total_tokens or 0,
            )

        return Ok(StructuredCompletion(data=parse_json_loose(content), usage=usage, raw=content))


class OpenAIEmbeddingClient:
    """
    `EmbeddingClient` implementation on top of `AsyncOpenAI`.

    Errors are logged and mapped to empty vectors (one per input text). Callers
    treat an empty vector as "no similarity".
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str = DEFAULT_EMBED_MODEL,
        *,
        dimensions: int | None = DEFAULT_EMBED_DIMENSIONS,
    ) -> None:
        self.client = client
        self.model = model
        self.dimensions = dimensions

    async def embed(self, text: str) -> list[float]:
        vectors = await self.embed_batch([text])
        return vectors[0] if vectors else []

    async def embed_batch(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        kwargs: dict[str, Any] = {}
        if self.dimensions is not None:
            kwargs["dimensions"] = self.dimensions

        try:
            response = await self.client.embeddings.create(model=self.model, input=texts, **kwargs)
        except Exception as error:  # noqa: BLE001
            logger.warning("Embedding request for %d text(s) failed: %s", len(texts), error)
            return [[] for _ in texts]

        vectors: list[list[float]] = [[] for _ in texts]
        for item in response.data:
            if 0 <= item.index < len(vectors):
                vectors[item.index] = list(item.embedding)
        return vectors


def create_llm_clients() -> tuple[OpenAIChatClient, OpenAIEmbeddingClient]:
    """
    Build chat and embedding clients from the environment.

    Raises:
        RuntimeError:
            If required environment variables are missing.
    """

    client = create_openai_client()
    chat = OpenAIChatClient(client, _require_env("LLM_OPENAI_MODEL"))
    embeddings = OpenAIEmbeddingClient(client, os.environ.get("LLM_OPENAI_EMBED_MODEL") or DEFAULT_EMBED_MODEL)
    return chat, embeddings
