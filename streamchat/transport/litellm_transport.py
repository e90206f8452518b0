"""Direct-to-model transport via LiteLLM.

Sends the question straight to a chat model instead of the retrieval
backend. LiteLLM already speaks the OpenAI response shape, so full
responses are validated as ChatResponse and streamed chunks are
re-encoded as newline-delimited JSON for the stream accumulator.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import AsyncIterator
from typing import Any

import litellm
from pydantic import ValidationError

# Suppress LiteLLM's "Give Feedback / Get Help" and "Provider List" banners
litellm.suppress_debug_info = True

from streamchat.errors import DecodeError, TransportError
from streamchat.schemas.config import ModelConfig
from streamchat.schemas.request import ChatRequest, HttpOptions
from streamchat.schemas.wire import ChatResponse
from streamchat.transport.base import StreamedBody, Transport, TransportResponse

logger = logging.getLogger(__name__)

# Max retries for transient failures
_MAX_RETRIES = 3
_BASE_BACKOFF = 1.0  # seconds

_RETRYABLE_ERRORS = (
    litellm.RateLimitError,
    litellm.ServiceUnavailableError,
    litellm.InternalServerError,
    litellm.APIConnectionError,
)


def _short_error_reason(error: Exception) -> str:
    """Extract a short, log-friendly reason from a LiteLLM error."""
    error_str = str(error).lower()
    if "rate" in error_str or "429" in error_str:
        return "rate limit"
    if "timeout" in error_str or isinstance(error, TimeoutError):
        return "timeout"
    if "503" in error_str or "unavailable" in error_str:
        return "service unavailable"
    if "500" in error_str or "internal" in error_str:
        return "server error"
    if "connection" in error_str:
        return "connection error"
    return str(error)[:80]


class LiteLLMTransport(Transport):
    """Transport that routes questions to any LiteLLM-supported model.

    ``http_options.url`` is ignored; ``http_options.stream`` selects
    streaming. The system prompt and sampling come from ModelConfig,
    with the request's temperature override taking precedence.
    """

    def __init__(self, config: ModelConfig) -> None:
        self._config = config
        self._api_key = os.environ.get(config.api_key_env, "") if config.api_key_env else ""
        self._stream: Any = None
        self._pending_close: set[asyncio.Future[Any]] = set()

    @property
    def model_id(self) -> str:
        return self._config.model

    async def send(self, request: ChatRequest, http_options: HttpOptions) -> TransportResponse:
        kwargs = self._build_completion_kwargs(request)
        if http_options.stream:
            kwargs["stream"] = True

        response = await self._call_with_retry(kwargs)

        if http_options.stream:
            self._stream = response
            return StreamedBody(_encode_chunks(response))

        try:
            return ChatResponse.model_validate(response.model_dump())
        except ValidationError as e:
            raise DecodeError(f"Unexpected response from {self._config.model}: {e}") from e

    def abort(self) -> None:
        stream = self._stream
        self._stream = None
        # CustomStreamWrapper exposes the provider's raw stream when it has one
        completion_stream = getattr(stream, "completion_stream", None)
        close = getattr(completion_stream, "aclose", None)
        if close is not None:
            task = asyncio.ensure_future(close())
            self._pending_close.add(task)
            task.add_done_callback(self._pending_close.discard)

    def _build_completion_kwargs(self, request: ChatRequest) -> dict:
        """Build the kwargs dict for litellm.acompletion."""
        messages = [{"role": "system", "content": self._config.system_prompt}, *request.messages()]
        kwargs: dict = {
            "model": self._config.model,
            "messages": messages,
            "timeout": float(self._config.timeout),
        }

        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._config.api_base:
            kwargs["api_base"] = self._config.api_base

        temperature = request.overrides.temperature
        if temperature is None:
            temperature = self._config.temperature
        if temperature is not None:
            kwargs["temperature"] = temperature

        return kwargs

    async def _call_with_retry(self, kwargs: dict) -> Any:
        """Call litellm.acompletion with exponential backoff retry.

        Retries on transient errors (rate limits, server errors, timeouts).
        Auth and bad-request errors are raised immediately.

        Raises:
            TransportError: On a non-retryable error or once all retries
                are exhausted. Carries the provider's status code.
        """
        last_error: Exception | None = None

        for attempt in range(_MAX_RETRIES):
            try:
                return await litellm.acompletion(**kwargs)
            except litellm.AuthenticationError as e:
                raise TransportError(
                    f"Authentication failed for {self._config.model}. "
                    f"Check that {self._config.api_key_env} is set correctly.",
                    status_code=401,
                ) from e
            except litellm.BadRequestError as e:
                raise TransportError(
                    f"Bad request to {self._config.model}: {e}", status_code=400
                ) from e
            except (TimeoutError, litellm.Timeout) as e:
                last_error = e
            except _RETRYABLE_ERRORS as e:
                last_error = e

            if attempt < _MAX_RETRIES - 1:
                backoff = _BASE_BACKOFF * (2**attempt)
                logger.warning(
                    "Retry %d/%d for %s (%s, backoff: %.1fs)",
                    attempt + 1,
                    _MAX_RETRIES,
                    self._config.model,
                    _short_error_reason(last_error),
                    backoff,
                )
                await asyncio.sleep(backoff)

        raise TransportError(
            f"Model call to {self._config.model} failed after {_MAX_RETRIES} "
            f"retries: {last_error}",
            status_code=getattr(last_error, "status_code", None),
        ) from last_error


async def _encode_chunks(response: Any) -> AsyncIterator[bytes]:
    """Re-encode LiteLLM stream chunks as newline-delimited JSON."""
    try:
        async for chunk in response:
            yield chunk.model_dump_json(exclude_none=True).encode() + b"\n"
    except _RETRYABLE_ERRORS as e:
        raise TransportError(f"Stream interrupted: {e}") from e
