"""HTTP transport backed by httpx.

Posts the request body to ``<url>/<interaction>`` and returns either the
decoded JSON response or, in streaming mode, the raw body as it
arrives. HTTP error statuses become TransportError with the status code
attached so the controller can pick the right user-facing message.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator

import httpx
from pydantic import ValidationError

from streamchat.errors import DecodeError, TransportError
from streamchat.schemas.request import ChatRequest, HttpOptions
from streamchat.schemas.wire import ChatResponse
from streamchat.transport.base import StreamedBody, Transport, TransportResponse

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 60.0

# Longest error body excerpt kept in exception messages
_ERROR_BODY_LIMIT = 200


class HttpTransport(Transport):
    """Transport for the chat backend's HTTP API.

    A client can be injected (tests pass one built on
    ``httpx.MockTransport``); otherwise one is created lazily and owned
    by this transport.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        timeout: float = _DEFAULT_TIMEOUT,
    ) -> None:
        self._client = client
        self._owns_client = client is None
        self._timeout = timeout
        self._response: httpx.Response | None = None
        self._pending_close: set[asyncio.Task[None]] = set()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def send(self, request: ChatRequest, http_options: HttpOptions) -> TransportResponse:
        client = self._get_client()
        url = http_options.endpoint(request.type)
        headers = {"Content-Type": "application/json", **http_options.headers}
        payload = request.to_payload(stream=http_options.stream)

        logger.debug("POST %s (stream=%s)", url, http_options.stream)
        try:
            http_request = client.build_request(
                http_options.method, url, json=payload, headers=headers
            )
            response = await client.send(http_request, stream=http_options.stream)
        except httpx.HTTPError as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        if response.is_error:
            body = await _read_error_body(response)
            raise TransportError(
                f"{response.status_code} {response.reason_phrase} for {url}: {body}",
                status_code=response.status_code,
            )

        if http_options.stream:
            self._response = response
            return StreamedBody(
                _iter_body(response),
                status_code=response.status_code,
                on_close=response.aclose,
            )

        return _decode_full_response(response)

    def abort(self) -> None:
        """Close the streaming response without waiting for it."""
        response = self._response
        self._response = None
        if response is None or response.is_closed:
            return
        task = asyncio.ensure_future(response.aclose())
        self._pending_close.add(task)
        task.add_done_callback(self._pending_close.discard)

    async def aclose(self) -> None:
        if self._response is not None:
            await self._response.aclose()
            self._response = None
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


async def _iter_body(response: httpx.Response) -> AsyncIterator[bytes]:
    try:
        async for data in response.aiter_bytes():
            yield data
    except (httpx.HTTPError, httpx.StreamError) as e:
        raise TransportError(f"Stream interrupted: {e}") from e


async def _read_error_body(response: httpx.Response) -> str:
    try:
        await response.aread()
        return response.text[:_ERROR_BODY_LIMIT]
    except httpx.HTTPError:
        return "(could not read response body)"
    finally:
        await response.aclose()


def _decode_full_response(response: httpx.Response) -> ChatResponse:
    try:
        data = response.json()
    except ValueError as e:
        raise DecodeError(f"Response body is not valid JSON: {e}") from e
    try:
        return ChatResponse.model_validate(data)
    except ValidationError as e:
        raise DecodeError(f"Response does not match the chat schema: {e}") from e
