"""Abstract base class for all transports.

A transport sends a ChatRequest and returns either a fully decoded
ChatResponse or a StreamedBody of raw bytes. The session controller
branches on that shape; it never talks to the network directly.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Awaitable, Callable

from streamchat.schemas.request import ChatRequest, HttpOptions
from streamchat.schemas.wire import ChatResponse


class StreamedBody:
    """A response body that is still arriving.

    Wraps an async iterator of raw bytes. ``aclose()`` releases the
    underlying connection and is safe to call more than once.
    """

    def __init__(
        self,
        chunks: AsyncIterator[bytes],
        *,
        status_code: int = 200,
        on_close: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._chunks = chunks
        self.status_code = status_code
        self._on_close = on_close
        self._closed = False

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self._chunks

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._on_close is not None:
            await self._on_close()


TransportResponse = StreamedBody | ChatResponse


class Transport(ABC):
    """Abstract interface for sending chat requests."""

    @abstractmethod
    async def send(self, request: ChatRequest, http_options: HttpOptions) -> TransportResponse:
        """Send a request and return the response body.

        Args:
            request: The question, interaction model and overrides.
            http_options: Endpoint and whether to stream.

        Returns:
            A StreamedBody when ``http_options.stream`` is set and the
            backend streams, otherwise a decoded ChatResponse.

        Raises:
            TransportError: On network failure or an HTTP error status.
            DecodeError: If a full response body cannot be decoded.
        """

    def abort(self) -> None:
        """Stop the in-flight network operation, if any.

        Fire-and-forget: returns immediately. The default does nothing,
        which suits transports whose bodies are already materialized.
        """

    async def aclose(self) -> None:
        """Release resources held by the transport."""
