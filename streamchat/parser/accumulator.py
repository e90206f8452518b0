"""Streamed answer accumulation.

Drives the chunk decoder against a live byte stream and mirrors the
growing answer into an open ChatTurn. Every content chunk replaces the
turn's visible text with the cleaned cumulative answer, so observers
never have to diff; annotations are re-extracted from the cumulative
text at the same time, which lets a marker split across chunks resolve
once its closing half arrives.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterable, Callable
from typing import Any

from streamchat.errors import StreamChatError, StreamError
from streamchat.parser import decoder
from streamchat.parser.annotations import extract
from streamchat.schemas.chat import ChatTurn
from streamchat.schemas.streaming import AccumulatorResult, StreamAccumulatorState
from streamchat.schemas.wire import ChatResponseChunk

logger = logging.getLogger(__name__)

# Called with the target turn after each applied chunk; may be async
ProgressCallback = Callable[[ChatTurn], Any]


class StreamAccumulator:
    """Accumulates one streamed answer into an open chat turn.

    One accumulator serves one exchange. Cancellation is cooperative:
    the shared event is checked before acting on each read and each
    decoded chunk. The accumulator only stops consuming the stream;
    closing the underlying connection is the transport's job.
    """

    def __init__(self, turn: ChatTurn) -> None:
        self._turn = turn
        self.state = StreamAccumulatorState()

    @property
    def turn(self) -> ChatTurn:
        return self._turn

    async def run(
        self,
        byte_stream: AsyncIterable[bytes],
        on_progress: ProgressCallback | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> AccumulatorResult:
        """Consume the stream until it ends or cancellation is signaled.

        Args:
            byte_stream: Async iterable of raw body bytes.
            on_progress: Invoked with the turn after every content chunk
                is applied. Async callbacks are awaited before the next
                chunk is processed.
            cancel_event: Set by the owner to stop consumption. The text
                assembled so far is left in the turn.

        Returns:
            AccumulatorResult with the side-channel metadata collected.

        Raises:
            StreamError: If reading fails or a chunk reports an error.
            DecodeError: If the final line of the stream is malformed.
        """
        state = self.state
        if cancel_event is None:
            cancel_event = asyncio.Event()

        iterator = aiter(byte_stream)
        while not state.cancelled:
            try:
                data = await anext(iterator)
            except StopAsyncIteration:
                break
            except StreamChatError:
                if cancel_event.is_set():
                    state.cancelled = True
                    break
                raise
            except Exception as e:
                # Aborting the transport usually surfaces here as a read error
                if cancel_event.is_set():
                    state.cancelled = True
                    break
                raise StreamError(f"Stream read failed: {e}") from e

            if cancel_event.is_set():
                state.cancelled = True
                break

            result = decoder.feed(state.raw_buffer + data, state.malformed_line)
            state.raw_buffer = result.remainder
            state.malformed_line = result.malformed
            await self._apply_all(result.chunks, on_progress, cancel_event)

        if cancel_event.is_set():
            state.cancelled = True
        else:
            tail = decoder.finish(state.raw_buffer, state.malformed_line)
            state.raw_buffer = b""
            state.malformed_line = None
            await self._apply_all(tail, on_progress, cancel_event)

        if state.cancelled:
            logger.info(
                "Stream cancelled after %d chunks (%d chars kept)",
                state.chunk_count, len(state.assembled_text),
            )
        else:
            logger.debug("Stream complete: %d chunks", state.chunk_count)

        return AccumulatorResult(
            text=state.assembled_text,
            thoughts=state.thoughts,
            data_points=state.data_points,
            cancelled=state.cancelled,
            chunk_count=state.chunk_count,
        )

    async def _apply_all(
        self,
        chunks: list[ChatResponseChunk],
        on_progress: ProgressCallback | None,
        cancel_event: asyncio.Event,
    ) -> None:
        for chunk in chunks:
            if cancel_event.is_set():
                self.state.cancelled = True
                return
            if self._apply(chunk) and on_progress is not None:
                result = on_progress(self._turn)
                if asyncio.iscoroutine(result):
                    await result

    def _apply(self, chunk: ChatResponseChunk) -> bool:
        """Merge one chunk into the state and the turn.

        Returns:
            True when the visible turn changed and observers should be
            notified. Metadata-only chunks return False.
        """
        if chunk.error:
            raise StreamError(chunk.error)

        delta = chunk.delta
        if delta is None:
            return False

        state = self.state
        context = delta.context
        if context is not None:
            if context.thoughts is not None:
                state.thoughts = context.thoughts
            if context.data_points is not None:
                state.data_points = list(context.data_points)

        # Role-only and metadata-only chunks carry no text
        if not delta.content:
            return False

        state.assembled_text += delta.content
        state.chunk_count += 1

        extraction = extract(state.assembled_text)
        turn = self._turn
        turn.replace_text(extraction.cleaned_text, extraction.following_steps)
        turn.merge_citations(extraction.citations)
        turn.set_followup_questions(extraction.followup_questions)
        return True
