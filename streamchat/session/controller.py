"""Chat session controller.

Runs one question/answer exchange at a time against a single chat
thread: sanitizes and validates the question, dispatches it through the
transport, then either accumulates a streamed answer into an open turn
or post-processes a full answer in one shot. Every failure is recorded
on the thread and the session always returns to IDLE.

State machine::

    IDLE -> SUBMITTING -> STREAMING --------------> IDLE
                       -> AWAITING_FULL_RESPONSE -> IDLE
                          STREAMING -> CANCELLING -> IDLE
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime
from enum import StrEnum
from typing import Any

from streamchat.errors import (
    DecodeError,
    QuestionValidationError,
    StreamChatError,
    TransportError,
)
from streamchat.events import ChatEventEmitter, EventListener, EventType
from streamchat.parser.accumulator import StreamAccumulator
from streamchat.parser.annotations import extract
from streamchat.schemas.chat import ChatError, ChatThread, ChatTurn, TextEntry
from streamchat.schemas.config import ChatConfig
from streamchat.schemas.request import (
    ChatRequest,
    HttpOptions,
    InteractionModel,
    RequestOverrides,
)
from streamchat.schemas.wire import ChatResponse
from streamchat.transport.base import StreamedBody, Transport
from streamchat.utils import sanitize, utc_now

logger = logging.getLogger(__name__)

Sanitizer = Callable[[str], str]
Clock = Callable[[], datetime]


class SessionState(StrEnum):
    """Lifecycle state of the chat session."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    STREAMING = "streaming"
    AWAITING_FULL_RESPONSE = "awaiting_full_response"
    CANCELLING = "cancelling"


class ChatSessionController:
    """Coordinates exchanges between the user, the transport and the thread.

    Observers subscribe through ``add_listener`` (or a shared emitter)
    and read the flags exposed as properties. Only one exchange can be
    in flight; submissions made meanwhile are rejected.

    Each exchange is tagged with a generation number. ``cancel()`` and
    ``reset()`` bump it, so anything a superseded exchange reports
    afterwards (progress, failures, completion) is dropped.
    """

    def __init__(
        self,
        transport: Transport,
        config: ChatConfig | None = None,
        *,
        sanitizer: Sanitizer = sanitize,
        clock: Clock = utc_now,
        emitter: ChatEventEmitter | None = None,
        interaction_model: InteractionModel | None = None,
        use_stream: bool | None = None,
        api_url: str | None = None,
        overrides: RequestOverrides | None = None,
    ) -> None:
        self._transport = transport
        self._config = config or ChatConfig()
        self._sanitizer = sanitizer
        self._clock = clock
        self._emitter = emitter or ChatEventEmitter()

        self._interaction_model: InteractionModel = (
            interaction_model or self._config.interaction_model
        )
        http_updates: dict[str, Any] = {}
        if use_stream is not None:
            http_updates["stream"] = use_stream
        if api_url:
            http_updates["url"] = api_url
        self._http_options: HttpOptions = self._config.http.model_copy(update=http_updates)
        self._overrides = self._config.overrides.merged_with(overrides)

        self.thread = ChatThread()
        self.current_question = ""
        self.thoughts = ""
        self.data_points: list[str] = []

        self._state = SessionState.IDLE
        self._generation = 0
        self._cancel_event: asyncio.Event | None = None
        self._is_awaiting_response = False
        self._is_processing_response = False
        self._has_api_error = False
        self._can_show_thought_process = False

    # ── Observable state ──────────────────────────────────────

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def config(self) -> ChatConfig:
        return self._config

    @property
    def interaction_model(self) -> InteractionModel:
        return self._interaction_model

    @property
    def http_options(self) -> HttpOptions:
        return self._http_options

    @property
    def emitter(self) -> ChatEventEmitter:
        return self._emitter

    @property
    def is_awaiting_response(self) -> bool:
        """Request sent, no response body yet (drives the loading indicator)."""
        return self._is_awaiting_response

    @property
    def is_processing_response(self) -> bool:
        """A streamed answer is arriving (drives the cancel button)."""
        return self._is_processing_response

    @property
    def has_api_error(self) -> bool:
        """The last exchange failed."""
        return self._has_api_error

    @property
    def can_show_thought_process(self) -> bool:
        return self._can_show_thought_process

    @property
    def is_disabled(self) -> bool:
        """Input and submit are disabled while an exchange is in flight."""
        return self._state is not SessionState.IDLE

    @property
    def is_chat_started(self) -> bool:
        return len(self.thread) > 0

    def add_listener(self, listener: EventListener) -> None:
        self._emitter.add_listener(listener)

    def remove_listener(self, listener: EventListener) -> None:
        self._emitter.remove_listener(listener)

    # ── Operations ────────────────────────────────────────────

    async def submit(self, question: str) -> bool:
        """Run one exchange for ``question``.

        Returns once the exchange has finished, failed or been
        cancelled. Failures are recorded on the thread, never raised.

        Args:
            question: Raw user input. Sanitized before use.

        Returns:
            False if the submission was rejected (empty question, or an
            exchange already in flight), True otherwise.
        """
        if self._state is not SessionState.IDLE:
            logger.info("Rejected submission while %s", self._state)
            return False

        try:
            question = self._prepare_question(question)
        except QuestionValidationError as e:
            logger.debug("Rejected submission: %s", e)
            return False

        self._generation += 1
        generation = self._generation
        cancel_event = asyncio.Event()
        self._cancel_event = cancel_event

        self._state = SessionState.SUBMITTING
        self._has_api_error = False
        self._is_awaiting_response = True
        self.current_question = question
        logger.info("Submitting %s question (stream=%s)", self._interaction_model, self._http_options.stream)
        await self._emitter.emit(
            EventType.EXCHANGE_STARTED,
            question=question,
            interaction_model=self._interaction_model,
        )

        history: list[dict[str, str]] = []
        if self._interaction_model == "chat":
            history = self.thread.to_history()
            user_turn = self.thread.append(
                ChatTurn(
                    text=[TextEntry(value=question)],
                    is_user_message=True,
                    timestamp=self._clock(),
                )
            )
            await self._emitter.emit(EventType.TURN_APPENDED, turn=user_turn)

        request = ChatRequest(
            question=question,
            type=self._interaction_model,
            overrides=self._overrides,
            history=history,
        )

        try:
            response = await self._transport.send(request, self._http_options)
            if generation != self._generation:
                logger.debug("Dropping response for a superseded exchange")
                if isinstance(response, StreamedBody):
                    await response.aclose()
                return True

            self._is_awaiting_response = False
            if isinstance(response, StreamedBody):
                await self._consume_stream(response, generation, cancel_event)
            elif isinstance(response, ChatResponse):
                await self._apply_full_response(response)
            else:
                raise DecodeError(f"Unsupported response type: {type(response).__name__}")
        except StreamChatError as e:
            logger.warning("Exchange failed: %s", e)
            await self._record_failure(e, generation)
        except Exception as e:
            logger.exception("Unexpected error during exchange")
            await self._record_failure(e, generation)
        finally:
            if generation == self._generation:
                self._return_to_idle()

        return True

    def cancel(self) -> bool:
        """Stop the streamed answer currently arriving.

        Does not wait for the accumulator to unwind. The partial answer
        stays in the thread.

        Returns:
            True if a stream was cancelled, False when not streaming.
        """
        if self._state is not SessionState.STREAMING:
            return False

        self._state = SessionState.CANCELLING
        self._generation += 1
        if self._cancel_event is not None:
            self._cancel_event.set()
        self._transport.abort()

        turn = self.thread.open_turn
        if turn is not None:
            turn.close()

        self._return_to_idle()
        logger.info("Streaming cancelled")
        self._emitter.emit_nowait(EventType.EXCHANGE_CANCELLED, turn=turn)
        return True

    def reset(self) -> None:
        """Clear the thread and return to a fresh IDLE session.

        Any exchange still in flight is cancelled and its late results
        are ignored.
        """
        if self._state is SessionState.STREAMING:
            if self._cancel_event is not None:
                self._cancel_event.set()
            self._transport.abort()

        self._generation += 1
        self.thread.reset()
        self.current_question = ""
        self.thoughts = ""
        self.data_points = []
        self._has_api_error = False
        self._can_show_thought_process = False
        self._return_to_idle()
        self._emitter.emit_nowait(EventType.THREAD_RESET)

    # ── Exchange branches ─────────────────────────────────────

    async def _consume_stream(
        self,
        body: StreamedBody,
        generation: int,
        cancel_event: asyncio.Event,
    ) -> None:
        self._state = SessionState.STREAMING
        self._is_processing_response = True

        turn = self.thread.append(
            ChatTurn(text=[TextEntry()], is_user_message=False, timestamp=self._clock()),
            keep_open=True,
        )
        await self._emitter.emit(EventType.TURN_APPENDED, turn=turn)

        async def on_progress(updated: ChatTurn) -> None:
            if generation != self._generation:
                return
            await self._emitter.emit(EventType.PROGRESS, turn=updated)

        accumulator = StreamAccumulator(turn)
        try:
            result = await accumulator.run(body, on_progress, cancel_event)
        finally:
            await body.aclose()

        if result.cancelled or generation != self._generation:
            return

        self._set_thought_process(result.thoughts, result.data_points)
        turn.close()
        await self._emitter.emit(
            EventType.EXCHANGE_COMPLETED,
            turn=turn,
            thoughts=self.thoughts,
            data_points=self.data_points,
        )

    async def _apply_full_response(self, response: ChatResponse) -> None:
        self._state = SessionState.AWAITING_FULL_RESPONSE

        if response.error:
            raise TransportError(response.error)
        message = response.message
        if message is None:
            raise DecodeError("Response contained no choices")

        extraction = extract(message.content or "")
        context = message.context
        self._set_thought_process(
            context.thoughts if context else None,
            context.data_points if context else None,
        )

        turn = self.thread.append(
            ChatTurn(
                text=[
                    TextEntry(
                        value=extraction.cleaned_text,
                        following_steps=extraction.following_steps,
                    )
                ],
                citations=extraction.citations,
                followup_questions=extraction.followup_questions,
                is_user_message=False,
                timestamp=self._clock(),
            )
        )
        await self._emitter.emit(EventType.TURN_APPENDED, turn=turn)
        await self._emitter.emit(
            EventType.EXCHANGE_COMPLETED,
            turn=turn,
            thoughts=self.thoughts,
            data_points=self.data_points,
        )

    # ── Helpers ───────────────────────────────────────────────

    def _prepare_question(self, question: str) -> str:
        cleaned = self._sanitizer(question or "").strip()
        if not cleaned:
            raise QuestionValidationError("Question is empty")
        return cleaned

    def _set_thought_process(self, thoughts: str | None, data_points: list[str] | None) -> None:
        self.thoughts = thoughts or ""
        self.data_points = list(data_points or [])
        self._can_show_thought_process = True

    def _error_message(self, error: Exception) -> str:
        labels = self._config.labels
        if isinstance(error, TransportError) and error.status_code == 400:
            return labels.invalid_request_error
        return labels.api_error_message

    async def _record_failure(self, error: Exception, generation: int) -> None:
        """Attach the failure to the open answer turn, or append an error turn."""
        if generation != self._generation:
            logger.debug("Ignoring failure from a superseded exchange: %s", error)
            return

        message = self._error_message(error)
        turn = self.thread.open_turn
        if turn is not None and not turn.is_user_message:
            turn.record_error(message)
            turn.close()
        else:
            turn = self.thread.append(
                ChatTurn(
                    error=ChatError(message=message),
                    is_user_message=False,
                    timestamp=self._clock(),
                )
            )

        self._has_api_error = True
        await self._emitter.emit(
            EventType.EXCHANGE_FAILED,
            turn=turn,
            error=message,
            status_code=getattr(error, "status_code", None),
        )

    def _return_to_idle(self) -> None:
        self._state = SessionState.IDLE
        self._is_awaiting_response = False
        self._is_processing_response = False
