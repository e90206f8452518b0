"""Chat session event emitter.

The session controller reports every observable change as a ChatEvent:
turns appended, progress on the open turn, completion, cancellation,
failure and resets. A renderer subscribes instead of polling state.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class EventType(StrEnum):
    """Types of events emitted by the session controller."""

    EXCHANGE_STARTED = "exchange_started"
    TURN_APPENDED = "turn_appended"
    PROGRESS = "progress"
    EXCHANGE_COMPLETED = "exchange_completed"
    EXCHANGE_CANCELLED = "exchange_cancelled"
    EXCHANGE_FAILED = "exchange_failed"
    THREAD_RESET = "thread_reset"


class ChatEvent(BaseModel):
    """A single session event."""

    type: EventType = Field(description="Event type")
    timestamp: float = Field(
        default_factory=time.time,
        description="Unix timestamp when the event occurred",
    )
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Event payload, varies by event type",
    )


# Type alias for event listener callbacks
EventListener = Callable[[ChatEvent], Any]


class ChatEventEmitter:
    """Broadcasts session events to registered listeners.

    Listeners can be sync or async callables. Listener exceptions are
    logged and never propagate into the exchange.
    """

    def __init__(self) -> None:
        self._listeners: list[EventListener] = []
        self._pending: set[asyncio.Future[Any]] = set()

    @property
    def listeners(self) -> list[EventListener]:
        return list(self._listeners)

    def add_listener(self, listener: EventListener) -> None:
        """Register a listener to receive session events."""
        self._listeners.append(listener)

    def remove_listener(self, listener: EventListener) -> None:
        """Remove a previously registered listener."""
        self._listeners = [ln for ln in self._listeners if ln is not listener]

    async def emit(self, event_type: EventType, **data: Any) -> None:
        """Emit an event, awaiting async listeners in order."""
        event = ChatEvent(type=event_type, data=data)

        for listener in self._listeners:
            try:
                result = listener(event)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Event listener error for %s", event_type)

    def emit_nowait(self, event_type: EventType, **data: Any) -> None:
        """Emit from synchronous code.

        Sync listeners run immediately; coroutines returned by async
        listeners are scheduled on the running loop.
        """
        event = ChatEvent(type=event_type, data=data)

        for listener in self._listeners:
            try:
                result = listener(event)
            except Exception:
                logger.exception("Event listener error for %s", event_type)
                continue
            if asyncio.iscoroutine(result):
                task = asyncio.ensure_future(result)
                self._pending.add(task)
                task.add_done_callback(self._finish_pending)

    def _finish_pending(self, task: asyncio.Future[Any]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Async event listener failed", exc_info=task.exception())
