"""Tests for streamchat.events — session event emitter."""

from __future__ import annotations

import asyncio
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest

from streamchat.events import ChatEvent, ChatEventEmitter, EventType

# ══════════════════════════════════════════════════════════════════
# ChatEvent Schema
# ══════════════════════════════════════════════════════════════════


class TestChatEvent:
    """ChatEvent schema tests."""

    def test_create_event_with_defaults(self):
        event = ChatEvent(type=EventType.THREAD_RESET)
        assert event.type == EventType.THREAD_RESET
        assert event.timestamp > 0
        assert event.data == {}

    def test_event_serializes_to_dict(self):
        event = ChatEvent(type=EventType.EXCHANGE_FAILED, data={"error": "fail"})
        d = event.model_dump()
        assert d["type"] == "exchange_failed"
        assert d["data"]["error"] == "fail"

    def test_all_event_types_exist(self):
        expected = [
            "exchange_started", "turn_appended", "progress",
            "exchange_completed", "exchange_cancelled", "exchange_failed",
            "thread_reset",
        ]
        assert sorted(e.value for e in EventType) == sorted(expected)


# ══════════════════════════════════════════════════════════════════
# ChatEventEmitter
# ══════════════════════════════════════════════════════════════════


class TestChatEventEmitter:
    """ChatEventEmitter tests."""

    @pytest.mark.asyncio()
    async def test_sync_listener_receives_event(self):
        emitter = ChatEventEmitter()
        listener = MagicMock()
        emitter.add_listener(listener)

        await emitter.emit(EventType.EXCHANGE_STARTED, question="Hi")

        listener.assert_called_once()
        event = listener.call_args[0][0]
        assert event.type == EventType.EXCHANGE_STARTED
        assert event.data["question"] == "Hi"

    @pytest.mark.asyncio()
    async def test_async_listener_awaited(self):
        emitter = ChatEventEmitter()
        listener = AsyncMock()
        emitter.add_listener(listener)

        await emitter.emit(EventType.PROGRESS)

        listener.assert_awaited_once()

    @pytest.mark.asyncio()
    async def test_listeners_called_in_order(self):
        emitter = ChatEventEmitter()
        calls: list[str] = []
        emitter.add_listener(lambda e: calls.append("first"))
        emitter.add_listener(lambda e: calls.append("second"))

        await emitter.emit(EventType.PROGRESS)

        assert calls == ["first", "second"]

    @pytest.mark.asyncio()
    async def test_failing_listener_does_not_block_others(self, caplog):
        emitter = ChatEventEmitter()
        good = MagicMock()
        emitter.add_listener(MagicMock(side_effect=ValueError("boom")))
        emitter.add_listener(good)

        with caplog.at_level(logging.ERROR, logger="streamchat.events"):
            await emitter.emit(EventType.PROGRESS)

        good.assert_called_once()
        assert "Event listener error" in caplog.text

    @pytest.mark.asyncio()
    async def test_remove_listener(self):
        emitter = ChatEventEmitter()
        listener = MagicMock()
        emitter.add_listener(listener)
        emitter.remove_listener(listener)

        await emitter.emit(EventType.PROGRESS)

        listener.assert_not_called()
        assert emitter.listeners == []

    def test_remove_unknown_listener_is_noop(self):
        emitter = ChatEventEmitter()
        emitter.remove_listener(MagicMock())
        assert emitter.listeners == []

    def test_emit_nowait_calls_sync_listener(self):
        emitter = ChatEventEmitter()
        listener = MagicMock()
        emitter.add_listener(listener)

        emitter.emit_nowait(EventType.THREAD_RESET)

        assert listener.call_args[0][0].type == EventType.THREAD_RESET

    @pytest.mark.asyncio()
    async def test_emit_nowait_schedules_async_listener(self):
        emitter = ChatEventEmitter()
        received: list[EventType] = []

        async def listener(event: ChatEvent) -> None:
            received.append(event.type)

        emitter.add_listener(listener)
        emitter.emit_nowait(EventType.EXCHANGE_CANCELLED)
        assert received == []

        await asyncio.sleep(0)
        assert received == [EventType.EXCHANGE_CANCELLED]

    @pytest.mark.asyncio()
    async def test_emit_nowait_logs_async_failure(self, caplog):
        emitter = ChatEventEmitter()

        async def listener(event: ChatEvent) -> None:
            raise RuntimeError("late failure")

        emitter.add_listener(listener)
        with caplog.at_level(logging.ERROR, logger="streamchat.events"):
            emitter.emit_nowait(EventType.EXCHANGE_CANCELLED)
            await asyncio.sleep(0)
            await asyncio.sleep(0)

        assert "Async event listener failed" in caplog.text
