"""Tests for streamchat.schemas — thread, request and wire models."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from streamchat.schemas.chat import ChatError, ChatThread, ChatTurn, Citation, TextEntry
from streamchat.schemas.request import (
    Approach,
    ChatRequest,
    HttpOptions,
    RequestOverrides,
    RetrievalMode,
)
from streamchat.schemas.wire import ChatResponse, ChatResponseChunk, MessageContext

# ── Factories ──────────────────────────────────────────────────────


def _make_turn(text: str = "", *, user: bool = False, **kwargs) -> ChatTurn:
    return ChatTurn(text=[TextEntry(value=text)], is_user_message=user, **kwargs)


# ══════════════════════════════════════════════════════════════════
# Citation
# ══════════════════════════════════════════════════════════════════


class TestCitation:
    def test_equal_by_text(self):
        assert Citation(ref=1, text="a.md") == Citation(ref=4, text="a.md")
        assert Citation(ref=1, text="a.md") != Citation(ref=1, text="b.md")

    def test_hashable_by_text(self):
        assert len({Citation(ref=1, text="a.md"), Citation(ref=2, text="a.md")}) == 1

    def test_ref_must_be_positive(self):
        with pytest.raises(ValidationError):
            Citation(ref=0, text="a.md")


# ══════════════════════════════════════════════════════════════════
# ChatTurn
# ══════════════════════════════════════════════════════════════════


class TestChatTurn:
    def test_defaults(self):
        turn = ChatTurn()
        assert turn.text == []
        assert turn.citations == []
        assert turn.followup_questions == []
        assert turn.error is None
        assert turn.is_user_message is False
        assert turn.timestamp.tzinfo is not None
        assert turn.is_open is False
        assert turn.last_text == ""

    def test_timestamp_is_frozen(self):
        turn = _make_turn("hi")
        with pytest.raises(ValidationError):
            turn.timestamp = datetime(2020, 1, 1, tzinfo=UTC)

    def test_is_user_message_is_frozen(self):
        turn = _make_turn("hi", user=True)
        with pytest.raises(ValidationError):
            turn.is_user_message = False

    def test_closed_turn_rejects_mutation(self):
        turn = _make_turn("done")
        with pytest.raises(RuntimeError, match="closed chat turn"):
            turn.replace_text("changed")
        with pytest.raises(RuntimeError):
            turn.merge_citations([Citation(ref=1, text="a.md")])
        with pytest.raises(RuntimeError):
            turn.set_followup_questions(["q"])
        with pytest.raises(RuntimeError):
            turn.record_error("oops")
        assert turn.last_text == "done"

    def test_replace_text_on_open_turn(self):
        turn = ChatTurn()
        turn.open()
        turn.replace_text("Hel")
        turn.replace_text("Hello", ["step one"])
        assert len(turn.text) == 1
        assert turn.last_text == "Hello"
        assert turn.text[0].following_steps == ["step one"]

    def test_replace_text_keeps_steps_when_not_given(self):
        turn = _make_turn()
        turn.open()
        turn.replace_text("a", ["s"])
        turn.replace_text("ab")
        assert turn.text[0].following_steps == ["s"]

    def test_merge_citations_deduplicates(self):
        turn = _make_turn()
        turn.open()
        turn.merge_citations([Citation(ref=1, text="a.md")])
        turn.merge_citations([Citation(ref=1, text="a.md"), Citation(ref=2, text="b.md")])
        assert [c.text for c in turn.citations] == ["a.md", "b.md"]

    def test_record_error(self):
        turn = _make_turn("partial")
        turn.open()
        turn.record_error("Something went wrong.")
        assert turn.has_error
        assert turn.error == ChatError(message="Something went wrong.")
        assert turn.last_text == "partial"


# ══════════════════════════════════════════════════════════════════
# ChatThread
# ══════════════════════════════════════════════════════════════════


class TestChatThread:
    def test_append_closes_previous_turn(self):
        thread = ChatThread()
        first = thread.append(_make_turn("a"), keep_open=True)
        assert thread.open_turn is first

        second = thread.append(_make_turn("b"))
        assert not first.is_open
        assert not second.is_open
        assert thread.open_turn is None
        assert thread.last is second
        assert len(thread) == 2

    def test_turns_is_a_copy(self):
        thread = ChatThread()
        thread.append(_make_turn("a"))
        thread.turns.clear()
        assert len(thread) == 1

    def test_iteration_and_indexing(self):
        thread = ChatThread()
        thread.append(_make_turn("q", user=True))
        thread.append(_make_turn("a"))
        assert [t.last_text for t in thread] == ["q", "a"]
        assert thread[0].is_user_message

    def test_reset(self):
        thread = ChatThread()
        turn = thread.append(_make_turn("a"), keep_open=True)
        thread.reset()
        assert len(thread) == 0
        assert thread.last is None
        assert not turn.is_open

    def test_to_history_skips_errors_and_empty_turns(self):
        thread = ChatThread()
        thread.append(_make_turn("First?", user=True))
        thread.append(ChatTurn(error=ChatError(message="Something went wrong.")))
        thread.append(_make_turn("Second?", user=True))
        thread.append(_make_turn("Answer."))
        thread.append(_make_turn(""))

        assert thread.to_history() == [
            {"role": "user", "content": "First?"},
            {"role": "user", "content": "Second?"},
            {"role": "assistant", "content": "Answer."},
        ]

    def test_to_history_joins_text_segments(self):
        thread = ChatThread()
        thread.append(ChatTurn(text=[TextEntry(value="one"), TextEntry(value="two")]))
        assert thread.to_history() == [{"role": "assistant", "content": "one\ntwo"}]


# ══════════════════════════════════════════════════════════════════
# Requests
# ══════════════════════════════════════════════════════════════════


class TestRequestOverrides:
    def test_context_is_camel_case_without_unset(self):
        overrides = RequestOverrides(
            approach=Approach.READ_RETRIEVE_READ,
            retrieval_mode=RetrievalMode.VECTORS,
            semantic_ranker=True,
            exclude_category="internal",
            suggest_followup_questions=False,
        )
        assert overrides.to_context() == {
            "approach": "rrr",
            "retrievalMode": "vectors",
            "semanticRanker": True,
            "excludeCategory": "internal",
            "suggestFollowupQuestions": False,
        }

    def test_accepts_camel_case_input(self):
        overrides = RequestOverrides.model_validate({"promptTemplate": "x", "top": 2})
        assert overrides.prompt_template == "x"
        assert overrides.top == 2

    def test_merged_with_prefers_other(self):
        base = RequestOverrides(top=3, semantic_ranker=True)
        merged = base.merged_with(RequestOverrides(top=5))
        assert merged.top == 5
        assert merged.semantic_ranker is True
        assert base.top == 3

    def test_merged_with_none(self):
        base = RequestOverrides(top=3)
        assert base.merged_with(None) == base

    @pytest.mark.parametrize("field,value", [("top", 0), ("temperature", 3.0)])
    def test_out_of_range_rejected(self, field, value):
        with pytest.raises(ValidationError):
            RequestOverrides(**{field: value})


class TestChatRequest:
    def test_empty_question_rejected(self):
        with pytest.raises(ValidationError):
            ChatRequest(question="")

    def test_chat_payload_includes_history(self):
        request = ChatRequest(
            question="And gifts?",
            history=[{"role": "user", "content": "Refunds?"}],
            overrides=RequestOverrides(top=3),
        )
        assert request.to_payload(stream=True) == {
            "messages": [
                {"role": "user", "content": "Refunds?"},
                {"role": "user", "content": "And gifts?"},
            ],
            "context": {"top": 3},
            "stream": True,
        }

    def test_ask_payload_ignores_history(self):
        request = ChatRequest(
            question="Refunds?",
            type="ask",
            history=[{"role": "user", "content": "old"}],
        )
        assert request.messages() == [{"role": "user", "content": "Refunds?"}]

    def test_unknown_interaction_model_rejected(self):
        with pytest.raises(ValidationError):
            ChatRequest(question="Hi", type="search")


class TestHttpOptions:
    def test_endpoint_strips_trailing_slash(self):
        assert HttpOptions(url="http://api.test/").endpoint("chat") == "http://api.test/chat"

    def test_defaults(self):
        options = HttpOptions(url="http://api.test")
        assert options.stream is True
        assert options.method == "POST"
        assert options.headers == {}


# ══════════════════════════════════════════════════════════════════
# Wire models
# ══════════════════════════════════════════════════════════════════


class TestWireModels:
    def test_response_message(self):
        response = ChatResponse.model_validate(
            {"choices": [{"message": {"content": "Hi", "context": {"thoughts": "t"}}}]}
        )
        assert response.message.content == "Hi"
        assert response.message.role == "assistant"
        assert response.message.context.thoughts == "t"

    def test_response_without_choices(self):
        assert ChatResponse().message is None
        assert ChatResponseChunk().delta is None

    def test_context_keeps_unknown_fields(self):
        context = MessageContext.model_validate({"thoughts": "t", "followup_questions": ["q"]})
        assert context.model_extra == {"followup_questions": ["q"]}
        assert not context.is_empty
        assert MessageContext().is_empty

    def test_chunk_delta(self):
        chunk = ChatResponseChunk.model_validate(
            {"choices": [{"delta": {"content": "lo", "role": "assistant"}}]}
        )
        assert chunk.delta.content == "lo"
        assert chunk.delta.context is None
