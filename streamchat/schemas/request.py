"""Request schemas for the completion API.

A ChatRequest carries the question, the interaction model and the
retrieval overrides; HttpOptions carries where and how to send it.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Approach(StrEnum):
    """Retrieval approach run by the backend."""

    RETRIEVE_THEN_READ = "rtr"
    READ_RETRIEVE_READ = "rrr"
    READ_DECOMPOSE_ASK = "rda"


class RetrievalMode(StrEnum):
    """How the backend searches its index."""

    HYBRID = "hybrid"
    VECTORS = "vectors"
    TEXT = "text"


InteractionModel = Literal["ask", "chat"]


class RequestOverrides(BaseModel):
    """Per-request knobs forwarded to the backend under ``context``.

    Serialized in camelCase; unset values are left out of the payload.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    approach: Approach | None = None
    retrieval_mode: RetrievalMode | None = None
    semantic_ranker: bool | None = None
    semantic_captions: bool | None = None
    exclude_category: str | None = None
    top: int | None = Field(default=None, ge=1)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    prompt_template: str | None = None
    prompt_template_prefix: str | None = None
    prompt_template_suffix: str | None = None
    suggest_followup_questions: bool | None = None

    def merged_with(self, other: RequestOverrides | None) -> RequestOverrides:
        """Return a copy where every value set on ``other`` wins."""
        if other is None:
            return self.model_copy()
        return self.model_copy(update=other.model_dump(exclude_none=True))

    def to_context(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class ChatRequest(BaseModel):
    """A question ready to be sent to the completion API."""

    question: str = Field(min_length=1)
    type: InteractionModel = "chat"
    overrides: RequestOverrides = Field(default_factory=RequestOverrides)
    history: list[dict[str, str]] = Field(
        default_factory=list,
        description="Earlier turns as role/content messages (chat mode only)",
    )

    def messages(self) -> list[dict[str, str]]:
        """History followed by the question, as role/content messages."""
        history = self.history if self.type == "chat" else []
        return [*history, {"role": "user", "content": self.question}]

    def to_payload(self, *, stream: bool) -> dict[str, Any]:
        """Build the JSON body the backend expects."""
        return {
            "messages": self.messages(),
            "context": self.overrides.to_context(),
            "stream": stream,
        }


class HttpOptions(BaseModel):
    """Where and how a request is sent."""

    url: str = Field(description="Base URL of the chat API")
    stream: bool = Field(default=True, description="Request a streamed response")
    method: str = Field(default="POST")
    headers: dict[str, str] = Field(default_factory=dict)

    def endpoint(self, interaction: InteractionModel) -> str:
        """Endpoint for an interaction model, e.g. ``<url>/chat``."""
        return f"{self.url.rstrip('/')}/{interaction}"
