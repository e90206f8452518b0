"""Wire schemas for completion API responses.

Both the full response and the streamed chunks follow the OpenAI chat
completion shape. The backend adds a ``context`` object to the message
(or to a delta) carrying the retrieval side channel: the model's
thought process and the data points it was grounded on.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class MessageContext(BaseModel):
    """Retrieval side channel attached to an answer."""

    model_config = ConfigDict(extra="allow")

    thoughts: str | None = Field(default=None, description="Thought process of the answer")
    data_points: list[str] | None = Field(
        default=None, description="Source snippets the answer was grounded on"
    )

    @property
    def is_empty(self) -> bool:
        return self.thoughts is None and self.data_points is None


class Message(BaseModel):
    """A complete assistant message."""

    content: str | None = None
    role: str = "assistant"
    context: MessageContext | None = None


class Delta(BaseModel):
    """The incremental part of a message carried by one stream chunk."""

    content: str | None = None
    role: str | None = None
    context: MessageContext | None = None


class Choice(BaseModel):
    index: int = 0
    message: Message = Field(default_factory=Message)


class ChunkChoice(BaseModel):
    index: int = 0
    delta: Delta = Field(default_factory=Delta)


class ChatResponse(BaseModel):
    """A fully materialized (non-streamed) response body."""

    choices: list[Choice] = Field(default_factory=list)
    error: str | None = None

    @property
    def message(self) -> Message | None:
        """The first choice's message, if any."""
        return self.choices[0].message if self.choices else None


class ChatResponseChunk(BaseModel):
    """One newline-delimited unit of a streamed response body."""

    choices: list[ChunkChoice] = Field(default_factory=list)
    error: str | None = None

    @property
    def delta(self) -> Delta | None:
        """The first choice's delta, if any."""
        return self.choices[0].delta if self.choices else None
