"""Streaming schemas for incremental answer ingestion.

StreamAccumulatorState is the per-exchange scratch state of the stream
accumulator; AccumulatorResult is what it hands back when the stream
ends or is cancelled.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from pydantic import BaseModel, Field

from streamchat.schemas.wire import ChatResponseChunk


@dataclass
class StreamAccumulatorState:
    """Mutable state of one in-flight streamed exchange."""

    raw_buffer: bytes = b""
    malformed_line: bytes | None = None
    assembled_text: str = ""
    thoughts: str | None = None
    data_points: list[str] | None = None
    cancelled: bool = False
    chunk_count: int = 0


@dataclass
class DecodeResult:
    """Chunks decoded from a buffer, plus the unterminated tail.

    ``malformed`` holds the last unparseable line when no valid line
    followed it in the buffer.
    """

    chunks: list[ChatResponseChunk] = field(default_factory=list)
    remainder: bytes = b""
    malformed: bytes | None = None


class AccumulatorResult(BaseModel):
    """Outcome of a stream accumulator run."""

    text: str = Field(default="", description="Raw assembled answer text")
    thoughts: str | None = Field(default=None, description="Last thoughts seen, if any")
    data_points: list[str] | None = Field(
        default=None, description="Last data points seen, if any"
    )
    cancelled: bool = Field(default=False, description="True when stopped by cancellation")
    chunk_count: int = Field(default=0, ge=0, description="Content chunks applied")
