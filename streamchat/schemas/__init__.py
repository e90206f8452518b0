"""streamchat schema definitions.

Pydantic v2 models for the chat thread, the wire format, requests and
client configuration.
"""

from streamchat.schemas.chat import (
    ChatError,
    ChatThread,
    ChatTurn,
    Citation,
    TextEntry,
)
from streamchat.schemas.config import ChatConfig, Labels, ModelConfig
from streamchat.schemas.request import (
    Approach,
    ChatRequest,
    HttpOptions,
    InteractionModel,
    RequestOverrides,
    RetrievalMode,
)
from streamchat.schemas.streaming import (
    AccumulatorResult,
    DecodeResult,
    StreamAccumulatorState,
)
from streamchat.schemas.wire import (
    ChatResponse,
    ChatResponseChunk,
    Choice,
    ChunkChoice,
    Delta,
    Message,
    MessageContext,
)

__all__ = [
    "AccumulatorResult",
    "Approach",
    "ChatConfig",
    "ChatError",
    "ChatRequest",
    "ChatResponse",
    "ChatResponseChunk",
    "ChatThread",
    "ChatTurn",
    "Choice",
    "ChunkChoice",
    "Citation",
    "DecodeResult",
    "Delta",
    "HttpOptions",
    "InteractionModel",
    "Labels",
    "Message",
    "MessageContext",
    "ModelConfig",
    "RequestOverrides",
    "RetrievalMode",
    "StreamAccumulatorState",
    "TextEntry",
]
