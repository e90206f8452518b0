"""streamchat — streaming chat client core for retrieval-augmented answers."""

__version__ = "0.1.0"

from streamchat.errors import (
    DecodeError,
    QuestionValidationError,
    StreamChatError,
    StreamError,
    TransportError,
)
from streamchat.events import ChatEvent, ChatEventEmitter, EventType
from streamchat.parser import StreamAccumulator, extract
from streamchat.schemas import ChatConfig, ChatThread, ChatTurn, Citation
from streamchat.session import ChatSessionController, SessionState
from streamchat.settings import load_chat_config
from streamchat.transport import HttpTransport, StreamedBody, Transport

__all__ = [
    "ChatConfig",
    "ChatEvent",
    "ChatEventEmitter",
    "ChatSessionController",
    "ChatThread",
    "ChatTurn",
    "Citation",
    "DecodeError",
    "EventType",
    "HttpTransport",
    "QuestionValidationError",
    "SessionState",
    "StreamAccumulator",
    "StreamChatError",
    "StreamError",
    "StreamedBody",
    "Transport",
    "TransportError",
    "extract",
    "load_chat_config",
]
