"""Exception hierarchy for the chat client core.

Every failure the session controller knows how to record on the chat
thread derives from StreamChatError. Cancellation is not an error and
has no exception type.
"""

from __future__ import annotations


class StreamChatError(Exception):
    """Base exception for all streamchat errors."""


class QuestionValidationError(StreamChatError):
    """Raised when a question is empty after sanitizing and trimming."""


class TransportError(StreamChatError):
    """Raised by a transport on network or HTTP failure.

    Attributes:
        status_code: HTTP status of the failed response, when one was
            received. None for connection failures and timeouts.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class StreamError(StreamChatError):
    """Raised when a streamed response fails mid-read."""


class DecodeError(StreamError):
    """Raised when a response body cannot be decoded.

    For streamed bodies this is only raised when the last non-empty line
    of the stream is malformed. Malformed lines in the middle are skipped.
    """
