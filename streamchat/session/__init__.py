"""Chat session state machine."""

from streamchat.session.controller import ChatSessionController, SessionState

__all__ = ["ChatSessionController", "SessionState"]
