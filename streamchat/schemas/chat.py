"""Chat thread schemas.

Defines the turns that make up a chat thread, the citations and error
records attached to them, and the thread container itself. A turn stays
"open" while an answer is being accumulated into it; only the open,
most recent turn of a thread may be mutated.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from datetime import datetime

from pydantic import BaseModel, Field, PrivateAttr

from streamchat.utils import utc_now


class Citation(BaseModel):
    """A reference to a source document mentioned in an answer.

    Two citations are the same citation when their ``text`` matches,
    whatever their ``ref`` number.
    """

    ref: int = Field(ge=1, description="1-based position among distinct citations")
    text: str = Field(description="Document identifier, usually a file name")

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Citation):
            return self.text == other.text
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.text)


class TextEntry(BaseModel):
    """One text segment of a turn, with the steps extracted from it."""

    value: str = Field(default="", description="Rendered answer text")
    following_steps: list[str] = Field(
        default_factory=list, description="Numbered steps pulled out of the text"
    )


class ChatError(BaseModel):
    """User-facing failure attached to a turn."""

    message: str


class ChatTurn(BaseModel):
    """A single entry in the chat thread.

    ``timestamp`` and ``is_user_message`` are fixed at creation. The
    content fields may only be changed through the mutation helpers
    while the turn is open.
    """

    text: list[TextEntry] = Field(default_factory=list)
    citations: list[Citation] = Field(default_factory=list)
    followup_questions: list[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now, frozen=True)
    is_user_message: bool = Field(default=False, frozen=True)
    error: ChatError | None = None

    _open: bool = PrivateAttr(default=False)

    # ── Lifecycle ─────────────────────────────────────────────

    @property
    def is_open(self) -> bool:
        """Whether the turn is still accumulating an answer."""
        return self._open

    def open(self) -> None:
        self._open = True

    def close(self) -> None:
        self._open = False

    @property
    def has_error(self) -> bool:
        return self.error is not None

    @property
    def last_text(self) -> str:
        """Value of the most recent text segment, or an empty string."""
        return self.text[-1].value if self.text else ""

    # ── Mutation (open turns only) ────────────────────────────

    def _require_open(self) -> None:
        if not self._open:
            raise RuntimeError("Cannot mutate a closed chat turn")

    def replace_text(self, value: str, following_steps: list[str] | None = None) -> None:
        """Overwrite the current text segment with a new cumulative value."""
        self._require_open()
        if not self.text:
            self.text.append(TextEntry())
        entry = self.text[-1]
        entry.value = value
        if following_steps is not None:
            entry.following_steps = list(following_steps)

    def merge_citations(self, citations: Iterable[Citation]) -> None:
        """Add citations not already present, keeping first-seen order."""
        self._require_open()
        merged = list(self.citations)
        seen = set(merged)
        for citation in citations:
            if citation not in seen:
                seen.add(citation)
                merged.append(citation)
        # Single assignment so observers never see a partial merge
        self.citations = merged

    def set_followup_questions(self, questions: Iterable[str]) -> None:
        self._require_open()
        self.followup_questions = list(questions)

    def record_error(self, message: str) -> None:
        self._require_open()
        self.error = ChatError(message=message)


class ChatThread:
    """Ordered, append-only sequence of chat turns.

    Appending a turn closes the previous one, so at most the last turn
    is ever open. Turns are only removed by ``reset()``.
    """

    def __init__(self) -> None:
        self._turns: list[ChatTurn] = []

    def __iter__(self) -> Iterator[ChatTurn]:
        return iter(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def __getitem__(self, index: int) -> ChatTurn:
        return self._turns[index]

    @property
    def turns(self) -> list[ChatTurn]:
        """A snapshot copy of the turns."""
        return list(self._turns)

    @property
    def last(self) -> ChatTurn | None:
        return self._turns[-1] if self._turns else None

    @property
    def open_turn(self) -> ChatTurn | None:
        """The last turn if it is still open, otherwise None."""
        last = self.last
        if last is not None and last.is_open:
            return last
        return None

    def append(self, turn: ChatTurn, *, keep_open: bool = False) -> ChatTurn:
        """Append a turn, closing the previous last turn.

        Args:
            turn: The turn to append.
            keep_open: Leave the new turn open for in-place accumulation.

        Returns:
            The appended turn.
        """
        if self._turns:
            self._turns[-1].close()
        if keep_open:
            turn.open()
        else:
            turn.close()
        self._turns.append(turn)
        return turn

    def reset(self) -> None:
        """Remove every turn."""
        for turn in self._turns:
            turn.close()
        self._turns = []

    def to_history(self) -> list[dict[str, str]]:
        """Render completed turns as OpenAI-style role/content messages.

        Failed turns and empty answers are left out so a retried question
        is not sent with a dangling error in its history.
        """
        messages: list[dict[str, str]] = []
        for turn in self._turns:
            if turn.has_error:
                continue
            content = "\n".join(entry.value for entry in turn.text if entry.value)
            if not content:
                continue
            role = "user" if turn.is_user_message else "assistant"
            messages.append({"role": role, "content": content})
        return messages
