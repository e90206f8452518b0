"""Small collaborators used by the session controller.

``utc_now`` is the default clock and ``sanitize`` the default sanitizer
for user-supplied question text.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from html.parser import HTMLParser

# Elements whose text content is dropped along with the markup
_DROP_CONTENT_TAGS = frozenset({"script", "style", "iframe", "object", "embed", "template"})

_WHITESPACE_RE = re.compile(r"[ \t]+")


def utc_now() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC)


class _TextExtractor(HTMLParser):
    """Collects the text content of an HTML fragment."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self.parts: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in _DROP_CONTENT_TAGS:
            self._skip_depth += 1

    def handle_endtag(self, tag: str) -> None:
        if tag in _DROP_CONTENT_TAGS and self._skip_depth:
            self._skip_depth -= 1

    def handle_data(self, data: str) -> None:
        if not self._skip_depth:
            self.parts.append(data)


def sanitize(raw_input: str) -> str:
    """Strip markup from user-supplied text.

    Tags are removed, the content of script-like elements is dropped,
    entities are decoded once and runs of spaces collapsed. Plain text
    passes through unchanged apart from surrounding whitespace.

    Args:
        raw_input: Text typed or dictated by the user.

    Returns:
        The text content with all markup removed.
    """
    if not raw_input:
        return ""

    parser = _TextExtractor()
    parser.feed(raw_input)
    parser.close()
    text = "".join(parser.parts)
    return _WHITESPACE_RE.sub(" ", text).strip()
