"""Newline-delimited JSON chunk decoding.

A streamed response body is a sequence of JSON objects separated by
newlines. Network reads do not respect those boundaries, so ``feed()``
returns the unterminated tail of every buffer for the caller to prefix
onto the next read, and ``finish()`` decodes whatever is left when the
stream ends.

Lines in Server-Sent Events form (``data: {...}``) are accepted as well,
and the ``[DONE]`` sentinel is ignored.
"""

from __future__ import annotations

import json
import logging

from pydantic import ValidationError

from streamchat.errors import DecodeError
from streamchat.schemas.streaming import DecodeResult
from streamchat.schemas.wire import ChatResponseChunk

logger = logging.getLogger(__name__)

_SSE_PREFIX = b"data:"
_DONE_SENTINEL = b"[DONE]"


def feed(buffer: bytes, malformed: bytes | None = None) -> DecodeResult:
    """Decode every complete line in ``buffer``.

    Empty and unparseable lines are skipped. Chunks are returned in
    arrival order. The most recent unparseable line is carried in the
    result until a later non-empty line decodes, so the end of the
    stream can tell whether its last line was malformed.

    Args:
        buffer: The previous remainder followed by newly read bytes.
        malformed: The ``malformed`` value of the previous result.

    Returns:
        DecodeResult with the decoded chunks, the bytes after the last
        newline and the pending malformed line, if any.
    """
    *lines, remainder = buffer.split(b"\n")

    chunks: list[ChatResponseChunk] = []
    for line in lines:
        if not _payload(line):
            continue
        try:
            chunk = _decode_line(line)
        except DecodeError as e:
            logger.debug("Skipping undecodable stream line: %s", e)
            malformed = line
            continue
        malformed = None
        if chunk is not None:
            chunks.append(chunk)

    return DecodeResult(chunks=chunks, remainder=remainder, malformed=malformed)


def finish(remainder: bytes, malformed: bytes | None = None) -> list[ChatResponseChunk]:
    """Decode the final, unterminated line of a stream.

    Args:
        remainder: The remainder returned by the last ``feed()`` call.
        malformed: The pending malformed line from the last ``feed()``
            call. It is the stream's last line when ``remainder`` is blank.

    Returns:
        A list with the final chunk, or an empty list when nothing
        meaningful was left over.

    Raises:
        DecodeError: If the last non-empty line of the stream is not a
            valid chunk.
    """
    if not _payload(remainder) and malformed is not None:
        _decode_line(malformed)
    chunk = _decode_line(remainder)
    return [chunk] if chunk is not None else []


def _payload(line: bytes) -> bytes:
    line = line.strip()
    if line.startswith(_SSE_PREFIX):
        line = line[len(_SSE_PREFIX):].strip()
    return line


def _decode_line(line: bytes) -> ChatResponseChunk | None:
    """Decode one line; None for blank lines and stream sentinels."""
    line = _payload(line)
    if not line or line == _DONE_SENTINEL:
        return None

    try:
        data = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise DecodeError(f"Invalid JSON in stream line: {e}") from e

    if not isinstance(data, dict):
        raise DecodeError(f"Expected a JSON object, got {type(data).__name__}")

    try:
        return ChatResponseChunk.model_validate(data)
    except ValidationError as e:
        raise DecodeError(f"Stream line does not match the chunk schema: {e}") from e
