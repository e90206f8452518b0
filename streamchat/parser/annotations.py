"""Inline annotation extraction for answer text.

The answer-generation backend marks up its free-form answers with three
conventions:

- citations: a bracketed document identifier with a file extension,
  e.g. ``[refund-policy.md]`` or ``[benefits.pdf#page=2]``
- follow-up questions: ``<<What about exchanges?>>``, optionally under a
  ``Next questions:`` header line
- following steps: a numbered list starting at ``1.``, e.g.
  ``1. Open the orders page``

``extract()`` removes every recognized marker from the text and returns
the structured lists alongside the cleaned text. Anything that does not
fully match a convention (an unterminated ``<<``, a bracket without a
file extension) is left in place.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

from streamchat.schemas.chat import Citation

# [name.ext] or [name.ext#fragment], with the horizontal space before it
_CITATION_RE = re.compile(
    r"[ \t]*\["
    r"([^\[\]\n]*[^\[\]\s]\.[A-Za-z][A-Za-z0-9]{0,7}(?:#[^\[\]\s]*)?)"
    r"\]"
)

# <<question>>, optionally as a list item of its own
_FOLLOWUP_RE = re.compile(
    r"(?:^[ \t]*(?:\d+\.|[-*])[ \t]+)?[ \t]*<<([^<>\n]+)>>",
    re.MULTILINE,
)

_FOLLOWUP_HEADER_RE = re.compile(
    r"^[ \t]*(?:next|follow-up|followup) questions:[ \t]*(?:\n|$)",
    re.IGNORECASE | re.MULTILINE,
)

# A run of numbered lines whose first item is "1."
_STEP_BLOCK_RE = re.compile(
    r"^[ \t]*1\.[ \t]+[^\n<]*[^\s<][ \t]*"
    r"(?:\n[ \t]*\d+\.[ \t]+[^\n<]*[^\s<][ \t]*)*"
    r"(?:\n|$)",
    re.MULTILINE,
)

_STEP_ITEM_RE = re.compile(r"^[ \t]*\d+\.[ \t]+([^\n<]*[^\s<])", re.MULTILINE)

_BLANK_LINES_RE = re.compile(r"\n[ \t]*\n(?:[ \t]*\n)+")

# Removing one marker can expose another (``[a.md[b.md]]``); repeat
# until the text is stable so extraction is idempotent.
_MAX_PASSES = 8


class ExtractionResult(BaseModel):
    """Cleaned answer text plus the annotations pulled out of it."""

    cleaned_text: str = Field(description="Text with every recognized marker removed")
    citations: list[Citation] = Field(default_factory=list)
    following_steps: list[str] = Field(default_factory=list)
    followup_questions: list[str] = Field(default_factory=list)

    @property
    def has_annotations(self) -> bool:
        return bool(self.citations or self.following_steps or self.followup_questions)


def extract(raw_text: str) -> ExtractionResult:
    """Extract citations, following steps and follow-up questions.

    Pure and deterministic. Text without markers is returned unmodified;
    malformed markers are kept verbatim.

    Args:
        raw_text: The answer text as produced by the backend.

    Returns:
        ExtractionResult with the cleaned text and the extracted lists.
        Citations are numbered by first appearance, repeats merged.
    """
    if not raw_text:
        return ExtractionResult(cleaned_text=raw_text or "")

    citation_refs: dict[str, int] = {}
    steps: list[str] = []
    questions: list[str] = []

    text = raw_text
    for _ in range(_MAX_PASSES):
        cleaned = _extract_once(text, citation_refs, steps, questions)
        if cleaned == text:
            break
        text = _normalize_whitespace(cleaned)

    citations = [Citation(ref=ref, text=name) for name, ref in citation_refs.items()]
    return ExtractionResult(
        cleaned_text=text,
        citations=citations,
        following_steps=steps,
        followup_questions=questions,
    )


def _extract_once(
    text: str,
    citation_refs: dict[str, int],
    steps: list[str],
    questions: list[str],
) -> str:
    """Run a single pass of every convention, collecting into the lists."""

    def _citation(match: re.Match[str]) -> str:
        name = match.group(1).strip()
        if name not in citation_refs:
            citation_refs[name] = len(citation_refs) + 1
        return ""

    def _question(match: re.Match[str]) -> str:
        question = match.group(1).strip()
        if question:
            questions.append(question)
        return ""

    def _steps(match: re.Match[str]) -> str:
        steps.extend(item.strip() for item in _STEP_ITEM_RE.findall(match.group(0)))
        return ""

    text = _CITATION_RE.sub(_citation, text)

    found_before = len(questions)
    text = _FOLLOWUP_RE.sub(_question, text)
    if len(questions) > found_before:
        text = _FOLLOWUP_HEADER_RE.sub("", text)

    return _STEP_BLOCK_RE.sub(_steps, text)


def _normalize_whitespace(text: str) -> str:
    """Tidy the gaps left behind by removed markers."""
    text = "\n".join(line.rstrip() for line in text.split("\n"))
    return _BLANK_LINES_RE.sub("\n\n", text).strip()
