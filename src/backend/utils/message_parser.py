"""
Parsing of structured marker blocks in assistant replies.

Agents append two optional blocks to their replies:

    ---OPTIONS---
    Track my order
    Cancel my order
    ---END_OPTIONS---

    ---ESCALATE---
    Hello! This is Aryan from the support team. ...
    ---END_ESCALATE---

Local models are sloppy with the fences, so the patterns accept any run of two
or more dashes, optional whitespace and an optional underscore in ``END``.
"""

from __future__ import annotations

import re

from models.chat_models import ParsedMessage

OPTIONS_PATTERN = re.compile(
    r"-{2,}\s*OPTIONS\s*-{2,}\s*(.*?)\s*-{2,}\s*END[\s_]*OPTIONS\s*-{2,}",
    re.IGNORECASE | re.DOTALL,
)
ESCALATE_PATTERN = re.compile(
    r"-{2,}\s*ESCALATE\s*-{2,}\s*(.*?)\s*-{2,}\s*END[\s_]*ESCALATE\s*-{2,}",
    re.IGNORECASE | re.DOTALL,
)

_NUMBERING = re.compile(r"^\d+[.)]\s*")
_BULLET = re.compile(r"^[-*•]\s*")
_WRAPPING_QUOTES = re.compile(r"^[\"'`]+|[\"'`]+$")


def clean_option_line(line: str) -> str:
    """Strip numbering, bullets and wrapping quotes from one option line."""
    cleaned = _NUMBERING.sub("", line.strip(), count=1)
    cleaned = _BULLET.sub("", cleaned, count=1)
    cleaned = _WRAPPING_QUOTES.sub("", cleaned)
    return cleaned.strip()


def parse_message_markers(raw_content: str) -> ParsedMessage:
    """Split OPTIONS and ESCALATE blocks out of an assistant reply."""
    content = raw_content
    options: list[str] = []
    escalation_message: str | None = None

    if match := OPTIONS_PATTERN.search(content):
        lines = (clean_option_line(line) for line in match.group(1).strip().split("\n"))
        options = [line for line in lines if line]
        content = OPTIONS_PATTERN.sub("", content, count=1).strip()

    if match := ESCALATE_PATTERN.search(content):
        escalation_message = match.group(1).strip()
        content = ESCALATE_PATTERN.sub("", content, count=1).strip()

    return ParsedMessage(content=content, options=options, escalation_message=escalation_message)
