"""Recover the user's own words from a fully assembled prompt.

Upstream prepends a machine-generated date/time block to every message:

    CURRENT DATE & TIME CONTEXT:
    - Current Date: Monday, 6 October 2025
    - Current Time: 09:12
    - ISO Timestamp: 2025-10-06T09:12:00Z

    <what the user actually typed>

Those bullet lines must not be mistaken for user input when routing.
"""

from __future__ import annotations

import re

DOCUMENT_CONTEXT_MARKER = "=== DOCUMENTS AVAILABLE ==="

_CONTEXT_BLOCK = re.compile(
    r"^CURRENT DATE\s*&\s*TIME\s*CONTEXT:[ \t]*[\r\n]+(?:^- .*(?:\r?\n|$))+(?:\r?\n)?",
    re.IGNORECASE | re.MULTILINE,
)
_STRAY_BULLET = re.compile(
    r"^- (?:Current Date|Current Time|ISO Timestamp):.*$",
    re.IGNORECASE | re.MULTILINE,
)


def extract_user_message(raw: str) -> str:
    if not raw:
        return ""

    without_context = _CONTEXT_BLOCK.sub("", raw)
    cleaned = _STRAY_BULLET.sub("", without_context).strip()

    if not cleaned:
        # Everything was context: the last line is the best remaining guess
        lines = [line.strip() for line in raw.splitlines() if line.strip()]
        return lines[-1] if lines else ""
    return cleaned


def has_document_context(raw: str) -> bool:
    return DOCUMENT_CONTEXT_MARKER in (raw or "")
