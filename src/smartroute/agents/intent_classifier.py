from __future__ import annotations

"""Keyword heuristic deciding whether a message needs workspace tools.

Tuned for recall: sending a harmless request to the tool agent costs a few
seconds, missing a real mail/calendar request gives the user a made-up
answer.
"""

import logging

logger = logging.getLogger(__name__)

TRIVIAL_MESSAGES = frozenset(
    {".", "ok", "yes", "no", "thanks", "thank you", "k", "s", "x", "y", "n", "hi", "hello", "hey", "yo"}
)

WORKSPACE_KEYWORDS = (
    "gmail", "email", "mail", "inbox", "message", "messages",
    "calendar", "event", "events", "meeting", "schedule", "appointment",
    "drive", "file", "files", "document", "documents", "folder",
    "docs", "sheets", "slides", "presentation", "spreadsheet",
    "task", "tasks",
    "google", "workspace", "search", "find",
)


def is_trivial(text: str) -> bool:
    trimmed = text.strip()
    return len(trimmed) <= 2 or trimmed.lower() in TRIVIAL_MESSAGES


def needs_tool_routing(user_text: str, tool_service_connected: bool) -> bool:
    if not tool_service_connected or not user_text:
        return False
    if is_trivial(user_text):
        return False

    lower_text = user_text.strip().lower()
    matched = [k for k in WORKSPACE_KEYWORDS if k in lower_text]
    if matched:
        logger.debug("[classifier] workspace keywords matched: %s", matched[:5])
    return bool(matched)
