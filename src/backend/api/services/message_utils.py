"""Shared row conversion utilities for API services.

Converts conversation and message rows to the dict shapes returned by the API.
Assistant messages have their OPTIONS / ESCALATE blocks split out server-side.
"""

from __future__ import annotations

import contextlib
import json

from typing import Any, Protocol

from utils.message_parser import parse_message_markers


class MessageRow(Protocol):
    """Protocol for message database row access."""

    def get(self, key: str) -> Any: ...

    def __getitem__(self, key: str) -> Any: ...


def _isoformat(value: Any) -> str | None:
    return value.isoformat() if value else None


def _load_tool_calls(raw: Any) -> list[dict[str, Any]] | None:
    """Tool calls come back decoded when the JSON codec is registered, as text otherwise."""
    if isinstance(raw, str):
        with contextlib.suppress(json.JSONDecodeError):
            raw = json.loads(raw)
    return raw if isinstance(raw, list) else None


def row_to_message(row: MessageRow) -> dict[str, Any]:
    """Convert database row to message dict.

    For assistant messages:
    - content has the marker blocks removed
    - options lists the parsed choices (empty when none)
    - escalation_message holds the human-handoff text, if any

    Args:
        row: Database row with message data (asyncpg.Record or similar)

    Returns:
        Dictionary with message data formatted for frontend consumption
    """
    content = row["content"] or ""
    options: list[str] = []
    escalation_message: str | None = None

    if row["role"] == "assistant":
        parsed = parse_message_markers(content)
        content = parsed.content
        options = parsed.options
        escalation_message = parsed.escalation_message

    return {
        "id": str(row["id"]),
        "conversation_id": str(row["conversation_id"]),
        "role": row["role"],
        "content": content,
        "agent_type": row.get("agent_type"),
        "tool_calls": _load_tool_calls(row.get("tool_calls")),
        "options": options,
        "escalation_message": escalation_message,
        "created_at": _isoformat(row["created_at"]),
    }


def row_to_conversation(row: MessageRow) -> dict[str, Any]:
    """Convert database row to conversation dict."""
    return {
        "id": str(row["id"]),
        "user_id": str(row["user_id"]),
        "title": row["title"],
        "status": row["status"],
        "created_at": _isoformat(row["created_at"]),
        "updated_at": _isoformat(row["updated_at"]),
    }
