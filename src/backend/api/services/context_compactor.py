"""
Context compaction for long conversations.

Keeps the most recent messages verbatim and replaces everything older with a
single synthetic system message holding a model-written summary. The summary
is never persisted; it only shapes the context sent to the router and agents.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from core.constants import SUMMARY_MAX_TOKENS, SUMMARY_MESSAGE_PREFIX
from core.prompts import COMPACTION_INSTRUCTIONS
from models.chat_models import HistoryMessage
from utils.logger import logger
from utils.metrics import compactions_total

if TYPE_CHECKING:
    from integrations.model_gateway import ModelGateway


def render_transcript(messages: Sequence[HistoryMessage]) -> str:
    """Render messages as ``ROLE: content`` lines."""
    return "\n".join(f"{m.role.upper()}: {m.content}" for m in messages)


class ContextCompactor:
    """Summarizes older history once a conversation passes the threshold.

    Args:
        gateway: Model gateway used for the one-shot summary
        recent_window: Number of trailing messages kept verbatim
        threshold: Histories at or below this length are returned untouched
    """

    def __init__(self, gateway: ModelGateway, *, recent_window: int = 10, threshold: int = 16):
        if recent_window < 1:
            raise ValueError("recent_window must be at least 1")
        if recent_window > threshold:
            raise ValueError(f"recent_window ({recent_window}) must not exceed threshold ({threshold})")
        self._gateway = gateway
        self.recent_window = recent_window
        self.threshold = threshold

    async def compact(self, history: list[HistoryMessage]) -> list[HistoryMessage]:
        """Return ``history`` itself when short, else ``[summary] + recent``.

        Never raises: a failed or empty summary drops the older messages and
        keeps only the recent window.
        """
        if len(history) <= self.threshold:
            return history

        older = history[: -self.recent_window]
        recent = history[-self.recent_window :]

        try:
            summary = await self._gateway.generate(
                [
                    {"role": "system", "content": COMPACTION_INSTRUCTIONS},
                    {"role": "user", "content": render_transcript(older)},
                ],
                max_tokens=SUMMARY_MAX_TOKENS,
            )
            summary = summary.strip()
            if not summary:
                raise ValueError("summarizer returned an empty summary")
        except Exception as e:
            compactions_total.labels(outcome="failed").inc()
            logger.error(f"Context compaction failed, keeping {len(recent)} recent messages: {e}", exc_info=True)
            return recent

        compactions_total.labels(outcome="summarized").inc()
        logger.info(f"Compacted {len(older)} older messages into a summary ({len(summary)} chars)")
        summary_message = HistoryMessage(role="system", content=f"{SUMMARY_MESSAGE_PREFIX}\n{summary}")
        return [summary_message, *recent]
