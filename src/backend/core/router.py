"""
Router agent: classifies a user message onto a specialist agent.

The model is asked for a JSON verdict. When it answers with something that is
not parseable JSON, keyword rules on the user's own message decide instead.
Classification never raises; any failure routes to support.
"""

from __future__ import annotations

import json
import math
import re

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from core.constants import (
    ROUTER_CONTEXT_MESSAGES,
    ROUTER_DEFAULT_CONFIDENCE,
    ROUTER_ERROR_REASONING,
    ROUTER_FALLBACK_CONFIDENCE,
    ROUTER_SUPPORT_CONFIDENCE,
)
from core.prompts import ROUTER_INSTRUCTIONS
from models.chat_models import HistoryMessage, RoutedAgent, RouterResult
from utils.logger import logger
from utils.metrics import router_decisions_total

if TYPE_CHECKING:
    from integrations.model_gateway import ModelGateway

#: First non-greedy {...} span in the model output.
_JSON_OBJECT = re.compile(r"\{.*?\}", re.DOTALL)

_AGENT_NAMES: dict[str, RoutedAgent] = {"ORDER": "order", "BILLING": "billing", "SUPPORT": "support"}

_MIXED_BILLING = re.compile(r"\b(invoice|refund)\b")
_MENTIONS_ORDER = re.compile(r"\border\b")
_ORDER_KEYWORDS = re.compile(r"\b(order|cancel|delivery|tracking|shipped|package|shipping)\b")
_BILLING_KEYWORDS = re.compile(r"\b(refund|invoice|billing|payment|charge|subscription|bill)\b")
_SUPPORT_KEYWORDS = re.compile(
    r"\b(password|account|help|how|guide|faq|policy|reset|troubleshoot|support|who|what|identity)\b"
)


def _parse_json_verdict(response: str) -> RouterResult | None:
    """Gate a JSON verdict by confidence; None when no usable JSON is present."""
    match = _JSON_OBJECT.search(response)
    if match is None:
        return None
    try:
        parsed: Any = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None

    raw_agent = parsed.get("agent")
    agent: RoutedAgent = "fallback"
    if isinstance(raw_agent, str):
        agent = _AGENT_NAMES.get(raw_agent.upper(), "fallback")

    raw_confidence = parsed.get("confidence")
    is_number = isinstance(raw_confidence, int | float) and not isinstance(raw_confidence, bool)
    if is_number and math.isfinite(raw_confidence):
        confidence = float(raw_confidence)
    else:
        confidence = ROUTER_DEFAULT_CONFIDENCE

    reasoning = parsed.get("reasoning") or response

    if confidence < ROUTER_FALLBACK_CONFIDENCE:
        agent = "fallback"
    elif confidence < ROUTER_SUPPORT_CONFIDENCE and agent == "fallback":
        agent = "support"

    return RouterResult(agent=agent, confidence=min(max(confidence, 0.0), 1.0), reasoning=str(reasoning))


def _classify_by_keywords(user_message: str, response: str) -> RouterResult:
    user_lower = user_message.lower()
    response_lower = response.lower()

    agent: RoutedAgent
    if _MIXED_BILLING.search(user_lower) and _MENTIONS_ORDER.search(user_lower):
        # Mixed order+invoice questions go to billing, which can still reference orders
        agent, confidence = "billing", 0.9
    elif _ORDER_KEYWORDS.search(user_lower):
        agent, confidence = "order", 0.85
    elif _BILLING_KEYWORDS.search(user_lower):
        agent, confidence = "billing", 0.85
    elif _SUPPORT_KEYWORDS.search(user_lower):
        agent, confidence = "support", 0.85
    elif "order" in response_lower:
        agent, confidence = "order", 0.75
    elif any(word in response_lower for word in ("billing", "refund", "invoice")):
        agent, confidence = "billing", 0.75
    elif "support" in response_lower:
        agent, confidence = "support", 0.75
    else:
        agent, confidence = "support", 0.7

    return RouterResult(agent=agent, confidence=confidence, reasoning=response)


class RouterAgent:
    """Classifies user messages with the lightweight model."""

    def __init__(self, gateway: ModelGateway, *, max_tokens: int = 200):
        self._gateway = gateway
        self._max_tokens = max_tokens

    async def classify(self, message: str, context: Sequence[HistoryMessage]) -> RouterResult:
        """Pick the agent for ``message`` given the preceding conversation."""
        try:
            messages = [
                {"role": "system", "content": ROUTER_INSTRUCTIONS},
                *(m.to_openai() for m in list(context)[-ROUTER_CONTEXT_MESSAGES:]),
                {"role": "user", "content": message},
            ]
            response = (await self._gateway.generate(messages, max_tokens=self._max_tokens)).strip()

            result = _parse_json_verdict(response)
            path = "json"
            if result is None:
                result = _classify_by_keywords(message, response)
                path = "keyword"
        except Exception as e:
            logger.error(f"Router classification error: {e}", exc_info=True)
            result = RouterResult(agent="support", confidence=0.5, reasoning=ROUTER_ERROR_REASONING)
            path = "error"

        router_decisions_total.labels(agent=result.agent, path=path).inc()
        logger.info(f"Routed message to {result.agent} ({result.confidence:.2f}, {path})", agent_type=result.agent)
        return result
