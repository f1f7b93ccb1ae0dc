"""
Model gateway: the only component that talks to the model provider.

Two capabilities are exposed:

- ``generate``: one-shot completion on the lightweight router model, used for
  classification and conversation summaries.
- ``stream``: streamed completion on the agent model with an explicit, bounded
  tool loop. Text deltas are forwarded as they arrive; tool calls collected
  from a step are executed through the registry and fed back to the model for
  the next step. The loop ends when a step produces no tool calls or the step
  cap is reached, in which case the text produced so far stands.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from openai import AsyncOpenAI, AsyncStream

from utils.client_factory import create_provider_client
from utils.logger import logger
from utils.metrics import model_requests_total

if TYPE_CHECKING:
    from core.constants import Settings
    from tools.registry import ToolRegistry

ChatMessage = Mapping[str, Any]


@dataclass(slots=True)
class _PendingToolCall:
    """Tool call assembled from streamed deltas."""

    id: str = ""
    name: str = ""
    arguments: str = ""

    def to_message_entry(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments or "{}"},
        }


class ModelGateway:
    """Thin async wrapper over an OpenAI-compatible chat completions client."""

    def __init__(
        self,
        client: AsyncOpenAI,
        *,
        router_model: str,
        agent_model: str,
        max_tool_steps: int = 5,
    ):
        self._client = client
        self.router_model = router_model
        self.agent_model = agent_model
        self.max_tool_steps = max_tool_steps

    async def generate(
        self,
        messages: Sequence[ChatMessage],
        *,
        max_tokens: int | None = None,
        model: str | None = None,
    ) -> str:
        """Return the full text of a single non-streamed completion."""
        kwargs: dict[str, Any] = {
            "model": model or self.router_model,
            "messages": [dict(m) for m in messages],
        }
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        model_requests_total.labels(mode="generate").inc()
        response = await self._client.chat.completions.create(**kwargs)
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def stream(
        self,
        messages: Sequence[ChatMessage],
        *,
        tools: ToolRegistry | None = None,
        max_steps: int | None = None,
        model: str | None = None,
    ) -> AsyncIterator[str]:
        """Stream text deltas, running tool calls between steps.

        Args:
            messages: Prompt messages (system policy first)
            tools: Registry the model may call (None = plain streaming)
            max_steps: Cap on model round-trips (defaults to ``max_tool_steps``)
            model: Override for the agent model
        """
        conversation: list[dict[str, Any]] = [dict(m) for m in messages]
        step_cap = max_steps if max_steps is not None else self.max_tool_steps
        use_tools = tools is not None and len(tools) > 0

        for step in range(step_cap):
            kwargs: dict[str, Any] = {
                "model": model or self.agent_model,
                "messages": conversation,
                "stream": True,
            }
            if use_tools:
                kwargs["tools"] = tools.to_openai_tools()  # type: ignore[union-attr]
                kwargs["tool_choice"] = "auto"

            model_requests_total.labels(mode="stream_step").inc()
            response_stream = await self._client.chat.completions.create(**kwargs)

            text_parts: list[str] = []
            pending: dict[int, _PendingToolCall] = {}
            try:
                async for chunk in response_stream:
                    if not chunk.choices:
                        continue
                    delta = chunk.choices[0].delta
                    if delta.content:
                        text_parts.append(delta.content)
                        yield delta.content
                    for tool_call_delta in delta.tool_calls or []:
                        call = pending.setdefault(tool_call_delta.index, _PendingToolCall())
                        if tool_call_delta.id:
                            call.id = tool_call_delta.id
                        if tool_call_delta.function is not None:
                            if tool_call_delta.function.name:
                                call.name = tool_call_delta.function.name
                            if tool_call_delta.function.arguments:
                                call.arguments += tool_call_delta.function.arguments
            finally:
                if isinstance(response_stream, AsyncStream):
                    await response_stream.close()

            if not pending or not use_tools:
                return

            calls = [pending[index] for index in sorted(pending)]
            for position, call in enumerate(calls):
                if not call.id:
                    call.id = f"call_{step}_{position}"

            conversation.append(
                {
                    "role": "assistant",
                    "content": "".join(text_parts) or None,
                    "tool_calls": [call.to_message_entry() for call in calls],
                }
            )
            for call in calls:
                result = await tools.execute(call.name, call.arguments)  # type: ignore[union-attr]
                conversation.append({"role": "tool", "tool_call_id": call.id, "content": result})

        logger.warning(f"Tool loop stopped after reaching the cap of {step_cap} steps")

    async def aclose(self) -> None:
        await self._client.close()


def create_model_gateway(settings: Settings) -> ModelGateway:
    """Build the gateway for the configured provider."""
    models = settings.active_models
    logger.info(
        f"Model gateway using provider={settings.ai_provider} "
        f"router_model={models['router']} agent_model={models['agent']}"
    )
    return ModelGateway(
        create_provider_client(settings),
        router_model=models["router"],
        agent_model=models["agent"],
        max_tool_steps=settings.max_tool_steps,
    )
