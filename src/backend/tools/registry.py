"""
Tool registry for specialist agents.

A tool is a name, a description, a pydantic argument model (which doubles as
the JSON schema sent to the model) and an async handler. Registries are built
per request so handlers can close over the caller's user and conversation ids.

Tool execution never raises: unknown names, invalid arguments and handler
failures all come back as ``{"error": ...}`` JSON so the model can recover.
"""

from __future__ import annotations

import json
import time

from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from models.chat_models import ToolCallRecord
from utils.logger import logger
from utils.metrics import fallback_lookups_total, tool_call_duration_seconds, tool_calls_total

T = TypeVar("T")

ToolHandler = Callable[[Any], Awaitable[Any]]


class NoArguments(BaseModel):
    """Argument model for tools that take no parameters."""


@dataclass(frozen=True, slots=True)
class Tool:
    """A callable capability exposed to the model."""

    name: str
    description: str
    args_model: type[BaseModel]
    handler: ToolHandler

    def to_openai(self) -> dict[str, Any]:
        """Chat Completions ``tools`` entry for this tool."""
        schema = self.args_model.model_json_schema()
        schema.pop("title", None)
        schema.setdefault("properties", {})
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": schema,
            },
        }


def _dumps(payload: Any) -> str:
    return json.dumps(payload, default=str)


class ToolRegistry:
    """Name -> tool capability map with safe execution and a call log."""

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: dict[str, Tool] = {}
        self.call_log: list[ToolCallRecord] = []
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered")
        self._tools[tool.name] = tool

    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def to_openai_tools(self) -> list[dict[str, Any]]:
        return [tool.to_openai() for tool in self._tools.values()]

    async def execute(self, name: str, raw_arguments: str | dict[str, Any] | None) -> str:
        """Run a tool by name and return its result as a JSON string.

        Args:
            name: Tool name chosen by the model
            raw_arguments: JSON object text (as streamed by the model) or a dict
        """
        tool = self._tools.get(name)
        if tool is None:
            logger.warning(f"Model requested unknown tool: {name}", tool=name)
            tool_calls_total.labels(tool_name=name, status="error").inc()
            return _dumps({"error": f"Unknown tool: {name}", "available_tools": self.names()})

        try:
            arguments = self._decode_arguments(raw_arguments)
            args = tool.args_model.model_validate(arguments)
        except (ValueError, ValidationError) as e:
            self._record(name, {}, "error")
            logger.log_tool_call(name, {"raw": raw_arguments}, str(e), status="error")
            return _dumps({"error": f"Invalid arguments for {name}: {e}"})

        start_time = time.perf_counter()
        status = "success"
        try:
            result = await tool.handler(args)
        except Exception as e:
            status = "error"
            logger.error(f"Tool {name} failed: {e}", exc_info=True, tool=name)
            result = {"error": f"Tool {name} failed to execute. Please try again later."}
        finally:
            tool_call_duration_seconds.labels(tool_name=name).observe(time.perf_counter() - start_time)

        if status == "success" and isinstance(result, dict) and "error" in result:
            status = "error"

        arguments_dump = args.model_dump(mode="json")
        self._record(name, arguments_dump, status)
        logger.log_tool_call(name, arguments_dump, result, status=status)
        return _dumps(result)

    def _record(self, name: str, arguments: dict[str, Any], status: str) -> None:
        tool_calls_total.labels(tool_name=name, status=status).inc()
        self.call_log.append(ToolCallRecord(name=name, arguments=arguments, status=status))  # type: ignore[arg-type]

    @staticmethod
    def _decode_arguments(raw_arguments: str | dict[str, Any] | None) -> dict[str, Any]:
        if raw_arguments is None:
            return {}
        if isinstance(raw_arguments, dict):
            return raw_arguments
        if not raw_arguments.strip():
            return {}
        decoded = json.loads(raw_arguments)
        if not isinstance(decoded, dict):
            raise ValueError("arguments must be a JSON object")
        return decoded


# ============================================================================
# Two-tier lookup (primary store, then static fallback table)
# ============================================================================


class LookupTier(str, Enum):
    PRIMARY = "primary"
    FALLBACK = "fallback"
    MISS = "miss"


@dataclass(frozen=True, slots=True)
class LookupResult(Generic[T]):
    """Value found by a two-tier lookup and the tier that answered."""

    value: T | None
    tier: LookupTier

    @property
    def found(self) -> bool:
        return self.tier is not LookupTier.MISS


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, Sequence) and not isinstance(value, str) and len(value) == 0)


async def two_tier_lookup(
    table: str,
    primary: Callable[[], Awaitable[T | None]],
    fallback: Callable[[], T | None],
    *,
    fallback_on_error: bool = False,
) -> LookupResult[T]:
    """Query the primary store, then the static fallback table.

    An empty primary result (None or an empty sequence) falls through to the
    fallback. Primary errors propagate unless ``fallback_on_error`` is set.
    """
    try:
        value = await primary()
    except Exception as e:
        if not fallback_on_error:
            raise
        logger.warning(f"Primary lookup on {table} failed, using fallback: {e}")
        value = None

    if not _is_empty(value):
        fallback_lookups_total.labels(table=table, tier=LookupTier.PRIMARY.value).inc()
        return LookupResult(value, LookupTier.PRIMARY)

    value = fallback()
    tier = LookupTier.MISS if _is_empty(value) else LookupTier.FALLBACK
    fallback_lookups_total.labels(table=table, tier=tier.value).inc()
    return LookupResult(value if tier is LookupTier.FALLBACK else None, tier)
