"""Tests for the conversation orchestrator."""

from __future__ import annotations

from collections.abc import AsyncIterator
from unittest.mock import AsyncMock, MagicMock, Mock
from uuid import UUID

import pytest

from api.services.chat_service import ChatService, resolve_agent_type
from api.services.context_compactor import ContextCompactor
from api.services.conversation_service import ConversationService
from core.agents import AgentExecutionResult, BaseAgent
from core.router import RouterAgent
from models.chat_models import HistoryMessage, RouterResult, ToolCallRecord
from tools.registry import ToolRegistry

USER_ID = UUID("00000000-0000-0000-0000-000000000001")
CONVERSATION_ID = UUID("00000000-0000-0000-0000-000000000002")


async def fragments(*chunks: str) -> AsyncIterator[str]:
    for chunk in chunks:
        yield chunk


async def failing_after(*chunks: str) -> AsyncIterator[str]:
    for chunk in chunks:
        yield chunk
    raise RuntimeError("429 rate limit")


def make_agent(agent_type: str, stream: AsyncIterator[str], call_log: list[ToolCallRecord] | None = None) -> Mock:
    tools = ToolRegistry()
    tools.call_log.extend(call_log or [])
    agent = Mock(spec=BaseAgent)
    agent.agent_type = agent_type
    agent.execute = Mock(return_value=AgentExecutionResult(text_stream=stream, tools=tools))
    return agent


@pytest.fixture
def store() -> Mock:
    store = Mock(spec=ConversationService)
    store.add_message = AsyncMock(return_value={})
    store.touch_conversation = AsyncMock()
    return store


@pytest.fixture
def router() -> Mock:
    router = Mock(spec=RouterAgent)
    router.classify = AsyncMock(return_value=RouterResult(agent="order", confidence=0.9, reasoning="order"))
    return router


@pytest.fixture
def compactor() -> Mock:
    compactor = Mock(spec=ContextCompactor)
    compactor.compact = AsyncMock(side_effect=lambda history: history)
    return compactor


@pytest.mark.parametrize(
    ("routed", "expected"),
    [("order", "order"), ("billing", "billing"), ("support", "support"), ("fallback", "support")],
)
def test_resolve_agent_type(routed: str, expected: str) -> None:
    assert resolve_agent_type(routed) == expected  # type: ignore[arg-type]


class TestProcessMessage:
    @pytest.mark.asyncio
    async def test_persists_user_message_before_streaming(
        self, store: Mock, router: Mock, compactor: Mock
    ) -> None:
        order_agent = make_agent("order", fragments("Hi"))
        service = ChatService(store, router, compactor, {"order": order_agent})

        result = await service.process_message(
            message="Where is my order?", user_id=USER_ID, conversation_id=CONVERSATION_ID, history=[]
        )

        assert result.agent_type == "order"
        assert result.conversation_id == CONVERSATION_ID
        store.add_message.assert_awaited_once_with(CONVERSATION_ID, "user", "Where is my order?")

    @pytest.mark.asyncio
    async def test_fallback_routes_to_support(self, store: Mock, router: Mock, compactor: Mock) -> None:
        router.classify.return_value = RouterResult(agent="fallback", confidence=0.2)
        support_agent = make_agent("support", fragments("Hello"))
        service = ChatService(store, router, compactor, {"support": support_agent})

        result = await service.process_message(
            message="hmm", user_id=USER_ID, conversation_id=CONVERSATION_ID, history=[]
        )

        assert result.agent_type == "support"
        support_agent.execute.assert_called_once()

    @pytest.mark.asyncio
    async def test_agent_receives_compacted_history_and_new_message(
        self, store: Mock, router: Mock, compactor: Mock
    ) -> None:
        summary = HistoryMessage(role="system", content="summary")
        compactor.compact.side_effect = None
        compactor.compact.return_value = [summary]
        order_agent = make_agent("order", fragments("ok"))
        service = ChatService(store, router, compactor, {"order": order_agent})
        history = [HistoryMessage(role="user", content=f"old {i}") for i in range(20)]

        await service.process_message(
            message="and now?", user_id=USER_ID, conversation_id=CONVERSATION_ID, history=history
        )

        router.classify.assert_awaited_once_with("and now?", [summary])
        params = order_agent.execute.call_args.args[0]
        assert params.user_id == USER_ID
        assert params.conversation_id == CONVERSATION_ID
        assert list(params.conversation_history) == [summary, HistoryMessage(role="user", content="and now?")]

    @pytest.mark.asyncio
    async def test_complete_stream_persists_assistant_reply_once(
        self, store: Mock, router: Mock, compactor: Mock
    ) -> None:
        record = ToolCallRecord(name="get_latest_order", arguments={}, status="success")
        order_agent = make_agent("order", fragments("Your order ", "has shipped."), [record])
        service = ChatService(store, router, compactor, {"order": order_agent})

        result = await service.process_message(
            message="Where is my order?", user_id=USER_ID, conversation_id=CONVERSATION_ID, history=[]
        )
        chunks = [chunk async for chunk in result.text_stream]

        assert chunks == ["Your order ", "has shipped."]
        assert store.add_message.await_count == 2
        store.add_message.assert_awaited_with(
            CONVERSATION_ID,
            "assistant",
            "Your order has shipped.",
            agent_type="order",
            tool_calls=[record],
        )
        store.touch_conversation.assert_awaited_once_with(CONVERSATION_ID)

        # An exhausted stream yields nothing more and writes nothing more
        assert [chunk async for chunk in result.text_stream] == []
        assert store.add_message.await_count == 2
        store.touch_conversation.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_nothing_persisted_until_stream_consumed(
        self, store: Mock, router: Mock, compactor: Mock
    ) -> None:
        service = ChatService(store, router, compactor, {"order": make_agent("order", fragments("x"))})

        await service.process_message(message="hi", user_id=USER_ID, conversation_id=CONVERSATION_ID, history=[])

        # Only the user message so far
        assert store.add_message.await_count == 1
        store.touch_conversation.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_stream_is_not_persisted(self, store: Mock, router: Mock, compactor: Mock) -> None:
        service = ChatService(store, router, compactor, {"order": make_agent("order", failing_after("partial"))})

        result = await service.process_message(
            message="hi", user_id=USER_ID, conversation_id=CONVERSATION_ID, history=[]
        )
        received: list[str] = []
        with pytest.raises(RuntimeError, match="429"):
            async for chunk in result.text_stream:
                received.append(chunk)

        assert received == ["partial"]
        assert store.add_message.await_count == 1
        store.touch_conversation.assert_not_called()

    @pytest.mark.asyncio
    async def test_abandoned_stream_is_not_persisted(self, store: Mock, router: Mock, compactor: Mock) -> None:
        service = ChatService(store, router, compactor, {"order": make_agent("order", fragments("a", "b", "c"))})

        result = await service.process_message(
            message="hi", user_id=USER_ID, conversation_id=CONVERSATION_ID, history=[]
        )
        stream = result.text_stream
        assert await stream.__anext__() == "a"
        await stream.aclose()  # type: ignore[attr-defined]

        assert store.add_message.await_count == 1

    @pytest.mark.asyncio
    async def test_whitespace_reply_is_not_persisted(self, store: Mock, router: Mock, compactor: Mock) -> None:
        service = ChatService(store, router, compactor, {"order": make_agent("order", fragments("  ", "\n"))})

        result = await service.process_message(
            message="hi", user_id=USER_ID, conversation_id=CONVERSATION_ID, history=[]
        )
        chunks = [chunk async for chunk in result.text_stream]

        assert chunks == ["  ", "\n"]
        assert store.add_message.await_count == 1

    @pytest.mark.asyncio
    async def test_escalation_is_logged(
        self, store: Mock, router: Mock, compactor: Mock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        mock_logger = MagicMock()
        monkeypatch.setattr("api.services.chat_service.logger", mock_logger)
        reply = "I can't help.\n---ESCALATE---\nA human will reach out.\n---END_ESCALATE---"
        service = ChatService(store, router, compactor, {"order": make_agent("order", fragments(reply))})

        result = await service.process_message(
            message="hi", user_id=USER_ID, conversation_id=CONVERSATION_ID, history=[]
        )
        _ = [chunk async for chunk in result.text_stream]

        # The raw reply (markers included) is what gets stored
        assert store.add_message.await_args.args[2] == reply
        mock_logger.info.assert_any_call("Agent requested human escalation", agent_type="order")
        mock_logger.log_chat_turn.assert_called_once()
        assert mock_logger.log_chat_turn.call_args.kwargs["conversation_id"] == str(CONVERSATION_ID)
