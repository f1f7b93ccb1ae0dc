"""
Chat endpoints (v1).

Sends a user message through the router and the chosen specialist agent,
streaming the reply as plain text, and exposes conversation history.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Path
from fastapi.responses import StreamingResponse

from api.dependencies import Chat, Conversations
from api.middleware.auth import get_current_user
from api.middleware.exception_handlers import (
    AppException,
    ConversationNotFoundError,
    ModelServiceError,
    ValidationException,
    classify_llm_error,
)
from api.middleware.request_context import update_request_context
from core.constants import (
    AGENT_TYPE_HEADER,
    CONVERSATION_ID_HEADER,
    EMPTY_RESPONSE_FALLBACK,
    ERROR_MARKER_TEMPLATE,
    ERROR_MESSAGE_REQUIRED,
    PHASE_RESPONDING_MARKER,
    PHASE_ROUTING_MARKER,
)
from models.chat_models import HistoryMessage
from models.error_models import StreamErrorPayload
from models.schemas.auth import UserInfo
from models.schemas.chat import (
    ConversationDetailResponse,
    ConversationInfo,
    ConversationListResponse,
    DeleteConversationResponse,
    MessageInfo,
    SendMessageRequest,
)
from utils.logger import logger
from utils.metrics import llm_errors_total

router = APIRouter()

# Type alias for authenticated user dependency
CurrentUser = Annotated[UserInfo, Depends(get_current_user)]

ConversationIdPath = Annotated[
    UUID,
    Path(..., description="Conversation identifier"),
]


async def stream_with_markers(text_stream: AsyncIterator[str]) -> AsyncIterator[str]:
    """Frame an agent reply with phase markers and report failures in-band.

    Headers are already sent by the time fragments flow, so a failure
    mid-stream becomes an error marker rather than a status code.
    """
    yield PHASE_ROUTING_MARKER
    yield PHASE_RESPONDING_MARKER

    chunk_count = 0
    try:
        async for chunk in text_stream:
            chunk_count += 1
            yield chunk

        if chunk_count == 0:
            yield EMPTY_RESPONSE_FALLBACK
        logger.info(f"Stream finished after {chunk_count} chunks")
    except Exception as e:
        classified = classify_llm_error(e)
        llm_errors_total.labels(error_type=classified.error_type.value).inc()
        logger.error(f"Stream error ({classified.error_type.value}): {e}", exc_info=True)
        payload = StreamErrorPayload(error_type=classified.error_type, message=classified.message)
        yield ERROR_MARKER_TEMPLATE.format(payload=payload.to_json())


@router.post(
    "/messages",
    response_class=StreamingResponse,
    summary="Send message",
    description=(
        "Route a message to the best specialist agent and stream the reply as text/plain. "
        "The body starts with routing and responding phase markers; a mid-stream failure "
        "ends with an error marker."
    ),
    responses={
        200: {
            "description": "Streamed assistant reply",
            "content": {"text/plain": {"example": "\n__PHASE:routing__\n\n__PHASE:responding__\nYour order ..."}},
        },
        404: {"description": "Conversation not found"},
    },
)
async def send_message(
    body: SendMessageRequest,
    user: CurrentUser,
    chat: Chat,
    conversations: Conversations,
) -> StreamingResponse:
    """Process a user message and stream the agent's reply."""
    message = body.message
    if not message.strip():
        raise ValidationException(ERROR_MESSAGE_REQUIRED)

    history: list[HistoryMessage] = []
    if body.conversation_id is not None:
        conversation = await conversations.get_conversation(user.id, body.conversation_id)
        if not conversation:
            raise ConversationNotFoundError(str(body.conversation_id))
        conversation_id = body.conversation_id
        history = await conversations.get_history(conversation_id)
    else:
        conversation = await conversations.create_conversation(user.id, message)
        conversation_id = UUID(conversation["id"])

    update_request_context(conversation_id=str(conversation_id))

    try:
        result = await chat.process_message(
            message=message,
            user_id=user.id,
            conversation_id=conversation_id,
            history=history,
        )
    except AppException:
        raise
    except Exception as e:
        raise ModelServiceError.from_exception(e) from e

    return StreamingResponse(
        stream_with_markers(result.text_stream),
        media_type="text/plain; charset=utf-8",
        headers={
            CONVERSATION_ID_HEADER: str(result.conversation_id),
            AGENT_TYPE_HEADER: result.agent_type,
            "Access-Control-Expose-Headers": f"{CONVERSATION_ID_HEADER}, {AGENT_TYPE_HEADER}",
        },
    )


@router.get(
    "/conversations",
    response_model=ConversationListResponse,
    summary="List conversations",
    description="The current user's most recently updated conversations.",
)
async def list_conversations(user: CurrentUser, conversations: Conversations) -> ConversationListResponse:
    """List conversations, newest activity first."""
    data = await conversations.list_conversations(user.id)
    return ConversationListResponse(conversations=[ConversationInfo(**c) for c in data])


@router.get(
    "/conversations/{conversation_id}",
    response_model=ConversationDetailResponse,
    summary="Get conversation",
    description="Conversation metadata with its latest messages, oldest first.",
    responses={404: {"description": "Conversation not found"}},
)
async def get_conversation(
    conversation_id: ConversationIdPath,
    user: CurrentUser,
    conversations: Conversations,
) -> ConversationDetailResponse:
    """Get a conversation with messages."""
    conversation = await conversations.get_conversation(user.id, conversation_id)
    if not conversation:
        raise ConversationNotFoundError(str(conversation_id))

    messages = await conversations.get_messages(conversation_id)
    return ConversationDetailResponse(
        conversation=ConversationInfo(**conversation),
        messages=[MessageInfo(**m) for m in messages],
    )


@router.delete(
    "/conversations/{conversation_id}",
    response_model=DeleteConversationResponse,
    summary="Delete conversation",
    description="Delete a conversation and all of its messages.",
    responses={404: {"description": "Conversation not found"}},
)
async def delete_conversation(
    conversation_id: ConversationIdPath,
    user: CurrentUser,
    conversations: Conversations,
) -> DeleteConversationResponse:
    """Delete a conversation owned by the current user."""
    deleted = await conversations.delete_conversation(user.id, conversation_id)
    if not deleted:
        raise ConversationNotFoundError(str(conversation_id))
    return DeleteConversationResponse(success=True)
