"""Conversation router: message indexing, history, semantic search and deletion."""

import uuid
from datetime import datetime

import httpx
import pytz
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from server.dependencies.auth import verify_api_key
from server.models.requests import StoreMessageRequest
from server.models.responses import ConversationMessagesResponse, ConversationSummaryResponse, MessageStoredResponse
from shared.exceptions import RetrievalBridgeError
from shared.models.conversation import ChatMessage

router = APIRouter(prefix="/conversations", tags=["Conversations"], dependencies=[Depends(verify_api_key)])


@router.post("/messages")
async def store_message(request: Request, body: StoreMessageRequest) -> JSONResponse:
    """Embed and index one chat message."""
    message = ChatMessage(
        id=body.id or uuid.uuid4().hex,
        conversationId=body.conversation_id,
        botId=body.bot_id,
        userId=body.user_id,
        role=body.role,
        content=body.content,
        timestamp=body.timestamp or datetime.now(pytz.utc).isoformat(),
        metadata=body.metadata,
    )
    try:
        record_id = await request.app.state.conversation_service.do_store_chat_message(message)
    except (httpx.HTTPError, RetrievalBridgeError) as e:
        raise HTTPException(status_code=502, detail=f"Vector index unavailable: {e}")
    return JSONResponse(content=MessageStoredResponse(recordId=record_id).model_dump(by_alias=True))


@router.get("/vector")
async def conversation_vector(
    request: Request,
    conversation_id: str | None = Query(default=None, alias="conversationId"),
    bot_id: int | None = Query(default=None, alias="botId"),
    user_id: int | None = Query(default=None, alias="userId"),
    query: str | None = None,
    limit: int = Query(default=10, ge=1, le=1000),
) -> JSONResponse:
    """Read stored messages.

    - conversationId: the conversation's history, oldest first.
    - botId + userId + query: relevant messages for that user (with filter relaxation).
    - botId + query: relevant messages across all of the bot's conversations.

    Raises:
        HTTPException: 400 if none of the parameter combinations is given.
    """
    service = request.app.state.conversation_service
    if conversation_id:
        messages = await service.do_get_conversation_history(conversation_id, limit)
    elif bot_id is not None and user_id is not None and query:
        messages = await service.do_search_conversation_context(bot_id, user_id, query, limit)
    elif bot_id is not None and query:
        messages = await service.do_search_bot_conversations(bot_id, query, limit)
    else:
        raise HTTPException(
            status_code=400,
            detail="Provide either conversationId or (botId + userId + query) or (botId + query)",
        )
    response = ConversationMessagesResponse(messages=messages, total=len(messages))
    return JSONResponse(content=response.model_dump(by_alias=True, mode="json"))


@router.get("/{conversation_id}/summary")
async def conversation_summary(
    request: Request, conversation_id: str, max_messages: int = Query(default=10, ge=1, le=100, alias="maxMessages")
) -> JSONResponse:
    """Plain-text digest of the latest messages of a conversation."""
    summary = await request.app.state.conversation_service.do_get_conversation_summary(conversation_id, max_messages)
    response = ConversationSummaryResponse(conversationId=conversation_id, summary=summary)
    return JSONResponse(content=response.model_dump(by_alias=True))


@router.delete("/{conversation_id}")
async def delete_conversation(request: Request, conversation_id: str) -> JSONResponse:
    """Delete every indexed message of a conversation."""
    try:
        await request.app.state.conversation_service.do_delete_conversation(conversation_id)
    except (httpx.HTTPError, RetrievalBridgeError) as e:
        raise HTTPException(status_code=502, detail=f"Vector index unavailable: {e}")
    return JSONResponse(content={
        "conversationId": conversation_id,
        "message": f"Conversation {conversation_id} deleted from vector database",
    })
