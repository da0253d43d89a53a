"""Chat router: one retrieval-augmented chat turn."""

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from server.dependencies.auth import verify_api_key
from shared.exceptions import CompletionFailure
from shared.models.chat import ChatTurnRequest

router = APIRouter(tags=["Chat"])


@router.post("/chat", dependencies=[Depends(verify_api_key)])
async def chat(request: Request, body: ChatTurnRequest) -> JSONResponse:
    """Answer a chat turn with document and conversation context.

    Raises:
        HTTPException: 500 if the completion provider fails. The cause is only logged.
    """
    request.app.state.logging.info(
        "Chat turn: bot=%d user=%d conversation=%s", body.bot_id, body.user_id, body.conversation_id
    )
    try:
        result = await request.app.state.chat_service.do_chat(body)
    except CompletionFailure:
        raise HTTPException(status_code=500, detail="Internal server error")
    return JSONResponse(content=result.model_dump(by_alias=True, mode="json"))
