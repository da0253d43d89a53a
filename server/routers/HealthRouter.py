"""Health router."""

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from server.models.responses import HealthResponse

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health(request: Request) -> JSONResponse:
    """Liveness probe with the configured engine names. Does not require an API key."""
    state = request.app.state
    engines = {"rag": state.rag_client.get_engine_name(), "llm": state.llm_client.get_engine_name()}
    engines["embed"] = state.embed_client.get_engine_name() if state.embed_client else "fallback"
    response = HealthResponse(status="ok", version=state.app_version, engines=engines)
    return JSONResponse(content=response.model_dump())
