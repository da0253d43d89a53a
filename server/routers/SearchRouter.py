"""Search router: vector and keyword search over a bot's documents."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from server.dependencies.auth import verify_api_key
from server.models.requests import DocumentSearchRequest, KeywordSearchRequest
from server.models.responses import DocumentSearchResponse, KeywordSearchResponse, SearchResultItem

router = APIRouter(prefix="/search", tags=["Search"], dependencies=[Depends(verify_api_key)])


@router.post("/documents")
async def search_documents(request: Request, body: DocumentSearchRequest) -> JSONResponse:
    """Vector search over a bot's document chunks, with relevance labels.

    An unreachable index yields an empty result list rather than an error.
    """
    request.app.state.logging.info("Document search: bot=%d query=%r", body.bot_id, body.query[:80])
    results = await request.app.state.document_service.do_search_documents(body.bot_id, body.query, body.limit)
    response = DocumentSearchResponse(
        query=body.query,
        botId=body.bot_id,
        results=[SearchResultItem.from_result(result) for result in results],
        totalResults=len(results),
    )
    return JSONResponse(content=response.model_dump(by_alias=True))


@router.post("/keyword")
async def search_keyword(request: Request, body: KeywordSearchRequest) -> JSONResponse:
    """Keyword search: formatted prompt context plus the detailed per-document results."""
    keyword_service = request.app.state.keyword_service
    context = await keyword_service.do_get_context_for_query(body.bot_id, body.query)
    detailed = await keyword_service.do_get_detailed_search_results(body.bot_id, body.query, body.limit)
    response = KeywordSearchResponse(context=context, detailed=detailed)
    return JSONResponse(content=response.model_dump(by_alias=True, mode="json"))
