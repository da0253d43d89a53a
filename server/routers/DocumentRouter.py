"""Document router: ingestion, re-indexing and deletion of knowledge documents."""

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from server.dependencies.auth import verify_api_key
from server.models.requests import ReindexDocumentRequest, StoreDocumentRequest
from server.models.responses import DocumentStoredResponse, IndexStatsResponse
from shared.exceptions import RetrievalBridgeError
from shared.models.document import DocumentStatus, KnowledgeDocument

router = APIRouter(prefix="/documents", tags=["Documents"], dependencies=[Depends(verify_api_key)])


@router.post("")
async def store_document(request: Request, body: StoreDocumentRequest) -> JSONResponse:
    """Chunk, embed and index a document, and register it for keyword search.

    A document whose chunks could not be indexed is still registered, with
    status ERROR, so it stays reachable through the keyword search.

    Raises:
        HTTPException: 502 if the vector index rejects or cannot receive the chunks.
    """
    state = request.app.state
    state.logging.info("Storing document id=%d for bot %d ('%s').", body.document_id, body.bot_id, body.title)
    try:
        chunks = await state.document_service.do_store_document(body.bot_id, body.document_id, body.title, body.content)
    except (httpx.HTTPError, RetrievalBridgeError) as e:
        await _register(request, body.bot_id, body.document_id, body.title, body.content, DocumentStatus.ERROR)
        raise HTTPException(status_code=502, detail=f"Vector index unavailable: {e}")
    await _register(request, body.bot_id, body.document_id, body.title, body.content, DocumentStatus.INDEXED)
    return JSONResponse(content=DocumentStoredResponse(documentId=body.document_id, chunks=chunks).model_dump(by_alias=True))


@router.post("/{document_id}/reindex")
async def reindex_document(request: Request, document_id: int, body: ReindexDocumentRequest) -> JSONResponse:
    """Delete all chunks of a document and index its current content again."""
    state = request.app.state
    try:
        chunks = await state.document_service.do_reindex_document(body.bot_id, document_id, body.title, body.content)
    except (httpx.HTTPError, RetrievalBridgeError) as e:
        raise HTTPException(status_code=502, detail=f"Vector index unavailable: {e}")
    await _register(request, body.bot_id, document_id, body.title, body.content, DocumentStatus.INDEXED)
    return JSONResponse(content=DocumentStoredResponse(documentId=document_id, chunks=chunks).model_dump(by_alias=True))


@router.delete("/{document_id}")
async def delete_document(request: Request, document_id: int) -> JSONResponse:
    """Remove a document from the vector index and the keyword search."""
    state = request.app.state
    try:
        await state.document_service.do_delete_document(document_id)
    except (httpx.HTTPError, RetrievalBridgeError) as e:
        raise HTTPException(status_code=502, detail=f"Vector index unavailable: {e}")
    await state.document_repository.do_delete_document(document_id)
    return JSONResponse(content={"documentId": document_id, "deleted": True})


@router.get("/stats")
async def document_stats(request: Request) -> JSONResponse:
    """Record count and dimensionality of the vector index."""
    stats = await request.app.state.document_service.do_get_document_stats()
    if stats is None:
        raise HTTPException(status_code=503, detail="Vector index unavailable")
    response = IndexStatsResponse(totalRecordCount=stats.total_record_count, dimension=stats.dimension)
    return JSONResponse(content=response.model_dump(by_alias=True))


async def _register(request: Request, bot_id: int, document_id: int, title: str, content: str, status: DocumentStatus) -> None:
    document = KnowledgeDocument(id=document_id, botId=bot_id, title=title, content=content, status=status)
    await request.app.state.document_repository.do_save_document(document)
