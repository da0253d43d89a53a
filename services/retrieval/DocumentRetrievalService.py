"""Document ingestion and search against the vector index.

Ingestion: chunk → embed every chunk → one batch upsert.
Search:    embed query → filtered similarity query on botId → ranked chunks.
"""

from datetime import datetime

import httpx
import pytz

from services.retrieval.EmbeddingService import EmbeddingService
from services.retrieval.TextChunker import CHUNK_OVERLAP, CHUNK_SIZE, split_into_chunks
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import (
    RECORD_TYPE_DOCUMENT,
    RECORD_TYPE_KEY,
    IndexStats,
    QueryMatch,
    VectorRecord,
)
from shared.helper.HelperConfig import HelperConfig
from shared.models.document import DocumentChunk, DocumentSearchResult, ResultSource, make_chunk_id
from shared.models.search import DegradedReason, RetrievalOutcome


def _clamp_score(score: float) -> float:
    return min(1.0, max(0.0, score))


def match_to_search_result(match: QueryMatch) -> DocumentSearchResult:
    """Map an index match of a document chunk to a search result."""
    metadata = match.metadata
    return DocumentSearchResult(
        id=match.id,
        score=_clamp_score(match.score),
        documentId=int(metadata.get("documentId") or 0),
        title=metadata.get("title") or "",
        content=metadata.get("content") or "",
        chunkIndex=int(metadata.get("chunkIndex") or 0),
        totalChunks=int(metadata.get("totalChunks") or 1),
        metadata=metadata,
        source=ResultSource.VECTOR,
    )


class DocumentRetrievalService:
    """Stores document chunks in the vector index and searches them per bot."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embedding_service: EmbeddingService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._embedding_service = embedding_service
        self.chunk_size = helper_config.get_int_val("CHUNK_SIZE", default=CHUNK_SIZE)
        self.chunk_overlap = helper_config.get_int_val("CHUNK_OVERLAP", default=CHUNK_OVERLAP)

    ##########################################
    ############### INGESTION ################
    ##########################################

    async def do_store_document(self, bot_id: int, document_id: int, title: str, content: str) -> int:
        """Chunk, embed and upsert a document.

        All chunks are embedded before anything is written, so an embedding
        problem never leaves a half-written document behind. Chunks left over
        from a previous, longer version of the document are not removed; use
        do_reindex_document for that.

        Args:
            bot_id (int): Owning bot.
            document_id (int): Document id.
            title (str): Document title, copied into every chunk.
            content (str): Extracted document text.

        Returns:
            int: Number of chunks written.

        Raises:
            ClientRequestError: If the index rejects the upsert.
            httpx.HTTPError: If the index cannot be reached.
        """
        chunks = split_into_chunks(content, self.chunk_size, self.chunk_overlap)
        if not chunks:
            self.logging.info("Document id=%s ('%s') has no content, nothing to store.", document_id, title)
            return 0

        vectors = await self._embedding_service.do_embed_many(chunks)

        timestamp = datetime.now(pytz.utc).isoformat()
        records: list[VectorRecord] = []
        for chunk_index, (chunk, vector) in enumerate(zip(chunks, vectors)):
            chunk_model = DocumentChunk(
                id=make_chunk_id(document_id, chunk_index),
                botId=bot_id,
                documentId=document_id,
                title=title,
                content=chunk,
                chunkIndex=chunk_index,
                totalChunks=len(chunks),
                timestamp=timestamp,
            )
            metadata = chunk_model.to_metadata()
            metadata[RECORD_TYPE_KEY] = RECORD_TYPE_DOCUMENT
            records.append(VectorRecord(id=chunk_model.id, values=vector, metadata=metadata))

        try:
            await self._rag_client.do_upsert_batch(records)
        except Exception as e:
            self.logging.error("Upsert failed for document id=%s (bot %s): %s", document_id, bot_id, e)
            raise

        self.logging.info("Stored document id=%s ('%s'): %d chunks upserted.", document_id, title, len(records))
        return len(records)

    async def do_reindex_document(self, bot_id: int, document_id: int, title: str, content: str) -> int:
        """Replace all chunks of a document: delete by documentId, then store.

        Returns:
            int: Number of chunks written.
        """
        await self.do_delete_document(document_id)
        return await self.do_store_document(bot_id, document_id, title, content)

    async def do_delete_document(self, document_id: int) -> None:
        """Delete every chunk of a document.

        Raises:
            ClientRequestError: If the index rejects the delete.
        """
        deleted = await self._rag_client.do_delete_by_filter(
            {"documentId": document_id, RECORD_TYPE_KEY: RECORD_TYPE_DOCUMENT}
        )
        if deleted is None:
            self.logging.info("Deleted chunks of document id=%s.", document_id)
        else:
            self.logging.info("Deleted %d chunks of document id=%s.", deleted, document_id)

    ##########################################
    ################ SEARCH ##################
    ##########################################

    async def do_search_documents_outcome(self, bot_id: int, query: str, limit: int = 5) -> RetrievalOutcome[DocumentSearchResult]:
        """Search a bot's document chunks and report whether the search could run.

        Args:
            bot_id (int): Bot whose documents are searched.
            query (str): Free-text query.
            limit (int): Maximum number of results.

        Returns:
            RetrievalOutcome[DocumentSearchResult]: Ranked results, or a degraded outcome with its reason.
        """
        try:
            vector = await self._embedding_service.do_embed(query)
            matches = await self._rag_client.do_query_by_vector(
                vector,
                filter={"botId": bot_id, RECORD_TYPE_KEY: RECORD_TYPE_DOCUMENT},
                top_k=limit,
            )
            results = [match_to_search_result(match) for match in matches[:limit]]
        except httpx.TimeoutException as e:
            self.logging.error("Document search timed out (bot %s, query '%s', stage: index query): %s", bot_id, query, e)
            return RetrievalOutcome[DocumentSearchResult].failed(DegradedReason.TIMEOUT)
        except Exception as e:
            self.logging.error("Document search failed (bot %s, query '%s', stage: index query): %s", bot_id, query, e)
            return RetrievalOutcome[DocumentSearchResult].failed(DegradedReason.INDEX_UNAVAILABLE)

        self.logging.debug("Document search for bot %s returned %d results.", bot_id, len(results))
        return RetrievalOutcome[DocumentSearchResult].ok(results)

    async def do_search_documents(self, bot_id: int, query: str, limit: int = 5) -> list[DocumentSearchResult]:
        """Search a bot's document chunks. Returns an empty list instead of raising."""
        outcome = await self.do_search_documents_outcome(bot_id, query, limit)
        return outcome.results

    async def do_get_document_stats(self) -> IndexStats | None:
        """Index statistics, or None when the index cannot be reached."""
        try:
            return await self._rag_client.do_describe_stats()
        except Exception as e:
            self.logging.error("Failed to read index stats: %s", e)
            return None
