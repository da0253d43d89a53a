"""Tests for document ingestion and search."""

import pytest

from services.retrieval.DocumentRetrievalService import match_to_search_result
from shared.clients.rag.models.VectorPoint import RECORD_TYPE_DOCUMENT, QueryMatch, VectorRecord
from shared.models.document import ResultSource
from shared.models.search import DegradedReason

LONG_TEXT = " ".join(f"Paragraph {i} explains shipping rule {i}." for i in range(200))


class TestStoreDocument:
    @pytest.mark.asyncio
    async def test_round_trip(self, document_service):
        stored = await document_service.do_store_document(1, 10, "People", "Alice. Bob. Carol.")
        assert stored == 1

        results = await document_service.do_search_documents(1, "Alice", 5)
        assert len(results) == 1
        assert "Alice" in results[0].content
        assert results[0].title == "People"
        assert results[0].document_id == 10
        assert results[0].source == ResultSource.VECTOR
        assert 0.0 <= results[0].score <= 1.0

    @pytest.mark.asyncio
    async def test_chunk_records_and_metadata(self, document_service, rag_client):
        count = await document_service.do_store_document(2, 20, "Shipping", LONG_TEXT)
        assert count > 1
        assert sorted(rag_client.records) == sorted(f"doc_20_chunk_{i}" for i in range(count))

        for i in range(count):
            metadata = rag_client.records[f"doc_20_chunk_{i}"].metadata
            assert metadata["botId"] == 2
            assert metadata["documentId"] == 20
            assert metadata["title"] == "Shipping"
            assert metadata["chunkIndex"] == i
            assert metadata["totalChunks"] == count
            assert metadata["recordType"] == RECORD_TYPE_DOCUMENT
            assert metadata["content"]
            assert metadata["timestamp"]

    @pytest.mark.asyncio
    async def test_empty_content_writes_nothing(self, document_service, rag_client):
        assert await document_service.do_store_document(1, 11, "Empty", "   ") == 0
        assert rag_client.records == {}

    @pytest.mark.asyncio
    async def test_index_failure_propagates(self, document_service, rag_client):
        rag_client.fail = True
        with pytest.raises(Exception):
            await document_service.do_store_document(1, 12, "Doc", "Some content.")

    @pytest.mark.asyncio
    async def test_custom_chunk_size_from_env(self, helper_config, rag_client, embedding_service, monkeypatch):
        from services.retrieval.DocumentRetrievalService import DocumentRetrievalService

        monkeypatch.setenv("CHUNK_SIZE", "200")
        monkeypatch.setenv("CHUNK_OVERLAP", "20")
        service = DocumentRetrievalService(helper_config, rag_client, embedding_service)
        count = await service.do_store_document(1, 13, "Doc", LONG_TEXT)
        assert count > len(LONG_TEXT) // 200


class TestSearchDocuments:
    @pytest.mark.asyncio
    async def test_scoped_to_bot(self, document_service):
        await document_service.do_store_document(1, 10, "Mine", "Alice likes tea.")
        await document_service.do_store_document(2, 11, "Other", "Alice likes coffee.")
        results = await document_service.do_search_documents(1, "Alice", 5)
        assert [r.document_id for r in results] == [10]

    @pytest.mark.asyncio
    async def test_ignores_conversation_records(self, document_service, rag_client):
        await document_service.do_store_document(1, 10, "Doc", "Alice likes tea.")
        await document_service.do_search_documents(1, "Alice", 5)
        assert rag_client.queries[-1] == {"botId": 1, "recordType": RECORD_TYPE_DOCUMENT}

    @pytest.mark.asyncio
    async def test_index_failure_returns_empty(self, document_service, rag_client):
        rag_client.fail = True
        assert await document_service.do_search_documents(1, "anything", 5) == []

    @pytest.mark.asyncio
    async def test_outcome_reports_degraded(self, document_service, rag_client):
        rag_client.fail = True
        outcome = await document_service.do_search_documents_outcome(1, "anything", 5)
        assert outcome.degraded is True
        assert outcome.reason == DegradedReason.INDEX_UNAVAILABLE
        assert outcome.results == []

    @pytest.mark.asyncio
    async def test_unreadable_match_is_degraded(self, document_service, rag_client):
        rag_client.records["doc_1_chunk_0"] = VectorRecord(
            id="doc_1_chunk_0", values=[1.0] + [0.0] * 511,
            metadata={"botId": 1, "recordType": RECORD_TYPE_DOCUMENT, "documentId": [1]},
        )
        outcome = await document_service.do_search_documents_outcome(1, "anything", 5)
        assert outcome.reason == DegradedReason.INDEX_UNAVAILABLE
        assert await document_service.do_search_documents(1, "anything", 5) == []

    @pytest.mark.asyncio
    async def test_outcome_empty_is_not_degraded(self, document_service):
        outcome = await document_service.do_search_documents_outcome(1, "anything", 5)
        assert outcome.degraded is False
        assert outcome.results == []

    @pytest.mark.asyncio
    async def test_provider_failure_still_searches(self, document_service, embed_client):
        embed_client.fail = True
        await document_service.do_store_document(1, 10, "People", "Alice. Bob. Carol.")
        results = await document_service.do_search_documents(1, "Alice", 5)
        assert len(results) == 1

    @pytest.mark.asyncio
    async def test_limit_truncates(self, document_service):
        await document_service.do_store_document(1, 20, "Shipping", LONG_TEXT)
        results = await document_service.do_search_documents(1, "shipping rule", 3)
        assert len(results) == 3
        assert [r.score for r in results] == sorted((r.score for r in results), reverse=True)

    def test_scores_are_clamped(self):
        high = match_to_search_result(QueryMatch(id="doc_1_chunk_0", score=1.0000002, metadata={"documentId": 1}))
        low = match_to_search_result(QueryMatch(id="doc_1_chunk_0", score=-0.3, metadata={"documentId": 1}))
        assert high.score == 1.0
        assert low.score == 0.0
        assert high.relevance == "high"
        assert low.relevance == "low"


class TestDeleteAndReindex:
    @pytest.mark.asyncio
    async def test_delete_removes_all_chunks(self, document_service, rag_client):
        await document_service.do_store_document(1, 20, "Shipping", LONG_TEXT)
        await document_service.do_store_document(1, 21, "Other", "Keep me.")
        await document_service.do_delete_document(20)
        assert list(rag_client.records) == ["doc_21_chunk_0"]

    @pytest.mark.asyncio
    async def test_store_does_not_prune_stale_chunks(self, document_service, rag_client):
        first = await document_service.do_store_document(1, 20, "Shipping", LONG_TEXT)
        await document_service.do_store_document(1, 20, "Shipping", "Now short.")
        assert len(rag_client.records) == first

    @pytest.mark.asyncio
    async def test_reindex_replaces_chunks(self, document_service, rag_client):
        await document_service.do_store_document(1, 20, "Shipping", LONG_TEXT)
        count = await document_service.do_reindex_document(1, 20, "Shipping", "Now short.")
        assert count == 1
        assert list(rag_client.records) == ["doc_20_chunk_0"]
        assert rag_client.records["doc_20_chunk_0"].metadata["totalChunks"] == 1

    @pytest.mark.asyncio
    async def test_stats(self, document_service, rag_client):
        await document_service.do_store_document(1, 10, "People", "Alice. Bob. Carol.")
        stats = await document_service.do_get_document_stats()
        assert stats.total_record_count == 1
        assert stats.dimension == 512

        rag_client.fail = True
        assert await document_service.do_get_document_stats() is None
