"""Tests for the keyword document search."""

import pytest
import pytest_asyncio

from services.retrieval.KeywordSearchService import KeywordSearchService, extract_query_terms, token_overlap
from shared.models.document import KnowledgeDocument
from shared.models.search import MatchType

REFUNDS = KnowledgeDocument(
    id=1, botId=1, title="Refunds",
    content="Our refund policy allows returns within 30 days. Contact support for help.",
)
UPDATES = KnowledgeDocument(id=2, botId=1, title="Updates", content="Policy updates are published monthly.")
SHIPPING = KnowledgeDocument(id=3, botId=1, title="Shipping", content="Shipping takes five days.")
FOREIGN = KnowledgeDocument(id=4, botId=2, title="Other bot", content="Our refund policy is strict.")
BLANK = KnowledgeDocument(id=5, botId=1, title="Blank", content="   ")


@pytest_asyncio.fixture
async def seeded_repository(document_repository):
    for document in (REFUNDS, UPDATES, SHIPPING, FOREIGN, BLANK):
        await document_repository.do_save_document(document)
    return document_repository


class TestQueryTerms:
    def test_stop_words_and_short_words_removed(self):
        assert extract_query_terms("What is the refund policy?") == ["what", "refund", "policy"]

    def test_punctuation_only_words_dropped(self):
        assert extract_query_terms("refund ... !!!") == ["refund"]

    def test_token_overlap(self):
        assert token_overlap("refund policy", "our refund rules") == 0.5
        assert token_overlap("", "anything") == 0.0


class TestKeywordSearch:
    @pytest.mark.asyncio
    async def test_scores_and_ranks(self, keyword_service, seeded_repository):
        results = await keyword_service.do_search_documents(1, "refund policy", 5)

        assert [r.document.id for r in results] == [1, 2]
        exact, partial = results
        assert exact.match_type == MatchType.EXACT
        assert exact.relevance_score == pytest.approx(100 + 20 + 5)
        assert exact.matched_content == REFUNDS.content
        assert partial.match_type == MatchType.PARTIAL
        assert partial.relevance_score == pytest.approx(10 + 2.5)
        assert partial.matched_content == "Policy updates are published monthly"

    @pytest.mark.asyncio
    async def test_whole_words_only(self, keyword_service, document_repository):
        await document_repository.do_save_document(
            KnowledgeDocument(id=9, botId=1, title="Refunding", content="Refunding is slow.")
        )
        results = await keyword_service.do_search_documents(1, "refund policy", 5)
        assert results == []

    @pytest.mark.asyncio
    async def test_exact_match_context_window(self, keyword_service, document_repository):
        content = "a" * 400 + " refund policy " + "b" * 400
        await document_repository.do_save_document(KnowledgeDocument(id=9, botId=1, title="Long", content=content))
        [result] = await keyword_service.do_search_documents(1, "refund policy", 5)
        assert "refund policy" in result.matched_content
        assert len(result.matched_content) <= len("refund policy") + 200
        assert len(result.context) <= len(result.matched_content) + 300

    @pytest.mark.asyncio
    async def test_limit(self, keyword_service, seeded_repository):
        assert len(await keyword_service.do_search_documents(1, "refund policy", 1)) == 1

    @pytest.mark.asyncio
    async def test_no_documents(self, keyword_service):
        assert await keyword_service.do_search_documents(1, "refund", 5) == []

    @pytest.mark.asyncio
    async def test_repository_failure_returns_empty(self, helper_config):
        class BrokenRepository:
            async def do_get_documents_by_bot(self, bot_id):
                raise ConnectionError("database down")

        service = KeywordSearchService(helper_config, BrokenRepository())
        assert await service.do_search_documents(1, "refund", 5) == []
        detailed = await service.do_get_detailed_search_results(1, "refund")
        assert detailed.total_documents == 0
        assert detailed.results == []

    @pytest.mark.asyncio
    async def test_detailed_results(self, keyword_service, seeded_repository):
        detailed = await keyword_service.do_get_detailed_search_results(1, "refund policy")
        assert detailed.query == "refund policy"
        assert detailed.total_documents == 4
        assert detailed.summary.exact_matches == 1
        assert detailed.summary.partial_matches == 1
        assert detailed.summary.semantic_matches == 0
        assert detailed.summary.average_score == 68.75

    @pytest.mark.asyncio
    async def test_context_for_query(self, keyword_service, seeded_repository):
        context = await keyword_service.do_get_context_for_query(1, "refund policy")
        assert context.startswith("Relevant information from knowledge base:\n\n1. [EXACT MATCH] From \"Refunds\" (Score: 125):\n")
        assert "2. [PARTIAL MATCH] From \"Updates\" (Score: 12.5):\n" in context
        assert context.endswith("Search Summary: Found 1 exact matches, 1 partial matches, and 0 semantic matches.\n\n")

    @pytest.mark.asyncio
    async def test_context_for_query_empty(self, keyword_service, seeded_repository):
        assert await keyword_service.do_get_context_for_query(1, "zebra") == ""
