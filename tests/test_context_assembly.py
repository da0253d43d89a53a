"""Tests for chat-turn context assembly."""

import asyncio

import pytest

from services.retrieval.ContextAssemblyService import (
    DEFAULT_SYSTEM_PROMPT,
    ContextAssemblyService,
    keyword_results_to_search_results,
)
from services.retrieval.PromptBuilder import CONVERSATION_HEADER, DOCUMENT_HEADER, DOCUMENT_INSTRUCTIONS
from shared.models.chat import DocumentPath, PromptMessage, PromptRole
from shared.models.conversation import ChatMessage, MessageRole
from shared.models.document import KnowledgeDocument, ResultSource
from shared.models.search import DegradedReason, KeywordSearchResult, MatchType


def _user(text: str) -> PromptMessage:
    return PromptMessage(role=PromptRole.USER, content=text)


@pytest.fixture
def context_service(helper_config, document_service, conversation_service, keyword_service) -> ContextAssemblyService:
    return ContextAssemblyService(helper_config, document_service, conversation_service, keyword_service)


class TestVectorPath:
    @pytest.mark.asyncio
    async def test_documents_in_prompt(self, context_service, document_service):
        await document_service.do_store_document(1, 10, "People", "Alice. Bob. Carol.")
        messages = [
            PromptMessage(role=PromptRole.SYSTEM, content="old system prompt"),
            _user("Who is Alice?"),
        ]
        context = await context_service.do_assemble_context("You are the People bot.", messages, 1, 7)

        system_messages = [m for m in context.augmented_messages if m.role == PromptRole.SYSTEM]
        assert len(system_messages) == 1
        assert context.augmented_messages[0].role == PromptRole.SYSTEM
        prompt = context.augmented_messages[0].content
        assert prompt.startswith("You are the People bot.")
        assert DOCUMENT_HEADER in prompt
        assert "Alice. Bob. Carol." in prompt
        assert DOCUMENT_INSTRUCTIONS in prompt
        assert "old system prompt" not in prompt
        assert context.augmented_messages[1:] == messages[1:]

        assert context.diagnostics.document_path == DocumentPath.VECTOR
        assert context.diagnostics.document_count == 1
        assert 0.0 <= context.diagnostics.document_average_score <= 1.0
        assert context.diagnostics.document_degraded_reason is None

    @pytest.mark.asyncio
    async def test_default_system_prompt(self, context_service):
        context = await context_service.do_assemble_context(None, [_user("hello")], 1, 7)
        assert context.system_prompt == DEFAULT_SYSTEM_PROMPT
        assert context.diagnostics.document_path == DocumentPath.NONE

    @pytest.mark.asyncio
    async def test_conversation_context_sorted(self, context_service, conversation_service):
        for message_id, content, ts in (("m2", "my order is 42", "2024-05-01T10:01:00Z"),
                                        ("m1", "order question", "2024-05-01T10:00:00Z")):
            await conversation_service.do_store_chat_message(ChatMessage(
                id=message_id, conversationId="c1", botId=1, userId=7,
                role=MessageRole.USER, content=content, timestamp=ts,
            ))
        context = await context_service.do_assemble_context("Bot.", [_user("order")], 1, 7)

        prompt = context.system_prompt
        assert CONVERSATION_HEADER in prompt
        assert prompt.index("user: order question") < prompt.index("user: my order is 42")
        assert context.diagnostics.conversation_count == 2
        assert context.diagnostics.conversation_search_enabled is True

    @pytest.mark.asyncio
    async def test_idempotent(self, context_service, document_service, conversation_service):
        await document_service.do_store_document(1, 10, "People", "Alice. Bob. Carol.")
        await conversation_service.do_store_chat_message(ChatMessage(
            id="m1", conversationId="c1", botId=1, userId=7,
            role=MessageRole.USER, content="Tell me about Alice", timestamp="2024-05-01T10:00:00Z",
        ))
        messages = [_user("Alice?")]
        first = await context_service.do_assemble_context("Bot.", messages, 1, 7)
        second = await context_service.do_assemble_context("Bot.", messages, 1, 7)
        assert first.system_prompt == second.system_prompt
        assert first.augmented_messages == second.augmented_messages


class TestDegradedPaths:
    @pytest.mark.asyncio
    async def test_keyword_fallback_on_index_failure(self, context_service, rag_client, document_repository):
        await document_repository.do_save_document(
            KnowledgeDocument(id=3, botId=1, title="Refunds", content="Our refund policy allows returns within 30 days.")
        )
        rag_client.fail = True

        context = await context_service.do_assemble_context("Bot.", [_user("refund policy")], 1, 7)

        assert context.diagnostics.document_path == DocumentPath.KEYWORD
        assert context.diagnostics.document_degraded_reason == DegradedReason.INDEX_UNAVAILABLE
        assert context.diagnostics.document_count == 1
        assert context.diagnostics.document_average_score == 1.0
        assert context.diagnostics.conversation_degraded_reason == DegradedReason.INDEX_UNAVAILABLE
        assert "Our refund policy allows returns within 30 days." in context.system_prompt

    @pytest.mark.asyncio
    async def test_timeout_triggers_fallback(self, helper_config, conversation_service, keyword_service, document_repository, monkeypatch):
        monkeypatch.setenv("RETRIEVAL_CALL_TIMEOUT", "0.05")

        class SlowDocuments:
            async def do_search_documents_outcome(self, bot_id, query, limit):
                await asyncio.sleep(5)

        await document_repository.do_save_document(
            KnowledgeDocument(id=3, botId=1, title="Refunds", content="refund policy text")
        )
        service = ContextAssemblyService(helper_config, SlowDocuments(), conversation_service, keyword_service)
        context = await service.do_assemble_context("Bot.", [_user("refund policy")], 1, 7)

        assert context.diagnostics.document_degraded_reason == DegradedReason.TIMEOUT
        assert context.diagnostics.document_path == DocumentPath.KEYWORD

    @pytest.mark.asyncio
    async def test_nothing_available_still_assembles(self, context_service, rag_client):
        rag_client.fail = True
        context = await context_service.do_assemble_context("Bot.", [_user("anything")], 1, 7)
        assert context.system_prompt == "Bot."
        assert context.diagnostics.document_path == DocumentPath.NONE

    @pytest.mark.asyncio
    async def test_unexpected_conversation_error_absorbed(self, helper_config, document_service, keyword_service):
        class BrokenConversations:
            async def do_search_conversation_context_outcome(self, bot_id, user_id, query, limit):
                raise KeyError("boom")

        service = ContextAssemblyService(helper_config, document_service, BrokenConversations(), keyword_service)
        context = await service.do_assemble_context("Bot.", [_user("hi")], 1, 7)
        assert context.diagnostics.conversation_count == 0
        assert context.diagnostics.conversation_degraded_reason == DegradedReason.INDEX_UNAVAILABLE

    @pytest.mark.asyncio
    async def test_conversation_search_disabled(self, helper_config, document_service, conversation_service,
                                                keyword_service, rag_client, monkeypatch):
        monkeypatch.setenv("CHAT_USE_VECTOR_SEARCH", "false")
        service = ContextAssemblyService(helper_config, document_service, conversation_service, keyword_service)
        context = await service.do_assemble_context("Bot.", [_user("hi")], 1, 7)

        assert context.diagnostics.conversation_search_enabled is False
        assert context.diagnostics.conversation_degraded_reason == DegradedReason.DISABLED
        assert all(q.get("recordType") != "message" for q in rag_client.queries)


class TestMessageShapes:
    @pytest.mark.asyncio
    async def test_image_parts_pass_through(self, context_service, rag_client):
        image = {"type": "image_url", "image_url": {"url": "https://example.com/cat.png"}}
        message = PromptMessage(role=PromptRole.USER, content=[{"type": "text", "text": "What is this?"}, image])
        context = await context_service.do_assemble_context("Bot.", [message], 1, 7)

        assert context.image_reference == image
        assert context.augmented_messages[1] == message
        assert rag_client.queries

    @pytest.mark.asyncio
    async def test_no_user_text_skips_retrieval(self, context_service, rag_client):
        context = await context_service.do_assemble_context(
            "Bot.", [PromptMessage(role=PromptRole.ASSISTANT, content="Hi, how can I help?")], 1, 7
        )
        assert rag_client.queries == []
        assert context.system_prompt == "Bot."


def test_keyword_scores_relative_to_best():
    doc_a = KnowledgeDocument(id=1, botId=1, title="A", content="a")
    doc_b = KnowledgeDocument(id=2, botId=1, title="B", content="b")
    results = keyword_results_to_search_results([
        KeywordSearchResult(document=doc_a, relevanceScore=125, matchedContent="a", context="ctx a", matchType=MatchType.EXACT),
        KeywordSearchResult(document=doc_b, relevanceScore=25, matchedContent="b", matchType=MatchType.PARTIAL),
    ])
    assert [r.score for r in results] == [1.0, 0.2]
    assert [r.content for r in results] == ["ctx a", "b"]
    assert all(r.source == ResultSource.KEYWORD for r in results)
