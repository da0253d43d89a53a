"""Shared fixtures: in-memory stand-ins for the index, embedding and completion backends."""

import logging
import math
from typing import Any

import pytest

from services.retrieval.ConversationRetrievalService import ConversationRetrievalService
from services.retrieval.DocumentRetrievalService import DocumentRetrievalService
from services.retrieval.EmbeddingService import EmbeddingService, generate_fallback_embedding
from services.retrieval.KeywordSearchService import KeywordSearchService
from services.retrieval.KnowledgeDocumentRepository import InMemoryKnowledgeDocumentRepository
from shared.clients.rag.models.VectorPoint import IndexStats, QueryMatch, VectorRecord
from shared.exceptions import ClientRequestError, ProviderUnavailableError
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatCompletionResult, CompletionUsage, PromptMessage

VECTOR_SIZE = 512
PROVIDER_SIZE = 1536


def _cosine(a: list[float], b: list[float]) -> float:
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(x * x for x in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / (norm_a * norm_b)


class InMemoryRAGClient:
    """Vector index held in a dict, with the same request surface as RAGClientInterface."""

    def __init__(self, vector_size: int = VECTOR_SIZE) -> None:
        self.vector_size = vector_size
        self.records: dict[str, VectorRecord] = {}
        self.queries: list[dict[str, Any]] = []
        self.fail = False

    def get_engine_name(self) -> str:
        return "memory"

    def _check(self) -> None:
        if self.fail:
            raise ClientRequestError("index unavailable", status_code=503)

    @staticmethod
    def _matches(metadata: dict[str, Any], filter: dict[str, Any] | None) -> bool:
        return all(metadata.get(key) == value for key, value in (filter or {}).items())

    async def do_upsert_batch(self, records: list[VectorRecord]) -> None:
        self._check()
        for record in records:
            assert len(record.values) == self.vector_size
            self.records[record.id] = record

    async def do_query_by_vector(self, vector: list[float], filter: dict[str, Any] | None = None, top_k: int = 5) -> list[QueryMatch]:
        self._check()
        self.queries.append(dict(filter or {}))
        matches = [
            QueryMatch(id=record.id, score=_cosine(vector, record.values), metadata=dict(record.metadata))
            for record in self.records.values()
            if self._matches(record.metadata, filter)
        ]
        matches.sort(key=lambda match: match.score, reverse=True)
        return matches[:top_k]

    async def do_delete_by_filter(self, filter: dict[str, Any]) -> int:
        self._check()
        ids = [rid for rid, record in self.records.items() if self._matches(record.metadata, filter)]
        for rid in ids:
            del self.records[rid]
        return len(ids)

    async def do_list_by_filter(self, filter: dict[str, Any], limit: int) -> list[QueryMatch]:
        self._check()
        # reverse insertion order, so callers cannot rely on it
        records = [r for r in reversed(list(self.records.values())) if self._matches(r.metadata, filter)]
        return [QueryMatch(id=r.id, score=0.0, metadata=dict(r.metadata)) for r in records[:limit]]

    async def do_describe_stats(self) -> IndexStats:
        self._check()
        return IndexStats(total_record_count=len(self.records), dimension=self.vector_size)


class FakeEmbedClient:
    """Provider stand-in returning deterministic 1536-dimensional vectors."""

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.fail = False

    def get_engine_name(self) -> str:
        return "fake"

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        texts = [texts] if isinstance(texts, str) else texts
        self.calls.append(texts)
        if self.fail:
            raise ProviderUnavailableError("provider down")
        return [generate_fallback_embedding(text, PROVIDER_SIZE) for text in texts]


class FakeLLMClient:
    """Completion stand-in that records the messages it was sent."""

    chat_model = "fake-chat"

    def __init__(self, reply: str = "Hello from the bot.") -> None:
        self.reply = reply
        self.fail = False
        self.calls: list[dict[str, Any]] = []

    def get_engine_name(self) -> str:
        return "fake"

    async def do_generate_chat(
        self, messages: list[PromptMessage], model: str | None = None, temperature: float = 0.7, max_tokens: int = 1000
    ) -> ChatCompletionResult:
        self.calls.append({"messages": messages, "model": model, "temperature": temperature, "max_tokens": max_tokens})
        if self.fail:
            raise ClientRequestError("completion provider down", status_code=500)
        return ChatCompletionResult(
            message=self.reply,
            model=model or self.chat_model,
            usage=CompletionUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
            finish_reason="stop",
        )


@pytest.fixture
def helper_config() -> HelperConfig:
    return HelperConfig(logger=logging.getLogger("retrieval_bridge.tests"))


@pytest.fixture
def rag_client() -> InMemoryRAGClient:
    return InMemoryRAGClient()


@pytest.fixture
def embed_client() -> FakeEmbedClient:
    return FakeEmbedClient()


@pytest.fixture
def llm_client() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def embedding_service(helper_config, embed_client) -> EmbeddingService:
    return EmbeddingService(helper_config, embed_client, dimensions=VECTOR_SIZE)


@pytest.fixture
def document_service(helper_config, rag_client, embedding_service) -> DocumentRetrievalService:
    return DocumentRetrievalService(helper_config, rag_client, embedding_service)


@pytest.fixture
def conversation_service(helper_config, rag_client, embedding_service) -> ConversationRetrievalService:
    return ConversationRetrievalService(helper_config, rag_client, embedding_service)


@pytest.fixture
def document_repository() -> InMemoryKnowledgeDocumentRepository:
    return InMemoryKnowledgeDocumentRepository()


@pytest.fixture
def keyword_service(helper_config, document_repository) -> KeywordSearchService:
    return KeywordSearchService(helper_config, document_repository)


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    """Tests run against defaults unless they set a variable themselves."""
    for key in (
        "CHUNK_SIZE", "CHUNK_OVERLAP", "EMBED_CONCURRENCY", "CHAT_USE_VECTOR_SEARCH",
        "CHAT_DEFAULT_SYSTEM_PROMPT", "CHAT_DEFAULT_MODEL", "CHAT_DEFAULT_TEMPERATURE",
        "CHAT_DEFAULT_MAX_TOKENS", "CHAT_STORE_MESSAGES", "RETRIEVAL_CALL_TIMEOUT",
        "RETRIEVAL_DOCUMENT_LIMIT", "RETRIEVAL_CONVERSATION_LIMIT", "RAG_VECTOR_SIZE", "RAG_TIMEOUT",
    ):
        monkeypatch.delenv(key, raising=False)
