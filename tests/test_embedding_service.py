"""Tests for embedding generation, the hash fallback and dimensionality folding."""

import asyncio
import math

import httpx
import pytest

from services.retrieval.EmbeddingService import (
    EmbeddingService,
    _simple_hash,
    generate_fallback_embedding,
    project_embedding,
)
from shared.models.search import DegradedReason, EmbeddingSource


def _norm(vector: list[float]) -> float:
    return math.sqrt(sum(v * v for v in vector))


class TestProjection:
    def test_identity_when_sizes_match(self):
        vector = [0.5, -1.0, 2.0]
        assert project_embedding(vector, 3) == vector

    def test_fold_and_normalize(self):
        projected = project_embedding([1.0, 2.0, 3.0, 4.0], 2)
        # buckets: [1 + 3, 2 + 4] = [4, 6]
        assert projected == pytest.approx([4 / math.sqrt(52), 6 / math.sqrt(52)])
        assert _norm(projected) == pytest.approx(1.0)

    def test_zero_magnitude_gives_zero_vector(self):
        assert project_embedding([1.0, -1.0, 0.0, 0.0], 2) == [0.0, 0.0]

    def test_long_vector_has_unit_norm(self):
        vector = [math.sin(i) for i in range(1536)]
        projected = project_embedding(vector, 512)
        assert len(projected) == 512
        assert _norm(projected) == pytest.approx(1.0)


class TestFallbackEmbedding:
    def test_hash_matches_rolling_formula(self):
        assert _simple_hash("a") == 97
        assert _simple_hash("ab") == 97 * 31 + 98
        assert _simple_hash("") == 0

    def test_hash_wraps_to_32_bits(self):
        word = "supercalifragilisticexpialidocious"
        h = 0
        for ch in word:
            h = (h * 31 + ord(ch)) & 0xFFFFFFFF
        signed = h - 0x100000000 if h >= 0x80000000 else h
        assert _simple_hash(word) == abs(signed)
        assert _simple_hash(word) <= 2 ** 31

    def test_deterministic(self):
        text = "The quick brown fox jumps over the lazy dog"
        assert generate_fallback_embedding(text, 512) == generate_fallback_embedding(text, 512)

    def test_unit_norm(self):
        vector = generate_fallback_embedding("Refund policy for annual plans", 512)
        assert len(vector) == 512
        assert _norm(vector) == pytest.approx(1.0)

    def test_empty_text_is_zero_vector(self):
        assert generate_fallback_embedding("", 16) == [0.0] * 16
        assert generate_fallback_embedding("   \n ", 16) == [0.0] * 16

    def test_case_insensitive(self):
        assert generate_fallback_embedding("Hello World", 64) == generate_fallback_embedding("hello world", 64)

    def test_position_weighting(self):
        vector = generate_fallback_embedding("a b", 1024)
        assert vector[97 % 1024] > vector[98 % 1024]


class TestEmbeddingService:
    @pytest.mark.asyncio
    async def test_provider_vector_is_projected(self, embedding_service, embed_client):
        result = await embedding_service.do_embed_with_source("hello there")
        assert result.source == EmbeddingSource.PROVIDER
        assert result.reason is None
        assert len(result.vector) == 512
        assert _norm(result.vector) == pytest.approx(1.0)
        assert embed_client.calls == [["hello there"]]

    @pytest.mark.asyncio
    async def test_provider_failure_uses_fallback(self, embedding_service, embed_client):
        embed_client.fail = True
        result = await embedding_service.do_embed_with_source("hello there")
        assert result.source == EmbeddingSource.FALLBACK
        assert result.reason == DegradedReason.PROVIDER_UNAVAILABLE
        assert result.vector == generate_fallback_embedding("hello there", 512)

    @pytest.mark.asyncio
    async def test_provider_timeout_reports_timeout(self, embedding_service, embed_client):
        async def timeout(texts):
            raise httpx.ReadTimeout("too slow")

        embed_client.do_embed = timeout
        result = await embedding_service.do_embed_with_source("hello")
        assert result.source == EmbeddingSource.FALLBACK
        assert result.reason == DegradedReason.TIMEOUT

    @pytest.mark.asyncio
    async def test_empty_provider_response_uses_fallback(self, embedding_service, embed_client):
        async def empty(texts):
            return []

        embed_client.do_embed = empty
        result = await embedding_service.do_embed_with_source("hello")
        assert result.source == EmbeddingSource.FALLBACK

    @pytest.mark.asyncio
    async def test_no_client_uses_fallback(self, helper_config):
        service = EmbeddingService(helper_config, None, dimensions=128)
        result = await service.do_embed_with_source("offline mode")
        assert result.source == EmbeddingSource.FALLBACK
        assert result.reason == DegradedReason.DISABLED
        assert len(result.vector) == 128

    @pytest.mark.asyncio
    async def test_embed_many_preserves_order_and_bounds_concurrency(self, helper_config, monkeypatch):
        monkeypatch.setenv("EMBED_CONCURRENCY", "2")
        in_flight = 0
        peak = 0

        class SlowClient:
            async def do_embed(self, texts):
                nonlocal in_flight, peak
                in_flight += 1
                peak = max(peak, in_flight)
                await asyncio.sleep(0.01)
                in_flight -= 1
                return [generate_fallback_embedding(texts, 8)]

        service = EmbeddingService(helper_config, SlowClient(), dimensions=8)
        texts = [f"chunk number {i}" for i in range(6)]
        vectors = await service.do_embed_many(texts)

        assert vectors == [generate_fallback_embedding(text, 8) for text in texts]
        assert peak <= 2
