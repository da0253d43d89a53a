"""Embedding generation with a deterministic local fallback.

Turns text into a vector of the index dimensionality. The configured
embedding client is tried first; its output is folded to the index
dimensionality when the model produces a different size. When the provider
fails, times out or returns nothing, a hash-based bag-of-words embedding is
used instead so that ingestion and search keep working offline.
"""

import asyncio
import math

import httpx

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.search import DegradedReason, EmbeddingResult, EmbeddingSource


def _normalize(vector: list[float]) -> list[float]:
    magnitude = math.sqrt(sum(v * v for v in vector))
    if magnitude == 0:
        return [0.0] * len(vector)
    return [v / magnitude for v in vector]


def project_embedding(vector: list[float], dimensions: int) -> list[float]:
    """Fold a vector of any length into the target dimensionality.

    Component i is added to bucket i mod dimensions and the result is
    L2-normalized. Vectors that already have the target length are returned
    unchanged.

    Args:
        vector (list[float]): The provider's embedding.
        dimensions (int): Target dimensionality of the index.

    Returns:
        list[float]: A vector of length `dimensions`; all zeros when the folded vector has no magnitude.
    """
    if len(vector) == dimensions:
        return list(vector)
    projected = [0.0] * dimensions
    for i, value in enumerate(vector):
        projected[i % dimensions] += value
    return _normalize(projected)


def _simple_hash(word: str) -> int:
    """31-based rolling hash over UTF-16 code units, wrapped to signed 32 bit, returned as absolute value."""
    h = 0
    data = word.encode("utf-16-le")
    for i in range(0, len(data), 2):
        h = (h * 31 + int.from_bytes(data[i:i + 2], "little")) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


def generate_fallback_embedding(text: str, dimensions: int) -> list[float]:
    """Deterministic bag-of-words embedding.

    Each lower-cased whitespace token lands in bucket hash(token) mod
    dimensions, weighted 1/(position+1), and the vector is L2-normalized.

    Args:
        text (str): Input text.
        dimensions (int): Output dimensionality.

    Returns:
        list[float]: Unit vector, or all zeros for empty text.
    """
    embedding = [0.0] * dimensions
    for index, word in enumerate(text.lower().split()):
        embedding[_simple_hash(word) % dimensions] += 1 / (index + 1)
    return _normalize(embedding)


class EmbeddingService:
    """Produces index-sized embeddings; never raises on provider failure."""

    def __init__(self, helper_config: HelperConfig, embed_client: EmbedClientInterface | None, dimensions: int) -> None:
        self.logging = helper_config.get_logger()
        self._embed_client = embed_client
        self.dimensions = dimensions
        self._concurrency = max(1, helper_config.get_int_val("EMBED_CONCURRENCY", default=4))

    async def do_embed_with_source(self, text: str) -> EmbeddingResult:
        """Embed one text and report whether the provider or the fallback produced it.

        Args:
            text (str): Text to embed.

        Returns:
            EmbeddingResult: Vector of length `dimensions` plus its source.
        """
        if self._embed_client is None:
            return EmbeddingResult(
                vector=generate_fallback_embedding(text, self.dimensions),
                source=EmbeddingSource.FALLBACK,
                reason=DegradedReason.DISABLED,
            )
        reason = DegradedReason.PROVIDER_UNAVAILABLE
        try:
            vectors = await self._embed_client.do_embed(text)
            if vectors and vectors[0]:
                return EmbeddingResult(
                    vector=project_embedding(vectors[0], self.dimensions),
                    source=EmbeddingSource.PROVIDER,
                )
            self.logging.warning("Embedding provider returned an empty vector, using fallback embedding.")
        except httpx.TimeoutException as e:
            reason = DegradedReason.TIMEOUT
            self.logging.warning("Embedding provider timed out (%s), using fallback embedding.", e)
        except Exception as e:
            self.logging.warning("Embedding provider failed (%s), using fallback embedding.", e)
        return EmbeddingResult(
            vector=generate_fallback_embedding(text, self.dimensions),
            source=EmbeddingSource.FALLBACK,
            reason=reason,
        )

    async def do_embed(self, text: str) -> list[float]:
        """Embed one text. See do_embed_with_source."""
        result = await self.do_embed_with_source(text)
        return result.vector

    async def do_embed_many(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts with bounded concurrency, preserving order.

        Args:
            texts (list[str]): Texts to embed.

        Returns:
            list[list[float]]: One vector per input text, in input order.
        """
        sem = asyncio.Semaphore(self._concurrency)

        async def _embed(text: str) -> list[float]:
            async with sem:
                return await self.do_embed(text)

        return list(await asyncio.gather(*[_embed(text) for text in texts]))
