"""Pydantic models for retrieval outcomes and keyword search results."""

from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from shared.models.document import KnowledgeDocument

T = TypeVar("T")


class DegradedReason(str, Enum):
    """Why a retrieval step returned a degraded (rather than genuinely empty) result."""

    INDEX_UNAVAILABLE = "index_unavailable"
    PROVIDER_UNAVAILABLE = "provider_unavailable"
    TIMEOUT = "timeout"
    DISABLED = "disabled"


class RetrievalOutcome(BaseModel, Generic[T]):
    """Tagged retrieval result.

    degraded=False with empty results means "searched, found nothing";
    degraded=True means the search itself could not run and reason says why.
    """

    results: list[T] = Field(default_factory=list)
    degraded: bool = False
    reason: DegradedReason | None = None

    @classmethod
    def ok(cls, results: list[T]) -> "RetrievalOutcome[T]":
        return cls(results=results)

    @classmethod
    def failed(cls, reason: DegradedReason) -> "RetrievalOutcome[T]":
        return cls(results=[], degraded=True, reason=reason)


class EmbeddingSource(str, Enum):
    PROVIDER = "provider"
    FALLBACK = "fallback"


class EmbeddingResult(BaseModel):
    """An embedding plus where it came from."""

    vector: list[float]
    source: EmbeddingSource
    reason: DegradedReason | None = None


class MatchType(str, Enum):
    EXACT = "exact"
    PARTIAL = "partial"
    SEMANTIC = "semantic"


class KeywordSearchResult(BaseModel):
    """A document matched by the keyword search."""

    model_config = ConfigDict(populate_by_name=True)

    document: KnowledgeDocument
    relevance_score: float = Field(alias="relevanceScore")
    matched_content: str = Field(alias="matchedContent")
    context: str = ""
    match_type: MatchType = Field(default=MatchType.PARTIAL, alias="matchType")


class KeywordSearchSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    exact_matches: int = Field(default=0, alias="exactMatches")
    partial_matches: int = Field(default=0, alias="partialMatches")
    semantic_matches: int = Field(default=0, alias="semanticMatches")
    average_score: float = Field(default=0.0, alias="averageScore")


class DetailedKeywordSearch(BaseModel):
    """Keyword results together with summary counts."""

    model_config = ConfigDict(populate_by_name=True)

    query: str
    total_documents: int = Field(default=0, alias="totalDocuments")
    results: list[KeywordSearchResult] = Field(default_factory=list)
    summary: KeywordSearchSummary = Field(default_factory=KeywordSearchSummary)
