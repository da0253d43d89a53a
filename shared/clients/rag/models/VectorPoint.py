"""Wire-neutral models exchanged with any vector index engine."""

from typing import Any

from pydantic import BaseModel, Field

# Metadata key that separates the two logical collections sharing one index
RECORD_TYPE_KEY = "recordType"
RECORD_TYPE_DOCUMENT = "document"
RECORD_TYPE_MESSAGE = "message"


class VectorRecord(BaseModel):
    """A single vector plus metadata to be written to the index.

    Attributes:
        id:       Application-level record id (e.g. "doc_12_chunk_0").
                  Engines that need a different id format map it themselves.
        values:   The embedding vector. Must match the index dimensionality.
        metadata: Flat metadata used for filtering and returned on query.
    """

    id: str
    values: list[float]
    metadata: dict[str, Any] = Field(default_factory=dict)


class QueryMatch(BaseModel):
    """A single match returned by a similarity query.

    Attributes:
        id:       Application-level record id.
        score:    Similarity score as reported by the engine (cosine: higher is better).
        metadata: Stored metadata of the record.
    """

    id: str
    score: float = 0.0
    metadata: dict[str, Any] = Field(default_factory=dict)


class IndexStats(BaseModel):
    """Summary statistics of the index.

    Attributes:
        total_record_count: Number of records currently stored.
        dimension:          Vector dimensionality, if the engine reports it.
    """

    total_record_count: int = 0
    dimension: int | None = None
