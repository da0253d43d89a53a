"""Pydantic models for knowledge documents and their indexed chunks.

Hierarchy:
  KnowledgeDocument    : relational record of an uploaded document (owned elsewhere).
  DocumentChunk        : one chunk of a document as written to the vector index.
  DocumentSearchResult : a ranked chunk returned to callers.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class DocumentStatus(str, Enum):
    PROCESSING = "processing"
    INDEXED = "indexed"
    ERROR = "error"


class KnowledgeDocument(BaseModel):
    """A bot's knowledge document after text extraction."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    bot_id: int = Field(alias="botId")
    title: str
    content: str = ""
    status: DocumentStatus = DocumentStatus.INDEXED


def make_chunk_id(document_id: int, chunk_index: int) -> str:
    """Deterministic record id of a document chunk, e.g. "doc_12_chunk_0"."""
    return f"doc_{document_id}_chunk_{chunk_index}"


class DocumentChunk(BaseModel):
    """Metadata stored alongside each document chunk vector.

    Attributes:
        id:           "doc_{documentId}_chunk_{index}".
        bot_id:       Owning bot (tenant scope for search).
        document_id:  Source document.
        title:        Source document title, duplicated into every chunk.
        content:      The chunk's raw text.
        chunk_index:  Zero-based position; 0 <= chunk_index < total_chunks.
        total_chunks: Number of sibling chunks.
        timestamp:    ISO-8601 ingestion time.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    bot_id: int = Field(alias="botId")
    document_id: int = Field(alias="documentId")
    title: str
    content: str
    chunk_index: int = Field(alias="chunkIndex", ge=0)
    total_chunks: int = Field(alias="totalChunks", ge=1)
    timestamp: str

    def to_metadata(self) -> dict[str, Any]:
        """Flat metadata dict in index field names (camelCase), without the id."""
        return self.model_dump(by_alias=True, exclude={"id"})


class ResultSource(str, Enum):
    VECTOR = "vector"
    KEYWORD = "keyword"


class DocumentSearchResult(BaseModel):
    """A ranked document chunk.

    score is a similarity in [0, 1]: cosine similarity on the vector path,
    relevance relative to the best hit on the keyword path.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    score: float = Field(ge=0.0, le=1.0)
    document_id: int = Field(alias="documentId")
    title: str = ""
    content: str = ""
    chunk_index: int = Field(default=0, alias="chunkIndex")
    total_chunks: int = Field(default=1, alias="totalChunks")
    metadata: dict[str, Any] = Field(default_factory=dict)
    source: ResultSource = ResultSource.VECTOR

    @property
    def relevance(self) -> str:
        """Coarse label: "high" above 0.8, "medium" above 0.6, else "low"."""
        if self.score > 0.8:
            return "high"
        if self.score > 0.6:
            return "medium"
        return "low"
