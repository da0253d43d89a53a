from pydantic import BaseModel, ConfigDict, Field

from shared.models.conversation import ChatMessage
from shared.models.document import DocumentSearchResult
from shared.models.search import DetailedKeywordSearch


class DocumentStoredResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_id: int = Field(alias="documentId")
    chunks: int


class SearchResultItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    score: float
    document_id: int = Field(alias="documentId")
    title: str
    content: str
    chunk_index: int = Field(alias="chunkIndex")
    total_chunks: int = Field(alias="totalChunks")
    relevance: str

    @classmethod
    def from_result(cls, result: DocumentSearchResult) -> "SearchResultItem":
        return cls(
            id=result.id,
            score=result.score,
            documentId=result.document_id,
            title=result.title,
            content=result.content,
            chunkIndex=result.chunk_index,
            totalChunks=result.total_chunks,
            relevance=result.relevance,
        )


class DocumentSearchResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    query: str
    bot_id: int = Field(alias="botId")
    results: list[SearchResultItem]
    total_results: int = Field(alias="totalResults")


class KeywordSearchResponse(BaseModel):
    context: str
    detailed: DetailedKeywordSearch


class MessageStoredResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    record_id: str = Field(alias="recordId")


class ConversationMessagesResponse(BaseModel):
    messages: list[ChatMessage]
    total: int


class ConversationSummaryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    conversation_id: str = Field(alias="conversationId")
    summary: str


class IndexStatsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    total_record_count: int = Field(alias="totalRecordCount")
    dimension: int | None = None


class HealthResponse(BaseModel):
    status: str
    version: str
    engines: dict[str, str]
