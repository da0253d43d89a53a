from pydantic import BaseModel, ConfigDict, Field

from shared.models.conversation import ChatMessageMetadata, MessageRole


class StoreDocumentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bot_id: int = Field(alias="botId")
    document_id: int = Field(alias="documentId")
    title: str
    content: str


class ReindexDocumentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bot_id: int = Field(alias="botId")
    title: str
    content: str


class DocumentSearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bot_id: int = Field(alias="botId")
    query: str = Field(min_length=1)
    limit: int = Field(default=5, ge=1, le=100)


class KeywordSearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bot_id: int = Field(alias="botId")
    query: str = Field(min_length=1)
    limit: int = Field(default=10, ge=1, le=100)


class StoreMessageRequest(BaseModel):
    """A chat message to index. id and timestamp are generated when omitted."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    conversation_id: str = Field(alias="conversationId")
    bot_id: int = Field(alias="botId")
    user_id: int = Field(alias="userId")
    role: MessageRole
    content: str = Field(min_length=1)
    timestamp: str | None = None
    metadata: ChatMessageMetadata = Field(default_factory=ChatMessageMetadata)
