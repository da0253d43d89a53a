"""Pydantic models for chat messages stored in the vector index."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessageMetadata(BaseModel):
    """Optional usage data recorded with a stored message."""

    model_config = ConfigDict(populate_by_name=True)

    tokens_used: int | None = Field(default=None, alias="tokensUsed")
    response_time_ms: int | None = Field(default=None, alias="responseTimeMs")
    model: str | None = None
    document_context: bool | None = Field(default=None, alias="documentContext")


class ChatMessage(BaseModel):
    """A single user or assistant message, as stored in and read from the index.

    timestamp is an ISO-8601 string; it is the only ordering key, since the
    index ranks by similarity rather than time.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str
    conversation_id: str = Field(alias="conversationId")
    bot_id: int = Field(alias="botId")
    user_id: int = Field(alias="userId")
    role: MessageRole
    content: str
    timestamp: str
    metadata: ChatMessageMetadata = Field(default_factory=ChatMessageMetadata)

    def to_metadata(self) -> dict[str, Any]:
        """Flat index metadata: identity fields, content, and any non-null usage fields."""
        flat: dict[str, Any] = {
            "conversationId": self.conversation_id,
            "botId": self.bot_id,
            "userId": self.user_id,
            "role": self.role.value,
            "timestamp": self.timestamp,
            "content": self.content,
        }
        flat.update(self.metadata.model_dump(by_alias=True, exclude_none=True))
        return flat

    @classmethod
    def from_metadata(cls, record_id: str, metadata: dict[str, Any]) -> "ChatMessage":
        """Rebuild a message from a stored record."""
        return cls(
            id=record_id,
            conversationId=str(metadata.get("conversationId", "")),
            botId=int(metadata.get("botId", 0)),
            userId=int(metadata.get("userId", 0)),
            role=metadata.get("role", MessageRole.USER.value),
            content=metadata.get("content") or "",
            timestamp=metadata.get("timestamp") or "",
            metadata=ChatMessageMetadata(
                tokensUsed=metadata.get("tokensUsed"),
                responseTimeMs=metadata.get("responseTimeMs"),
                model=metadata.get("model"),
                documentContext=metadata.get("documentContext"),
            ),
        )

    def sort_key(self) -> float:
        """Epoch seconds of the timestamp; unparseable timestamps sort first."""
        try:
            return datetime.fromisoformat(self.timestamp.replace("Z", "+00:00")).timestamp()
        except ValueError:
            return float("-inf")


def sort_chronologically(messages: list[ChatMessage]) -> list[ChatMessage]:
    """Return messages ordered by timestamp ascending."""
    return sorted(messages, key=lambda message: message.sort_key())
