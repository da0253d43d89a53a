"""Pydantic models for a chat turn: input messages, completion results and context diagnostics."""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from shared.models.search import DegradedReason


class PromptRole(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class PromptMessage(BaseModel):
    """An OpenAI-format chat message.

    content is either plain text or a list of parts such as
    {"type": "text", "text": "..."} and {"type": "image_url", "image_url": {...}}.
    """

    role: PromptRole
    content: str | list[dict[str, Any]]

    def text(self) -> str:
        """Plain text of the message; text parts are joined with spaces."""
        if isinstance(self.content, str):
            return self.content
        return " ".join(
            part.get("text", "") for part in self.content if part.get("type") == "text"
        ).strip()

    def image_reference(self) -> dict[str, Any] | None:
        """The first image part of the message, if any."""
        if isinstance(self.content, str):
            return None
        for part in self.content:
            if part.get("type") == "image_url":
                return part
        return None


class CompletionOptions(BaseModel):
    model: str
    temperature: float = 0.7
    max_tokens: int = 1000


class CompletionUsage(BaseModel):
    prompt_tokens: int | None = None
    completion_tokens: int | None = None
    total_tokens: int | None = None


class ChatCompletionResult(BaseModel):
    """Output of the completion provider."""

    message: str
    model: str
    usage: CompletionUsage = Field(default_factory=CompletionUsage)
    finish_reason: str | None = None


class DocumentPath(str, Enum):
    VECTOR = "vector"
    KEYWORD = "keyword"
    NONE = "none"


class ContextDiagnostics(BaseModel):
    """Which context sources fed a chat turn, for observability."""

    model_config = ConfigDict(populate_by_name=True)

    document_path: DocumentPath = Field(default=DocumentPath.NONE, alias="documentPath")
    document_count: int = Field(default=0, alias="documentCount")
    document_average_score: float = Field(default=0.0, alias="documentAverageScore")
    document_degraded_reason: DegradedReason | None = Field(default=None, alias="documentDegradedReason")
    conversation_search_enabled: bool = Field(default=False, alias="conversationSearchEnabled")
    conversation_count: int = Field(default=0, alias="conversationCount")
    conversation_degraded_reason: DegradedReason | None = Field(default=None, alias="conversationDegradedReason")


class AssembledContext(BaseModel):
    """Messages ready for the completion provider, plus diagnostics."""

    augmented_messages: list[PromptMessage]
    system_prompt: str
    diagnostics: ContextDiagnostics
    image_reference: dict[str, Any] | None = None


class BotConfig(BaseModel):
    """Per-bot overrides supplied by the caller (looked up from the relational store)."""

    system_prompt: str | None = None
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None


class ChatTurnRequest(BaseModel):
    """One chat turn as sent by the widget or dashboard."""

    model_config = ConfigDict(populate_by_name=True)

    messages: list[PromptMessage] = Field(min_length=1)
    bot_id: int = Field(alias="botId")
    user_id: int = Field(alias="userId")
    conversation_id: str | None = Field(default=None, alias="conversationId")
    bot_config: BotConfig | None = Field(default=None, alias="botConfig")


class ChatTurnResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str
    conversation_id: str | None = Field(default=None, alias="conversationId")
    usage: CompletionUsage = Field(default_factory=CompletionUsage)
    model: str
    finish_reason: str | None = None
    response_time_ms: int = 0
    diagnostics: ContextDiagnostics
