"""A complete chat turn: context assembly, completion, and history write-back."""

import time
import uuid
from datetime import datetime

import pytz

from services.retrieval.ContextAssemblyService import ContextAssemblyService
from services.retrieval.ConversationRetrievalService import ConversationRetrievalService
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.exceptions import CompletionFailure
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import ChatCompletionResult, ChatTurnRequest, ChatTurnResponse, PromptRole
from shared.models.conversation import ChatMessage, ChatMessageMetadata, MessageRole

FALLBACK_REPLY = "Sorry, I could not generate a response."


class ChatService:
    """Runs one chat turn against the completion provider."""

    def __init__(
        self,
        helper_config: HelperConfig,
        context_service: ContextAssemblyService,
        conversation_service: ConversationRetrievalService,
        llm_client: LLMClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._context_service = context_service
        self._conversation_service = conversation_service
        self._llm_client = llm_client

        self.default_model = helper_config.get_string_val("CHAT_DEFAULT_MODEL", default=llm_client.chat_model)
        self.default_temperature = helper_config.get_number_val("CHAT_DEFAULT_TEMPERATURE", default=0.7)
        self.default_max_tokens = helper_config.get_int_val("CHAT_DEFAULT_MAX_TOKENS", default=1000)
        self.store_messages = helper_config.get_bool_val("CHAT_STORE_MESSAGES", default=True)

    async def do_chat(self, request: ChatTurnRequest) -> ChatTurnResponse:
        """Answer the latest user message with retrieved context.

        Args:
            request (ChatTurnRequest): Messages, tenant ids, optional conversation id and bot overrides.

        Returns:
            ChatTurnResponse: The reply, usage, timing and retrieval diagnostics.

        Raises:
            CompletionFailure: If the completion provider fails.
        """
        config = request.bot_config
        model = (config.model if config else None) or self.default_model
        temperature = config.temperature if config and config.temperature is not None else self.default_temperature
        max_tokens = config.max_tokens if config and config.max_tokens else self.default_max_tokens

        context = await self._context_service.do_assemble_context(
            bot_system_prompt=config.system_prompt if config else None,
            messages=request.messages,
            bot_id=request.bot_id,
            user_id=request.user_id,
        )

        start = time.monotonic()
        try:
            completion = await self._llm_client.do_generate_chat(
                context.augmented_messages, model=model, temperature=temperature, max_tokens=max_tokens
            )
        except Exception as e:
            self.logging.error("Completion failed for bot %s (model %s): %s", request.bot_id, model, e)
            raise CompletionFailure(str(e)) from e
        response_time_ms = int((time.monotonic() - start) * 1000)

        reply = completion.message.strip() or FALLBACK_REPLY

        if self.store_messages and request.conversation_id:
            await self._store_exchange(request, reply, completion, response_time_ms, context.diagnostics.document_count > 0)

        return ChatTurnResponse(
            message=reply,
            conversationId=request.conversation_id,
            usage=completion.usage,
            model=completion.model,
            finish_reason=completion.finish_reason,
            response_time_ms=response_time_ms,
            diagnostics=context.diagnostics,
        )

    async def _store_exchange(
        self,
        request: ChatTurnRequest,
        reply: str,
        completion: ChatCompletionResult,
        response_time_ms: int,
        used_documents: bool,
    ) -> None:
        """Write the user message and the reply to conversation history; failures are only logged."""
        to_store: list[ChatMessage] = []
        last = request.messages[-1]
        if last.role == PromptRole.USER and last.text():
            to_store.append(self._make_message(request, MessageRole.USER, last.text()))
        to_store.append(self._make_message(
            request,
            MessageRole.ASSISTANT,
            reply,
            ChatMessageMetadata(
                tokensUsed=completion.usage.total_tokens,
                responseTimeMs=response_time_ms,
                model=completion.model,
                documentContext=used_documents,
            ),
        ))
        for message in to_store:
            try:
                await self._conversation_service.do_store_chat_message(message)
            except Exception as e:
                self.logging.warning(
                    "Could not store %s message of conversation %s: %s", message.role.value, request.conversation_id, e
                )

    @staticmethod
    def _make_message(
        request: ChatTurnRequest, role: MessageRole, content: str, metadata: ChatMessageMetadata | None = None
    ) -> ChatMessage:
        return ChatMessage(
            id=uuid.uuid4().hex,
            conversationId=request.conversation_id,
            botId=request.bot_id,
            userId=request.user_id,
            role=role,
            content=content,
            timestamp=datetime.now(pytz.utc).isoformat(),
            metadata=metadata or ChatMessageMetadata(),
        )
