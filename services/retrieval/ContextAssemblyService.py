"""Context assembly for a chat turn.

Document search (with keyword fallback) and conversation search run
concurrently; their results are merged into a single system prompt placed
in front of the caller's messages. Retrieval problems only ever shrink the
context, they never fail the turn.
"""

import asyncio
from typing import Any, Awaitable, TypeVar

from services.retrieval.ConversationRetrievalService import ConversationRetrievalService
from services.retrieval.DocumentRetrievalService import DocumentRetrievalService
from services.retrieval.KeywordSearchService import KeywordSearchService
from services.retrieval.PromptBuilder import build_system_prompt, latest_user_message, replace_system_message
from shared.helper.HelperConfig import HelperConfig
from shared.models.chat import AssembledContext, ContextDiagnostics, DocumentPath, PromptMessage
from shared.models.conversation import ChatMessage
from shared.models.document import DocumentSearchResult, ResultSource
from shared.models.search import DegradedReason, KeywordSearchResult, RetrievalOutcome

T = TypeVar("T")

DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Be polite, professional, and try to provide accurate and useful responses."
)


def keyword_results_to_search_results(results: list[KeywordSearchResult]) -> list[DocumentSearchResult]:
    """Map keyword hits onto document results, scoring each relative to the best hit."""
    if not results:
        return []
    best = max(result.relevance_score for result in results)
    mapped = []
    for result in results:
        mapped.append(DocumentSearchResult(
            id=f"doc_{result.document.id}_keyword",
            score=result.relevance_score / best if best > 0 else 0.0,
            documentId=result.document.id,
            title=result.document.title,
            content=result.context or result.matched_content,
            metadata={"matchType": result.match_type.value, "relevanceScore": result.relevance_score},
            source=ResultSource.KEYWORD,
        ))
    return mapped


class ContextAssemblyService:
    """Builds the augmented prompt for one chat turn."""

    def __init__(
        self,
        helper_config: HelperConfig,
        document_service: DocumentRetrievalService,
        conversation_service: ConversationRetrievalService,
        keyword_service: KeywordSearchService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._document_service = document_service
        self._conversation_service = conversation_service
        self._keyword_service = keyword_service

        self.use_vector_search = helper_config.get_bool_val("CHAT_USE_VECTOR_SEARCH", default=True)
        self.default_system_prompt = helper_config.get_string_val("CHAT_DEFAULT_SYSTEM_PROMPT", default=DEFAULT_SYSTEM_PROMPT)
        self.call_timeout = helper_config.get_number_val("RETRIEVAL_CALL_TIMEOUT", default=20)
        self.document_limit = helper_config.get_int_val("RETRIEVAL_DOCUMENT_LIMIT", default=5)
        self.conversation_limit = helper_config.get_int_val("RETRIEVAL_CONVERSATION_LIMIT", default=5)

    ##########################################
    ################ HELPERS #################
    ##########################################

    async def _bounded(self, call: Awaitable[RetrievalOutcome[T]], stage: str, bot_id: int, query: str) -> RetrievalOutcome[T]:
        """Run one retrieval call under the per-call timeout; absorb anything it raises."""
        try:
            return await asyncio.wait_for(call, timeout=self.call_timeout)
        except asyncio.TimeoutError:
            self.logging.error("Context assembly: %s timed out after %ss (bot %s, query '%s').", stage, self.call_timeout, bot_id, query)
            return RetrievalOutcome.failed(DegradedReason.TIMEOUT)
        except Exception as e:
            self.logging.error("Context assembly: %s failed (bot %s, query '%s'): %s", stage, bot_id, query, e)
            return RetrievalOutcome.failed(DegradedReason.INDEX_UNAVAILABLE)

    async def _keyword_outcome(self, bot_id: int, query: str) -> RetrievalOutcome[DocumentSearchResult]:
        detailed = await self._keyword_service.do_get_detailed_search_results(bot_id, query, self.document_limit)
        return RetrievalOutcome.ok(keyword_results_to_search_results(detailed.results))

    ##########################################
    ############### RETRIEVAL ################
    ##########################################

    async def _search_documents(self, bot_id: int, query: str) -> tuple[list[DocumentSearchResult], DocumentPath, DegradedReason | None]:
        outcome = await self._bounded(
            self._document_service.do_search_documents_outcome(bot_id, query, self.document_limit),
            "document search", bot_id, query,
        )
        if not outcome.degraded:
            path = DocumentPath.VECTOR if outcome.results else DocumentPath.NONE
            return outcome.results, path, None

        self.logging.warning("Document search degraded (%s) for bot %s, using keyword search.", outcome.reason.value, bot_id)
        fallback = await self._bounded(self._keyword_outcome(bot_id, query), "keyword search", bot_id, query)
        path = DocumentPath.KEYWORD if fallback.results else DocumentPath.NONE
        return fallback.results, path, outcome.reason

    async def _search_conversation(self, bot_id: int, user_id: int, query: str) -> RetrievalOutcome[ChatMessage]:
        if not self.use_vector_search:
            return RetrievalOutcome.failed(DegradedReason.DISABLED)
        return await self._bounded(
            self._conversation_service.do_search_conversation_context_outcome(bot_id, user_id, query, self.conversation_limit),
            "conversation search", bot_id, query,
        )

    ##########################################
    ################ ASSEMBLY ################
    ##########################################

    async def do_assemble_context(
        self,
        bot_system_prompt: str | None,
        messages: list[PromptMessage],
        bot_id: int,
        user_id: int,
    ) -> AssembledContext:
        """Assemble the messages to send to the completion provider.

        Args:
            bot_system_prompt (str | None): The bot's own system prompt; CHAT_DEFAULT_SYSTEM_PROMPT when empty.
            messages (list[PromptMessage]): The caller's messages in OpenAI format.
            bot_id (int): Tenant scope of the searches.
            user_id (int): User scope of the conversation search.

        Returns:
            AssembledContext: Messages led by one augmented system message, plus diagnostics.
        """
        latest = latest_user_message(messages)
        query = latest.text() if latest else ""
        image_reference: dict[str, Any] | None = latest.image_reference() if latest else None

        diagnostics = ContextDiagnostics(conversationSearchEnabled=self.use_vector_search)
        documents: list[DocumentSearchResult] = []
        conversation: list[ChatMessage] = []

        if query:
            (documents, path, document_reason), conversation_outcome = await asyncio.gather(
                self._search_documents(bot_id, query),
                self._search_conversation(bot_id, user_id, query),
            )
            conversation = conversation_outcome.results
            diagnostics.document_path = path
            diagnostics.document_degraded_reason = document_reason
            diagnostics.conversation_degraded_reason = conversation_outcome.reason
        else:
            self.logging.debug("No user text in the turn for bot %s, skipping retrieval.", bot_id)

        diagnostics.document_count = len(documents)
        if documents:
            diagnostics.document_average_score = round(sum(d.score for d in documents) / len(documents), 4)
        diagnostics.conversation_count = len(conversation)

        system_prompt = build_system_prompt(bot_system_prompt or self.default_system_prompt, documents, conversation)
        self.logging.info(
            "Context for bot %s: %d documents via %s, %d conversation messages.",
            bot_id, diagnostics.document_count, diagnostics.document_path.value, diagnostics.conversation_count,
        )
        return AssembledContext(
            augmented_messages=replace_system_message(messages, system_prompt),
            system_prompt=system_prompt,
            diagnostics=diagnostics,
            image_reference=image_reference,
        )
