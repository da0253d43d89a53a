"""Chat message ingestion and semantic search over conversation history."""

import time
from typing import Any

import httpx

from services.retrieval.EmbeddingService import EmbeddingService
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.VectorPoint import RECORD_TYPE_KEY, RECORD_TYPE_MESSAGE, QueryMatch, VectorRecord
from shared.helper.HelperConfig import HelperConfig
from shared.models.conversation import ChatMessage, sort_chronologically
from shared.models.search import DegradedReason, RetrievalOutcome

HISTORY_LIMIT = 20
SUMMARY_CONTENT_CHARS = 100
SUMMARY_EMPTY = "No conversation history available"


def make_message_record_id(message_id: str) -> str:
    """Record id of a stored message: "msg_{id}_{epochMillis}"."""
    return f"msg_{message_id}_{int(time.time() * 1000)}"


def _to_messages(matches: list[QueryMatch]) -> list[ChatMessage]:
    return [ChatMessage.from_metadata(match.id, match.metadata) for match in matches]


class ConversationRetrievalService:
    """Stores chat messages as vectors and retrieves them as conversation context."""

    def __init__(
        self,
        helper_config: HelperConfig,
        rag_client: RAGClientInterface,
        embedding_service: EmbeddingService,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._rag_client = rag_client
        self._embedding_service = embedding_service

    ##########################################
    ############### INGESTION ################
    ##########################################

    async def do_store_chat_message(self, message: ChatMessage) -> str:
        """Embed a message and upsert it as a single record.

        Args:
            message (ChatMessage): The message to store.

        Returns:
            str: The record id written to the index.

        Raises:
            ClientRequestError: If the index rejects the upsert.
            httpx.HTTPError: If the index cannot be reached.
        """
        record_id = make_message_record_id(message.id)
        vector = await self._embedding_service.do_embed(message.content)
        metadata = message.to_metadata()
        metadata[RECORD_TYPE_KEY] = RECORD_TYPE_MESSAGE
        try:
            await self._rag_client.do_upsert_batch([VectorRecord(id=record_id, values=vector, metadata=metadata)])
        except Exception as e:
            self.logging.error("Failed to store message %s for conversation %s: %s", message.id, message.conversation_id, e)
            raise
        self.logging.debug("Stored message %s for conversation %s.", message.id, message.conversation_id)
        return record_id

    async def do_delete_conversation(self, conversation_id: str) -> None:
        """Delete every stored message of a conversation.

        Raises:
            ClientRequestError: If the index rejects the delete.
        """
        deleted = await self._rag_client.do_delete_by_filter(
            {"conversationId": conversation_id, RECORD_TYPE_KEY: RECORD_TYPE_MESSAGE}
        )
        if deleted is None:
            self.logging.info("Deleted messages of conversation %s.", conversation_id)
        else:
            self.logging.info("Deleted %d messages of conversation %s.", deleted, conversation_id)

    ##########################################
    ################ SEARCH ##################
    ##########################################

    async def _query(self, vector: list[float], filter: dict[str, Any], limit: int) -> list[QueryMatch]:
        filter = {**filter, RECORD_TYPE_KEY: RECORD_TYPE_MESSAGE}
        return await self._rag_client.do_query_by_vector(vector, filter=filter, top_k=limit)

    async def do_search_conversation_context_outcome(
        self, bot_id: int, user_id: int, query: str, limit: int = 5
    ) -> RetrievalOutcome[ChatMessage]:
        """Semantic search over stored messages with filter relaxation.

        Tries {botId, userId}, then {botId}, then no tenant filter, and stops
        at the first tier that returns anything. Results are in similarity
        order, not chronological order.

        Args:
            bot_id (int): Bot scope of the first two tiers.
            user_id (int): User scope of the first tier.
            query (str): Free-text query.
            limit (int): Maximum number of messages.

        Returns:
            RetrievalOutcome[ChatMessage]: Matching messages, or a degraded outcome.
        """
        tiers = [{"botId": bot_id, "userId": user_id}, {"botId": bot_id}, {}]
        try:
            vector = await self._embedding_service.do_embed(query)
            matches: list[QueryMatch] = []
            for tier, filter in enumerate(tiers, start=1):
                matches = await self._query(vector, filter, limit)
                self.logging.debug("Conversation search tier %d (%s) found %d results.", tier, filter, len(matches))
                if matches:
                    break
            messages = _to_messages(matches[:limit])
        except httpx.TimeoutException as e:
            self.logging.error(
                "Conversation search timed out (bot %s, user %s, query '%s', stage: index query): %s",
                bot_id, user_id, query, e,
            )
            return RetrievalOutcome[ChatMessage].failed(DegradedReason.TIMEOUT)
        except Exception as e:
            self.logging.error(
                "Conversation search failed (bot %s, user %s, query '%s', stage: index query): %s",
                bot_id, user_id, query, e,
            )
            return RetrievalOutcome[ChatMessage].failed(DegradedReason.INDEX_UNAVAILABLE)

        return RetrievalOutcome[ChatMessage].ok(messages)

    async def do_search_conversation_context(self, bot_id: int, user_id: int, query: str, limit: int = 5) -> list[ChatMessage]:
        """Relevant messages for a user's query; empty list on any failure."""
        outcome = await self.do_search_conversation_context_outcome(bot_id, user_id, query, limit)
        return outcome.results

    async def do_search_bot_conversations(self, bot_id: int, query: str, limit: int = 10) -> list[ChatMessage]:
        """Semantic search across all conversations of one bot; empty list on any failure."""
        try:
            vector = await self._embedding_service.do_embed(query)
            matches = await self._query(vector, {"botId": bot_id}, limit)
            messages = _to_messages(matches[:limit])
        except Exception as e:
            self.logging.error("Bot conversation search failed (bot %s, query '%s'): %s", bot_id, query, e)
            return []
        self.logging.debug("Found %d messages across conversations of bot %s.", len(messages), bot_id)
        return messages

    ##########################################
    ################ HISTORY #################
    ##########################################

    async def do_get_conversation_history(self, conversation_id: str, limit: int = HISTORY_LIMIT) -> list[ChatMessage]:
        """Messages of one conversation, oldest first.

        The index has no notion of time, so the messages are listed by filter
        and then ordered by their timestamp.

        Args:
            conversation_id (str): Conversation to read.
            limit (int): Maximum number of messages fetched.

        Returns:
            list[ChatMessage]: Messages sorted ascending by timestamp; empty on failure.
        """
        try:
            matches = await self._rag_client.do_list_by_filter(
                {"conversationId": conversation_id, RECORD_TYPE_KEY: RECORD_TYPE_MESSAGE},
                limit=limit,
            )
            messages = sort_chronologically(_to_messages(matches))
        except Exception as e:
            self.logging.error("Failed to read history of conversation %s: %s", conversation_id, e)
            return []
        self.logging.debug("Retrieved %d messages for conversation %s.", len(messages), conversation_id)
        return messages

    async def do_get_conversation_summary(self, conversation_id: str, max_messages: int = 10) -> str:
        """Short plain-text digest of the most recent messages of a conversation.

        Returns:
            str: "Recent conversation context:" followed by one "role: content" line
                per message, content cut at 100 characters.
        """
        messages = await self.do_get_conversation_history(conversation_id, max_messages)
        if not messages:
            return SUMMARY_EMPTY
        lines = []
        for message in messages[-max_messages:]:
            content = message.content[:SUMMARY_CONTENT_CHARS]
            if len(message.content) > SUMMARY_CONTENT_CHARS:
                content += "..."
            lines.append(f"{message.role.value}: {content}")
        return "Recent conversation context:\n" + "\n".join(lines)
