"""Access to the relational knowledge-document records of a bot."""

import asyncio
from abc import ABC, abstractmethod

from shared.models.document import KnowledgeDocument


class KnowledgeDocumentRepository(ABC):
    """Read side of the knowledge-document store used by the keyword search."""

    @abstractmethod
    async def do_get_documents_by_bot(self, bot_id: int) -> list[KnowledgeDocument]:
        """All documents of a bot, in insertion order."""
        pass

    @abstractmethod
    async def do_save_document(self, document: KnowledgeDocument) -> None:
        """Insert or replace a document by id."""
        pass

    @abstractmethod
    async def do_delete_document(self, document_id: int) -> bool:
        """Remove a document. Returns False when it did not exist."""
        pass


class InMemoryKnowledgeDocumentRepository(KnowledgeDocumentRepository):
    """Process-local repository, filled by documents ingested through the API."""

    def __init__(self) -> None:
        self._documents: dict[int, KnowledgeDocument] = {}
        self._lock = asyncio.Lock()

    async def do_get_documents_by_bot(self, bot_id: int) -> list[KnowledgeDocument]:
        async with self._lock:
            return [doc for doc in self._documents.values() if doc.bot_id == bot_id]

    async def do_save_document(self, document: KnowledgeDocument) -> None:
        async with self._lock:
            self._documents[document.id] = document

    async def do_delete_document(self, document_id: int) -> bool:
        async with self._lock:
            return self._documents.pop(document_id, None) is not None
