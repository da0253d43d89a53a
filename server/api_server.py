"""FastAPI application entry point for the chatbot retrieval bridge."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.ClientInterface import ClientInterface
from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.llm.LLMClientInterface import LLMClientInterface
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from services.retrieval.ChatService import ChatService
from services.retrieval.ContextAssemblyService import ContextAssemblyService
from services.retrieval.ConversationRetrievalService import ConversationRetrievalService
from services.retrieval.DocumentRetrievalService import DocumentRetrievalService
from services.retrieval.EmbeddingService import EmbeddingService
from services.retrieval.KeywordSearchService import KeywordSearchService
from services.retrieval.KnowledgeDocumentRepository import (
    InMemoryKnowledgeDocumentRepository,
    KnowledgeDocumentRepository,
)
from server.routers.ChatRouter import router as chat_router
from server.routers.ConversationRouter import router as conversation_router
from server.routers.DocumentRouter import router as document_router
from server.routers.HealthRouter import router as health_router
from server.routers.SearchRouter import router as search_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


def wire_services(
    app: FastAPI,
    helper_config: HelperConfig,
    rag_client: RAGClientInterface,
    embed_client: EmbedClientInterface | None,
    llm_client: LLMClientInterface,
    document_repository: KnowledgeDocumentRepository | None = None,
) -> None:
    """Build all services on top of the given clients and attach them to app.state."""
    app.state.logging = helper_config.get_logger()
    app.state.helper_config = helper_config
    app.state.app_version = app_version
    app.state.rag_client = rag_client
    app.state.embed_client = embed_client
    app.state.llm_client = llm_client
    app.state.document_repository = document_repository or InMemoryKnowledgeDocumentRepository()

    embedding_service = EmbeddingService(helper_config, embed_client, dimensions=rag_client.vector_size)
    app.state.document_service = DocumentRetrievalService(helper_config, rag_client, embedding_service)
    app.state.conversation_service = ConversationRetrievalService(helper_config, rag_client, embedding_service)
    app.state.keyword_service = KeywordSearchService(helper_config, app.state.document_repository)
    app.state.context_service = ContextAssemblyService(
        helper_config,
        document_service=app.state.document_service,
        conversation_service=app.state.conversation_service,
        keyword_service=app.state.keyword_service,
    )
    app.state.chat_service = ChatService(
        helper_config,
        context_service=app.state.context_service,
        conversation_service=app.state.conversation_service,
        llm_client=llm_client,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    helper_config = HelperConfig(logger=logging)
    # fail fast when the API key is missing
    helper_config.get_string_val("APP_API_KEY")

    rag_client = RAGClientManager(helper_config=helper_config).get_client()
    embed_client = EmbedClientManager(helper_config=helper_config).get_client()
    llm_client = LLMClientManager(helper_config=helper_config).get_client()
    clients: list[ClientInterface] = [c for c in (rag_client, embed_client, llm_client) if c is not None]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.", color="green")

    wire_services(app, helper_config, rag_client, embed_client, llm_client)
    await check_connections(rag_client, embed_client, llm_client)

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down — closing all clients...")
    for client in clients:
        await client.close()
    logging.info("All clients closed.", color="green")


app = FastAPI(
    title="chatbot_retrieval_bridge",
    description=(
        "Retrieval subsystem of a multi-tenant chatbot platform. "
        "Documents and chat messages are embedded into a vector index; every chat turn "
        "is answered with document and conversation context assembled from it."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=HelperConfig(logger=logging).get_list_val("APP_CORS_ORIGINS", default=["*"]),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router)
app.include_router(document_router)
app.include_router(search_router)
app.include_router(conversation_router)
app.include_router(chat_router)


async def check_connections(
    rag_client: RAGClientInterface,
    embed_client: EmbedClientInterface | None,
    llm_client: LLMClientInterface,
) -> None:
    """Check connectivity to all configured backends on startup and provision the index.

    None of the failures is fatal: an unreachable embedding provider means
    fallback embeddings, an unreachable index means keyword-only document
    context, and an unreachable completion provider fails chat turns with 500.
    """
    if embed_client is not None:
        try:
            await embed_client.do_healthcheck()
        except Exception as e:
            logging.warning(
                "Embed client '%s' is not reachable (%s). Fallback embeddings will be used.",
                embed_client.get_engine_name(), e,
                color="yellow",
            )

    try:
        await rag_client.do_healthcheck()
        if not await rag_client.do_existence_check():
            await rag_client.do_create_collection()
        else:
            logging.info("%s index already exists.", rag_client.get_engine_name())
    except Exception as e:
        logging.warning(
            "RAG client '%s' is not reachable (%s). Document search will fall back to keyword search.",
            rag_client.get_engine_name(), e,
            color="yellow",
        )

    try:
        await llm_client.do_healthcheck()
    except Exception as e:
        logging.warning(
            "LLM client '%s' is not reachable (%s). Chat turns will fail.", llm_client.get_engine_name(), e, color="red"
        )


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("APP_PORT", "8000"))
    logging.info(
        "Starting chatbot_retrieval_bridge API Server v%s from root dir: %s on port %d...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
        port,
    )
    uvicorn.run(app, host="0.0.0.0", port=port)
