"""Process-wide service container.

Every external client (database engine, redis, qdrant, OpenAI) is created
once, on first use, and injected into the components that need it.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import redis.asyncio as aioredis
from openai import AsyncOpenAI
from qdrant_client import AsyncQdrantClient

from docchat.chat.pipeline import AnswerPipeline
from docchat.chat.quota import QuotaGate
from docchat.config import Settings, get_settings
from docchat.db.engine import create_session_factory, get_async_engine
from docchat.db.inmemory import InMemoryDocumentRepository, InMemoryMessageLog, InMemoryPlanRepository
from docchat.db.notify import RedisChatNotifier
from docchat.db.repositories import DocumentRepository, MessageLog, PlanRepository
from docchat.db.sql_repositories import SqlDocumentRepository, SqlMessageLog, SqlPlanRepository
from docchat.docs.vector_index import InMemoryVectorIndex, QdrantVectorIndex, VectorIndex
from docchat.documents.lifecycle import DocumentLifecycleManager
from docchat.llm.client import (
    CompletionService,
    DeterministicStubCompletionService,
    OpenAICompletionService,
)
from docchat.llm.embeddings import Embedder, HashingEmbedder, OpenAIEmbedder
from docchat.models.plans import QuotaPolicy
from docchat.storage.blobs import BlobStore, InMemoryBlobStore, LocalBlobStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Wired core components and the stores behind them."""

    documents: DocumentRepository
    messages: MessageLog
    plans: PlanRepository
    blobs: BlobStore
    vectors: VectorIndex
    completion: CompletionService
    lifecycle: DocumentLifecycleManager
    quota: QuotaGate
    pipeline: AnswerPipeline


def assemble_services(
    settings: Settings,
    *,
    documents: DocumentRepository,
    messages: MessageLog,
    plans: PlanRepository,
    blobs: BlobStore,
    vectors: VectorIndex,
    completion: CompletionService,
) -> Services:
    """Wire core components around already-constructed stores."""
    policy = QuotaPolicy(
        max_free_questions=settings.free_question_limit,
        max_pro_questions=settings.pro_question_limit,
    )
    quota = QuotaGate(messages, policy)

    return Services(
        documents=documents,
        messages=messages,
        plans=plans,
        blobs=blobs,
        vectors=vectors,
        completion=completion,
        lifecycle=DocumentLifecycleManager(documents, messages, blobs, vectors),
        quota=quota,
        pipeline=AnswerPipeline(
            documents,
            messages,
            plans,
            completion,
            quota,
            completion_timeout_ms=settings.completion_timeout_ms,
        ),
    )


def build_in_memory_services(settings: Settings) -> Services:
    """Services backed entirely by in-process stores (tests, local demos)."""
    embedder = HashingEmbedder()
    vectors = InMemoryVectorIndex(
        embedder, max_chars=settings.chunk_max_chars, overlap_chars=settings.chunk_overlap_chars
    )
    return assemble_services(
        settings,
        documents=InMemoryDocumentRepository(),
        messages=InMemoryMessageLog(),
        plans=InMemoryPlanRepository(),
        blobs=InMemoryBlobStore(chunk_bytes=settings.upload_chunk_bytes),
        vectors=vectors,
        completion=DeterministicStubCompletionService(vectors),
    )


def build_services(settings: Settings) -> Services:
    """Build services from settings, falling back to in-memory stores per concern."""
    openai_client: AsyncOpenAI | None = None
    if settings.openai_api_key and settings.openai_api_key.get_secret_value():
        openai_client = AsyncOpenAI(api_key=settings.openai_api_key.get_secret_value())

    # Metadata, chat log and plans
    documents: DocumentRepository
    messages: MessageLog
    plans: PlanRepository
    if settings.database_url:
        session_factory = create_session_factory(get_async_engine())
        notifier = None
        if settings.redis_url:
            notifier = RedisChatNotifier(aioredis.from_url(settings.redis_url))
        documents = SqlDocumentRepository(session_factory)
        messages = SqlMessageLog(
            session_factory,
            notifier=notifier,
            poll_interval_ms=settings.chat_poll_interval_ms,
        )
        plans = SqlPlanRepository(session_factory)
    else:
        logger.warning("No DATABASE_URL configured, using in-memory metadata and chat stores")
        documents = InMemoryDocumentRepository()
        messages = InMemoryMessageLog()
        plans = InMemoryPlanRepository()

    # Blobs
    blobs: BlobStore
    if settings.blob_root:
        blobs = LocalBlobStore(
            Path(settings.blob_root),
            chunk_bytes=settings.upload_chunk_bytes,
            public_base_url=settings.blob_public_base_url,
        )
    else:
        logger.warning("No BLOB_ROOT configured, using in-memory blob store")
        blobs = InMemoryBlobStore(chunk_bytes=settings.upload_chunk_bytes)

    # Vectors
    embedder: Embedder
    if openai_client is not None:
        embedder = OpenAIEmbedder(
            openai_client, settings.openai_embedding_model, settings.embedding_dim
        )
    else:
        embedder = HashingEmbedder()

    vectors: VectorIndex
    if settings.qdrant_url:
        qdrant = AsyncQdrantClient(
            url=settings.qdrant_url,
            api_key=settings.qdrant_api_key.get_secret_value() if settings.qdrant_api_key else None,
        )
        vectors = QdrantVectorIndex(
            qdrant,
            settings.qdrant_collection,
            embedder,
            max_chars=settings.chunk_max_chars,
            overlap_chars=settings.chunk_overlap_chars,
        )
    else:
        logger.warning("No QDRANT_URL configured, using in-memory vector index")
        vectors = InMemoryVectorIndex(
            embedder,
            max_chars=settings.chunk_max_chars,
            overlap_chars=settings.chunk_overlap_chars,
        )

    # Completion
    completion: CompletionService
    if openai_client is not None:
        logger.info("Using OpenAI client for completions")
        completion = OpenAICompletionService(
            openai_client, vectors, model=settings.openai_model, top_k=settings.retrieval_top_k
        )
    else:
        logger.warning("No OpenAI API key configured, using deterministic stub completions")
        completion = DeterministicStubCompletionService(vectors)

    return assemble_services(
        settings,
        documents=documents,
        messages=messages,
        plans=plans,
        blobs=blobs,
        vectors=vectors,
        completion=completion,
    )


# Process-wide services, created on first use
_services: Services | None = None


def get_services() -> Services:
    """Get global services instance (FastAPI dependency)."""
    global _services
    if _services is None:
        _services = build_services(get_settings())
    return _services
