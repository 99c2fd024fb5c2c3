# controller/controller_dependencies.py
from fastapi import Depends, Request
from fastapi_limiter.depends import RateLimiter
from config import providers
from config.settings import settings
from config.vector_store import get_vector_store
from core.answer_generator import AnswerGenerator
from core.embedding_client import EmbeddingClient
from core.ingestion_pipeline import IngestionPipeline
from core.llm_client import GenerationClient
from core.query_pipeline import QueryPipeline
from core.vector_store import QdrantVectorStore
from repository.document_lock_repository import DocumentLockRepository
from service.ingestion_service import IngestionService
from service.query_service import QueryService

rate_limiter = RateLimiter(
    times=settings.RATE_LIMIT_TIMES, seconds=settings.RATE_LIMIT_SECONDS
)


async def real_ip(request: Request) -> str:
    if settings.TRUST_PROXY:
        fwd = request.headers.get("x-forwarded-for")
        if fwd:
            return fwd.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_store() -> QdrantVectorStore:
    return get_vector_store()


def get_embedding_client() -> EmbeddingClient:
    return providers.get_embedding_client()


def get_generation_client() -> GenerationClient:
    return providers.get_generation_client()


def get_document_locks() -> DocumentLockRepository:
    return DocumentLockRepository()


def get_ingestion_service(
    embedder: EmbeddingClient = Depends(get_embedding_client),
    store: QdrantVectorStore = Depends(get_store),
    locks: DocumentLockRepository = Depends(get_document_locks),
) -> IngestionService:
    # Pipelines track per-run stage, so each request gets its own
    _pipeline = IngestionPipeline(
        embedder=embedder,
        store=store,
        max_file_bytes=settings.max_file_bytes,
        default_chunk_size=settings.CHUNK_SIZE,
        default_overlap=settings.CHUNK_OVERLAP,
    )
    return IngestionService(_pipeline, locks, store)


def get_query_service(
    embedder: EmbeddingClient = Depends(get_embedding_client),
    llm: GenerationClient = Depends(get_generation_client),
    store: QdrantVectorStore = Depends(get_store),
) -> QueryService:
    _generator = AnswerGenerator.from_settings(settings, llm)
    _pipeline = QueryPipeline(embedder=embedder, store=store, generator=_generator)
    return QueryService(_pipeline, store)
