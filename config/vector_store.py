# config/vector_store.py
from typing import Optional
from config.settings import settings
from core.vector_store import QdrantVectorStore

_store: Optional[QdrantVectorStore] = None


async def init_vector_store() -> QdrantVectorStore:
    """
    Create the shared vector-store handle once and make sure the collection exists.
    """
    global _store
    if _store is None:
        store = QdrantVectorStore(
            url=settings.QDRANT_URL,
            api_key=settings.QDRANT_API_KEY,
            collection=settings.COLLECTION_NAME,
            vector_size=settings.VECTOR_SIZE,
            upsert_batch_size=settings.UPSERT_BATCH_SIZE,
            strict_vector_size=settings.VECTOR_SIZE_STRICT,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
        )
        try:
            await store.ensure_collection()
        except Exception:
            await store.aclose()
            raise
        _store = store
    return _store


def get_vector_store() -> QdrantVectorStore:
    if _store is None:
        raise RuntimeError("Vector store not initialized. Call init_vector_store() first.")
    return _store


async def close_vector_store() -> None:
    global _store
    if _store is not None:
        await _store.aclose()
        _store = None
