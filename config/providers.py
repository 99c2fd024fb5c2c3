# config/providers.py
from typing import Optional
from config.settings import settings
from core.embedding_client import EmbeddingClient, build_embedding_client
from core.llm_client import GenerationClient, build_generation_client

_embedder: Optional[EmbeddingClient] = None
_llm: Optional[GenerationClient] = None


def init_providers() -> None:
    """
    Build the embedding and generation adapters selected in settings. Idempotent.
    """
    global _embedder, _llm
    if _embedder is None:
        _embedder = build_embedding_client(settings)
    if _llm is None:
        _llm = build_generation_client(settings)


def get_embedding_client() -> EmbeddingClient:
    if _embedder is None:
        raise RuntimeError("Providers not initialized. Call init_providers() first.")
    return _embedder


def get_generation_client() -> GenerationClient:
    if _llm is None:
        raise RuntimeError("Providers not initialized. Call init_providers() first.")
    return _llm


async def close_providers() -> None:
    global _embedder, _llm
    if _embedder is not None:
        await _embedder.aclose()
        _embedder = None
    if _llm is not None:
        await _llm.aclose()
        _llm = None
