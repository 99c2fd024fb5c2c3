# core/local_embeddings.py
import asyncio
from functools import lru_cache
from typing import List
import numpy as np
from sentence_transformers import SentenceTransformer
from core.embedding_client import EmbeddingClient
from util.timing import timed
import logging

logger = logging.getLogger(__name__)


@lru_cache(maxsize=2)
def _load_model(name: str) -> SentenceTransformer:
    """
    Lazy-load the sentence embedding model on CPU.
    """
    with timed(logger, "embed.model.load", model=name):
        model = SentenceTransformer(name, device="cpu")
    return model


class SentenceTransformerEmbeddingClient(EmbeddingClient):
    """
    In-process embeddings with L2-normalized vectors, so cosine similarity in the
    store matches the remote providers' behaviour. VECTOR_SIZE must equal the
    model's output dimension (384 for all-MiniLM-L6-v2).
    """

    provider = "local"

    def __init__(self, *, model_name: str, encode_batch_size: int = 64, **kwargs) -> None:
        super().__init__(**kwargs)
        self._model_name = model_name
        self._encode_batch = encode_batch_size
        # Local encoding has no remote rate limit to respect
        self._batch_delay = 0.0

    def _encode(self, texts: List[str]) -> List[List[float]]:
        model = _load_model(self._model_name)
        vecs = model.encode(
            list(texts),
            batch_size=self._encode_batch,
            convert_to_numpy=True,
            normalize_embeddings=True,
        )
        return vecs.astype(np.float32, copy=False).tolist()

    async def _embed_texts(self, texts: List[str], *, is_query: bool) -> List[List[float]]:
        return await asyncio.to_thread(self._encode, texts)
