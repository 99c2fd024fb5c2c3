# core/embedding_client.py
import asyncio
from typing import Awaitable, Callable, List, Optional, Sequence
import httpx
import numpy as np
from config.settings import Settings
from core.entities import EmbeddedChunk, TextChunk
from core.retry import RetryPolicy, exponential_backoff, is_transient, raise_for_status, with_retry
from util.enums import EmbeddingProvider, ErrorCode
from util.errors import EmbeddingError, InvalidInputError, NonRetryableRemoteError
from util.timing import timed
import logging

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class EmbeddingClient:
    """
    Batching, retry and validation around a provider's "texts -> vectors" call.
    Providers implement `_embed_texts`; everything else lives here.
    """

    provider: str = "base"

    def __init__(
        self,
        *,
        batch_size: int = 10,
        batch_delay_seconds: float = 2.0,
        retry_policy: Optional[RetryPolicy] = None,
        expected_dim: Optional[int] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._batch_size = max(1, batch_size)
        self._batch_delay = batch_delay_seconds
        self._policy = retry_policy or RetryPolicy(
            max_attempts=3,
            backoff=exponential_backoff(2.0),
            retryable=is_transient,
            name="embed",
        )
        self._expected_dim = expected_dim
        self._sleep = sleep

    async def _embed_texts(self, texts: List[str], *, is_query: bool) -> List[List[float]]:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None

    async def embed_chunks(self, chunks: Sequence[TextChunk]) -> List[EmbeddedChunk]:
        """
        Embed every chunk or fail as a whole. Batches run sequentially with a fixed pause
        between them; no partial result is ever returned.
        """
        if not chunks:
            return []
        total_batches = (len(chunks) + self._batch_size - 1) // self._batch_size
        out: List[EmbeddedChunk] = []
        dim: Optional[int] = self._expected_dim
        with timed(logger, "embed.chunks", n=len(chunks), batches=total_batches):
            for b, start in enumerate(range(0, len(chunks), self._batch_size), start=1):
                batch = list(chunks[start : start + self._batch_size])
                logger.info(
                    "embed.batch %d/%d size=%d provider=%s",
                    b,
                    total_batches,
                    len(batch),
                    self.provider,
                )
                vectors = await self._call([c.text for c in batch], is_query=False)
                dim = self._validate_batch(vectors, expected_count=len(batch), dim=dim, batch_no=b)
                out.extend(EmbeddedChunk(chunk=c, vector=v) for c, v in zip(batch, vectors))

                if b < total_batches and self._batch_delay > 0:
                    await self._sleep(self._batch_delay)
        logger.info("embed.chunks.ok n=%d dim=%s", len(out), dim)
        return out

    async def embed_query(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise InvalidInputError("Query cannot be empty", ErrorCode.INVALID_QUESTION)
        with timed(logger, "embed.query", provider=self.provider):
            vectors = await self._call([text], is_query=True)
        self._validate_batch(vectors, expected_count=1, dim=self._expected_dim, batch_no=1)
        return vectors[0]

    async def _call(self, texts: List[str], *, is_query: bool) -> List[List[float]]:
        try:
            return await with_retry(
                lambda: self._embed_texts(texts, is_query=is_query), self._policy
            )
        except EmbeddingError:
            raise
        except NonRetryableRemoteError as e:
            raise EmbeddingError(str(e)) from e
        except httpx.HTTPError as e:
            raise EmbeddingError(
                f"embedding request failed after {self._policy.max_attempts} attempts: {e}"
            ) from e

    @staticmethod
    def _validate_batch(
        vectors: List[List[float]],
        *,
        expected_count: int,
        dim: Optional[int],
        batch_no: int,
    ) -> int:
        if len(vectors) != expected_count:
            raise EmbeddingError(
                f"batch {batch_no}: expected {expected_count} embeddings, got {len(vectors)}"
            )
        for i, vec in enumerate(vectors):
            if not vec:
                raise EmbeddingError(f"batch {batch_no}: embedding {i} is empty")
            if dim is None:
                dim = len(vec)
            if len(vec) != dim:
                raise EmbeddingError(
                    f"batch {batch_no}: embedding {i} has dimension {len(vec)}, expected {dim}"
                )
            try:
                arr = np.asarray(vec, dtype=np.float64)
            except (TypeError, ValueError) as exc:
                raise EmbeddingError(
                    f"batch {batch_no}: embedding {i} contains non-numeric values"
                ) from exc
            if not np.all(np.isfinite(arr)):
                raise EmbeddingError(
                    f"batch {batch_no}: embedding {i} contains NaN or infinite values"
                )
        return dim or 0


class GeminiEmbeddingClient(EmbeddingClient):
    """
    Gemini `batchEmbedContents` over HTTP.
    Response shape: {"embeddings": [{"values": [float, ...]}, ...]}
    """

    provider = "gemini"

    def __init__(
        self,
        *,
        url: str,
        api_key: str,
        model: str,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self._url = url
        self._api_key = api_key
        self._model = model
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    def _payload(self, texts: List[str], is_query: bool) -> dict:
        task = "RETRIEVAL_QUERY" if is_query else "RETRIEVAL_DOCUMENT"
        requests = []
        for t in texts:
            req = {
                "model": self._model,
                "content": {"parts": [{"text": t}]},
                "taskType": task,
            }
            if self._expected_dim:
                req["outputDimensionality"] = self._expected_dim
            requests.append(req)
        return {"requests": requests}

    async def _embed_texts(self, texts: List[str], *, is_query: bool) -> List[List[float]]:
        headers = {
            "x-goog-api-key": self._api_key,
            "content-type": "application/json",
        }
        resp = await self._client.post(
            self._url, headers=headers, json=self._payload(texts, is_query)
        )
        raise_for_status(resp, "embedding API")
        try:
            data = resp.json()
        except ValueError as e:
            raise EmbeddingError("embedding API returned invalid JSON") from e

        embeddings = data.get("embeddings") if isinstance(data, dict) else None
        if not isinstance(embeddings, list) or not embeddings:
            raise EmbeddingError("invalid embedding response format")
        out: List[List[float]] = []
        for e in embeddings:
            values = e.get("values") if isinstance(e, dict) else None
            if values is None:
                raise EmbeddingError("embedding values are missing")
            try:
                out.append([float(v) for v in values])
            except (TypeError, ValueError) as exc:
                raise EmbeddingError("embedding values must be numeric") from exc
        return out

    async def aclose(self) -> None:
        await self._client.aclose()


def build_embedding_client(cfg: Settings) -> EmbeddingClient:
    """
    Select the embedding adapter named by EMBEDDING_PROVIDER.
    """
    common = dict(
        batch_size=cfg.EMBED_BATCH_SIZE,
        batch_delay_seconds=cfg.EMBED_BATCH_DELAY_SECONDS,
        retry_policy=RetryPolicy(
            max_attempts=cfg.REMOTE_MAX_ATTEMPTS,
            backoff=exponential_backoff(cfg.EMBED_RETRY_BASE_SECONDS),
            retryable=is_transient,
            name="embed",
        ),
        expected_dim=cfg.VECTOR_SIZE,
    )
    if cfg.EMBEDDING_PROVIDER == EmbeddingProvider.LOCAL:
        # Imported here so the torch stack only loads when the local model is used
        from core.local_embeddings import SentenceTransformerEmbeddingClient

        return SentenceTransformerEmbeddingClient(model_name=cfg.EMBEDDING_MODEL_NAME, **common)
    return GeminiEmbeddingClient(
        url=cfg.GEMINI_EMBED_URL or "",
        api_key=cfg.GEMINI_API_KEY or "",
        model=cfg.GEMINI_EMBED_MODEL,
        timeout=cfg.HTTP_TIMEOUT_SECONDS,
        **common,
    )
