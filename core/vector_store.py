# core/vector_store.py
import math
import uuid
from typing import Any, Dict, List, Optional, Sequence
import httpx
from core.entities import EmbeddedChunk, SearchPayload, SearchResult
from util.constants import Limits
from util.errors import InvalidInputError, InvalidPointError, StorageError
from util.enums import ErrorCode
from util.functions import utc_now_iso
from util.timing import timed
import logging

logger = logging.getLogger(__name__)


def _doc_filter(doc_id: str) -> Dict[str, Any]:
    return {"must": [{"key": "doc_id", "match": {"value": doc_id}}]}


def _qdrant_error(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "")[:300]
    status = body.get("status") if isinstance(body, dict) else None
    if isinstance(status, dict) and status.get("error"):
        return str(status["error"])[:300]
    return str(body)[:300]


class QdrantVectorStore:
    """
    Thin client over the Qdrant REST API for one collection.

    The collection is created with cosine distance and `vector_size` dimensions and is
    never reconfigured afterwards. Every point carries `doc_id` in its payload; documents
    are deleted and counted through a `doc_id` equality filter.
    """

    def __init__(
        self,
        *,
        url: str,
        collection: str,
        vector_size: int,
        api_key: Optional[str] = None,
        upsert_batch_size: int = 100,
        strict_vector_size: bool = False,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.collection = collection
        self.vector_size = vector_size
        self._batch = max(1, upsert_batch_size)
        self._strict = strict_vector_size
        headers = {"content-type": "application/json"}
        if api_key:
            headers["api-key"] = api_key
        self._client = http_client or httpx.AsyncClient(
            base_url=url.rstrip("/"), headers=headers, timeout=timeout
        )
        self._ready = False

    @property
    def _base(self) -> str:
        return f"/collections/{self.collection}"

    async def _request(self, method: str, path: str, op: str, **kwargs) -> Dict[str, Any]:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error("vector.%s.transport_error err=%s", op, type(e).__name__)
            raise StorageError(f"vector store {op} failed: {e}") from e
        if resp.status_code >= 400:
            detail = _qdrant_error(resp)
            logger.error("vector.%s.bad_status status=%d detail=%s", op, resp.status_code, detail)
            raise StorageError(
                f"vector store {op} failed with status {resp.status_code}: {detail}"
            )
        try:
            return resp.json()
        except ValueError:
            return {}

    # ---------------- Collection lifecycle ----------------

    async def list_collections(self) -> List[str]:
        data = await self._request("GET", "/collections", "list")
        cols = (data.get("result") or {}).get("collections") or []
        return [str(c.get("name")) for c in cols if isinstance(c, dict)]

    async def ensure_collection(self) -> None:
        """
        Create the collection when absent; otherwise check its vector size.
        A size mismatch is logged, or raised when strict_vector_size is set.
        """
        with timed(logger, "vector.ensure", collection=self.collection):
            names = await self.list_collections()
            if self.collection not in names:
                await self._request(
                    "PUT",
                    self._base,
                    "create",
                    json={
                        "vectors": {"size": self.vector_size, "distance": "Cosine"},
                        "optimizers_config": {
                            "default_segment_number": 2,
                            "max_segment_size": 20000,
                        },
                        "replication_factor": 1,
                    },
                )
                logger.info(
                    "vector.collection.created name=%s size=%d",
                    self.collection,
                    self.vector_size,
                )
            else:
                info = await self._raw_info()
                actual = self._configured_size(info)
                if actual is not None and actual != self.vector_size:
                    msg = (
                        f"vector size mismatch: collection '{self.collection}' has {actual}, "
                        f"config expects {self.vector_size}"
                    )
                    if self._strict:
                        raise StorageError(msg)
                    logger.warning("vector.collection.size_mismatch %s", msg)
                else:
                    logger.info("vector.collection.exists name=%s", self.collection)
        self._ready = True

    async def _ensure_ready(self) -> None:
        if not self._ready:
            await self.ensure_collection()

    async def _raw_info(self) -> Dict[str, Any]:
        data = await self._request("GET", self._base, "info")
        return data.get("result") or {}

    @staticmethod
    def _configured_size(info: Dict[str, Any]) -> Optional[int]:
        vectors = ((info.get("config") or {}).get("params") or {}).get("vectors")
        if isinstance(vectors, dict) and "size" in vectors:
            try:
                return int(vectors["size"])
            except (TypeError, ValueError):
                return None
        return None

    async def get_collection_info(self) -> Dict[str, Any]:
        info = await self._raw_info()
        return {
            "status": info.get("status"),
            "vectors_count": info.get("vectors_count", info.get("indexed_vectors_count")),
            "points_count": info.get("points_count"),
            "config": info.get("config"),
        }

    async def health_check(self) -> bool:
        try:
            await self.list_collections()
            return True
        except StorageError:
            return False

    # ---------------- Points ----------------

    def _validate_point(self, p: EmbeddedChunk, index: int) -> None:
        where = f"point {p.id!r} at index {index}"
        if not p.vector:
            raise InvalidPointError(f"invalid vector for {where}: vector is empty", p.id)
        if len(p.vector) != self.vector_size:
            raise InvalidPointError(
                f"invalid vector dimension for {where}: expected {self.vector_size}, "
                f"got {len(p.vector)}",
                p.id,
            )
        if any(not math.isfinite(v) for v in p.vector):
            raise InvalidPointError(
                f"invalid vector values for {where}: contains NaN or infinite values", p.id
            )
        if not p.id or not p.text or not p.doc_id:
            raise InvalidPointError(
                f"missing required fields at index {index}: id={p.id!r}, "
                f"text length={len(p.text or '')}, doc_id={p.doc_id!r}",
                p.id,
            )
        if len(p.id) > Limits.POINT_ID_MAX_CHARS:
            raise InvalidPointError(
                f"point id too long at index {index}: {len(p.id)} characters "
                f"(max {Limits.POINT_ID_MAX_CHARS})",
                p.id,
            )

    @staticmethod
    def _to_point(p: EmbeddedChunk, created_at: str) -> Dict[str, Any]:
        return {
            "id": str(uuid.uuid4()),
            "vector": list(p.vector),
            "payload": {
                "original_id": p.id,
                "text": p.text,
                "doc_id": p.doc_id,
                "page": p.page,
                "chunk_index": p.chunk_index,
                "created_at": created_at,
            },
        }

    async def upsert(self, points: Sequence[EmbeddedChunk]) -> int:
        """
        Validate every point, then write in batches. Returns the number of points written.
        Nothing is sent if any point is invalid; a rejected batch is not retried.
        """
        if not points:
            logger.warning("vector.upsert.empty")
            return 0
        for i, p in enumerate(points):
            self._validate_point(p, i)

        await self._ensure_ready()
        created_at = utc_now_iso()
        written = 0
        with timed(logger, "vector.upsert", n=len(points), batch=self._batch):
            for start in range(0, len(points), self._batch):
                batch = points[start : start + self._batch]
                end = start + len(batch)
                payload = [self._to_point(p, created_at) for p in batch]
                try:
                    await self._request(
                        "PUT",
                        f"{self._base}/points",
                        "upsert",
                        params={"wait": "true"},
                        json={"points": payload},
                    )
                except StorageError as e:
                    sample = {
                        "id": payload[0]["id"],
                        "original_id": payload[0]["payload"]["original_id"],
                        "vector_length": len(payload[0]["vector"]),
                        "payload_keys": sorted(payload[0]["payload"].keys()),
                    }
                    logger.error(
                        "vector.upsert.batch_failed range=%d-%d sample=%s",
                        start,
                        end,
                        sample,
                    )
                    raise StorageError(
                        f"vector upsert failed for points {start}-{end} of {len(points)} "
                        f"(sample {sample}): {e}"
                    ) from e
                written = end
                logger.info("vector.upsert.batch range=%d-%d of=%d", start, end, len(points))
        return written

    async def search(
        self, vector: Sequence[float], top_k: int = 5, doc_id: Optional[str] = None
    ) -> List[SearchResult]:
        """
        Nearest neighbours by cosine similarity, in the order the store returns them.
        """
        if not vector:
            raise InvalidInputError("Search vector cannot be empty")
        if top_k < 1 or top_k > Limits.SEARCH_TOP_K_MAX:
            raise InvalidInputError(
                f"top_k must be between 1 and {Limits.SEARCH_TOP_K_MAX}",
                ErrorCode.INVALID_TOP_K,
            )
        await self._ensure_ready()
        body: Dict[str, Any] = {
            "vector": list(vector),
            "limit": top_k,
            "with_payload": True,
        }
        if doc_id:
            body["filter"] = _doc_filter(doc_id)
        with timed(logger, "vector.search", k=top_k, filtered=bool(doc_id)):
            data = await self._request(
                "POST", f"{self._base}/points/search", "search", json=body
            )
        out = [
            SearchResult(
                id=str(r.get("id")),
                score=float(r.get("score") or 0.0),
                payload=SearchPayload.from_raw(r.get("payload")),
            )
            for r in (data.get("result") or [])
        ]
        logger.info("vector.search.hits n=%d", len(out))
        return out

    async def count_by_doc(self, doc_id: str) -> int:
        await self._ensure_ready()
        data = await self._request(
            "POST",
            f"{self._base}/points/count",
            "count",
            json={"filter": _doc_filter(doc_id), "exact": True},
        )
        return int((data.get("result") or {}).get("count") or 0)

    async def delete_by_doc(self, doc_id: str) -> None:
        """
        Remove every point of `doc_id`. Deleting an unknown document is a no-op.
        """
        if not doc_id:
            raise InvalidInputError("Document ID is required for deletion")
        await self._ensure_ready()
        with timed(logger, "vector.delete", doc=doc_id):
            await self._request(
                "POST",
                f"{self._base}/points/delete",
                "delete",
                params={"wait": "true"},
                json={"filter": _doc_filter(doc_id)},
            )

    async def aclose(self) -> None:
        await self._client.aclose()
