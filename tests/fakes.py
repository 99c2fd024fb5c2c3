"""
In-memory stand-ins for the remote collaborators.

FakeQdrant speaks enough of the Qdrant REST API (through httpx.MockTransport) for the real
QdrantVectorStore to run against it; the embedder and LLM fakes subclass the real clients
so batching, retry and validation logic stays under test.
"""

import json
import math
import re
from contextlib import asynccontextmanager
from typing import Any, Callable, Dict, List, Optional, Set

import httpx

from core.embedding_client import EmbeddingClient
from core.llm_client import GenerationClient
from core.retry import RetryPolicy, is_transient
from core.vector_store import QdrantVectorStore
from repository.document_lock_repository import DocumentLockRepository
from util.errors import DocumentLockedError

VECTOR_SIZE = 8

_POINTS = re.compile(r"^/collections/([^/]+)/points(?:/(search|count|delete))?$")
_COLLECTION = re.compile(r"^/collections/([^/]+)$")


def _cosine(a: List[float], b: List[float]) -> float:
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(x * x for x in b))
    if na == 0 or nb == 0:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / (na * nb)


class FakeQdrant:
    def __init__(self, vector_size: int = VECTOR_SIZE) -> None:
        self.vector_size = vector_size
        self.collections: Dict[str, Dict[str, Any]] = {}
        self.points: Dict[str, Dict[str, Any]] = {}
        self.requests: List[str] = []
        self.fail_upsert_after: Optional[int] = None  # successful upsert calls before failing
        self.fail_delete = False
        self.fail_all = False
        self.upsert_calls = 0

    # -------- helpers --------

    def doc_points(self, doc_id: str) -> List[Dict[str, Any]]:
        return [p for p in self.points.values() if p["payload"].get("doc_id") == doc_id]

    def seed(self, doc_id: str, texts: List[str], vector: Optional[List[float]] = None) -> None:
        for i, t in enumerate(texts):
            pid = f"seed-{doc_id}-{i}"
            self.points[pid] = {
                "id": pid,
                "vector": vector or [1.0] + [0.0] * (self.vector_size - 1),
                "payload": {"doc_id": doc_id, "text": t, "page": 1, "chunk_index": i},
            }

    @staticmethod
    def _matches(point: Dict[str, Any], flt: Optional[Dict[str, Any]]) -> bool:
        if not flt:
            return True
        for cond in flt.get("must", []):
            if point["payload"].get(cond["key"]) != cond["match"]["value"]:
                return False
        return True

    @staticmethod
    def _ok(result: Any) -> httpx.Response:
        return httpx.Response(200, json={"result": result, "status": "ok", "time": 0.001})

    # -------- transport --------

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        self.requests.append(f"{request.method} {path}")
        if self.fail_all:
            return httpx.Response(503, json={"status": {"error": "service unavailable"}})
        body = json.loads(request.content) if request.content else {}

        if request.method == "GET" and path == "/collections":
            return self._ok({"collections": [{"name": n} for n in self.collections]})

        m = _COLLECTION.match(path)
        if m:
            name = m.group(1)
            if request.method == "PUT":
                self.collections[name] = body
                return self._ok(True)
            if name not in self.collections:
                return httpx.Response(404, json={"status": {"error": f"Collection `{name}` doesn't exist!"}})
            return self._ok(
                {
                    "status": "green",
                    "points_count": len(self.points),
                    "indexed_vectors_count": len(self.points),
                    "config": {"params": self.collections[name]},
                }
            )

        m = _POINTS.match(path)
        if m:
            op = m.group(2)
            if op is None and request.method == "PUT":
                if self.fail_upsert_after is not None and self.upsert_calls >= self.fail_upsert_after:
                    return httpx.Response(400, json={"status": {"error": "Wrong input: bad point"}})
                self.upsert_calls += 1
                for p in body["points"]:
                    self.points[p["id"]] = p
                return self._ok({"operation_id": self.upsert_calls, "status": "completed"})
            if op == "search":
                hits = [
                    {
                        "id": p["id"],
                        "version": 0,
                        "score": _cosine(body["vector"], p["vector"]),
                        "payload": p["payload"],
                    }
                    for p in self.points.values()
                    if self._matches(p, body.get("filter"))
                ]
                hits.sort(key=lambda h: h["score"], reverse=True)
                return self._ok(hits[: body["limit"]])
            if op == "count":
                n = sum(1 for p in self.points.values() if self._matches(p, body.get("filter")))
                return self._ok({"count": n})
            if op == "delete":
                if self.fail_delete:
                    return httpx.Response(500, json={"status": {"error": "delete failed"}})
                for pid in [k for k, p in self.points.items() if self._matches(p, body.get("filter"))]:
                    del self.points[pid]
                return self._ok({"operation_id": 0, "status": "completed"})

        return httpx.Response(404, json={"status": {"error": f"no route {path}"}})

    def store(self, collection: str = "test_vectors", **kwargs) -> QdrantVectorStore:
        client = httpx.AsyncClient(
            base_url="http://qdrant.test", transport=httpx.MockTransport(self.handler)
        )
        return QdrantVectorStore(
            url="http://qdrant.test",
            collection=collection,
            vector_size=self.vector_size,
            http_client=client,
            **kwargs,
        )


class FakeEmbedder(EmbeddingClient):
    provider = "fake"

    def __init__(
        self,
        *,
        fn: Optional[Callable[[str], List[float]]] = None,
        fail_on_call: Optional[int] = None,
        error: Optional[BaseException] = None,
        **kwargs,
    ) -> None:
        kwargs.setdefault("batch_size", 2)
        kwargs.setdefault("batch_delay_seconds", 0.0)
        kwargs.setdefault(
            "retry_policy",
            RetryPolicy(max_attempts=3, backoff=lambda _: 0.0, retryable=is_transient, name="embed"),
        )
        super().__init__(**kwargs)
        self._fn = fn or keyword_vector
        self._fail_on_call = fail_on_call
        self._error = error
        self.calls: List[List[str]] = []

    async def _embed_texts(self, texts: List[str], *, is_query: bool) -> List[List[float]]:
        self.calls.append(list(texts))
        if self._fail_on_call is not None and len(self.calls) >= self._fail_on_call:
            raise self._error or httpx.ConnectError("embedding service down")
        return [self._fn(t) for t in texts]


class FakeLLM(GenerationClient):
    provider = "fake"

    def __init__(self, answer: str = "The warranty lasts two years.", **kwargs) -> None:
        kwargs.setdefault(
            "retry_policy",
            RetryPolicy(max_attempts=3, backoff=lambda _: 0.0, retryable=is_transient, name="generate"),
        )
        kwargs.setdefault("http_client", httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(500))))
        super().__init__(**kwargs)
        self.answer = answer
        self.prompts: List[str] = []

    async def _complete(self, system: str, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.answer


class InMemoryLocks(DocumentLockRepository):
    def __init__(self) -> None:
        super().__init__(timeout_seconds=60, wait_seconds=0)
        self.held: Set[str] = set()

    @asynccontextmanager
    async def hold(self, doc_id: str):
        if doc_id in self.held:
            raise DocumentLockedError(f"Document {doc_id} is already being ingested.")
        self.held.add(doc_id)
        try:
            yield
        finally:
            self.held.discard(doc_id)


def make_pdf(pages: List[str]) -> bytes:
    import fitz

    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_textbox(fitz.Rect(50, 50, 550, 800), text, fontsize=10)
    data = doc.tobytes()
    doc.close()
    return data


_TOPICS = (
    ("warranty", "repair", "repairs", "guarantee"),
    ("return", "returns", "refund", "refunds"),
    ("shipping", "delivery"),
)


def keyword_vector(text: str, dim: int = VECTOR_SIZE) -> List[float]:
    """One dimension per topic; text mentioning no topic lands on the last dimension."""
    words = set(re.findall(r"[a-z]+", text.lower()))
    vec = [0.0] * dim
    for i, topic in enumerate(_TOPICS):
        if words.intersection(topic):
            vec[i] = 1.0
    if not any(vec):
        vec[dim - 1] = 1.0
    return vec


class CharEncoding:
    """One token per character, so token windows map onto exact character spans."""

    def encode(self, text: str, disallowed_special=()) -> List[int]:
        return [ord(c) for c in text]
