# core/entities.py
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Any


@dataclass(frozen=True)
class PdfPage:
    page: int  # 1-based page index
    text: str


@dataclass(frozen=True)
class TextChunk:
    """
    One overlapping span of a page. `id` is "{doc_id}:{page}:{chunk_index}".
    """

    id: str
    text: str
    doc_id: str
    page: int
    chunk_index: int


@dataclass(frozen=True)
class EmbeddedChunk:
    chunk: TextChunk
    vector: List[float]

    @property
    def id(self) -> str:
        return self.chunk.id

    @property
    def text(self) -> str:
        return self.chunk.text

    @property
    def doc_id(self) -> str:
        return self.chunk.doc_id

    @property
    def page(self) -> int:
        return self.chunk.page

    @property
    def chunk_index(self) -> int:
        return self.chunk.chunk_index


@dataclass(frozen=True)
class SearchPayload:
    text: str
    doc_id: str
    page: int
    chunk_index: int

    @classmethod
    def from_raw(cls, raw: Optional[Dict[str, Any]]) -> "SearchPayload":
        raw = raw or {}
        return cls(
            text=str(raw.get("text") or ""),
            doc_id=str(raw.get("doc_id") or ""),
            page=int(raw.get("page") or 0),
            chunk_index=int(raw.get("chunk_index") or 0),
        )


@dataclass(frozen=True)
class SearchResult:
    id: str
    score: float  # cosine similarity
    payload: SearchPayload


@dataclass(frozen=True)
class AnswerSource:
    doc_id: str
    page: int
    relevance_score: float


@dataclass
class GeneratedAnswer:
    text: str
    sources: List[AnswerSource] = field(default_factory=list)
    confidence: float = 0.0


@dataclass(frozen=True)
class IngestionResult:
    doc_id: str
    total_chunks: int
    total_pages: int
    processing_time_ms: int
    replaced_existing: bool = False


@dataclass(frozen=True)
class QueryResult:
    answer: GeneratedAnswer
    total_results: int
    query_time_ms: int
