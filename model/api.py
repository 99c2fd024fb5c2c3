# model/api.py
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field
from core.entities import GeneratedAnswer


# Requests stay permissive so field-level checks can answer with specific error codes.
class IngestRequest(BaseModel):
    doc_id: Optional[str] = None
    pdf_base64: Optional[str] = None
    overwrite: bool = False
    chunk_size: Optional[int] = None
    chunk_overlap: Optional[int] = None


class QueryRequest(BaseModel):
    question: Optional[str] = None
    top_k: int = 5
    doc_id: Optional[str] = None
    min_score: float = 0.0


class IngestResponse(BaseModel):
    success: bool = True
    message: str
    doc_id: str
    total_chunks: int
    total_pages: int
    processing_time_ms: int


class Source(BaseModel):
    doc_id: str
    page: int
    relevanceScore: float


class Answer(BaseModel):
    text: str
    sources: list[Source] = Field(default_factory=list)
    confidence: float = Field(ge=0.0, le=1.0)

    @classmethod
    def from_generated(cls, answer: GeneratedAnswer) -> "Answer":
        return cls(
            text=answer.text,
            sources=[
                Source(doc_id=s.doc_id, page=s.page, relevanceScore=s.relevance_score)
                for s in answer.sources
            ],
            confidence=answer.confidence,
        )


class QueryResponse(BaseModel):
    success: bool = True
    answer: Answer
    query_time_ms: int
    total_results: int


class StatsResponse(BaseModel):
    success: bool = True
    collection_stats: Dict[str, Any]
    timestamp: str


class DeleteDocumentResponse(BaseModel):
    success: bool = True
    doc_id: str
    timestamp: str


ServiceStatus = Literal["healthy", "unhealthy"]


class HealthServices(BaseModel):
    api: ServiceStatus
    vectorstore: ServiceStatus


class HealthResponse(BaseModel):
    status: ServiceStatus
    services: HealthServices
    timestamp: str


class ServiceHealthResponse(BaseModel):
    status: ServiceStatus
    service: str
    timestamp: str


class RootResponse(BaseModel):
    message: str
    version: str
    status: ServiceStatus
    endpoints: Dict[str, str]
    timestamp: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    code: str
    processing_time_ms: Optional[int] = None
    query_time_ms: Optional[int] = None
