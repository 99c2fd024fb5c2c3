# core/query_pipeline.py
import time
from typing import Optional
from core.answer_generator import AnswerGenerator
from core.embedding_client import EmbeddingClient
from core.entities import GeneratedAnswer, QueryResult
from core.validation import validate_min_score, validate_question, validate_top_k
from core.vector_store import QdrantVectorStore
from util.errors import EmbeddingError
from util.functions import clip_chars
from util.timing import elapsed_ms
import logging

logger = logging.getLogger(__name__)

NO_RESULTS_TEXT = (
    "I couldn't find any relevant information to answer your question. Please try "
    "rephrasing your question or check if the relevant documents have been ingested."
)


class QueryPipeline:
    def __init__(
        self,
        *,
        embedder: EmbeddingClient,
        store: QdrantVectorStore,
        generator: AnswerGenerator,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._generator = generator

    async def run(
        self,
        *,
        question: Optional[str],
        top_k: int = 5,
        doc_id: Optional[str] = None,
        min_score: float = 0.0,
    ) -> QueryResult:
        t0 = time.perf_counter()
        question = validate_question(question)
        validate_top_k(top_k)
        validate_min_score(min_score)
        doc_id = (doc_id or "").strip() or None

        logger.info(
            "query.start q=%r top_k=%d doc=%s min_score=%.2f",
            clip_chars(question),
            top_k,
            doc_id or "-",
            min_score,
        )

        shortcut = self._generator.conversational_reply(question)
        if shortcut is not None:
            return QueryResult(answer=shortcut, total_results=0, query_time_ms=elapsed_ms(t0))

        vector = await self._embedder.embed_query(question)
        if not vector:
            raise EmbeddingError("Failed to generate query embedding")

        hits = await self._store.search(vector, top_k, doc_id)
        relevant = [h for h in hits if h.score >= min_score]
        logger.info("query.hits total=%d kept=%d", len(hits), len(relevant))

        if not relevant:
            return QueryResult(
                answer=GeneratedAnswer(text=NO_RESULTS_TEXT, sources=[], confidence=0.0),
                total_results=0,
                query_time_ms=elapsed_ms(t0),
            )

        answer = await self._generator.generate_answer(question, relevant)
        took = elapsed_ms(t0)
        logger.info(
            "query.ok results=%d confidence=%.3f ms=%d", len(relevant), answer.confidence, took
        )
        return QueryResult(answer=answer, total_results=len(relevant), query_time_ms=took)
