# service/query_service.py
import time
from core.query_pipeline import QueryPipeline
from core.vector_store import QdrantVectorStore
from model.api import Answer, QueryRequest, QueryResponse, StatsResponse
from util.enums import ErrorCode
from util.errors import AppError, EmbeddingError, InvalidInputError, RagError
from util.functions import utc_now_iso
from util.timing import elapsed_ms
import logging

logger = logging.getLogger(__name__)


class QueryService:
    def __init__(self, pipeline: QueryPipeline, store: QdrantVectorStore) -> None:
        self._pipeline = pipeline
        self._store = store

    async def query(self, req: QueryRequest) -> QueryResponse:
        t0 = time.perf_counter()
        try:
            result = await self._pipeline.run(
                question=req.question,
                top_k=req.top_k,
                doc_id=req.doc_id,
                min_score=req.min_score,
            )
        except InvalidInputError as e:
            raise AppError(str(e), e.error)
        except EmbeddingError as e:
            raise AppError(
                f"Failed to generate query embedding: {e}",
                ErrorCode.EMBEDDING_ERROR,
                {"query_time_ms": elapsed_ms(t0)},
            )
        except RagError as e:
            logger.error("query.error err=%s", type(e).__name__)
            raise AppError(
                f"Query failed: {e}",
                ErrorCode.QUERY_ERROR,
                {"query_time_ms": elapsed_ms(t0)},
            )
        except Exception as e:
            logger.exception("query.unexpected err=%s", type(e).__name__)
            raise AppError(
                f"Query failed: {e or type(e).__name__}",
                ErrorCode.QUERY_ERROR,
                {"query_time_ms": elapsed_ms(t0)},
            )

        return QueryResponse(
            answer=Answer.from_generated(result.answer),
            query_time_ms=result.query_time_ms,
            total_results=result.total_results,
        )

    async def stats(self) -> StatsResponse:
        try:
            info = await self._store.get_collection_info()
        except RagError as e:
            logger.error("query.stats.error err=%s", type(e).__name__)
            raise AppError(f"Failed to retrieve collection information: {e}", ErrorCode.STATS_ERROR)
        return StatsResponse(collection_stats=info, timestamp=utc_now_iso())
