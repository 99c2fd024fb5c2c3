# service/ingestion_service.py
import time
from typing import Optional
from core.ingestion_pipeline import IngestionPipeline
from core.validation import validate_doc_id
from core.vector_store import QdrantVectorStore
from model.api import DeleteDocumentResponse, IngestRequest, IngestResponse
from repository.document_lock_repository import DocumentLockRepository
from util.enums import ErrorCode
from util.errors import (
    AppError,
    DocumentExistsError,
    DocumentLockedError,
    EmbeddingError,
    ExtractionError,
    InvalidInputError,
    RagError,
    StorageError,
)
from util.functions import utc_now_iso
from util.timing import elapsed_ms
import logging

logger = logging.getLogger(__name__)

NOT_STORED = "No data has been stored."
NOT_MODIFIED = "No data has been stored or modified."


def _storage_outcome(e: StorageError, doc_id: Optional[str]) -> str:
    if not e.cleaned_up:
        note = f"Partial data for {doc_id} may remain; delete the document and retry."
    else:
        note = NOT_STORED
    if e.previous_deleted:
        note += " The previous version of the document was already deleted."
    return note


class IngestionService:
    def __init__(
        self,
        pipeline: IngestionPipeline,
        locks: DocumentLockRepository,
        store: QdrantVectorStore,
    ) -> None:
        self._pipeline = pipeline
        self._locks = locks
        self._store = store

    async def ingest(self, req: IngestRequest) -> IngestResponse:
        """
        Run the ingestion pipeline under the document's lock and translate failures
        into API errors that say whether anything was written.
        """
        t0 = time.perf_counter()
        try:
            doc_id = validate_doc_id(req.doc_id)
            async with self._locks.hold(doc_id):
                result = await self._pipeline.run(
                    doc_id=doc_id,
                    pdf_base64=req.pdf_base64,
                    overwrite=req.overwrite,
                    chunk_size=req.chunk_size,
                    chunk_overlap=req.chunk_overlap,
                )
        except Exception as e:
            raise self._to_app_error(e, elapsed_ms(t0), req.doc_id) from e

        return IngestResponse(
            message=(
                f"Successfully ingested document with {result.total_chunks} chunks "
                f"from {result.total_pages} pages"
            ),
            doc_id=result.doc_id,
            total_chunks=result.total_chunks,
            total_pages=result.total_pages,
            processing_time_ms=result.processing_time_ms,
        )

    @staticmethod
    def _to_app_error(e: Exception, took_ms: int, doc_id: Optional[str] = None) -> AppError:
        extra = {"processing_time_ms": took_ms}
        if isinstance(e, (InvalidInputError, DocumentExistsError, DocumentLockedError)):
            return AppError(str(e), e.error, extra)
        if isinstance(e, EmbeddingError):
            return AppError(f"Embedding generation failed: {e}. {NOT_MODIFIED}", e.error, extra)
        if isinstance(e, StorageError):
            return AppError(
                f"Vector storage failed: {e}. {_storage_outcome(e, doc_id)}", e.error, extra
            )
        if isinstance(e, ExtractionError):
            return AppError(f"{e}. {NOT_STORED}", e.error, extra)
        if isinstance(e, RagError):
            return AppError(f"{e}. {NOT_STORED}" if str(e) else NOT_STORED, e.error, extra)
        logger.exception("ingest.unexpected err=%s", type(e).__name__)
        return AppError(
            f"Ingestion failed: {e or type(e).__name__}. {NOT_STORED}",
            ErrorCode.INGESTION_ERROR,
            extra,
        )

    async def delete_document(self, doc_id: str) -> DeleteDocumentResponse:
        try:
            doc_id = validate_doc_id(doc_id)
            async with self._locks.hold(doc_id):
                await self._store.delete_by_doc(doc_id)
        except (InvalidInputError, DocumentLockedError) as e:
            raise AppError(str(e), e.error)
        except StorageError as e:
            logger.error("document.delete.error doc=%s", doc_id)
            raise AppError(f"Failed to delete document {doc_id}: {e}", ErrorCode.DELETE_ERROR)
        logger.info("document.deleted doc=%s", doc_id)
        return DeleteDocumentResponse(doc_id=doc_id, timestamp=utc_now_iso())
