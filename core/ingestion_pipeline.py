# core/ingestion_pipeline.py
import asyncio
import time
from typing import Callable, List, Optional
from core.chunker import chunk_text
from core.embedding_client import EmbeddingClient
from core.entities import EmbeddedChunk, IngestionResult, PdfPage, TextChunk
from core.pdf_text import extract_pages
from core.validation import decode_pdf_base64, validate_chunk_config, validate_doc_id
from core.vector_store import QdrantVectorStore
from util.enums import IngestionStage
from util.errors import (
    DocumentExistsError,
    EmbeddingError,
    EmptyDocumentError,
    InvalidChunkConfigError,
    NoChunksError,
    RagError,
    StorageError,
)
from util.timing import elapsed_ms, timed
import logging

logger = logging.getLogger(__name__)

Extractor = Callable[[bytes], List[PdfPage]]


class IngestionPipeline:
    """
    Validating -> Extracting -> Chunking -> Embedding -> Committing -> Done.

    Every chunk is embedded before the store is touched, so an embedding failure leaves
    any previous version of the document intact. An existing version is only deleted
    once the replacement vectors are ready.
    """

    def __init__(
        self,
        *,
        embedder: EmbeddingClient,
        store: QdrantVectorStore,
        max_file_bytes: int,
        extractor: Extractor = extract_pages,
        default_chunk_size: int = 800,
        default_overlap: int = 100,
    ) -> None:
        self._embedder = embedder
        self._store = store
        self._max_bytes = max_file_bytes
        self._extract = extractor
        self._chunk_size = default_chunk_size
        self._overlap = default_overlap
        self.stage = IngestionStage.VALIDATING

    def _enter(self, stage: IngestionStage, doc_id: str) -> None:
        self.stage = stage
        logger.debug("ingest.stage doc=%s stage=%s", doc_id, stage.value)

    async def run(
        self,
        *,
        doc_id: Optional[str],
        pdf_base64: Optional[str],
        overwrite: bool = False,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
    ) -> IngestionResult:
        t0 = time.perf_counter()
        self.stage = IngestionStage.VALIDATING
        label = doc_id or "-"
        try:
            result = await self._run(
                t0,
                doc_id=doc_id,
                pdf_base64=pdf_base64,
                overwrite=overwrite,
                chunk_size=chunk_size,
                chunk_overlap=chunk_overlap,
            )
        except Exception as e:
            failed_at = self.stage
            self.stage = IngestionStage.FAILED
            logger.warning(
                "ingest.failed doc=%s stage=%s err=%s ms=%d",
                label,
                failed_at.value,
                type(e).__name__,
                elapsed_ms(t0),
            )
            raise
        self.stage = IngestionStage.DONE
        return result

    async def _run(
        self,
        t0: float,
        *,
        doc_id: Optional[str],
        pdf_base64: Optional[str],
        overwrite: bool,
        chunk_size: Optional[int],
        chunk_overlap: Optional[int],
    ) -> IngestionResult:
        # Validating: nothing remote happens before these pass
        doc_id = validate_doc_id(doc_id)
        pdf_bytes = decode_pdf_base64(pdf_base64, self._max_bytes)
        validate_chunk_config(chunk_size, chunk_overlap)
        size = chunk_size if chunk_size is not None else self._chunk_size
        overlap = chunk_overlap if chunk_overlap is not None else self._overlap
        if overlap >= size:
            raise InvalidChunkConfigError(
                f"chunk_overlap ({overlap}) must be smaller than chunk_size ({size})"
            )
        logger.info(
            "ingest.start doc=%s bytes=%d overwrite=%s chunk_size=%d overlap=%d",
            doc_id,
            len(pdf_bytes),
            overwrite,
            size,
            overlap,
        )

        existing = await self._store.count_by_doc(doc_id)
        if existing and not overwrite:
            raise DocumentExistsError(
                f"Document {doc_id} already exists. Use overwrite=true to replace it."
            )
        if existing:
            logger.info(
                "ingest.overwrite.pending doc=%s existing_points=%d", doc_id, existing
            )

        self._enter(IngestionStage.EXTRACTING, doc_id)
        with timed(logger, "ingest.extract", doc=doc_id):
            pages = await asyncio.to_thread(self._extract, pdf_bytes)
        if not pages or all(not p.text.strip() for p in pages):
            raise EmptyDocumentError("No text content found in PDF")

        self._enter(IngestionStage.CHUNKING, doc_id)
        chunks = self._chunk_pages(doc_id, pages, size, overlap)
        if not chunks:
            raise NoChunksError("No chunks generated from PDF content")

        self._enter(IngestionStage.EMBEDDING, doc_id)
        embedded = await self._embed_all(doc_id, chunks)

        self._enter(IngestionStage.COMMITTING, doc_id)
        await self._commit(doc_id, embedded, replace=bool(existing))

        # Blank pages produce no chunks and are not counted
        text_pages = sum(1 for p in pages if p.text.strip())

        took = elapsed_ms(t0)
        logger.info(
            "ingest.ok doc=%s chunks=%d pages=%d ms=%d", doc_id, len(embedded), text_pages, took
        )
        return IngestionResult(
            doc_id=doc_id,
            total_chunks=len(embedded),
            total_pages=text_pages,
            processing_time_ms=took,
            replaced_existing=bool(existing),
        )

    @staticmethod
    def _chunk_pages(
        doc_id: str, pages: List[PdfPage], size: int, overlap: int
    ) -> List[TextChunk]:
        chunks: List[TextChunk] = []
        with timed(logger, "ingest.chunk", doc=doc_id, pages=len(pages)):
            for page in pages:
                if not page.text.strip():
                    logger.warning("ingest.page.empty doc=%s page=%d", doc_id, page.page)
                    continue
                chunks.extend(
                    chunk_text(
                        page.text,
                        doc_id=doc_id,
                        page=page.page,
                        chunk_size=size,
                        overlap=overlap,
                    )
                )
        logger.info("ingest.chunks doc=%s count=%d", doc_id, len(chunks))
        return chunks

    async def _embed_all(self, doc_id: str, chunks: List[TextChunk]) -> List[EmbeddedChunk]:
        try:
            embedded = await self._embedder.embed_chunks(chunks)
        except EmbeddingError:
            logger.error("ingest.embed.error doc=%s store=untouched", doc_id)
            raise
        except RagError:
            raise
        except Exception as e:
            logger.error("ingest.embed.error doc=%s store=untouched", doc_id)
            raise EmbeddingError(str(e) or type(e).__name__) from e

        missing = [c for c in embedded if not c.vector]
        if len(embedded) != len(chunks) or missing:
            raise EmbeddingError(
                f"Failed to generate embeddings for "
                f"{len(missing) + len(chunks) - len(embedded)}/{len(chunks)} chunks"
            )
        return embedded

    async def _commit(
        self, doc_id: str, embedded: List[EmbeddedChunk], *, replace: bool
    ) -> None:
        if replace:
            try:
                await self._store.delete_by_doc(doc_id)
            except StorageError as e:
                raise StorageError(
                    f"could not remove the previous version of {doc_id}: {e}"
                ) from e
            logger.info("ingest.overwrite.deleted doc=%s", doc_id)

        try:
            await self._store.upsert(embedded)
        except Exception as e:
            logger.error("ingest.upsert.error doc=%s err=%s", doc_id, type(e).__name__)
            cleaned_up = True
            try:
                await self._store.delete_by_doc(doc_id)
                logger.info("ingest.cleanup.ok doc=%s", doc_id)
            except Exception as cleanup_err:
                cleaned_up = False
                logger.error(
                    "ingest.cleanup.failed doc=%s err=%s", doc_id, cleanup_err
                )
            raise StorageError(
                str(e) or type(e).__name__,
                cleaned_up=cleaned_up,
                previous_deleted=replace,
            ) from e
