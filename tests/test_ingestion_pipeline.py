"""
Ingestion runs against the in-memory Qdrant; the store must only ever hold a complete
version of a document.
"""

import base64

import pytest

from core.entities import PdfPage
from core.ingestion_pipeline import IngestionPipeline
from tests.fakes import FakeEmbedder, keyword_vector
from util.enums import ErrorCode, IngestionStage
from util.errors import (
    DocumentExistsError,
    EmbeddingError,
    EmptyDocumentError,
    ExtractionError,
    FileTooLargeError,
    InvalidChunkConfigError,
    InvalidInputError,
    StorageError,
)

PDF_B64 = base64.b64encode(b"%PDF-1.4 stand-in bytes").decode("ascii")

PAGES = [
    PdfPage(page=1, text="The warranty lasts two years. Repairs are free."),
    PdfPage(page=2, text="   "),
    PdfPage(page=3, text="Returns are accepted within thirty days."),
]


def _pipeline(store, embedder, pages=PAGES, **kwargs) -> IngestionPipeline:
    kwargs.setdefault("max_file_bytes", 1024 * 1024)
    return IngestionPipeline(embedder=embedder, store=store, extractor=lambda _: pages, **kwargs)


class TestIngestionPipeline:
    @pytest.mark.asyncio
    async def test_ingests_document_and_skips_blank_pages(self, qdrant, store, embedder):
        pipeline = _pipeline(store, embedder)

        result = await pipeline.run(doc_id="manual", pdf_base64=PDF_B64)

        assert result.doc_id == "manual"
        assert result.total_pages == 2
        assert result.total_chunks == 2
        assert result.replaced_existing is False
        assert pipeline.stage == IngestionStage.DONE
        stored = qdrant.doc_points("manual")
        assert sorted(p["payload"]["page"] for p in stored) == [1, 3]
        assert sorted(p["payload"]["original_id"] for p in stored) == ["manual:1:0", "manual:3:0"]

    @pytest.mark.asyncio
    async def test_existing_document_without_overwrite(self, qdrant, store, embedder):
        qdrant.seed("manual", ["old text"])
        pipeline = _pipeline(store, embedder)

        with pytest.raises(DocumentExistsError):
            await pipeline.run(doc_id="manual", pdf_base64=PDF_B64)

        assert embedder.calls == []
        assert [p["payload"]["text"] for p in qdrant.doc_points("manual")] == ["old text"]
        assert pipeline.stage == IngestionStage.FAILED

    @pytest.mark.asyncio
    async def test_overwrite_replaces_previous_version(self, qdrant, store, embedder):
        qdrant.seed("manual", ["old 1", "old 2", "old 3"])
        qdrant.seed("other", ["untouched"])

        result = await _pipeline(store, embedder).run(doc_id="manual", pdf_base64=PDF_B64, overwrite=True)

        assert result.replaced_existing is True
        texts = sorted(p["payload"]["text"] for p in qdrant.doc_points("manual"))
        assert texts == sorted(p.text.strip() for p in PAGES if p.text.strip())
        assert len(qdrant.doc_points("other")) == 1

    @pytest.mark.asyncio
    async def test_embedding_failure_keeps_previous_version(self, qdrant, store):
        qdrant.seed("manual", ["old 1", "old 2"])
        failing = FakeEmbedder(fn=keyword_vector, expected_dim=8, batch_size=1, fail_on_call=2)

        with pytest.raises(EmbeddingError):
            await _pipeline(store, failing).run(doc_id="manual", pdf_base64=PDF_B64, overwrite=True)

        assert sorted(p["payload"]["text"] for p in qdrant.doc_points("manual")) == ["old 1", "old 2"]
        assert not any(r.endswith("/points/delete") for r in qdrant.requests)

    @pytest.mark.asyncio
    async def test_upsert_failure_cleans_up_partial_write(self, qdrant, embedder):
        store = qdrant.store(upsert_batch_size=1)
        qdrant.fail_upsert_after = 1

        with pytest.raises(StorageError) as exc_info:
            await _pipeline(store, embedder).run(doc_id="manual", pdf_base64=PDF_B64)

        assert exc_info.value.cleaned_up is True
        assert exc_info.value.previous_deleted is False
        assert qdrant.upsert_calls == 1
        assert qdrant.doc_points("manual") == []

    @pytest.mark.asyncio
    async def test_upsert_failure_with_failed_cleanup_is_reported(self, qdrant, embedder):
        store = qdrant.store(upsert_batch_size=1)
        qdrant.fail_upsert_after = 1
        qdrant.fail_delete = True

        with pytest.raises(StorageError) as exc_info:
            await _pipeline(store, embedder).run(doc_id="manual", pdf_base64=PDF_B64)

        assert exc_info.value.cleaned_up is False
        assert len(qdrant.doc_points("manual")) == 1

    @pytest.mark.asyncio
    async def test_upsert_failure_after_replacing_marks_previous_deleted(self, qdrant, embedder):
        qdrant.seed("manual", ["old"])
        store = qdrant.store(upsert_batch_size=1)
        qdrant.fail_upsert_after = 0

        with pytest.raises(StorageError) as exc_info:
            await _pipeline(store, embedder).run(doc_id="manual", pdf_base64=PDF_B64, overwrite=True)

        assert exc_info.value.previous_deleted is True
        assert exc_info.value.cleaned_up is True
        assert qdrant.doc_points("manual") == []

    @pytest.mark.asyncio
    async def test_failed_delete_on_overwrite_aborts_before_writing(self, qdrant, store, embedder):
        qdrant.seed("manual", ["old"])
        qdrant.fail_delete = True

        with pytest.raises(StorageError, match="previous version"):
            await _pipeline(store, embedder).run(doc_id="manual", pdf_base64=PDF_B64, overwrite=True)

        assert qdrant.upsert_calls == 0
        assert [p["payload"]["text"] for p in qdrant.doc_points("manual")] == ["old"]

    @pytest.mark.asyncio
    async def test_blank_document(self, qdrant, store, embedder):
        pipeline = _pipeline(store, embedder, pages=[PdfPage(1, ""), PdfPage(2, "  \n ")])

        with pytest.raises(EmptyDocumentError):
            await pipeline.run(doc_id="blank", pdf_base64=PDF_B64)
        assert embedder.calls == []
        assert qdrant.upsert_calls == 0

    @pytest.mark.asyncio
    async def test_unreadable_pdf_uses_real_extractor(self, qdrant, store, embedder):
        pipeline = IngestionPipeline(embedder=embedder, store=store, max_file_bytes=1024 * 1024)

        # MuPDF either refuses the bytes or repairs them into an empty document
        with pytest.raises((ExtractionError, EmptyDocumentError)):
            await pipeline.run(doc_id="broken", pdf_base64=PDF_B64)
        assert qdrant.upsert_calls == 0

    @pytest.mark.asyncio
    async def test_real_pdf_end_to_end(self, qdrant, store, embedder, pdf_base64):
        pipeline = IngestionPipeline(embedder=embedder, store=store, max_file_bytes=1024 * 1024)

        result = await pipeline.run(doc_id="manual.pdf", pdf_base64=pdf_base64)

        assert result.total_pages == 2
        assert result.total_chunks == 2
        assert len(qdrant.doc_points("manual.pdf")) == 2


class TestIngestionValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "doc_id,pdf,code",
        [
            (None, PDF_B64, ErrorCode.INVALID_DOC_ID),
            ("   ", PDF_B64, ErrorCode.INVALID_DOC_ID),
            ("x" * 201, PDF_B64, ErrorCode.INVALID_DOC_ID),
            ("doc", None, ErrorCode.INVALID_PDF_DATA),
            ("doc", "", ErrorCode.INVALID_PDF_DATA),
            ("doc", "not base64!!", ErrorCode.INVALID_BASE64),
            ("doc", "abcde", ErrorCode.DECODE_ERROR),
        ],
    )
    async def test_rejects_bad_input_before_touching_the_store(self, qdrant, store, embedder, doc_id, pdf, code):
        with pytest.raises(InvalidInputError) as exc_info:
            await _pipeline(store, embedder).run(doc_id=doc_id, pdf_base64=pdf)

        assert exc_info.value.error == code
        assert qdrant.requests == []

    @pytest.mark.asyncio
    async def test_rejects_oversized_file(self, qdrant, store, embedder):
        pipeline = _pipeline(store, embedder, max_file_bytes=8)

        with pytest.raises(FileTooLargeError):
            await pipeline.run(doc_id="doc", pdf_base64=PDF_B64)
        assert qdrant.requests == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "size,overlap",
        [(50, None), (2500, None), (None, 600), (None, -1), (200, 200), (100, None)],
    )
    async def test_rejects_bad_chunk_config(self, qdrant, store, embedder, size, overlap):
        pipeline = _pipeline(store, embedder, default_overlap=100)

        with pytest.raises(InvalidChunkConfigError):
            await pipeline.run(doc_id="doc", pdf_base64=PDF_B64, chunk_size=size, chunk_overlap=overlap)
        assert qdrant.requests == []
