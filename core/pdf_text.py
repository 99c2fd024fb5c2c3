# core/pdf_text.py
from typing import List
import fitz
from core.entities import PdfPage
from util.errors import ExtractionError
from util.timing import timed
import logging

logger = logging.getLogger(__name__)


def extract_pages(file_bytes: bytes) -> List[PdfPage]:
    """
    Return one PdfPage per PDF page, in page order, with surrounding whitespace stripped.
    Blank pages are kept; callers decide whether to skip them.
    Raises ExtractionError when PyMuPDF cannot open or read the document.
    """
    if not file_bytes:
        raise ExtractionError("PDF data is empty")
    try:
        out: List[PdfPage] = []
        with timed(logger, "pdf.open", bytes=len(file_bytes)):
            with fitz.open(stream=file_bytes, filetype="pdf") as doc:
                pages = doc.page_count
                with timed(logger, "pdf.parse", pages=pages):
                    for i in range(pages):
                        page = doc.load_page(i)
                        txt = (page.get_text("text") or "").strip()
                        out.append(PdfPage(page=i + 1, text=txt))
    except ExtractionError:
        raise
    except Exception as e:
        # do not log payloads
        logger.error("pdf.parse.error err=%s", type(e).__name__)
        raise ExtractionError(f"Failed to parse PDF document: {e}") from e
    logger.info("pdf.pages count=%d", len(out))
    return out
