# core/validation.py
import base64
import binascii
import re
from typing import Optional
from util.constants import Limits
from util.enums import ErrorCode
from util.errors import FileTooLargeError, InvalidChunkConfigError, InvalidInputError

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")


def validate_doc_id(doc_id: Optional[str]) -> str:
    if doc_id is None or not str(doc_id).strip():
        raise InvalidInputError("doc_id cannot be empty", ErrorCode.INVALID_DOC_ID)
    doc_id = str(doc_id).strip()
    if len(doc_id) > Limits.DOC_ID_MAX_CHARS:
        raise InvalidInputError(
            f"doc_id must be at most {Limits.DOC_ID_MAX_CHARS} characters",
            ErrorCode.INVALID_DOC_ID,
        )
    return doc_id


def decode_pdf_base64(data: Optional[str], max_bytes: int) -> bytes:
    """
    Checks alphabet and size before decoding; the size estimate avoids allocating
    oversized payloads.
    """
    if data is None or not str(data).strip():
        raise InvalidInputError("pdf_base64 cannot be empty", ErrorCode.INVALID_PDF_DATA)
    data = str(data).strip()
    if not _BASE64_RE.match(data):
        raise InvalidInputError("Invalid base64 format", ErrorCode.INVALID_BASE64)

    estimated = len(data) * 3 // 4 - data.count("=")
    if estimated > max_bytes:
        raise FileTooLargeError(
            f"PDF file too large. Maximum size: {max_bytes // (1024 * 1024)}MB"
        )
    try:
        raw = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidInputError("Invalid base64 data", ErrorCode.DECODE_ERROR) from e
    if not raw:
        raise InvalidInputError("Invalid base64 data", ErrorCode.DECODE_ERROR)
    if len(raw) > max_bytes:
        raise FileTooLargeError(
            f"PDF file too large. Maximum size: {max_bytes // (1024 * 1024)}MB"
        )
    return raw


def validate_chunk_config(chunk_size: Optional[int], overlap: Optional[int]) -> None:
    if chunk_size is not None and not (
        Limits.CHUNK_SIZE_MIN <= chunk_size <= Limits.CHUNK_SIZE_MAX
    ):
        raise InvalidChunkConfigError(
            f"chunk_size must be between {Limits.CHUNK_SIZE_MIN} and {Limits.CHUNK_SIZE_MAX}"
        )
    if overlap is not None and not (0 <= overlap <= Limits.CHUNK_OVERLAP_MAX):
        raise InvalidChunkConfigError(
            f"chunk_overlap must be between 0 and {Limits.CHUNK_OVERLAP_MAX}"
        )


def validate_question(question: Optional[str]) -> str:
    if question is None or not str(question).strip():
        raise InvalidInputError("Question cannot be empty", ErrorCode.INVALID_QUESTION)
    if len(question) > Limits.QUESTION_MAX_CHARS:
        raise InvalidInputError(
            f"Question too long (max {Limits.QUESTION_MAX_CHARS} characters)",
            ErrorCode.QUESTION_TOO_LONG,
        )
    return question


def validate_top_k(top_k: int) -> int:
    if top_k < Limits.TOP_K_MIN or top_k > Limits.TOP_K_MAX:
        raise InvalidInputError(
            f"top_k must be between {Limits.TOP_K_MIN} and {Limits.TOP_K_MAX}",
            ErrorCode.INVALID_TOP_K,
        )
    return top_k


def validate_min_score(min_score: float) -> float:
    if not (0.0 <= min_score <= 1.0):
        raise InvalidInputError(
            "min_score must be between 0 and 1", ErrorCode.INVALID_MIN_SCORE
        )
    return min_score
