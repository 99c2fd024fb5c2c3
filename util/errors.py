# util/errors.py
from typing import Any, Dict, Optional
from fastapi import HTTPException
from util.enums import ErrorCode


class AppError(HTTPException):
    # Flow: raise AppError to short-circuit with a typed code, status & message.
    def __init__(
        self,
        message: str,
        error: ErrorCode = ErrorCode.INTERNAL_ERROR,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(status_code=error.value.http_status, detail=message)
        self.code = error.value.code
        self.extra = extra or {}

    def to_body(self) -> Dict[str, Any]:
        return {"success": False, "error": self.detail, "code": self.code, **self.extra}


class RagError(Exception):
    """
    Base for pipeline failures. Each subclass maps onto one API error code so the
    service layer can translate without string matching on messages.
    """

    error: ErrorCode = ErrorCode.INTERNAL_ERROR


class InvalidInputError(RagError, ValueError):
    error = ErrorCode.VALIDATION_ERROR

    def __init__(self, message: str, error: Optional[ErrorCode] = None) -> None:
        super().__init__(message)
        if error is not None:
            self.error = error


class InvalidChunkConfigError(InvalidInputError):
    error = ErrorCode.INVALID_CHUNK_CONFIG


class FileTooLargeError(RagError):
    error = ErrorCode.FILE_TOO_LARGE


class ExtractionError(RagError):
    error = ErrorCode.PDF_PROCESSING_ERROR


class EmptyDocumentError(RagError):
    error = ErrorCode.EMPTY_PDF


class NoChunksError(RagError):
    error = ErrorCode.NO_CHUNKS


class EmbeddingError(RagError):
    error = ErrorCode.EMBEDDING_ERROR


class StorageError(RagError):
    """
    cleaned_up is False when a failed write could not be rolled back, so partial vectors
    may remain. previous_deleted is True once an older version of the document was removed.
    """

    error = ErrorCode.STORAGE_ERROR

    def __init__(
        self, message: str, *, cleaned_up: bool = True, previous_deleted: bool = False
    ) -> None:
        super().__init__(message)
        self.cleaned_up = cleaned_up
        self.previous_deleted = previous_deleted


class InvalidPointError(StorageError):
    def __init__(self, message: str, point_id: Optional[str] = None) -> None:
        super().__init__(message)
        self.point_id = point_id


class GenerationError(RagError):
    error = ErrorCode.GENERATION_ERROR


class DocumentExistsError(RagError):
    error = ErrorCode.DOCUMENT_EXISTS


class DocumentLockedError(RagError):
    error = ErrorCode.DOCUMENT_LOCKED


class NonRetryableRemoteError(RagError):
    """
    Remote rejected the call for a reason retrying cannot fix (auth, permission, quota).
    """

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
