# util/enums.py
from enum import Enum
from typing import NamedTuple
from fastapi import status


class Color(str, Enum):
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    BOLD = "\033[1m"

    def __str__(self):
        return self.value


class Environment(str, Enum):
    DEV = "dev"
    PROD = "prod"


class EmbeddingProvider(str, Enum):
    GEMINI = "gemini"
    LOCAL = "local"


class GenerationProvider(str, Enum):
    GEMINI = "gemini"
    ANTHROPIC = "anthropic"


class IngestionStage(str, Enum):
    VALIDATING = "validating"
    EXTRACTING = "extracting"
    CHUNKING = "chunking"
    EMBEDDING = "embedding"
    COMMITTING = "committing"
    DONE = "done"
    FAILED = "failed"


class ErrorInfo(NamedTuple):
    code: str
    http_status: int


class ErrorCode(Enum):
    # Ingest
    INVALID_DOC_ID = ErrorInfo("INVALID_DOC_ID", status.HTTP_400_BAD_REQUEST)
    INVALID_PDF_DATA = ErrorInfo("INVALID_PDF_DATA", status.HTTP_400_BAD_REQUEST)
    INVALID_BASE64 = ErrorInfo("INVALID_BASE64", status.HTTP_400_BAD_REQUEST)
    DECODE_ERROR = ErrorInfo("DECODE_ERROR", status.HTTP_400_BAD_REQUEST)
    INVALID_CHUNK_CONFIG = ErrorInfo(
        "INVALID_CHUNK_CONFIG", status.HTTP_400_BAD_REQUEST
    )
    FILE_TOO_LARGE = ErrorInfo(
        "FILE_TOO_LARGE", status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    )
    EMPTY_PDF = ErrorInfo("EMPTY_PDF", status.HTTP_400_BAD_REQUEST)
    NO_CHUNKS = ErrorInfo("NO_CHUNKS", status.HTTP_400_BAD_REQUEST)
    PDF_PROCESSING_ERROR = ErrorInfo(
        "PDF_PROCESSING_ERROR", status.HTTP_400_BAD_REQUEST
    )
    EMBEDDING_ERROR = ErrorInfo("EMBEDDING_ERROR", status.HTTP_500_INTERNAL_SERVER_ERROR)
    STORAGE_ERROR = ErrorInfo("STORAGE_ERROR", status.HTTP_500_INTERNAL_SERVER_ERROR)
    DOCUMENT_EXISTS = ErrorInfo("DOCUMENT_EXISTS", status.HTTP_400_BAD_REQUEST)
    DOCUMENT_LOCKED = ErrorInfo("DOCUMENT_LOCKED", status.HTTP_409_CONFLICT)
    INGESTION_ERROR = ErrorInfo("INGESTION_ERROR", status.HTTP_500_INTERNAL_SERVER_ERROR)

    # Query
    INVALID_QUESTION = ErrorInfo("INVALID_QUESTION", status.HTTP_400_BAD_REQUEST)
    QUESTION_TOO_LONG = ErrorInfo("QUESTION_TOO_LONG", status.HTTP_400_BAD_REQUEST)
    INVALID_TOP_K = ErrorInfo("INVALID_TOP_K", status.HTTP_400_BAD_REQUEST)
    INVALID_MIN_SCORE = ErrorInfo("INVALID_MIN_SCORE", status.HTTP_400_BAD_REQUEST)
    GENERATION_ERROR = ErrorInfo(
        "GENERATION_ERROR", status.HTTP_502_BAD_GATEWAY
    )
    QUERY_ERROR = ErrorInfo("QUERY_ERROR", status.HTTP_500_INTERNAL_SERVER_ERROR)
    STATS_ERROR = ErrorInfo("STATS_ERROR", status.HTTP_500_INTERNAL_SERVER_ERROR)
    DELETE_ERROR = ErrorInfo("DELETE_ERROR", status.HTTP_500_INTERNAL_SERVER_ERROR)

    # Generic
    VALIDATION_ERROR = ErrorInfo("VALIDATION_ERROR", status.HTTP_400_BAD_REQUEST)
    NOT_FOUND = ErrorInfo("NOT_FOUND", status.HTTP_404_NOT_FOUND)
    RATE_LIMITED = ErrorInfo("RATE_LIMITED", status.HTTP_429_TOO_MANY_REQUESTS)
    INTERNAL_ERROR = ErrorInfo("INTERNAL_ERROR", status.HTTP_500_INTERNAL_SERVER_ERROR)
