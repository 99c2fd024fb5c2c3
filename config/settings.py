# config/settings.py
import os
import sys
from typing import List, Optional
from dotenv import load_dotenv
from pydantic import ValidationError, Field, model_validator
from pydantic_settings import BaseSettings
from util.enums import EmbeddingProvider, Environment, GenerationProvider


if os.getenv("APP_ENV", Environment.DEV) == Environment.DEV:
    load_dotenv()


class Settings(BaseSettings):
    # App
    APP_ENV: str = Field(default=Environment.DEV.value, validation_alias="APP_ENV")
    HOST: str = Field(default="0.0.0.0", validation_alias="HOST")
    PORT: int = Field(default=5000, gt=0, le=65535, validation_alias="PORT")
    REDIS_URL: str = Field(..., validation_alias="REDIS_URL")

    # CORS & Limits
    ALLOWED_ORIGINS: str = Field(default="*", validation_alias="ALLOWED_ORIGINS")
    RATE_LIMIT_TIMES: int = Field(default=30, gt=0, validation_alias="RATE_LIMIT_TIMES")
    RATE_LIMIT_SECONDS: int = Field(
        default=60, gt=0, validation_alias="RATE_LIMIT_SECONDS"
    )
    MAX_FILE_MB: int = Field(default=50, gt=0, validation_alias="MAX_FILE_MB")
    TRUST_PROXY: bool = Field(default=False, validation_alias="TRUST_PROXY")
    HTTP_TIMEOUT_SECONDS: float = Field(
        default=30.0, gt=0, validation_alias="HTTP_TIMEOUT_SECONDS"
    )

    # Vector store (Qdrant REST)
    QDRANT_URL: str = Field(..., validation_alias="QDRANT_URL")
    QDRANT_API_KEY: Optional[str] = Field(default=None, validation_alias="QDRANT_API_KEY")
    COLLECTION_NAME: str = Field(default="pdf_vectors", validation_alias="COLLECTION_NAME")
    VECTOR_SIZE: int = Field(default=768, gt=0, validation_alias="VECTOR_SIZE")
    VECTOR_SIZE_STRICT: bool = Field(default=False, validation_alias="VECTOR_SIZE_STRICT")
    UPSERT_BATCH_SIZE: int = Field(default=100, gt=0, validation_alias="UPSERT_BATCH_SIZE")

    # Document locks
    DOC_LOCK_TIMEOUT_SECONDS: int = Field(
        default=600, gt=0, validation_alias="DOC_LOCK_TIMEOUT_SECONDS"
    )
    DOC_LOCK_WAIT_SECONDS: float = Field(
        default=5.0, ge=0, validation_alias="DOC_LOCK_WAIT_SECONDS"
    )

    # Gemini
    GEMINI_API_KEY: Optional[str] = Field(default=None, validation_alias="GEMINI_API_KEY")
    GEMINI_EMBED_URL: Optional[str] = Field(
        default=None, validation_alias="GEMINI_EMBED_URL"
    )
    GEMINI_EMBED_MODEL: str = Field(
        default="models/gemini-embedding-001", validation_alias="GEMINI_EMBED_MODEL"
    )
    GEMINI_GEN_URL: Optional[str] = Field(default=None, validation_alias="GEMINI_GEN_URL")

    # Anthropic Settings
    ANTHROPIC_API_KEY: Optional[str] = Field(
        default=None, validation_alias="ANTHROPIC_API_KEY"
    )
    ANTHROPIC_API_URL: str = Field(
        default="https://api.anthropic.com/v1/messages",
        validation_alias="ANTHROPIC_API_URL",
    )
    ANTHROPIC_MODEL: str = Field(
        default="claude-3-5-haiku-latest", validation_alias="ANTHROPIC_MODEL"
    )
    ANTHROPIC_VERSION: str = Field(
        default="2023-06-01", validation_alias="ANTHROPIC_VERSION"
    )

    # Providers
    EMBEDDING_PROVIDER: EmbeddingProvider = Field(
        default=EmbeddingProvider.GEMINI, validation_alias="EMBEDDING_PROVIDER"
    )
    GENERATION_PROVIDER: GenerationProvider = Field(
        default=GenerationProvider.GEMINI, validation_alias="GENERATION_PROVIDER"
    )

    # Embedding Engine
    EMBEDDING_MODEL_NAME: str = "sentence-transformers/all-MiniLM-L6-v2"
    EMBED_BATCH_SIZE: int = Field(default=10, gt=0, validation_alias="EMBED_BATCH_SIZE")
    EMBED_BATCH_DELAY_SECONDS: float = Field(
        default=2.0, ge=0, validation_alias="EMBED_BATCH_DELAY_SECONDS"
    )
    EMBED_RETRY_BASE_SECONDS: float = Field(
        default=2.0, ge=0, validation_alias="EMBED_RETRY_BASE_SECONDS"
    )
    REMOTE_MAX_ATTEMPTS: int = Field(default=3, gt=0, validation_alias="REMOTE_MAX_ATTEMPTS")

    # Chunking
    CHUNK_SIZE: int = Field(default=800, gt=0, validation_alias="CHUNK_SIZE")
    CHUNK_OVERLAP: int = Field(default=100, ge=0, validation_alias="CHUNK_OVERLAP")
    TOKENIZER_ENCODING: str = Field(
        default="cl100k_base", validation_alias="TOKENIZER_ENCODING"
    )

    # Generation
    GEN_TEMPERATURE: float = Field(default=0.2, ge=0, validation_alias="GEN_TEMPERATURE")
    GEN_MAX_OUTPUT_TOKENS: int = Field(
        default=800, gt=0, validation_alias="GEN_MAX_OUTPUT_TOKENS"
    )
    GEN_RETRY_BASE_SECONDS: float = Field(
        default=1.0, ge=0, validation_alias="GEN_RETRY_BASE_SECONDS"
    )
    MAX_CONTEXT_CHARS: int = Field(default=8000, gt=0, validation_alias="MAX_CONTEXT_CHARS")
    MAX_CONTEXT_SOURCES: int = Field(default=8, gt=0, validation_alias="MAX_CONTEXT_SOURCES")

    # Relevance thresholds (keyed off the best hit)
    RELEVANCE_BASE_THRESHOLD: float = 0.3
    RELEVANCE_MID_THRESHOLD: float = 0.4
    RELEVANCE_HIGH_THRESHOLD: float = 0.5
    RELEVANCE_MID_TRIGGER: float = 0.6
    RELEVANCE_HIGH_TRIGGER: float = 0.75
    MARGINAL_MAX_CONFIDENCE: float = 0.4
    HEDGE_DISCLAIMER_MAX_AVG: float = 0.7

    # Confidence policy
    CONF_TOP_WEIGHT: float = 0.6
    CONF_MEAN_WEIGHT: float = 0.25
    CONF_HIGH_BONUS: float = 0.05
    CONF_VERY_HIGH_BONUS: float = 0.05
    CONF_MAX_HIT_BONUS: float = 0.15
    CONF_LOW_PENALTY: float = 0.05
    CONF_MAX_LOW_PENALTY: float = 0.15
    CONF_LOW_SCORE: float = 0.7
    CONF_HIGH_SCORE: float = 0.8
    CONF_VERY_HIGH_SCORE: float = 0.9
    CONF_CONSISTENCY_BONUS: float = 0.05
    CONF_CONSISTENCY_MAX_STD: float = 0.1
    CONF_SCALE: float = 0.9
    CONF_FLOOR: float = 0.2
    CONF_CEILING: float = 0.95
    CONF_REJECT_BELOW: float = 0.35

    # Logging knobs
    LOGGER_NAME: str = "rag-pipeline"
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    LOG_DIR: str = Field(default="logs", validation_alias="LOG_DIR")
    LOG_FILE_NAME: str = Field(default="app.log", validation_alias="LOG_FILE_NAME")
    LOG_MAX_BYTES: int = Field(
        default=50 * 1024 * 1024, validation_alias="LOG_MAX_BYTES"
    )
    LOG_BACKUP_COUNT: int = Field(default=5, validation_alias="LOG_BACKUP_COUNT")

    # Prompts
    ANSWER_SYSTEM_PROMPT: str = (
        "You are a knowledgeable assistant that answers questions using ONLY the document excerpts provided.\n"
        "\n"
        "RULES:\n"
        "- Base every statement on the excerpts. If they do not contain the answer, say so plainly.\n"
        "- Write in a natural, confident voice. Do not mention 'the context', 'the excerpts' or that you are an AI.\n"
        "- Do not include source markers such as [Source: ...] in the answer; sources are shown separately.\n"
        "- When several excerpts are relevant, synthesize them into one coherent answer.\n"
        "- Prefer short paragraphs or bullet points; keep the answer concise but complete.\n"
    )

    HEDGE_DISCLAIMER: str = (
        "\n\nNote: This answer is based on partially matching content; "
        "please verify the details against the source documents."
    )

    @model_validator(mode="after")
    def _check_providers(self) -> "Settings":
        missing: List[str] = []
        if self.EMBEDDING_PROVIDER == EmbeddingProvider.GEMINI:
            if not self.GEMINI_EMBED_URL:
                missing.append("GEMINI_EMBED_URL")
            if not self.GEMINI_API_KEY:
                missing.append("GEMINI_API_KEY")
        if self.GENERATION_PROVIDER == GenerationProvider.GEMINI:
            if not self.GEMINI_GEN_URL:
                missing.append("GEMINI_GEN_URL")
            if not self.GEMINI_API_KEY and "GEMINI_API_KEY" not in missing:
                missing.append("GEMINI_API_KEY")
        if (
            self.GENERATION_PROVIDER == GenerationProvider.ANTHROPIC
            and not self.ANTHROPIC_API_KEY
        ):
            missing.append("ANTHROPIC_API_KEY")
        if missing:
            raise ValueError(f"required for the selected providers: {', '.join(missing)}")
        if self.CHUNK_OVERLAP >= self.CHUNK_SIZE:
            raise ValueError("CHUNK_OVERLAP must be smaller than CHUNK_SIZE")
        return self

    @property
    def allowed_origins(self) -> List[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    @property
    def max_file_bytes(self) -> int:
        return self.MAX_FILE_MB * 1024 * 1024


try:
    settings = Settings()
except ValidationError as e:
    print("❌ Missing/invalid environment variables:", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "")
        print(f" - {loc}: {msg}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"❌ Settings initialization failed: {e}", file=sys.stderr)
    sys.exit(1)
