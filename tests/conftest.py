"""
Shared fixtures. Environment is set before any application module is imported because
config.settings validates it at import time.
"""

import base64
import os

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")
os.environ.setdefault("QDRANT_URL", "http://qdrant.test")
os.environ.setdefault("GEMINI_API_KEY", "test-key")
os.environ.setdefault("GEMINI_EMBED_URL", "http://gemini.test/v1beta/models/gemini-embedding-001:batchEmbedContents")
os.environ.setdefault("GEMINI_GEN_URL", "http://gemini.test/v1beta/models/gemini-2.5-flash:generateContent")
os.environ.setdefault("VECTOR_SIZE", "8")
os.environ.setdefault("COLLECTION_NAME", "test_vectors")
os.environ.setdefault("EMBED_BATCH_DELAY_SECONDS", "0")
os.environ.setdefault("EMBED_RETRY_BASE_SECONDS", "0")
os.environ.setdefault("GEN_RETRY_BASE_SECONDS", "0")

import pytest

from tests.fakes import (
    CharEncoding,
    FakeEmbedder,
    FakeLLM,
    FakeQdrant,
    InMemoryLocks,
    keyword_vector,
    make_pdf,
)


@pytest.fixture(autouse=True)
def offline_tokenizer(request, monkeypatch):
    """tiktoken downloads its BPE ranks on first use; tests tokenize per character instead."""
    if request.node.get_closest_marker("real_tokenizer"):
        return
    import core.chunker as chunker

    monkeypatch.setattr(chunker, "_encoding", lambda name: CharEncoding())


@pytest.fixture
def qdrant() -> FakeQdrant:
    return FakeQdrant()


@pytest.fixture
def store(qdrant: FakeQdrant):
    return qdrant.store()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder(fn=keyword_vector, expected_dim=8)


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def locks() -> InMemoryLocks:
    return InMemoryLocks()


@pytest.fixture
def pdf_base64() -> str:
    pdf = make_pdf(
        [
            "The product warranty lasts two years from the date of purchase. "
            "Repairs are free during the warranty period.",
            "",
            "Returns are accepted within thirty days. Refunds are issued to the original payment method.",
        ]
    )
    return base64.b64encode(pdf).decode("ascii")
