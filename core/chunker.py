# core/chunker.py
from functools import lru_cache
from typing import List, Optional, Sequence, Tuple
import tiktoken
from config.settings import settings
from core.entities import TextChunk
from util.errors import InvalidChunkConfigError
import logging

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 800
DEFAULT_OVERLAP = 100


@lru_cache(maxsize=4)
def _encoding(name: str) -> tiktoken.Encoding:
    return tiktoken.get_encoding(name)


def chunk_id(doc_id: str, page: int, chunk_index: int) -> str:
    return f"{doc_id}:{page}:{chunk_index}"


def _validate(chunk_size: int, overlap: int) -> None:
    if chunk_size <= 0:
        raise InvalidChunkConfigError(f"chunk_size must be positive, got {chunk_size}")
    if overlap < 0:
        raise InvalidChunkConfigError(f"chunk_overlap must be >= 0, got {overlap}")
    if overlap >= chunk_size:
        raise InvalidChunkConfigError(
            f"chunk_overlap ({overlap}) must be smaller than chunk_size ({chunk_size})"
        )


def _windows(total: int, size: int, step: int) -> List[Tuple[int, int]]:
    """
    [start, end) windows of `size` units advancing by `step`, covering `total` units.
    The last window ends exactly at `total`; no window starts past the end.
    """
    out: List[Tuple[int, int]] = []
    start = 0
    while start < total:
        end = min(start + size, total)
        out.append((start, end))
        if end >= total:
            break
        start += step
    return out


def _token_spans(text: str, size: int, step: int) -> List[Tuple[int, int]]:
    """
    Character spans derived from token windows. Token positions are mapped to characters
    proportionally (position / token_count * len(text)), so boundaries are approximate.
    """
    tokens: Sequence[int] = _encoding(settings.TOKENIZER_ENCODING).encode(
        text, disallowed_special=()
    )
    n = len(tokens)
    if n == 0:
        return []
    length = len(text)
    return [
        (int(start / n * length), int(end / n * length))
        for start, end in _windows(n, size, step)
    ]


def _word_chunks(text: str, size: int, step: int) -> List[str]:
    words = text.split()
    return [" ".join(words[s:e]) for s, e in _windows(len(words), size, step)]


def chunk_text(
    text: str,
    *,
    doc_id: str,
    page: int = 0,
    chunk_size: Optional[int] = None,
    overlap: Optional[int] = None,
) -> List[TextChunk]:
    """
    Split one page of text into overlapping chunks of `chunk_size` tokens, each starting
    `chunk_size - overlap` tokens after the previous one. Falls back to whitespace words
    when tokenization fails. Empty or whitespace-only text yields [].
    """
    size = DEFAULT_CHUNK_SIZE if chunk_size is None else chunk_size
    ov = DEFAULT_OVERLAP if overlap is None else overlap
    _validate(size, ov)

    if not text or not text.strip():
        return []

    step = size - ov
    try:
        pieces = [text[s:e] for s, e in _token_spans(text, size, step)]
    except Exception as e:
        logger.warning("chunk.tokenize.fallback doc=%s page=%d err=%s", doc_id, page, e)
        pieces = _word_chunks(text, size, step)

    chunks: List[TextChunk] = []
    for piece in pieces:
        piece = piece.strip()
        if not piece:
            continue
        idx = len(chunks)
        chunks.append(
            TextChunk(
                id=chunk_id(doc_id, page, idx),
                text=piece,
                doc_id=doc_id,
                page=page,
                chunk_index=idx,
            )
        )
    logger.debug("chunk.page doc=%s page=%d chunks=%d", doc_id, page, len(chunks))
    return chunks
