# repository/document_lock_repository.py
from contextlib import asynccontextmanager
from typing import AsyncIterator
from redis.asyncio import Redis
from redis.exceptions import LockError
from config.cache import get_redis
from config.settings import settings
from repository.namespaces import DOC_LOCKS
from util.errors import DocumentLockedError
import logging

logger = logging.getLogger(__name__)


class DocumentLockRepository:
    """
    Flow:
    - One Redis lock per doc_id serializes ingestions of the same document across workers.
    - The lock expires after `timeout_seconds` so a crashed worker cannot wedge a document.
    - Waiting longer than `wait_seconds` fails the request instead of queueing it.
    """

    def __init__(
        self,
        timeout_seconds: int = settings.DOC_LOCK_TIMEOUT_SECONDS,
        wait_seconds: float = settings.DOC_LOCK_WAIT_SECONDS,
    ) -> None:
        self._timeout = int(timeout_seconds)
        self._wait = float(wait_seconds)

    @staticmethod
    async def _client() -> Redis:
        return await get_redis()

    @staticmethod
    def _key(doc_id: str) -> str:
        return f"{DOC_LOCKS}:{doc_id}"

    @asynccontextmanager
    async def hold(self, doc_id: str) -> AsyncIterator[None]:
        r = await self._client()
        lock = r.lock(
            self._key(doc_id), timeout=self._timeout, blocking_timeout=self._wait
        )
        acquired = await lock.acquire()
        if not acquired:
            logger.warning("lock.busy doc=%s", doc_id)
            raise DocumentLockedError(
                f"Document {doc_id} is already being ingested. Retry once it finishes."
            )
        logger.debug("lock.acquired doc=%s", doc_id)
        try:
            yield
        finally:
            try:
                await lock.release()
            except LockError:
                # Expired while we held it; another writer may own it now
                logger.warning("lock.release.expired doc=%s", doc_id)
