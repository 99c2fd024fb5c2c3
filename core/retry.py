# core/retry.py
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar
import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
)
from util.errors import NonRetryableRemoteError
import logging

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_STATUS = {408, 425, 429}


@dataclass(frozen=True)
class RetryPolicy:
    """
    max_attempts counts the first call. backoff(attempt) is the delay in seconds
    after failed attempt number `attempt` (1-based).
    """

    max_attempts: int
    backoff: Callable[[int], float]
    retryable: Callable[[BaseException], bool]
    name: str = "remote"


def exponential_backoff(base_seconds: float) -> Callable[[int], float]:
    return lambda attempt: base_seconds * (2 ** (attempt - 1))


def linear_backoff(base_seconds: float) -> Callable[[int], float]:
    return lambda attempt: base_seconds * attempt


def is_transient(exc: BaseException) -> bool:
    """
    Rate limiting, 5xx and network/timeouts are retried. Other 4xx (auth, permission,
    quota, bad request) are not.
    """
    if isinstance(exc, NonRetryableRemoteError):
        return False
    if isinstance(exc, httpx.HTTPStatusError):
        code = exc.response.status_code
        return code in RETRYABLE_STATUS or code >= 500
    if isinstance(exc, httpx.TransportError):
        return True
    return False


def _wait(policy: RetryPolicy) -> Callable[[RetryCallState], float]:
    def _fn(state: RetryCallState) -> float:
        return max(0.0, float(policy.backoff(state.attempt_number)))

    return _fn


def _before_sleep(policy: RetryPolicy) -> Callable[[RetryCallState], None]:
    def _fn(state: RetryCallState) -> None:
        exc: Optional[BaseException] = (
            state.outcome.exception() if state.outcome else None
        )
        logger.warning(
            "%s.retry attempt=%d/%d sleep=%.2fs err=%s",
            policy.name,
            state.attempt_number,
            policy.max_attempts,
            state.next_action.sleep if state.next_action else 0.0,
            type(exc).__name__ if exc else "-",
        )

    return _fn


async def with_retry(operation: Callable[[], Awaitable[T]], policy: RetryPolicy) -> T:
    """
    Run `operation` until it succeeds, raises a non-retryable error, or runs out of
    attempts. The last exception is re-raised unchanged.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, policy.max_attempts)),
        wait=_wait(policy),
        retry=retry_if_exception(policy.retryable),
        before_sleep=_before_sleep(policy),
        reraise=True,
    )

    # AsyncRetrying only awaits callables it recognises as coroutine functions
    async def _attempt() -> T:
        return await operation()

    return await retrying(_attempt)


def raise_for_status(resp: httpx.Response, service: str) -> None:
    """
    Like resp.raise_for_status(), but auth/permission/quota rejections become
    NonRetryableRemoteError so retry policies can stop immediately.
    """
    code = resp.status_code
    if code < 400:
        return
    if 400 <= code < 500 and code not in RETRYABLE_STATUS:
        raise NonRetryableRemoteError(
            f"{service} rejected the request with status {code}: {_error_text(resp)}",
            status_code=code,
        )
    if code == 429 and "quota" in _error_text(resp).lower():
        raise NonRetryableRemoteError(
            f"{service} quota exceeded: {_error_text(resp)}", status_code=code
        )
    resp.raise_for_status()


def _error_text(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return (resp.text or "")[:200]
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            return str(err.get("message") or err.get("status") or err)[:200]
        if err:
            return str(err)[:200]
        if body.get("status"):
            return str(body.get("status"))[:200]
    return str(body)[:200]
