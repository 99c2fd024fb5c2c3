# util/timing.py
import time
from contextlib import contextmanager
from typing import Iterator, Any
import logging


@contextmanager
def timed(logger: logging.Logger, name: str, **kv: Any) -> Iterator[None]:
    """
    Usage:
      with timed(logger, "ingest.embed", chunks=42):
          ...
    Emits one INFO on success: "<name>.done ms=<int> key=val ..."
    and one WARNING when the block raises: "<name>.failed ms=<int> err=<Type> ..."
    """
    t0 = time.perf_counter()
    try:
        yield
    except BaseException as e:
        dt_ms = int((time.perf_counter() - t0) * 1000)
        suffix = "".join(f" {k}={v}" for k, v in kv.items())
        logger.warning("%s.failed ms=%d err=%s%s", name, dt_ms, type(e).__name__, suffix)
        raise
    else:
        dt_ms = int((time.perf_counter() - t0) * 1000)
        suffix = "".join(f" {k}={v}" for k, v in kv.items())
        logger.info("%s.done ms=%d%s", name, dt_ms, suffix)


def elapsed_ms(t0: float) -> int:
    """Milliseconds since a `time.perf_counter()` reading."""
    return int((time.perf_counter() - t0) * 1000)
