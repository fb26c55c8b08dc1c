"""Timing helper for structured logging.

Uses time.perf_counter() for sub-millisecond precision.
"""

import logging
import time
from contextlib import contextmanager
from typing import Optional


@contextmanager
def timed_operation(
    operation: str,
    logger: logging.Logger,
    level: int = logging.DEBUG,
    extra: Optional[dict] = None,
):
    """Time a block and log ``{operation}_completed`` or ``{operation}_failed``.

    The yielded dict is merged into the log context on exit, so the block can
    report results (counts, outcomes) alongside the duration. Exceptions are
    logged and re-raised.

    Example:
        >>> with timed_operation("drain", logger, extra={"url": url}) as ctx:
        ...     ctx["received"] = 42
    """
    start = time.perf_counter()
    context = dict(extra or {})
    result: dict = {}

    try:
        yield result
    except Exception as e:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.error(
            f"{operation}_failed",
            extra={
                **context,
                **result,
                "duration_ms": round(duration_ms, 2),
                "status": "failed",
                "error": str(e),
                "error_type": type(e).__name__,
            },
        )
        raise
    else:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.log(
            level,
            f"{operation}_completed",
            extra={
                **context,
                **result,
                "duration_ms": round(duration_ms, 2),
                "status": "success",
            },
        )
