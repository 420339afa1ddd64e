"""Helpers for best-effort writes and retried document reads."""

import logging
from typing import Any, Awaitable, Callable, TypeVar

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Retry configuration for idempotent reads
READ_MAX_RETRIES = 3
READ_MIN_WAIT_SECONDS = 0.2
READ_MAX_WAIT_SECONDS = 2


async def best_effort(
    operation: Callable[[], Awaitable[T]],
    description: str,
    **context: Any,
) -> T | None:
    """Run an operation whose failure must not change the caller's outcome.

    The exception is logged with its context and swallowed. Use this only for
    bookkeeping writes (audit logs, shipment outcome recording) where losing
    the write is preferable to masking the result that is being recorded.

    Args:
        operation: Zero-argument coroutine factory to run.
        description: Short human-readable name of the operation for the log.
        **context: Extra fields attached to the log record.

    Returns:
        The operation's result, or None if it raised.
    """
    try:
        return await operation()
    except Exception as e:
        logger.error(
            "Best-effort operation failed: %s - %s",
            description,
            str(e),
            extra={"operation": description, **context},
        )
        return None


def retry_read(func: Callable[..., T]) -> Callable[..., T]:
    """Retry a document read on transport-level failures.

    Only wrap idempotent reads. Writes and provider calls are never retried
    automatically.
    """
    return retry(
        stop=stop_after_attempt(READ_MAX_RETRIES),
        wait=wait_exponential(multiplier=READ_MIN_WAIT_SECONDS, max=READ_MAX_WAIT_SECONDS),
        retry=retry_if_exception_type(httpx.TransportError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )(func)
