"""
Bounded retry for store contention.

Single-document operations can fail transiently when many writers hit the
same document (throttling, precondition failures, create races). They are
retried with exponential backoff a small fixed number of times; after that
the caller gets TransactionConflict instead of waiting indefinitely.
"""

from typing import Awaitable, Callable, Optional, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from core.config import settings
from core.exceptions import TransactionConflict
from db.store import StoreConflictError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _log_retry(operation: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "store_contention_retry",
            operation=operation,
            attempt=retry_state.attempt_number,
            error=str(exc),
        )

    return before_sleep


async def run_with_retry(
    operation: str,
    func: Callable[[], Awaitable[T]],
    max_attempts: Optional[int] = None,
) -> T:
    """
    Run `func` and retry it on StoreConflictError.

    The whole callable is re-run on every attempt, so it must not carry side
    effects from an aborted attempt.

    Raises:
        TransactionConflict: if every attempt hit contention.
    """
    attempts = max_attempts or settings.STORE_MAX_ATTEMPTS
    retrying = AsyncRetrying(
        retry=retry_if_exception_type(StoreConflictError),
        stop=stop_after_attempt(attempts),
        wait=wait_exponential(
            multiplier=settings.STORE_RETRY_MIN_SECONDS,
            min=settings.STORE_RETRY_MIN_SECONDS,
            max=settings.STORE_RETRY_MAX_SECONDS,
        ),
        before_sleep=_log_retry(operation),
    )

    try:
        return await retrying(func)
    except RetryError as e:
        logger.error("store_contention_exhausted", operation=operation, attempts=attempts)
        raise TransactionConflict(operation, attempts) from e.last_attempt.exception()
