"""
Retry Strategies using Tenacity.

Bounded retry for compare-and-set races on account balances.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from omniledger.core.exceptions import BalanceConflictError, TransientConflictError
from omniledger.core.logging import get_logger

logger = get_logger("retry")

T = TypeVar("T")


def _log_conflict(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.debug(f"Balance conflict, retrying (attempt {retry_state.attempt_number}): {error}")


def conflict_retrying(max_attempts: int) -> AsyncRetrying:
    """
    Retry policy for balance conflicts.

    Retries immediately, only on BalanceConflictError, and re-raises the
    last conflict once ``max_attempts`` attempts have been made. Every
    other exception propagates on the first attempt.
    """
    return AsyncRetrying(
        retry=retry_if_exception_type(BalanceConflictError),
        stop=stop_after_attempt(max_attempts),
        reraise=True,
        before_sleep=_log_conflict,
    )


async def execute_with_conflict_retry(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    max_attempts: int = 5,
    **kwargs: Any,
) -> T:
    """
    Run a read-validate-commit cycle until it commits without a conflict.

    Raises:
        TransientConflictError: If every attempt lost a race
    """
    try:
        async for attempt in conflict_retrying(max_attempts):
            with attempt:
                return await func(*args, **kwargs)
    except BalanceConflictError as e:
        logger.warning(f"Giving up after {max_attempts} conflicting attempts: {e}")
        raise TransientConflictError(
            "Concurrent updates kept conflicting. Please retry.",
            attempts=max_attempts,
            details={"accounts": list(e.account_ids)},
        ) from e
