"""
Atomic units — optimistic read-modify-write with bounded retry.

This is the persistence primitive every balance change is built on:

    result = await run_atomic(session_factory, work, operation="transfer_debit")

`work` is an async callable taking an AsyncSession. Each attempt:
  1. opens a fresh session and database transaction
  2. runs `work(session)` — reads, computes, and stages writes
  3. commits

Conflicts:
  Accounts and transaction records carry a version_id_col. If another
  writer committed a change to a row this attempt read, the versioned
  UPDATE/DELETE matches no row and SQLAlchemy raises StaleDataError. The
  attempt is rolled back in full and `work` is executed again from
  scratch on new data, after an exponential backoff with jitter.

  After settings.CONFLICT_MAX_RETRIES retries the unit gives up and raises
  ConflictError. Nothing from any failed attempt is ever committed.

Domain errors (InsufficientFundsError, AccountNotFoundError, ...) raised by
`work` roll the attempt back and propagate immediately — they are not
retried, because re-reading would give the same answer.
"""

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from club_ledger.config import settings
from club_ledger.exceptions import ConflictError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _log_retry(operation: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        logger.warning(
            "atomic_conflict_retry",
            operation=operation,
            attempt=retry_state.attempt_number,
            sleep_seconds=round(retry_state.next_action.sleep, 4) if retry_state.next_action else None,
        )
    return before_sleep


async def run_atomic(
    session_factory: async_sessionmaker[AsyncSession],
    work: Callable[[AsyncSession], Awaitable[T]],
    *,
    operation: str,
) -> T:
    """
    Execute `work` as one atomic unit, retrying on version conflicts.

    Args:
        session_factory: Creates a new AsyncSession per attempt.
        work: The read-compute-write body. Must be safe to run more than
              once: it may not have side effects outside the session.
        operation: Short name used in logs and in ConflictError.

    Returns:
        Whatever the successful attempt of `work` returned.

    Raises:
        ConflictError: If every attempt lost a version race.
        ClubLedgerError: Any domain error raised by `work`, unchanged.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(settings.CONFLICT_MAX_RETRIES + 1),
        wait=(
            wait_exponential(
                multiplier=settings.CONFLICT_BACKOFF_SECONDS,
                max=settings.CONFLICT_BACKOFF_MAX_SECONDS,
            )
            + wait_random(0, settings.CONFLICT_BACKOFF_JITTER_SECONDS)
        ),
        retry=retry_if_exception_type(StaleDataError),
        before_sleep=_log_retry(operation),
    )

    try:
        async for attempt in retrying:
            with attempt:
                async with session_factory() as session:
                    async with session.begin():
                        result = await work(session)
    except RetryError as exc:
        attempts = exc.last_attempt.attempt_number
        logger.error("atomic_conflict_exhausted", operation=operation, attempts=attempts)
        raise ConflictError(operation, attempts) from exc.last_attempt.exception()

    return result
