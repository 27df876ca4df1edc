"""
Transfer service — move money from one club account to another.

A transfer is two Balance Applier calls, each its own atomic unit:

    1. debit  the source       (-amount)   entry_type=TRANSFER
    2. credit the destination  (+amount)   entry_type=TRANSFER

Both entries name the other account as counterparty and share one
transfer_id, which makes the legs trivially linkable for auditing.

Two units, not one:
  Each leg is serialized on its own account's version check, so a
  transfer never holds a conflict window open on both accounts at once.
  The price is the partial-failure case below.

Failure handling:
  - Debit fails (insufficient funds, missing or inactive source,
    conflict): nothing was written; the error propagates unchanged.
  - Credit fails after the debit committed: the money would vanish, so the
    source is immediately re-credited with a COMPENSATION entry and
    PartialTransferFailure(compensated=True) is raised.
  - Compensation fails too: PartialTransferFailure(compensated=False) is
    raised and logged at critical level with everything an operator needs
    to put the money back by hand.

  A cancelled request (client gone, server shutting down) is compensated
  the same way before the cancellation propagates.

  Compensation entries are accepted on inactive accounts (see
  balance_service), and re-crediting can never trip the non-negative
  balance rule, so in practice only a storage outage or a conflict storm
  leaves a transfer uncompensated.
"""

import asyncio
import uuid
from dataclasses import dataclass

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from club_ledger.exceptions import (
    InvalidAmountError,
    InvalidTransferError,
    PartialTransferFailure,
)
from club_ledger.models.ledger_entry import EntryType, LedgerEntry
from club_ledger.services.balance_service import (
    AppliedChange,
    LedgerEntryMeta,
    apply_balance_change,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class TransferResult:
    transfer_id: uuid.UUID
    amount_cents: int
    from_account_id: uuid.UUID
    to_account_id: uuid.UUID
    debit: AppliedChange
    credit: AppliedChange


async def transfer_between_accounts(
    session_factory: async_sessionmaker[AsyncSession],
    from_account_id: uuid.UUID,
    to_account_id: uuid.UUID,
    amount_cents: int,
    description: str | None = None,
) -> TransferResult:
    """
    Transfer `amount_cents` from one account to another.

    Args:
        session_factory: Session factory for the two atomic units.
        from_account_id: Source account (debited first).
        to_account_id: Destination account (credited second).
        amount_cents: Positive integer amount in cents.
        description: Optional memo, copied onto both ledger entries.

    Returns:
        TransferResult with both applied legs and the shared transfer_id.

    Raises:
        InvalidTransferError: Source and destination are the same account.
        InvalidAmountError: amount_cents is not a positive integer.
        InsufficientFundsError / AccountNotFoundError / AccountInactiveError /
        ConflictError: The debit leg failed; nothing was written.
        PartialTransferFailure: The credit leg failed after the debit.
        asyncio.CancelledError: Cancelled during the credit leg; the debit
            has been compensated first.
    """
    if from_account_id == to_account_id:
        raise InvalidTransferError()
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents <= 0:
        raise InvalidAmountError("Transfer amount must be a positive integer number of cents")

    transfer_id = uuid.uuid4()
    memo = f": {description}" if description else ""

    debit = await apply_balance_change(
        session_factory,
        from_account_id,
        -amount_cents,
        LedgerEntryMeta(
            description=f"Transfer to {to_account_id}{memo}",
            entry_type=EntryType.TRANSFER,
            counterparty_account_id=to_account_id,
            transfer_id=transfer_id,
        ),
    )

    try:
        credit = await apply_balance_change(
            session_factory,
            to_account_id,
            amount_cents,
            LedgerEntryMeta(
                description=f"Transfer from {from_account_id}{memo}",
                entry_type=EntryType.TRANSFER,
                counterparty_account_id=from_account_id,
                transfer_id=transfer_id,
            ),
        )
    except asyncio.CancelledError:
        logger.error(
            "transfer_credit_cancelled",
            transfer_id=str(transfer_id),
            from_account_id=str(from_account_id),
            to_account_id=str(to_account_id),
            amount_cents=amount_cents,
        )
        # A second cancel must not interrupt the clean-up
        await asyncio.shield(
            _compensate_cancelled(
                session_factory, transfer_id, from_account_id, to_account_id, amount_cents
            )
        )
        raise
    except Exception as credit_error:
        logger.error(
            "transfer_credit_failed",
            transfer_id=str(transfer_id),
            from_account_id=str(from_account_id),
            to_account_id=str(to_account_id),
            amount_cents=amount_cents,
            error=str(credit_error),
        )
        compensated = await _compensate(
            session_factory, transfer_id, from_account_id, to_account_id, amount_cents
        )
        raise PartialTransferFailure(
            transfer_id=transfer_id,
            amount_cents=amount_cents,
            from_account_id=from_account_id,
            to_account_id=to_account_id,
            failed_leg="credit",
            compensated=compensated,
            cause=credit_error,
        ) from credit_error

    logger.info(
        "transfer_completed",
        transfer_id=str(transfer_id),
        from_account_id=str(from_account_id),
        to_account_id=str(to_account_id),
        amount_cents=amount_cents,
    )
    return TransferResult(
        transfer_id=transfer_id,
        amount_cents=amount_cents,
        from_account_id=from_account_id,
        to_account_id=to_account_id,
        debit=debit,
        credit=credit,
    )


async def _compensate(
    session_factory: async_sessionmaker[AsyncSession],
    transfer_id: uuid.UUID,
    from_account_id: uuid.UUID,
    to_account_id: uuid.UUID,
    amount_cents: int,
) -> bool:
    """Re-credit the source of a failed transfer. Returns True on success."""
    try:
        change = await apply_balance_change(
            session_factory,
            from_account_id,
            amount_cents,
            LedgerEntryMeta(
                description=f"Compensation for failed transfer {transfer_id}",
                entry_type=EntryType.COMPENSATION,
                counterparty_account_id=to_account_id,
                transfer_id=transfer_id,
            ),
        )
    except Exception as compensation_error:
        logger.critical(
            "transfer_compensation_failed",
            transfer_id=str(transfer_id),
            from_account_id=str(from_account_id),
            to_account_id=str(to_account_id),
            amount_cents=amount_cents,
            error=str(compensation_error),
        )
        return False

    logger.warning(
        "transfer_compensated",
        transfer_id=str(transfer_id),
        from_account_id=str(from_account_id),
        new_balance_cents=change.new_balance_cents,
    )
    return True


async def _compensate_cancelled(
    session_factory: async_sessionmaker[AsyncSession],
    transfer_id: uuid.UUID,
    from_account_id: uuid.UUID,
    to_account_id: uuid.UUID,
    amount_cents: int,
) -> bool:
    """
    Compensate a transfer whose credit leg was cancelled.

    Cancellation can arrive after the credit's commit reached the database,
    so the destination ledger is checked first: if the credit landed, the
    transfer is complete and nothing is re-credited.
    """
    async with session_factory() as session:
        result = await session.execute(
            select(LedgerEntry.id)
            .where(LedgerEntry.transfer_id == transfer_id)
            .where(LedgerEntry.account_id == to_account_id)
        )
        credit_landed = result.first() is not None

    if credit_landed:
        logger.warning(
            "transfer_cancelled_after_credit",
            transfer_id=str(transfer_id),
            to_account_id=str(to_account_id),
        )
        return True
    return await _compensate(
        session_factory, transfer_id, from_account_id, to_account_id, amount_cents
    )
