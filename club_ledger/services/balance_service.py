"""
Balance Applier — the only code that writes account balances and ledgers.

Contract:
    apply_balance_change(session_factory, account_id, signed_amount_cents, meta)
        -> AppliedChange(account_id, new_balance_cents, entry_id)

  signed_amount_cents is positive for a credit and negative for a debit,
  and must be a non-zero integer.

One application, inside one atomic unit:
  1. read the account (current balance, version, ledger length)
  2. new_balance = balance + signed_amount
  3. refuse with InsufficientFundsError if new_balance < 0 and the account
     kind is listed in settings.NON_NEGATIVE_ACCOUNT_KINDS
  4. append one LedgerEntry and write the new balance — same transaction,
     same versioned UPDATE

Exactly one entry is appended per successful call and none on failure, so

    balance_cents == sum(signed amount of every ledger entry)

holds after every commit. Reversal is not a special code path: it is just
another call with the negated amount and entry_type=REVERSAL.

`apply_in_session` is the bare body. Multi-account operations (the
transaction lifecycle, account opening) call it several times inside one
enclosing unit so all of their changes commit or roll back together.
"""

import uuid
from dataclasses import dataclass
from typing import NamedTuple

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from club_ledger.config import settings
from club_ledger.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    InsufficientFundsError,
    InvalidAmountError,
)
from club_ledger.models.account import Account, AccountKind, AccountStatus
from club_ledger.models.ledger_entry import EntryDirection, EntryType, LedgerEntry
from club_ledger.services.atomic import run_atomic

logger = structlog.get_logger(__name__)

# Entries that unwind an earlier effect are accepted on inactive accounts;
# deactivating an account must never trap money that is owed back.
_UNWINDING_ENTRY_TYPES = frozenset({EntryType.REVERSAL, EntryType.COMPENSATION})


@dataclass(frozen=True)
class LedgerEntryMeta:
    """Descriptive fields stored on the ledger entry a change produces."""
    description: str | None = None
    entry_type: EntryType = EntryType.POSTING
    source_transaction_id: uuid.UUID | None = None
    counterparty_account_id: uuid.UUID | None = None
    transfer_id: uuid.UUID | None = None


class AppliedChange(NamedTuple):
    account_id: uuid.UUID
    new_balance_cents: int
    entry_id: uuid.UUID


def allows_negative_balance(kind: AccountKind) -> bool:
    """Balance policy per account kind, driven by NON_NEGATIVE_ACCOUNT_KINDS."""
    return AccountKind(kind).value not in settings.NON_NEGATIVE_ACCOUNT_KINDS


def validate_signed_amount(signed_amount_cents: int) -> None:
    # bool is an int subclass; True is not one cent
    if isinstance(signed_amount_cents, bool) or not isinstance(signed_amount_cents, int):
        raise InvalidAmountError(
            f"Amount must be an integer number of cents, got {signed_amount_cents!r}"
        )
    if signed_amount_cents == 0:
        raise InvalidAmountError("Amount must be non-zero")


async def apply_in_session(
    session: AsyncSession,
    account_id: uuid.UUID,
    signed_amount_cents: int,
    meta: LedgerEntryMeta,
    check_funds: bool = True,
) -> AppliedChange:
    """
    Apply one signed change to one account inside the caller's transaction.

    The caller owns commit/rollback (normally run_atomic). Nothing is
    staged in the session when this raises.

    With check_funds=False the balance policy is not enforced on this step;
    the caller must run check_final_balances() over its changes before the
    unit commits.

    Raises:
        InvalidAmountError: Zero or non-integer amount.
        AccountNotFoundError: No account with this ID.
        AccountInactiveError: Inactive account and a non-unwinding entry.
        InsufficientFundsError: Guarded kind would go below zero.
    """
    validate_signed_amount(signed_amount_cents)

    account = await session.get(Account, account_id)
    if account is None:
        raise AccountNotFoundError(account_id)

    if (
        account.status == AccountStatus.INACTIVE
        and meta.entry_type not in _UNWINDING_ENTRY_TYPES
    ):
        raise AccountInactiveError(account_id)

    new_balance = account.balance_cents + signed_amount_cents
    if check_funds and new_balance < 0 and not allows_negative_balance(account.kind):
        logger.warning(
            "balance_rejected",
            account_id=str(account_id),
            balance_cents=account.balance_cents,
            signed_amount_cents=signed_amount_cents,
        )
        raise InsufficientFundsError(
            account_id=account_id,
            balance_cents=account.balance_cents,
            requested_cents=abs(signed_amount_cents),
        )

    account.ledger_length += 1
    account.balance_cents = new_balance

    entry = LedgerEntry(
        id=uuid.uuid4(),
        account_id=account_id,
        sequence=account.ledger_length,
        entry_type=meta.entry_type.value,
        direction=(
            EntryDirection.CREDIT.value
            if signed_amount_cents > 0
            else EntryDirection.DEBIT.value
        ),
        amount_cents=abs(signed_amount_cents),
        balance_after_cents=new_balance,
        description=meta.description,
        source_transaction_id=meta.source_transaction_id,
        counterparty_account_id=meta.counterparty_account_id,
        transfer_id=meta.transfer_id,
    )
    session.add(entry)
    await session.flush()

    logger.info(
        "balance_applied",
        account_id=str(account_id),
        signed_amount_cents=signed_amount_cents,
        new_balance_cents=new_balance,
        entry_id=str(entry.id),
        entry_type=meta.entry_type.value,
        sequence=entry.sequence,
    )
    return AppliedChange(account_id, new_balance, entry.id)


async def check_final_balances(
    session: AsyncSession,
    changes: list[AppliedChange],
) -> None:
    """
    Enforce the balance policy on the net result of several changes.

    Used by units that apply with check_funds=False, such as an edit that
    reverses an effect and re-applies it: only the balance the unit commits
    is ever visible, so only that balance must satisfy the policy.

    Raises:
        InsufficientFundsError: A guarded account ends the unit below zero.
    """
    net_cents: dict[uuid.UUID, int] = {}
    final_cents: dict[uuid.UUID, int] = {}
    for change in changes:
        entry = await session.get(LedgerEntry, change.entry_id)
        signed = entry.amount_cents
        if entry.direction == EntryDirection.DEBIT.value:
            signed = -signed
        net_cents[change.account_id] = net_cents.get(change.account_id, 0) + signed
        final_cents[change.account_id] = change.new_balance_cents

    for account_id, final_balance in final_cents.items():
        if final_balance >= 0:
            continue
        account = await session.get(Account, account_id)
        if allows_negative_balance(account.kind):
            continue
        starting_balance = final_balance - net_cents[account_id]
        logger.warning(
            "balance_rejected",
            account_id=str(account_id),
            balance_cents=starting_balance,
            signed_amount_cents=net_cents[account_id],
        )
        raise InsufficientFundsError(
            account_id=account_id,
            balance_cents=starting_balance,
            requested_cents=abs(net_cents[account_id]),
        )


async def apply_balance_change(
    session_factory: async_sessionmaker[AsyncSession],
    account_id: uuid.UUID,
    signed_amount_cents: int,
    meta: LedgerEntryMeta,
) -> AppliedChange:
    """
    Apply one signed change to one account as its own atomic unit.

    Retries on version conflicts (see services/atomic.py); raises
    ConflictError once the retry budget is spent.
    """
    # Fail fast: no point opening a session for an invalid amount
    validate_signed_amount(signed_amount_cents)

    async def work(session: AsyncSession) -> AppliedChange:
        return await apply_in_session(session, account_id, signed_amount_cents, meta)

    return await run_atomic(session_factory, work, operation="apply_balance_change")
