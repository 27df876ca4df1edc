"""
Account service — business logic for club accounts.

This module handles:
  - Account opening (with the opening balance written as a ledger entry)
  - Metadata edits (name, status, description, bank details)
  - Direct balance operations: manual credit/debit and balance adjustment
  - Reads: single account, filtered lists, the ledger, and balance checks

Every balance-changing function goes through the Balance Applier inside a
run_atomic unit; nothing in this module assigns `balance_cents` directly.

Balance verification:
  get_balance() reports the cached balance next to the balance recomputed
  from the ledger. They always match unless rows were written outside the
  Balance Applier — a mismatch is a data integrity incident.
"""

import uuid

from sqlalchemy import select, func, case
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from club_ledger.exceptions import (
    AccountNotFoundError,
    DuplicateAccountNameError,
    InvalidAmountError,
)
from club_ledger.models.account import Account, AccountKind, AccountStatus
from club_ledger.models.ledger_entry import EntryDirection, EntryType, LedgerEntry
from club_ledger.services.atomic import run_atomic
from club_ledger.services.balance_service import (
    AppliedChange,
    LedgerEntryMeta,
    apply_in_session,
    validate_signed_amount,
)

# Fields update_account() may change. Balance fields are deliberately absent.
EDITABLE_ACCOUNT_FIELDS = frozenset({
    "name",
    "status",
    "description",
    "bank_name",
    "bank_account_number",
    "branch_name",
})


async def _ensure_name_available(
    session: AsyncSession,
    name: str,
    exclude_id: uuid.UUID | None = None,
) -> None:
    query = select(Account.id).where(Account.name == name)
    if exclude_id is not None:
        query = query.where(Account.id != exclude_id)
    existing = await session.execute(query)
    if existing.scalar_one_or_none() is not None:
        raise DuplicateAccountNameError(name)


async def create_account(
    session_factory: async_sessionmaker[AsyncSession],
    name: str,
    kind: AccountKind,
    initial_balance_cents: int = 0,
    status: AccountStatus = AccountStatus.ACTIVE,
    description: str | None = None,
    bank_name: str | None = None,
    bank_account_number: str | None = None,
    branch_name: str | None = None,
) -> Account:
    """
    Open a new account.

    The account row is created at zero; a non-zero opening balance is then
    written through the Balance Applier as an OPENING entry in the same
    unit, so the balance policy applies to it (a bank account cannot be
    opened overdrawn) and the ledger accounts for every cent.

    Raises:
        DuplicateAccountNameError: If the name is taken.
        InsufficientFundsError: Negative opening balance on a guarded kind.
    """
    async def work(session: AsyncSession) -> Account:
        await _ensure_name_available(session, name)

        account = Account(
            name=name,
            kind=AccountKind(kind),
            status=AccountStatus.ACTIVE,
            description=description,
            bank_name=bank_name,
            bank_account_number=bank_account_number,
            branch_name=branch_name,
            balance_cents=0,
            initial_balance_cents=initial_balance_cents,
            ledger_length=0,
        )
        session.add(account)
        await session.flush()

        if initial_balance_cents != 0:
            await apply_in_session(
                session,
                account.id,
                initial_balance_cents,
                LedgerEntryMeta(description="Initial balance", entry_type=EntryType.OPENING),
            )

        # Status last: an account may be opened inactive with a balance
        account.status = AccountStatus(status)
        await session.flush()
        return account

    return await run_atomic(session_factory, work, operation="create_account")


async def update_account(
    session_factory: async_sessionmaker[AsyncSession],
    account_id: uuid.UUID,
    changes: dict,
) -> Account:
    """
    Edit account metadata. Unknown keys and balance fields are ignored.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
        DuplicateAccountNameError: If renaming onto a taken name.
    """
    updates = {k: v for k, v in changes.items() if k in EDITABLE_ACCOUNT_FIELDS}

    async def work(session: AsyncSession) -> Account:
        account = await session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        if "name" in updates and updates["name"] != account.name:
            await _ensure_name_available(session, updates["name"], exclude_id=account_id)

        for field_name, value in updates.items():
            if field_name == "status":
                value = AccountStatus(value)
            setattr(account, field_name, value)

        await session.flush()
        return account

    return await run_atomic(session_factory, work, operation="update_account")


async def post_manual_entry(
    session_factory: async_sessionmaker[AsyncSession],
    account_id: uuid.UUID,
    direction: EntryDirection,
    amount_cents: int,
    description: str | None = None,
) -> AppliedChange:
    """
    Credit or debit one account directly (cash count corrections, bank fees,
    interest...). Not tied to any transaction record.

    Raises:
        InvalidAmountError: If amount_cents is not a positive integer.
        AccountNotFoundError, AccountInactiveError, InsufficientFundsError
    """
    validate_signed_amount(amount_cents)
    if amount_cents < 0:
        raise InvalidAmountError("Amount must be positive; use the direction to debit")

    signed = amount_cents if EntryDirection(direction) == EntryDirection.CREDIT else -amount_cents

    async def work(session: AsyncSession) -> AppliedChange:
        return await apply_in_session(
            session,
            account_id,
            signed,
            LedgerEntryMeta(description=description, entry_type=EntryType.MANUAL),
        )

    return await run_atomic(session_factory, work, operation="post_manual_entry")


async def adjust_balance(
    session_factory: async_sessionmaker[AsyncSession],
    account_id: uuid.UUID,
    target_balance_cents: int,
    description: str | None = None,
) -> Account:
    """
    Bring an account to a target balance with one ADJUSTMENT entry for the
    difference (e.g. after reconciling against a bank statement).

    The difference is computed inside the unit from the balance actually
    read, so a concurrent change makes the adjustment retry rather than
    overshoot. When the account is already at the target nothing is written.
    """
    async def work(session: AsyncSession) -> Account:
        account = await session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(account_id)

        difference = target_balance_cents - account.balance_cents
        if difference != 0:
            await apply_in_session(
                session,
                account_id,
                difference,
                LedgerEntryMeta(
                    description=description or "Balance adjustment",
                    entry_type=EntryType.ADJUSTMENT,
                ),
            )
        return account

    return await run_atomic(session_factory, work, operation="adjust_balance")


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_account(db: AsyncSession, account_id: uuid.UUID) -> Account:
    """
    Get a single account.

    Raises:
        AccountNotFoundError: If the account doesn't exist.
    """
    result = await db.execute(select(Account).where(Account.id == account_id))
    account = result.scalar_one_or_none()

    if account is None:
        raise AccountNotFoundError(account_id)

    return account


async def get_accounts(
    db: AsyncSession,
    kind: AccountKind | None = None,
    status: AccountStatus | None = None,
) -> list[Account]:
    """List accounts by name, optionally filtered by kind and status."""
    query = select(Account).order_by(Account.name)
    if kind is not None:
        query = query.where(Account.kind == AccountKind(kind))
    if status is not None:
        query = query.where(Account.status == AccountStatus(status))

    result = await db.execute(query)
    return list(result.scalars().all())


async def get_ledger(
    db: AsyncSession,
    account_id: uuid.UUID,
    limit: int = 100,
    offset: int = 0,
) -> list[LedgerEntry]:
    """List an account's ledger entries in sequence (chronological) order."""
    await get_account(db, account_id)

    result = await db.execute(
        select(LedgerEntry)
        .where(LedgerEntry.account_id == account_id)
        .order_by(LedgerEntry.sequence)
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all())


async def _compute_balance_from_ledger(db: AsyncSession, account_id: uuid.UUID) -> int:
    """Sum the signed amounts of every ledger entry of an account."""
    signed_amount = case(
        (LedgerEntry.direction == EntryDirection.CREDIT.value, LedgerEntry.amount_cents),
        else_=-LedgerEntry.amount_cents,
    )
    result = await db.execute(
        select(func.coalesce(func.sum(signed_amount), 0))
        .where(LedgerEntry.account_id == account_id)
    )
    return result.scalar()


async def get_balance(db: AsyncSession, account_id: uuid.UUID) -> dict:
    """
    Get the cached balance alongside the balance recomputed from the ledger.

    Returns:
        Dict with account_id, balance_cents, computed_balance_cents,
        entry_count, and match.
    """
    account = await get_account(db, account_id)
    computed_balance_cents = await _compute_balance_from_ledger(db, account_id)

    return {
        "account_id": account.id,
        "balance_cents": account.balance_cents,
        "computed_balance_cents": computed_balance_cents,
        "entry_count": account.ledger_length,
        "match": account.balance_cents == computed_balance_cents,
    }


async def check_ledger_integrity(db: AsyncSession) -> list[dict]:
    """Run get_balance() for every account; used by the integrity report."""
    accounts = await get_accounts(db)
    return [await get_balance(db, account.id) for account in accounts]
