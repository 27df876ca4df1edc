"""
Transaction service — the lifecycle of club income and expense records.

THIS IS WHERE BALANCES AND RECORDS ARE KEPT IN STEP. It handles:
  - Creating a record (and applying its effect when Completed)
  - Editing a record (reverse the old effect, apply the new one)
  - Deleting a record (reverse its effect first)
  - Reads with filters

The rule every operation preserves:
  A record has un-reversed ledger entries if and only if its status is
  Completed. Each such record affects two accounts:
    - the linked account (bank/cash) when linked_account_id is set
    - the category bucket account named after its category when the
      effect was applied; the record remembers it in category_account_id,
      so reversals find it again even after the bucket is renamed
  Income credits both, expense debits both.

Atomicity:
  Each operation is ONE run_atomic unit: the record write and every
  reversal/application it triggers commit together or not at all. A
  failure on the second account (insufficient funds, missing category
  bucket, inactive account...) therefore leaves no reversed-only or
  half-applied state behind — the record and both ledgers are exactly as
  they were before the call.

Edits always reverse-then-apply:
  Editing a Completed record reverses its old effect and applies the new
  one even when only the description changed. The logic stays uniform and
  the ledger shows every edit, at the cost of two extra entries per
  account. It also means a record edited from one linked account to
  another moves the money correctly with no special case.

  The non-negative balance rule is checked on what the edit commits, not
  on the intermediate reversed-only balance, which no reader ever sees.
  Raising an income whose money was partly spent is therefore allowed.

Concurrency:
  Transaction rows are version-checked. Two edits racing on the same
  record cannot both reverse the same applied effect: the loser hits
  StaleDataError, its whole unit is rolled back and re-run against the
  winner's result.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from club_ledger.config import settings
from club_ledger.exceptions import (
    AccountNotFoundError,
    CategoryAccountNotFoundError,
    InvalidAmountError,
    InvalidStatusTransitionError,
    InvalidTransactionError,
    TransactionNotFoundError,
)
from club_ledger.models.account import Account, AccountKind
from club_ledger.models.ledger_entry import EntryType
from club_ledger.models.transaction import (
    PaymentMethod,
    Transaction,
    TransactionKind,
    TransactionStatus,
)
from club_ledger.services.atomic import run_atomic
from club_ledger.services.balance_service import (
    AppliedChange,
    LedgerEntryMeta,
    apply_in_session,
    check_final_balances,
)

logger = structlog.get_logger(__name__)

COMPLETED = TransactionStatus.COMPLETED.value

# (from, to) pairs an edit may perform. Cancelled is terminal.
ALLOWED_TRANSITIONS = frozenset({
    (TransactionStatus.PENDING.value, TransactionStatus.PENDING.value),
    (TransactionStatus.PENDING.value, TransactionStatus.COMPLETED.value),
    (TransactionStatus.PENDING.value, TransactionStatus.CANCELLED.value),
    (TransactionStatus.COMPLETED.value, TransactionStatus.COMPLETED.value),
    (TransactionStatus.COMPLETED.value, TransactionStatus.CANCELLED.value),
    (TransactionStatus.CANCELLED.value, TransactionStatus.CANCELLED.value),
})

EDITABLE_TRANSACTION_FIELDS = frozenset({
    "kind",
    "amount_cents",
    "category",
    "status",
    "payment_method",
    "linked_account_id",
    "description",
    "counterparty_name",
    "transaction_date",
})


@dataclass
class TransactionDraft:
    """Input for create_transaction()."""
    kind: TransactionKind
    amount_cents: int
    category: str
    payment_method: PaymentMethod
    status: TransactionStatus = TransactionStatus.PENDING
    linked_account_id: uuid.UUID | None = None
    description: str | None = None
    counterparty_name: str | None = None
    transaction_date: date | None = None


@dataclass
class TransactionOutcome:
    """
    Result of a lifecycle operation.

    `balances` maps every account the operation touched to its balance
    after the commit; `changes` lists each ledger application in order.
    """
    transaction: Transaction
    changes: list[AppliedChange] = field(default_factory=list)

    @property
    def balances(self) -> dict[uuid.UUID, int]:
        result: dict[uuid.UUID, int] = {}
        for change in self.changes:
            result[change.account_id] = change.new_balance_cents
        return result


@dataclass(frozen=True)
class _Effect:
    """The balance effect a Completed record has, captured before an edit."""
    transaction_id: uuid.UUID
    signed_amount_cents: int
    category_account_id: uuid.UUID | None
    linked_account_id: uuid.UUID | None

    @classmethod
    def of(cls, txn: Transaction) -> "_Effect":
        return cls(
            transaction_id=txn.id,
            signed_amount_cents=txn.signed_amount_cents,
            category_account_id=txn.category_account_id,
            linked_account_id=txn.linked_account_id,
        )


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------

def _routes_through_account(payment_method: str) -> bool:
    return PaymentMethod(payment_method).value in settings.ACCOUNT_ROUTED_PAYMENT_METHODS


async def _validate_record(session: AsyncSession, txn: Transaction) -> None:
    """
    Check the routing rule and referenced accounts of a record.

    Raises:
        InvalidAmountError: amount_cents not a positive integer.
        InvalidTransactionError: linked_account_id present/absent against
            the payment method, or linked to a category bucket.
        AccountNotFoundError: linked account doesn't exist.
    """
    if (
        isinstance(txn.amount_cents, bool)
        or not isinstance(txn.amount_cents, int)
        or txn.amount_cents <= 0
    ):
        raise InvalidAmountError("Transaction amount must be a positive integer number of cents")

    if _routes_through_account(txn.payment_method):
        if txn.linked_account_id is None:
            raise InvalidTransactionError(
                f"Payment method '{txn.payment_method}' requires a linked account"
            )
    elif txn.linked_account_id is not None:
        raise InvalidTransactionError(
            f"Payment method '{txn.payment_method}' does not use a linked account"
        )

    if txn.linked_account_id is not None:
        # The record may hold unflushed edits pointing at this very account
        with session.no_autoflush:
            account = await session.get(Account, txn.linked_account_id)
        if account is None:
            raise AccountNotFoundError(txn.linked_account_id)
        if account.kind == AccountKind.CATEGORY_BUCKET:
            raise InvalidTransactionError(
                "A transaction cannot be paid through a category account"
            )


async def _category_account_id(session: AsyncSession, category: str) -> uuid.UUID:
    result = await session.execute(
        select(Account.id)
        .where(Account.kind == AccountKind.CATEGORY_BUCKET)
        .where(Account.name == category)
    )
    account_id = result.scalar_one_or_none()
    if account_id is None:
        raise CategoryAccountNotFoundError(category)
    return account_id


async def _apply_effect(
    session: AsyncSession,
    effect: _Effect,
    reverse: bool,
    reason: str,
    check_funds: bool = True,
) -> list[AppliedChange]:
    """
    Apply (or reverse) one record's effect on its linked and category accounts.

    Both applications go through the Balance Applier on the caller's session,
    so they share the enclosing unit's commit.
    """
    signed = -effect.signed_amount_cents if reverse else effect.signed_amount_cents
    if reverse:
        meta = LedgerEntryMeta(
            description=f"Reversal of transaction {effect.transaction_id} ({reason})",
            entry_type=EntryType.REVERSAL,
            source_transaction_id=effect.transaction_id,
        )
    else:
        meta = LedgerEntryMeta(
            description=f"Transaction {effect.transaction_id} ({reason})",
            entry_type=EntryType.POSTING,
            source_transaction_id=effect.transaction_id,
        )

    targets = []
    if effect.linked_account_id is not None:
        targets.append(effect.linked_account_id)
    targets.append(effect.category_account_id)

    return [
        await apply_in_session(session, account_id, signed, meta, check_funds=check_funds)
        for account_id in targets
    ]


async def _post_effect(
    session: AsyncSession,
    txn: Transaction,
    reason: str,
    check_funds: bool = True,
) -> list[AppliedChange]:
    """Apply a Completed record's effect, binding it to its category bucket first."""
    txn.category_account_id = await _category_account_id(session, txn.category)
    return await _apply_effect(
        session, _Effect.of(txn), reverse=False, reason=reason, check_funds=check_funds
    )


# ---------------------------------------------------------------------------
# Lifecycle operations
# ---------------------------------------------------------------------------

async def create_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    draft: TransactionDraft,
) -> TransactionOutcome:
    """
    Persist a new record; if it is Completed, apply its effect.

    Raises:
        InvalidAmountError, InvalidTransactionError: Bad record.
        AccountNotFoundError / CategoryAccountNotFoundError: Missing account.
        AccountInactiveError, InsufficientFundsError: Rejected application.
        ConflictError: Retry budget exhausted.
    In every error case nothing is persisted.
    """
    async def work(session: AsyncSession) -> TransactionOutcome:
        txn = Transaction(
            id=uuid.uuid4(),
            kind=TransactionKind(draft.kind).value,
            amount_cents=draft.amount_cents,
            category=draft.category,
            status=TransactionStatus(draft.status).value,
            payment_method=PaymentMethod(draft.payment_method).value,
            linked_account_id=draft.linked_account_id,
            description=draft.description,
            counterparty_name=draft.counterparty_name,
            transaction_date=draft.transaction_date or datetime.now(timezone.utc).date(),
        )
        await _validate_record(session, txn)
        session.add(txn)
        await session.flush()

        outcome = TransactionOutcome(transaction=txn)
        if txn.status == COMPLETED:
            outcome.changes.extend(await _post_effect(session, txn, reason="create"))
        return outcome

    outcome = await run_atomic(session_factory, work, operation="create_transaction")
    logger.info(
        "transaction_created",
        transaction_id=str(outcome.transaction.id),
        status=outcome.transaction.status,
        amount_cents=outcome.transaction.amount_cents,
        accounts_touched=len(outcome.balances),
    )
    return outcome


async def edit_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    transaction_id: uuid.UUID,
    changes: dict,
) -> TransactionOutcome:
    """
    Edit a record, keeping the ledgers consistent with the result.

    Steps, all in one unit:
      1. load the record and check the status transition
      2. if it was Completed, reverse its old effect on its old accounts
      3. write the new field values and validate them
      4. if it is now Completed, apply the new effect on its new accounts
      5. check the balance policy on the net result of steps 2 and 4

    Unknown keys in `changes` are ignored.

    Raises:
        TransactionNotFoundError: No record with this ID.
        InvalidStatusTransitionError: e.g. Cancelled -> Completed.
        Any error create_transaction() can raise. The record and both
        ledgers are untouched when one is raised.
    """
    updates = {k: v for k, v in changes.items() if k in EDITABLE_TRANSACTION_FIELDS}

    async def work(session: AsyncSession) -> TransactionOutcome:
        txn = await session.get(Transaction, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(transaction_id)

        old_status = txn.status
        new_status = TransactionStatus(updates.get("status", old_status)).value
        if (old_status, new_status) not in ALLOWED_TRANSITIONS:
            raise InvalidStatusTransitionError(old_status, new_status)

        outcome = TransactionOutcome(transaction=txn)

        if old_status == COMPLETED:
            outcome.changes.extend(
                await _apply_effect(
                    session, _Effect.of(txn), reverse=True, reason="edit", check_funds=False
                )
            )
            txn.category_account_id = None

        for field_name, value in updates.items():
            if field_name == "kind":
                value = TransactionKind(value).value
            elif field_name == "status":
                value = TransactionStatus(value).value
            elif field_name == "payment_method":
                value = PaymentMethod(value).value
            setattr(txn, field_name, value)
        txn.updated_at = datetime.now(timezone.utc)

        await _validate_record(session, txn)
        await session.flush()

        if txn.status == COMPLETED:
            outcome.changes.extend(
                await _post_effect(session, txn, reason="edit", check_funds=False)
            )

        await check_final_balances(session, outcome.changes)
        await session.flush()
        return outcome

    outcome = await run_atomic(session_factory, work, operation="edit_transaction")
    logger.info(
        "transaction_edited",
        transaction_id=str(transaction_id),
        status=outcome.transaction.status,
        amount_cents=outcome.transaction.amount_cents,
        entries_written=len(outcome.changes),
    )
    return outcome


async def delete_transaction(
    session_factory: async_sessionmaker[AsyncSession],
    transaction_id: uuid.UUID,
) -> TransactionOutcome:
    """
    Delete a record, reversing its effect first if it is Completed.

    The ledger entries it produced stay (with their reversals) as the audit
    trail; `source_transaction_id` keeps pointing at the deleted record's ID.

    Raises:
        TransactionNotFoundError: No record with this ID.
        InsufficientFundsError: Reversing would overdraw a guarded account
            (e.g. deleting an income whose money was already spent).
    """
    async def work(session: AsyncSession) -> TransactionOutcome:
        txn = await session.get(Transaction, transaction_id)
        if txn is None:
            raise TransactionNotFoundError(transaction_id)

        outcome = TransactionOutcome(transaction=txn)
        if txn.status == COMPLETED:
            outcome.changes.extend(
                await _apply_effect(session, _Effect.of(txn), reverse=True, reason="delete")
            )

        await session.delete(txn)
        await session.flush()
        return outcome

    outcome = await run_atomic(session_factory, work, operation="delete_transaction")
    logger.info(
        "transaction_deleted",
        transaction_id=str(transaction_id),
        entries_written=len(outcome.changes),
    )
    return outcome


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_transaction(db: AsyncSession, transaction_id: uuid.UUID) -> Transaction:
    """
    Get a single transaction record.

    Raises:
        TransactionNotFoundError: If it doesn't exist.
    """
    result = await db.execute(select(Transaction).where(Transaction.id == transaction_id))
    txn = result.scalar_one_or_none()

    if txn is None:
        raise TransactionNotFoundError(transaction_id)

    return txn


async def get_transactions(
    db: AsyncSession,
    status_filter: str | None = None,
    kind_filter: str | None = None,
    category: str | None = None,
    linked_account_id: uuid.UUID | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Transaction]:
    """List transaction records, newest first, with optional filters."""
    query = (
        select(Transaction)
        .order_by(Transaction.created_at.desc())
        .limit(limit)
        .offset(offset)
    )

    if status_filter:
        query = query.where(Transaction.status == status_filter)
    if kind_filter:
        query = query.where(Transaction.kind == kind_filter)
    if category:
        query = query.where(Transaction.category == category)
    if linked_account_id:
        query = query.where(Transaction.linked_account_id == linked_account_id)

    result = await db.execute(query)
    return list(result.scalars().all())
