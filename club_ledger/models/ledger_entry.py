"""
LedgerEntry model — one immutable balance-affecting event on an Account.

Entries are append-only. A mistake is never fixed by editing or deleting
an entry; instead an opposite-direction entry is written (a reversal or a
compensation). ORM listeners at the bottom of this module reject any
UPDATE or DELETE of an entry that reaches a flush.

Key fields:
  - sequence: 1-based position within the account's ledger. Unique per
    account and allocated under the account's version check, so it is the
    chronological tie-breaker for entries with equal timestamps.
  - direction + amount_cents: amount is always positive; the direction
    ("credit" adds, "debit" subtracts) carries the sign.
  - balance_after_cents: the account balance right after this entry.
  - entry_type: why the entry exists (opening, posting, reversal, transfer,
    compensation, adjustment, manual).
  - source_transaction_id: the transaction record that caused it. Plain
    column, no foreign key: records can be deleted, their entries stay.
  - counterparty_account_id / transfer_id: set on transfer legs and their
    compensations. No foreign key either — a failed transfer may name an
    account that does not exist.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    ForeignKey,
    CheckConstraint,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column

from club_ledger.database import Base
from club_ledger.exceptions import LedgerImmutabilityError


class EntryDirection(str, enum.Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class EntryType(str, enum.Enum):
    OPENING = "opening"
    POSTING = "posting"
    REVERSAL = "reversal"
    TRANSFER = "transfer"
    COMPENSATION = "compensation"
    ADJUSTMENT = "adjustment"
    MANUAL = "manual"


class LedgerEntry(Base):
    __tablename__ = "ledger_entries"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_ledger_entries_positive_amount"),
        UniqueConstraint("account_id", "sequence", name="uq_ledger_entries_account_sequence"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    account_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=False,
        index=True,
    )

    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    entry_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    # "credit" or "debit"
    direction: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
    )

    amount_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    balance_after_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    description: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    source_transaction_id: Mapped[uuid.UUID | None] = mapped_column(
        nullable=True,
        index=True,
    )

    counterparty_account_id: Mapped[uuid.UUID | None] = mapped_column(
        nullable=True,
    )

    # Shared by every entry written for one transfer (both legs and any
    # compensation)
    transfer_id: Mapped[uuid.UUID | None] = mapped_column(
        nullable=True,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )

    @property
    def signed_amount_cents(self) -> int:
        """Amount with its sign: positive for credits, negative for debits."""
        if self.direction == EntryDirection.CREDIT.value:
            return self.amount_cents
        return -self.amount_cents


# ---------------------------------------------------------------------------
# ORM-level immutability
# ---------------------------------------------------------------------------

@event.listens_for(LedgerEntry, "before_update")
def prevent_entry_update(mapper, connection, target):
    """Ledger entries are never modified once written."""
    raise LedgerImmutabilityError(target.id)


@event.listens_for(LedgerEntry, "before_delete")
def prevent_entry_delete(mapper, connection, target):
    """Ledger entries are never deleted once written."""
    raise LedgerImmutabilityError(target.id)
