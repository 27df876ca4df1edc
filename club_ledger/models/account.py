"""
Account model — a named pool of club money with a running balance.

Three kinds of account exist:
  - bank:            a real bank account (bank details attached)
  - cash:            petty cash / cash box
  - category_bucket: a reporting bucket named after a finance category
                     (e.g. "Sponsorship", "Player Salaries")

Balance management:
  `balance_cents` is the authoritative running total. It only ever changes
  through the Balance Applier (services/balance_service.py), which appends
  exactly one LedgerEntry per change in the same database transaction, so
  at every commit:

      balance_cents == sum(signed amount of every ledger entry)

  The opening balance is itself the first ledger entry, which makes the
  invariant hold from creation onwards.

Optimistic concurrency:
  `version` is registered as SQLAlchemy's version_id_col. Every UPDATE is
  issued as `... WHERE id = :id AND version = :seen_version`; if another
  writer committed first, no row matches and SQLAlchemy raises
  StaleDataError, which the atomic-unit runner turns into a retry.

  `ledger_length` is bumped in that same versioned UPDATE and provides the
  per-account sequence number of the next ledger entry.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Integer, DateTime, Enum
from sqlalchemy.orm import Mapped, mapped_column

from club_ledger.database import Base


class AccountKind(str, enum.Enum):
    """What an account represents. Serializes as its plain string value."""
    BANK = "bank"
    CASH = "cash"
    CATEGORY_BUCKET = "category_bucket"


class AccountStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Account(Base):
    __tablename__ = "accounts"

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # Display name; category buckets are matched to transactions by name
    name: Mapped[str] = mapped_column(
        String(120),
        unique=True,
        nullable=False,
        index=True,
    )

    kind: Mapped[AccountKind] = mapped_column(
        Enum(AccountKind, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        index=True,
    )

    status: Mapped[AccountStatus] = mapped_column(
        Enum(AccountStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=AccountStatus.ACTIVE,
    )

    description: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Bank details, opaque to the ledger and shown on reports
    bank_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    bank_account_number: Mapped[str | None] = mapped_column(String(40), nullable=True)
    branch_name: Mapped[str | None] = mapped_column(String(120), nullable=True)

    # Running balance in cents. Written only by the Balance Applier.
    balance_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # Balance the account was opened with (also the first ledger entry)
    initial_balance_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    # Number of ledger entries written; sequence of the newest entry
    ledger_length: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Audit timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}
