"""
Transaction model — one user-facing financial event of the club.

A Transaction is an Income (sponsorship money, membership fees, ticket
sales...) or an Expense (salaries, equipment, travel...). It drives ledger
entries on two accounts while, and only while, its status is Completed:

  - the linked account (bank or cash) the money actually moved through,
    when the payment method routes through one
  - the category bucket account whose name equals `category` at the time
    the effect is applied (remembered in `category_account_id`)

Lifecycle:
  Pending ──► Completed ──► Cancelled
     └──────────────────────► Cancelled

  A Completed record can also be edited in place (amount, category, linked
  account). Every edit of a Completed record reverses its old effect and
  re-applies the new one; see services/transaction_service.py.

Why amount_cents is always positive:
  The kind (income/expense) carries the direction, exactly like the
  credit/debit direction on ledger entries.

Optimistic concurrency:
  `version` is SQLAlchemy's version_id_col, so two concurrent edits (or an
  edit racing a delete) of the same record cannot both commit against the
  same previous state — which would reverse the same effect twice.
"""

import enum
import uuid
from datetime import date, datetime, timezone

from sqlalchemy import String, Integer, Date, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from club_ledger.database import Base


class TransactionKind(str, enum.Enum):
    INCOME = "income"
    EXPENSE = "expense"


class TransactionStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    CHECK = "check"
    ONLINE_PAYMENT = "online_payment"


class Transaction(Base):
    __tablename__ = "transactions"

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_transactions_positive_amount"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=uuid.uuid4,
    )

    # "income" or "expense"
    kind: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        index=True,
    )

    amount_cents: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    # Finance category; matched by name to a category bucket account when
    # the effect is applied
    category: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        index=True,
    )

    # "pending", "completed", or "cancelled"
    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=TransactionStatus.PENDING.value,
        index=True,
    )

    payment_method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
    )

    # Set iff the payment method routes through a club account
    linked_account_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=True,
        index=True,
    )

    # The bucket that received the applied effect; reversals go back to it
    # even after the bucket is renamed. Null unless Completed.
    category_account_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("accounts.id"),
        nullable=True,
    )

    description: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    # Payee for expenses, payer ("received from") for income
    counterparty_name: Mapped[str | None] = mapped_column(
        String(120),
        nullable=True,
    )

    # The business date of the event, as entered on the form
    transaction_date: Mapped[date] = mapped_column(
        Date,
        default=lambda: datetime.now(timezone.utc).date(),
        nullable=False,
    )

    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    __mapper_args__ = {"version_id_col": version}

    @property
    def signed_amount_cents(self) -> int:
        """Effect on an account balance: positive for income, negative for expense."""
        if self.kind == TransactionKind.INCOME.value:
            return self.amount_cents
        return -self.amount_cents
