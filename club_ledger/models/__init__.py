"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table before create_all() runs
  2. Other modules can import from club_ledger.models directly
"""

from club_ledger.models.account import Account, AccountKind, AccountStatus  # noqa: F401
from club_ledger.models.ledger_entry import LedgerEntry, EntryDirection, EntryType  # noqa: F401
from club_ledger.models.transaction import (  # noqa: F401
    Transaction,
    TransactionKind,
    TransactionStatus,
    PaymentMethod,
)
