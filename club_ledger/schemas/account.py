"""
Pydantic schemas for Account endpoints.

These schemas define the API contract for opening, editing, and reading
accounts, for their ledgers, and for direct balance operations. All
monetary amounts are expressed in integer cents.
"""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from club_ledger.models.account import AccountKind, AccountStatus
from club_ledger.models.ledger_entry import EntryDirection


class AccountCreateRequest(BaseModel):
    """Request body for POST /accounts."""
    name: str = Field(min_length=1, max_length=120)
    kind: AccountKind
    initial_balance_cents: int = Field(
        default=0,
        description="Opening balance in cents; recorded as the first ledger entry",
    )
    status: AccountStatus = AccountStatus.ACTIVE
    description: str | None = Field(None, max_length=255)
    bank_name: str | None = Field(None, max_length=120)
    bank_account_number: str | None = Field(None, max_length=40)
    branch_name: str | None = Field(None, max_length=120)


class AccountUpdateRequest(BaseModel):
    """Request body for PATCH /accounts/{id}. Balances cannot be edited here."""
    name: str | None = Field(None, min_length=1, max_length=120)
    status: AccountStatus | None = None
    description: str | None = Field(None, max_length=255)
    bank_name: str | None = Field(None, max_length=120)
    bank_account_number: str | None = Field(None, max_length=40)
    branch_name: str | None = Field(None, max_length=120)


class AccountResponse(BaseModel):
    """Public representation of an account."""
    id: uuid.UUID
    name: str
    kind: AccountKind
    status: AccountStatus
    description: str | None
    bank_name: str | None
    bank_account_number: str | None
    branch_name: str | None
    balance_cents: int
    initial_balance_cents: int
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class BalanceResponse(BaseModel):
    """
    Balance check response — cached balance next to the ledger sum.

    `match` is False only if something wrote to the account outside the
    Balance Applier.
    """
    account_id: uuid.UUID
    balance_cents: int
    computed_balance_cents: int
    entry_count: int
    match: bool


class LedgerEntryResponse(BaseModel):
    """One ledger entry, as read by reports."""
    id: uuid.UUID
    account_id: uuid.UUID
    sequence: int
    entry_type: str
    direction: str
    amount_cents: int
    balance_after_cents: int
    description: str | None
    source_transaction_id: uuid.UUID | None
    counterparty_account_id: uuid.UUID | None
    transfer_id: uuid.UUID | None
    created_at: datetime

    model_config = {"from_attributes": True}


class ManualEntryRequest(BaseModel):
    """Request body for POST /accounts/{id}/entries."""
    direction: EntryDirection
    amount_cents: int = Field(gt=0, description="Amount in cents (must be positive)")
    description: str | None = Field(None, max_length=255)


class BalanceAdjustmentRequest(BaseModel):
    """Request body for POST /accounts/{id}/adjustments."""
    target_balance_cents: int
    description: str | None = Field(None, max_length=255)


class AppliedChangeResponse(BaseModel):
    """The result of one Balance Applier call."""
    account_id: uuid.UUID
    new_balance_cents: int
    entry_id: uuid.UUID
