"""
Pydantic schemas for Transaction and Transfer endpoints.

All monetary amounts are in integer cents (e.g. 10.50 = 1050).
"""

import uuid
from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from club_ledger.models.transaction import PaymentMethod, TransactionKind, TransactionStatus
from club_ledger.schemas.account import AppliedChangeResponse


class TransactionCreateRequest(BaseModel):
    """Request body for POST /transactions."""
    kind: TransactionKind
    amount_cents: int = Field(gt=0, description="Amount in cents (must be positive)")
    category: str = Field(min_length=1, max_length=120)
    payment_method: PaymentMethod
    status: TransactionStatus = TransactionStatus.PENDING
    linked_account_id: uuid.UUID | None = Field(
        None, description="Bank or cash account the money moved through"
    )
    description: str | None = Field(None, max_length=255)
    counterparty_name: str | None = Field(
        None, max_length=120, description="Payee (expense) or payer (income)"
    )
    transaction_date: date | None = None


class TransactionUpdateRequest(BaseModel):
    """
    Request body for PATCH /transactions/{id}.

    Only fields present in the body are changed. Send
    `"linked_account_id": null` explicitly to unlink an account.
    """
    kind: TransactionKind | None = None
    amount_cents: int | None = Field(None, gt=0)
    category: str | None = Field(None, min_length=1, max_length=120)
    payment_method: PaymentMethod | None = None
    status: TransactionStatus | None = None
    linked_account_id: uuid.UUID | None = None
    description: str | None = Field(None, max_length=255)
    counterparty_name: str | None = Field(None, max_length=120)
    transaction_date: date | None = None

    @model_validator(mode="after")
    def required_fields_not_null(self):
        """Columns that can't be NULL may be omitted but not cleared."""
        for name in ("kind", "amount_cents", "category", "payment_method", "status", "transaction_date"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class TransactionResponse(BaseModel):
    """Public representation of a transaction record."""
    id: uuid.UUID
    kind: str
    amount_cents: int
    category: str
    status: str
    payment_method: str
    linked_account_id: uuid.UUID | None
    category_account_id: uuid.UUID | None
    description: str | None
    counterparty_name: str | None
    transaction_date: date
    version: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AccountBalance(BaseModel):
    account_id: uuid.UUID
    balance_cents: int


class TransactionOutcomeResponse(BaseModel):
    """
    Response for create/edit/delete: the record plus the resulting balance
    of every account the operation touched.
    """
    transaction: TransactionResponse
    balances: list[AccountBalance]
    entries_written: int


class TransferRequest(BaseModel):
    """Request body for POST /transfers."""
    from_account_id: uuid.UUID
    to_account_id: uuid.UUID
    amount_cents: int = Field(gt=0, description="Amount in cents (must be positive)")
    description: str | None = Field(None, max_length=200)

    @model_validator(mode="after")
    def accounts_must_differ(self):
        """Cannot transfer money to the same account."""
        if self.from_account_id == self.to_account_id:
            raise ValueError("Cannot transfer to the same account")
        return self


class TransferResponse(BaseModel):
    """Response body for a successful transfer."""
    transfer_id: uuid.UUID
    amount_cents: int
    from_account_id: uuid.UUID
    to_account_id: uuid.UUID
    debit: AppliedChangeResponse
    credit: AppliedChangeResponse
