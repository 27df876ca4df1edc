"""
Accounts router — club account management and ledger reads.

Endpoints:
  POST   /accounts                          — Open an account (bank, cash, category bucket)
  GET    /accounts                          — List accounts (filter by kind/status)
  GET    /accounts/integrity                — Cached vs ledger balance for every account
  GET    /accounts/{account_id}             — Get account details
  PATCH  /accounts/{account_id}             — Edit name, status, description, bank details
  GET    /accounts/{account_id}/balance     — Cached vs ledger balance
  GET    /accounts/{account_id}/ledger      — Ledger entries in sequence order
  POST   /accounts/{account_id}/entries     — Manual credit or debit
  POST   /accounts/{account_id}/adjustments — Adjust to a target balance

Balances are never edited directly: the write endpoints here go through
the Balance Applier and leave a ledger entry behind.

/integrity is declared before /{account_id} so it isn't parsed as an ID.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from club_ledger.database import get_db, get_session_factory
from club_ledger.models.account import AccountKind, AccountStatus
from club_ledger.schemas.account import (
    AccountCreateRequest,
    AccountResponse,
    AccountUpdateRequest,
    AppliedChangeResponse,
    BalanceAdjustmentRequest,
    BalanceResponse,
    LedgerEntryResponse,
    ManualEntryRequest,
)
from club_ledger.services import account_service

router = APIRouter()


@router.post(
    "",
    response_model=AccountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Open a new account",
)
async def create_account(
    request: AccountCreateRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Open a bank, cash, or category bucket account.

    A non-zero **initial_balance_cents** becomes the first ledger entry.
    Bank and cash accounts cannot be opened with a negative balance.
    """
    return await account_service.create_account(
        session_factory,
        name=request.name,
        kind=request.kind,
        initial_balance_cents=request.initial_balance_cents,
        status=request.status,
        description=request.description,
        bank_name=request.bank_name,
        bank_account_number=request.bank_account_number,
        branch_name=request.branch_name,
    )


@router.get(
    "",
    response_model=list[AccountResponse],
    summary="List accounts",
)
async def list_accounts(
    kind: AccountKind | None = Query(None, description="Filter by kind"),
    account_status: AccountStatus | None = Query(None, alias="status", description="Filter by status"),
    db: AsyncSession = Depends(get_db),
):
    """List accounts ordered by name."""
    return await account_service.get_accounts(db, kind=kind, status=account_status)


@router.get(
    "/integrity",
    response_model=list[BalanceResponse],
    summary="Check every account's balance against its ledger",
)
async def check_integrity(db: AsyncSession = Depends(get_db)):
    """Cached vs recomputed balance for every account."""
    return await account_service.check_ledger_integrity(db)


@router.get(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Get account details",
)
async def get_account(
    account_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Returns 404 if the account doesn't exist."""
    return await account_service.get_account(db, account_id)


@router.patch(
    "/{account_id}",
    response_model=AccountResponse,
    summary="Edit account details",
)
async def update_account(
    account_id: uuid.UUID,
    request: AccountUpdateRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Edit an account's name, status, description, or bank details.

    To change a balance, post an entry or an adjustment instead.
    """
    return await account_service.update_account(
        session_factory,
        account_id,
        request.model_dump(exclude_unset=True),
    )


@router.get(
    "/{account_id}/balance",
    response_model=BalanceResponse,
    summary="Check account balance",
)
async def get_balance(
    account_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """
    Get the balance — both cached and recomputed from the ledger.

    The `match` field is False if the two disagree, which would indicate
    a data integrity issue that needs investigation.
    """
    return await account_service.get_balance(db, account_id)


@router.get(
    "/{account_id}/ledger",
    response_model=list[LedgerEntryResponse],
    summary="List ledger entries",
)
async def get_ledger(
    account_id: uuid.UUID,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """Ledger entries oldest first, with pagination."""
    return await account_service.get_ledger(db, account_id, limit=limit, offset=offset)


@router.post(
    "/{account_id}/entries",
    response_model=AppliedChangeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post a manual credit or debit",
)
async def post_manual_entry(
    account_id: uuid.UUID,
    request: ManualEntryRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Credit or debit one account directly (bank fees, interest, cash counts).

    Debits that would overdraw a bank or cash account are rejected (422).
    """
    change = await account_service.post_manual_entry(
        session_factory,
        account_id,
        direction=request.direction,
        amount_cents=request.amount_cents,
        description=request.description,
    )
    return change._asdict()


@router.post(
    "/{account_id}/adjustments",
    response_model=AccountResponse,
    summary="Adjust an account to a target balance",
)
async def adjust_balance(
    account_id: uuid.UUID,
    request: BalanceAdjustmentRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Writes one adjustment entry for the difference (none if already there)."""
    return await account_service.adjust_balance(
        session_factory,
        account_id,
        target_balance_cents=request.target_balance_cents,
        description=request.description,
    )
