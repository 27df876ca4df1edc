"""
Transactions router — club income and expense records.

Endpoints:
  POST   /transactions                   — Create a record
  GET    /transactions                   — List records (with filters)
  GET    /transactions/{transaction_id}  — Get a single record
  PATCH  /transactions/{transaction_id}  — Edit a record
  DELETE /transactions/{transaction_id}  — Delete a record

Every write returns the record together with the resulting balance of each
account it touched, so the dashboard can refresh without re-reading.
"""

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from club_ledger.database import get_db, get_session_factory
from club_ledger.models.transaction import TransactionKind, TransactionStatus
from club_ledger.schemas.transaction import (
    AccountBalance,
    TransactionCreateRequest,
    TransactionOutcomeResponse,
    TransactionResponse,
    TransactionUpdateRequest,
)
from club_ledger.services import transaction_service
from club_ledger.services.transaction_service import TransactionDraft, TransactionOutcome

router = APIRouter()


def _outcome_response(outcome: TransactionOutcome) -> TransactionOutcomeResponse:
    return TransactionOutcomeResponse(
        transaction=TransactionResponse.model_validate(outcome.transaction),
        balances=[
            AccountBalance(account_id=account_id, balance_cents=balance)
            for account_id, balance in outcome.balances.items()
        ],
        entries_written=len(outcome.changes),
    )


@router.post(
    "",
    response_model=TransactionOutcomeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create an income or expense record",
)
async def create_transaction(
    request: TransactionCreateRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Create a transaction record.

    A **completed** record immediately credits (income) or debits (expense)
    its linked account and its category account. If either application is
    rejected, nothing is saved.
    """
    outcome = await transaction_service.create_transaction(
        session_factory,
        TransactionDraft(**request.model_dump()),
    )
    return _outcome_response(outcome)


@router.get(
    "",
    response_model=list[TransactionResponse],
    summary="List transaction records",
)
async def list_transactions(
    txn_status: TransactionStatus | None = Query(None, alias="status", description="Filter by status"),
    kind: TransactionKind | None = Query(None, description="Filter by kind: income, expense"),
    category: str | None = Query(None),
    linked_account_id: uuid.UUID | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    """List records newest first, with optional filters and pagination."""
    return await transaction_service.get_transactions(
        db,
        status_filter=txn_status.value if txn_status else None,
        kind_filter=kind.value if kind else None,
        category=category,
        linked_account_id=linked_account_id,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{transaction_id}",
    response_model=TransactionResponse,
    summary="Get a transaction record",
)
async def get_transaction(
    transaction_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Returns 404 if the record doesn't exist."""
    return await transaction_service.get_transaction(db, transaction_id)


@router.patch(
    "/{transaction_id}",
    response_model=TransactionOutcomeResponse,
    summary="Edit a transaction record",
)
async def edit_transaction(
    transaction_id: uuid.UUID,
    request: TransactionUpdateRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Edit a record. If it was completed, its old effect is reversed; if it
    is completed afterwards, the new effect is applied.
    """
    outcome = await transaction_service.edit_transaction(
        session_factory,
        transaction_id,
        request.model_dump(exclude_unset=True),
    )
    return _outcome_response(outcome)


@router.delete(
    "/{transaction_id}",
    response_model=TransactionOutcomeResponse,
    summary="Delete a transaction record",
)
async def delete_transaction(
    transaction_id: uuid.UUID,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """Delete a record, reversing its effect first if it was completed."""
    outcome = await transaction_service.delete_transaction(session_factory, transaction_id)
    return _outcome_response(outcome)
