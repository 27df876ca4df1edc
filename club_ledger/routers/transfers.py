"""
Transfers router — money movement between club accounts.

Endpoints:
  POST /transfers — Transfer money from one account to another

A transfer debits the source and then credits the destination, each leg
writing a ledger entry that names the other account and the shared
transfer_id. If the credit fails after the debit succeeded, the source is
re-credited and the response is a partial_transfer_failure error
describing what happened (see services/transfer_service.py).
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from club_ledger.database import get_session_factory
from club_ledger.schemas.account import AppliedChangeResponse
from club_ledger.schemas.transaction import TransferRequest, TransferResponse
from club_ledger.services import transfer_service

router = APIRouter()


@router.post(
    "",
    response_model=TransferResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Transfer money between accounts",
)
async def create_transfer(
    request: TransferRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
):
    """
    Transfer money from one account to another.

    - **from_account_id**: Debited first; bank and cash accounts cannot go negative
    - **to_account_id**: Credited second
    - **amount_cents**: Positive integer in cents (e.g. 50.00 = 5000)
    - Cannot transfer to the same account
    """
    result = await transfer_service.transfer_between_accounts(
        session_factory,
        from_account_id=request.from_account_id,
        to_account_id=request.to_account_id,
        amount_cents=request.amount_cents,
        description=request.description,
    )

    return TransferResponse(
        transfer_id=result.transfer_id,
        amount_cents=result.amount_cents,
        from_account_id=result.from_account_id,
        to_account_id=result.to_account_id,
        debit=AppliedChangeResponse(**result.debit._asdict()),
        credit=AppliedChangeResponse(**result.credit._asdict()),
    )
