"""
Custom exception classes and FastAPI exception handlers.

The service layer raises domain-specific errors (like InsufficientFundsError)
without importing HTTP concepts. The handler layer then translates these
into HTTP responses with a consistent body: {"detail", "error_type", ...}.

Exception hierarchy:
    ClubLedgerError (base)
    ├── InsufficientFundsError        — would-be balance below zero on a guarded kind
    ├── AccountNotFoundError          — referenced account doesn't exist
    │   └── CategoryAccountNotFoundError — no category bucket for a category
    ├── TransactionNotFoundError      — referenced transaction record doesn't exist
    ├── AccountInactiveError          — new effect on an inactive account
    ├── ConflictError                 — optimistic retries exhausted
    ├── PartialTransferFailure        — second leg failed after the first committed
    ├── InvalidAmountError            — zero, non-integer or negative magnitude
    ├── InvalidTransferError          — transfer to the same account
    ├── InvalidTransactionError       — payment method / linked account mismatch
    ├── InvalidStatusTransitionError  — e.g. Cancelled -> Completed
    ├── DuplicateAccountNameError     — account names are unique
    └── LedgerImmutabilityError       — attempt to update or delete a ledger entry
"""

import uuid

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


# ---------------------------------------------------------------------------
# Base exception
# ---------------------------------------------------------------------------

class ClubLedgerError(Exception):
    """Base exception for all Club Ledger domain errors."""

    def __init__(self, detail: str = "An error occurred"):
        self.detail = detail
        super().__init__(self.detail)


# ---------------------------------------------------------------------------
# Domain exceptions
# ---------------------------------------------------------------------------

class InsufficientFundsError(ClubLedgerError):
    """
    Raised when applying a debit would leave a guarded account below zero.

    Attributes:
        account_id: The account that lacks sufficient funds.
        balance_cents: The balance at the time of the attempt.
        requested_cents: The magnitude of the debit that was refused.
    """

    def __init__(
        self,
        account_id: uuid.UUID,
        balance_cents: int,
        requested_cents: int,
    ):
        self.account_id = account_id
        self.balance_cents = balance_cents
        self.requested_cents = requested_cents
        super().__init__(
            f"Insufficient funds in account {account_id}: requested "
            f"{requested_cents} cents, available {balance_cents} cents"
        )


class AccountNotFoundError(ClubLedgerError):
    """Raised when a referenced account does not exist."""

    def __init__(self, account_ref: uuid.UUID | str):
        self.account_ref = account_ref
        super().__init__(f"Account {account_ref} not found")


class CategoryAccountNotFoundError(AccountNotFoundError):
    """Raised when no category bucket account exists for a category name."""

    def __init__(self, category: str):
        self.category = category
        super().__init__(category)
        self.detail = f"No category account found for category '{category}'"
        self.args = (self.detail,)


class TransactionNotFoundError(ClubLedgerError):
    """Raised when a referenced transaction record does not exist."""

    def __init__(self, transaction_id: uuid.UUID):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class AccountInactiveError(ClubLedgerError):
    """Raised when a new balance effect targets an inactive account."""

    def __init__(self, account_id: uuid.UUID):
        self.account_id = account_id
        super().__init__(f"Account {account_id} is inactive")


class ConflictError(ClubLedgerError):
    """
    Raised when an atomic unit could not commit within the retry budget.

    Attributes:
        operation: Name of the unit that kept losing version races.
        attempts: How many times it was executed before giving up.
    """

    def __init__(self, operation: str, attempts: int):
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            f"Concurrent modification: {operation} could not commit "
            f"after {attempts} attempts"
        )


class PartialTransferFailure(ClubLedgerError):
    """
    Raised when the credit leg of a transfer fails after the debit committed.

    `compensated` tells the caller whether the source account has been
    re-credited. When it is False the source is short by `amount_cents`
    and needs manual reconciliation using the fields below.
    """

    def __init__(
        self,
        transfer_id: uuid.UUID,
        amount_cents: int,
        from_account_id: uuid.UUID,
        to_account_id: uuid.UUID,
        failed_leg: str,
        compensated: bool,
        cause: Exception,
    ):
        self.transfer_id = transfer_id
        self.amount_cents = amount_cents
        self.from_account_id = from_account_id
        self.to_account_id = to_account_id
        self.failed_leg = failed_leg
        self.compensated = compensated
        self.cause = cause
        outcome = (
            "source account was re-credited"
            if compensated
            else "source account was NOT re-credited; manual reconciliation required"
        )
        super().__init__(
            f"Transfer {transfer_id} of {amount_cents} cents from {from_account_id} "
            f"to {to_account_id} failed on the {failed_leg} leg ({cause}); {outcome}"
        )


class InvalidAmountError(ClubLedgerError):
    """Raised for zero, non-integer, or otherwise unusable amounts."""

    def __init__(self, detail: str = "Amount must be a non-zero integer number of cents"):
        super().__init__(detail)


class InvalidTransferError(ClubLedgerError):
    """Raised when a transfer's accounts are not distinct."""

    def __init__(self, detail: str = "Cannot transfer to the same account"):
        super().__init__(detail)


class InvalidTransactionError(ClubLedgerError):
    """Raised when a transaction record breaks a routing rule."""

    def __init__(self, detail: str):
        super().__init__(detail)


class InvalidStatusTransitionError(ClubLedgerError):
    """Raised for a status change the lifecycle does not allow."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change transaction status from {current} to {requested}")


class DuplicateAccountNameError(ClubLedgerError):
    """Raised when an account name is already taken."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"An account named '{name}' already exists")


class LedgerImmutabilityError(ClubLedgerError):
    """Raised when code tries to modify or delete a written ledger entry."""

    def __init__(self, entry_id: uuid.UUID):
        self.entry_id = entry_id
        super().__init__(
            f"Ledger entry {entry_id} is immutable; write a reversing entry instead"
        )


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------

def register_exception_handlers(app: FastAPI) -> None:
    """
    Register custom exception handlers with the FastAPI application.

    Each handler maps a domain exception to an HTTP status code and a
    consistent JSON body. Called once during app setup in main.py.
    """

    @app.exception_handler(InsufficientFundsError)
    async def insufficient_funds_handler(
        request: Request, exc: InsufficientFundsError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "detail": exc.detail,
                "error_type": "insufficient_funds",
                "account_id": str(exc.account_id),
                "requested_cents": exc.requested_cents,
                "available_cents": exc.balance_cents,
            },
        )

    @app.exception_handler(CategoryAccountNotFoundError)
    async def category_account_not_found_handler(
        request: Request, exc: CategoryAccountNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={
                "detail": exc.detail,
                "error_type": "category_account_not_found",
                "category": exc.category,
            },
        )

    @app.exception_handler(AccountNotFoundError)
    async def account_not_found_handler(
        request: Request, exc: AccountNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": exc.detail, "error_type": "account_not_found"},
        )

    @app.exception_handler(TransactionNotFoundError)
    async def transaction_not_found_handler(
        request: Request, exc: TransactionNotFoundError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=404,
            content={"detail": exc.detail, "error_type": "transaction_not_found"},
        )

    @app.exception_handler(ConflictError)
    async def conflict_handler(request: Request, exc: ConflictError) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={
                "detail": exc.detail,
                "error_type": "conflict",
                "attempts": exc.attempts,
            },
        )

    @app.exception_handler(PartialTransferFailure)
    async def partial_transfer_handler(
        request: Request, exc: PartialTransferFailure
    ) -> JSONResponse:
        # Compensated: the transfer simply did not happen. Uncompensated:
        # money is missing from the source and an operator must step in.
        return JSONResponse(
            status_code=422 if exc.compensated else 500,
            content={
                "detail": exc.detail,
                "error_type": "partial_transfer_failure",
                "transfer_id": str(exc.transfer_id),
                "amount_cents": exc.amount_cents,
                "from_account_id": str(exc.from_account_id),
                "to_account_id": str(exc.to_account_id),
                "failed_leg": exc.failed_leg,
                "compensated": exc.compensated,
            },
        )

    @app.exception_handler(DuplicateAccountNameError)
    async def duplicate_name_handler(
        request: Request, exc: DuplicateAccountNameError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=409,
            content={"detail": exc.detail, "error_type": "duplicate_account_name"},
        )

    # Remaining business-rule violations share one shape
    unprocessable = {
        AccountInactiveError: "account_inactive",
        InvalidAmountError: "invalid_amount",
        InvalidTransferError: "invalid_transfer",
        InvalidTransactionError: "invalid_transaction",
        InvalidStatusTransitionError: "invalid_status_transition",
    }

    for exc_class, error_type in unprocessable.items():

        async def rule_violation_handler(
            request: Request, exc: ClubLedgerError, error_type: str = error_type
        ) -> JSONResponse:
            return JSONResponse(
                status_code=422,
                content={"detail": exc.detail, "error_type": error_type},
            )

        app.add_exception_handler(exc_class, rule_violation_handler)
