"""
Tests for run_atomic (services/atomic.py).

Version conflicts are simulated by raising StaleDataError from the unit of
work, which is exactly what SQLAlchemy raises when a versioned UPDATE
matches no row. Real races are covered in test_concurrency.py.
"""

import pytest
from sqlalchemy.orm.exc import StaleDataError

from club_ledger.config import settings
from club_ledger.exceptions import ConflictError, InsufficientFundsError
from club_ledger.models.account import Account, AccountKind
from club_ledger.services import account_service
from club_ledger.services.atomic import run_atomic


class TestRunAtomic:

    async def test_returns_work_result(self, session_factory):
        async def work(session):
            return "done"

        assert await run_atomic(session_factory, work, operation="noop") == "done"

    async def test_retries_then_succeeds(self, session_factory, fast_retries):
        """Two lost races followed by a win: three attempts, one result."""
        attempts = []

        async def work(session):
            attempts.append(session)
            if len(attempts) < 3:
                raise StaleDataError("simulated conflict")
            return len(attempts)

        assert await run_atomic(session_factory, work, operation="flaky") == 3
        # Every attempt gets a fresh session
        assert len({id(s) for s in attempts}) == 3

    async def test_conflict_after_retry_budget(self, session_factory, fast_retries):
        """CONFLICT_MAX_RETRIES retries after the first attempt, then ConflictError."""
        attempts = 0

        async def work(session):
            nonlocal attempts
            attempts += 1
            raise StaleDataError("simulated conflict")

        with pytest.raises(ConflictError) as exc_info:
            await run_atomic(session_factory, work, operation="always_conflicts")

        assert attempts == settings.CONFLICT_MAX_RETRIES + 1
        assert exc_info.value.attempts == attempts
        assert exc_info.value.operation == "always_conflicts"

    async def test_retry_budget_is_configurable(self, session_factory, fast_retries, monkeypatch):
        monkeypatch.setattr(settings, "CONFLICT_MAX_RETRIES", 0)
        attempts = 0

        async def work(session):
            nonlocal attempts
            attempts += 1
            raise StaleDataError("simulated conflict")

        with pytest.raises(ConflictError):
            await run_atomic(session_factory, work, operation="no_retries")

        assert attempts == 1

    async def test_domain_errors_are_not_retried(self, session_factory, fast_retries):
        attempts = 0

        async def work(session):
            nonlocal attempts
            attempts += 1
            raise InsufficientFundsError(account_id=None, balance_cents=0, requested_cents=1)

        with pytest.raises(InsufficientFundsError):
            await run_atomic(session_factory, work, operation="refused")

        assert attempts == 1

    async def test_failed_attempts_are_rolled_back(self, session_factory, fast_retries, make_account):
        """Writes staged by a conflicting attempt never reach the database."""
        bank = await make_account("Main Bank", AccountKind.BANK, 1000)
        attempts = 0

        async def work(session):
            nonlocal attempts
            attempts += 1
            account = await session.get(Account, bank.id)
            account.description = f"attempt {attempts}"
            await session.flush()
            if attempts == 1:
                raise StaleDataError("simulated conflict")
            return account.description

        assert await run_atomic(session_factory, work, operation="rollback_check") == "attempt 2"

        async with session_factory() as session:
            account = await session.get(Account, bank.id)
            assert account.description == "attempt 2"
            assert account.balance_cents == 1000

    async def test_conflict_maps_to_409(self, client, session_factory, fast_retries, monkeypatch):
        """An exhausted unit surfaces to HTTP callers as a 409 conflict."""
        async def always_stale(session, *args, **kwargs):
            raise StaleDataError("simulated conflict")

        monkeypatch.setattr(account_service, "_ensure_name_available", always_stale)

        response = await client.post("/accounts", json={"name": "Main Bank", "kind": "bank"})

        assert response.status_code == 409
        assert response.json()["error_type"] == "conflict"
        assert response.json()["attempts"] == settings.CONFLICT_MAX_RETRIES + 1
