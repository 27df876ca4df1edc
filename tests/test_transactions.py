"""
Tests for the transaction lifecycle (create / edit / delete).

These tests verify:
  - A Completed record moves both its linked account and its category bucket
  - Pending and Cancelled records move nothing
  - Edits reverse the old effect and apply the new one (net change only)
  - The balance rule judges an edit by the balance it commits
  - Reversals follow the bucket that received the effect, even if renamed
  - Deletes reverse the effect of a Completed record
  - A rejected application on either account leaves record and ledgers untouched
  - Status transitions and payment-method routing rules
  - The HTTP endpoints and their error bodies
"""

import uuid

import pytest
from sqlalchemy import select, func

from club_ledger.exceptions import (
    AccountInactiveError,
    CategoryAccountNotFoundError,
    InsufficientFundsError,
    InvalidStatusTransitionError,
    InvalidTransactionError,
    TransactionNotFoundError,
)
from club_ledger.models.account import Account, AccountKind, AccountStatus
from club_ledger.models.ledger_entry import EntryType, LedgerEntry
from club_ledger.models.transaction import (
    PaymentMethod,
    Transaction,
    TransactionKind,
    TransactionStatus,
)
from club_ledger.services import account_service, transaction_service
from club_ledger.services.transaction_service import TransactionDraft


async def balances(session_factory, *accounts):
    async with session_factory() as session:
        result = []
        for account in accounts:
            result.append((await session.get(Account, account.id)).balance_cents)
        return result


async def entry_count(session_factory):
    async with session_factory() as session:
        return (await session.execute(select(func.count(LedgerEntry.id)))).scalar()


def income(account, amount_cents, category="Sponsorship", status=TransactionStatus.COMPLETED):
    return TransactionDraft(
        kind=TransactionKind.INCOME,
        amount_cents=amount_cents,
        category=category,
        payment_method=PaymentMethod.BANK_TRANSFER,
        status=status,
        linked_account_id=account.id,
    )


def expense(account, amount_cents, category="Equipment", status=TransactionStatus.COMPLETED):
    return TransactionDraft(
        kind=TransactionKind.EXPENSE,
        amount_cents=amount_cents,
        category=category,
        payment_method=PaymentMethod.BANK_TRANSFER,
        status=status,
        linked_account_id=account.id,
    )


class TestCreateTransaction:

    async def test_completed_income_credits_both_accounts(self, session_factory, make_account):
        """Scenario: completed income of 500 into a bank account at zero."""
        bank = await make_account("Main Bank", AccountKind.BANK)
        bucket = await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)

        outcome = await transaction_service.create_transaction(session_factory, income(bank, 500))

        assert await balances(session_factory, bank, bucket) == [500, 500]
        assert outcome.balances == {bank.id: 500, bucket.id: 500}
        assert len(outcome.changes) == 2
        assert outcome.transaction.status == TransactionStatus.COMPLETED.value

    async def test_completed_expense_debits_both_accounts(self, session_factory, make_account):
        bank = await make_account("Main Bank", AccountKind.BANK, 25000)
        bucket = await make_account("Equipment", AccountKind.CATEGORY_BUCKET)

        await transaction_service.create_transaction(session_factory, expense(bank, 20000))

        assert await balances(session_factory, bank, bucket) == [5000, -20000]

    async def test_entries_reference_the_record(self, session_factory, make_account):
        bank = await make_account("Main Bank", AccountKind.BANK)
        await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)

        outcome = await transaction_service.create_transaction(session_factory, income(bank, 500))

        async with session_factory() as session:
            result = await session.execute(
                select(LedgerEntry).where(
                    LedgerEntry.source_transaction_id == outcome.transaction.id
                )
            )
            entries = list(result.scalars().all())
        assert len(entries) == 2
        assert {e.entry_type for e in entries} == {EntryType.POSTING.value}

    @pytest.mark.parametrize("status", [TransactionStatus.PENDING, TransactionStatus.CANCELLED])
    async def test_non_completed_moves_nothing(self, session_factory, make_account, status):
        bank = await make_account("Main Bank", AccountKind.BANK)
        bucket = await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        before = await entry_count(session_factory)

        outcome = await transaction_service.create_transaction(
            session_factory, income(bank, 500, status=status)
        )

        assert outcome.changes == []
        assert await balances(session_factory, bank, bucket) == [0, 0]
        assert await entry_count(session_factory) == before

    async def test_unlinked_record_moves_only_bucket(self, session_factory, make_account):
        """Credit card payments are not routed through a club account."""
        bucket = await make_account("Travel", AccountKind.CATEGORY_BUCKET)

        outcome = await transaction_service.create_transaction(
            session_factory,
            TransactionDraft(
                kind=TransactionKind.EXPENSE,
                amount_cents=7500,
                category="Travel",
                payment_method=PaymentMethod.CREDIT_CARD,
                status=TransactionStatus.COMPLETED,
            ),
        )

        assert outcome.balances == {bucket.id: -7500}

    async def test_insufficient_funds_persists_nothing(self, session_factory, make_account):
        bank = await make_account("Main Bank", AccountKind.BANK, 100)
        bucket = await make_account("Equipment", AccountKind.CATEGORY_BUCKET)
        before = await entry_count(session_factory)

        with pytest.raises(InsufficientFundsError):
            await transaction_service.create_transaction(session_factory, expense(bank, 500))

        assert await balances(session_factory, bank, bucket) == [100, 0]
        assert await entry_count(session_factory) == before
        async with session_factory() as session:
            assert (await session.execute(select(func.count(Transaction.id)))).scalar() == 0

    async def test_inactive_category_bucket_rolls_back_linked_account(self, session_factory, make_account):
        """The linked account is applied first; its change must not survive."""
        bank = await make_account("Main Bank", AccountKind.BANK)
        await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET, status=AccountStatus.INACTIVE)
        before = await entry_count(session_factory)

        with pytest.raises(AccountInactiveError):
            await transaction_service.create_transaction(session_factory, income(bank, 500))

        assert await balances(session_factory, bank) == [0]
        assert await entry_count(session_factory) == before

    async def test_missing_category_bucket_rolls_back_linked_account(self, session_factory, make_account):
        """A missing bucket aborts the whole record."""
        bank = await make_account("Main Bank", AccountKind.BANK)
        before = await entry_count(session_factory)

        with pytest.raises(CategoryAccountNotFoundError) as exc_info:
            await transaction_service.create_transaction(
                session_factory, income(bank, 500, category="Nonexistent")
            )

        assert exc_info.value.category == "Nonexistent"
        assert await balances(session_factory, bank) == [0]
        assert await entry_count(session_factory) == before

    async def test_inactive_linked_account_rejected(self, session_factory, make_account):
        bank = await make_account("Old Bank", AccountKind.BANK, status=AccountStatus.INACTIVE)
        await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)

        with pytest.raises(AccountInactiveError):
            await transaction_service.create_transaction(session_factory, income(bank, 500))


class TestRoutingRules:

    async def test_routed_method_requires_linked_account(self, session_factory, make_account):
        await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)

        with pytest.raises(InvalidTransactionError):
            await transaction_service.create_transaction(
                session_factory,
                TransactionDraft(
                    kind=TransactionKind.INCOME,
                    amount_cents=500,
                    category="Sponsorship",
                    payment_method=PaymentMethod.CASH,
                ),
            )

    async def test_credit_card_cannot_be_linked(self, session_factory, make_account):
        bank = await make_account("Main Bank", AccountKind.BANK)

        draft = expense(bank, 500)
        draft.payment_method = PaymentMethod.CREDIT_CARD
        with pytest.raises(InvalidTransactionError):
            await transaction_service.create_transaction(session_factory, draft)

    async def test_cannot_link_category_bucket(self, session_factory, make_account):
        bucket = await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)

        with pytest.raises(InvalidTransactionError):
            await transaction_service.create_transaction(session_factory, income(bucket, 500))


class TestEditTransaction:

    async def test_amount_edit_applies_net_change(self, session_factory, make_account):
        """Scenario: edit a completed income from 500 to 300."""
        bank = await make_account("Main Bank", AccountKind.BANK)
        bucket = await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, income(bank, 500))

        outcome = await transaction_service.edit_transaction(
            session_factory, created.transaction.id, {"amount_cents": 300}
        )

        assert await balances(session_factory, bank, bucket) == [300, 300]
        assert outcome.balances == {bank.id: 300, bucket.id: 300}
        # Two reversals then two postings
        assert len(outcome.changes) == 4

    async def test_edit_leaves_audit_trail(self, session_factory, make_account):
        """Editing 100 -> 150 leaves apply(+100), apply(-100), apply(+150)."""
        bank = await make_account("Main Bank", AccountKind.BANK)
        await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, income(bank, 100))

        await transaction_service.edit_transaction(
            session_factory, created.transaction.id, {"amount_cents": 150}
        )

        async with session_factory() as session:
            result = await session.execute(
                select(LedgerEntry)
                .where(LedgerEntry.account_id == bank.id)
                .order_by(LedgerEntry.sequence)
            )
            entries = list(result.scalars().all())
        assert [e.signed_amount_cents for e in entries] == [100, -100, 150]
        assert [e.entry_type for e in entries] == ["posting", "reversal", "posting"]

    async def test_expense_edit_nets_new_amount(self, session_factory, make_account):
        """Expense 100 -> 150: both accounts end at -150 net, never -250 or -50."""
        bank = await make_account("Main Bank", AccountKind.BANK, 1000)
        bucket = await make_account("Equipment", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, expense(bank, 100))

        await transaction_service.edit_transaction(
            session_factory, created.transaction.id, {"amount_cents": 150}
        )

        assert await balances(session_factory, bank, bucket) == [1000 - 150, -150]

    async def test_pending_to_completed_applies(self, session_factory, make_account):
        bank = await make_account("Main Bank", AccountKind.BANK)
        bucket = await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(
            session_factory, income(bank, 500, status=TransactionStatus.PENDING)
        )

        await transaction_service.edit_transaction(
            session_factory, created.transaction.id, {"status": TransactionStatus.COMPLETED}
        )

        assert await balances(session_factory, bank, bucket) == [500, 500]

    async def test_completed_to_cancelled_reverses(self, session_factory, make_account):
        bank = await make_account("Main Bank", AccountKind.BANK)
        bucket = await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, income(bank, 500))

        outcome = await transaction_service.edit_transaction(
            session_factory, created.transaction.id, {"status": "cancelled"}
        )

        assert outcome.transaction.status == TransactionStatus.CANCELLED.value
        assert await balances(session_factory, bank, bucket) == [0, 0]

    async def test_relinking_moves_money_between_accounts(self, session_factory, make_account):
        bank = await make_account("Main Bank", AccountKind.BANK)
        cash = await make_account("Cash Box", AccountKind.CASH)
        bucket = await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, income(bank, 500))

        await transaction_service.edit_transaction(
            session_factory,
            created.transaction.id,
            {"linked_account_id": cash.id, "payment_method": PaymentMethod.CASH},
        )

        assert await balances(session_factory, bank, cash, bucket) == [0, 500, 500]

    async def test_recategorising_moves_bucket_effect(self, session_factory, make_account):
        bank = await make_account("Main Bank", AccountKind.BANK)
        sponsorship = await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        donations = await make_account("Donations", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, income(bank, 500))

        await transaction_service.edit_transaction(
            session_factory, created.transaction.id, {"category": "Donations"}
        )

        assert await balances(session_factory, bank, sponsorship, donations) == [500, 0, 500]

    async def test_failed_edit_leaves_everything_untouched(self, session_factory, make_account):
        """Raising an expense beyond the balance: no reversal survives either."""
        bank = await make_account("Main Bank", AccountKind.BANK, 25000)
        bucket = await make_account("Equipment", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, expense(bank, 20000))
        before = await entry_count(session_factory)

        with pytest.raises(InsufficientFundsError):
            await transaction_service.edit_transaction(
                session_factory, created.transaction.id, {"amount_cents": 30000}
            )

        assert await balances(session_factory, bank, bucket) == [5000, -20000]
        assert await entry_count(session_factory) == before
        async with session_factory() as session:
            txn = await session.get(Transaction, created.transaction.id)
            assert txn.amount_cents == 20000

    async def test_raising_partly_spent_income_is_allowed(self, session_factory, make_account):
        """Income 500 with 400 already spent: raising it to 600 nets +100."""
        bank = await make_account("Main Bank", AccountKind.BANK)
        bucket = await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        await make_account("Equipment", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, income(bank, 500))
        await transaction_service.create_transaction(session_factory, expense(bank, 400))

        outcome = await transaction_service.edit_transaction(
            session_factory, created.transaction.id, {"amount_cents": 600}
        )

        assert await balances(session_factory, bank, bucket) == [200, 600]
        assert outcome.balances == {bank.id: 200, bucket.id: 600}

    async def test_description_edit_of_spent_income_is_allowed(self, session_factory, make_account):
        bank = await make_account("Main Bank", AccountKind.BANK)
        await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        await make_account("Equipment", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, income(bank, 500))
        await transaction_service.create_transaction(session_factory, expense(bank, 450))

        outcome = await transaction_service.edit_transaction(
            session_factory, created.transaction.id, {"description": "Kit sponsor, season 2"}
        )

        assert outcome.transaction.description == "Kit sponsor, season 2"
        assert await balances(session_factory, bank) == [50]

    async def test_relinking_spent_income_is_refused(self, session_factory, make_account):
        """The old account only sees the reversal, and it would end below zero."""
        bank = await make_account("Main Bank", AccountKind.BANK)
        cash = await make_account("Cash Box", AccountKind.CASH)
        await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        await make_account("Equipment", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, income(bank, 500))
        await transaction_service.create_transaction(session_factory, expense(bank, 400))
        before = await entry_count(session_factory)

        with pytest.raises(InsufficientFundsError) as exc_info:
            await transaction_service.edit_transaction(
                session_factory,
                created.transaction.id,
                {"linked_account_id": cash.id, "payment_method": PaymentMethod.CASH},
            )

        assert exc_info.value.account_id == bank.id
        assert await balances(session_factory, bank, cash) == [100, 0]
        assert await entry_count(session_factory) == before

    async def test_edit_to_missing_category_rolls_back(self, session_factory, make_account):
        bank = await make_account("Main Bank", AccountKind.BANK)
        bucket = await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, income(bank, 500))

        with pytest.raises(CategoryAccountNotFoundError):
            await transaction_service.edit_transaction(
                session_factory, created.transaction.id, {"category": "Nowhere"}
            )

        assert await balances(session_factory, bank, bucket) == [500, 500]

    @pytest.mark.parametrize(
        "start, target",
        [
            (TransactionStatus.CANCELLED, TransactionStatus.COMPLETED),
            (TransactionStatus.CANCELLED, TransactionStatus.PENDING),
            (TransactionStatus.COMPLETED, TransactionStatus.PENDING),
        ],
    )
    async def test_disallowed_transitions(self, session_factory, make_account, start, target):
        bank = await make_account("Main Bank", AccountKind.BANK)
        await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(
            session_factory, income(bank, 500, status=start)
        )

        with pytest.raises(InvalidStatusTransitionError):
            await transaction_service.edit_transaction(
                session_factory, created.transaction.id, {"status": target}
            )

    async def test_edit_unknown_record(self, session_factory):
        with pytest.raises(TransactionNotFoundError):
            await transaction_service.edit_transaction(
                session_factory, uuid.uuid4(), {"amount_cents": 100}
            )


class TestDeleteTransaction:

    async def test_delete_completed_expense_restores_balance(self, session_factory, make_account):
        """Scenario: expense of 200 took the account from 250 to 50."""
        bank = await make_account("Main Bank", AccountKind.BANK, 250)
        bucket = await make_account("Equipment", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, expense(bank, 200))
        assert await balances(session_factory, bank) == [50]

        outcome = await transaction_service.delete_transaction(session_factory, created.transaction.id)

        assert await balances(session_factory, bank, bucket) == [250, 0]
        assert outcome.balances == {bank.id: 250, bucket.id: 0}
        async with session_factory() as session:
            assert await session.get(Transaction, created.transaction.id) is None

    async def test_delete_pending_writes_no_entries(self, session_factory, make_account):
        bank = await make_account("Main Bank", AccountKind.BANK)
        await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(
            session_factory, income(bank, 500, status=TransactionStatus.PENDING)
        )
        before = await entry_count(session_factory)

        outcome = await transaction_service.delete_transaction(session_factory, created.transaction.id)

        assert outcome.changes == []
        assert await entry_count(session_factory) == before

    async def test_delete_spent_income_is_refused(self, session_factory, make_account):
        """Reversing an income whose money was spent would overdraw the bank."""
        bank = await make_account("Main Bank", AccountKind.BANK)
        await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        await make_account("Equipment", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, income(bank, 500))
        await transaction_service.create_transaction(session_factory, expense(bank, 400))

        with pytest.raises(InsufficientFundsError):
            await transaction_service.delete_transaction(session_factory, created.transaction.id)

        async with session_factory() as session:
            assert await session.get(Transaction, created.transaction.id) is not None
        assert await balances(session_factory, bank) == [100]

    async def test_delete_after_bucket_rename_reverses_original_bucket(self, session_factory, make_account):
        """A new bucket taking the old name never receives the reversal."""
        bank = await make_account("Main Bank", AccountKind.BANK)
        old_bucket = await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, income(bank, 500))
        assert created.transaction.category_account_id == old_bucket.id

        await account_service.update_account(session_factory, old_bucket.id, {"name": "Old Sponsorship"})
        new_bucket = await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)

        await transaction_service.delete_transaction(session_factory, created.transaction.id)

        assert await balances(session_factory, bank, old_bucket, new_bucket) == [0, 0, 0]

    async def test_cancel_after_bucket_rename(self, session_factory, make_account):
        """No bucket carries the category name any more; the cancel still reverses."""
        bank = await make_account("Main Bank", AccountKind.BANK)
        bucket = await make_account("Sponsorship", AccountKind.CATEGORY_BUCKET)
        created = await transaction_service.create_transaction(session_factory, income(bank, 500))
        await account_service.update_account(session_factory, bucket.id, {"name": "Sponsors"})

        outcome = await transaction_service.edit_transaction(
            session_factory, created.transaction.id, {"status": TransactionStatus.CANCELLED}
        )

        assert await balances(session_factory, bank, bucket) == [0, 0]
        assert outcome.transaction.category_account_id is None

    async def test_delete_unknown_record(self, session_factory):
        with pytest.raises(TransactionNotFoundError):
            await transaction_service.delete_transaction(session_factory, uuid.uuid4())


class TestTransactionEndpoints:

    async def _setup(self, client):
        bank = await client.post(
            "/accounts",
            json={"name": "Main Bank", "kind": "bank", "initial_balance_cents": 10000},
        )
        bucket = await client.post("/accounts", json={"name": "Equipment", "kind": "category_bucket"})
        return bank.json()["id"], bucket.json()["id"]

    async def test_create_returns_balances(self, client):
        bank_id, bucket_id = await self._setup(client)

        response = await client.post(
            "/transactions",
            json={
                "kind": "expense",
                "amount_cents": 2500,
                "category": "Equipment",
                "payment_method": "debit_card",
                "status": "completed",
                "linked_account_id": bank_id,
                "counterparty_name": "Sports Shop",
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["transaction"]["amount_cents"] == 2500
        assert data["transaction"]["counterparty_name"] == "Sports Shop"
        assert data["entries_written"] == 2
        assert {b["account_id"]: b["balance_cents"] for b in data["balances"]} == {
            bank_id: 7500,
            bucket_id: -2500,
        }

    async def test_create_insufficient_funds_422(self, client):
        bank_id, _ = await self._setup(client)

        response = await client.post(
            "/transactions",
            json={
                "kind": "expense",
                "amount_cents": 20000,
                "category": "Equipment",
                "payment_method": "bank_transfer",
                "status": "completed",
                "linked_account_id": bank_id,
            },
        )

        assert response.status_code == 422
        data = response.json()
        assert data["error_type"] == "insufficient_funds"
        assert data["available_cents"] == 10000
        assert data["requested_cents"] == 20000

    async def test_missing_category_404(self, client):
        bank_id, _ = await self._setup(client)

        response = await client.post(
            "/transactions",
            json={
                "kind": "income",
                "amount_cents": 500,
                "category": "Raffle",
                "payment_method": "cash",
                "status": "completed",
                "linked_account_id": bank_id,
            },
        )

        assert response.status_code == 404
        assert response.json()["error_type"] == "category_account_not_found"
        assert response.json()["category"] == "Raffle"

    async def test_zero_amount_rejected(self, client):
        response = await client.post(
            "/transactions",
            json={
                "kind": "income",
                "amount_cents": 0,
                "category": "Equipment",
                "payment_method": "credit_card",
            },
        )
        assert response.status_code == 422

    async def test_edit_and_delete(self, client):
        bank_id, bucket_id = await self._setup(client)
        created = await client.post(
            "/transactions",
            json={
                "kind": "expense",
                "amount_cents": 2500,
                "category": "Equipment",
                "payment_method": "bank_transfer",
                "status": "completed",
                "linked_account_id": bank_id,
            },
        )
        txn_id = created.json()["transaction"]["id"]

        edited = await client.patch(f"/transactions/{txn_id}", json={"amount_cents": 1000})
        assert edited.status_code == 200
        assert edited.json()["transaction"]["amount_cents"] == 1000
        assert edited.json()["entries_written"] == 4

        bank = await client.get(f"/accounts/{bank_id}")
        assert bank.json()["balance_cents"] == 9000

        deleted = await client.delete(f"/transactions/{txn_id}")
        assert deleted.status_code == 200
        assert {b["account_id"]: b["balance_cents"] for b in deleted.json()["balances"]} == {
            bank_id: 10000,
            bucket_id: 0,
        }

        missing = await client.get(f"/transactions/{txn_id}")
        assert missing.status_code == 404
        assert missing.json()["error_type"] == "transaction_not_found"

    async def test_invalid_transition_422(self, client):
        bank_id, _ = await self._setup(client)
        created = await client.post(
            "/transactions",
            json={
                "kind": "expense",
                "amount_cents": 100,
                "category": "Equipment",
                "payment_method": "bank_transfer",
                "status": "cancelled",
                "linked_account_id": bank_id,
            },
        )
        txn_id = created.json()["transaction"]["id"]

        response = await client.patch(f"/transactions/{txn_id}", json={"status": "completed"})

        assert response.status_code == 422
        assert response.json()["error_type"] == "invalid_status_transition"

    async def test_explicit_null_amount_rejected(self, client):
        bank_id, _ = await self._setup(client)
        created = await client.post(
            "/transactions",
            json={
                "kind": "expense",
                "amount_cents": 100,
                "category": "Equipment",
                "payment_method": "bank_transfer",
                "linked_account_id": bank_id,
            },
        )
        txn_id = created.json()["transaction"]["id"]

        response = await client.patch(f"/transactions/{txn_id}", json={"amount_cents": None})

        assert response.status_code == 422

    async def test_list_filters(self, client):
        bank_id, _ = await self._setup(client)
        for status, amount in (("pending", 100), ("completed", 200), ("completed", 300)):
            await client.post(
                "/transactions",
                json={
                    "kind": "expense",
                    "amount_cents": amount,
                    "category": "Equipment",
                    "payment_method": "bank_transfer",
                    "status": status,
                    "linked_account_id": bank_id,
                },
            )

        completed = await client.get("/transactions", params={"status": "completed"})
        assert sorted(t["amount_cents"] for t in completed.json()) == [200, 300]

        by_account = await client.get("/transactions", params={"linked_account_id": bank_id})
        assert len(by_account.json()) == 3

        by_category = await client.get("/transactions", params={"category": "Other"})
        assert by_category.json() == []
