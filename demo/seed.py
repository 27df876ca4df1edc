#!/usr/bin/env python3
"""
Demo seed script — populates the database with a sample club's books.

!! NOT FOR PRODUCTION !!
This script creates made-up accounts and income/expense records. It is
intended ONLY for local demos and dashboard development.

Usage:
    # With the API server running on localhost:8000:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

What gets created:
    - A bank account and a cash box with opening balances
    - One category bucket per income/expense category
    - Two months of dues, sponsorship, event and equipment records,
      some still pending
    - A few transfers between the bank and the cash box
"""

import argparse
import asyncio
import os
import random
import sys
from datetime import date, timedelta

import httpx

BASE_URL = "http://localhost:8000"

# ---------------------------------------------------------------------------
# Demo accounts
# ---------------------------------------------------------------------------

ACCOUNTS = [
    {
        "name": "Main Bank",
        "kind": "bank",
        "initial_balance_cents": 4_250_00,
        "bank_name": "First Community Bank",
        "bank_account_number": "00481516",
        "branch_name": "High Street",
    },
    {
        "name": "Cash Box",
        "kind": "cash",
        "initial_balance_cents": 150_00,
        "description": "Kept by the treasurer",
    },
]

INCOME_CATEGORIES = {
    "Membership Dues": (25_00, 60_00),
    "Sponsorship": (200_00, 1_000_00),
    "Event Tickets": (5_00, 15_00),
}

EXPENSE_CATEGORIES = {
    "Equipment": (30_00, 250_00),
    "Venue Hire": (80_00, 300_00),
    "Refreshments": (10_00, 60_00),
}

PAYERS = ["A. Chen", "B. Martinez", "C. Nguyen", "D. Johnson", "E. Patel", "Local Bakery"]
PAYEES = ["Sports Direct", "Town Hall", "Corner Shop", "Print Works"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def log(msg: str) -> None:
    print(f"  {msg}")


def cents_to_amount(cents: int) -> str:
    return f"{cents / 100:,.2f}"


async def create_account(client: httpx.AsyncClient, body: dict) -> str:
    """Open an account and return its ID."""
    resp = await client.post(f"{BASE_URL}/accounts", json=body)
    resp.raise_for_status()
    return resp.json()["id"]


async def record(client: httpx.AsyncClient, body: dict) -> dict:
    resp = await client.post(f"{BASE_URL}/transactions", json=body)
    return resp.json()


async def do_transfer(client: httpx.AsyncClient, from_id: str, to_id: str,
                      amount_cents: int, description: str) -> dict:
    resp = await client.post(
        f"{BASE_URL}/transfers",
        json={
            "from_account_id": from_id,
            "to_account_id": to_id,
            "amount_cents": amount_cents,
            "description": description,
        },
    )
    return resp.json()


# ---------------------------------------------------------------------------
# Seed logic
# ---------------------------------------------------------------------------

async def seed_records(client: httpx.AsyncClient, bank_id: str, cash_id: str, months: int) -> int:
    """Generate `months` months of club income and expenses. Returns how many were saved."""
    saved = 0
    today = date.today()

    for month_offset in range(months, 0, -1):
        for _ in range(random.randint(10, 18)):
            is_income = random.random() < 0.55
            categories = INCOME_CATEGORIES if is_income else EXPENSE_CATEGORIES
            category = random.choice(list(categories))
            low, high = categories[category]

            via_cash = random.random() < 0.3
            body = {
                "kind": "income" if is_income else "expense",
                "amount_cents": random.randint(low, high),
                "category": category,
                "payment_method": "cash" if via_cash else random.choice(["bank_transfer", "debit_card"]),
                "linked_account_id": cash_id if via_cash else bank_id,
                "status": "pending" if random.random() < 0.1 else "completed",
                "counterparty_name": random.choice(PAYERS if is_income else PAYEES),
                "transaction_date": (
                    today - timedelta(days=30 * month_offset - random.randint(0, 29))
                ).isoformat(),
            }
            result = await record(client, body)
            if "transaction" in result:
                saved += 1
            elif result.get("error_type") == "insufficient_funds":
                log(f"Skipped {category} expense: {result['detail']}")

    return saved


async def seed(base_url: str) -> None:
    global BASE_URL
    BASE_URL = base_url

    print("\n========================================")
    print("  DEMO SEED — NOT FOR PRODUCTION")
    print("========================================\n")

    async with httpx.AsyncClient(timeout=30.0) as client:
        # Health check
        try:
            health = await client.get(f"{BASE_URL}/health")
            health.raise_for_status()
        except (httpx.ConnectError, httpx.HTTPStatusError):
            print(f"  ERROR: Cannot connect to {BASE_URL}")
            print("  Start the server first: uvicorn club_ledger.main:app --reload\n")
            sys.exit(1)

        # --- Accounts ---
        print("Opening accounts...")
        ids: dict[str, str] = {}
        for body in ACCOUNTS:
            ids[body["name"]] = await create_account(client, body)
            log(f"{body['name']}: opening balance {cents_to_amount(body['initial_balance_cents'])}")

        print("\nOpening category buckets...")
        for category in [*INCOME_CATEGORIES, *EXPENSE_CATEGORIES]:
            await create_account(client, {"name": category, "kind": "category_bucket"})
            log(category)

        bank_id, cash_id = ids["Main Bank"], ids["Cash Box"]

        # --- Records ---
        print("\nRecording two months of income and expenses...")
        saved = await seed_records(client, bank_id, cash_id, months=2)
        log(f"{saved} records saved")

        # --- Transfers ---
        print("\nMoving money between the bank and the cash box...")
        for from_id, to_id, amount, memo in (
            (bank_id, cash_id, 100_00, "Float for the summer fete"),
            (cash_id, bank_id, 60_00, "Banking the fete takings"),
        ):
            result = await do_transfer(client, from_id, to_id, amount, memo)
            if "error_type" not in result:
                log(f"{memo}: {cents_to_amount(amount)}")
            else:
                log(f"{memo}: {result['detail']}")

        # --- Summary ---
        print("\n========================================")
        print("  SEED COMPLETE — Balances")
        print("========================================\n")
        resp = await client.get(f"{BASE_URL}/accounts/integrity")
        resp.raise_for_status()
        accounts = {a["id"]: a["name"] for a in (await client.get(f"{BASE_URL}/accounts")).json()}
        for report in resp.json():
            flag = "" if report["match"] else "  (LEDGER MISMATCH)"
            print(f"  {accounts[report['account_id']]:<20s} {cents_to_amount(report['balance_cents']):>12s}{flag}")
        print()


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "club_ledger.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates sample accounts, records, and transfers for demos.",
    )
    parser.add_argument(
        "--base-url", default="http://localhost:8000",
        help="Base URL of the running API (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--reset", action="store_true",
        help="Delete the database file and exit (restart server to recreate)",
    )
    args = parser.parse_args()

    if args.reset:
        reset_database()
        return

    await seed(args.base_url)


if __name__ == "__main__":
    asyncio.run(main())
