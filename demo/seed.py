#!/usr/bin/env python3
"""
Demo seed script — populates a running Ledger API with sample data.

!! NOT FOR PRODUCTION !!
This script creates users with known passwords and random transactions.
It is intended ONLY for local demos.

Usage:
    # With the API server running on localhost:8000. The seed sends far
    # more than the default 10 requests per 15 minutes, so start the
    # server with RATE_LIMIT_ENABLED=false:
    python demo/seed.py

    # Reset the database and re-seed:
    python demo/seed.py --reset

    # Custom server URL:
    python demo/seed.py --base-url http://localhost:9000

The admin account must be promoted before transactions can be posted.
The script signs up the admin, then asks you to run:

    DATABASE_URL=sqlite+aiosqlite:///./data/ledger.db \\
        python demo/promote_admin.py admin@ledgerdemo.com

and re-run the seed.
"""

import argparse
import asyncio
import os
import random
import sys

import httpx

ADMIN = {"email": "admin@ledgerdemo.com", "password": "AdminDemo123!"}
MEMBER = {"email": "member@ledgerdemo.com", "password": "MemberDemo123!"}

ACCOUNTS = [
    {"owner": "Alice Chen", "balance": [{"currency": "USD", "amount": 850}]},
    {
        "owner": "Bob Martinez",
        "balance": [
            {"currency": "EUR", "amount": 1200},
            {"currency": "GBP", "amount": 40.5},
        ],
    },
    {"owner": "Carol Nguyen", "balance": []},
]


def log(msg: str) -> None:
    print(f"  {msg}")


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


async def signup_or_login(client: httpx.AsyncClient, user: dict) -> str:
    """Sign up a user, falling back to login if the email is taken."""
    resp = await client.post("/auth/signup", json=user)
    if resp.status_code == 409:
        resp = await client.post("/auth/login", json=user)
    resp.raise_for_status()
    return resp.json()["token"]


async def create_account(client: httpx.AsyncClient, token: str, body: dict) -> dict:
    resp = await client.post("/accounts", json=body, headers=auth_header(token))
    resp.raise_for_status()
    return resp.json()


async def post_transaction(
    client: httpx.AsyncClient,
    token: str,
    account_id: str,
    transaction_type: str,
    amount: float,
    currency: str,
) -> dict:
    resp = await client.post(
        "/transaction",
        json={
            "account": account_id,
            "amount": amount,
            "transactionType": transaction_type,
            "currency": currency,
        },
        headers=auth_header(token),
    )
    return resp.json()


async def seed(base_url: str) -> None:
    async with httpx.AsyncClient(base_url=base_url, timeout=30) as client:
        print("\nSigning up users...")
        admin_token = await signup_or_login(client, ADMIN)
        member_token = await signup_or_login(client, MEMBER)
        log(f"{ADMIN['email']}, {MEMBER['email']}")

        print("\nCreating accounts...")
        accounts = []
        for body in ACCOUNTS:
            account = await create_account(client, member_token, body)
            accounts.append(account)
            log(f"{account['owner']}: {account['id']}")

        print("\nPosting transactions...")
        probe = await client.get(
            f"/transactions/{accounts[0]['id']}", headers=auth_header(admin_token)
        )
        if probe.status_code == 403:
            print(
                f"\n  {ADMIN['email']} is not an admin yet. Run\n"
                f"    python demo/promote_admin.py {ADMIN['email']}\n"
                "  then re-run this script.\n"
            )
            sys.exit(1)

        for account in accounts:
            currencies = [b["currency"] for b in account["balance"]] or ["USD"]
            for _ in range(random.randint(3, 8)):
                currency = random.choice(currencies)
                transaction_type = random.choice(["INBOUND", "OUTBOUND"])
                amount = round(random.uniform(1, 300), 2)
                result = await post_transaction(
                    client, admin_token, account["id"], transaction_type, amount, currency
                )
                if "error_type" in result:
                    log(f"{account['owner']}: {transaction_type} {amount} {currency} rejected ({result['error_type']})")
                else:
                    log(f"{account['owner']}: {transaction_type} {amount} {currency} -> {result['balance']}")

    print("\n========================================")
    print("  SEED COMPLETE — Login Credentials")
    print("========================================")
    print(f"\n  {'Email':<30s} {'Password':<20s} {'Role'}")
    print(f"  {ADMIN['email']:<30s} {ADMIN['password']:<20s} ADMIN")
    print(f"  {MEMBER['email']:<30s} {MEMBER['password']:<20s} USER")
    print()


def reset_database() -> None:
    """Delete the SQLite database file so the server recreates it on restart."""
    db_path = os.path.join(os.path.dirname(__file__), "..", "data", "ledger.db")
    db_path = os.path.normpath(db_path)

    if os.path.exists(db_path):
        os.remove(db_path)
        print(f"\n  Deleted {db_path}")
        print("  Restart the server to recreate empty tables.\n")
    else:
        print(f"\n  No database found at {db_path}\n")


async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Demo seed script — NOT FOR PRODUCTION",
        epilog="Creates sample users, accounts, and transactions for demos.",
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
