"""
Tests for the transaction endpoints.

These tests verify:
  - INBOUND creates or increases a currency balance
  - OUTBOUND decreases a balance and is rejected when funds are short
  - Rejected transactions leave the account and the ledger untouched
  - The ledger listing returns entries in insertion order
  - Event publishing failures never fail the request
  - Request validation returns 400
  - Amounts and balances are bounded so JSON numbers stay exact
"""

import uuid

from app.main import app
from app.services.transaction_service import TransactionProcessor


async def _create_account(client, owner="Ada Lovelace", balance=None):
    response = await client.post(
        "/accounts",
        json={"owner": owner, "balance": balance or []},
    )
    assert response.status_code == 200, response.text
    return response.json()["id"]


async def _post(client, account_id, amount, transaction_type, currency="USD"):
    return await client.post(
        "/transaction",
        json={
            "account": account_id,
            "amount": amount,
            "transactionType": transaction_type,
            "currency": currency,
        },
    )


def _balances(account_json):
    return {entry["currency"]: entry["amount"] for entry in account_json["balance"]}


class TestLedgerScenario:
    """The walk-through from an empty account to a zero balance."""

    async def test_first_inbound_creates_currency_balance(self, admin_client):
        account_id = await _create_account(admin_client)

        response = await _post(admin_client, account_id, 100, "INBOUND")
        assert response.status_code == 200
        txn = response.json()
        assert txn["account"] == account_id
        assert txn["amount"] == 100
        assert txn["transactionType"] == "INBOUND"
        assert txn["currency"] == "USD"
        assert txn["balance"] == 100
        assert "timestamp" in txn
        assert "id" in txn

        account = await admin_client.get(f"/accounts/{account_id}")
        assert account.json()["balance"] == [{"currency": "USD", "amount": 100}]

        ledger = await admin_client.get(f"/transactions/{account_id}")
        assert ledger.status_code == 200
        assert len(ledger.json()) == 1
        assert ledger.json()[0]["balance"] == 100

    async def test_full_sequence(self, admin_client):
        account_id = await _create_account(admin_client)

        assert (await _post(admin_client, account_id, 100, "INBOUND")).status_code == 200

        second = await _post(admin_client, account_id, 50, "INBOUND")
        assert second.status_code == 200
        assert second.json()["balance"] == 150

        rejected = await _post(admin_client, account_id, 200, "OUTBOUND")
        assert rejected.status_code == 400
        body = rejected.json()
        assert body["error_type"] == "insufficient_funds"
        assert "Insufficient funds" in body["detail"]
        assert body["requested"] == 200
        assert body["available"] == 150

        account = await admin_client.get(f"/accounts/{account_id}")
        assert _balances(account.json()) == {"USD": 150}
        ledger = await admin_client.get(f"/transactions/{account_id}")
        assert len(ledger.json()) == 2

        drained = await _post(admin_client, account_id, 150, "OUTBOUND")
        assert drained.status_code == 200
        assert drained.json()["balance"] == 0

        account = await admin_client.get(f"/accounts/{account_id}")
        # The emptied currency stays on the account with a zero amount
        assert account.json()["balance"] == [{"currency": "USD", "amount": 0}]

        ledger = await admin_client.get(f"/transactions/{account_id}")
        entries = ledger.json()
        assert [e["balance"] for e in entries] == [100, 150, 0]
        assert [e["transactionType"] for e in entries] == ["INBOUND", "INBOUND", "OUTBOUND"]

    async def test_unknown_account_returns_404(self, admin_client, publisher):
        missing = str(uuid.uuid4())

        response = await _post(admin_client, missing, 10, "INBOUND")
        assert response.status_code == 404
        assert response.json()["error_type"] == "account_not_found"

        ledger = await admin_client.get(f"/transactions/{missing}")
        assert ledger.status_code == 200
        assert ledger.json() == []
        assert publisher.published == []

    async def test_publish_failure_still_succeeds(
        self, admin_client, session_factory, failing_publisher
    ):
        failing = failing_publisher
        app.state.transaction_processor = TransactionProcessor(
            session_factory=session_factory,
            publisher=failing,
        )
        account_id = await _create_account(admin_client)

        response = await _post(admin_client, account_id, 25, "INBOUND")
        assert response.status_code == 200
        assert response.json()["balance"] == 25
        assert failing.attempts == 1

        ledger = await admin_client.get(f"/transactions/{account_id}")
        assert len(ledger.json()) == 1
        assert ledger.json()[0]["id"] == response.json()["id"]


class TestCurrencies:
    """Balances are tracked per currency."""

    async def test_inbound_leaves_other_currencies_alone(self, admin_client):
        account_id = await _create_account(
            admin_client, balance=[{"currency": "EUR", "amount": 40}]
        )

        await _post(admin_client, account_id, 10, "INBOUND", currency="USD")

        account = await admin_client.get(f"/accounts/{account_id}")
        assert _balances(account.json()) == {"EUR": 40, "USD": 10}

    async def test_outbound_in_missing_currency_rejected(self, admin_client):
        account_id = await _create_account(
            admin_client, balance=[{"currency": "EUR", "amount": 40}]
        )

        response = await _post(admin_client, account_id, 5, "OUTBOUND", currency="GBP")
        assert response.status_code == 400
        assert response.json()["available"] == 0

        # The missing currency is not materialized as a zero entry
        account = await admin_client.get(f"/accounts/{account_id}")
        assert _balances(account.json()) == {"EUR": 40}

    async def test_lowercase_currency_normalized(self, admin_client):
        account_id = await _create_account(admin_client)

        response = await _post(admin_client, account_id, 12.5, "INBOUND", currency="chf")
        assert response.status_code == 200
        assert response.json()["currency"] == "CHF"
        assert response.json()["balance"] == 12.5

    async def test_fractional_amounts_are_exact(self, admin_client):
        account_id = await _create_account(admin_client)

        for _ in range(10):
            await _post(admin_client, account_id, 0.1, "INBOUND")
        response = await _post(admin_client, account_id, 0.3, "OUTBOUND")

        assert response.status_code == 200
        assert response.json()["balance"] == 0.7


class TestAmountLimits:
    """Amounts and balances stay within what a JSON number carries exactly."""

    async def test_amount_with_too_many_digits_rejected(self, admin_client, publisher):
        account_id = await _create_account(admin_client)

        response = await _post(admin_client, account_id, "9999999999999999.99", "INBOUND")
        assert response.status_code == 400
        assert response.json()["error_type"] == "validation_error"
        assert publisher.published == []

    async def test_largest_balance_is_reported_exactly(self, admin_client):
        account_id = await _create_account(admin_client)

        response = await _post(admin_client, account_id, "9999999999999.99", "INBOUND")
        assert response.status_code == 200
        assert str(response.json()["balance"]) == "9999999999999.99"
        assert str(response.json()["amount"]) == "9999999999999.99"

    async def test_inbound_past_ceiling_rejected(self, admin_client, publisher):
        account_id = await _create_account(
            admin_client, balance=[{"currency": "USD", "amount": "9999999999999.00"}]
        )

        response = await _post(admin_client, account_id, "1.00", "INBOUND")
        assert response.status_code == 400
        assert response.json()["error_type"] == "balance_limit_exceeded"

        account = await admin_client.get(f"/accounts/{account_id}")
        assert str(_balances(account.json())["USD"]) == "9999999999999.0"
        ledger = await admin_client.get(f"/transactions/{account_id}")
        assert ledger.json() == []
        assert publisher.published == []


class TestEvents:
    """One event per accepted transaction, none for rejections."""

    async def test_event_published_for_each_accepted_transaction(
        self, admin_client, publisher
    ):
        account_id = await _create_account(admin_client)

        first = await _post(admin_client, account_id, 30, "INBOUND")
        await _post(admin_client, account_id, 100, "OUTBOUND")
        second = await _post(admin_client, account_id, 10, "OUTBOUND")

        published_ids = [str(txn.id) for txn in publisher.published]
        assert published_ids == [first.json()["id"], second.json()["id"]]


class TestValidation:
    """Malformed requests are rejected with 400 before anything runs."""

    async def test_zero_amount_rejected(self, admin_client):
        account_id = await _create_account(admin_client)
        response = await _post(admin_client, account_id, 0, "INBOUND")
        assert response.status_code == 400
        assert response.json()["error_type"] == "validation_error"

    async def test_negative_amount_rejected(self, admin_client):
        account_id = await _create_account(admin_client)
        response = await _post(admin_client, account_id, -5, "INBOUND")
        assert response.status_code == 400

    async def test_too_many_decimal_places_rejected(self, admin_client):
        account_id = await _create_account(admin_client)
        response = await _post(admin_client, account_id, 1.005, "INBOUND")
        assert response.status_code == 400

    async def test_unknown_transaction_type_rejected(self, admin_client):
        account_id = await _create_account(admin_client)
        response = await _post(admin_client, account_id, 5, "SIDEWAYS")
        assert response.status_code == 400

    async def test_bad_currency_code_rejected(self, admin_client):
        account_id = await _create_account(admin_client)
        response = await _post(admin_client, account_id, 5, "INBOUND", currency="DOLLAR")
        assert response.status_code == 400

    async def test_bad_account_id_rejected(self, admin_client):
        response = await _post(admin_client, "not-a-uuid", 5, "INBOUND")
        assert response.status_code == 400

    async def test_rejected_request_publishes_nothing(self, admin_client, publisher):
        account_id = await _create_account(admin_client)
        await _post(admin_client, account_id, 0, "INBOUND")
        assert publisher.published == []
