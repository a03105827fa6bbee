"""
Tests for the event publishers.

The EventBridge client is replaced by a stub recording put_events calls,
so these tests check the envelope and the failure mapping without AWS.
"""

import json
import uuid
from datetime import datetime, timezone

from botocore.exceptions import ClientError

from app.config import Settings
from app.models.transaction import Transaction, TransactionType
from app.services.event_publisher import (
    EventBridgePublisher,
    LoggingPublisher,
    build_publisher,
)


class StubEventsClient:
    def __init__(self, response=None, error=None):
        self.calls = []
        self._response = response or {
            "FailedEntryCount": 0,
            "Entries": [{"EventId": "11111111-2222-3333-4444-555555555555"}],
        }
        self._error = error

    def put_events(self, **kwargs):
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        return self._response


def _transaction():
    return Transaction(
        id=uuid.UUID("6f1c2a3e-0000-4000-8000-000000000001"),
        account_id=uuid.UUID("6f1c2a3e-0000-4000-8000-000000000002"),
        transaction_type=TransactionType.OUTBOUND,
        currency="EUR",
        amount_cents=1250,
        balance_cents=8750,
        timestamp=datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc),
    )


class TestEventBridgePublisher:
    async def test_envelope(self):
        client = StubEventsClient()
        publisher = EventBridgePublisher(client)

        result = await publisher.publish(_transaction())

        assert result.ok is True
        assert result.event_id == "11111111-2222-3333-4444-555555555555"
        [call] = client.calls
        [entry] = call["Entries"]
        assert entry["Source"] == "accountService"
        assert entry["DetailType"] == "transactionCreated"
        assert entry["EventBusName"] == "default"
        assert json.loads(entry["Detail"]) == {
            "id": "6f1c2a3e-0000-4000-8000-000000000001",
            "account": "6f1c2a3e-0000-4000-8000-000000000002",
            "amount": 12.5,
            "transactionType": "OUTBOUND",
            "currency": "EUR",
            "balance": 87.5,
            "timestamp": "2024-05-01T12:30:00Z",
        }

    async def test_custom_bus_and_tags(self):
        client = StubEventsClient()
        publisher = EventBridgePublisher(
            client,
            event_bus_name="ledger-bus",
            source="ledgerService",
            detail_type="ledgerEntryCreated",
        )

        await publisher.publish(_transaction())

        [entry] = client.calls[0]["Entries"]
        assert entry["EventBusName"] == "ledger-bus"
        assert entry["Source"] == "ledgerService"
        assert entry["DetailType"] == "ledgerEntryCreated"

    async def test_failed_entry_reported(self):
        client = StubEventsClient(
            response={
                "FailedEntryCount": 1,
                "Entries": [{"ErrorCode": "InternalFailure", "ErrorMessage": "try later"}],
            }
        )
        publisher = EventBridgePublisher(client)

        result = await publisher.publish(_transaction())

        assert result.ok is False
        assert result.error == "InternalFailure: try later"

    async def test_client_error_reported_not_raised(self):
        error = ClientError(
            {"Error": {"Code": "AccessDeniedException", "Message": "denied"}},
            "PutEvents",
        )
        publisher = EventBridgePublisher(StubEventsClient(error=error))

        result = await publisher.publish(_transaction())

        assert result.ok is False
        assert "AccessDeniedException" in result.error


class TestBuildPublisher:
    async def test_logging_publisher_when_events_disabled(self):
        settings = Settings(SECRET_KEY="x", EVENTS_ENABLED=False)

        publisher = build_publisher(settings)

        assert isinstance(publisher, LoggingPublisher)
        assert (await publisher.publish(_transaction())).ok is True

    def test_eventbridge_publisher_when_events_enabled(self):
        settings = Settings(
            SECRET_KEY="x",
            EVENTS_ENABLED=True,
            AWS_REGION="eu-west-1",
            EVENT_BUS_NAME="ledger-bus",
        )

        publisher = build_publisher(settings)

        assert isinstance(publisher, EventBridgePublisher)
        assert publisher.build_entry(_transaction())["EventBusName"] == "ledger-bus"
