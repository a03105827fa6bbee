"""
Event publishers — notify downstream services that a transaction was created.

Delivery is at-least-once and best-effort. A publisher never raises for a
delivery problem; it returns a PublishResult and the transaction processor
logs a failure without touching the already-committed ledger entry.

Publishers:
  - EventBridgePublisher: sends one PutEvents entry per transaction to an
    AWS EventBridge bus. boto3 is synchronous, so the call runs in a worker
    thread to keep the event loop free.
  - LoggingPublisher: used when EVENTS_ENABLED is false (local runs); it
    only writes the event to the log.

Envelope:
    Source       = EVENT_SOURCE        (default "accountService")
    DetailType   = EVENT_DETAIL_TYPE   (default "transactionCreated")
    Detail       = JSON of the Transaction response body
    EventBusName = EVENT_BUS_NAME      (default "default")
"""

import asyncio
import json
from dataclasses import dataclass
from typing import Any, Protocol

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from app.config import Settings
from app.models.transaction import Transaction
from app.schemas.transaction import TransactionResponse

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PublishResult:
    """Outcome of one publish attempt."""
    ok: bool
    event_id: str | None = None
    error: str | None = None


class EventPublisher(Protocol):
    async def publish(self, transaction: Transaction) -> PublishResult:
        ...


class EventBridgePublisher:
    """Publish transaction-created events to AWS EventBridge."""

    def __init__(
        self,
        client: Any,
        event_bus_name: str = "default",
        source: str = "accountService",
        detail_type: str = "transactionCreated",
    ) -> None:
        self._client = client
        self._event_bus_name = event_bus_name
        self._source = source
        self._detail_type = detail_type

    @classmethod
    def from_settings(cls, settings: Settings) -> "EventBridgePublisher":
        """Build the boto3 client once, from explicit credentials if given."""
        client = boto3.client(
            "events",
            region_name=settings.AWS_REGION,
            aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
            aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
        )
        return cls(
            client,
            event_bus_name=settings.EVENT_BUS_NAME,
            source=settings.EVENT_SOURCE,
            detail_type=settings.EVENT_DETAIL_TYPE,
        )

    def build_entry(self, transaction: Transaction) -> dict[str, str]:
        detail = TransactionResponse.from_transaction(transaction).to_event_detail()
        return {
            "Source": self._source,
            "DetailType": self._detail_type,
            "Detail": json.dumps(detail),
            "EventBusName": self._event_bus_name,
        }

    async def publish(self, transaction: Transaction) -> PublishResult:
        entry = self.build_entry(transaction)
        try:
            response = await asyncio.to_thread(self._client.put_events, Entries=[entry])
        except (BotoCoreError, ClientError) as exc:
            return PublishResult(ok=False, error=str(exc))

        entries = response.get("Entries") or [{}]
        if response.get("FailedEntryCount", 0):
            failed = entries[0]
            return PublishResult(
                ok=False,
                error=f"{failed.get('ErrorCode')}: {failed.get('ErrorMessage')}",
            )

        event_id = entries[0].get("EventId")
        log.info(
            "transaction_event_published",
            transaction_id=str(transaction.id),
            event_id=event_id,
            event_bus=self._event_bus_name,
        )
        return PublishResult(ok=True, event_id=event_id)


class LoggingPublisher:
    """Stand-in publisher for environments without an event bus."""

    async def publish(self, transaction: Transaction) -> PublishResult:
        log.info(
            "transaction_event_not_sent",
            transaction_id=str(transaction.id),
            detail=TransactionResponse.from_transaction(transaction).to_event_detail(),
        )
        return PublishResult(ok=True)


def build_publisher(settings: Settings) -> EventPublisher:
    """Pick the publisher for this process from configuration."""
    if settings.EVENTS_ENABLED:
        return EventBridgePublisher.from_settings(settings)
    return LoggingPublisher()
