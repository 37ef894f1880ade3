"""
Azure Service Bus event publishing for bill group outcomes.

Enables downstream systems to react to batch processing:
- Audit systems can track every submitted or rejected bill
- Reconciliation jobs can pick up created bill and invoice ids
"""

import json
from datetime import datetime, UTC
from typing import List, Optional
from dataclasses import dataclass, asdict, field
from loguru import logger
from ...core.config import settings


@dataclass
class BillGroupProcessedEvent:
    """
    Event published once a bill group reaches a terminal status.

    Skipped groups (already processed) are not published.
    """

    bill_number: str
    status: str
    row_indices: List[int] = field(default_factory=list)
    bill_id: Optional[str] = None
    invoice_id: Optional[str] = None
    message: Optional[str] = None
    event_type: str = "BillGroupProcessed"
    timestamp: Optional[str] = None

    def __post_init__(self):
        if self.timestamp is None:
            self.timestamp = datetime.now(UTC).isoformat()

    def to_dict(self) -> dict:
        """Dictionary representation suitable for a Service Bus message body"""
        return asdict(self)

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


class EventPublisher:
    """
    Publishes events to an Azure Service Bus queue or topic.

    Usage:
        from azure.servicebus import ServiceBusClient
        client = ServiceBusClient.from_connection_string(conn_str)
        sender = client.get_queue_sender(queue_name="bill-events")
        publisher = EventPublisher(service_bus_sender=sender)

        # Disabled mode (no Service Bus configured)
        publisher = EventPublisher(service_bus_sender=None)
    """

    def __init__(
        self,
        service_bus_sender: Optional[object] = None,
        entity_name: str = "bill-events"
    ):
        self.service_bus_sender = service_bus_sender
        self.entity_name = entity_name

    @property
    def enabled(self) -> bool:
        return self.service_bus_sender is not None

    def publish_bill_group_processed(self, event: BillGroupProcessedEvent) -> None:
        """
        Publish a bill group event to Service Bus.

        Note:
            If service_bus_sender is None, this is a no-op (disabled mode).
        """
        if self.service_bus_sender is None:
            return

        from azure.servicebus import ServiceBusMessage

        message = ServiceBusMessage(event.to_json(), content_type="application/json")
        self.service_bus_sender.send_messages(message)
        logger.debug("Published bill group event", bill_number=event.bill_number, entity=self.entity_name)


def _build_default_publisher() -> EventPublisher:
    if not settings.servicebus_connection_string:
        return EventPublisher(service_bus_sender=None, entity_name=settings.servicebus_entity_name)

    from azure.servicebus import ServiceBusClient

    client = ServiceBusClient.from_connection_string(settings.servicebus_connection_string)
    sender = client.get_queue_sender(queue_name=settings.servicebus_entity_name)
    logger.info("Service Bus publishing enabled", entity=settings.servicebus_entity_name)
    return EventPublisher(service_bus_sender=sender, entity_name=settings.servicebus_entity_name)


_default_publisher: Optional[EventPublisher] = None


def get_event_publisher() -> EventPublisher:
    """
    Get the default event publisher instance.

    Returns:
        EventPublisher (disabled when no Service Bus connection string is configured)
    """
    global _default_publisher
    if _default_publisher is None:
        _default_publisher = _build_default_publisher()
    return _default_publisher
