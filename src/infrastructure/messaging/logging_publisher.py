"""
Event publisher that writes every draft event to the structured log.

Each event is flattened to a JSON-safe dict keyed by a routing key such as
"draft.slot.added", so log pipelines can filter on it.
"""
from dataclasses import asdict
from enum import Enum
from typing import Any
from uuid import UUID

import structlog

from src.application.interfaces.event_publisher import EventPublisher
from src.domain.events.domain_events import (
    DomainEvent,
    DraftAbandonedEvent,
    ListingSubmissionFailedEvent,
    ListingSubmittedEvent,
    SlotAddedEvent,
    SlotRemovedEvent,
    SlotUploadFailedEvent,
    SlotUploadSucceededEvent,
)

logger = structlog.get_logger(__name__)

_ROUTING_KEYS: dict[type[DomainEvent], str] = {
    SlotAddedEvent: "draft.slot.added",
    SlotUploadSucceededEvent: "draft.slot.uploaded",
    SlotUploadFailedEvent: "draft.slot.failed",
    SlotRemovedEvent: "draft.slot.removed",
    ListingSubmittedEvent: "listing.submitted",
    ListingSubmissionFailedEvent: "listing.submission_failed",
    DraftAbandonedEvent: "draft.abandoned",
}


def event_routing_key(event: DomainEvent) -> str:
    return _ROUTING_KEYS.get(type(event), "event.unknown")


def _json_safe(value: Any) -> Any:
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


def serialise_event(event: DomainEvent) -> dict[str, Any]:
    payload = {key: _json_safe(value) for key, value in asdict(event).items()}
    payload["event_type"] = event_routing_key(event)
    return payload


class LoggingEventPublisher(EventPublisher):
    async def publish(self, event: DomainEvent) -> None:
        try:
            payload = serialise_event(event)
        except Exception as exc:
            logger.error(
                "failed_to_publish_event", event_type=type(event).__name__, error=str(exc)
            )
            # Not re-raised; the event is lost from the log only
            return
        logger.info("domain_event", **payload)
