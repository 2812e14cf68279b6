"""Event publisher for deployments that keep draft events out of the logs."""
import structlog

from src.application.interfaces.event_publisher import EventPublisher
from src.domain.events.domain_events import DomainEvent
from src.infrastructure.messaging.logging_publisher import event_routing_key

logger = structlog.get_logger(__name__)


class NoOpEventPublisher(EventPublisher):
    """Drops every event; only a debug line naming the routing key is left."""

    async def publish(self, event: DomainEvent) -> None:
        logger.debug(
            "domain_event_dropped",
            event_type=event_routing_key(event),
            draft_id=str(getattr(event, "draft_id", "")),
        )
