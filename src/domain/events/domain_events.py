from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID, uuid4

from src.domain.enums.slot_status import SlotStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DomainEvent:
    """Base class for all domain events."""

    event_id: UUID = field(default_factory=uuid4)
    occurred_at: datetime = field(default_factory=_utcnow)


@dataclass(frozen=True)
class SlotAddedEvent(DomainEvent):
    """Published when a picked file gets a slot in the draft."""

    draft_id: UUID = field(default_factory=uuid4)
    local_key: int = 0
    filename: str = ""


@dataclass(frozen=True)
class SlotUploadSucceededEvent(DomainEvent):
    draft_id: UUID = field(default_factory=uuid4)
    local_key: int = 0
    server_id: str = ""


@dataclass(frozen=True)
class SlotUploadFailedEvent(DomainEvent):
    draft_id: UUID = field(default_factory=uuid4)
    local_key: int = 0
    reason: str = ""


@dataclass(frozen=True)
class SlotRemovedEvent(DomainEvent):
    """Published when the user removes a slot, whatever its upload status."""

    draft_id: UUID = field(default_factory=uuid4)
    local_key: int = 0
    from_status: SlotStatus = SlotStatus.PENDING


@dataclass(frozen=True)
class ListingSubmittedEvent(DomainEvent):
    """Published once the marketplace has accepted the listing."""

    draft_id: UUID = field(default_factory=uuid4)
    listing_id: str = ""
    seller_id: str = ""
    image_count: int = 0
    is_update: bool = False


@dataclass(frozen=True)
class ListingSubmissionFailedEvent(DomainEvent):
    draft_id: UUID = field(default_factory=uuid4)
    reason: str = ""


@dataclass(frozen=True)
class DraftAbandonedEvent(DomainEvent):
    draft_id: UUID = field(default_factory=uuid4)
