from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import UUID, uuid4

from src.domain.entities.image_slot import ImageSlot, SelectedFile
from src.domain.enums.draft_status import DraftStatus
from src.domain.enums.slot_status import SlotStatus
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
from src.domain.state_machine.draft_state_machine import DraftStateMachine

MAX_SLOTS = 6
EDITABLE_FIELDS = ("title", "description", "price")

_state_machine = DraftStateMachine()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CapacityExceededError(Exception):
    """Raised when a file is added to a draft whose slots are all taken."""

    def __init__(self, filename: str, max_slots: int) -> None:
        self.filename = filename
        self.max_slots = max_slots
        super().__init__(f"Cannot add {filename!r}: a listing holds at most {max_slots} images.")


class DraftClosedError(Exception):
    def __init__(self, draft_id: UUID, status: DraftStatus) -> None:
        self.draft_id = draft_id
        self.status = status
        super().__init__(f"Draft {draft_id} is {status.value} and can no longer change.")


class MissingSellerError(Exception):
    def __init__(self) -> None:
        super().__init__("Please log in first: no seller identifier is available.")


@dataclass
class ListingDraft:
    """
    In-progress second-hand listing: user fields plus the ordered image slots.

    Slots are kept in the order the user added them. Local keys come from a
    counter that only moves forward, so a key is never handed out twice even
    after its slot is removed. Emits domain events that the application layer
    collects and publishes.
    """

    seller_id: str
    id: UUID = field(default_factory=uuid4)

    # User fields
    title: str = ""
    description: str = ""
    price: str = ""

    # Images
    slots: list[ImageSlot] = field(default_factory=list)
    max_slots: int = MAX_SLOTS

    # Flow state
    status: DraftStatus = DraftStatus.OPEN
    editing_item_id: int | None = None
    created_listing_id: str | None = None
    last_error: str | None = None

    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    _next_key: int = field(default=1, repr=False, compare=False)
    _events: list[DomainEvent] = field(default_factory=list, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.seller_id or not self.seller_id.strip():
            raise MissingSellerError()

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "seller_id" and "seller_id" in self.__dict__:
            raise AttributeError("seller_id is fixed for the lifetime of a draft.")
        super().__setattr__(name, value)

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def open(cls, seller_id: str | None, *, max_slots: int = MAX_SLOTS) -> "ListingDraft":
        if seller_id is None:
            raise MissingSellerError()
        return cls(seller_id=seller_id, max_slots=max_slots)

    @classmethod
    def for_existing_listing(
        cls,
        seller_id: str | None,
        *,
        item_id: int,
        title: str,
        description: str,
        price: str,
        images: list[tuple[str, str | None]],
        max_slots: int = MAX_SLOTS,
    ) -> "ListingDraft":
        """Seed a draft from a published listing; `images` are (server_id, url) pairs."""
        draft = cls.open(seller_id, max_slots=max_slots)
        draft.editing_item_id = item_id
        draft.title = title
        draft.description = description
        draft.price = price
        for server_id, url in images[:max_slots]:
            draft.slots.append(ImageSlot.already_uploaded(draft._take_key(), server_id, url))
        return draft

    # -------------------------------------------------------------------------
    # Fields
    # -------------------------------------------------------------------------

    def update_field(self, name: str, value: str) -> None:
        if name not in EDITABLE_FIELDS:
            raise ValueError(f"Unknown draft field {name!r}; expected one of {EDITABLE_FIELDS}.")
        self._ensure_editable()
        setattr(self, name, value)
        self.updated_at = _utcnow()

    # -------------------------------------------------------------------------
    # Slots
    # -------------------------------------------------------------------------

    @property
    def remaining_capacity(self) -> int:
        return max(0, self.max_slots - len(self.slots))

    @property
    def success_count(self) -> int:
        return sum(1 for slot in self.slots if slot.status is SlotStatus.SUCCESS)

    def find_slot(self, local_key: int) -> ImageSlot | None:
        for slot in self.slots:
            if slot.local_key == local_key:
                return slot
        return None

    def add_slot(self, file: SelectedFile) -> ImageSlot:
        """Append a PENDING slot for `file`, or raise CapacityExceededError."""
        self._ensure_editable()
        if len(self.slots) >= self.max_slots:
            raise CapacityExceededError(file.filename, self.max_slots)

        slot = ImageSlot.for_file(self._take_key(), file)
        self.slots.append(slot)
        self.updated_at = _utcnow()
        self._events.append(
            SlotAddedEvent(draft_id=self.id, local_key=slot.local_key, filename=file.filename)
        )
        return slot

    def remove_slot(self, local_key: int) -> ImageSlot | None:
        """Drop the slot whatever its status. Returns None if the key is unknown."""
        self._ensure_editable()
        slot = self.find_slot(local_key)
        if slot is None:
            return None

        from_status = slot.status
        slot.mark_removed()
        self.slots.remove(slot)
        self.updated_at = _utcnow()
        self._events.append(
            SlotRemovedEvent(draft_id=self.id, local_key=local_key, from_status=from_status)
        )
        return slot

    def record_upload_success(
        self, local_key: int, server_id: str, display_url: str | None
    ) -> bool:
        """
        Apply a finished upload. Returns False, leaving the draft untouched,
        when the slot is gone or the draft is closed.
        """
        slot = self._live_slot(local_key)
        if slot is None:
            return False
        slot.mark_success(server_id, display_url)
        self.updated_at = _utcnow()
        self._events.append(
            SlotUploadSucceededEvent(draft_id=self.id, local_key=local_key, server_id=server_id)
        )
        return True

    def record_upload_failure(self, local_key: int, reason: str) -> bool:
        slot = self._live_slot(local_key)
        if slot is None:
            return False
        slot.mark_failed(reason)
        self.updated_at = _utcnow()
        self._events.append(
            SlotUploadFailedEvent(draft_id=self.id, local_key=local_key, reason=reason)
        )
        return True

    def _live_slot(self, local_key: int) -> ImageSlot | None:
        if self.status.is_terminal:
            return None
        slot = self.find_slot(local_key)
        if slot is None or slot.status is not SlotStatus.UPLOADING:
            return None
        return slot

    def _take_key(self) -> int:
        key = self._next_key
        self._next_key += 1
        return key

    # -------------------------------------------------------------------------
    # Submission lifecycle
    # -------------------------------------------------------------------------

    def begin_submission(self) -> None:
        self._transition_to(DraftStatus.SUBMITTING)
        self.last_error = None

    def complete_submission(self, listing_id: str) -> None:
        self._transition_to(DraftStatus.SUBMITTED)
        self.created_listing_id = listing_id
        self.last_error = None
        self._events.append(
            ListingSubmittedEvent(
                draft_id=self.id,
                listing_id=listing_id,
                seller_id=self.seller_id,
                image_count=self.success_count,
                is_update=self.editing_item_id is not None,
            )
        )

    def fail_submission(self, reason: str) -> None:
        """Return to OPEN keeping every field and slot, so the user can retry."""
        self._transition_to(DraftStatus.OPEN)
        self.last_error = reason
        self._events.append(ListingSubmissionFailedEvent(draft_id=self.id, reason=reason))

    def abandon(self) -> None:
        if self.status.is_terminal:
            return
        self._transition_to(DraftStatus.ABANDONED)
        self._events.append(DraftAbandonedEvent(draft_id=self.id))

    def record_error(self, message: str | None) -> None:
        self.last_error = message
        self.updated_at = _utcnow()

    def _transition_to(self, new_status: DraftStatus) -> None:
        _state_machine.validate_transition(self.status, new_status)
        self.status = new_status
        self.updated_at = _utcnow()

    def _ensure_editable(self) -> None:
        if self.status.is_terminal:
            raise DraftClosedError(self.id, self.status)

    # -------------------------------------------------------------------------
    # Event collection
    # -------------------------------------------------------------------------

    def collect_events(self) -> list[DomainEvent]:
        """Return pending events and clear the internal buffer."""
        events = list(self._events)
        self._events.clear()
        return events
