from collections.abc import Iterable

from src.domain.entities.image_slot import ImageSlot
from src.domain.entities.listing_draft import ListingDraft
from src.domain.enums.slot_status import SlotStatus


class IdentifierReconciler:
    """
    Derives the server ids to submit from the current slot sequence.

    Nothing is cached: every call walks the slots as they are now, so the
    result follows slot order rather than the order uploads finished in.
    """

    def identifiers(self, slots: Iterable[ImageSlot]) -> list[str]:
        return [
            slot.server_id
            for slot in slots
            if slot.status is SlotStatus.SUCCESS and slot.server_id
        ]

    def for_draft(self, draft: ListingDraft) -> list[str]:
        return self.identifiers(draft.slots)
