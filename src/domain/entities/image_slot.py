from dataclasses import dataclass, field
from datetime import datetime, timezone

from src.domain.enums.slot_status import SlotStatus
from src.domain.state_machine.slot_state_machine import SlotStateMachine

_state_machine = SlotStateMachine()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SelectedFile:
    """A file handed over by the picker, not yet attached to a draft."""

    filename: str
    content: bytes = field(repr=False)
    content_type: str = "application/octet-stream"
    # Local preview shown until the upload comes back
    preview_url: str | None = None


@dataclass
class ImageSlot:
    """
    One candidate photo of a draft and its upload lifecycle.

    `server_id` is only ever set by mark_success() and is cleared on removal,
    so a slot carries a server id exactly while its status is SUCCESS.
    """

    local_key: int
    filename: str = ""
    display_url: str | None = None
    status: SlotStatus = SlotStatus.PENDING
    server_id: str | None = None
    error_message: str | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def for_file(cls, local_key: int, file: SelectedFile) -> "ImageSlot":
        return cls(local_key=local_key, filename=file.filename, display_url=file.preview_url)

    @classmethod
    def already_uploaded(
        cls, local_key: int, server_id: str, display_url: str | None
    ) -> "ImageSlot":
        """Slot for an image that lives on the server already (edit mode)."""
        slot = cls(local_key=local_key, display_url=display_url)
        slot.mark_uploading()
        slot.mark_success(server_id, display_url)
        return slot

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def mark_uploading(self) -> None:
        self._transition_to(SlotStatus.UPLOADING)

    def mark_success(self, server_id: str, display_url: str | None) -> None:
        if not server_id:
            raise ValueError("A successful upload must carry a server id.")
        self._transition_to(SlotStatus.SUCCESS)
        self.server_id = server_id
        self.display_url = display_url
        self.error_message = None

    def mark_failed(self, reason: str) -> None:
        self._transition_to(SlotStatus.FAILED)
        self.error_message = reason

    def mark_removed(self) -> None:
        self._transition_to(SlotStatus.REMOVED)
        self.server_id = None

    def _transition_to(self, new_status: SlotStatus) -> None:
        _state_machine.validate_transition(self.status, new_status)
        self.status = new_status
        self.updated_at = _utcnow()
