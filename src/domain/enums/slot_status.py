from enum import Enum


class SlotStatus(str, Enum):
    """Upload lifecycle of a single image slot."""

    PENDING = "pending"
    UPLOADING = "uploading"
    SUCCESS = "success"
    FAILED = "failed"
    REMOVED = "removed"

    @property
    def is_terminal(self) -> bool:
        """Removed slots cannot be transitioned out of."""
        return self is SlotStatus.REMOVED
