from enum import Enum


class DraftStatus(str, Enum):
    """Lifecycle of a listing draft inside one publish flow."""

    OPEN = "open"
    SUBMITTING = "submitting"
    SUBMITTED = "submitted"
    ABANDONED = "abandoned"

    @property
    def is_terminal(self) -> bool:
        """Terminal drafts accept no further mutation."""
        return self in (DraftStatus.SUBMITTED, DraftStatus.ABANDONED)
