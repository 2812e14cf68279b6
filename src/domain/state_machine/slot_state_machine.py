from src.domain.enums.slot_status import SlotStatus


# Mapping of valid transitions: from_status -> set of allowed to_statuses
VALID_TRANSITIONS: dict[SlotStatus, frozenset[SlotStatus]] = {
    SlotStatus.PENDING: frozenset({SlotStatus.UPLOADING, SlotStatus.REMOVED}),
    SlotStatus.UPLOADING: frozenset(
        {SlotStatus.SUCCESS, SlotStatus.FAILED, SlotStatus.REMOVED}
    ),
    SlotStatus.SUCCESS: frozenset({SlotStatus.REMOVED}),
    SlotStatus.FAILED: frozenset({SlotStatus.REMOVED}),
    # Terminal: a removed slot never comes back
    SlotStatus.REMOVED: frozenset(),
}


class InvalidSlotTransitionError(Exception):
    """Raised when an image slot is moved to a status it cannot reach."""

    def __init__(self, from_status: SlotStatus, to_status: SlotStatus) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid slot transition from {from_status.value} to {to_status.value}. "
            f"Allowed transitions: {sorted(s.value for s in VALID_TRANSITIONS.get(from_status, frozenset()))}"
        )


class SlotStateMachine:
    """
    Validates upload lifecycle transitions for image slots.

    Stateless: call can_transition() or validate_transition() with explicit statuses.
    """

    def can_transition(self, from_status: SlotStatus, to_status: SlotStatus) -> bool:
        if from_status.is_terminal:
            return False
        return to_status in VALID_TRANSITIONS.get(from_status, frozenset())

    def validate_transition(self, from_status: SlotStatus, to_status: SlotStatus) -> None:
        """Raise InvalidSlotTransitionError if the transition is not permitted."""
        if not self.can_transition(from_status, to_status):
            raise InvalidSlotTransitionError(from_status, to_status)
