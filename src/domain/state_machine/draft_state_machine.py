from src.domain.enums.draft_status import DraftStatus


VALID_TRANSITIONS: dict[DraftStatus, frozenset[DraftStatus]] = {
    DraftStatus.OPEN: frozenset({DraftStatus.SUBMITTING, DraftStatus.ABANDONED}),
    # A failed submission returns the draft to OPEN so the user can retry
    DraftStatus.SUBMITTING: frozenset(
        {DraftStatus.OPEN, DraftStatus.SUBMITTED, DraftStatus.ABANDONED}
    ),
    DraftStatus.SUBMITTED: frozenset(),
    DraftStatus.ABANDONED: frozenset(),
}


class InvalidDraftTransitionError(Exception):
    """Raised when a draft is moved to a status it cannot reach."""

    def __init__(self, from_status: DraftStatus, to_status: DraftStatus) -> None:
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid draft transition from {from_status.value} to {to_status.value}."
        )


class DraftStateMachine:
    """Validates publish-flow transitions for listing drafts."""

    def can_transition(self, from_status: DraftStatus, to_status: DraftStatus) -> bool:
        if from_status.is_terminal:
            return False
        return to_status in VALID_TRANSITIONS.get(from_status, frozenset())

    def validate_transition(self, from_status: DraftStatus, to_status: DraftStatus) -> None:
        if not self.can_transition(from_status, to_status):
            raise InvalidDraftTransitionError(from_status, to_status)
