from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum

from src.domain.entities.listing_draft import ListingDraft


class ValidationIssue(str, Enum):
    """Unmet publish conditions, in the order they are reported."""

    TITLE_EMPTY = "title_empty"
    DESCRIPTION_EMPTY = "description_empty"
    PRICE_EMPTY = "price_empty"
    PRICE_INVALID = "price_invalid"
    NO_IMAGES = "no_images"

    @property
    def message(self) -> str:
        return _MESSAGES[self]

    @property
    def is_field_issue(self) -> bool:
        return self is not ValidationIssue.NO_IMAGES


_MESSAGES: dict[ValidationIssue, str] = {
    ValidationIssue.TITLE_EMPTY: "Please enter a title.",
    ValidationIssue.DESCRIPTION_EMPTY: "Please describe the item.",
    ValidationIssue.PRICE_EMPTY: "Please enter a price.",
    ValidationIssue.PRICE_INVALID: "Please enter a valid price (0 or more).",
    ValidationIssue.NO_IMAGES: "Please upload at least one photo of the item.",
}


@dataclass(frozen=True)
class ValidationResult:
    issues: tuple[ValidationIssue, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.issues

    @property
    def first_issue(self) -> ValidationIssue | None:
        return self.issues[0] if self.issues else None


def parse_price(value: str) -> Decimal | None:
    """Return the price as a Decimal, or None if it is not a finite number >= 0."""
    try:
        price = Decimal(value.strip())
    except InvalidOperation:
        return None
    if not price.is_finite() or price < 0:
        return None
    return price


class FormValidator:
    """Side-effect free check of whether a draft may be published."""

    def validate(self, draft: ListingDraft) -> ValidationResult:
        issues: list[ValidationIssue] = []
        if not draft.title.strip():
            issues.append(ValidationIssue.TITLE_EMPTY)
        if not draft.description.strip():
            issues.append(ValidationIssue.DESCRIPTION_EMPTY)
        if not draft.price.strip():
            issues.append(ValidationIssue.PRICE_EMPTY)
        elif parse_price(draft.price) is None:
            issues.append(ValidationIssue.PRICE_INVALID)
        if draft.success_count < 1:
            issues.append(ValidationIssue.NO_IMAGES)
        return ValidationResult(issues=tuple(issues))

    def is_valid(self, draft: ListingDraft) -> bool:
        return self.validate(draft).is_valid
