from dataclasses import dataclass
from enum import Enum
from uuid import UUID

import structlog

from src.application.interfaces.listing_gateway import (
    ListingGateway,
    ListingGatewayError,
    ListingPayload,
)
from src.domain.entities.listing_draft import ListingDraft
from src.domain.services.form_validator import FormValidator, ValidationIssue
from src.domain.services.identifier_reconciler import IdentifierReconciler

logger = structlog.get_logger(__name__)

GENERIC_SUBMISSION_FAILURE = "Publishing failed, please try again."
MISSING_ID_FAILURE = "The marketplace did not confirm the listing."


class SubmissionOutcome(str, Enum):
    SUCCESS = "success"
    VALIDATION_FAILURE = "validation_failure"
    NO_IMAGES_FAILURE = "no_images_failure"
    SUBMISSION_FAILURE = "submission_failure"


@dataclass(frozen=True)
class SubmitListingOutput:
    outcome: SubmissionOutcome
    listing_id: str | None = None
    issue: ValidationIssue | None = None
    message: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is SubmissionOutcome.SUCCESS


@dataclass(frozen=True)
class PreparedSubmission:
    """A validated snapshot of the draft, ready to be sent."""

    draft_id: UUID
    payload: ListingPayload
    editing_item_id: int | None = None


class SubmitListing:
    """
    Use case: publish a draft as a second-hand listing.

    prepare() validates the draft and freezes the payload without touching
    the network; send() makes the single create (or update) call and turns
    the response into an outcome. Neither step mutates the draft: the caller
    owns it and applies the outcome.
    """

    def __init__(
        self,
        listing_gateway: ListingGateway,
        validator: FormValidator | None = None,
        reconciler: IdentifierReconciler | None = None,
    ) -> None:
        self._listing_gateway = listing_gateway
        self._validator = validator or FormValidator()
        self._reconciler = reconciler or IdentifierReconciler()

    def prepare(self, draft: ListingDraft) -> PreparedSubmission | SubmitListingOutput:
        validation = self._validator.validate(draft)
        if not validation.is_valid:
            field_issues = [issue for issue in validation.issues if issue.is_field_issue]
            if field_issues:
                return SubmitListingOutput(
                    outcome=SubmissionOutcome.VALIDATION_FAILURE,
                    issue=field_issues[0],
                    message=field_issues[0].message,
                )
            return _no_images()

        identifiers = self._reconciler.for_draft(draft)
        if not identifiers:
            return _no_images()

        payload = ListingPayload(
            seller_id=draft.seller_id,
            title=draft.title.strip(),
            description=draft.description.strip(),
            price=draft.price.strip(),
            image=identifiers[0],
            images=identifiers,
        )
        return PreparedSubmission(
            draft_id=draft.id, payload=payload, editing_item_id=draft.editing_item_id
        )

    async def send(self, prepared: PreparedSubmission) -> SubmitListingOutput:
        log = logger.bind(draft_id=str(prepared.draft_id))
        try:
            if prepared.editing_item_id is not None:
                listing_id = await self._listing_gateway.update_listing(
                    prepared.payload.seller_id, prepared.editing_item_id, prepared.payload
                )
            else:
                listing_id = await self._listing_gateway.create_listing(prepared.payload)
        except ListingGatewayError as exc:
            log.warning("listing_submission_rejected", status_code=exc.status_code, error=str(exc))
            return SubmitListingOutput(
                outcome=SubmissionOutcome.SUBMISSION_FAILURE,
                message=exc.server_message or GENERIC_SUBMISSION_FAILURE,
            )
        except Exception:
            log.exception("listing_submission_crashed")
            return SubmitListingOutput(
                outcome=SubmissionOutcome.SUBMISSION_FAILURE, message=GENERIC_SUBMISSION_FAILURE
            )

        if not listing_id:
            log.warning("listing_submission_without_id")
            return SubmitListingOutput(
                outcome=SubmissionOutcome.SUBMISSION_FAILURE, message=MISSING_ID_FAILURE
            )

        log.info(
            "listing_submitted",
            listing_id=listing_id,
            image_count=len(prepared.payload.images),
            is_update=prepared.editing_item_id is not None,
        )
        return SubmitListingOutput(outcome=SubmissionOutcome.SUCCESS, listing_id=listing_id)

    async def execute(self, draft: ListingDraft) -> SubmitListingOutput:
        prepared = self.prepare(draft)
        if isinstance(prepared, SubmitListingOutput):
            return prepared
        return await self.send(prepared)


def _no_images() -> SubmitListingOutput:
    return SubmitListingOutput(
        outcome=SubmissionOutcome.NO_IMAGES_FAILURE,
        issue=ValidationIssue.NO_IMAGES,
        message=ValidationIssue.NO_IMAGES.message,
    )
