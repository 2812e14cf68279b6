"""
Publish flow controller.

Owns one ListingDraft for the lifetime of a publish flow and is the only way
in for the UI: field edits, picked files, removed photos and the submit
button. Every mutation goes through the draft's mailbox; the UI only reads
the ViewState projection, either by polling `view_state` or by subscribing.
"""
import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import partial
from typing import Any
from uuid import UUID

import structlog

from src.application.interfaces.event_publisher import EventPublisher
from src.application.interfaces.identity_provider import IdentityProvider
from src.application.interfaces.listing_gateway import ListingGateway
from src.application.interfaces.upload_gateway import ImageUploadGateway
from src.application.sessions.draft_mailbox import DraftMailbox, MailboxClosedError
from src.application.sessions.upload_session import AddFilesResult, UploadSession
from src.application.use_cases.submit_listing import (
    PreparedSubmission,
    SubmissionOutcome,
    SubmitListing,
    SubmitListingOutput,
)
from src.config import settings
from src.domain.entities.image_slot import SelectedFile
from src.domain.entities.listing_draft import ListingDraft
from src.domain.enums.draft_status import DraftStatus
from src.domain.enums.slot_status import SlotStatus
from src.domain.services import field_input
from src.domain.services.form_validator import FormValidator

logger = structlog.get_logger(__name__)

ALREADY_SUBMITTING = "A submission is already in progress."
ALREADY_CLOSED = "This listing has already been published or discarded."
SUBMISSION_INTERRUPTED = "Publishing was interrupted, please try again."


@dataclass(frozen=True)
class SlotView:
    local_key: int
    filename: str
    display_url: str | None
    status: SlotStatus
    server_id: str | None
    error_message: str | None


@dataclass(frozen=True)
class ViewState:
    draft_id: UUID
    status: DraftStatus
    title: str
    description: str
    price: str
    slots: tuple[SlotView, ...]
    is_valid: bool
    is_submitting: bool
    last_error: str | None
    remaining_capacity: int
    title_remaining: int
    description_remaining: int
    editing_item_id: int | None = None
    created_listing_id: str | None = None


ViewListener = Callable[[ViewState], None]


class PublishFlowController:
    def __init__(
        self,
        draft: ListingDraft,
        upload_gateway: ImageUploadGateway,
        listing_gateway: ListingGateway,
        *,
        event_publisher: EventPublisher | None = None,
        validator: FormValidator | None = None,
        asset_base_url: str = settings.asset_base_url,
        title_max_length: int = settings.title_max_length,
        description_max_length: int = settings.description_max_length,
    ) -> None:
        self._draft = draft
        self._validator = validator or FormValidator()
        self._submit = SubmitListing(listing_gateway, validator=self._validator)
        self._publisher = event_publisher
        self._title_max_length = title_max_length
        self._description_max_length = description_max_length

        self._mailbox = DraftMailbox(name=str(draft.id))
        self._mailbox.subscribe(self._on_applied)
        self._uploads = UploadSession(
            draft, upload_gateway, self._mailbox, asset_base_url=asset_base_url
        )
        self._listeners: list[ViewListener] = []
        self._publish_tasks: set[asyncio.Task[None]] = set()

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def open(
        cls,
        identity: IdentityProvider,
        upload_gateway: ImageUploadGateway,
        listing_gateway: ListingGateway,
        **kwargs: Any,
    ) -> "PublishFlowController":
        """Start a new publish flow; raises MissingSellerError when nobody is logged in."""
        draft = ListingDraft.open(identity.get_seller_id(), max_slots=settings.max_slots)
        logger.info("publish_flow_opened", draft_id=str(draft.id), seller_id=draft.seller_id)
        return cls(draft, upload_gateway, listing_gateway, **kwargs)

    @classmethod
    async def open_for_edit(
        cls,
        item_id: int,
        identity: IdentityProvider,
        upload_gateway: ImageUploadGateway,
        listing_gateway: ListingGateway,
        **kwargs: Any,
    ) -> "PublishFlowController":
        """Start a flow pre-filled from a published listing."""
        existing = await listing_gateway.get_listing(item_id)
        images = [
            (image_id, existing.image_urls[index] if index < len(existing.image_urls) else None)
            for index, image_id in enumerate(existing.image_ids)
        ]
        draft = ListingDraft.for_existing_listing(
            identity.get_seller_id(),
            item_id=existing.id,
            title=existing.title,
            description=existing.description,
            price=existing.price,
            images=images,
            max_slots=settings.max_slots,
        )
        logger.info(
            "publish_flow_opened_for_edit",
            draft_id=str(draft.id),
            item_id=item_id,
            image_count=len(draft.slots),
        )
        return cls(draft, upload_gateway, listing_gateway, **kwargs)

    # -------------------------------------------------------------------------
    # Read side
    # -------------------------------------------------------------------------

    @property
    def draft_id(self) -> UUID:
        return self._draft.id

    @property
    def uploads_in_flight(self) -> int:
        return self._uploads.in_flight

    @property
    def view_state(self) -> ViewState:
        draft = self._draft
        return ViewState(
            draft_id=draft.id,
            status=draft.status,
            title=draft.title,
            description=draft.description,
            price=draft.price,
            slots=tuple(
                SlotView(
                    local_key=slot.local_key,
                    filename=slot.filename,
                    display_url=slot.display_url,
                    status=slot.status,
                    server_id=slot.server_id,
                    error_message=slot.error_message,
                )
                for slot in draft.slots
            ),
            is_valid=self._validator.is_valid(draft),
            is_submitting=draft.status is DraftStatus.SUBMITTING,
            last_error=draft.last_error,
            remaining_capacity=draft.remaining_capacity,
            title_remaining=field_input.remaining(draft.title, self._title_max_length),
            description_remaining=field_input.remaining(
                draft.description, self._description_max_length
            ),
            editing_item_id=draft.editing_item_id,
            created_listing_id=draft.created_listing_id,
        )

    def subscribe(self, listener: ViewListener) -> None:
        self._listeners.append(listener)

    # -------------------------------------------------------------------------
    # UI entry points
    # -------------------------------------------------------------------------

    async def on_field_change(self, field: str, value: str) -> ViewState:
        normalised = self._normalise(field, value)
        await self._mailbox.post(partial(self._draft.update_field, field, normalised))
        return self.view_state

    async def on_files_picked(self, files: Sequence[SelectedFile]) -> AddFilesResult:
        return await self._uploads.add_files(files)

    async def on_file_removed(self, local_key: int) -> bool:
        return await self._uploads.remove_file(local_key) is not None

    async def on_submit_pressed(self) -> SubmitListingOutput:
        prepared = await self._mailbox.post(self._prepare_submission)
        if isinstance(prepared, SubmitListingOutput):
            return prepared

        try:
            output = await self._submit.send(prepared)
        except BaseException:
            logger.warning("listing_submission_interrupted", draft_id=str(self._draft.id))
            interrupted = SubmitListingOutput(
                outcome=SubmissionOutcome.SUBMISSION_FAILURE, message=SUBMISSION_INTERRUPTED
            )
            # Shielded so a second cancellation cannot leave the draft SUBMITTING
            await asyncio.shield(self._apply_outcome(interrupted))
            raise

        await self._apply_outcome(output)
        return output

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def wait_for_uploads(self) -> None:
        await self._uploads.wait_idle()

    async def close(self) -> None:
        """Abandon the flow: stop uploads, close the draft, stop the mailbox."""
        await self._uploads.aclose()
        if not self._mailbox.closed:
            await self._mailbox.post(self._draft.abandon)
        await self._mailbox.aclose()
        if self._publish_tasks:
            await asyncio.gather(*list(self._publish_tasks), return_exceptions=True)
        logger.info(
            "publish_flow_closed", draft_id=str(self._draft.id), status=self._draft.status.value
        )

    # -------------------------------------------------------------------------
    # Commands (run inside the mailbox)
    # -------------------------------------------------------------------------

    def _prepare_submission(self) -> PreparedSubmission | SubmitListingOutput:
        draft = self._draft
        if draft.status is DraftStatus.SUBMITTING:
            return SubmitListingOutput(
                outcome=SubmissionOutcome.SUBMISSION_FAILURE, message=ALREADY_SUBMITTING
            )
        if draft.status.is_terminal:
            return SubmitListingOutput(
                outcome=SubmissionOutcome.SUBMISSION_FAILURE, message=ALREADY_CLOSED
            )

        prepared = self._submit.prepare(draft)
        if isinstance(prepared, SubmitListingOutput):
            draft.record_error(prepared.message)
            logger.info(
                "listing_submission_blocked",
                draft_id=str(draft.id),
                outcome=prepared.outcome.value,
                issue=prepared.issue.value if prepared.issue else None,
            )
            return prepared

        draft.begin_submission()
        return prepared

    async def _apply_outcome(self, output: SubmitListingOutput) -> None:
        try:
            await self._mailbox.post(partial(self._finish_submission, output))
        except MailboxClosedError:
            logger.warning(
                "submission_finished_after_close",
                draft_id=str(self._draft.id),
                outcome=output.outcome.value,
            )

    def _finish_submission(self, output: SubmitListingOutput) -> None:
        if self._draft.status is not DraftStatus.SUBMITTING:
            # Abandoned while the request was in flight
            return
        if output.succeeded and output.listing_id:
            self._draft.complete_submission(output.listing_id)
        else:
            self._draft.fail_submission(output.message or "Publishing failed.")

    def _normalise(self, field: str, value: str) -> str:
        if field == "title":
            return field_input.clip(value, self._title_max_length)
        if field == "description":
            return field_input.clip(value, self._description_max_length)
        if field == "price":
            return field_input.sanitize_price(value)
        return value

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    def _on_applied(self) -> None:
        events = self._draft.collect_events()
        if events and self._publisher is not None:
            task = asyncio.get_running_loop().create_task(self._publisher.publish_many(events))
            self._publish_tasks.add(task)
            task.add_done_callback(self._publish_tasks.discard)

        if self._listeners:
            state = self.view_state
            for listener in list(self._listeners):
                listener(state)
