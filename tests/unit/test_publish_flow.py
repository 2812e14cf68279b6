"""Unit tests for PublishFlowController, driven the way the UI drives it."""
import asyncio
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.application.controllers.publish_flow import (
    ALREADY_CLOSED,
    ALREADY_SUBMITTING,
    SUBMISSION_INTERRUPTED,
    PublishFlowController,
    ViewState,
)
from src.application.interfaces.listing_gateway import ExistingListing, ListingGatewayError
from src.application.interfaces.upload_gateway import ImageUploadGateway, UploadedImage, UploadError
from src.application.use_cases.submit_listing import SubmissionOutcome
from src.domain.entities.image_slot import SelectedFile
from src.domain.entities.listing_draft import DraftClosedError, MissingSellerError
from src.domain.enums.draft_status import DraftStatus
from src.domain.enums.slot_status import SlotStatus
from src.domain.events.domain_events import DraftAbandonedEvent, ListingSubmittedEvent
from src.domain.services.form_validator import ValidationIssue
from src.infrastructure.identity.static_identity_provider import StaticIdentityProvider


class InstantUploadGateway(ImageUploadGateway):
    """Stores everything at once, except files whose name starts with "broken"."""

    async def upload(self, file: SelectedFile) -> UploadedImage:
        if file.filename.startswith("broken"):
            raise UploadError("HTTP_500", "Server error")
        return UploadedImage(server_id=f"srv-{file.filename}", filename=file.filename)


class StalledUploadGateway(ImageUploadGateway):
    async def upload(self, file: SelectedFile) -> UploadedImage:
        await asyncio.Event().wait()
        raise AssertionError("unreachable")


def _make_listing_gateway(listing_id: str | None = "listing-1") -> MagicMock:
    gateway = MagicMock()
    gateway.create_listing = AsyncMock(return_value=listing_id)
    gateway.update_listing = AsyncMock(return_value=listing_id)
    gateway.get_listing = AsyncMock()
    return gateway


def _files(*names: str) -> list[SelectedFile]:
    return [SelectedFile(filename=name, content=b"\xff\xd8", content_type="image/jpeg") for name in names]


def _open(
    listing_gateway: MagicMock | None = None,
    upload_gateway: ImageUploadGateway | None = None,
    **kwargs: Any,
) -> PublishFlowController:
    return PublishFlowController.open(
        StaticIdentityProvider("seller-42"),
        upload_gateway or InstantUploadGateway(),
        listing_gateway or _make_listing_gateway(),
        asset_base_url="https://cdn.test/",
        **kwargs,
    )


async def _fill(flow: PublishFlowController) -> None:
    await flow.on_field_change("title", "Road bike")
    await flow.on_field_change("description", "Blue, 54cm frame")
    await flow.on_field_change("price", "120")


async def _until(predicate: Callable[[], bool], attempts: int = 200) -> None:
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition was never reached")


class TestOpen:
    def test_requires_logged_in_seller(self) -> None:
        with pytest.raises(MissingSellerError):
            PublishFlowController.open(
                StaticIdentityProvider(None), InstantUploadGateway(), _make_listing_gateway()
            )

    @pytest.mark.asyncio
    async def test_initial_view_state(self) -> None:
        flow = _open()
        view = flow.view_state

        assert view.status == DraftStatus.OPEN
        assert view.slots == ()
        assert view.is_valid is False
        assert view.remaining_capacity == 6
        assert view.title_remaining == 30
        assert view.description_remaining == 500
        await flow.close()

    @pytest.mark.asyncio
    async def test_open_for_edit_seeds_existing_images(self) -> None:
        listing_gateway = _make_listing_gateway("7")
        listing_gateway.get_listing = AsyncMock(
            return_value=ExistingListing(
                id=7,
                seller_id="seller-42",
                title="Road bike",
                description="Blue",
                price="120",
                image_ids=["srv-a", "srv-b"],
                image_urls=["https://cdn.test/a.jpg"],
            )
        )
        flow = await PublishFlowController.open_for_edit(
            7, StaticIdentityProvider("seller-42"), InstantUploadGateway(), listing_gateway
        )

        view = flow.view_state
        assert view.editing_item_id == 7
        assert [slot.server_id for slot in view.slots] == ["srv-a", "srv-b"]
        assert [slot.display_url for slot in view.slots] == ["https://cdn.test/a.jpg", None]
        assert view.is_valid is True

        output = await flow.on_submit_pressed()
        assert output.listing_id == "7"
        listing_gateway.update_listing.assert_awaited_once()
        listing_gateway.create_listing.assert_not_called()
        await flow.close()

    @pytest.mark.asyncio
    async def test_free_listing_opened_for_edit_is_publishable(self) -> None:
        listing_gateway = _make_listing_gateway("8")
        listing_gateway.get_listing = AsyncMock(
            return_value=ExistingListing(
                id=8,
                seller_id="seller-42",
                title="Old chair",
                description="Free to collect",
                price="0",
                image_ids=["srv-a", "srv-b"],
                image_urls=[None, "https://cdn.test/b.jpg"],
            )
        )
        flow = await PublishFlowController.open_for_edit(
            8, StaticIdentityProvider("seller-42"), InstantUploadGateway(), listing_gateway
        )

        view = flow.view_state
        assert [slot.display_url for slot in view.slots] == [None, "https://cdn.test/b.jpg"]
        assert view.price == "0"
        assert view.is_valid is True
        await flow.close()


class TestFieldChanges:
    @pytest.mark.asyncio
    async def test_title_and_description_are_clipped(self) -> None:
        flow = _open()
        view = await flow.on_field_change("title", "x" * 45)
        assert view.title == "x" * 30
        assert view.title_remaining == 0

        view = await flow.on_field_change("description", "y" * 600)
        assert len(view.description) == 500
        await flow.close()

    @pytest.mark.asyncio
    async def test_price_is_sanitised(self) -> None:
        flow = _open()
        view = await flow.on_field_change("price", "007.129")
        assert view.price == "7.12"
        await flow.close()

    @pytest.mark.asyncio
    async def test_subscribers_see_every_change(self) -> None:
        flow = _open()
        seen: list[ViewState] = []
        flow.subscribe(seen.append)

        await flow.on_field_change("title", "Bike")

        assert seen[-1].title == "Bike"
        await flow.close()


class TestImages:
    @pytest.mark.asyncio
    async def test_uploads_complete_into_view_state(self) -> None:
        flow = _open()
        result = await flow.on_files_picked(_files("1.jpg", "broken.jpg"))
        await flow.wait_for_uploads()

        assert len(result.added) == 2
        slots = flow.view_state.slots
        assert [slot.status for slot in slots] == [SlotStatus.SUCCESS, SlotStatus.FAILED]
        assert slots[0].display_url == "https://cdn.test/1.jpg"
        assert slots[1].error_message == "Server error"
        await flow.close()

    @pytest.mark.asyncio
    async def test_remove_unknown_image(self) -> None:
        flow = _open()
        assert await flow.on_file_removed(999) is False
        await flow.close()

    @pytest.mark.asyncio
    async def test_remove_frees_capacity(self) -> None:
        flow = _open()
        result = await flow.on_files_picked(_files("1.jpg"))
        await flow.wait_for_uploads()

        assert await flow.on_file_removed(result.added[0].local_key) is True
        assert flow.view_state.remaining_capacity == 6
        assert flow.view_state.slots == ()
        await flow.close()


class TestSubmit:
    @pytest.mark.asyncio
    async def test_success_closes_the_draft(self) -> None:
        listing_gateway = _make_listing_gateway("listing-9")
        flow = _open(listing_gateway)
        await _fill(flow)
        await flow.on_files_picked(_files("1.jpg", "broken.jpg", "3.jpg"))
        await flow.wait_for_uploads()

        output = await flow.on_submit_pressed()

        assert output.outcome == SubmissionOutcome.SUCCESS
        payload = listing_gateway.create_listing.await_args.args[0]
        assert payload.images == ["srv-1.jpg", "srv-3.jpg"]
        assert payload.image == "srv-1.jpg"
        view = flow.view_state
        assert view.status == DraftStatus.SUBMITTED
        assert view.created_listing_id == "listing-9"
        with pytest.raises(DraftClosedError):
            await flow.on_field_change("title", "changed")

        again = await flow.on_submit_pressed()
        assert again.message == ALREADY_CLOSED
        listing_gateway.create_listing.assert_awaited_once()
        await flow.close()

    @pytest.mark.asyncio
    async def test_no_successful_images_blocks_submission(self) -> None:
        listing_gateway = _make_listing_gateway()
        flow = _open(listing_gateway)
        await _fill(flow)
        await flow.on_files_picked(_files("broken-1.jpg", "broken-2.jpg"))
        await flow.wait_for_uploads()

        output = await flow.on_submit_pressed()

        assert output.outcome == SubmissionOutcome.NO_IMAGES_FAILURE
        assert flow.view_state.last_error == ValidationIssue.NO_IMAGES.message
        assert flow.view_state.status == DraftStatus.OPEN
        listing_gateway.create_listing.assert_not_called()
        await flow.close()

    @pytest.mark.asyncio
    async def test_rejected_submission_keeps_draft_for_retry(self) -> None:
        listing_gateway = _make_listing_gateway()
        listing_gateway.create_listing = AsyncMock(
            side_effect=[ListingGatewayError("HTTP_500", status_code=500, server_message="Try later"), "listing-2"]
        )
        flow = _open(listing_gateway)
        await _fill(flow)
        await flow.on_files_picked(_files("1.jpg"))
        await flow.wait_for_uploads()

        first = await flow.on_submit_pressed()
        assert first.outcome == SubmissionOutcome.SUBMISSION_FAILURE
        assert flow.view_state.status == DraftStatus.OPEN
        assert flow.view_state.last_error == "Try later"
        assert flow.view_state.title == "Road bike"

        second = await flow.on_submit_pressed()
        assert second.listing_id == "listing-2"
        assert flow.view_state.last_error is None
        await flow.close()

    @pytest.mark.asyncio
    async def test_second_press_while_sending_is_refused(self) -> None:
        release = asyncio.Event()

        async def slow_create(payload):  # type: ignore[no-untyped-def]
            await release.wait()
            return "listing-1"

        listing_gateway = _make_listing_gateway()
        listing_gateway.create_listing = AsyncMock(side_effect=slow_create)
        flow = _open(listing_gateway)
        await _fill(flow)
        await flow.on_files_picked(_files("1.jpg"))
        await flow.wait_for_uploads()

        first = asyncio.create_task(flow.on_submit_pressed())
        await _until(lambda: flow.view_state.is_submitting)

        second = await flow.on_submit_pressed()
        assert second.outcome == SubmissionOutcome.SUBMISSION_FAILURE
        assert second.message == ALREADY_SUBMITTING

        release.set()
        assert (await first).succeeded
        listing_gateway.create_listing.assert_awaited_once()
        await flow.close()

    @pytest.mark.asyncio
    async def test_close_while_sending_leaves_draft_abandoned(self) -> None:
        release = asyncio.Event()

        async def slow_create(payload):  # type: ignore[no-untyped-def]
            await release.wait()
            return "listing-1"

        listing_gateway = _make_listing_gateway()
        listing_gateway.create_listing = AsyncMock(side_effect=slow_create)
        flow = _open(listing_gateway)
        await _fill(flow)
        await flow.on_files_picked(_files("1.jpg"))
        await flow.wait_for_uploads()

        pending = asyncio.create_task(flow.on_submit_pressed())
        await _until(lambda: flow.view_state.is_submitting)
        await flow.close()
        release.set()

        assert (await pending).succeeded
        assert flow.view_state.status == DraftStatus.ABANDONED


    @pytest.mark.asyncio
    async def test_cancelled_submission_reopens_draft_for_retry(self) -> None:
        async def hanging_create(payload):  # type: ignore[no-untyped-def]
            await asyncio.Event().wait()

        listing_gateway = _make_listing_gateway()
        listing_gateway.create_listing = AsyncMock(side_effect=hanging_create)
        flow = _open(listing_gateway)
        await _fill(flow)
        await flow.on_files_picked(_files("1.jpg"))
        await flow.wait_for_uploads()

        pending = asyncio.create_task(flow.on_submit_pressed())
        await _until(lambda: flow.view_state.is_submitting)
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending

        view = flow.view_state
        assert view.status == DraftStatus.OPEN
        assert view.last_error == SUBMISSION_INTERRUPTED
        assert view.title == "Road bike"

        listing_gateway.create_listing = AsyncMock(return_value="listing-3")
        retry = await flow.on_submit_pressed()
        assert retry.outcome == SubmissionOutcome.SUCCESS
        assert retry.listing_id == "listing-3"
        await flow.close()


class TestClose:
    @pytest.mark.asyncio
    async def test_cancels_uploads_and_abandons(self) -> None:
        flow = _open(upload_gateway=StalledUploadGateway())
        await flow.on_files_picked(_files("1.jpg"))
        await _until(lambda: flow.uploads_in_flight == 1)

        await flow.close()

        assert flow.uploads_in_flight == 0
        assert flow.view_state.status == DraftStatus.ABANDONED

    @pytest.mark.asyncio
    async def test_events_are_published(self) -> None:
        publisher = MagicMock()
        publisher.publish_many = AsyncMock()
        flow = _open(event_publisher=publisher)
        await _fill(flow)
        await flow.on_files_picked(_files("1.jpg"))
        await flow.wait_for_uploads()
        await flow.on_submit_pressed()
        await flow.close()

        published = [event for call in publisher.publish_many.await_args_list for event in call.args[0]]
        assert any(isinstance(event, ListingSubmittedEvent) for event in published)

    @pytest.mark.asyncio
    async def test_abandon_event_published_on_close(self) -> None:
        publisher = MagicMock()
        publisher.publish_many = AsyncMock()
        flow = _open(event_publisher=publisher)

        await flow.close()

        published = [event for call in publisher.publish_many.await_args_list for event in call.args[0]]
        assert any(isinstance(event, DraftAbandonedEvent) for event in published)

    @pytest.mark.asyncio
    async def test_close_twice(self) -> None:
        flow = _open()
        await flow.close()
        await flow.close()
        assert flow.view_state.status == DraftStatus.ABANDONED
