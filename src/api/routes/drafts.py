import structlog
from fastapi import APIRouter, Depends, File, HTTPException, Response, UploadFile, status

from src.api.dependencies import (
    get_draft_store,
    get_event_publisher,
    get_flow,
    get_identity_provider,
    get_listing_gateway,
    get_upload_gateway,
)
from src.api.schemas.draft_schemas import (
    AddImagesResponse,
    DraftResponse,
    OpenDraftRequest,
    SlotResponse,
    SubmissionResponse,
    UpdateFieldsRequest,
)
from src.application.controllers.publish_flow import (
    ALREADY_CLOSED,
    ALREADY_SUBMITTING,
    PublishFlowController,
    SlotView,
    ViewState,
)
from src.application.interfaces.draft_store import DraftStore
from src.application.interfaces.event_publisher import EventPublisher
from src.application.interfaces.identity_provider import IdentityProvider
from src.application.interfaces.listing_gateway import ListingGateway, ListingGatewayError
from src.application.interfaces.upload_gateway import ImageUploadGateway
from src.application.sessions.draft_mailbox import MailboxClosedError
from src.application.use_cases.submit_listing import SubmissionOutcome
from src.domain.entities.image_slot import ImageSlot, SelectedFile
from src.domain.entities.listing_draft import DraftClosedError, MissingSellerError

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/drafts", tags=["drafts"])


def _slot_to_response(slot: ImageSlot | SlotView) -> SlotResponse:
    return SlotResponse(
        local_key=slot.local_key,
        filename=slot.filename,
        display_url=slot.display_url,
        status=slot.status,
        server_id=slot.server_id,
        error_message=slot.error_message,
    )


def _view_to_response(view: ViewState) -> DraftResponse:
    return DraftResponse(
        id=view.draft_id,
        status=view.status,
        title=view.title,
        description=view.description,
        price=view.price,
        slots=[_slot_to_response(slot) for slot in view.slots],
        is_valid=view.is_valid,
        is_submitting=view.is_submitting,
        last_error=view.last_error,
        remaining_capacity=view.remaining_capacity,
        title_remaining=view.title_remaining,
        description_remaining=view.description_remaining,
        editing_item_id=view.editing_item_id,
        created_listing_id=view.created_listing_id,
    )


def _closed(exc: DraftClosedError | MailboxClosedError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


@router.post("", status_code=status.HTTP_201_CREATED, response_model=DraftResponse)
async def open_draft(
    payload: OpenDraftRequest | None = None,
    identity: IdentityProvider = Depends(get_identity_provider),
    upload_gateway: ImageUploadGateway = Depends(get_upload_gateway),
    listing_gateway: ListingGateway = Depends(get_listing_gateway),
    event_publisher: EventPublisher = Depends(get_event_publisher),
    store: DraftStore = Depends(get_draft_store),
) -> DraftResponse:
    """Open a publish flow for the seller named in X-Seller-Id."""
    edit_item_id = payload.edit_item_id if payload else None
    try:
        if edit_item_id is not None:
            flow = await PublishFlowController.open_for_edit(
                edit_item_id,
                identity,
                upload_gateway,
                listing_gateway,
                event_publisher=event_publisher,
            )
        else:
            flow = PublishFlowController.open(
                identity, upload_gateway, listing_gateway, event_publisher=event_publisher
            )
    except MissingSellerError as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(exc))
    except ListingGatewayError as exc:
        logger.warning("edit_listing_load_failed", item_id=edit_item_id, error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=exc.server_message or "Could not load the listing.",
        )

    await store.add(flow)
    return _view_to_response(flow.view_state)


@router.get("/{draft_id}", response_model=DraftResponse)
async def get_draft(flow: PublishFlowController = Depends(get_flow)) -> DraftResponse:
    return _view_to_response(flow.view_state)


@router.patch("/{draft_id}", response_model=DraftResponse)
async def update_fields(
    payload: UpdateFieldsRequest,
    flow: PublishFlowController = Depends(get_flow),
) -> DraftResponse:
    try:
        for field, value in payload.model_dump(exclude_none=True).items():
            await flow.on_field_change(field, value)
    except (DraftClosedError, MailboxClosedError) as exc:
        raise _closed(exc)
    return _view_to_response(flow.view_state)


@router.post(
    "/{draft_id}/images",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=AddImagesResponse,
)
async def add_images(
    files: list[UploadFile] = File(...),
    flow: PublishFlowController = Depends(get_flow),
) -> AddImagesResponse:
    """Attach picked photos; uploads continue in the background."""
    selection = [
        SelectedFile(
            filename=upload.filename or "image",
            content=await upload.read(),
            content_type=upload.content_type or "application/octet-stream",
        )
        for upload in files
    ]
    try:
        result = await flow.on_files_picked(selection)
    except (DraftClosedError, MailboxClosedError) as exc:
        raise _closed(exc)

    return AddImagesResponse(
        added=[_slot_to_response(slot) for slot in result.added],
        rejected=[file.filename for file in result.rejected],
        capacity_exceeded=result.capacity_exceeded,
        draft=_view_to_response(flow.view_state),
    )


@router.delete("/{draft_id}/images/{local_key}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_image(
    local_key: int,
    flow: PublishFlowController = Depends(get_flow),
) -> Response:
    try:
        removed = await flow.on_file_removed(local_key)
    except (DraftClosedError, MailboxClosedError) as exc:
        raise _closed(exc)
    if not removed:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{draft_id}/submit",
    status_code=status.HTTP_201_CREATED,
    response_model=SubmissionResponse,
)
async def submit_draft(
    flow: PublishFlowController = Depends(get_flow),
    store: DraftStore = Depends(get_draft_store),
) -> SubmissionResponse:
    try:
        output = await flow.on_submit_pressed()
    except MailboxClosedError as exc:
        raise _closed(exc)
    response = SubmissionResponse(
        outcome=output.outcome,
        listing_id=output.listing_id,
        issue=output.issue,
        message=output.message,
    )

    if output.succeeded:
        # The flow is over once the listing exists
        await store.remove(flow.draft_id)
        await flow.close()
        return response

    if output.outcome in (SubmissionOutcome.VALIDATION_FAILURE, SubmissionOutcome.NO_IMAGES_FAILURE):
        code = status.HTTP_422_UNPROCESSABLE_ENTITY
    elif output.message in (ALREADY_SUBMITTING, ALREADY_CLOSED):
        code = status.HTTP_409_CONFLICT
    else:
        code = status.HTTP_502_BAD_GATEWAY
    raise HTTPException(status_code=code, detail=response.model_dump(mode="json"))


@router.delete("/{draft_id}", status_code=status.HTTP_204_NO_CONTENT)
async def abandon_draft(
    flow: PublishFlowController = Depends(get_flow),
    store: DraftStore = Depends(get_draft_store),
) -> Response:
    await store.remove(flow.draft_id)
    await flow.close()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
