from uuid import UUID

from pydantic import BaseModel, Field

from src.application.use_cases.submit_listing import SubmissionOutcome
from src.domain.enums.draft_status import DraftStatus
from src.domain.enums.slot_status import SlotStatus
from src.domain.services.form_validator import ValidationIssue


class OpenDraftRequest(BaseModel):
    edit_item_id: int | None = Field(default=None, ge=1)


class UpdateFieldsRequest(BaseModel):
    title: str | None = None
    description: str | None = None
    price: str | None = None


class SlotResponse(BaseModel):
    local_key: int
    filename: str
    display_url: str | None = None
    status: SlotStatus
    server_id: str | None = None
    error_message: str | None = None


class DraftResponse(BaseModel):
    id: UUID
    status: DraftStatus
    title: str
    description: str
    price: str
    slots: list[SlotResponse]
    is_valid: bool
    is_submitting: bool
    last_error: str | None = None
    remaining_capacity: int
    title_remaining: int
    description_remaining: int
    editing_item_id: int | None = None
    created_listing_id: str | None = None


class AddImagesResponse(BaseModel):
    added: list[SlotResponse]
    rejected: list[str]
    capacity_exceeded: bool
    draft: DraftResponse


class SubmissionResponse(BaseModel):
    outcome: SubmissionOutcome
    listing_id: str | None = None
    issue: ValidationIssue | None = None
    message: str | None = None
