import asyncio
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass, field
from functools import partial
from typing import Any

import structlog

from src.application.interfaces.upload_gateway import (
    ImageUploadGateway,
    UploadedImage,
    UploadError,
)
from src.application.sessions.draft_mailbox import DraftMailbox, MailboxClosedError
from src.config import settings
from src.domain.entities.image_slot import ImageSlot, SelectedFile
from src.domain.entities.listing_draft import CapacityExceededError, ListingDraft

logger = structlog.get_logger(__name__)

GENERIC_UPLOAD_FAILURE = "Upload failed, please try again later."


@dataclass
class AddFilesResult:
    added: list[ImageSlot] = field(default_factory=list)
    rejected: list[SelectedFile] = field(default_factory=list)

    @property
    def capacity_exceeded(self) -> bool:
        return bool(self.rejected)


class UploadSession:
    """
    Drives the uploads of one draft's image slots.

    Each accepted file gets its own upload task; the result of every task is
    posted back through the draft mailbox, so completions are applied one at
    a time no matter in which order the network returns them. Removing a slot
    leaves its request running; the late result finds no slot and is dropped.
    """

    def __init__(
        self,
        draft: ListingDraft,
        gateway: ImageUploadGateway,
        mailbox: DraftMailbox,
        *,
        asset_base_url: str = settings.asset_base_url,
    ) -> None:
        self._draft = draft
        self._gateway = gateway
        self._mailbox = mailbox
        self._asset_base_url = asset_base_url
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    async def add_files(self, selection: Sequence[SelectedFile]) -> AddFilesResult:
        return await self._mailbox.post(partial(self._accept_files, list(selection)))

    async def remove_file(self, local_key: int) -> ImageSlot | None:
        return await self._mailbox.post(partial(self._remove, local_key))

    async def on_upload_success(self, local_key: int, uploaded: UploadedImage) -> bool:
        display_url = f"{self._asset_base_url}{uploaded.filename}"
        return await self._mailbox.post(
            partial(self._draft.record_upload_success, local_key, uploaded.server_id, display_url)
        )

    async def on_upload_failure(self, local_key: int, reason: str) -> bool:
        return await self._mailbox.post(
            partial(self._draft.record_upload_failure, local_key, reason)
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def wait_idle(self) -> None:
        """Wait until every started upload has finished and its result is applied."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Commands (run inside the mailbox)
    # -------------------------------------------------------------------------

    def _accept_files(self, files: list[SelectedFile]) -> AddFilesResult:
        result = AddFilesResult()
        for file in files:
            try:
                slot = self._draft.add_slot(file)
            except CapacityExceededError:
                result.rejected.append(file)
                continue
            slot.mark_uploading()
            self._start_upload(slot.local_key, file)
            result.added.append(slot)

        if result.rejected:
            logger.warning(
                "image_capacity_exceeded",
                draft_id=str(self._draft.id),
                rejected=len(result.rejected),
                max_slots=self._draft.max_slots,
            )
            self._draft.record_error(
                f"At most {self._draft.max_slots} images per listing; "
                f"{len(result.rejected)} file(s) were not added."
            )
        return result

    def _remove(self, local_key: int) -> ImageSlot | None:
        slot = self._draft.remove_slot(local_key)
        if slot is not None:
            logger.info("image_slot_removed", draft_id=str(self._draft.id), local_key=local_key)
        return slot

    # -------------------------------------------------------------------------
    # Upload tasks
    # -------------------------------------------------------------------------

    def _start_upload(self, local_key: int, file: SelectedFile) -> None:
        task = asyncio.get_running_loop().create_task(self._upload(local_key, file))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _upload(self, local_key: int, file: SelectedFile) -> None:
        log = logger.bind(draft_id=str(self._draft.id), local_key=local_key)
        try:
            uploaded = await self._gateway.upload(file)
        except UploadError as exc:
            log.warning(
                "image_upload_failed", code=exc.code, retriable=exc.retriable, reason=exc.message
            )
            await self._deliver(self.on_upload_failure(local_key, exc.message), log)
            return
        except Exception:
            log.exception("image_upload_crashed", filename=file.filename)
            await self._deliver(self.on_upload_failure(local_key, GENERIC_UPLOAD_FAILURE), log)
            return

        log.info("image_uploaded", server_id=uploaded.server_id, filename=uploaded.filename)
        try:
            await self._deliver(self.on_upload_success(local_key, uploaded), log)
        except Exception:
            # A record the draft refuses, such as one without a server id
            log.exception("upload_result_rejected", server_id=uploaded.server_id)
            await self._deliver(self.on_upload_failure(local_key, GENERIC_UPLOAD_FAILURE), log)

    async def _deliver(self, posting: Awaitable[bool], log: Any) -> None:
        try:
            applied = await posting
        except MailboxClosedError:
            log.debug("upload_result_dropped_after_close")
            return
        if not applied:
            log.info("upload_result_discarded")
