from uuid import UUID

from src.application.controllers.publish_flow import PublishFlowController
from src.application.interfaces.draft_store import DraftStore


class InMemoryDraftStore(DraftStore):
    """Open publish flows, held only for the lifetime of the process."""

    def __init__(self) -> None:
        self._flows: dict[UUID, PublishFlowController] = {}

    async def add(self, flow: PublishFlowController) -> None:
        self._flows[flow.draft_id] = flow

    async def get(self, draft_id: UUID) -> PublishFlowController | None:
        return self._flows.get(draft_id)

    async def remove(self, draft_id: UUID) -> PublishFlowController | None:
        return self._flows.pop(draft_id, None)

    async def list_all(self) -> list[PublishFlowController]:
        return list(self._flows.values())
