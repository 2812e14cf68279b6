from abc import ABC, abstractmethod
from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from src.application.controllers.publish_flow import PublishFlowController


class DraftStore(ABC):
    """Port for keeping the publish flows that are currently open."""

    @abstractmethod
    async def add(self, flow: "PublishFlowController") -> None:
        ...

    @abstractmethod
    async def get(self, draft_id: UUID) -> "PublishFlowController | None":
        ...

    @abstractmethod
    async def remove(self, draft_id: UUID) -> "PublishFlowController | None":
        ...

    @abstractmethod
    async def list_all(self) -> list["PublishFlowController"]:
        ...
