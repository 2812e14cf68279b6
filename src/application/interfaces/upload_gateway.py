from abc import ABC, abstractmethod
from dataclasses import dataclass

from src.domain.entities.image_slot import SelectedFile


@dataclass(frozen=True)
class UploadedImage:
    """What the upload endpoint hands back for one stored file."""

    server_id: str
    filename: str
    request_id: str | None = None


class UploadError(Exception):
    """
    A single upload did not produce a usable server record.

    `retriable` mirrors the server's classification; nothing in this service
    retries on its own.
    """

    def __init__(self, code: str, message: str, *, retriable: bool = False) -> None:
        self.code = code
        self.message = message
        self.retriable = retriable
        super().__init__(f"{code}: {message}")


class ImageUploadGateway(ABC):
    """Port for storing one picked image on the marketplace backend."""

    @abstractmethod
    async def upload(self, file: SelectedFile) -> UploadedImage:
        """Raises UploadError when the file could not be stored."""
        ...
