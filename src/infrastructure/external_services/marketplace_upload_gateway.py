import structlog

from src.application.interfaces.upload_gateway import (
    ImageUploadGateway,
    UploadedImage,
    UploadError,
)
from src.domain.entities.image_slot import SelectedFile
from src.infrastructure.external_services.marketplace_client import (
    MarketplaceClient,
    MarketplaceClientError,
)

logger = structlog.get_logger(__name__)


class MarketplaceUploadGateway(ImageUploadGateway):
    """Stores picked images through the marketplace's /file endpoint."""

    def __init__(self, client: MarketplaceClient) -> None:
        self._client = client

    async def upload(self, file: SelectedFile) -> UploadedImage:
        try:
            body = await self._client.upload_file(file.filename, file.content, file.content_type)
        except MarketplaceClientError as exc:
            raise UploadError(exc.code, exc.message, retriable=exc.retriable) from exc

        data = body.get("data")
        if not isinstance(data, dict):
            raise UploadError("INVALID_RESPONSE", "The upload response carried no file record.")
        server_id = data.get("id")
        filename = data.get("filename")
        if server_id in (None, "") or not isinstance(filename, str) or not filename:
            logger.error("upload_record_incomplete", filename=file.filename, record=data)
            raise UploadError("INVALID_RESPONSE", "The upload response is missing the file id or name.")

        return UploadedImage(
            server_id=str(server_id), filename=filename, request_id=body.get("requestId")
        )
