import structlog

from src.application.interfaces.listing_gateway import (
    ExistingListing,
    ListingGateway,
    ListingGatewayError,
    ListingPayload,
)
from src.infrastructure.external_services.marketplace_client import (
    MarketplaceClient,
    MarketplaceClientError,
)

logger = structlog.get_logger(__name__)


def _record_id(body: dict) -> str | None:  # type: ignore[type-arg]
    """The created record's id, top-level or wrapped in `data`."""
    record_id = body.get("id")
    if record_id in (None, "") and isinstance(body.get("data"), dict):
        record_id = body["data"].get("id")
    if record_id in (None, ""):
        return None
    return str(record_id)


def _to_gateway_error(exc: MarketplaceClientError) -> ListingGatewayError:
    return ListingGatewayError(
        exc.message, status_code=exc.status_code, server_message=exc.server_message
    )


class MarketplaceListingGateway(ListingGateway):
    """Second-hand listing endpoints of the marketplace backend."""

    def __init__(self, client: MarketplaceClient) -> None:
        self._client = client

    async def create_listing(self, payload: ListingPayload) -> str | None:
        try:
            body = await self._client.create_item(payload.to_request())
        except MarketplaceClientError as exc:
            raise _to_gateway_error(exc) from exc
        return _record_id(body)

    async def update_listing(
        self, seller_id: str, item_id: int, payload: ListingPayload
    ) -> str | None:
        try:
            body = await self._client.update_user_item(seller_id, item_id, payload.to_request())
        except MarketplaceClientError as exc:
            raise _to_gateway_error(exc) from exc
        # The update route may answer with a bare acknowledgement
        return _record_id(body) or str(item_id)

    async def get_listing(self, item_id: int) -> ExistingListing:
        try:
            body = await self._client.get_item(item_id)
        except MarketplaceClientError as exc:
            raise _to_gateway_error(exc) from exc

        try:
            raw_ids = body.get("images") or []
            if not raw_ids and body.get("image"):
                raw_ids = [body["image"]]
            raw_urls = body.get("imageUrls") or []

            # URLs stay aligned with their image by position
            image_ids: list[str] = []
            image_urls: list[str | None] = []
            for index, image_id in enumerate(raw_ids):
                if not image_id:
                    continue
                url = raw_urls[index] if index < len(raw_urls) else None
                image_ids.append(str(image_id))
                image_urls.append(url if isinstance(url, str) and url else None)

            price = body.get("price")
            return ExistingListing(
                id=int(body["id"]),
                seller_id=str(body.get("sellerId") or ""),
                title=body.get("title") or "",
                description=body.get("description") or "",
                price="" if price is None else str(price),
                image_ids=image_ids,
                image_urls=image_urls,
            )
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("listing_record_malformed", item_id=item_id, error=str(exc))
            raise ListingGatewayError(f"Listing {item_id} could not be read.") from exc
