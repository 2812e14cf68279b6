from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ListingPayload:
    seller_id: str
    title: str
    description: str
    price: str
    image: str
    images: list[str] = field(default_factory=list)
    status: str = "available"

    def to_request(self) -> dict:  # type: ignore[type-arg]
        """Body expected by the marketplace listing endpoints."""
        return {
            "sellerId": self.seller_id,
            "title": self.title,
            "description": self.description,
            "price": self.price,
            "image": self.image,
            "images": list(self.images),
            "status": self.status,
        }


@dataclass(frozen=True)
class ExistingListing:
    """A published listing as loaded for editing."""

    id: int
    seller_id: str
    title: str
    description: str
    price: str
    image_ids: list[str] = field(default_factory=list)
    # Positional with image_ids; None where the listing has no URL
    image_urls: list[str | None] = field(default_factory=list)


class ListingGatewayError(Exception):
    """
    The listing call failed. `server_message` is what the marketplace said,
    when it said anything; transport errors leave it empty.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        server_message: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.server_message = server_message
        super().__init__(message)


class ListingGateway(ABC):
    """Port for the marketplace's second-hand listing endpoints."""

    @abstractmethod
    async def create_listing(self, payload: ListingPayload) -> str | None:
        """Returns the created record's id, or None if the response carried none."""
        ...

    @abstractmethod
    async def update_listing(
        self, seller_id: str, item_id: int, payload: ListingPayload
    ) -> str | None:
        ...

    @abstractmethod
    async def get_listing(self, item_id: int) -> ExistingListing:
        ...
