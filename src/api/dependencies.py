"""
FastAPI dependency injection wiring.

Each dependency function returns a fully-constructed object with its
collaborators injected, keeping the route handlers thin.
"""
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from src.application.controllers.publish_flow import PublishFlowController
from src.application.interfaces.draft_store import DraftStore
from src.application.interfaces.event_publisher import EventPublisher
from src.application.interfaces.identity_provider import IdentityProvider
from src.application.interfaces.listing_gateway import ListingGateway
from src.application.interfaces.upload_gateway import ImageUploadGateway
from src.infrastructure.drafts.in_memory_draft_store import InMemoryDraftStore
from src.infrastructure.external_services.marketplace_client import MarketplaceClient
from src.infrastructure.external_services.marketplace_listing_gateway import (
    MarketplaceListingGateway,
)
from src.infrastructure.external_services.marketplace_upload_gateway import (
    MarketplaceUploadGateway,
)
from src.infrastructure.identity.static_identity_provider import StaticIdentityProvider
from src.config import settings
from src.infrastructure.messaging.logging_publisher import LoggingEventPublisher
from src.infrastructure.messaging.noop_publisher import NoOpEventPublisher

_draft_store = InMemoryDraftStore()


# ---- Low-level dependencies ------------------------------------------------

def get_draft_store() -> DraftStore:
    return _draft_store


def get_marketplace_client() -> MarketplaceClient:
    return MarketplaceClient()


def get_upload_gateway(
    client: MarketplaceClient = Depends(get_marketplace_client),
) -> ImageUploadGateway:
    return MarketplaceUploadGateway(client)


def get_listing_gateway(
    client: MarketplaceClient = Depends(get_marketplace_client),
) -> ListingGateway:
    return MarketplaceListingGateway(client)


def get_event_publisher() -> EventPublisher:
    if settings.log_domain_events:
        return LoggingEventPublisher()
    return NoOpEventPublisher()


def get_identity_provider(
    x_seller_id: str | None = Header(default=None),
) -> IdentityProvider:
    return StaticIdentityProvider(x_seller_id)


# ---- Publish flows ---------------------------------------------------------

async def get_flow(
    draft_id: UUID, store: DraftStore = Depends(get_draft_store)
) -> PublishFlowController:
    flow = await store.get(draft_id)
    if flow is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Draft not found")
    return flow
