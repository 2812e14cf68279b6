from fastapi import APIRouter, Depends

from src.api.dependencies import get_draft_store
from src.application.interfaces.draft_store import DraftStore
from src.config import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(store: DraftStore = Depends(get_draft_store)) -> dict:  # type: ignore[type-arg]
    """Liveness check plus a count of the publish flows held in memory."""
    flows = await store.list_all()
    return {
        "status": "healthy",
        "open_drafts": len(flows),
        "uploads_in_flight": sum(flow.uploads_in_flight for flow in flows),
        "marketplace_api": settings.api_base_url,
    }
