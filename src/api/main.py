"""FastAPI application entry point."""
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api.dependencies import get_draft_store
from src.api.routes import drafts, health
from src.config import settings
from src.logging_config import configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    configure_logging(settings.log_level)
    logger.info("publish_service_starting", api_base_url=settings.api_base_url)
    yield
    store = get_draft_store()
    for flow in await store.list_all():
        await store.remove(flow.draft_id)
        await flow.close()
    logger.info("publish_service_stopping")


def create_app() -> FastAPI:
    app = FastAPI(
        title="Secondhand Publish Service",
        description="Photo upload coordination and submission gate for second-hand listings.",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(drafts.router)

    return app


app = create_app()
