"""Aggregate app for the timeline export service."""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from timeline_engines.export.routes import router as export_router
from timeline_engines.export.service import get_export_service


@asynccontextmanager
async def _lifespan(app: FastAPI):
    service = get_export_service()
    await service.engine.init()
    try:
        yield
    finally:
        await service.engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(title="timeline-engines", lifespan=_lifespan)
    app.include_router(export_router)
    return app


app = create_app()
