"""FastAPI application factory."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import SQLModel

from attendance.db.engine import get_engine
from attendance.api.routes import records, sync as sync_routes

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build and return the FastAPI app."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Create tables on startup (idempotent)
        try:
            SQLModel.metadata.create_all(get_engine())
        except SQLAlchemyError as exc:
            logger.error("Sync history database unavailable: %s", exc)
        yield

    app = FastAPI(
        title="Attendance API",
        description="Offline-first attendance log with batch sync",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(records.router, prefix="/records", tags=["records"])
    app.include_router(sync_routes.router, prefix="/sync", tags=["sync"])

    return app


# Module-level app instance for uvicorn
app = create_app()
