"""FastAPI application factory."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from photo_lifecycle.api.jobs import router as jobs_router
from photo_lifecycle.app_logging import configure_logging
from photo_lifecycle.containers import AppContainer
from photo_lifecycle.domain.errors import (
    FamilyNotFoundError,
    RequestNotFoundError,
    StoreError,
)


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        await app.state.container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container

    app.include_router(jobs_router)

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
        code = (
            status.HTTP_404_NOT_FOUND
            if isinstance(exc, (FamilyNotFoundError, RequestNotFoundError))
            else status.HTTP_409_CONFLICT
        )
        return JSONResponse(status_code=code, content={"detail": str(exc)})

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    return app
