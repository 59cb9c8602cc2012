"""Main FastAPI application."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, settings
from .container import Services, build_services
from .database import init_db, close_db
from .routers import devices_router, deliveries_router, campaigns_router

# Configure logging
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown."""
    config: Settings = app.state.settings
    services: Optional[Services] = app.state.services
    owns_services = services is None

    if owns_services:
        logger.info("Starting Pushcast")
        services = build_services(config)
        app.state.services = services
        await init_db(services.engine, config.data_path)
        logger.info("Database initialized")

    if services.scheduler:
        services.scheduler.start()

    yield

    # Shutdown
    if services.scheduler:
        services.scheduler.stop()

    if owns_services and services.engine is not None:
        await close_db(services.engine)
    logger.info("Shutdown complete")


async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors, reported as 400."""
    return JSONResponse(
        status_code=400,
        content={"error": "Bad Request", "message": "Invalid request body"},
    )


def create_app(services: Optional[Services] = None, config: Settings = settings) -> FastAPI:
    """Create and configure the FastAPI application.

    Pass ``services`` to run against pre-built collaborators (tests do this);
    otherwise they are built from ``config`` at startup.
    """
    app = FastAPI(
        title="Pushcast",
        description="Push-notification campaign dispatcher",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = config
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(devices_router)
    app.include_router(deliveries_router)
    app.include_router(campaigns_router)

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        return {"status": "healthy"}

    return app


# Create the application instance
app = create_app()


def run():
    """Serve the app with uvicorn on the configured port."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    run()
