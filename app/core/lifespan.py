from contextlib import asynccontextmanager

from fastapi import FastAPI

from core.clients import build_client_registry
from core.logger import logger
from services.intake_service import IntakeService


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Starts client construction without waiting for it, so the app accepts
    requests at once. Handlers await the clients they need.

    Tests may pre-populate `app.state.clients` with a registry of fakes.
    """
    registry = getattr(app.state, "clients", None) or build_client_registry()
    registry.start()
    app.state.clients = registry
    app.state.intake = IntakeService(registry)
    logger.info("Lifespan startup: client construction started.")
    yield
    await registry.aclose()
    logger.info("Lifespan shutdown.")
