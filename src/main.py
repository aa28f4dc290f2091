"""Entry point for the interview call relay service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from api.dependencies import get_coordinator
from api.routes import router as api_router
from api.twilio_routes import router as twilio_router
from config.settings import get_settings
from db.base import dispose_db, init_db
from relay.errors import RelayError

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_db()
    yield
    coordinator = app.dependency_overrides.get(get_coordinator, get_coordinator)()
    await coordinator.terminate("service shutting down", notify_provider=False)
    await coordinator.drain()
    await dispose_db()


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="Interview Call Relay",
    description="Relays Twilio phone calls to an OpenAI Realtime interviewer.",
    lifespan=lifespan,
)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    LOGGER.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


app.include_router(api_router, prefix="/api")
app.include_router(twilio_router, prefix="/api")
