"""Entry point for the City Medical Center patient phone line."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.routes import router as status_router
from api.twilio_routes import router as twilio_router
from config.settings import get_settings
from db.base import init_db
from db.seed import seed_sample_data

LOGGER = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if not settings.openai_api_key:
        raise RuntimeError("Missing OpenAI API key. Please set OPENAI_API_KEY in the environment or .env file.")
    await init_db()
    if settings.seed_sample_data:
        await seed_sample_data()
    LOGGER.info("Patient phone line ready")
    yield


settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)

app = FastAPI(
    title="City Medical Center Patient Line",
    description="Keypad-authenticated phone line bridging patients to a realtime AI assistant.",
    lifespan=lifespan,
)
app.include_router(status_router)
app.include_router(twilio_router, prefix="/api")
