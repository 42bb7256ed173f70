from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from stardeck.api import containers
from stardeck.api import deployments
from stardeck.api import engine
from stardeck.api import images
from stardeck.core.config import settings
from stardeck.core.database import create_tables, database
from stardeck.core.logging import configure_logging

configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
logger = structlog.get_logger(__name__)


# ---------- Startup / Shutdown ----------

@asynccontextmanager
async def lifespan(app: FastAPI):
    create_tables()
    await database.connect()
    logger.info("Database connected", url=settings.DATABASE_URL)
    yield
    await database.disconnect()
    logger.info("Database disconnected")


app = FastAPI(title="Stardeck – Container Deploy", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(containers.router)
app.include_router(images.router)
app.include_router(deployments.router)
app.include_router(engine.router)
