"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from unicat import __version__
from unicat.config import get_settings
from unicat.db import init_db
from unicat.imports import router as imports_router

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    logger.info("unicat %s started", __version__)
    yield


app = FastAPI(title="unicat", version=__version__, lifespan=lifespan)

app.include_router(imports_router, prefix="/api/imports", tags=["imports"])


@app.get("/health")
async def health():
    return {"status": "ok"}
