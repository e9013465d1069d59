# backend/app/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute

from .core.config import settings
from .core.constants import (
    ADMIN_SCHEDULING_PREFIX,
    API_DESCRIPTION,
    API_TITLE,
    API_V1_PREFIX,
    API_VERSION,
    BRAND_NAME,
    SCHEDULING_PREFIX,
)
from .errors import register_error_handlers
from .init_db import init_db
from .routes.v1 import admin_scheduling as admin_scheduling_v1
from .routes.v1 import prometheus as prometheus_v1
from .routes.v1 import scheduling as scheduling_v1

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment}")

    if settings.admin_api_key is None:
        logger.warning("[CONFIG] ADMIN_API_KEY not set; admin endpoints will refuse requests")

    init_db()

    yield

    logger.info(f"{BRAND_NAME} API shutting down...")


def _unique_operation_id(route: APIRoute) -> str:
    methods = "_".join(sorted(m.lower() for m in route.methods or []))
    path = route.path_format.replace("/", "_").replace("{", "").replace("}", "").strip("_")
    name = (route.name or "operation").lower().replace(" ", "_")
    return f"{methods}__{path}__{name}".strip("_")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
    generate_unique_id_function=_unique_operation_id,
)
# Register unified error envelope handlers
register_error_handlers(app)

# Create API v1 router
api_v1 = APIRouter(prefix=API_V1_PREFIX)

# Admin routes mount first so /admin/scheduling never shadows a public path
api_v1.include_router(admin_scheduling_v1.router, prefix=ADMIN_SCHEDULING_PREFIX)
api_v1.include_router(scheduling_v1.router, prefix=SCHEDULING_PREFIX)

app.include_router(api_v1)

# Infrastructure routes (unversioned)
app.include_router(prometheus_v1.router)


@app.get("/")
async def root() -> dict:
    return {
        "message": f"Welcome to the {BRAND_NAME} API",
        "version": API_VERSION,
        "docs": "/docs",
    }
