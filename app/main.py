import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from app.cache.layer import cache_layer
from app.core.config import get_app_base_url
from app.core.exception_handlers import register_exception_handlers
from app.core.logging import setup_logging
from app.database import create_db_and_tables, get_engine
from app.middleware.access_log import AccessLogMiddleware
from app.routers import cache, pages, tasks

logger = logging.getLogger("app.system")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await create_db_and_tables()
    await cache_layer.init_cache()
    app.state.http_client = httpx.AsyncClient(base_url=get_app_base_url(), timeout=10.0)
    logger.info("system.start", extra={"event": "system.start"})
    yield
    await app.state.http_client.aclose()
    await cache_layer.close()
    await get_engine().dispose()


app = FastAPI(
    title="Task Board",
    description="Task tracking with server-rendered pages and cached task listings",
    swagger_ui_parameters={"displayRequestDuration": True},
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(AccessLogMiddleware)
register_exception_handlers(app)

# Include routers
app.include_router(tasks.router)
app.include_router(cache.router)
app.include_router(pages.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "cache": cache_layer.get_stats()}
