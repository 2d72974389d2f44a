"""
ASGI application for the supply chain news search API.

Run with ``supplychain-search-api`` or ``uvicorn supplychain_search.api.main:app``.
"""

import logging
import logging.config
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .routes import error_body, init_search_engine, router, shutdown_search_engine
from ..config.search_config import (
    API_CONFIG,
    CORS_ORIGINS,
    DATABASE_PATH,
    DEBUG,
    ENVIRONMENT,
    LOG_CONFIG
)
from .. import __version__

logging.config.dictConfig(LOG_CONFIG)
logger = logging.getLogger('api')

DESCRIPTION = "Relevance-ranked search over published supply chain news articles"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the article database on startup, release it on shutdown."""
    logger.info(f"Starting search API v{__version__} ({ENVIRONMENT}, debug={DEBUG})")

    try:
        init_search_engine(db_path=DATABASE_PATH)
    except Exception as e:
        logger.error(f"Search engine failed to start: {e}", exc_info=True)
        raise

    yield

    logger.info("Stopping search API")
    shutdown_search_engine()


app = FastAPI(
    title="Supply Chain News Search API",
    description=DESCRIPTION,
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs" if DEBUG else None,
    redoc_url="/redoc" if DEBUG else None
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/")
async def root():
    """Service name, version and endpoint map."""
    return {
        "name": app.title,
        "version": __version__,
        "description": DESCRIPTION,
        "endpoints": {
            "search": "/api/search",
            "categories": "/api/categories",
            "stats": "/api/stats",
            "health": "/api/health"
        },
        "documentation": app.docs_url
    }


# ============================================================================
# Error handlers
# ============================================================================

@app.exception_handler(404)
async def not_found_handler(request: Request, exc):
    return JSONResponse(
        status_code=404,
        content=error_body("Resource not found", "NOT_FOUND", path=request.url.path)
    )


@app.exception_handler(500)
async def internal_error_handler(request: Request, exc):
    logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
    message = str(exc) if DEBUG else "An unexpected error occurred"
    return JSONResponse(
        status_code=500,
        content=error_body("Internal server error", "INTERNAL_ERROR", message=message)
    )


def run():
    """Serve the API with uvicorn using API_CONFIG."""
    import uvicorn

    uvicorn.run(
        "supplychain_search.api.main:app",
        host=API_CONFIG['host'],
        port=API_CONFIG['port'],
        reload=API_CONFIG['reload'],
        log_level=API_CONFIG['log_level']
    )


if __name__ == "__main__":
    run()
