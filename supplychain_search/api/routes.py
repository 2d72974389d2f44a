"""
FastAPI route handlers for the search API.
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from .models import (
    CategoriesResponse,
    ErrorResponse,
    HealthResponse,
    SearchResponse,
    StatsResponse
)
from ..config.search_config import CONCURRENCY_CONFIG
from ..search.query_enhancer import NullQueryEnhancer, create_query_enhancer
from ..search.search_engine import SearchEngine

logger = logging.getLogger('api')

# Scoring and sqlite reads run here, off the event loop
search_executor = ThreadPoolExecutor(
    max_workers=CONCURRENCY_CONFIG['search_thread_pool_size'],
    thread_name_prefix="search"
)

# Created by init_search_engine() at startup
search_engine: Optional[SearchEngine] = None

started_at = datetime.now()


def error_body(error: str, code: str, **details: Any) -> Dict[str, Any]:
    """Build the {error, code, details} payload used by every failure response."""
    return ErrorResponse(error=error, code=code, details=details or None).model_dump(exclude_none=True)


def get_search_engine() -> SearchEngine:
    """Dependency returning the running engine, or 503 before startup finishes."""
    if search_engine is None:
        raise HTTPException(
            status_code=503,
            detail=error_body("Search engine not initialized", "ENGINE_UNAVAILABLE")
        )
    return search_engine


async def run_blocking(func: Callable, *args):
    """Run a synchronous engine call on the search thread pool."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(search_executor, func, *args)


router = APIRouter(prefix="/api", tags=["search"])


# ============================================================================
# Search
# ============================================================================

@router.get("/search", response_model=SearchResponse, response_model_exclude_none=True)
async def search_articles(
    q: str = Query("", description="Search query"),
    limit: Optional[str] = Query(None, description="Results per page (invalid values use the default)"),
    offset: Optional[str] = Query(None, description="Results to skip (invalid values use 0)"),
    use_ai: bool = Query(True, alias="useAI", description="Expand the query with the AI enhancer"),
    engine: SearchEngine = Depends(get_search_engine)
):
    """
    Search published articles by relevance.

    Title, publisher, summary, body, slug and category matches are scored
    with fixed weights, then recency and view-count bonuses are added. Each
    article carries the match reasons that produced its score.
    """
    started = time.perf_counter()
    logger.info(f"Search request: q='{q}', limit={limit}, offset={offset}, useAI={use_ai}")

    try:
        result = await engine.search(query=q, limit=limit, offset=offset, use_ai=use_ai)
    except asyncio.CancelledError:
        logger.info(f"Search cancelled by client: q='{q}'")
        raise
    except Exception as e:
        logger.error(f"Search failed for q='{q}': {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=error_body("Search execution failed", "SEARCH_FAILED", message=str(e))
        )

    result['processing_time'] = int((time.perf_counter() - started) * 1000)

    logger.info(
        f"Search served: {len(result['articles'])} of {result['total']} articles "
        f"in {result['processing_time']}ms"
    )

    return result


# ============================================================================
# Corpus metadata
# ============================================================================

@router.get("/categories", response_model=CategoriesResponse)
async def list_categories(engine: SearchEngine = Depends(get_search_engine)):
    """List article categories."""
    try:
        categories = await run_blocking(engine.get_categories)
    except Exception as e:
        logger.error(f"Failed to load categories: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=error_body("Failed to fetch categories", "CATEGORIES_FAILED", message=str(e))
        )

    return {"categories": categories, "total": len(categories)}


@router.get("/stats", response_model=StatsResponse)
async def corpus_stats(engine: SearchEngine = Depends(get_search_engine)):
    """
    Corpus statistics.

    Returns article totals (all and published), category count and the
    publish date range of searchable articles.
    """
    try:
        stats = await run_blocking(engine.get_stats)
    except Exception as e:
        logger.error(f"Failed to compute stats: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=error_body("Failed to fetch statistics", "STATS_FAILED", message=str(e))
        )

    logger.debug(f"Stats: {stats['published_articles']} published of {stats['total_articles']}")
    return stats


@router.get("/health", response_model=HealthResponse)
async def health(engine: SearchEngine = Depends(get_search_engine)):
    """Report database reachability and whether AI enhancement is configured."""
    try:
        engine.connect_db()
        database_connected = engine.corpus is not None
    except Exception as e:
        logger.warning(f"Health check could not reach the database: {e}")
        database_connected = False

    return {
        "status": "healthy" if database_connected else "degraded",
        "database_connected": database_connected,
        "enhancer_enabled": not isinstance(engine.enhancer, NullQueryEnhancer),
        "uptime_seconds": int((datetime.now() - started_at).total_seconds())
    }


# ============================================================================
# Lifecycle
# ============================================================================

def init_search_engine(db_path: Optional[str] = None):
    """Create the shared engine; called from the application lifespan."""
    global search_engine

    enhancer = create_query_enhancer()
    engine = SearchEngine(db_path=db_path, enhancer=enhancer, executor=search_executor)
    engine.connect_db()

    search_engine = engine
    logger.info(
        f"Search engine ready (db={engine.db_path}, "
        f"enhancer={'on' if not isinstance(enhancer, NullQueryEnhancer) else 'off'})"
    )


def shutdown_search_engine():
    """Close the engine and drain the thread pool; called on shutdown."""
    global search_engine

    if search_engine is not None:
        search_engine.close()
        search_engine = None

    search_executor.shutdown(wait=True)
    logger.info("Search engine and thread pool shut down")
