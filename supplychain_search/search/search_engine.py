"""
Article search engine: normalize, optionally enhance, score, rank, explain.
"""

import asyncio
import logging
import threading
from concurrent.futures import Executor
from datetime import datetime, timezone
from functools import partial
from typing import Any, Dict, List, Optional, Sequence

from .explainer import explain
from .query_enhancer import NullQueryEnhancer, QueryEnhancer, clean_related_terms
from .query_parser import QueryParser
from .ranker import clamp_pagination, rank_candidates
from .scorer import CandidateScorer
from ..common.types import (
    Article,
    Enhancement,
    EnhancementResult,
    NormalizedQuery,
    Unavailable,
    ensure_utc
)
from ..config.search_config import DATABASE_PATH, SEARCH_CONFIG
from ..ingestion.article_storage import CorpusProvider, SQLiteCorpusProvider
from ..ingestion.database import Database

logger = logging.getLogger('search')


class SearchEngine:
    """
    Stateless relevance search over published articles.

    Features:
    - Weighted multi-field substring scoring
    - Optional AI query enhancement with silent fallback
    - Recency and engagement bonuses
    - Deterministic ranking with pagination
    - Per-article fault isolation

    The engine holds no per-request state; concurrent searches only share
    the read-only corpus provider.
    """

    def __init__(
        self,
        db_path: Optional[str] = None,
        corpus: Optional[CorpusProvider] = None,
        enhancer: Optional[QueryEnhancer] = None,
        scorer: Optional[CandidateScorer] = None,
        executor: Optional[Executor] = None
    ):
        """
        Initialize search engine.

        Args:
            db_path: Path to SQLite database (used when no corpus is given)
            corpus: Corpus provider; defaults to the SQLite database at db_path
            enhancer: Query enhancer; defaults to a disabled one
            scorer: Candidate scorer; defaults to configured weights
            executor: Pool for CPU-bound scoring in async searches
        """
        self.db_path = db_path or DATABASE_PATH
        self.corpus = corpus
        self.enhancer = enhancer or NullQueryEnhancer()
        self.scorer = scorer or CandidateScorer()
        self.executor = executor

        self.query_parser = QueryParser()
        self.database: Optional[Database] = None
        self.rw_lock = threading.RLock()

    def connect_db(self):
        """Open the database and attach a SQLite corpus if none was injected."""
        with self.rw_lock:
            if self.corpus is not None:
                return

            self.database = Database(self.db_path)
            self.database.initialize_schema()
            self.corpus = SQLiteCorpusProvider(self.database.connect())
            logger.info(f"Connected to article database at {self.db_path}")

    async def search(
        self,
        query: str,
        limit: Any = None,
        offset: Any = 0,
        use_ai: bool = True,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Execute a search.

        Args:
            query: Raw query string
            limit: Page size (clamped; invalid values use the default)
            offset: Page offset (clamped; invalid values use 0)
            use_ai: Whether to ask the query enhancer for help
            now: Reference time for recency (defaults to current UTC time)

        Returns:
            Dict with articles, total, and enhancement fields when available
        """
        normalized = self.query_parser.parse(query)
        limit, offset = clamp_pagination(limit, offset)

        if normalized.is_empty():
            logger.info("Empty query, skipping search")
            return empty_response()

        if use_ai:
            enhancement = await self._enhance(query)
        else:
            enhancement = Unavailable("not requested")

        run = partial(self.execute, normalized, enhancement, limit, offset, now)

        if self.executor is not None:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(self.executor, run)

        return run()

    async def _enhance(self, query: str) -> Enhancement:
        """Ask the enhancer for help; never lets its failures escape."""
        try:
            enhancement = await self.enhancer.enhance(query)
        except Exception as e:
            logger.warning(f"Query enhancer failed: {e}")
            return Unavailable(f"error: {e}")

        if isinstance(enhancement, Unavailable):
            logger.info(f"Query enhancement unavailable ({enhancement.reason}), using original query")

        return enhancement

    def execute(
        self,
        normalized: NormalizedQuery,
        enhancement: Enhancement,
        limit: int,
        offset: int,
        now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """
        Score and rank the corpus for an already-normalized query.

        Synchronous and CPU-bound; safe to run in a worker thread.

        Args:
            normalized: Normalized original query
            enhancement: Enhancer result (or Unavailable)
            limit: Clamped page size
            offset: Clamped page offset
            now: Reference time for recency

        Returns:
            Search response dict
        """
        if normalized.is_empty():
            return empty_response()

        effective = normalized
        related_terms: List[str] = []
        query_context = None

        if isinstance(enhancement, EnhancementResult):
            enhanced = self.query_parser.parse(enhancement.enhanced_query)
            if not enhanced.is_empty():
                effective = enhanced
            related_terms = [
                term for term in clean_related_terms(list(enhancement.related_terms))
                if term not in effective.terms and term != effective.text
            ]
            query_context = enhancement.query_context

        articles = self._load_published_articles()
        category_names = self._load_category_names()

        logger.info(
            f"Executing search: query='{effective.text}', terms={list(effective.terms)}, "
            f"related_terms={related_terms}, corpus={len(articles)} articles"
        )

        candidates = self.scorer.score_all(
            effective,
            articles,
            category_names,
            related_terms=related_terms,
            now=now or datetime.now(timezone.utc)
        )

        page = rank_candidates(candidates, limit=limit, offset=offset)
        explanations = explain(page.candidates)

        results = []
        for candidate, explanation in zip(page.candidates, explanations):
            article = candidate.article.to_dict()
            article['score'] = explanation['score']
            article['match_reasons'] = explanation['match_reasons']
            results.append(article)

        response = {
            'articles': results,
            'total': page.total,
            'limit': page.limit,
            'offset': page.offset
        }

        if isinstance(enhancement, EnhancementResult):
            if effective.text != normalized.text:
                response['enhanced_query'] = effective.text
            if query_context:
                response['query_context'] = query_context
            if related_terms:
                response['related_terms'] = related_terms

        logger.info(f"Search completed: {page.total} relevant articles, {len(results)} returned")

        return response

    def _load_published_articles(self) -> Sequence[Article]:
        """Snapshot the corpus, keeping only published articles."""
        self.connect_db()
        status = SEARCH_CONFIG['published_status']
        with self.rw_lock:
            articles = self.corpus.get_published_articles()
        return [a for a in articles if a.status == status]

    def _load_category_names(self) -> Dict[int, str]:
        self.connect_db()
        with self.rw_lock:
            categories = self.corpus.get_categories()
        return {c.id: c.name for c in categories}

    def get_categories(self) -> List[Dict[str, Any]]:
        """
        Get all categories.

        Returns:
            List of category dicts
        """
        self.connect_db()
        with self.rw_lock:
            categories = self.corpus.get_categories()
        return [
            {'id': c.id, 'name': c.name, 'slug': c.slug, 'parent_id': c.parent_id, 'type': c.type}
            for c in categories
        ]

    def get_stats(self) -> Dict[str, Any]:
        """
        Get corpus statistics.

        Providers without get_statistics only expose published articles, so
        total_articles falls back to the published count for them.

        Returns:
            Dict with article/category counts and publish date range
        """
        self.connect_db()
        with self.rw_lock:
            if hasattr(self.corpus, 'get_statistics'):
                return self.corpus.get_statistics()

            articles = self.corpus.get_published_articles()
            categories = self.corpus.get_categories()

        dates = sorted(ensure_utc(a.published_at) for a in articles)
        return {
            'total_articles': len(articles),
            'published_articles': len(articles),
            'categories_count': len(categories),
            'date_range': {
                'earliest': dates[0].isoformat() if dates else None,
                'latest': dates[-1].isoformat() if dates else None
            }
        }

    def close(self):
        """Close connections and cleanup."""
        with self.rw_lock:
            if self.database:
                self.database.close()
                self.database = None
                self.corpus = None

        logger.info("Search engine closed")


def empty_response() -> Dict[str, Any]:
    """Response for queries with nothing to search."""
    return {'articles': [], 'total': 0}
