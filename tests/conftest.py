import os
import tempfile

# Keep log files and the default database out of the working tree
_TMP = tempfile.mkdtemp(prefix="supplychain-search-tests-")
os.environ.setdefault("LOG_DIR", os.path.join(_TMP, "logs"))
os.environ.setdefault("DATABASE_PATH", os.path.join(_TMP, "articles.db"))
os.environ.pop("PERPLEXITY_API_KEY", None)

from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from supplychain_search.common.types import Article, Category
from supplychain_search.ingestion.article_storage import InMemoryCorpusProvider
from supplychain_search.search.search_engine import SearchEngine

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

CATEGORIES = [
    Category(id=1, name="Ocean Freight", slug="ocean-freight"),
    Category(id=2, name="Trade Policy", slug="trade-policy"),
    Category(id=3, name="Logistics", slug="logistics"),
]

_ids = count(1000)


def make_article(
    title="Untitled",
    summary="",
    content="",
    slug=None,
    category_id=3,
    days_old=100,
    views=0,
    published_by=None,
    status="published",
    article_id=None,
):
    article_id = article_id if article_id is not None else next(_ids)
    return Article(
        id=article_id,
        title=title,
        slug=slug if slug is not None else f"item-{article_id}",
        summary=summary,
        content=content,
        category_id=category_id,
        published_at=NOW - timedelta(days=days_old),
        status=status,
        published_by=published_by,
        views=views,
    )


def make_engine(articles, enhancer=None, categories=None, executor=None):
    corpus = InMemoryCorpusProvider(articles, categories if categories is not None else CATEGORIES)
    return SearchEngine(corpus=corpus, enhancer=enhancer, executor=executor)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def supply_chain_corpus():
    """Small corpus around the Red Sea / Panama Canal disruptions."""
    return [
        make_article(
            article_id=1,
            title="Red Sea Crisis Triggers Global Supply Chain Rerouting",
            summary="Carriers divert vessels around the Cape of Good Hope.",
            content="Container lines have paused transits and added two weeks to Asia-Europe loops.",
            slug="red-sea-crisis-rerouting",
            category_id=1,
            days_old=3,
            views=0,
        ),
        make_article(
            article_id=2,
            title="Panama Canal Drought Creates New Global Trade Bottleneck",
            summary="Water levels limit daily transits through the canal.",
            content="Shippers weigh alternatives including the Red Sea route and US rail land bridges.",
            slug="panama-canal-drought-bottleneck",
            category_id=1,
            days_old=5,
            views=0,
        ),
        make_article(
            article_id=3,
            title="Warehouse Automation Spending Rises",
            summary="Robotics investment continues despite high rates.",
            content="Operators report labor savings from autonomous mobile robots.",
            slug="warehouse-automation-spending",
            category_id=3,
            days_old=1,
            views=500,
        ),
        make_article(
            article_id=4,
            title="Draft: Red Sea Insurance Premiums",
            summary="War risk cover climbs.",
            content="Red Sea war risk premiums have tripled.",
            slug="draft-red-sea-insurance",
            category_id=1,
            days_old=2,
            status="draft",
        ),
    ]


class StaticEnhancer:
    """Returns a fixed enhancement and records the queries it saw."""

    def __init__(self, result):
        self.result = result
        self.calls = []

    async def enhance(self, raw_query):
        self.calls.append(raw_query)
        return self.result
