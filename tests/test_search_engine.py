import asyncio
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import CATEGORIES, NOW, StaticEnhancer, make_article, make_engine
from supplychain_search.common.types import EnhancementResult, Unavailable
from supplychain_search.search.search_engine import SearchEngine


class ExplodingEnhancer:
    async def enhance(self, raw_query):
        raise RuntimeError("enhancer crashed")


class SlowEnhancer:
    async def enhance(self, raw_query):
        await asyncio.sleep(10)
        return Unavailable("too slow")


def search(engine, query, **kwargs):
    kwargs.setdefault('now', NOW)
    return asyncio.run(engine.search(query, **kwargs))


def ids(response):
    return [article['id'] for article in response['articles']]


def test_empty_query_returns_empty_response_without_enhancing():
    enhancer = StaticEnhancer(Unavailable("unused"))
    engine = make_engine([make_article(title="Port Strike")], enhancer=enhancer)

    for query in ["", "   ", None]:
        assert search(engine, query) == {'articles': [], 'total': 0}

    assert enhancer.calls == []


def test_red_sea_query(supply_chain_corpus):
    engine = make_engine(supply_chain_corpus)
    response = search(engine, "Red Sea", use_ai=False)

    assert ids(response) == [1, 2]
    assert response['total'] == 2

    top = response['articles'][0]
    assert top['match_reasons'][:3] == ["title:exact", "title:term:red", "title:term:sea"]
    assert "recency:3d" in top['match_reasons']
    assert top['score'] > response['articles'][1]['score']


def test_drafts_never_returned(supply_chain_corpus):
    engine = make_engine(supply_chain_corpus)
    response = search(engine, "insurance premiums", use_ai=False)
    assert response == {'articles': [], 'total': 0, 'limit': 10, 'offset': 0}


def test_non_matching_articles_excluded(supply_chain_corpus):
    engine = make_engine(supply_chain_corpus)
    response = search(engine, "red sea", use_ai=False)
    assert 3 not in ids(response)
    assert all(article['score'] > 0 for article in response['articles'])


def test_results_are_deterministic(supply_chain_corpus):
    engine = make_engine(supply_chain_corpus)
    first = search(engine, "global trade", use_ai=False)
    second = search(engine, "global trade", use_ai=False)
    assert first == second


def test_title_match_outranks_content_match():
    in_title = make_article(title="Tariff Update", article_id=1)
    in_content = make_article(content="tariff", article_id=2)
    response = search(make_engine([in_content, in_title]), "tariff", use_ai=False)
    assert ids(response) == [1, 2]
    assert response['articles'][0]['score'] == 26
    assert response['articles'][1]['score'] == 13


def test_recent_articles_get_recency_boost():
    fresh = make_article(title="Port Strike", days_old=2, article_id=1)
    stale = make_article(title="Port Strike", days_old=40, article_id=2)
    response = search(make_engine([stale, fresh]), "port strike", use_ai=False)
    assert ids(response) == [1, 2]
    fresh_score, stale_score = (a['score'] for a in response['articles'])
    assert fresh_score - stale_score >= 10


def test_pagination_reports_pre_slice_total():
    articles = [make_article(content="tariff " * i, article_id=i) for i in range(1, 6)]
    response = search(make_engine(articles), "tariff", limit=2, offset=2, use_ai=False)
    assert ids(response) == [3, 2]
    assert response['total'] == 5
    assert (response['limit'], response['offset']) == (2, 2)


def test_invalid_pagination_values_are_clamped():
    articles = [make_article(title="Port Strike")]
    response = search(make_engine(articles), "strike", limit="abc", offset="-3", use_ai=False)
    assert response['limit'] == 10
    assert response['offset'] == 0
    assert response['total'] == 1


def test_limit_capped_at_maximum():
    response = search(make_engine([make_article(title="Port Strike")]), "strike", limit=5000)
    assert response['limit'] == 100


@pytest.mark.parametrize("enhancer", [
    StaticEnhancer(Unavailable("timeout")),
    ExplodingEnhancer(),
])
def test_enhancer_failure_matches_plain_search(supply_chain_corpus, enhancer):
    plain = search(make_engine(supply_chain_corpus), "red sea", use_ai=False)
    fallback = search(make_engine(supply_chain_corpus, enhancer=enhancer), "red sea")
    assert fallback == plain
    assert 'enhanced_query' not in fallback


def test_use_ai_false_skips_enhancer(supply_chain_corpus):
    enhancer = StaticEnhancer(EnhancementResult(enhanced_query="houthi"))
    search(make_engine(supply_chain_corpus, enhancer=enhancer), "red sea", use_ai=False)
    assert enhancer.calls == []


def test_enhancement_expands_query_and_is_reported(supply_chain_corpus):
    houthi = make_article(title="Houthi Attacks Continue", article_id=9, days_old=60)
    enhancer = StaticEnhancer(EnhancementResult(
        enhanced_query="Red Sea shipping",
        related_terms=("Houthi", "red"),
        query_context="User is tracking Red Sea shipping disruption"
    ))
    engine = make_engine(supply_chain_corpus + [houthi], enhancer=enhancer)

    response = search(engine, "red sea")

    assert enhancer.calls == ["red sea"]
    assert response['enhanced_query'] == "red sea shipping"
    assert response['related_terms'] == ["houthi"]
    assert response['query_context'] == "User is tracking Red Sea shipping disruption"
    assert 9 in ids(response)

    houthi_result = next(a for a in response['articles'] if a['id'] == 9)
    assert houthi_result['match_reasons'] == ["title:related:houthi"]
    assert houthi_result['score'] == 6


def test_unchanged_enhanced_query_not_reported(supply_chain_corpus):
    enhancer = StaticEnhancer(EnhancementResult(enhanced_query="  RED SEA "))
    response = search(make_engine(supply_chain_corpus, enhancer=enhancer), "red sea")
    assert 'enhanced_query' not in response
    assert 'related_terms' not in response


def test_blank_enhanced_query_keeps_original(supply_chain_corpus):
    enhancer = StaticEnhancer(EnhancementResult(enhanced_query="   "))
    enhanced = search(make_engine(supply_chain_corpus, enhancer=enhancer), "red sea")
    plain = search(make_engine(supply_chain_corpus), "red sea", use_ai=False)
    assert ids(enhanced) == ids(plain)


def test_cancellation_propagates(supply_chain_corpus):
    engine = make_engine(supply_chain_corpus, enhancer=SlowEnhancer())

    async def scenario():
        task = asyncio.ensure_future(engine.search("red sea", now=NOW))
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return task.cancelled()

    assert asyncio.run(scenario())


def test_executor_path_matches_inline(supply_chain_corpus):
    inline = search(make_engine(supply_chain_corpus), "red sea", use_ai=False)
    with ThreadPoolExecutor(max_workers=2) as executor:
        pooled = search(make_engine(supply_chain_corpus, executor=executor), "red sea", use_ai=False)
    assert pooled == inline


def test_concurrent_searches_are_independent(supply_chain_corpus):
    engine = make_engine(supply_chain_corpus)

    async def scenario():
        return await asyncio.gather(
            engine.search("red sea", use_ai=False, now=NOW),
            engine.search("warehouse", use_ai=False, now=NOW),
        )

    red_sea, warehouse = asyncio.run(scenario())
    assert ids(red_sea) == [1, 2]
    assert ids(warehouse) == [3]


def test_get_stats_from_in_memory_corpus(supply_chain_corpus):
    stats = make_engine(supply_chain_corpus).get_stats()
    assert stats['total_articles'] == 4
    assert stats['published_articles'] == 3
    assert stats['categories_count'] == 3
    assert stats['date_range']['latest'].startswith("2026-10-17")


def test_get_categories(supply_chain_corpus):
    names = [c['name'] for c in make_engine(supply_chain_corpus).get_categories()]
    assert names == ["Ocean Freight", "Trade Policy", "Logistics"]


class PublishedOnlyCorpus:
    """Provider exposing only the two required read methods."""

    def __init__(self, articles):
        self.articles = [a for a in articles if a.status == "published"]

    def get_published_articles(self):
        return list(self.articles)

    def get_categories(self):
        return list(CATEGORIES)


def test_get_stats_for_provider_without_statistics(supply_chain_corpus):
    stats = SearchEngine(corpus=PublishedOnlyCorpus(supply_chain_corpus)).get_stats()
    assert stats['total_articles'] == stats['published_articles'] == 3
    assert stats['date_range']['earliest'].startswith("2026-10-13")


def test_recency_boost_with_query_only_in_content():
    fresh = make_article(content="port congestion persists", days_old=2, article_id=1)
    stale = make_article(content="port congestion persists", days_old=40, article_id=2)
    response = search(make_engine([stale, fresh]), "congestion", use_ai=False)

    assert ids(response) == [1, 2]
    fresh_result, stale_result = response['articles']
    assert not any(r.startswith("title:") for r in fresh_result['match_reasons'])
    assert fresh_result['score'] - stale_result['score'] == 10


def test_related_term_equal_to_query_is_not_counted_twice(supply_chain_corpus):
    enhancer = StaticEnhancer(EnhancementResult(
        enhanced_query="red sea",
        related_terms=("Red Sea", "houthi")
    ))
    enhanced = search(make_engine(supply_chain_corpus, enhancer=enhancer), "red sea")
    plain = search(make_engine(supply_chain_corpus), "red sea", use_ai=False)

    assert enhanced['related_terms'] == ["houthi"]
    assert not any("related:red sea" in r for r in enhanced['articles'][0]['match_reasons'])
    assert [a['score'] for a in enhanced['articles']] == [a['score'] for a in plain['articles']]
