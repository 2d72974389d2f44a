"""
Multi-signal relevance scorer for published articles.

Each article is scored independently:

- Field matches: exact query, literal terms and related terms against title,
  publisher, summary, content, slug and category name (substring matching,
  case-insensitive), weighted per field.
- Content frequency: capped occurrence counts of each term in the body.
- Early position: literal terms near the start of title/summary/content.
- Recency: step bonus for articles published in the last 30 days.
- Engagement: small bonus from view count.

Recency and engagement are only added once some text rule has matched, so an
article that shares nothing with the query always scores zero.

Every rule that fires appends a reason tag such as ``title:exact`` or
``content:term:freight:3``. Tags are diagnostics only and never feed the score.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from ..common.types import Article, NormalizedQuery, ScoredCandidate, ensure_utc
from ..config.search_config import (
    CONTENT_FREQUENCY_CONFIG,
    EARLY_POSITION_CONFIG,
    ENGAGEMENT_CONFIG,
    RECENCY_BONUS,
    SCORING_WEIGHTS
)

logger = logging.getLogger('search')


class CandidateScorer:
    """
    Score articles against a normalized query.

    Weights come from config and can be overridden per instance for tuning.
    """

    def __init__(
        self,
        weights: Optional[Dict[str, Dict[str, Optional[int]]]] = None,
        frequency_caps: Optional[Dict[str, int]] = None,
        early_position: Optional[Dict[str, Dict[str, int]]] = None,
        recency_bonus: Optional[Sequence] = None,
        engagement: Optional[Dict[str, int]] = None
    ):
        self.weights = weights or SCORING_WEIGHTS
        self.frequency_caps = frequency_caps or CONTENT_FREQUENCY_CONFIG
        self.early_position = early_position or EARLY_POSITION_CONFIG
        self.recency_bonus = recency_bonus or RECENCY_BONUS
        self.engagement = engagement or ENGAGEMENT_CONFIG

    def score_all(
        self,
        query: NormalizedQuery,
        articles: Iterable[Article],
        category_names: Mapping[int, str],
        related_terms: Sequence[str] = (),
        now: Optional[datetime] = None
    ) -> List[ScoredCandidate]:
        """
        Score every article, skipping any that fault.

        Args:
            query: Normalized (possibly enhanced) query
            articles: Published articles to score
            category_names: Category id -> display name
            related_terms: Enhancer-supplied related terms
            now: Reference time for recency (defaults to current UTC time)

        Returns:
            One ScoredCandidate per successfully scored article, zero scores included
        """
        now = ensure_utc(now) if now else datetime.now(timezone.utc)
        candidates = []

        for article in articles:
            try:
                candidates.append(
                    self.score_article(query, article, category_names, related_terms, now)
                )
            except Exception as e:
                logger.error(
                    f"Failed to score article {getattr(article, 'id', '?')}: {e}",
                    exc_info=True
                )
                continue

        return candidates

    def score_article(
        self,
        query: NormalizedQuery,
        article: Article,
        category_names: Mapping[int, str],
        related_terms: Sequence[str],
        now: datetime
    ) -> ScoredCandidate:
        """
        Score a single article.

        Args:
            query: Normalized query
            article: Article to score
            category_names: Category id -> display name
            related_terms: Related terms (already cleaned)
            now: Timezone-aware reference time

        Returns:
            ScoredCandidate with score and reasons
        """
        candidate = ScoredCandidate(article=article)

        title = (article.title or '').lower()
        summary = (article.summary or '').lower()
        content = (article.content or '').lower()
        slug = (article.slug or '').lower()
        publisher = (article.published_by or '').lower()
        category = (category_names.get(article.category_id) or '').lower()

        self._score_field(candidate, 'title', title, query, related_terms)
        if publisher:
            self._score_field(candidate, 'publisher', publisher, query, related_terms)
        self._score_field(candidate, 'summary', summary, query, related_terms)
        self._score_content(candidate, content, query, related_terms)
        self._score_field(candidate, 'slug', slug, query, related_terms)
        if category:
            self._score_field(candidate, 'category', category, query, related_terms)

        # Recency and engagement only rank articles that matched the query
        if candidate.score == 0:
            return candidate

        self._score_early_position(candidate, query.terms, {
            'title': title,
            'summary': summary,
            'content': content
        })
        self._score_recency(candidate, article.published_at, now)
        self._score_engagement(candidate, article.views)

        return candidate

    def _score_field(
        self,
        candidate: ScoredCandidate,
        field: str,
        text: str,
        query: NormalizedQuery,
        related_terms: Sequence[str]
    ):
        """Exact / term / related substring matches for one field."""
        if not text:
            return

        weights = self.weights[field]

        if weights.get('exact') and query.text in text:
            candidate.add(weights['exact'], f"{field}:exact")

        if weights.get('term'):
            for term in query.terms:
                if term in text:
                    candidate.add(weights['term'], f"{field}:term:{term}")

        if weights.get('related'):
            for term in related_terms:
                if term in text:
                    candidate.add(weights['related'], f"{field}:related:{term}")

    def _score_content(
        self,
        candidate: ScoredCandidate,
        content: str,
        query: NormalizedQuery,
        related_terms: Sequence[str]
    ):
        """Content body matches with capped occurrence bonuses."""
        if not content:
            return

        weights = self.weights['content']
        term_cap = self.frequency_caps['term_occurrence_cap']
        related_cap = self.frequency_caps['related_occurrence_cap']

        if weights.get('exact') and query.text in content:
            candidate.add(weights['exact'], "content:exact")

        if weights.get('term'):
            for term in query.terms:
                occurrences = content.count(term)
                if occurrences:
                    candidate.add(
                        weights['term'] + min(occurrences, term_cap),
                        f"content:term:{term}:{occurrences}"
                    )

        if weights.get('related'):
            for term in related_terms:
                occurrences = content.count(term)
                if occurrences:
                    candidate.add(
                        weights['related'] + min(occurrences, related_cap),
                        f"content:related:{term}:{occurrences}"
                    )

    def _score_early_position(
        self,
        candidate: ScoredCandidate,
        terms: Sequence[str],
        fields: Dict[str, str]
    ):
        """Reward literal terms that appear within the leading window of a field."""
        for term in terms:
            for field, text in fields.items():
                rule = self.early_position[field]
                if term in text[:rule['window']]:
                    candidate.add(rule['bonus'], f"{field}:early:{term}")

    def _score_recency(self, candidate: ScoredCandidate, published_at: datetime, now: datetime):
        if published_at is None:
            return

        age_days = (now - ensure_utc(published_at)).days

        for max_age, bonus in self.recency_bonus:
            if age_days < max_age:
                candidate.add(bonus, f"recency:{age_days}d")
                break

    def _score_engagement(self, candidate: ScoredCandidate, views: Optional[int]):
        views = views or 0
        bonus = min(self.engagement['max_bonus'], views // self.engagement['views_per_point'])
        if bonus > 0:
            candidate.add(bonus, f"engagement:{views}")
