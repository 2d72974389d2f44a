"""
Query normalizer for free-text article search.

Turns the raw user query into a lowercased, trimmed string and an ordered,
deduplicated list of terms. Terms shorter than the configured minimum length
are dropped.

Security:
- Null bytes stripped
- Query length limit enforced (truncated, never rejected)
"""

from typing import Iterable, List, Optional
import logging

from ..common.types import NormalizedQuery
from ..config.search_config import SEARCH_CONFIG

logger = logging.getLogger('search')


class QueryParser:
    """
    Normalize raw search input.

    Examples:
    - "  Red Sea  " -> text "red sea", terms ("red", "sea")
    - "a port"      -> text "a port", terms ("port",)
    - "   "         -> empty query
    """

    def __init__(
        self,
        min_term_length: Optional[int] = None,
        max_query_length: Optional[int] = None
    ):
        """
        Initialize query parser.

        Args:
            min_term_length: Shortest term kept (defaults to SEARCH_CONFIG)
            max_query_length: Longest query accepted before truncation
        """
        self.min_term_length = min_term_length or SEARCH_CONFIG['min_term_length']
        self.max_query_length = max_query_length or SEARCH_CONFIG['max_query_length']

    def parse(self, query: Optional[str]) -> NormalizedQuery:
        """
        Normalize a raw query string.

        Args:
            query: Raw query string from user (may be None/empty/whitespace)

        Returns:
            NormalizedQuery; empty text and terms when nothing searchable remains
        """
        if not query or not isinstance(query, str):
            return NormalizedQuery('', ())

        query = self._sanitize_value(query)

        if len(query) > self.max_query_length:
            logger.warning(
                f"Query truncated from {len(query)} to {self.max_query_length} characters"
            )
            query = query[:self.max_query_length].strip()

        text = query.lower()
        if not text:
            return NormalizedQuery('', ())

        terms = self.extract_terms(text.split())

        logger.debug(f"Normalized query: '{text}' -> terms={list(terms)}")

        return NormalizedQuery(text=text, terms=tuple(terms))

    def extract_terms(self, tokens: Iterable[str]) -> List[str]:
        """
        Keep tokens long enough to be terms, preserving first-seen order.

        Args:
            tokens: Candidate tokens (already lowercased)

        Returns:
            Deduplicated list of terms
        """
        seen = set()
        terms = []
        for token in tokens:
            token = token.strip()
            if len(token) < self.min_term_length or token in seen:
                continue
            seen.add(token)
            terms.append(token)
        return terms

    def _sanitize_value(self, value: str) -> str:
        """Remove null bytes and surrounding whitespace."""
        return value.replace('\x00', '').strip()


def parse_query(query: Optional[str]) -> NormalizedQuery:
    """
    Convenience function to normalize a query.

    Args:
        query: Raw query string

    Returns:
        NormalizedQuery object
    """
    parser = QueryParser()
    return parser.parse(query)
