"""
Rank scored candidates and slice the requested page.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, List, Optional, Tuple

from ..common.types import ScoredCandidate, ensure_utc
from ..config.search_config import SEARCH_CONFIG

logger = logging.getLogger('search')

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass
class RankedPage:
    """One page of ranked candidates plus the pre-slice total."""
    candidates: List[ScoredCandidate]
    total: int
    limit: int
    offset: int


def clamp_pagination(
    limit: Any,
    offset: Any,
    default_limit: Optional[int] = None,
    max_limit: Optional[int] = None
) -> Tuple[int, int]:
    """
    Coerce raw limit/offset values into a usable window.

    Negative, zero (for limit), missing or non-numeric values fall back to
    the defaults; limit is capped at max_limit.

    Args:
        limit: Requested page size (int, numeric string, or junk)
        offset: Requested offset (int, numeric string, or junk)
        default_limit: Page size used when limit is invalid
        max_limit: Upper bound on page size

    Returns:
        (limit, offset) tuple
    """
    default_limit = default_limit or SEARCH_CONFIG['default_limit']
    max_limit = max_limit or SEARCH_CONFIG['max_limit']

    parsed_limit = _to_int(limit)
    if parsed_limit is None or parsed_limit < 1:
        parsed_limit = default_limit
    parsed_limit = min(parsed_limit, max_limit)

    parsed_offset = _to_int(offset)
    if parsed_offset is None or parsed_offset < 0:
        parsed_offset = 0

    return parsed_limit, parsed_offset


def _to_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _sort_key(candidate: ScoredCandidate):
    published_at = candidate.article.published_at
    published_at = ensure_utc(published_at) if published_at else _EPOCH
    return (candidate.score, published_at)


def rank_candidates(
    candidates: Iterable[ScoredCandidate],
    limit: int,
    offset: int
) -> RankedPage:
    """
    Drop non-positive scores, sort and paginate.

    Ordering is score descending, then publish time descending. Candidates
    tied on both keep their incoming (corpus) order.

    Args:
        candidates: Scored candidates, zero scores included
        limit: Page size (already clamped)
        offset: Page offset (already clamped)

    Returns:
        RankedPage with the sliced candidates and the total match count
    """
    relevant = [c for c in candidates if c.score > 0]
    ranked = sorted(relevant, key=_sort_key, reverse=True)

    page = ranked[offset:offset + limit]

    logger.debug(
        f"Ranked {len(ranked)} relevant candidates, "
        f"returning {len(page)} (offset={offset}, limit={limit})"
    )

    return RankedPage(candidates=page, total=len(ranked), limit=limit, offset=offset)
