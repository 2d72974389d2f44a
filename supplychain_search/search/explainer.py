"""
Expose per-article match reasons for presentation.
"""

from typing import Dict, List, Sequence

from ..common.types import ScoredCandidate

KIND_LABELS = {
    'exact': 'full query',
    'term': 'term',
    'related': 'related term',
    'early': 'early mention of',
}


def explain(candidates: Sequence[ScoredCandidate]) -> List[Dict]:
    """
    Project ranked candidates to their reason tags, keeping order and membership.

    Args:
        candidates: Final paginated candidates

    Returns:
        List of {'article_id', 'score', 'match_reasons'} dicts
    """
    return [
        {
            'article_id': candidate.article.id,
            'score': candidate.score,
            'match_reasons': list(candidate.reasons)
        }
        for candidate in candidates
    ]


def describe_reason(tag: str) -> str:
    """
    Render a reason tag as a short human-readable phrase.

    Examples:
        title:exact                -> title matches full query
        content:term:freight:3     -> content term "freight" (3x)
        recency:2d                 -> published 2 days ago
    """
    parts = tag.split(':')
    field = parts[0]

    if field == 'recency' and len(parts) > 1:
        return f"published {parts[1].rstrip('d')} days ago"
    if field == 'engagement' and len(parts) > 1:
        return f"{parts[1]} views"
    if len(parts) < 2:
        return tag

    kind = parts[1]
    label = KIND_LABELS.get(kind, kind)

    if kind == 'exact':
        return f"{field} matches {label}"
    if kind == 'early' and len(parts) > 2:
        return f"{label} \"{parts[2]}\" in {field}"
    if len(parts) > 3:
        return f"{field} {label} \"{parts[2]}\" ({parts[3]}x)"
    if len(parts) > 2:
        return f"{field} {label} \"{parts[2]}\""
    return tag
