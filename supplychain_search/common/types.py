"""
Value types shared by the storage layer and the search pipeline.

Everything here is created fresh per search call and never mutated by the
engine once built.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional, Tuple, Union


@dataclass(frozen=True)
class Category:
    """Article category (display name is what the scorer matches)."""
    id: int
    name: str
    slug: str = ""
    parent_id: Optional[int] = None
    type: str = "content"


@dataclass(frozen=True)
class Article:
    """Read-only snapshot of a stored article."""
    id: int
    title: str
    slug: str
    summary: str
    content: str
    category_id: int
    published_at: datetime
    status: str = "published"
    published_by: Optional[str] = None
    views: int = 0
    image_url: str = ""
    featured: bool = False
    tags: Tuple[str, ...] = ()

    def to_dict(self) -> dict:
        """Serialize for API/CLI output."""
        return {
            'id': self.id,
            'title': self.title,
            'slug': self.slug,
            'summary': self.summary,
            'content': self.content,
            'image_url': self.image_url,
            'category_id': self.category_id,
            'tags': list(self.tags),
            'featured': self.featured,
            'status': self.status,
            'published_at': self.published_at.isoformat(),
            'published_by': self.published_by,
            'views': self.views,
        }


@dataclass(frozen=True)
class NormalizedQuery:
    """Lowercased, trimmed query and its ordered, deduplicated terms."""
    text: str
    terms: Tuple[str, ...]

    def is_empty(self) -> bool:
        return not self.text


@dataclass(frozen=True)
class EnhancementResult:
    """Successful response from the query enhancer."""
    enhanced_query: str
    related_terms: Tuple[str, ...] = ()
    query_context: Optional[str] = None
    enhancement_type: str = "standard"
    confidence_score: float = 1.0


@dataclass(frozen=True)
class Unavailable:
    """Enhancer could not help (disabled, timed out, failed, or malformed)."""
    reason: str


Enhancement = Union[EnhancementResult, Unavailable]


@dataclass
class ScoredCandidate:
    """An article paired with its relevance score and match reasons."""
    article: Article
    score: int = 0
    reasons: List[str] = field(default_factory=list)

    def add(self, points: int, reason: str):
        """Add points and record why."""
        self.score += points
        self.reasons.append(reason)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so age arithmetic never mixes kinds."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
