"""
Pydantic models for API responses.

Field names are snake_case in Python and camelCase on the wire.
"""

from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    """Base model serializing to camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Search Models
# ============================================================================

class ArticleResult(ApiModel):
    """Individual search result: the article plus its relevance diagnostics."""

    id: int = Field(..., description="Article ID")
    title: str = Field(..., description="Article title")
    slug: str = Field(..., description="Article slug")
    summary: str = Field(..., description="Article summary")
    content: str = Field(..., description="Article body")
    image_url: str = Field("", description="Cover image URL")
    category_id: int = Field(..., description="Category ID")
    tags: List[str] = Field(default_factory=list, description="Article tags")
    featured: bool = Field(False, description="Featured flag")
    status: str = Field(..., description="Lifecycle status")
    published_at: str = Field(..., description="Publication timestamp (ISO 8601)")
    published_by: Optional[str] = Field(None, description="Publisher name")
    views: int = Field(0, description="View count")
    score: int = Field(..., description="Relevance score")
    match_reasons: List[str] = Field(default_factory=list, description="Scoring rules that fired")


class SearchResponse(ApiModel):
    """Search response."""

    articles: List[ArticleResult] = Field(..., description="Ranked page of articles")
    total: int = Field(..., description="Relevant articles before pagination")
    enhanced_query: Optional[str] = Field(None, description="Query after AI enhancement")
    query_context: Optional[str] = Field(None, description="Enhancer's reading of the query")
    related_terms: Optional[List[str]] = Field(None, description="Related terms used in scoring")
    processing_time: int = Field(..., description="Search time in milliseconds")


# ============================================================================
# Category Models
# ============================================================================

class CategoryItem(ApiModel):
    """Category information."""

    id: int = Field(..., description="Category ID")
    name: str = Field(..., description="Display name")
    slug: str = Field(..., description="Category slug")
    parent_id: Optional[int] = Field(None, description="Parent category ID")
    type: str = Field("content", description="Category type")


class CategoriesResponse(ApiModel):
    """Categories response."""

    categories: List[CategoryItem] = Field(..., description="List of categories")
    total: int = Field(..., description="Total categories")


# ============================================================================
# Statistics Models
# ============================================================================

class DateRange(ApiModel):
    """Date range information."""

    earliest: Optional[str] = Field(None, description="Earliest article date")
    latest: Optional[str] = Field(None, description="Latest article date")


class StatsResponse(ApiModel):
    """Corpus statistics response."""

    total_articles: int = Field(..., description="Total articles in database")
    published_articles: int = Field(..., description="Searchable articles")
    categories_count: int = Field(..., description="Number of categories")
    date_range: DateRange = Field(..., description="Date range of published articles")


# ============================================================================
# Health Models
# ============================================================================

class HealthResponse(ApiModel):
    """Health check response."""

    status: str = Field(..., description="Service status")
    database_connected: bool = Field(..., description="Database connection status")
    enhancer_enabled: bool = Field(..., description="Whether AI query enhancement is configured")
    uptime_seconds: Optional[int] = Field(None, description="Service uptime in seconds")


# ============================================================================
# Error Models
# ============================================================================

class ErrorResponse(ApiModel):
    """Error response."""

    error: str = Field(..., description="Error message")
    code: str = Field(..., description="Error code")
    details: Optional[Dict[str, Any]] = Field(None, description="Additional error details")
