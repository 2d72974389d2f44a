"""
Article storage and read-only corpus access.

ArticleStorage writes categories and articles; the corpus providers hand the
search engine a snapshot of published articles and all categories.
"""

import json
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol
import logging

from ..common.types import Article, Category, ensure_utc
from ..config.search_config import SEARCH_CONFIG

logger = logging.getLogger(__name__)


class CorpusProvider(Protocol):
    """Read-only source of searchable articles."""

    def get_published_articles(self) -> List[Article]:
        ...

    def get_categories(self) -> List[Category]:
        ...


# ============================================================================
# In-memory corpus
# ============================================================================

class InMemoryCorpusProvider:
    """Corpus held in memory; handy for embedding and tests."""

    def __init__(
        self,
        articles: Optional[Iterable[Article]] = None,
        categories: Optional[Iterable[Category]] = None
    ):
        self.articles = list(articles or [])
        self.categories = list(categories or [])

    def get_published_articles(self) -> List[Article]:
        status = SEARCH_CONFIG['published_status']
        published = [a for a in self.articles if a.status == status]
        return sorted(published, key=lambda a: ensure_utc(a.published_at), reverse=True)

    def get_categories(self) -> List[Category]:
        return list(self.categories)

    def get_statistics(self) -> Dict:
        """Counts over every held article, drafts included in total_articles."""
        published = self.get_published_articles()
        dates = [ensure_utc(a.published_at) for a in published]
        return {
            'total_articles': len(self.articles),
            'published_articles': len(published),
            'categories_count': len(self.categories),
            'date_range': {
                'earliest': min(dates).isoformat() if dates else None,
                'latest': max(dates).isoformat() if dates else None
            }
        }


# ============================================================================
# SQLite corpus
# ============================================================================

class SQLiteCorpusProvider:
    """Reads the corpus from the articles database."""

    def __init__(self, db_connection: sqlite3.Connection):
        """
        Args:
            db_connection: SQLite connection with row_factory = sqlite3.Row
        """
        self.db = db_connection

    def get_published_articles(self) -> List[Article]:
        """
        Snapshot of published articles, newest first.

        Returns:
            List of Article
        """
        cursor = self.db.cursor()
        cursor.execute("""
            SELECT id, title, slug, summary, content, image_url, category_id,
                   tags_json, featured, status, published_at, published_by, views
            FROM articles
            WHERE status = ?
            ORDER BY published_at DESC
        """, (SEARCH_CONFIG['published_status'],))

        articles = []
        for row in cursor.fetchall():
            try:
                articles.append(row_to_article(row))
            except Exception as e:
                logger.error(f"Skipping unreadable article row {row['id']}: {e}", exc_info=True)
        return articles

    def get_categories(self) -> List[Category]:
        cursor = self.db.cursor()
        cursor.execute("SELECT id, name, slug, parent_id, type FROM categories ORDER BY id")
        return [
            Category(
                id=row['id'],
                name=row['name'],
                slug=row['slug'],
                parent_id=row['parent_id'],
                type=row['type']
            )
            for row in cursor.fetchall()
        ]

    def get_statistics(self) -> Dict:
        """
        Corpus statistics for the stats endpoint and CLI.

        Returns:
            Dict with article/category counts and publish date range
        """
        cursor = self.db.cursor()

        cursor.execute("SELECT COUNT(*) as count FROM articles")
        total_articles = cursor.fetchone()['count']

        cursor.execute(
            "SELECT COUNT(*) as count FROM articles WHERE status = ?",
            (SEARCH_CONFIG['published_status'],)
        )
        published_articles = cursor.fetchone()['count']

        cursor.execute("SELECT COUNT(*) as count FROM categories")
        categories_count = cursor.fetchone()['count']

        cursor.execute("""
            SELECT MIN(published_at) as earliest, MAX(published_at) as latest
            FROM articles
            WHERE status = ?
        """, (SEARCH_CONFIG['published_status'],))
        date_row = cursor.fetchone()

        return {
            'total_articles': total_articles,
            'published_articles': published_articles,
            'categories_count': categories_count,
            'date_range': {
                'earliest': date_row['earliest'] if date_row else None,
                'latest': date_row['latest'] if date_row else None
            }
        }


def parse_timestamp(value) -> datetime:
    """Parse an ISO timestamp (or pass a datetime through) as UTC."""
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(str(value).replace('Z', '+00:00')))


def row_to_article(row: sqlite3.Row) -> Article:
    tags = []
    if row['tags_json']:
        try:
            decoded = json.loads(row['tags_json'])
        except (json.JSONDecodeError, TypeError):
            decoded = None
        if isinstance(decoded, list):
            tags = [str(tag) for tag in decoded]
        else:
            logger.warning(f"Invalid tags_json for article {row['id']}")

    return Article(
        id=row['id'],
        title=row['title'],
        slug=row['slug'],
        summary=row['summary'],
        content=row['content'],
        image_url=row['image_url'] or '',
        category_id=row['category_id'],
        tags=tuple(tags),
        featured=bool(row['featured']),
        status=row['status'],
        published_at=parse_timestamp(row['published_at']),
        published_by=row['published_by'],
        views=row['views'] or 0
    )


# ============================================================================
# Writes
# ============================================================================

class ArticleStorage:
    """Manages storing categories and articles in the SQLite database."""

    def __init__(self, db_connection: sqlite3.Connection):
        """
        Initialize article storage.

        Args:
            db_connection: SQLite database connection
        """
        self.db = db_connection

    def save_category(self, category: Dict) -> Optional[int]:
        """
        Save a category, returning the existing id on duplicate name.

        Args:
            category: Dict with name, slug and optional id/parent_id/type

        Returns:
            Category ID
        """
        cursor = self.db.cursor()
        cursor.execute("SELECT id FROM categories WHERE name = ?", (category['name'],))
        existing = cursor.fetchone()
        if existing:
            logger.debug(f"Category already exists: {category['name']}")
            return existing['id']

        cursor.execute("""
            INSERT INTO categories (id, name, slug, parent_id, type)
            VALUES (?, ?, ?, ?, ?)
        """, (
            category.get('id'),
            category['name'],
            category.get('slug') or slugify(category['name']),
            category.get('parent_id'),
            category.get('type', 'content')
        ))
        self.db.commit()
        return cursor.lastrowid

    def save_article(self, article: Dict) -> Optional[int]:
        """
        Save a single article to the database.

        Args:
            article: Article dictionary with content and metadata

        Returns:
            Article ID if saved, None if duplicate slug
        """
        cursor = self.db.cursor()
        slug = article.get('slug') or slugify(article['title'])

        cursor.execute("SELECT id FROM articles WHERE slug = ?", (slug,))
        if cursor.fetchone():
            logger.debug(f"Article already exists: {slug}")
            return None

        published_at = article.get('published_at') or datetime.now(timezone.utc)

        cursor.execute("""
            INSERT INTO articles (
                id, title, slug, summary, content, image_url, category_id, tags_json,
                featured, status, published_at, published_by, views
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            article.get('id'),
            article['title'],
            slug,
            article.get('summary', ''),
            article.get('content', ''),
            article.get('image_url', ''),
            article['category_id'],
            json.dumps(clean_tags(article.get('tags'), slug)),
            bool(article.get('featured', False)),
            article.get('status', SEARCH_CONFIG['published_status']),
            parse_timestamp(published_at).isoformat(),
            article.get('published_by'),
            int(article.get('views') or 0)
        ))
        self.db.commit()

        logger.debug(f"Saved article {cursor.lastrowid}: {article['title'][:50]}")
        return cursor.lastrowid

    def import_file(self, path: str) -> Dict[str, int]:
        """
        Import categories and articles from a JSON file.

        The file holds {"categories": [...], "articles": [...]}.

        Args:
            path: JSON file path

        Returns:
            Counts of categories, saved articles, duplicates and rows
            rejected by the database (e.g. a category slug collision)
        """
        with open(Path(path), 'r', encoding='utf-8') as f:
            data = json.load(f)

        stats = {'categories': 0, 'articles_saved': 0, 'duplicates': 0, 'failed': 0}

        for category in data.get('categories', []):
            try:
                self.save_category(category)
            except sqlite3.IntegrityError as e:
                self.db.rollback()
                logger.warning(f"Skipping category {category.get('name')!r}: {e}")
                stats['failed'] += 1
                continue
            stats['categories'] += 1

        for article in data.get('articles', []):
            try:
                saved = self.save_article(article)
            except sqlite3.IntegrityError as e:
                self.db.rollback()
                logger.warning(f"Skipping article {article.get('title')!r}: {e}")
                stats['failed'] += 1
                continue

            if saved is None:
                stats['duplicates'] += 1
            else:
                stats['articles_saved'] += 1

        logger.info(
            f"Imported {stats['articles_saved']} articles "
            f"({stats['duplicates']} duplicates, {stats['failed']} failed), "
            f"{stats['categories']} categories"
        )
        return stats


def clean_tags(tags, slug: str = '') -> List[str]:
    """Keep a list of string tags; anything else is stored as no tags."""
    if tags is None:
        return []
    if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        logger.warning(f"Ignoring invalid tags for article {slug!r}: {tags!r}")
        return []
    return tags


def slugify(text: str) -> str:
    """Lowercase, hyphen-separated slug."""
    words = ''.join(c if c.isalnum() else ' ' for c in text.lower()).split()
    return '-'.join(words)
