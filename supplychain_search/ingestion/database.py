"""
Database initialization and management for the article corpus.
"""

import sqlite3
from pathlib import Path
from typing import Optional
import logging

logger = logging.getLogger(__name__)


class Database:
    """Owns the sqlite connection and the articles/categories schema."""

    def __init__(self, db_path: str):
        """
        Args:
            db_path: Path to the SQLite database file (":memory:" allowed)
        """
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self.connection: Optional[sqlite3.Connection] = None

    def connect(self) -> sqlite3.Connection:
        """Open the connection lazily; rows come back as sqlite3.Row."""
        if self.connection is None:
            self.connection = sqlite3.connect(self.db_path, check_same_thread=False)
            self.connection.row_factory = sqlite3.Row
        return self.connection

    def initialize_schema(self):
        """Create tables and indexes if they do not exist yet."""
        conn = self.connect()
        cursor = conn.cursor()

        # Categories table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS categories (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT UNIQUE NOT NULL,
                slug TEXT UNIQUE NOT NULL,
                parent_id INTEGER,
                type TEXT NOT NULL DEFAULT 'content'
            )
        """)

        # Articles table
        cursor.execute("""
            CREATE TABLE IF NOT EXISTS articles (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                title TEXT NOT NULL,
                slug TEXT UNIQUE NOT NULL,
                summary TEXT NOT NULL,
                content TEXT NOT NULL,
                image_url TEXT NOT NULL DEFAULT '',
                category_id INTEGER NOT NULL,
                tags_json TEXT,
                featured BOOLEAN DEFAULT 0,
                status TEXT NOT NULL DEFAULT 'published',
                published_at DATETIME NOT NULL,
                published_by TEXT,
                views INTEGER DEFAULT 0,
                FOREIGN KEY (category_id) REFERENCES categories(id)
            )
        """)

        # Create indexes
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_status ON articles(status)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_published_at ON articles(published_at)")
        cursor.execute("CREATE INDEX IF NOT EXISTS idx_category ON articles(category_id)")

        conn.commit()
        logger.info(f"Schema ready at {self.db_path}")

    def close(self):
        """Close the connection if open."""
        if self.connection:
            self.connection.close()
            self.connection = None

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


def init_database(db_path: str) -> Database:
    """Open the database at db_path and make sure the schema exists."""
    db = Database(db_path)
    db.initialize_schema()
    return db
