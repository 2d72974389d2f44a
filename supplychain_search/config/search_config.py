"""
Configuration settings for the supply chain news search engine.
"""

import os
from pathlib import Path

# Base directories
BASE_DIR = Path(__file__).parent.parent.parent
CONFIG_DIR = Path(__file__).parent

# Data directory - use environment variable in production, local path in development
DATA_DIR = Path(os.getenv("DATA_DIR", str(BASE_DIR / "data")))

# Database path - support environment variable override for production
DATABASE_PATH = os.getenv("DATABASE_PATH", str(DATA_DIR / "articles.db"))


# SCORING WEIGHTS
#
# Empirical point values. Every field is checked three ways:
#   exact   - the full (possibly enhanced) query is a substring of the field
#   term    - a literal query term is a substring of the field
#   related - an enhancer-supplied related term is a substring of the field
#
# A weight of None means the rule does not apply to that field.

SCORING_WEIGHTS = {
    "title": {"exact": 15, "term": 8, "related": 6},
    "publisher": {"exact": 7, "term": 4, "related": 3},
    "summary": {"exact": 10, "term": 5, "related": 4},
    "content": {"exact": 8, "term": 2, "related": 1},
    "slug": {"exact": 10, "term": 6, "related": None},
    "category": {"exact": 12, "term": 7, "related": 5},
}

# Content body frequency bonus: min(occurrences, cap) added on top of the
# flat term/related bonus
CONTENT_FREQUENCY_CONFIG = {
    "term_occurrence_cap": 10,
    "related_occurrence_cap": 5,
}


# EARLY POSITION BONUS
#
# Literal query terms found in the leading characters of a field

EARLY_POSITION_CONFIG = {
    "title": {"window": 20, "bonus": 3},
    "summary": {"window": 30, "bonus": 2},
    "content": {"window": 100, "bonus": 2},
}


# RECENCY BONUS
#
# (max age in whole days, exclusive; bonus). First matching threshold wins.

RECENCY_BONUS = [
    (7, 10),
    (14, 6),
    (30, 3),
]


# ENGAGEMENT BONUS
#
# min(max_bonus, views // views_per_point)

ENGAGEMENT_CONFIG = {
    "views_per_point": 10,
    "max_bonus": 5,
}


# SEARCH CONFIGURATION

SEARCH_CONFIG = {
    "default_limit": 10,
    "max_limit": 100,
    "min_term_length": 2,
    "max_query_length": 500,
    "published_status": "published",
}


# QUERY ENHANCER CONFIGURATION
#
# Optional semantic expansion through the Perplexity chat completions API.
# Disabled when no API key is configured.

PERPLEXITY_API_KEY = os.getenv("PERPLEXITY_API_KEY", "")

ENHANCER_CONFIG = {
    "enabled": bool(PERPLEXITY_API_KEY),
    "api_url": os.getenv("ENHANCER_API_URL", "https://api.perplexity.ai/chat/completions"),
    "model": os.getenv("ENHANCER_MODEL", "llama-3.1-sonar-small-128k-online"),
    "temperature": 0.2,
    "max_tokens": 1024,
    "timeout_seconds": float(os.getenv("ENHANCER_TIMEOUT", "8.0")),
    "default_confidence": 0.8,
}

ENHANCER_SYSTEM_PROMPT = """You are a specialized search query analyzer for a supply chain news website.
Your job is to analyze user search queries and:
1. Determine if this is a natural language question or a keyword search
2. Extract the most relevant supply chain/logistics keywords
3. Identify related terms that should also be searched
4. Provide a confidence score (0.0-1.0) for your understanding
5. Generate a clean, enhanced search query that will yield the best results

Format your response as a JSON object with these properties:
- enhancedQuery: String - The enhanced search query
- relatedTerms: Array of Strings - Related keywords
- enhancementType: String - Either "semantic" for meaning-based enhancement or "natural-language" for question parsing
- confidenceScore: Number - From 0.0 to 1.0
- queryContext: String - Brief explanation of what you think the user is looking for"""


# CONCURRENCY CONFIGURATION

CONCURRENCY_CONFIG = {
    "search_thread_pool_size": int(os.getenv("SEARCH_THREADS", "4")),
}


# LOGGING CONFIGURATION

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_DIR = Path(os.getenv("LOG_DIR", str(BASE_DIR / "logs")))
LOG_DIR.mkdir(parents=True, exist_ok=True)

LOG_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "class": "pythonjsonlogger.json.JsonFormatter",
            "format": "%(asctime)s %(name)s %(levelname)s %(message)s"
        },
        "standard": {
            "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "level": LOG_LEVEL,
            "formatter": "standard",
            "stream": "ext://sys.stdout"
        },
        "api": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(LOG_DIR / "api.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "formatter": "json",
            "level": LOG_LEVEL
        },
        "search": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(LOG_DIR / "search.log"),
            "maxBytes": 10485760,
            "backupCount": 5,
            "formatter": "json",
            "level": LOG_LEVEL
        },
        "errors": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": str(LOG_DIR / "errors.log"),
            "maxBytes": 10485760,
            "backupCount": 5,
            "formatter": "json",
            "level": "ERROR"
        }
    },
    "loggers": {
        "api": {
            "handlers": ["console", "api", "errors"],
            "level": LOG_LEVEL,
            "propagate": False
        },
        "search": {
            "handlers": ["console", "search", "errors"],
            "level": LOG_LEVEL,
            "propagate": False
        },
        "": {  # Root logger
            "handlers": ["console", "errors"],
            "level": LOG_LEVEL
        }
    }
}


# API CONFIGURATION

API_CONFIG = {
    "host": os.getenv("API_HOST", "0.0.0.0"),
    "port": int(os.getenv("API_PORT", "8000")),
    "reload": os.getenv("RELOAD", "false").lower() == "true",
    "log_level": LOG_LEVEL.lower()
}

CORS_ORIGINS = [
    "http://localhost:5173",  # Vite dev server
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
]


# ENVIRONMENT

DEBUG = os.getenv("DEBUG", "false").lower() == "true"
ENVIRONMENT = os.getenv("ENVIRONMENT", "development")
