"""
Relevance-ranked article search for supply chain news.
"""

__version__ = "1.0.0"
