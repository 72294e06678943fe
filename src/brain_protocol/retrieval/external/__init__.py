"""External knowledge sources."""

from .aggregator import ExternalSourceAggregator
from .news import NewsApiSearch
from .wikipedia import WikipediaSearch

__all__ = ["ExternalSourceAggregator", "NewsApiSearch", "WikipediaSearch"]
