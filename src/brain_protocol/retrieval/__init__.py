"""Retrieval collaborators: notes, profile and external sources."""

from .base import ExternalSearch, NoteRetrieval, ProfileRetrieval
from .external import ExternalSourceAggregator, WikipediaSearch

__all__ = [
    "ExternalSearch",
    "ExternalSourceAggregator",
    "NoteRetrieval",
    "ProfileRetrieval",
    "WikipediaSearch",
]
