"""Relevance heuristics: profile-query classification, profile relevance,
note coverage and the external-lookup gate.
"""

import logging
import re
from collections.abc import Sequence

from pydantic import BaseModel, Field

from ..core.config import Settings
from ..core.domain.knowledge import Note, Profile, ProfileAnalysis
from ..core.embeddings.base import EmbeddingService

logger = logging.getLogger(__name__)

PROFILE_KEYWORDS: tuple[str, ...] = (
    "profile", "about me", "who am i", "my background", "my experience",
    "my education", "my skills", "my work", "my job", "my history",
    "my information", "tell me about myself", "my professional", "resume",
    "cv", "curriculum vitae", "career", "expertise", "professional identity",
)

EXTERNAL_KEYWORDS: tuple[str, ...] = (
    "search", "external", "online", "web", "internet", "look up",
    "wikipedia", "reference", "latest", "recent", "current",
    "what is", "who is", "where is", "when did", "how to",
)

_PUNCTUATION = re.compile(r"[.,?!;:()\[\]{}'\"]")

# Words of this length or shorter are ignored by coverage
_MIN_COVERAGE_WORD_LENGTH = 3


class RelevanceThresholds(BaseModel):
    """Tunable relevance cut-offs.

    Profile gates are ordered: query > response > inclusion. A profile can
    therefore reach the prompt without being echoed back in the response.
    """

    profile_query: float = Field(default=0.75, ge=0.0, le=1.0)
    profile_response: float = Field(default=0.6, ge=0.0, le=1.0)
    profile_inclusion: float = Field(default=0.5, ge=0.0, le=1.0)
    high_relevance: float = Field(default=0.7, ge=0.0, le=1.0)
    medium_relevance: float = Field(default=0.4, ge=0.0, le=1.0)
    extended_profile: float = Field(default=0.5, ge=0.0, le=1.0)
    external_coverage: float = Field(default=0.6, ge=0.0, le=1.0)
    fallback_high: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Relevance of a keyword profile query without embeddings"
    )
    fallback_low: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Relevance of any other query without embeddings"
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "RelevanceThresholds":
        return cls(
            profile_query=settings.profile_query_threshold,
            profile_response=settings.profile_response_threshold,
            profile_inclusion=settings.profile_inclusion_threshold,
            high_relevance=settings.high_profile_relevance_threshold,
            medium_relevance=settings.medium_profile_relevance_threshold,
            extended_profile=settings.extended_profile_threshold,
            external_coverage=settings.external_sources_threshold,
        )


def query_terms(query: str) -> set[str]:
    """Unique lowercased query words longer than three characters."""
    cleaned = _PUNCTUATION.sub("", query.lower())
    return {word for word in cleaned.split() if len(word) > _MIN_COVERAGE_WORD_LENGTH}


class RelevanceScorer:
    """Classifies queries and scores them against the profile and notes."""

    def __init__(
        self,
        embedding_service: EmbeddingService | None = None,
        thresholds: RelevanceThresholds | None = None,
    ):
        self.embedding_service = embedding_service
        self.thresholds = thresholds or RelevanceThresholds()

    def is_profile_query(self, query: str) -> bool:
        """Keyword pre-filter for queries about the user themself."""
        lowered = query.lower()
        return any(keyword in lowered for keyword in PROFILE_KEYWORDS)

    def _keyword_relevance(self, query: str) -> float:
        if self.is_profile_query(query):
            return self.thresholds.fallback_high
        return self.thresholds.fallback_low

    async def get_profile_relevance(self, query: str, profile: Profile | None) -> float:
        """Semantic relevance of ``query`` to the profile in [0, 1].

        Cosine similarity is pushed toward the extremes with
        ``(similarity * 0.5 + 0.5) ** 2``. Without a profile embedding (or
        when embedding fails) the keyword classifier decides.
        """
        if profile is None or not profile.embedding or self.embedding_service is None:
            return self._keyword_relevance(query)

        try:
            query_embedding = await self.embedding_service.embed(query)
            similarity = self.embedding_service.cosine_similarity(query_embedding, profile.embedding)
        except Exception as e:
            logger.error(f"Error calculating profile relevance: {str(e)}")
            return self._keyword_relevance(query)

        relevance = (similarity * 0.5 + 0.5) ** 2
        return max(0.0, min(1.0, relevance))

    async def analyze_profile(self, query: str, profile: Profile | None) -> ProfileAnalysis:
        """Classify the query and score it against the profile.

        A query that scores above the profile-query threshold is treated as
        a profile query even without a keyword match.
        """
        is_profile_query = self.is_profile_query(query)
        relevance = await self.get_profile_relevance(query, profile)

        if not is_profile_query and relevance > self.thresholds.profile_query:
            logger.debug(f"Query promoted to profile query (relevance {relevance:.2f})")
            is_profile_query = True

        return ProfileAnalysis(is_profile_query=is_profile_query, relevance=relevance)

    def should_include_profile_in_prompt(self, analysis: ProfileAnalysis) -> bool:
        return analysis.is_profile_query or analysis.relevance > self.thresholds.profile_inclusion

    def should_include_profile_in_response(self, analysis: ProfileAnalysis) -> bool:
        return analysis.is_profile_query or analysis.relevance > self.thresholds.profile_response

    def calculate_coverage(self, query: str, note: Note) -> float:
        """Fraction of query terms present in the note content, in [0, 1]."""
        terms = query_terms(query)
        if not terms:
            return 0.0

        content = note.content.lower()
        matches = sum(1 for term in terms if term in content)
        return matches / len(terms)

    def should_query_external_sources(self, query: str, notes: Sequence[Note]) -> bool:
        """Gate for external lookups, which only fill gaps in the notes."""
        if self.is_profile_query(query):
            return False

        if not notes:
            return True

        lowered = query.lower()
        if any(keyword in lowered for keyword in EXTERNAL_KEYWORDS):
            return True

        coverage = max(self.calculate_coverage(query, note) for note in notes)
        return coverage < self.thresholds.external_coverage
