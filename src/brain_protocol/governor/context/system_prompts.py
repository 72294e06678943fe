"""System prompt templates selected from query classification."""

from enum import Enum

from ..relevance import RelevanceThresholds

_COMMON_GUIDELINES = (
    "Format your response in markdown for readability",
    "Keep responses clear and concise",
    "Do not invent information that is not in the provided context",
)


class SystemPromptVariant(str, Enum):
    """Instruction variants, in selection priority order."""

    PROFILE_WITH_EXTERNAL = "profile_with_external"
    PROFILE_ONLY = "profile_only"
    HIGH_RELEVANCE = "high_relevance"
    MEDIUM_RELEVANCE = "medium_relevance"
    NOTES_WITH_EXTERNAL = "notes_with_external"
    NOTES_ONLY = "notes_only"


def _render(intro: str, task: str, guidelines: list[str]) -> str:
    numbered = "\n".join(f"{index}. {line}" for index, line in enumerate(guidelines, 1))
    return f"{intro}\n{task}\n\nGuidelines:\n{numbered}"


class SystemPromptGenerator:
    """Chooses the system instructions for the language model."""

    def __init__(self, thresholds: RelevanceThresholds | None = None):
        self.thresholds = thresholds or RelevanceThresholds()

    def select_variant(
        self,
        is_profile_query: bool = False,
        profile_relevance: float = 0.0,
        has_external_sources: bool = False,
    ) -> SystemPromptVariant:
        """Decision table over the query classification.

        Priority: profile with external sources, profile only, high
        relevance, medium relevance, then notes with or without external
        sources.
        """
        if is_profile_query and has_external_sources:
            return SystemPromptVariant.PROFILE_WITH_EXTERNAL
        if is_profile_query:
            return SystemPromptVariant.PROFILE_ONLY
        if profile_relevance > self.thresholds.high_relevance:
            return SystemPromptVariant.HIGH_RELEVANCE
        if profile_relevance > self.thresholds.medium_relevance:
            return SystemPromptVariant.MEDIUM_RELEVANCE
        if has_external_sources:
            return SystemPromptVariant.NOTES_WITH_EXTERNAL
        return SystemPromptVariant.NOTES_ONLY

    def get_system_prompt(
        self,
        is_profile_query: bool = False,
        profile_relevance: float = 0.0,
        has_external_sources: bool = False,
    ) -> str:
        variant = self.select_variant(is_profile_query, profile_relevance, has_external_sources)
        return self.render(variant, has_external_sources)

    def render(self, variant: SystemPromptVariant, has_external_sources: bool = False) -> str:
        match variant:
            case SystemPromptVariant.PROFILE_WITH_EXTERNAL:
                return _render(
                    "You are an assistant connected to a personal knowledge base, "
                    "the user's profile and external knowledge sources.",
                    "Answer accurately using the user's profile, their notes and "
                    "the external information provided.",
                    [
                        "For questions about the user, rely first on the profile information",
                        "Balance personal and external information when answering",
                        "Address the user directly in the second person (\"You are ...\")",
                        *_COMMON_GUIDELINES,
                        "Cite external sources whenever you use them",
                        "Say whether a fact comes from an external source or from personal notes",
                        "Stay conversational but professional about personal details",
                    ],
                )
            case SystemPromptVariant.PROFILE_ONLY:
                return _render(
                    "You are an assistant connected to a personal knowledge base "
                    "and the user's profile.",
                    "Answer accurately using the user's profile and relevant notes.",
                    [
                        "For questions about the user, rely first on the profile information",
                        "Use only the provided context",
                        "Address the user directly in the second person (\"You are ...\")",
                        *_COMMON_GUIDELINES,
                        "Point to specific parts of the profile such as roles or skills when useful",
                        "Stay conversational but professional about personal details",
                    ],
                )
            case SystemPromptVariant.HIGH_RELEVANCE:
                return _render(
                    "You are an assistant connected to a personal knowledge base "
                    "and the user's profile.",
                    "Connect the user's notes with their background and expertise.",
                    [
                        "Pay particular attention to the user's professional background",
                        "Relate ideas in the notes to the user's experience where relevant",
                        *_COMMON_GUIDELINES,
                        "Suggest applications to the user's work or projects where they fit",
                    ],
                )
            case SystemPromptVariant.MEDIUM_RELEVANCE:
                guidelines = [
                    "Answer primarily from the notes in the provided context",
                    "Bring in the user's expertise as background when relevant",
                    *_COMMON_GUIDELINES,
                    "Mention how the topic relates to the user's interests when appropriate",
                ]
                if has_external_sources:
                    guidelines.extend([
                        "Clearly indicate the source of any external information",
                        "Combine external knowledge with personal insights where it helps",
                    ])
                return _render(
                    "You are an assistant connected to a personal knowledge base "
                    "and the user's profile.",
                    "Answer mainly from the user's notes, using their profile as background.",
                    guidelines,
                )
            case SystemPromptVariant.NOTES_WITH_EXTERNAL:
                return _render(
                    "You are an assistant connected to a personal knowledge base "
                    "and external knowledge sources.",
                    "Answer accurately using the user's notes and the external information provided.",
                    [
                        "Prefer personal notes when they contain the answer",
                        *_COMMON_GUIDELINES,
                        "Cite external sources whenever you use them",
                        "Say whether a fact comes from an external source or from personal notes",
                        "Acknowledge and explain conflicts between sources",
                    ],
                )
            case SystemPromptVariant.NOTES_ONLY:
                return _render(
                    "You are an assistant connected to a personal knowledge base.",
                    "Answer accurately using the user's notes.",
                    [
                        "Use only the provided context",
                        "Acknowledge when the context does not hold enough information",
                        *_COMMON_GUIDELINES,
                        "Mention related topics from the notes worth exploring",
                    ],
                )
