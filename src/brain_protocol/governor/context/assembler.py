"""Context Assembler - prompt assembly for the query pipeline.

Merges conversation history, profile detail, notes and external results
into a single user prompt, with citation lists aligned to the numbered
context blocks.
"""

import re
from dataclasses import dataclass, field

from ...core.domain.knowledge import (
    Citation,
    Experience,
    ExternalCitation,
    ExternalResult,
    Note,
    Profile,
)
from ..relevance import RelevanceThresholds

# (profile, notes, external) -> sentence introducing the context
PROMPT_PREFIXES: dict[tuple[bool, bool, bool], str] = {
    (True, True, True): (
        "I have the following information from my personal knowledge base, "
        "my profile, and external sources:"
    ),
    (True, True, False): (
        "I have the following information in my personal knowledge base, "
        "including my profile and relevant notes:"
    ),
    (True, False, True): "I have the following information from my profile and external sources:",
    (False, True, True): (
        "I have the following information from my personal knowledge base "
        "and external sources:"
    ),
    (True, False, False): (
        "I have the following information about my profile in my personal knowledge base:"
    ),
    (False, True, False): "I have the following information in my personal knowledge base:",
    (False, False, True): "I have the following information from external sources:",
    (False, False, False): "I have limited information in my personal knowledge base:",
}

EXCERPT_LENGTH = 150
DESCRIPTION_LENGTH = 100
MAX_PAST_ROLES = 5
MAX_PROJECTS = 3


@dataclass
class AssembledPrompt:
    """User prompt plus citations in block order."""

    prompt: str
    citations: list[Citation] = field(default_factory=list)
    external_citations: list[ExternalCitation] = field(default_factory=list)


def get_excerpt(content: str, max_length: int = EXCERPT_LENGTH) -> str:
    """Whitespace-collapsed excerpt of at most ``max_length`` characters."""
    text = re.sub(r"\s+", " ", content).strip()
    if len(text) <= max_length:
        return text

    cut = text[: max(0, max_length - 3)]
    boundary = cut.rfind(" ")
    if boundary > 0:
        cut = cut[:boundary]
    return cut.rstrip() + "..."


def _shorten(text: str, length: int = DESCRIPTION_LENGTH) -> str:
    return text[:length] + "..." if len(text) > length else text


def _years(start, end) -> str:
    if start and end:
        return f" ({start.year} - {end.year})"
    return ""


class ContextAssembler:
    """Deterministic serialization of retrieved context."""

    def __init__(self, thresholds: RelevanceThresholds | None = None):
        self.thresholds = thresholds or RelevanceThresholds()

    def format_prompt_with_context(
        self,
        query: str,
        notes: list[Note],
        external_results: list[ExternalResult] | None = None,
        include_profile: bool = False,
        profile_relevance: float = 1.0,
        profile: Profile | None = None,
        conversation_history: str | None = None,
    ) -> AssembledPrompt:
        """Build the user prompt and its citation lists.

        Args:
            query: The user's question
            notes: Retrieved notes, rendered as INTERNAL CONTEXT blocks
            external_results: External results, rendered in their own section
            include_profile: Whether the profile block is rendered
            profile_relevance: Selects basic or extended profile detail
            profile: The user's profile
            conversation_history: Pre-formatted tiered history

        Returns:
            AssembledPrompt with citations numbered like the blocks
        """
        external_results = external_results or []
        has_profile = include_profile and profile is not None
        parts: list[str] = []

        if conversation_history and conversation_history.strip():
            parts.append(f"\n\nRecent Conversation History:\n{conversation_history}")

        if has_profile:
            parts.append(self.format_profile_context(profile, profile_relevance))

        citations: list[Citation] = []
        for index, note in enumerate(notes, 1):
            citations.append(Citation(
                note_id=note.id,
                note_title=note.title,
                excerpt=get_excerpt(note.content),
            ))
            tag_line = f"Tags: {', '.join(note.tags)}\n" if note.tags else ""
            parts.append(
                f"\n\nINTERNAL CONTEXT [{index}]:\nTitle: {note.title}\n{tag_line}{note.content}\n"
            )

        external_citations: list[ExternalCitation] = []
        if external_results:
            parts.append("\n\n--- EXTERNAL INFORMATION ---\n")
            for index, result in enumerate(external_results, 1):
                external_citations.append(ExternalCitation(
                    title=result.title,
                    source=result.source,
                    url=result.url,
                    excerpt=get_excerpt(result.content),
                ))
                parts.append(
                    f"\nEXTERNAL SOURCE [{index}]:\nTitle: {result.title}\n"
                    f"Source: {result.source}\n{result.content}\n"
                )

        prefix = PROMPT_PREFIXES[(has_profile, bool(notes), bool(external_results))]
        context = "".join(parts)
        prompt = (
            f"{prefix}\n{context}\n\n"
            f"Based on this information, please answer my question:\n{query}"
        )

        return AssembledPrompt(
            prompt=prompt,
            citations=citations,
            external_citations=external_citations,
        )

    def format_profile_context(self, profile: Profile, relevance: float = 1.0) -> str:
        """Render the profile; extended detail only above the extended threshold."""
        lines = ["\n\nPROFILE INFORMATION:\n", f"Name: {profile.full_name}\n"]
        if profile.headline:
            lines.append(f"Headline: {profile.headline}\n")
        if profile.occupation:
            lines.append(f"Occupation: {profile.occupation}\n")
        if profile.location:
            lines.append(f"Location: {profile.location}\n")
        if profile.summary:
            lines.append(f"\nSummary:\n{profile.summary}\n")

        current = [exp for exp in profile.experiences if exp.is_current]
        if current:
            lines.append("\nCurrent Work:\n")
            lines.extend(self._format_current_role(exp) for exp in current)

        if relevance > self.thresholds.extended_profile:
            lines.extend(self._format_extended(profile))

        return "".join(lines)

    def _format_current_role(self, experience: Experience) -> str:
        line = f"- {experience.title} at {experience.organization}"
        if experience.description:
            return f"{line}: {experience.description.splitlines()[0]}\n"
        return f"{line}\n"

    def _format_extended(self, profile: Profile) -> list[str]:
        lines: list[str] = []

        past = [exp for exp in profile.experiences if not exp.is_current][:MAX_PAST_ROLES]
        if past:
            lines.append("\nPast Experience:\n")
            for exp in past:
                line = f"- {exp.title} at {exp.organization}{_years(exp.start_date, exp.end_date)}"
                if exp.description:
                    line += f": {_shorten(exp.description)}"
                lines.append(f"{line}\n")

        if profile.education:
            lines.append("\nEducation:\n")
            for edu in profile.education:
                lines.append(
                    f"- {edu.degree or 'Degree'} at {edu.institution}"
                    f"{_years(edu.start_date, edu.end_date)}\n"
                )

        if profile.projects:
            lines.append("\nProjects:\n")
            for project in profile.projects[:MAX_PROJECTS]:
                line = f"- {project.title}"
                if project.description:
                    line += f": {_shorten(project.description)}"
                lines.append(f"{line}\n")

        if profile.skills:
            lines.append(f"\nSkills:\n{', '.join(profile.skills)}\n")

        if profile.languages:
            lines.append("\nLanguages:\n")
            for language in profile.languages:
                suffix = f" ({language.proficiency})" if language.proficiency else ""
                lines.append(f"- {language.name}{suffix}\n")

        return lines
