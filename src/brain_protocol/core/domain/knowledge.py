"""Knowledge-side domain models: notes, profiles, external results, citations."""

from datetime import date
from typing import Any

from pydantic import BaseModel, Field


class Note(BaseModel):
    """A note from the personal knowledge base."""

    id: str
    title: str = ""
    content: str = ""
    tags: list[str] = Field(default_factory=list)
    embedding: list[float] | None = None


class Experience(BaseModel):
    title: str
    organization: str
    description: str | None = None
    start_date: date | None = None
    end_date: date | None = None

    @property
    def is_current(self) -> bool:
        return self.end_date is None


class Education(BaseModel):
    institution: str
    degree: str | None = None
    start_date: date | None = None
    end_date: date | None = None


class Project(BaseModel):
    title: str
    description: str | None = None


class Language(BaseModel):
    name: str
    proficiency: str | None = None


class Profile(BaseModel):
    """The user's profile as provided by the profile collaborator."""

    full_name: str = Field(..., description="Display name of the user")
    headline: str | None = None
    occupation: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    summary: str | None = None
    experiences: list[Experience] = Field(default_factory=list)
    education: list[Education] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    languages: list[Language] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    embedding: list[float] | None = None

    @property
    def location(self) -> str:
        return ", ".join(part for part in (self.city, self.state, self.country) if part)


class ExternalResult(BaseModel):
    """A result returned by an external knowledge source."""

    title: str = ""
    source: str = ""
    url: str = ""
    content: str = ""
    embedding: list[float] | None = None


class Citation(BaseModel):
    """Pointer back to a note that backed part of an answer."""

    note_id: str
    note_title: str
    excerpt: str


class ExternalCitation(BaseModel):
    """Pointer back to an external source that backed part of an answer."""

    title: str
    source: str
    url: str
    excerpt: str


class ProfileAnalysis(BaseModel):
    """Ephemeral classification of a query against the profile."""

    is_profile_query: bool = False
    relevance: float = Field(default=0.0, ge=0.0, le=1.0)


class ModelResponse(BaseModel):
    """Completion returned by the language model collaborator."""

    text: str
    usage: dict[str, Any] = Field(default_factory=dict)


class QueryResult(BaseModel):
    """Structured answer returned by the orchestrator."""

    answer: str
    citations: list[Citation] = Field(default_factory=list)
    related_notes: list[Note] = Field(default_factory=list)
    profile: Profile | None = None
    external_sources: list[ExternalCitation] | None = None
    conversation_id: str | None = None
