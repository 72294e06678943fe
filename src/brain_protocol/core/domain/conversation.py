"""Conversation-related domain models: conversations, turns and summaries."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class InterfaceType(str, Enum):
    """Interfaces a conversation can originate from."""

    CLI = "cli"
    MATRIX = "matrix"


class TurnState(str, Enum):
    """Lifecycle of a turn. SUMMARIZED is terminal."""

    ACTIVE = "active"
    SUMMARIZED = "summarized"


class Conversation(BaseModel):
    """A conversation held in a single room of a single interface."""

    id: str = Field(..., description="Conversation identifier")
    interface_type: InterfaceType = Field(..., description="Originating interface")
    room_id: str = Field(..., description="Room identifier within the interface")
    created_at: datetime = Field(..., description="When the conversation started")
    updated_at: datetime = Field(..., description="Last mutation time")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Free-form conversation metadata"
    )


class NewConversation(BaseModel):
    """Descriptor used to create a conversation."""

    id: str | None = Field(None, description="Explicit id, generated if omitted")
    interface_type: InterfaceType
    room_id: str
    started_at: datetime | None = None
    updated_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class Turn(BaseModel):
    """A single exchange (user query + assistant response) in a conversation."""

    id: str | None = Field(None, description="Turn identifier, assigned on insert")
    conversation_id: str | None = Field(None, description="Owning conversation")
    timestamp: datetime | None = Field(None, description="When this turn occurred")
    query: str = Field(..., description="User's message content")
    response: str = Field(default="", description="Assistant's response content")
    user_id: str | None = None
    user_name: str | None = None
    state: TurnState = Field(
        default=TurnState.ACTIVE,
        description="Active until folded into a summary"
    )
    summary_id: str | None = Field(
        None,
        description="Summary this turn was folded into"
    )
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional metadata for this turn"
    )

    @property
    def is_active(self) -> bool:
        """Whether the turn still belongs to the active tier."""
        match self.state:
            case TurnState.ACTIVE:
                return True
            case TurnState.SUMMARIZED:
                return False


class TurnUpdate(BaseModel):
    """Patch applied to a stored turn.

    Query and response text are deliberately absent: they are immutable
    once the turn exists, and ``extra="forbid"`` rejects attempts to set them.
    """

    model_config = ConfigDict(extra="forbid")

    state: TurnState | None = None
    summary_id: str | None = None
    metadata: dict[str, Any] | None = None


class Summary(BaseModel):
    """Condensed representation of a contiguous run of turns."""

    id: str | None = Field(None, description="Summary identifier, assigned on insert")
    conversation_id: str | None = None
    content: str = Field(..., description="Condensed conversation text")
    start_turn_id: str = Field(..., description="Oldest turn covered")
    end_turn_id: str = Field(..., description="Newest turn covered")
    created_at: datetime | None = None
    turn_count: int = Field(default=0, description="Number of turns covered")
    original_turn_ids: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)


class ConversationInfo(BaseModel):
    """Lightweight conversation listing entry (no turns or summaries)."""

    id: str
    interface_type: InterfaceType
    room_id: str
    started_at: datetime
    updated_at: datetime
    turn_count: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchCriteria(BaseModel):
    """Filters for finding conversations."""

    interface_type: InterfaceType | None = None
    room_id: str | None = None
    query: str | None = Field(
        None,
        description="Case-insensitive substring matched against turn text"
    )
    start_date: datetime | None = None
    end_date: datetime | None = None
    limit: int | None = Field(None, ge=0)
    offset: int | None = Field(None, ge=0)


class TieredHistory(BaseModel):
    """Three views over a conversation's turns."""

    active_turns: list[Turn] = Field(default_factory=list)
    summaries: list[Summary] = Field(default_factory=list)
    archived_turns: list[Turn] = Field(default_factory=list)
