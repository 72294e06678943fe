"""Domain models for the brain protocol engine.

This module contains the core data structures shared by storage, memory,
relevance scoring, context assembly and orchestration.
"""

# Conversation models - storage and tiered memory
from .conversation import (
    Conversation,
    ConversationInfo,
    InterfaceType,
    NewConversation,
    SearchCriteria,
    Summary,
    TieredHistory,
    Turn,
    TurnState,
    TurnUpdate,
)

# Knowledge models - retrieval inputs and query outputs
from .knowledge import (
    Citation,
    Education,
    Experience,
    ExternalCitation,
    ExternalResult,
    Language,
    ModelResponse,
    Note,
    Profile,
    ProfileAnalysis,
    Project,
    QueryResult,
)

__all__ = [
    # Conversation models
    "Conversation",
    "ConversationInfo",
    "InterfaceType",
    "NewConversation",
    "SearchCriteria",
    "Summary",
    "TieredHistory",
    "Turn",
    "TurnState",
    "TurnUpdate",

    # Knowledge models
    "Citation",
    "Education",
    "Experience",
    "ExternalCitation",
    "ExternalResult",
    "Language",
    "ModelResponse",
    "Note",
    "Profile",
    "ProfileAnalysis",
    "Project",
    "QueryResult",
]
