"""Query governance: relevance scoring, prompt assembly and orchestration."""

from .context import AssembledPrompt, ContextAssembler, SystemPromptGenerator, SystemPromptVariant
from .orchestrator import Orchestrator
from .relevance import RelevanceScorer, RelevanceThresholds

__all__ = [
    "AssembledPrompt",
    "ContextAssembler",
    "Orchestrator",
    "RelevanceScorer",
    "RelevanceThresholds",
    "SystemPromptGenerator",
    "SystemPromptVariant",
]
