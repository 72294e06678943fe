"""Prompt assembly for the query pipeline.

Builds the user prompt from history, profile, notes and external results,
and selects the system instructions for the language model.
"""

from .assembler import AssembledPrompt, ContextAssembler, get_excerpt
from .system_prompts import SystemPromptGenerator, SystemPromptVariant

__all__ = [
    "AssembledPrompt",
    "ContextAssembler",
    "SystemPromptGenerator",
    "SystemPromptVariant",
    "get_excerpt",
]
