"""Services used by the tiered memory layer."""

from .summarizer import (
    LLMSummarizer,
    Summarizer,
    SummaryDraft,
    build_fallback_summary,
    format_turns_for_summary,
)

__all__ = [
    "LLMSummarizer",
    "Summarizer",
    "SummaryDraft",
    "build_fallback_summary",
    "format_turns_for_summary",
]
