"""Language model collaborators."""

from .base import LanguageModel
from .openai_model import OpenAILanguageModel

__all__ = ["LanguageModel", "OpenAILanguageModel"]
