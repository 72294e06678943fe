"""Shared utilities."""

from .tokens import (
    ApproximateTokenCounter,
    TiktokenTokenCounter,
    TokenCounter,
    token_counter,
)

__all__ = [
    "ApproximateTokenCounter",
    "TiktokenTokenCounter",
    "TokenCounter",
    "token_counter",
]
