"""Typed operation registry and the conversation surface for adapters."""

from .conversation_resources import register_conversation_resources
from .registry import (
    ResourceDefinition,
    ResourceKind,
    ResourceRegistry,
    schema_from_handler,
)

__all__ = [
    "ResourceDefinition",
    "ResourceKind",
    "ResourceRegistry",
    "register_conversation_resources",
    "schema_from_handler",
]
