"""Core configuration, domain models, exceptions and collaborator clients."""
