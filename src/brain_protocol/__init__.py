"""Brain protocol: query orchestration for a personal knowledge assistant."""

__version__ = "0.1.0"
