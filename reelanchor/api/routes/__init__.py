"""API routes package."""

from . import alignment, citations, health

__all__ = ["alignment", "citations", "health"]
