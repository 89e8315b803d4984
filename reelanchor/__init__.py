"""Quote-to-transcript alignment engine."""

__version__ = "1.0.0"
