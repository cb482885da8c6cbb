"""LMeve: EVE Online corporation management, authentication core."""

__version__ = "1.0.0"
