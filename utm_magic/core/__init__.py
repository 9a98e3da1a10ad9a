"""Core module for the UTM Content Magic backend."""

from .config import settings

__all__ = [
    "settings",
]
