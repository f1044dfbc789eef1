"""Pydantic models for Anki data structures."""

from tidyapkg.models.anki_models import *

__all__ = [
    "AnkiModel",
    "AnkiDeck",
    "AnkiDeckConfig",
    "ExportOptions",
    "CopyResult",
    "ExportResult",
]
