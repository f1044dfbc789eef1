"""TidyApkg - Export Anki collections and decks as .apkg packages."""

from tidyapkg.core import *
from tidyapkg.models import *

__all__ = [
    # Collections
    "Collection",
    "create_collection",
    "setup_anki_connection",
    # Models
    "AnkiModel",
    "AnkiDeck",
    "AnkiDeckConfig",
    "ExportOptions",
    "CopyResult",
    "ExportResult",
    # Export
    "AnkiPackageExporter",
    "export_package",
    "copy_selection",
    "resolve_media",
    "MediaScanPolicy",
    "ArchiveWriter",
    # Errors
    "ExportError",
    "StorageError",
    "DataIntegrityError",
    "IncompatibleFormatError",
    "MediaResolutionError",
    "ArchiveWriteError",
]
