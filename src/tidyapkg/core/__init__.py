"""Core functionality for tidyapkg."""

from .anki_db import AnkiDB, ids2str, setup_anki_connection
from .archive import ArchiveWriter
from .collection import Collection, create_collection
from .errors import (
    ArchiveWriteError,
    DataIntegrityError,
    ExportError,
    IncompatibleFormatError,
    MediaResolutionError,
    StorageError,
)
from .export import AnkiPackageExporter, export_package, write_dummy_collection
from .media import MediaScanPolicy, detect_media_in_fields, model_has_media, resolve_media
from .selection import DerivedStore, StoreState, copy_selection

__all__ = [
    "AnkiDB",
    "ids2str",
    "setup_anki_connection",
    "ArchiveWriter",
    "Collection",
    "create_collection",
    "ExportError",
    "StorageError",
    "DataIntegrityError",
    "IncompatibleFormatError",
    "MediaResolutionError",
    "ArchiveWriteError",
    "AnkiPackageExporter",
    "export_package",
    "write_dummy_collection",
    "MediaScanPolicy",
    "detect_media_in_fields",
    "model_has_media",
    "resolve_media",
    "DerivedStore",
    "StoreState",
    "copy_selection",
]
