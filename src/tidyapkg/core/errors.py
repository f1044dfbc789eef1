"""Exception types raised by the package exporter."""


class ExportError(Exception):
    """Base class for all package export failures."""

    pass


class StorageError(ExportError):
    """Opening, attaching, detaching or querying a collection store failed."""

    pass


class DataIntegrityError(ExportError):
    """A card, note or deck references a record that does not exist."""

    pass


class IncompatibleFormatError(ExportError):
    """The scheduler version cannot be represented by the requested export mode."""

    pass


class MediaResolutionError(ExportError):
    """The media directory could not be read while media was requested."""

    pass


class ArchiveWriteError(ExportError):
    """Writing an entry to the package archive, or finalizing it, failed."""

    pass
