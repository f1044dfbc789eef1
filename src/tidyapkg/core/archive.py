"""Zip archive output for .apkg packages."""

import logging
import zipfile
from pathlib import Path

from tidyapkg.core.errors import ArchiveWriteError

logger = logging.getLogger(__name__)


class ArchiveWriter:
    """Append files and in-memory blobs to a new zip archive.

    Entries are deflated unless another compression is requested per entry.
    Use as a context manager so the file handle is released even when an
    entry fails.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        try:
            self._zip: zipfile.ZipFile | None = zipfile.ZipFile(
                self.path, "w", zipfile.ZIP_DEFLATED
            )
        except OSError as e:
            raise ArchiveWriteError(f"Cannot create archive {self.path}: {e}") from e

    def write(self, src_path: Path, entry: str, compress_type: int | None = None) -> None:
        """Add a file from disk under ``entry``."""
        try:
            self._open_zip().write(src_path, entry, compress_type=compress_type)
        except (OSError, zipfile.BadZipFile, ValueError) as e:
            raise ArchiveWriteError(f"Failed to write {src_path} as '{entry}': {e}") from e

    def write_str(self, entry: str, value: str | bytes) -> None:
        """Add an in-memory blob under ``entry``; text is stored as UTF-8."""
        if isinstance(value, str):
            value = value.encode("utf-8")
        try:
            self._open_zip().writestr(entry, value)
        except (OSError, zipfile.BadZipFile, ValueError) as e:
            raise ArchiveWriteError(f"Failed to write entry '{entry}': {e}") from e

    def entries(self) -> list[str]:
        return self._open_zip().namelist()

    def close(self) -> None:
        """Finalize the archive. The handle is released even if this fails."""
        if self._zip is None:
            return
        zip_file, self._zip = self._zip, None
        try:
            zip_file.close()
        except (OSError, ValueError) as e:
            raise ArchiveWriteError(f"Failed to finalize archive {self.path}: {e}") from e
        logger.debug(f"Closed archive {self.path}")

    def _open_zip(self) -> zipfile.ZipFile:
        if self._zip is None:
            raise ArchiveWriteError(f"Archive {self.path} is already closed")
        return self._zip

    def __enter__(self) -> "ArchiveWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc is None:
            self.close()
            return
        # keep the original error; a failed finalize only gets logged
        try:
            self.close()
        except ArchiveWriteError as close_error:
            logger.warning(str(close_error))
