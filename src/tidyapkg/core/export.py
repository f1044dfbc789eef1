"""Write collections, or parts of them, to .apkg packages."""

import itertools
import json
import logging
import shutil
import tempfile
import time
import unicodedata
import zipfile
from pathlib import Path

import genanki

from tidyapkg.core.anki_db import setup_anki_connection
from tidyapkg.core.archive import ArchiveWriter
from tidyapkg.core.collection import Collection
from tidyapkg.core.errors import IncompatibleFormatError
from tidyapkg.core.managers import DEFAULT_DECK_ID
from tidyapkg.core.media import MediaScanPolicy, resolve_media
from tidyapkg.core.selection import PostExportHook, copy_selection
from tidyapkg.models.anki_models import ExportOptions, ExportResult

logger = logging.getLogger(__name__)

LEGACY_COLLECTION_ENTRY = "collection.anki2"
NEW_COLLECTION_ENTRY = "collection.anki21"
MEDIA_ENTRY = "media"
DUMMY_NOTE_TEXT = "This file requires a newer version of Anki."


def write_dummy_collection(path: Path) -> None:
    """Write a one-note collection for clients too old to read the real one."""
    deck = genanki.Deck(DEFAULT_DECK_ID, "Default")
    deck.add_note(genanki.Note(model=genanki.BASIC_MODEL, fields=[DUMMY_NOTE_TEXT, ""]))
    package = genanki.Package(deck)

    timestamp = time.time()
    id_gen = itertools.count(int(timestamp * 1000))
    with setup_anki_connection(path) as conn:
        package.write_to_db(conn.cursor(), timestamp, id_gen)
        conn.commit()


def _remove_quietly(path: Path) -> None:
    try:
        if path.is_dir():
            shutil.rmtree(path)
        else:
            path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Could not remove {path}: {e}")


class AnkiPackageExporter:
    """Export a collection, or one deck of it, as an .apkg package.

    With scheduling included and no deck selected, the collection file is
    packaged as is. Otherwise the selected cards are copied into a temporary
    collection first, and ``post_export`` gets a chance to adjust that copy
    before it is packaged.
    """

    def __init__(
        self,
        col: Collection,
        options: ExportOptions | None = None,
        post_export: PostExportHook | None = None,
    ):
        self.col = col
        self.options = options or ExportOptions()
        self.post_export = post_export

    def export_into(self, path: Path) -> ExportResult:
        path = Path(path)
        opts = self.options
        # v2 scheduling data confuses older clients
        v2sched = self.col.sched_ver() != 1 and opts.include_sched
        verbatim = opts.include_sched and opts.did is None

        if v2sched and not verbatim:
            raise IncompatibleFormatError(
                f"Scheduler v{self.col.sched_ver()} data can only be exported for the whole "
                "collection; export a deck without scheduling instead"
            )

        logger.debug(f"Exporting {'verbatim' if verbatim else 'filtered'} package to {path}")
        try:
            with ArchiveWriter(path) as z:
                if verbatim:
                    card_count, media = self._export_verbatim(z, v2sched)
                else:
                    card_count, media = self._export_filtered(z)
                z.write_str(MEDIA_ENTRY, json.dumps(media))
        except BaseException:
            # never leave a half-written package behind
            _remove_quietly(path)
            raise

        message = f"Exported {card_count} cards and {len(media)} media files to {path.name}"
        logger.info(message)
        return ExportResult(
            package_path=path,
            cards_exported=card_count,
            media=media,
            message=message,
        )

    def _export_verbatim(self, z: ArchiveWriter, v2sched: bool) -> tuple[int, dict[str, str]]:
        card_count = self.col.card_count()
        # closing flushes pending changes to the file we are about to copy
        self.col.close()
        try:
            if v2sched:
                self._add_dummy_collection(z)
                z.write(self.col.path, NEW_COLLECTION_ENTRY)
            else:
                z.write(self.col.path, LEGACY_COLLECTION_ENTRY)
        finally:
            self.col.reopen()

        files = resolve_media(
            self.col, [], self.options.include_media, policy=MediaScanPolicy.EVERYTHING
        )
        return card_count, self._export_media(z, files)

    def _export_filtered(self, z: ArchiveWriter) -> tuple[int, dict[str, str]]:
        opts = self.options
        work_dir = Path(tempfile.mkdtemp(prefix="tidyapkg-"))
        try:
            copied = copy_selection(
                self.col,
                self.col.card_ids(opts.did),
                opts.did,
                opts.include_sched,
                work_dir / LEGACY_COLLECTION_ENTRY,
                post_export=self.post_export,
            )
            z.write(copied.path, LEGACY_COLLECTION_ENTRY)
            files = resolve_media(self.col, copied.note_ids, opts.include_media)
            return copied.card_count, self._export_media(z, files)
        finally:
            _remove_quietly(work_dir)

    def _add_dummy_collection(self, z: ArchiveWriter) -> None:
        with tempfile.TemporaryDirectory(prefix="tidyapkg-") as temp_dir:
            dummy_path = Path(temp_dir) / "dummy.anki2"
            write_dummy_collection(dummy_path)
            z.write(dummy_path, LEGACY_COLLECTION_ENTRY)

    def _export_media(self, z: ArchiveWriter, files: frozenset[str]) -> dict[str, str]:
        """Add media under numbered entries and return the entry -> name map."""
        media: dict[str, str] = {}
        media_dir = self.col.media.dir()
        for fname in sorted(files):
            file_path = media_dir / fname
            if not file_path.is_file():
                logger.warning(f"Media file not found: {fname}")
                continue
            entry = str(len(media))
            # most media is already compressed
            if fname.lower().endswith(".svg"):
                compress_type = zipfile.ZIP_DEFLATED
            else:
                compress_type = zipfile.ZIP_STORED
            z.write(file_path, entry, compress_type=compress_type)
            media[entry] = unicodedata.normalize("NFC", fname)
        return media


def export_package(
    col: Collection,
    output_path: Path,
    did: int | None = None,
    include_sched: bool = False,
    include_media: bool = True,
    post_export: PostExportHook | None = None,
) -> ExportResult:
    """Export a collection or a deck subtree to an .apkg file.

    Args:
        col: Open collection to export
        output_path: Package file to create
        did: Deck to export with its children; None exports every deck
        include_sched: Keep scheduling state and review history
        include_media: Bundle the media files the exported notes use
        post_export: Adjusts the copied collection before packaging; only
            used when the export is filtered

    Returns:
        Result with the package path, card count and media map
    """
    options = ExportOptions(did=did, include_sched=include_sched, include_media=include_media)
    return AnkiPackageExporter(col, options, post_export=post_export).export_into(output_path)
