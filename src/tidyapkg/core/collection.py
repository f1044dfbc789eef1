"""Open, create and save Anki collection files."""

import json
import logging
import time
from pathlib import Path

from genanki.apkg_col import APKG_COL
from genanki.apkg_schema import APKG_SCHEMA

from tidyapkg.core.anki_db import AnkiDB, remove_store_files
from tidyapkg.core.errors import StorageError
from tidyapkg.core.managers import DeckManager, ModelManager, TagManager
from tidyapkg.core.media import MediaManager
from tidyapkg.core.scheduler import Scheduler

logger = logging.getLogger(__name__)


def _int_time(scale: int = 1) -> int:
    return int(time.time() * scale)


class Collection:
    """An Anki collection stored in the legacy (schema 11) layout.

    Models, decks, deck options and the tag registry live as JSON in the
    single ``col`` row and are loaded into the managers on open; ``save``
    writes them back.
    """

    def __init__(self, path: Path, media_dir: Path | None = None):
        self.path = Path(path)
        if not self.path.exists():
            raise StorageError(f"Collection not found: {self.path}")
        self.db: AnkiDB | None = AnkiDB(self.path)
        self.models = ModelManager(self)
        self.decks = DeckManager(self)
        self.tags = TagManager(self)
        self.media = MediaManager(self, media_dir)
        self.sched = Scheduler(self)
        self.load()

    def load(self) -> None:
        row = self.db.first(
            "SELECT crt, mod, conf, models, decks, dconf, tags FROM col LIMIT 1"
        )
        if row is None:
            raise StorageError(f"{self.path} has no collection row")
        self.crt = row["crt"]
        self.mod = row["mod"]
        self.conf = json.loads(row["conf"])
        self.models.load(row["models"])
        self.decks.load(row["decks"], row["dconf"])
        self.tags.load(row["tags"])

    def sched_ver(self) -> int:
        return self.conf.get("schedVer", 1)

    def usn(self) -> int:
        # local changes are always unsynced
        return -1

    def card_count(self) -> int:
        return self.db.scalar("SELECT count() FROM cards")

    def card_ids(self, did: int | None = None) -> list[int]:
        """Ids of the cards in a deck and its children, or of every card."""
        if did is None:
            return self.db.query_column("SELECT id FROM cards")
        return self.decks.cids(did, children=True)

    def set_mod(self) -> None:
        self.mod = _int_time(1000)

    def save(self) -> None:
        self.models.flush()
        self.decks.flush()
        self.tags.flush()
        self.db.execute(
            "UPDATE col SET crt = ?, mod = ?, conf = ?", self.crt, self.mod, json.dumps(self.conf)
        )
        self.db.commit()

    def close(self, save: bool = True) -> None:
        """Save (or roll back) and release the connection.

        The journal is switched back to delete mode so the file on disk is
        complete on its own once closed.
        """
        if self.db is None:
            return
        if save:
            self.save()
        else:
            self.db.rollback()
        self.db.execute("PRAGMA journal_mode = delete")
        self.db.close()
        self.db = None

    def reopen(self) -> None:
        """Reconnect after close(); in-memory state is kept since close() saved it."""
        if self.db is None:
            self.db = AnkiDB(self.path)


def create_collection(path: Path) -> Collection:
    """Create an empty collection, replacing anything already at ``path``.

    The new store holds the default deck and options group, no models and no
    tags.
    """
    path = Path(path)
    remove_store_files(path)
    db = AnkiDB(path)
    try:
        db.execute_script(APKG_SCHEMA)
        db.execute_script(APKG_COL)
        now = _int_time()
        db.execute(
            "UPDATE col SET crt = ?, mod = ?, scm = ?, models = '{}', tags = '{}'",
            now,
            now * 1000,
            now * 1000,
        )
        db.commit()
    finally:
        db.close()
    logger.debug(f"Created empty collection at {path}")
    return Collection(path)
