"""Model, deck and tag managers backed by the JSON columns of the ``col`` row."""

from __future__ import annotations

import json
import re
from typing import TYPE_CHECKING

from tidyapkg.core.anki_db import ids2str
from tidyapkg.models.anki_models import AnkiDeck, AnkiDeckConfig, AnkiModel

if TYPE_CHECKING:
    from tidyapkg.core.collection import Collection

DEFAULT_DECK_ID = 1
DEFAULT_CONF_ID = 1
DECK_SEPARATOR = "::"


class ModelManager:
    """Note types of a collection."""

    def __init__(self, col: Collection):
        self.col = col
        self._models: dict[int, AnkiModel] = {}
        self._changed = False

    def load(self, models_json: str) -> None:
        self._models = {
            int(mid): AnkiModel.from_json(data) for mid, data in json.loads(models_json).items()
        }
        self._changed = False

    def all(self) -> list[AnkiModel]:
        return list(self._models.values())

    def ids(self) -> list[int]:
        return list(self._models)

    def get(self, mid: int) -> AnkiModel | None:
        return self._models.get(int(mid))

    def update(self, model: AnkiModel) -> None:
        """Add or replace a model."""
        self._models[model.id] = model
        self._changed = True

    def flush(self) -> None:
        if not self._changed:
            return
        data = {str(mid): model.to_json() for mid, model in self._models.items()}
        self.col.db.execute("UPDATE col SET models = ?", json.dumps(data))
        self._changed = False


class DeckManager:
    """Decks and deck options groups of a collection."""

    def __init__(self, col: Collection):
        self.col = col
        self._decks: dict[int, AnkiDeck] = {}
        self._confs: dict[int, AnkiDeckConfig] = {}
        self._changed = False

    def load(self, decks_json: str, dconf_json: str) -> None:
        self._decks = {
            int(did): AnkiDeck.from_json(data) for did, data in json.loads(decks_json).items()
        }
        self._confs = {
            int(cid): AnkiDeckConfig.from_json(data) for cid, data in json.loads(dconf_json).items()
        }
        self._changed = False

    def all(self) -> list[AnkiDeck]:
        return list(self._decks.values())

    def get(self, did: int) -> AnkiDeck | None:
        return self._decks.get(int(did))

    def children(self, did: int) -> dict[str, int]:
        """All descendants of a deck, keyed by full deck name."""
        parent = self.get(did)
        if parent is None:
            return {}
        prefix = parent.name + DECK_SEPARATOR
        return {deck.name: deck.id for deck in self._decks.values() if deck.name.startswith(prefix)}

    def cids(self, did: int, children: bool = False) -> list[int]:
        """Card ids in a deck, optionally including its child decks."""
        dids = [did]
        if children:
            dids.extend(self.children(did).values())
        return self.col.db.query_column(f"SELECT id FROM cards WHERE did IN {ids2str(dids)}")

    def update(self, deck: AnkiDeck) -> None:
        self._decks[deck.id] = deck
        self._changed = True

    def all_conf(self) -> list[AnkiDeckConfig]:
        return list(self._confs.values())

    def get_conf(self, conf_id: int) -> AnkiDeckConfig | None:
        return self._confs.get(int(conf_id))

    def update_conf(self, conf: AnkiDeckConfig) -> None:
        self._confs[conf.id] = conf
        self._changed = True

    def flush(self) -> None:
        if not self._changed:
            return
        decks = {str(did): deck.to_json() for did, deck in self._decks.items()}
        confs = {str(cid): conf.to_json() for cid, conf in self._confs.items()}
        self.col.db.execute(
            "UPDATE col SET decks = ?, dconf = ?", json.dumps(decks), json.dumps(confs)
        )
        self._changed = False


class TagManager:
    """Tag registry and tag string helpers."""

    def __init__(self, col: Collection):
        self.col = col
        self._tags: dict[str, int] = {}
        self._changed = False

    def load(self, tags_json: str) -> None:
        self._tags = json.loads(tags_json)
        self._changed = False

    def all(self) -> list[str]:
        return list(self._tags)

    def register(self, tags: list[str]) -> None:
        for tag in tags:
            if tag not in self._tags:
                self._tags[tag] = self.col.usn()
                self._changed = True

    def register_notes(self) -> None:
        """Add every tag used by a note in this collection to the registry."""
        for tag_str in self.col.db.query_column("SELECT DISTINCT tags FROM notes"):
            self.register(self.split(tag_str))

    def flush(self) -> None:
        if not self._changed:
            return
        self.col.db.execute("UPDATE col SET tags = ?", json.dumps(self._tags))
        self._changed = False

    @staticmethod
    def split(tags: str) -> list[str]:
        return tags.replace("\u3000", " ").split()

    @staticmethod
    def join(tags: list[str]) -> str:
        if not tags:
            return ""
        return " %s " % " ".join(tags)

    def rem_from_str(self, deltags: str, tags: str) -> str:
        """Remove the space-separated ``deltags`` from a tag string.

        Matching is case-insensitive and ``*`` in a tag to remove matches any
        run of characters. The result is in canonical form.
        """
        current = self.split(tags)
        for rem in self.split(deltags):
            current = [tag for tag in current if not _tag_matches(rem, tag)]
        return self.join(current)


def _tag_matches(pattern: str, tag: str) -> bool:
    if pattern.lower() == tag.lower():
        return True
    regex = "^" + re.escape(pattern).replace("\\*", ".*") + "$"
    return re.search(regex, tag, re.IGNORECASE) is not None
