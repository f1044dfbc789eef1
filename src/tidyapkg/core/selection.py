"""Copy a selection of cards into a new, self-contained collection."""

import enum
import logging
from collections.abc import Callable
from pathlib import Path

from tidyapkg.core.anki_db import ids2str, remove_store_files, store_files
from tidyapkg.core.collection import Collection, create_collection
from tidyapkg.core.errors import DataIntegrityError, StorageError
from tidyapkg.core.managers import DEFAULT_CONF_ID, DEFAULT_DECK_ID
from tidyapkg.models.anki_models import CopyResult

logger = logging.getLogger(__name__)

# device-local bookkeeping tags that must not travel without their scheduling
SYSTEM_TAGS = "marked leech"

PostExportHook = Callable[[Collection], None]


class StoreState(enum.Enum):
    UNOPENED = "unopened"
    # attached to the source connection as DST_DB
    BRIDGED = "bridged"
    # open as its own collection
    STANDALONE = "standalone"
    CLOSED = "closed"


class DerivedStore:
    """The collection an export copies into.

    It is first attached to the source connection so rows can be copied with
    plain ``INSERT ... SELECT``, then detached and opened on its own so the
    scheduler and managers work on it like on any collection.
    """

    ALIAS = "DST_DB"

    def __init__(self, path: Path):
        self.path = Path(path)
        self.state = StoreState.UNOPENED
        self.col: Collection | None = None
        self._src: Collection | None = None
        # set once this store owns files at path
        self.created = False

    def _expect(self, state: StoreState) -> None:
        if self.state is not state:
            raise StorageError(f"Derived store is {self.state.value}, expected {state.value}")

    def bridge(self, src: Collection) -> None:
        self._expect(StoreState.UNOPENED)
        existing = [str(p) for p in store_files(self.path) if p.exists()]
        if existing:
            raise StorageError(f"Refusing to overwrite existing store files: {existing}")
        self.created = True
        create_collection(self.path).close()
        src.db.attach(self.path, self.ALIAS)
        self._src = src
        self.state = StoreState.BRIDGED

    def table(self, name: str) -> str:
        """Qualified name of a table in the derived store while bridged."""
        self._expect(StoreState.BRIDGED)
        return f"{self.ALIAS}.{name}"

    def standalone(self) -> Collection:
        self._expect(StoreState.BRIDGED)
        self._src.db.detach(self.ALIAS)
        self._src = None
        self.col = Collection(self.path)
        self.state = StoreState.STANDALONE
        return self.col

    def close(self, save: bool = True) -> None:
        if self.state is StoreState.BRIDGED:
            self._src.db.detach(self.ALIAS)
            self._src = None
        elif self.state is StoreState.STANDALONE:
            self.col.close(save=save)
            self.col = None
        self.state = StoreState.CLOSED


def copy_selection(
    src: Collection,
    cids: list[int],
    did: int | None,
    include_sched: bool,
    path: Path,
    post_export: PostExportHook | None = None,
) -> CopyResult:
    """Build a collection at ``path`` holding exactly the given cards.

    The notes, models, decks and (with scheduling) deck options and review
    history those cards need come along. Without scheduling, cards are reset
    to new, system tags are stripped and decks fall back to the default
    options group. ``src`` is only read.

    Args:
        src: Collection to copy from
        cids: Cards to export
        did: Deck whose subtree is exported, or None for every deck
        include_sched: Keep scheduling state and review history
        path: Where to create the derived collection
        post_export: Called with the derived collection before it is closed

    Returns:
        The derived collection's path and what ended up in it
    """
    store = DerivedStore(path)
    try:
        result = _copy_into(store, src, cids, did, include_sched, post_export)
    except BaseException:
        try:
            store.close(save=False)
        except StorageError as e:
            logger.warning(f"Could not close derived store after failure: {e}")
        if store.created:
            remove_store_files(store.path)
        raise
    return result


def _copy_into(
    store: DerivedStore,
    src: Collection,
    cids: list[int],
    did: int | None,
    include_sched: bool,
    post_export: PostExportHook | None,
) -> CopyResult:
    if did is not None and src.decks.get(did) is None:
        raise DataIntegrityError(f"Deck {did} does not exist")

    logger.debug(f"Attaching derived store {store.path}")
    store.bridge(src)
    scids = ids2str(cids)

    logger.debug(f"Copying {len(cids)} cards")
    src.db.execute(f"INSERT INTO {store.table('cards')} SELECT * FROM cards WHERE id IN {scids}")
    src.db.execute(f"UPDATE {store.table('cards')} SET flags = 0 WHERE id IN {scids}")

    card_dids = src.db.query_column(f"SELECT DISTINCT did FROM cards WHERE id IN {scids}")
    # the default deck comes with every new store
    missing_decks = sorted(
        d for d in card_dids if d != DEFAULT_DECK_ID and src.decks.get(d) is None
    )
    if missing_decks:
        raise DataIntegrityError(f"Cards reference missing decks: {missing_decks}")

    nids = sorted(set(src.db.query_column(f"SELECT nid FROM cards WHERE id IN {scids}")))
    snids = ids2str(nids)
    missing = set(nids) - set(src.db.query_column(f"SELECT id FROM notes WHERE id IN {snids}"))
    if missing:
        raise DataIntegrityError(f"Cards reference missing notes: {sorted(missing)}")

    logger.debug(f"Copying {len(nids)} notes")
    src.db.execute(f"INSERT INTO {store.table('notes')} SELECT * FROM notes WHERE id IN {snids}")

    if not include_sched:
        logger.debug("Stripping system tags")
        rows = src.db.all(f"SELECT id, tags FROM notes WHERE id IN {snids}")
        src.db.execute_many(
            f"UPDATE {store.table('notes')} SET tags = ? WHERE id = ?",
            [(src.tags.rem_from_str(SYSTEM_TAGS, row["tags"]), row["id"]) for row in rows],
        )

    mids = src.db.query_column(f"SELECT DISTINCT mid FROM {store.table('notes')}")

    if include_sched:
        logger.debug("Copying review history")
        src.db.execute(
            f"INSERT INTO {store.table('revlog')} SELECT * FROM revlog WHERE cid IN {scids}"
        )
        dst = store.standalone()
    else:
        # the reset has to run against the derived collection on its own
        dst = store.standalone()
        logger.debug("Resetting cards")
        dst.sched.reset_cards(cids)

    logger.debug(f"Copying {len(mids)} models")
    for mid in mids:
        model = src.models.get(mid)
        if model is None:
            raise DataIntegrityError(f"Notes reference missing model {mid}")
        dst.models.update(model)

    logger.debug("Copying decks")
    dids = None
    if did is not None:
        dids = {did, *src.decks.children(did).values()}
    used_confs: set[int] = set()
    for deck in src.decks.all():
        if deck.id == DEFAULT_DECK_ID:
            continue
        if dids is not None and deck.id not in dids:
            continue
        if include_sched and not deck.is_dyn and deck.conf not in (None, DEFAULT_CONF_ID):
            used_confs.add(deck.conf)
        if include_sched:
            dst.decks.update(deck.model_copy(deep=True))
        else:
            dst.decks.update(deck.with_conf(DEFAULT_CONF_ID))

    logger.debug(f"Copying {len(used_confs)} deck option groups")
    for conf_id in sorted(used_confs):
        conf = src.decks.get_conf(conf_id)
        if conf is None:
            raise DataIntegrityError(f"Decks reference missing options group {conf_id}")
        dst.decks.update_conf(conf)

    dst.crt = src.crt
    dst.tags.register_notes()
    card_count = dst.card_count()
    dst.set_mod()
    if post_export is not None:
        post_export(dst)
    store.close()

    return CopyResult(
        path=store.path,
        card_count=card_count,
        note_ids=nids,
        model_ids=sorted(mids),
    )
