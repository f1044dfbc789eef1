"""Card scheduling resets used when exporting without review history."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

from tidyapkg.core.anki_db import ids2str

if TYPE_CHECKING:
    from tidyapkg.core.collection import Collection

logger = logging.getLogger(__name__)

STARTING_FACTOR = 2500


class Scheduler:
    """The subset of the scheduler an export needs."""

    def __init__(self, col: Collection):
        self.col = col

    def reset_cards(self, cids: list[int]) -> None:
        """Completely reset cards for export.

        Cards that are already new keep their position in the new queue; all
        others are forgotten and appended to its end.
        """
        if not cids:
            return
        sids = ids2str(cids)
        non_new = self.col.db.query_column(
            f"SELECT id FROM cards WHERE id IN {sids} AND (queue != 0 OR type != 0)"
        )
        self.col.db.execute(
            "UPDATE cards SET reps = 0, lapses = 0, odid = 0, odue = 0, queue = 0 "
            f"WHERE id IN {sids}"
        )
        self.forget_cards(non_new)
        logger.debug(f"Reset {len(cids)} cards ({len(non_new)} forgotten)")

    def forget_cards(self, cids: list[int]) -> None:
        """Put cards at the end of the new queue."""
        if not cids:
            return
        self.col.db.execute(
            "UPDATE cards SET type = 0, queue = 0, ivl = 0, due = 0, odue = 0, factor = ? "
            f"WHERE id IN {ids2str(cids)}",
            STARTING_FACTOR,
        )
        pmax = self.col.db.scalar("SELECT max(due) FROM cards WHERE type = 0") or 0
        self.sort_cards(cids, start=pmax + 1)

    def sort_cards(self, cids: list[int], start: int = 1) -> None:
        """Give new cards consecutive due positions, one per note, in card id order."""
        nid_rows = self.col.db.all(
            f"SELECT id, nid FROM cards WHERE id IN {ids2str(cids)} ORDER BY id"
        )
        positions: dict[int, int] = {}
        for row in nid_rows:
            if row["nid"] not in positions:
                positions[row["nid"]] = start + len(positions)
        mod = int(time.time())
        self.col.db.execute_many(
            "UPDATE cards SET due = ?, mod = ?, usn = ? WHERE id = ?",
            [(positions[row["nid"]], mod, self.col.usn(), row["id"]) for row in nid_rows],
        )
