from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import List

from .bridge import ImporterBridge
from .cancel import CancellationToken
from .chrome_time import chrome_time_to_double
from .errors import StoreOpenError
from .log import get_logger
from .model import HistoryEntry, VisitSource
from .profile_db import ProfileDB

log = get_logger(__name__)

HISTORY_FILE = "History"

_HISTORY_QUERY = (
    "SELECT url, title, last_visit_time, typed_count, visit_count "
    "FROM urls WHERE hidden = 0"
)


def read_history(profile: Path, token: CancellationToken) -> List[HistoryEntry]:
    """Read all non-hidden URLs; the result is partial if token fired."""
    db_path = Path(profile) / HISTORY_FILE
    if not db_path.exists():
        log.debug("No History file in %s", profile)
        return []

    out: List[HistoryEntry] = []
    try:
        with ProfileDB(db_path) as db:
            for r in db.query(_HISTORY_QUERY):
                if token.cancelled():
                    break
                out.append(
                    HistoryEntry(
                        url=str(r["url"] or ""),
                        title=str(r["title"] or ""),
                        last_visit=chrome_time_to_double(int(r["last_visit_time"] or 0)),
                        typed_count=int(r["typed_count"] or 0),
                        visit_count=int(r["visit_count"] or 0),
                        hidden=False,
                    )
                )
    except (StoreOpenError, sqlite3.Error) as e:
        log.warning("Skipping history: %s", e)
        return []
    return out


def import_history(profile: Path, bridge: ImporterBridge, token: CancellationToken) -> int:
    rows = read_history(profile, token)
    if not rows or token.cancelled():
        return 0
    bridge.set_history_items(rows, VisitSource.CHROME_IMPORTED)
    log.info("Imported %d history rows.", len(rows))
    return len(rows)
