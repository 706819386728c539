from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import List

from .bridge import ImporterBridge
from .cancel import CancellationToken
from .chrome_time import chrome_time_to_double
from .errors import StoreOpenError
from .log import get_logger
from .model import CookieEntry
from .profile_db import ProfileDB

log = get_logger(__name__)

COOKIES_FILE = "Cookies"

# Rows with an OS-encrypted value are left behind: we never try to decrypt them.
_COOKIES_QUERY = (
    "SELECT host_key, name, value, path, expires_utc, secure, httponly, "
    "encrypted_value FROM cookies WHERE length(encrypted_value) = 0"
)


def read_cookies(profile: Path, token: CancellationToken) -> List[CookieEntry]:
    db_path = Path(profile) / COOKIES_FILE
    if not db_path.exists():
        log.debug("No Cookies file in %s", profile)
        return []

    out: List[CookieEntry] = []
    try:
        with ProfileDB(db_path) as db:
            for r in db.query(_COOKIES_QUERY):
                if token.cancelled():
                    break
                domain = _text(r["host_key"])
                out.append(
                    CookieEntry(
                        domain=domain,
                        name=_text(r["name"]),
                        value=_text(r["value"]),
                        host="*" + domain,
                        path=_text(r["path"]),
                        expiry=chrome_time_to_double(int(r["expires_utc"] or 0)),
                        secure=bool(r["secure"]),
                        httponly=bool(r["httponly"]),
                    )
                )
    except (StoreOpenError, sqlite3.Error) as e:
        log.warning("Skipping cookies: %s", e)
        return []
    return out


def import_cookies(profile: Path, bridge: ImporterBridge, token: CancellationToken) -> int:
    cookies = read_cookies(profile, token)
    if not cookies or token.cancelled():
        return 0
    bridge.set_cookies(cookies)
    log.info("Imported %d cookies.", len(cookies))
    return len(cookies)


def _text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
