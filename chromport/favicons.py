from __future__ import annotations

import base64
import binascii
import io
import sqlite3
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set
from urllib.parse import unquote_to_bytes

from PIL import Image

from .bridge import ImporterBridge
from .cancel import CancellationToken
from .errors import StoreOpenError
from .log import get_logger
from .model import FaviconRecord
from .profile_db import ProfileDB
from .url_norm import is_data_url, is_valid_url

log = get_logger(__name__)

FAVICONS_FILE = "Favicons"
FAVICON_SIZE = 16

Reencoder = Callable[[bytes], Optional[bytes]]


def reencode_favicon(data: bytes) -> Optional[bytes]:
    """Decode any image Pillow understands and return it as a 16x16 PNG.

    ``data`` may also be a whole ``data:`` URL, whose payload is decoded
    first. Returns None when the bytes are not an image.
    """
    if data[:5].lower() == b"data:":
        data = _data_url_payload(data)
        if not data:
            return None
    try:
        with Image.open(io.BytesIO(data)) as img:
            img = img.convert("RGBA")
            if img.size != (FAVICON_SIZE, FAVICON_SIZE):
                img = img.resize((FAVICON_SIZE, FAVICON_SIZE), Image.Resampling.LANCZOS)
            out = io.BytesIO()
            img.save(out, format="PNG")
            return out.getvalue()
    except Exception as e:
        # Pillow raises a wide range of errors on corrupt input.
        log.debug("Favicon decode failed: %s", e)
        return None


def read_icon_mapping(db: ProfileDB, token: CancellationToken) -> Dict[int, Set[str]]:
    out: Dict[int, Set[str]] = {}
    for r in db.query("SELECT icon_id, page_url FROM icon_mapping"):
        if token.cancelled():
            break
        out.setdefault(int(r["icon_id"]), set()).add(str(r["page_url"] or ""))
    return out


def load_favicon_data(
    db: ProfileDB,
    icon_map: Dict[int, Set[str]],
    *,
    reencode: Reencoder = reencode_favicon,
) -> List[FaviconRecord]:
    out: List[FaviconRecord] = []
    for icon_id in sorted(icon_map):
        row = db.query_one("SELECT url FROM favicons WHERE id = ?", (icon_id,))
        if row is None:
            continue
        raw = row["url"]
        url = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw or "")
        if not is_valid_url(url):
            log.debug("Skipping favicon %d with invalid URL", icon_id)
            continue

        record = FaviconRecord(urls=set(icon_map[icon_id]))
        if is_data_url(url):
            blob = raw if isinstance(raw, bytes) else url.encode("utf-8")
            if not blob:
                continue
            png = reencode(blob)
            if not png:
                log.debug("Skipping favicon %d, image data could not be decoded", icon_id)
                continue
            record.png_data = png
        else:
            record.favicon_url = url
        out.append(record)
    return out


def import_favicons(
    profile: Path,
    bridge: ImporterBridge,
    token: CancellationToken,
    *,
    reencode: Reencoder = reencode_favicon,
) -> int:
    db_path = Path(profile) / FAVICONS_FILE
    if not db_path.exists():
        log.debug("No Favicons file in %s", profile)
        return 0

    try:
        with ProfileDB(db_path) as db:
            icon_map = read_icon_mapping(db, token)
            if not icon_map or token.cancelled():
                return 0
            favicons = load_favicon_data(db, icon_map, reencode=reencode)
    except (StoreOpenError, sqlite3.Error) as e:
        log.warning("Skipping favicons: %s", e)
        return 0

    if not favicons or token.cancelled():
        return 0
    bridge.set_favicons(favicons)
    log.info("Imported %d favicons.", len(favicons))
    return len(favicons)


def _data_url_payload(data: bytes) -> bytes:
    header, sep, payload = data[5:].partition(b",")
    if not sep:
        return b""
    if header.lower().endswith(b";base64"):
        try:
            return base64.b64decode(payload, validate=False)
        except (binascii.Error, ValueError):
            return b""
    return unquote_to_bytes(payload)
