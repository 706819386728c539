from __future__ import annotations

import re
from urllib.parse import urlparse

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")

# Schemes that are meaningless without an authority ("http:foo" is garbage).
_HOST_REQUIRED = {"http", "https", "ftp", "ws", "wss"}


def is_valid_url(url: str) -> bool:
    if not url or url != url.strip():
        return False
    try:
        p = urlparse(url)
        # Accessing .port validates the authority ("http://h:xx/" raises).
        p.port
    except ValueError:
        return False
    if not p.scheme or not _SCHEME_RE.match(p.scheme):
        return False
    scheme = p.scheme.lower()
    if scheme in _HOST_REQUIRED:
        return bool(p.hostname)
    if scheme == "data":
        return "," in url
    return bool(p.netloc or p.path or p.query)


def is_data_url(url: str) -> bool:
    return url[:5].lower() == "data:"
