from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntFlag
from typing import List, Optional, Set


class ImportItem(IntFlag):
    NONE = 0
    HISTORY = 1 << 0
    FAVORITES = 1 << 1
    COOKIES = 1 << 2
    PASSWORDS = 1 << 3
    ALL = HISTORY | FAVORITES | COOKIES | PASSWORDS


class VisitSource(str, Enum):
    CHROME_IMPORTED = "chrome-imported"


@dataclass
class HistoryEntry:
    url: str
    title: str
    last_visit: float
    typed_count: int = 0
    visit_count: int = 0
    hidden: bool = False


@dataclass
class BookmarkEntry:
    title: str
    url: str
    path: List[str] = field(default_factory=list)
    is_folder: bool = False
    in_toolbar: bool = False
    creation_time: Optional[float] = None


@dataclass
class FaviconRecord:
    urls: Set[str]
    png_data: Optional[bytes] = None
    favicon_url: Optional[str] = None


@dataclass
class CookieEntry:
    domain: str
    name: str
    value: str
    host: str
    path: str
    expiry: float
    secure: bool = False
    httponly: bool = False


@dataclass
class PasswordForm:
    signon_realm: str
    origin: str = ""
    action: str = ""
    username_element: str = ""
    username_value: str = ""
    password_element: str = ""
    password_value: bytes = b""
    submit_element: str = ""
    scheme: int = 0
    preferred: bool = False
    blacklisted_by_user: bool = False
    # Chrome microsecond timestamps, as stored.
    date_created: Optional[int] = None
    date_synced: Optional[int] = None
    times_used: int = 0
    display_name: str = ""
    icon_url: str = ""
    federation_origin: str = ""
    skip_zero_click: bool = False
