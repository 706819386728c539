from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

from .model import ImportItem

PASSWORD_STORES = (
    "auto",
    "basic",
    "gnome",
    "gnome-keyring",
    "gnome-libsecret",
    "kwallet",
    "kwallet5",
    "login-db",
)


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None or v == "":
        return default
    return v.strip().lower() in ("1", "true", "yes", "y", "on")


def _env_str(name: str, default: str) -> str:
    v = os.getenv(name)
    return default if v is None else v


@dataclass
class Settings:
    # What to import
    items: str = "history,favorites,cookies,passwords"

    # Password backends
    password_store: str = "auto"  # see PASSWORD_STORES
    use_libsecret: bool = True
    kwallet_timeout_s: int = 5

    # Output
    export_password_values: bool = False  # False => JSONL bridge redacts password_value

    # Logging / UX
    log_level: str = "INFO"
    no_color: bool = False

    def import_items(self) -> ImportItem:
        return parse_items(self.items)

    @staticmethod
    def from_env() -> "Settings":
        s = Settings()
        s.items = _env_str("CHROMPORT_ITEMS", s.items)

        s.password_store = _env_str("CHROMPORT_PASSWORD_STORE", s.password_store)
        s.use_libsecret = _env_bool("CHROMPORT_USE_LIBSECRET", s.use_libsecret)
        s.kwallet_timeout_s = _env_int("CHROMPORT_KWALLET_TIMEOUT_S", s.kwallet_timeout_s)

        s.export_password_values = _env_bool("CHROMPORT_EXPORT_PASSWORD_VALUES", s.export_password_values)

        s.log_level = _env_str("CHROMPORT_LOG_LEVEL", s.log_level)
        s.no_color = _env_bool("CHROMPORT_NO_COLOR", s.no_color)
        return s

    @staticmethod
    def from_file(path: Path) -> "Settings":
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        s = Settings.from_env()
        for k, v in data.items():
            if hasattr(s, k):
                setattr(s, k, v)
        return s


def load_settings(config_path: Optional[str]) -> Settings:
    if config_path:
        return Settings.from_file(Path(config_path))
    return Settings.from_env()


_ITEM_NAMES = {
    "history": ImportItem.HISTORY,
    "favorites": ImportItem.FAVORITES,
    "bookmarks": ImportItem.FAVORITES,
    "cookies": ImportItem.COOKIES,
    "passwords": ImportItem.PASSWORDS,
    "all": ImportItem.ALL,
}


def parse_items(value: str) -> ImportItem:
    """Turn "history,cookies" into an ImportItem bitmask.

    Raises ValueError on unknown names so typos in config fail loudly.
    """
    items = ImportItem.NONE
    for token in (value or "").split(","):
        name = token.strip().lower()
        if not name:
            continue
        if name not in _ITEM_NAMES:
            raise ValueError(f"unknown import item: {token.strip()!r}")
        items |= _ITEM_NAMES[name]
    return items
