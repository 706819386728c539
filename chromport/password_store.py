from __future__ import annotations

import json
import sqlite3
import sys
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, List, Mapping, Optional, Protocol

from jeepney.wrappers import DBusErrorResponse
from pydantic import BaseModel, Field, StrictInt, ValidationError
from secretstorage.exceptions import SecretStorageException

from .bridge import ImporterBridge
from .cancel import CancellationToken
from .desktop_env import (
    DesktopEnvironment,
    SelectedLinuxBackend,
    get_desktop_environment,
    select_backend,
)
from .errors import BackendInitError, StoreOpenError
from .kwallet import KWalletBackend
from .libsecret import LibsecretBackend
from .log import get_logger
from .model import PasswordForm
from .profile_db import ProfileDB

log = get_logger(__name__)

LOGIN_DATA_FILE = "Login Data"
PREFERENCES_FILE = "Preferences"

_INT32_MIN = -(1 << 31)
_INT32_MAX = (1 << 31) - 1

# Unix desktops where the browser keeps passwords in a desktop keyring
# instead of the Login Data database.
_KEYRING_PLATFORMS = ("linux", "freebsd", "openbsd", "netbsd")

# Failures a backend may raise while listing logins after a good init().
_BACKEND_ERRORS = (BackendInitError, sqlite3.Error, DBusErrorResponse, SecretStorageException, OSError)

_LOGIN_COLUMNS = (
    "origin_url",
    "action_url",
    "username_element",
    "username_value",
    "password_element",
    "password_value",
    "submit_element",
    "signon_realm",
    "preferred",
    "blacklisted_by_user",
    "date_created",
    "scheme",
    "times_used",
    "date_synced",
    "display_name",
    "icon_url",
    "federation_url",
    "skip_zero_click",
)


class PasswordBackend(Protocol):
    def init(self) -> None:
        """Raise BackendInitError when the store is unusable."""

    def get_autofillable_logins(self) -> List[PasswordForm]: ...

    def get_blacklist_logins(self) -> List[PasswordForm]: ...

    def close(self) -> None: ...


class SecretBackendKind(Enum):
    LOGIN_DATABASE = "login-db"
    KWALLET = "kwallet"
    LIBSECRET = "libsecret"
    NONE = "none"


@dataclass(frozen=True)
class BackendChoice:
    kind: SecretBackendKind
    # KDE generation to talk to; only set for KWALLET.
    desktop_env: Optional[DesktopEnvironment] = None


class LoginDatabase:
    """The profile's own "Login Data" SQLite store."""

    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)
        self._db: Optional[ProfileDB] = None
        self._columns: List[str] = []

    def init(self) -> None:
        db = ProfileDB(self.db_path)
        try:
            db.open()
            if not db.has_column("logins", "origin_url"):
                raise BackendInitError(f"{self.db_path.name} has no logins table")
            self._columns = [c for c in _LOGIN_COLUMNS if db.has_column("logins", c)]
        except (StoreOpenError, sqlite3.Error) as e:
            db.close()
            raise BackendInitError(str(e)) from e
        except BackendInitError:
            db.close()
            raise
        self._db = db

    def close(self) -> None:
        if self._db is not None:
            self._db.close()
            self._db = None

    def get_autofillable_logins(self) -> List[PasswordForm]:
        return self._logins(blacklisted=False)

    def get_blacklist_logins(self) -> List[PasswordForm]:
        return self._logins(blacklisted=True)

    def _logins(self, *, blacklisted: bool) -> List[PasswordForm]:
        if self._db is None:
            raise BackendInitError("login database is not initialized")
        where = "WHERE blacklisted_by_user = ?" if "blacklisted_by_user" in self._columns else "WHERE ? = 0"
        sql = f"SELECT {', '.join(self._columns)} FROM logins {where} ORDER BY origin_url"
        return [_form_from_row(r) for r in self._db.query(sql, (1 if blacklisted else 0,))]


class NoBackend:
    """Stand-in when no supported secret store exists; yields nothing."""

    def init(self) -> None:
        pass

    def close(self) -> None:
        pass

    def get_autofillable_logins(self) -> List[PasswordForm]:
        return []

    def get_blacklist_logins(self) -> List[PasswordForm]:
        return []


class _ProfilePrefs(BaseModel):
    local_profile_id: Optional[StrictInt] = None


class _Preferences(BaseModel):
    profile: _ProfilePrefs = Field(default_factory=_ProfilePrefs)


def uses_keyring(platform: str) -> bool:
    return platform.startswith(_KEYRING_PLATFORMS)


def read_local_profile_id(profile: Path) -> Optional[int]:
    """Return ``profile.local_profile_id`` from Preferences, or None."""
    path = Path(profile) / PREFERENCES_FILE
    try:
        data = json.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        log.debug("No Preferences file in %s", profile)
        return None
    except (OSError, UnicodeDecodeError, ValueError) as e:
        log.warning("Cannot read %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        return None
    try:
        value = _Preferences.model_validate(data).profile.local_profile_id
    except ValidationError:
        log.warning("Preferences has a non-integer profile.local_profile_id")
        return None
    if value is None or not _INT32_MIN <= value <= _INT32_MAX:
        return None
    return value


def choose_backend(
    *,
    platform: str,
    desktop_env: DesktopEnvironment,
    password_store: str = "auto",
    libsecret_available: bool = True,
) -> BackendChoice:
    """Decide, once, which secret store holds the profile's passwords.

    There is no fallback: when the chosen store later fails to initialize
    the import simply yields no passwords.
    """
    if password_store == SecretBackendKind.LOGIN_DATABASE.value or not uses_keyring(platform):
        return BackendChoice(SecretBackendKind.LOGIN_DATABASE)

    selected = select_backend(password_store, desktop_env)
    if selected == SelectedLinuxBackend.KWALLET:
        return BackendChoice(SecretBackendKind.KWALLET, DesktopEnvironment.KDE4)
    if selected == SelectedLinuxBackend.KWALLET5:
        return BackendChoice(SecretBackendKind.KWALLET, DesktopEnvironment.KDE5)
    if selected in (SelectedLinuxBackend.GNOME_ANY, SelectedLinuxBackend.GNOME_LIBSECRET) and libsecret_available:
        return BackendChoice(SecretBackendKind.LIBSECRET)
    return BackendChoice(SecretBackendKind.NONE)


def make_backend(
    choice: BackendChoice,
    profile: Path,
    profile_id: Optional[int],
    *,
    kwallet_timeout_s: float = 5,
) -> PasswordBackend:
    if choice.kind == SecretBackendKind.LOGIN_DATABASE:
        return LoginDatabase(Path(profile) / LOGIN_DATA_FILE)
    if choice.kind == SecretBackendKind.KWALLET and profile_id is not None and choice.desktop_env is not None:
        return KWalletBackend(profile_id, choice.desktop_env, timeout_s=kwallet_timeout_s)
    if choice.kind == SecretBackendKind.LIBSECRET and profile_id is not None:
        return LibsecretBackend(profile_id)
    return NoBackend()


BackendFactory = Callable[[BackendChoice, Path, Optional[int]], PasswordBackend]


def import_passwords(
    profile: Path,
    bridge: ImporterBridge,
    token: CancellationToken,
    *,
    platform: str = sys.platform,
    env: Optional[Mapping[str, str]] = None,
    password_store: str = "auto",
    libsecret_available: bool = True,
    kwallet_timeout_s: float = 5,
    backend_factory: Optional[BackendFactory] = None,
) -> int:
    """Forward every saved login of the profile, one bridge call per form."""
    profile = Path(profile)
    profile_id: Optional[int] = None
    desktop_env = DesktopEnvironment.OTHER
    if password_store != SecretBackendKind.LOGIN_DATABASE.value and uses_keyring(platform):
        profile_id = read_local_profile_id(profile)
        if profile_id is None:
            log.info("No local profile id in Preferences; skipping passwords.")
            return 0
        desktop_env = get_desktop_environment(env)

    choice = choose_backend(
        platform=platform,
        desktop_env=desktop_env,
        password_store=password_store,
        libsecret_available=libsecret_available,
    )
    log.debug("Password backend: %s (desktop=%s)", choice.kind.value, desktop_env.value)
    if backend_factory is None:
        backend = make_backend(choice, profile, profile_id, kwallet_timeout_s=kwallet_timeout_s)
    else:
        backend = backend_factory(choice, profile, profile_id)

    try:
        try:
            backend.init()
        except BackendInitError as e:
            log.error("%s password store init failed: %s", choice.kind.value, e)
            return 0
        forms = _fetch(backend.get_autofillable_logins, "autofillable")
        forms += _fetch(backend.get_blacklist_logins, "blacklisted")
    finally:
        backend.close()

    if token.cancelled():
        return 0
    for form in forms:
        bridge.set_password_form(form)
    if forms:
        log.info("Imported %d saved logins.", len(forms))
    return len(forms)


def _fetch(getter: Callable[[], List[PasswordForm]], label: str) -> List[PasswordForm]:
    try:
        return list(getter())
    except _BACKEND_ERRORS as e:
        log.warning("Reading %s logins failed: %s", label, e)
        return []


def _form_from_row(r: sqlite3.Row) -> PasswordForm:
    keys = r.keys()

    def get(name: str, default=None):
        return r[name] if name in keys and r[name] is not None else default

    password_value = get("password_value", b"")
    if isinstance(password_value, str):
        password_value = password_value.encode("utf-8")
    return PasswordForm(
        signon_realm=str(get("signon_realm", "")),
        origin=str(get("origin_url", "")),
        action=str(get("action_url", "")),
        username_element=str(get("username_element", "")),
        username_value=str(get("username_value", "")),
        password_element=str(get("password_element", "")),
        password_value=bytes(password_value),
        submit_element=str(get("submit_element", "")),
        scheme=int(get("scheme", 0)),
        preferred=bool(get("preferred", 0)),
        blacklisted_by_user=bool(get("blacklisted_by_user", 0)),
        date_created=get("date_created"),
        date_synced=get("date_synced"),
        times_used=int(get("times_used", 0)),
        display_name=str(get("display_name", "")),
        icon_url=str(get("icon_url", "")),
        federation_origin=str(get("federation_url", "")),
        skip_zero_click=bool(get("skip_zero_click", 0)),
    )
