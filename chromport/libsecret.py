from __future__ import annotations

from typing import Callable, Dict, List, Optional

import secretstorage
from jeepney.io.blocking import DBusConnection
from jeepney.wrappers import DBusErrorResponse

from .errors import BackendInitError
from .log import get_logger
from .model import PasswordForm

log = get_logger(__name__)

SCHEMA_NAME = "chrome_libsecret_password_schema"
APP_STRING = "chrome"

ConnectionFactory = Callable[[], DBusConnection]


def form_from_attributes(attributes: Dict[str, str], secret: bytes) -> PasswordForm:
    """Build a PasswordForm from a stored item's attributes and secret."""
    return PasswordForm(
        signon_realm=attributes.get("signon_realm", ""),
        origin=attributes.get("origin_url", ""),
        action=attributes.get("action_url", ""),
        username_element=attributes.get("username_element", ""),
        username_value=attributes.get("username_value", ""),
        password_element=attributes.get("password_element", ""),
        password_value=secret,
        submit_element=attributes.get("submit_element", ""),
        scheme=_int_attr(attributes, "scheme"),
        preferred=_int_attr(attributes, "preferred") != 0,
        blacklisted_by_user=_int_attr(attributes, "blacklisted_by_user") != 0,
        date_created=_int_attr(attributes, "date_created") or None,
        date_synced=_int_attr(attributes, "date_synced") or None,
        times_used=_int_attr(attributes, "times_used"),
        display_name=attributes.get("display_name", ""),
        icon_url=attributes.get("avatar_url", ""),
        federation_origin=attributes.get("federation_url", ""),
        skip_zero_click=_int_attr(attributes, "should_skip_zero_click") != 0,
    )


class LibsecretBackend:
    """Password forms stored through libsecret in the Secret Service."""

    def __init__(self, profile_id: int, *, connect: Optional[ConnectionFactory] = None):
        self.profile_id = profile_id
        self._connect = connect
        self._conn: Optional[DBusConnection] = None

    @property
    def app_string(self) -> str:
        return f"{APP_STRING}-{self.profile_id}"

    def init(self) -> None:
        try:
            self._conn = (self._connect or secretstorage.dbus_init)()
            if not secretstorage.check_service_availability(self._conn):
                raise BackendInitError("no Secret Service provider on the session bus")
        except (secretstorage.SecretServiceNotAvailableException, DBusErrorResponse, OSError) as e:
            self.close()
            raise BackendInitError(f"cannot reach the Secret Service: {e}") from e
        except BackendInitError:
            self.close()
            raise

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def get_autofillable_logins(self) -> List[PasswordForm]:
        return self._search(blacklisted=False)

    def get_blacklist_logins(self) -> List[PasswordForm]:
        return self._search(blacklisted=True)

    def _search(self, *, blacklisted: bool) -> List[PasswordForm]:
        if self._conn is None:
            raise BackendInitError("libsecret backend is not initialized")
        attributes = {
            "xdg:schema": SCHEMA_NAME,
            "application": self.app_string,
            "blacklisted_by_user": "1" if blacklisted else "0",
        }
        forms: List[PasswordForm] = []
        for item in secretstorage.search_items(self._conn, attributes):
            # unlock() returns True when the user dismissed the prompt.
            if item.is_locked() and item.unlock():
                log.warning("Skipping locked Secret Service item %s", item.item_path)
                continue
            forms.append(form_from_attributes(item.get_attributes(), item.get_secret()))
        return forms


def _int_attr(attributes: Dict[str, str], key: str) -> int:
    try:
        return int(attributes.get(key, "0") or 0)
    except ValueError:
        return 0
