from __future__ import annotations

import struct
from typing import Callable, List, Optional, Tuple

from jeepney import DBusAddress, new_method_call
from jeepney.io.blocking import DBusConnection, open_dbus_connection
from jeepney.wrappers import DBusErrorResponse, unwrap_msg

from .desktop_env import DesktopEnvironment
from .errors import BackendInitError, PickleError
from .log import get_logger
from .model import PasswordForm

log = get_logger(__name__)

APP_ID = "Chrome"
FOLDER_NAME = "Chrome Form Data"
PICKLE_VERSION = 9
FORM_DATA_PICKLE_VERSION = 5
FORM_FIELD_PICKLE_VERSION = 5
MAX_FORMS = 0xFFFF
MAX_FORM_FIELDS = 0xFFFF
INVALID_HANDLE = -1

# Seconds between 1601-01-01 and 1970-01-01.
_UNIX_EPOCH_OFFSET_S = 11644473600

_SERVICES = {
    DesktopEnvironment.KDE4: ("org.kde.kwalletd", "/modules/kwalletd"),
    DesktopEnvironment.KDE5: ("org.kde.kwalletd5", "/modules/kwalletd5"),
}

ConnectionFactory = Callable[[], DBusConnection]


class PickleReader:
    """Reader for Chrome's base::Pickle wire format.

    A uint32 payload size header, then little-endian fields each padded to
    a 4-byte boundary. Strings are an int32 length followed by the bytes;
    UTF-16 strings count code units, not bytes.
    """

    def __init__(self, data: bytes):
        if len(data) < 4:
            raise PickleError("pickle shorter than its header")
        (size,) = struct.unpack_from("<I", data, 0)
        if size > len(data) - 4:
            raise PickleError("pickle payload truncated")
        self._data = data[4 : 4 + size]
        self._pos = 0

    def read_int(self) -> int:
        return struct.unpack("<i", self._take(4))[0]

    def read_uint32(self) -> int:
        return struct.unpack("<I", self._take(4))[0]

    def read_bool(self) -> bool:
        return self.read_int() != 0

    def read_int64(self) -> int:
        return struct.unpack("<q", self._take(8))[0]

    def read_uint64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def read_string(self) -> str:
        length = self.read_int()
        if length < 0:
            raise PickleError("negative string length")
        return self._take(length).decode("utf-8", errors="replace")

    def read_string16(self) -> str:
        length = self.read_int()
        if length < 0:
            raise PickleError("negative string16 length")
        return self._take(length * 2).decode("utf-16-le", errors="replace")

    def read_string16_list(self) -> List[str]:
        count = self.read_int()
        if count < 0:
            raise PickleError("negative list length")
        return [self.read_string16() for _ in range(count)]

    def _take(self, n: int) -> bytes:
        end = self._pos + n
        if end > len(self._data):
            raise PickleError("read past end of pickle")
        chunk = self._data[self._pos : end]
        self._pos += (n + 3) & ~3
        return chunk


def skip_form_field(it: PickleReader) -> None:
    """Consume one serialized autofill FormFieldData.

    Fields by version: 1 has label, name, value, control type,
    autocomplete attribute, max length, the autofilled/checked/checkable/
    focusable/should-autocomplete flags, text direction and the option
    value and content lists. 2 adds the role after the flags, 3 a
    placeholder, 4 the CSS classes and 5 a uint32 properties mask.
    """
    version = it.read_int()
    if version < 1 or version > FORM_FIELD_PICKLE_VERSION:
        raise PickleError(f"unsupported form field version {version}")
    for _ in range(3):  # label, name, value
        it.read_string16()
    it.read_string()  # form_control_type
    it.read_string()  # autocomplete_attribute
    it.read_uint64()  # max_length
    for _ in range(5):  # is_autofilled .. should_autocomplete
        it.read_bool()
    if version >= 2:
        it.read_int()  # role
    it.read_int()  # text_direction
    it.read_string16_list()  # option_values
    it.read_string16_list()  # option_contents
    if version >= 3:
        it.read_string16()  # placeholder
    if version >= 4:
        it.read_string16()  # css_classes
    if version >= 5:
        it.read_uint32()  # properties_mask


def skip_form_data(it: PickleReader) -> None:
    """Consume one serialized autofill FormData and all of its fields.

    Version 1 stores name, method, origin, action and a user_submitted
    flag; later versions drop method and the flag. 3 appends is_form_tag,
    4 is_formless_checkout and 5 the main frame origin.
    """
    version = it.read_int()
    if version < 1 or version > FORM_DATA_PICKLE_VERSION:
        raise PickleError(f"unsupported form data version {version}")
    it.read_string16()  # name
    if version == 1:
        it.read_string16()  # method
    it.read_string()  # origin
    it.read_string()  # action
    if version == 1:
        it.read_bool()  # user_submitted
    count = it.read_int()
    if count < 0 or count > MAX_FORM_FIELDS:
        raise PickleError(f"implausible form field count {count}")
    for _ in range(count):
        skip_form_field(it)
    if version >= 3:
        it.read_bool()  # is_form_tag
    if version >= 4:
        it.read_bool()  # is_formless_checkout
    if version >= 5:
        it.read_string()  # main_frame_origin


def deserialize_forms(signon_realm: str, data: bytes) -> List[PasswordForm]:
    """Decode every form stored under one KWallet entry.

    Each pickle version only appends to the previous layout: 2 adds type,
    times_used and the form's FormData, 3 date_synced, 4 display_name,
    icon_url, federation origin and skip_zero_click, and 6 the generation
    upload status. Before version 5 date_created holds time_t seconds; it
    is returned as Chrome microseconds for every version.
    """
    it = PickleReader(data)
    version = it.read_int()
    if version < 1 or version > PICKLE_VERSION:
        raise PickleError(f"unsupported pickle version {version}")
    count = it.read_uint64()
    if count > MAX_FORMS:
        raise PickleError(f"implausible form count {count}")

    forms: List[PasswordForm] = []
    for _ in range(count):
        form = PasswordForm(signon_realm=signon_realm)
        form.scheme = it.read_int()
        form.origin = it.read_string()
        form.action = it.read_string()
        form.username_element = it.read_string16()
        form.username_value = it.read_string16()
        form.password_element = it.read_string16()
        form.password_value = it.read_string16().encode("utf-8")
        form.submit_element = it.read_string16()
        it.read_bool()  # ssl_valid, unused
        form.preferred = it.read_bool()
        form.blacklisted_by_user = it.read_bool()
        date_created = it.read_int64()
        if version > 1:
            it.read_int()  # type
            form.times_used = it.read_int()
            skip_form_data(it)
        if version > 2:
            form.date_synced = it.read_int64()
        if version > 3:
            form.display_name = it.read_string16()
            form.icon_url = it.read_string()
            form.federation_origin = it.read_string()
            form.skip_zero_click = it.read_bool()
        if version > 4:
            form.date_created = date_created
        else:
            form.date_created = (date_created + _UNIX_EPOCH_OFFSET_S) * 1_000_000
        if version > 5:
            it.read_int()  # generation_upload_status
        forms.append(form)
    return forms


class KWalletBackend:
    """Password forms stored by the browser in KDE Wallet."""

    def __init__(
        self,
        profile_id: int,
        desktop_env: DesktopEnvironment,
        *,
        timeout_s: float = 5,
        connect: Optional[ConnectionFactory] = None,
    ):
        if desktop_env not in _SERVICES:
            raise ValueError(f"KWallet needs a KDE4 or KDE5 desktop, got {desktop_env.value}")
        self.profile_id = profile_id
        self.desktop_env = desktop_env
        self.timeout_s = timeout_s
        self._connect = connect
        bus_name, object_path = _SERVICES[desktop_env]
        self._address = DBusAddress(object_path, bus_name=bus_name, interface="org.kde.KWallet")
        self._conn: Optional[DBusConnection] = None
        self._wallet_name = ""

    @property
    def folder_name(self) -> str:
        return f"{FOLDER_NAME} ({self.profile_id})"

    def init(self) -> None:
        try:
            self._conn = (self._connect or open_dbus_connection)()
            (enabled,) = self._call("isEnabled")
            if not enabled:
                raise BackendInitError("KWallet is disabled")
            (self._wallet_name,) = self._call("networkWallet")
        # KeyError: no DBUS_SESSION_BUS_ADDRESS; ValueError: bus auth failed.
        except (DBusErrorResponse, OSError, KeyError, ValueError) as e:
            self.close()
            raise BackendInitError(f"cannot reach {self._address.bus_name}: {e}") from e
        except BackendInitError:
            self.close()
            raise

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def get_autofillable_logins(self) -> List[PasswordForm]:
        return [f for f in self._all_logins() if not f.blacklisted_by_user]

    def get_blacklist_logins(self) -> List[PasswordForm]:
        return [f for f in self._all_logins() if f.blacklisted_by_user]

    def _all_logins(self) -> List[PasswordForm]:
        handle = self._open_wallet()
        if handle == INVALID_HANDLE:
            return []
        try:
            (has_folder,) = self._call("hasFolder", "iss", (handle, self.folder_name, APP_ID))
            if not has_folder:
                return []
            (realms,) = self._call("entryList", "iss", (handle, self.folder_name, APP_ID))
            forms: List[PasswordForm] = []
            for realm in realms:
                (blob,) = self._call("readEntry", "isss", (handle, self.folder_name, realm, APP_ID))
                if not blob:
                    continue
                try:
                    forms.extend(deserialize_forms(realm, bytes(blob)))
                except PickleError as e:
                    log.warning("Skipping KWallet entry %r: %s", realm, e)
            return forms
        finally:
            self._call("close", "ibs", (handle, False, APP_ID))

    def _open_wallet(self) -> int:
        (handle,) = self._call("open", "sxs", (self._wallet_name, 0, APP_ID))
        if handle == INVALID_HANDLE:
            log.error("KWallet refused to open wallet %r", self._wallet_name)
        return int(handle)

    def _call(self, method: str, signature: Optional[str] = None, body: Tuple = ()) -> Tuple:
        if self._conn is None:
            raise BackendInitError("KWallet backend is not initialized")
        msg = new_method_call(self._address, method, signature, body)
        reply = self._conn.send_and_get_reply(msg, timeout=self.timeout_s)
        return tuple(unwrap_msg(reply))
