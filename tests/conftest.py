import sys
from pathlib import Path

import pytest

# Allow `import chromport` without installing the package.
ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from chromport.cancel import CancellationToken  # noqa: E402


class RecordingBridge:
    """Bridge double that remembers every call in order."""

    def __init__(self):
        self.calls = []

    def notify_started(self):
        self.calls.append(("notify_started",))

    def notify_item_started(self, item):
        self.calls.append(("notify_item_started", item))

    def notify_item_ended(self, item):
        self.calls.append(("notify_item_ended", item))

    def notify_ended(self):
        self.calls.append(("notify_ended",))

    def set_history_items(self, entries, source):
        self.calls.append(("set_history_items", list(entries), source))

    def add_bookmarks(self, entries, top_folder_name):
        self.calls.append(("add_bookmarks", list(entries), top_folder_name))

    def set_favicons(self, records):
        self.calls.append(("set_favicons", list(records)))

    def set_cookies(self, entries):
        self.calls.append(("set_cookies", list(entries)))

    def set_password_form(self, form):
        self.calls.append(("set_password_form", form))

    def names(self):
        return [c[0] for c in self.calls]


class CancelAfterPolls(CancellationToken):
    """Token that flips to cancelled on poll number ``polls + 1``."""

    def __init__(self, polls: int):
        super().__init__()
        self.remaining = polls

    def cancelled(self) -> bool:
        if not super().cancelled():
            if self.remaining <= 0:
                self.cancel()
            else:
                self.remaining -= 1
        return super().cancelled()


@pytest.fixture
def bridge():
    return RecordingBridge()


@pytest.fixture
def token():
    return CancellationToken()


@pytest.fixture(autouse=True)
def _block_session_bus(monkeypatch):
    """Tests must never talk to a real KWallet or Secret Service."""

    def _blocked(*_args, **_kwargs):
        raise AssertionError("D-Bus session bus access attempted during tests")

    import secretstorage

    import chromport.kwallet as kwallet

    monkeypatch.setattr(kwallet, "open_dbus_connection", _blocked)
    monkeypatch.setattr(secretstorage, "dbus_init", _blocked)
