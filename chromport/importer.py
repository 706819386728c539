from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable, Mapping, Optional

from .bookmarks import import_bookmarks
from .bridge import ImporterBridge
from .cancel import CancellationToken
from .config import Settings
from .cookies import import_cookies
from .favicons import Reencoder, import_favicons, reencode_favicon
from .history import import_history
from .log import get_logger
from .model import ImportItem
from .password_store import BackendFactory, import_passwords

log = get_logger(__name__)


class ChromeImporter:
    """Imports a Chrome-family profile directory into a bridge.

    Phases run in a fixed order (history, bookmarks with favicons,
    cookies, passwords). A phase runs only when it was requested and the
    import has not been cancelled; it gets item started/ended
    notifications, a skipped phase gets none. A failing phase is logged
    and the next one still runs.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        token: Optional[CancellationToken] = None,
        reencode: Reencoder = reencode_favicon,
        platform: str = sys.platform,
        env: Optional[Mapping[str, str]] = None,
        backend_factory: Optional[BackendFactory] = None,
    ):
        self.settings = settings or Settings()
        self.token = token or CancellationToken()
        self.reencode = reencode
        self.platform = platform
        self.env = env
        self.backend_factory = backend_factory

    def cancel(self) -> None:
        self.token.cancel()

    def cancelled(self) -> bool:
        return self.token.cancelled()

    def start_import(self, source_path: Path, items: ImportItem, bridge: ImporterBridge) -> None:
        profile = Path(source_path)
        phases = (
            (ImportItem.HISTORY, self._import_history),
            (ImportItem.FAVORITES, self._import_bookmarks),
            (ImportItem.COOKIES, self._import_cookies),
            (ImportItem.PASSWORDS, self._import_passwords),
        )

        bridge.notify_started()
        for item, run in phases:
            if not (items & item) or self.cancelled():
                continue
            bridge.notify_item_started(item)
            self._run_phase(item, run, profile, bridge)
            bridge.notify_item_ended(item)
        if self.cancelled():
            log.warning("Import cancelled.")
        bridge.notify_ended()

    def _run_phase(
        self,
        item: ImportItem,
        run: Callable[[Path, ImporterBridge], None],
        profile: Path,
        bridge: ImporterBridge,
    ) -> None:
        try:
            run(profile, bridge)
        except Exception as e:
            # Unexpected reader errors stay inside their phase.
            log.warning("%s import failed: %s", (item.name or "").lower(), e)

    def _import_history(self, profile: Path, bridge: ImporterBridge) -> None:
        import_history(profile, bridge, self.token)

    def _import_bookmarks(self, profile: Path, bridge: ImporterBridge) -> None:
        import_bookmarks(profile, bridge, self.token)
        if self.cancelled():
            return
        import_favicons(profile, bridge, self.token, reencode=self.reencode)

    def _import_cookies(self, profile: Path, bridge: ImporterBridge) -> None:
        import_cookies(profile, bridge, self.token)

    def _import_passwords(self, profile: Path, bridge: ImporterBridge) -> None:
        import_passwords(
            profile,
            bridge,
            self.token,
            platform=self.platform,
            env=self.env,
            password_store=self.settings.password_store,
            libsecret_available=self.settings.use_libsecret,
            kwallet_timeout_s=self.settings.kwallet_timeout_s,
            backend_factory=self.backend_factory,
        )
