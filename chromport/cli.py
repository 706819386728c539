from __future__ import annotations

import argparse
import signal
import time
from pathlib import Path
from typing import List

from . import __version__
from .bridge import JsonlBridge
from .config import PASSWORD_STORES, load_settings
from .importer import ChromeImporter
from .log import LogConfig, get_logger, setup_logging

log = get_logger(__name__)


def main(argv: List[str] | None = None) -> int:
    p = argparse.ArgumentParser(
        prog="chromport",
        description="Import history, bookmarks, cookies and saved logins from a Chrome profile.",
    )
    p.add_argument("-V", "--version", action="version", version=f"chromport {__version__}")
    p.add_argument("--config", default=None, help="YAML config file (optional). Env vars override defaults.")
    sub = p.add_subparsers(dest="cmd", required=True)

    imp = sub.add_parser("import", help="Import a Chrome profile directory into JSONL files.")
    imp.add_argument("--profile", required=True, help="Chrome profile dir (the one holding History, Bookmarks, ...).")
    imp.add_argument("--out", required=True, help="Output directory for the JSONL files.")
    imp.add_argument("--items", default=None, help="Comma list of history,favorites,cookies,passwords (default: all).")
    imp.add_argument("--password-store", default=None, choices=PASSWORD_STORES, help="Force a password store instead of detecting it.")
    imp.add_argument("--export-password-values", action="store_true", help="Write password values (base64) instead of redacting them.")
    imp.add_argument("--log-level", default=None, help="DEBUG/INFO/WARN/ERROR (overrides env/config).")
    imp.add_argument("--no-color", action="store_true", help="Disable colored logging.")

    args = p.parse_args(argv)
    cfg = load_settings(args.config)
    if args.log_level:
        cfg.log_level = args.log_level
    if args.no_color:
        cfg.no_color = True
    setup_logging(LogConfig(level=cfg.log_level, no_color=cfg.no_color))

    if args.cmd == "import":
        return _cmd_import(args, cfg)
    return 2


def _cmd_import(args, cfg) -> int:
    t0 = time.time()
    profile = Path(args.profile)
    if not profile.is_dir():
        log.error("Profile directory not found: %s", profile)
        return 2

    if args.items:
        cfg.items = args.items
    if args.password_store:
        cfg.password_store = args.password_store
    if args.export_password_values:
        cfg.export_password_values = True
    try:
        items = cfg.import_items()
    except ValueError as e:
        log.error("%s", e)
        return 2

    importer = ChromeImporter(cfg)
    bridge = JsonlBridge(Path(args.out), export_password_values=cfg.export_password_values)

    def _on_sigint(_signum, _frame):
        log.warning("Interrupted; finishing the current row and stopping.")
        importer.cancel()

    previous = signal.signal(signal.SIGINT, _on_sigint)
    try:
        importer.start_import(profile, items, bridge)
    finally:
        signal.signal(signal.SIGINT, previous)

    log.info("Done in %d ms.", int((time.time() - t0) * 1000))
    return 130 if importer.cancelled() else 0
