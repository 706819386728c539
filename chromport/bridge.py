from __future__ import annotations

import base64
import json
from collections import Counter
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Protocol, Sequence

from .log import get_logger
from .model import (
    BookmarkEntry,
    CookieEntry,
    FaviconRecord,
    HistoryEntry,
    ImportItem,
    PasswordForm,
    VisitSource,
)

log = get_logger(__name__)


class ImporterBridge(Protocol):
    """Destination side of an import. Every call is synchronous."""

    def notify_started(self) -> None: ...

    def notify_item_started(self, item: ImportItem) -> None: ...

    def notify_item_ended(self, item: ImportItem) -> None: ...

    def notify_ended(self) -> None: ...

    def set_history_items(self, entries: Sequence[HistoryEntry], source: VisitSource) -> None: ...

    def add_bookmarks(self, entries: Sequence[BookmarkEntry], top_folder_name: str) -> None: ...

    def set_favicons(self, records: Sequence[FaviconRecord]) -> None: ...

    def set_cookies(self, entries: Sequence[CookieEntry]) -> None: ...

    def set_password_form(self, form: PasswordForm) -> None: ...


class JsonlBridge:
    """Writes every record it receives to one JSONL file per kind.

    Files are only created for kinds that actually deliver records, plus a
    summary.json written on notify_ended().
    """

    def __init__(self, out_dir: Path, *, export_password_values: bool = False):
        self.out_dir = Path(out_dir)
        self.export_password_values = export_password_values
        self.counts: Counter = Counter()
        self.items_done: List[str] = []

    def notify_started(self) -> None:
        self.out_dir.mkdir(parents=True, exist_ok=True)
        log.info("Import started -> %s", self.out_dir)

    def notify_item_started(self, item: ImportItem) -> None:
        log.info("Importing %s...", _item_name(item))

    def notify_item_ended(self, item: ImportItem) -> None:
        self.items_done.append(_item_name(item))

    def notify_ended(self) -> None:
        summary = {"items": self.items_done, "counts": dict(self.counts)}
        (self.out_dir / "summary.json").write_text(
            json.dumps(summary, indent=2, sort_keys=True) + "\n", encoding="utf-8"
        )
        log.info("Import finished: %s", ", ".join(f"{k}={v}" for k, v in sorted(self.counts.items())) or "nothing imported")

    def set_history_items(self, entries: Sequence[HistoryEntry], source: VisitSource) -> None:
        rows = []
        for e in entries:
            row = asdict(e)
            row["source"] = source.value
            rows.append(row)
        self._append("history", rows)

    def add_bookmarks(self, entries: Sequence[BookmarkEntry], top_folder_name: str) -> None:
        rows = []
        for e in entries:
            row = asdict(e)
            row["path"] = [top_folder_name] + list(e.path)
            rows.append(row)
        self._append("bookmarks", rows)

    def set_favicons(self, records: Sequence[FaviconRecord]) -> None:
        rows = []
        for r in records:
            rows.append(
                {
                    "urls": sorted(r.urls),
                    "favicon_url": r.favicon_url,
                    "png_data": base64.b64encode(r.png_data).decode("ascii") if r.png_data else None,
                }
            )
        self._append("favicons", rows)

    def set_cookies(self, entries: Sequence[CookieEntry]) -> None:
        self._append("cookies", [asdict(e) for e in entries])

    def set_password_form(self, form: PasswordForm) -> None:
        row = asdict(form)
        if self.export_password_values:
            row["password_value"] = base64.b64encode(form.password_value).decode("ascii")
        else:
            row["password_value"] = None
        self._append("passwords", [row])

    def _append(self, kind: str, rows: List[Dict]) -> None:
        path = self.out_dir / f"{kind}.jsonl"
        with path.open("a", encoding="utf-8") as f:
            for row in rows:
                f.write(json.dumps(row, ensure_ascii=False) + "\n")
        self.counts[kind] += len(rows)


def _item_name(item: ImportItem) -> str:
    return (item.name or str(int(item))).lower()
