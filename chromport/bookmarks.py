from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from pydantic import BaseModel, Field, StrictInt, StrictStr, ValidationError, field_validator

from .bridge import ImporterBridge
from .cancel import CancellationToken
from .chrome_time import chrome_time_to_double
from .log import get_logger
from .model import BookmarkEntry

log = get_logger(__name__)

BOOKMARKS_FILE = "Bookmarks"
TOP_FOLDER_NAME = "Imported from Chrome"

# (root key, direct children sit on the toolbar)
_ROOTS = (("bookmark_bar", True), ("other", False))

_INT64_MIN = -(1 << 63)
_INT64_MAX = (1 << 63) - 1
# Same prefix std::stoll accepts: C whitespace, optional sign, digits.
_STOLL_RE = re.compile(r"[ \t\n\v\f\r]*([+-]?[0-9]+)")


class BookmarkNode(BaseModel):
    type: str = ""
    name: str = ""
    url: str = ""
    date_added: Optional[Union[StrictStr, StrictInt]] = None
    # Children stay raw so one malformed child does not sink its siblings.
    children: List[Any] = Field(default_factory=list)

    # A missing or mistyped field reads as empty; the node itself is kept.
    @field_validator("type", "name", "url", mode="before")
    @classmethod
    def _text_or_empty(cls, v: Any) -> str:
        return v if isinstance(v, str) else ""

    @field_validator("date_added", mode="before")
    @classmethod
    def _chrome_int_or_none(cls, v: Any) -> Any:
        if isinstance(v, bool) or not isinstance(v, (str, int)):
            return None
        return v

    @field_validator("children", mode="before")
    @classmethod
    def _list_or_empty(cls, v: Any) -> List[Any]:
        return v if isinstance(v, list) else []


class BookmarksDocument(BaseModel):
    roots: Dict[str, Any] = Field(default_factory=dict)


def parse_bookmarks(profile: Path, token: CancellationToken) -> List[BookmarkEntry]:
    """Flatten the bookmark bar and "other" trees of the profile.

    Returns entries in depth-first order. Anything unreadable at the
    document level yields an empty list.
    """
    path = Path(profile) / BOOKMARKS_FILE
    if not path.exists():
        log.debug("No Bookmarks file in %s", profile)
        return []
    try:
        data = json.loads(path.read_bytes().decode("utf-8"))
    except (OSError, UnicodeDecodeError, ValueError) as e:
        log.warning("Skipping bookmarks, cannot parse %s: %s", path, e)
        return []
    if not isinstance(data, dict):
        log.warning("Skipping bookmarks, %s is not a JSON object", path)
        return []
    try:
        doc = BookmarksDocument.model_validate(data)
    except ValidationError as e:
        log.warning("Skipping bookmarks, unexpected layout in %s: %s", path, e.errors()[0]["msg"])
        return []

    out: List[BookmarkEntry] = []
    for key, in_toolbar in _ROOTS:
        root = _parse_node(doc.roots.get(key))
        if root is None:
            continue
        out.extend(read_bookmark_folder(root, [root.name], in_toolbar, token))
    return out


def read_bookmark_folder(
    folder: BookmarkNode,
    parent_path: Sequence[str],
    in_toolbar: bool,
    token: CancellationToken,
) -> List[BookmarkEntry]:
    out: List[BookmarkEntry] = []
    for raw in folder.children:
        if token.cancelled():
            break
        node = _parse_node(raw)
        if node is None:
            continue
        if node.type == "folder":
            entry = _make_entry(node, parent_path, in_toolbar, is_folder=True)
            if entry is not None:
                out.append(entry)
            # Only the root's direct children are on the toolbar.
            out.extend(read_bookmark_folder(node, [*parent_path, node.name], False, token))
        elif node.type == "url":
            entry = _make_entry(node, parent_path, in_toolbar, is_folder=False)
            if entry is not None:
                out.append(entry)
    return out


def parse_chrome_int(value: Union[str, int, None]) -> Optional[int]:
    """Parse a Chrome int64 stored as a JSON string, or None if impossible."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        m = _STOLL_RE.match(value)
        if m is None:
            return None
        parsed = int(m.group(1))
    else:
        return None
    if parsed < _INT64_MIN or parsed > _INT64_MAX:
        return None
    return parsed


def import_bookmarks(profile: Path, bridge: ImporterBridge, token: CancellationToken) -> int:
    bookmarks = parse_bookmarks(profile, token)
    if not bookmarks or token.cancelled():
        return 0
    bridge.add_bookmarks(bookmarks, TOP_FOLDER_NAME)
    log.info("Imported %d bookmarks and folders.", len(bookmarks))
    return len(bookmarks)


def _parse_node(raw: Any) -> Optional[BookmarkNode]:
    if not isinstance(raw, dict):
        return None
    try:
        return BookmarkNode.model_validate(raw)
    except ValidationError:
        log.debug("Skipping malformed bookmark node: %r", raw.get("name"))
        return None


def _make_entry(
    node: BookmarkNode,
    parent_path: Sequence[str],
    in_toolbar: bool,
    *,
    is_folder: bool,
) -> Optional[BookmarkEntry]:
    date_added = parse_chrome_int(node.date_added)
    if date_added is None:
        log.warning("Skipping bookmark %r: unparsable date_added %r", node.name, node.date_added)
        return None
    return BookmarkEntry(
        title=node.name,
        url="" if is_folder else node.url,
        path=list(parent_path),
        is_folder=is_folder,
        in_toolbar=in_toolbar,
        creation_time=chrome_time_to_double(date_added),
    )
