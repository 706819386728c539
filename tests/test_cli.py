import json
import sqlite3
from pathlib import Path

import pytest

from chromport.cli import main


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in ("CHROMPORT_ITEMS", "CHROMPORT_LOG_LEVEL", "CHROMPORT_EXPORT_PASSWORD_VALUES"):
        monkeypatch.delenv(name, raising=False)


def _mk_profile(root: Path) -> Path:
    profile = root / "Default"
    profile.mkdir()
    conn = sqlite3.connect(profile / "History")
    conn.execute(
        "CREATE TABLE urls (id INTEGER PRIMARY KEY, url TEXT, title TEXT, visit_count INTEGER, "
        "typed_count INTEGER, last_visit_time INTEGER, hidden INTEGER)"
    )
    conn.execute("INSERT INTO urls VALUES (1, 'https://a.example/', 'A', 3, 1, 13000000000000000, 0)")
    conn.commit()
    conn.close()
    bookmarks = {
        "roots": {
            "bookmark_bar": {
                "type": "folder",
                "name": "Bookmarks bar",
                "date_added": "0",
                "children": [{"type": "url", "name": "A", "url": "https://a.example/", "date_added": "13000000000000000"}],
            }
        }
    }
    (profile / "Bookmarks").write_text(json.dumps(bookmarks), encoding="utf-8")
    return profile


def _read_jsonl(path: Path):
    return [json.loads(line) for line in path.read_text(encoding="utf-8").splitlines()]


def test_import_writes_jsonl_and_summary(tmp_path: Path):
    profile = _mk_profile(tmp_path)
    out = tmp_path / "out"

    rc = main(["import", "--profile", str(profile), "--out", str(out), "--items", "history,bookmarks", "--no-color"])
    assert rc == 0

    (history,) = _read_jsonl(out / "history.jsonl")
    assert history["url"] == "https://a.example/"
    assert history["last_visit"] == 1355526400.0
    assert history["source"] == "chrome-imported"

    (bookmark,) = _read_jsonl(out / "bookmarks.jsonl")
    assert bookmark["path"] == ["Imported from Chrome", "Bookmarks bar"]
    assert bookmark["in_toolbar"] is True

    assert not (out / "cookies.jsonl").exists()
    summary = json.loads((out / "summary.json").read_text(encoding="utf-8"))
    assert summary["items"] == ["history", "favorites"]
    assert summary["counts"] == {"bookmarks": 1, "history": 1}


def test_missing_profile_is_an_error(tmp_path: Path):
    assert main(["import", "--profile", str(tmp_path / "nope"), "--out", str(tmp_path / "out")]) == 2


def test_unknown_item_is_an_error(tmp_path: Path):
    profile = _mk_profile(tmp_path)
    assert main(["import", "--profile", str(profile), "--out", str(tmp_path / "out"), "--items", "tabs"]) == 2


def test_version_flag(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--version"])
    assert exc.value.code == 0
    assert "chromport" in capsys.readouterr().out


def test_items_from_config_file(tmp_path: Path):
    profile = _mk_profile(tmp_path)
    out = tmp_path / "out"
    cfg = tmp_path / "chromport.yaml"
    cfg.write_text("items: history\n", encoding="utf-8")

    assert main(["--config", str(cfg), "import", "--profile", str(profile), "--out", str(out), "--no-color"]) == 0
    assert (out / "history.jsonl").exists()
    assert not (out / "bookmarks.jsonl").exists()

    cfg.write_text("items: history,tabs\n", encoding="utf-8")
    assert main(["--config", str(cfg), "import", "--profile", str(profile), "--out", str(out)]) == 2
