import base64
import io
import sqlite3
from pathlib import Path

from PIL import Image

from chromport.favicons import import_favicons, reencode_favicon


def _png(size=(32, 32), color=(200, 30, 30, 255)) -> bytes:
    out = io.BytesIO()
    Image.new("RGBA", size, color).save(out, format="PNG")
    return out.getvalue()


def _mk_favicons(profile: Path, icons, mappings) -> None:
    profile.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(profile / "Favicons")
    try:
        conn.execute("CREATE TABLE favicons (id INTEGER PRIMARY KEY, url LONGVARCHAR NOT NULL, icon_type INTEGER DEFAULT 1)")
        conn.execute("CREATE TABLE icon_mapping (id INTEGER PRIMARY KEY, page_url LONGVARCHAR NOT NULL, icon_id INTEGER)")
        conn.executemany("INSERT INTO favicons (id, url) VALUES (?, ?)", icons)
        conn.executemany("INSERT INTO icon_mapping (page_url, icon_id) VALUES (?, ?)", mappings)
        conn.commit()
    finally:
        conn.close()


def _stub(data: bytes) -> bytes:
    return b"PNG:" + data[:10]


def test_remote_and_data_icons(tmp_path: Path, bridge, token):
    profile = tmp_path / "Default"
    _mk_favicons(
        profile,
        [
            (1, "https://example.com/favicon.ico"),
            (2, "data:image/png;base64,AAAA"),
        ],
        [
            ("https://example.com/", 1),
            ("https://example.com/about", 1),
            ("https://inline.example/", 2),
        ],
    )

    assert import_favicons(profile, bridge, token, reencode=_stub) == 2
    name, records = bridge.calls[0]
    assert name == "set_favicons"

    remote, inline = records
    assert remote.urls == {"https://example.com/", "https://example.com/about"}
    assert remote.favicon_url == "https://example.com/favicon.ico"
    assert remote.png_data is None

    assert inline.urls == {"https://inline.example/"}
    assert inline.favicon_url is None
    assert inline.png_data == b"PNG:" + b"data:image"


def test_invalid_icon_urls_are_skipped(tmp_path: Path, bridge, token):
    profile = tmp_path / "Default"
    _mk_favicons(
        profile,
        [(1, "not a url"), (2, "http://"), (3, "https://ok.example/i.png")],
        [("https://a.example/", 1), ("https://b.example/", 2), ("https://c.example/", 3)],
    )

    import_favicons(profile, bridge, token, reencode=_stub)
    (_, records), = bridge.calls
    assert [r.favicon_url for r in records] == ["https://ok.example/i.png"]


def test_undecodable_data_icon_is_skipped(tmp_path: Path, bridge, token):
    profile = tmp_path / "Default"
    _mk_favicons(
        profile,
        [(1, "data:image/png;base64,AAAA")],
        [("https://a.example/", 1)],
    )
    assert import_favicons(profile, bridge, token, reencode=lambda _data: None) == 0
    assert bridge.calls == []


def test_mapping_to_missing_icon_row_is_ignored(tmp_path: Path, bridge, token):
    profile = tmp_path / "Default"
    _mk_favicons(profile, [(1, "https://ok.example/i.png")], [("https://a.example/", 1), ("https://b.example/", 9)])
    import_favicons(profile, bridge, token, reencode=_stub)
    (_, records), = bridge.calls
    assert len(records) == 1
    assert records[0].urls == {"https://a.example/"}


def test_missing_or_broken_store(tmp_path: Path, bridge, token):
    profile = tmp_path / "Default"
    profile.mkdir()
    assert import_favicons(profile, bridge, token) == 0

    (profile / "Favicons").write_bytes(b"garbage" * 50)
    assert import_favicons(profile, bridge, token) == 0
    assert bridge.calls == []


def test_cancelled_before_mapping_delivers_nothing(tmp_path: Path, bridge, token):
    profile = tmp_path / "Default"
    _mk_favicons(profile, [(1, "https://ok.example/i.png")], [("https://a.example/", 1)])
    token.cancel()
    assert import_favicons(profile, bridge, token, reencode=_stub) == 0
    assert bridge.calls == []


def test_reencode_favicon_from_data_url_produces_16px_png():
    url = b"data:image/png;base64," + base64.b64encode(_png((32, 32)))
    out = reencode_favicon(url)
    assert out is not None
    with Image.open(io.BytesIO(out)) as img:
        assert img.format == "PNG"
        assert img.size == (16, 16)


def test_reencode_favicon_raw_bytes_and_garbage():
    out = reencode_favicon(_png((16, 16)))
    assert out is not None
    with Image.open(io.BytesIO(out)) as img:
        assert img.size == (16, 16)

    assert reencode_favicon(b"definitely not an image") is None
    assert reencode_favicon(b"data:image/png;base64") is None
    assert reencode_favicon(b"data:image/png;base64,!!!!") is None
