from pathlib import Path

import pytest

from chromport.config import Settings, load_settings, parse_items
from chromport.model import ImportItem

_ENV = (
    "CHROMPORT_ITEMS",
    "CHROMPORT_PASSWORD_STORE",
    "CHROMPORT_USE_LIBSECRET",
    "CHROMPORT_KWALLET_TIMEOUT_S",
    "CHROMPORT_EXPORT_PASSWORD_VALUES",
    "CHROMPORT_LOG_LEVEL",
    "CHROMPORT_NO_COLOR",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in _ENV:
        monkeypatch.delenv(name, raising=False)


def test_defaults_import_everything():
    s = Settings.from_env()
    assert s.import_items() == ImportItem.ALL
    assert s.password_store == "auto"
    assert s.use_libsecret is True
    assert s.export_password_values is False


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("CHROMPORT_ITEMS", "cookies")
    monkeypatch.setenv("CHROMPORT_PASSWORD_STORE", "kwallet5")
    monkeypatch.setenv("CHROMPORT_USE_LIBSECRET", "no")
    monkeypatch.setenv("CHROMPORT_KWALLET_TIMEOUT_S", "not-a-number")
    s = Settings.from_env()
    assert s.import_items() == ImportItem.COOKIES
    assert s.password_store == "kwallet5"
    assert s.use_libsecret is False
    assert s.kwallet_timeout_s == 5


def test_yaml_file_overrides_env(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("CHROMPORT_LOG_LEVEL", "DEBUG")
    monkeypatch.setenv("CHROMPORT_ITEMS", "history")
    cfg = tmp_path / "chromport.yaml"
    cfg.write_text("items: bookmarks,passwords\nkwallet_timeout_s: 9\nunknown_key: 1\n", encoding="utf-8")

    s = load_settings(str(cfg))
    assert s.import_items() == ImportItem.FAVORITES | ImportItem.PASSWORDS
    assert s.kwallet_timeout_s == 9
    assert s.log_level == "DEBUG"
    assert not hasattr(s, "unknown_key")


def test_empty_yaml_file(tmp_path: Path):
    cfg = tmp_path / "empty.yaml"
    cfg.write_text("", encoding="utf-8")
    assert load_settings(str(cfg)) == Settings()


@pytest.mark.parametrize(
    "value,expected",
    [
        ("", ImportItem.NONE),
        ("all", ImportItem.ALL),
        ("History, COOKIES", ImportItem.HISTORY | ImportItem.COOKIES),
        ("favorites,bookmarks,", ImportItem.FAVORITES),
    ],
)
def test_parse_items(value, expected):
    assert parse_items(value) == expected


def test_parse_items_rejects_unknown_names():
    with pytest.raises(ValueError, match="autofill"):
        parse_items("history,autofill")
