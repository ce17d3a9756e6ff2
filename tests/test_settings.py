import json
from pathlib import Path

import pytest

from financedesk.settings import AppConfig, JsonFileStorage, MemoryStorage, Settings, SettingsStore


def test_defaults_when_storage_empty():
    store = SettingsStore(MemoryStorage())
    s = store.get()
    assert s.is_millify_number is False
    assert s.fields == {"invoice_number": True, "reference_number": True, "receipt_url": True}
    assert s.model == ""


def test_loads_stored_values_and_ignores_unknown_keys():
    storage = MemoryStorage({"is_millify_number": True, "theme": "dark", "fields": {"receipt_url": False, "x": True}})
    s = SettingsStore(storage).get()
    assert s.is_millify_number is True
    assert s.fields["receipt_url"] is False
    assert "x" not in s.fields


def test_update_persists_and_notifies():
    storage = MemoryStorage()
    store = SettingsStore(storage)
    seen = []
    unsubscribe = store.subscribe(seen.append)

    store.update(is_millify_number=True, fields={"invoice_number": False})

    assert storage.load()["is_millify_number"] is True
    assert storage.load()["fields"]["invoice_number"] is False
    assert storage.load()["fields"]["reference_number"] is True
    assert seen and seen[-1].is_millify_number is True

    unsubscribe()
    store.update(model="gemini-2.5-pro")
    assert len(seen) == 1
    assert SettingsStore(storage).get().model == "gemini-2.5-pro"


def test_get_returns_a_copy():
    store = SettingsStore(MemoryStorage())
    s = store.get()
    s.fields["invoice_number"] = False
    assert store.get().fields["invoice_number"] is True


@pytest.mark.parametrize("changes", [{"theme": "dark"}, {"fields": {"gst_number": True}}])
def test_update_rejects_unknown(changes):
    store = SettingsStore(MemoryStorage())
    with pytest.raises(ValueError):
        store.update(**changes)


def test_json_file_storage_roundtrip(tmp_path: Path):
    path = tmp_path / "cfg" / "settings.json"
    store = SettingsStore(JsonFileStorage(path))
    store.update(is_millify_number=True)

    assert json.loads(path.read_text(encoding="utf-8"))["is_millify_number"] is True
    assert SettingsStore(JsonFileStorage(path)).get().is_millify_number is True


def test_corrupt_settings_file_is_backed_up(tmp_path: Path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")

    store = SettingsStore(JsonFileStorage(path))

    assert store.get() == Settings()
    assert path.with_suffix(".bak").read_text(encoding="utf-8") == "{not json"
    assert not path.exists()


def test_app_config_from_env(monkeypatch, tmp_path: Path):
    monkeypatch.setenv("REMINDER_RECIPIENTS", " owner@example.com, ,cfo@example.com ")
    monkeypatch.setenv("SETTINGS_PATH", str(tmp_path / "s.json"))
    monkeypatch.setenv("GEMINI_MODEL", "gemini-2.5-pro")
    cfg = AppConfig.from_env()
    assert cfg.reminder_recipients == ["owner@example.com", "cfo@example.com"]
    assert cfg.settings_path == tmp_path / "s.json"
    assert cfg.gemini_model == "gemini-2.5-pro"


def test_app_config_default_model(monkeypatch):
    monkeypatch.delenv("GEMINI_MODEL", raising=False)
    assert AppConfig.from_env().gemini_model == "gemini-2.5-flash"
