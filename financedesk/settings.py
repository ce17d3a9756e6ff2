from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from appdirs import user_config_dir
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

APP_NAME = "FinanceDesk"
APP_AUTHOR = "FinanceDesk"
DEFAULT_SETTINGS_FILE = Path(user_config_dir(APP_NAME, APP_AUTHOR)) / "settings.json"

OPTIONAL_FIELDS = ("invoice_number", "reference_number", "receipt_url")
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"


@dataclass
class Settings:
    """User preferences shared by the dashboard and the handlers."""

    is_millify_number: bool = False
    # empty means the server default, AppConfig.gemini_model
    model: str = ""
    fields: Dict[str, bool] = field(default_factory=lambda: {k: True for k in OPTIONAL_FIELDS})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Settings":
        base = cls()
        if not data:
            return base
        if "is_millify_number" in data:
            base.is_millify_number = bool(data["is_millify_number"])
        if data.get("model"):
            base.model = str(data["model"])
        for k, v in (data.get("fields") or {}).items():
            if k in OPTIONAL_FIELDS:
                base.fields[k] = bool(v)
        return base


# ─────────────────────────────────────────────────────────────────────────────
# Storage ports
# ─────────────────────────────────────────────────────────────────────────────
class MemoryStorage:
    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data = json.loads(json.dumps(initial)) if initial is not None else None

    def load(self) -> Optional[Dict[str, Any]]:
        return json.loads(json.dumps(self._data)) if self._data is not None else None

    def save(self, data: Dict[str, Any]) -> None:
        self._data = json.loads(json.dumps(data))


class JsonFileStorage:
    def __init__(self, path: Path | str = DEFAULT_SETTINGS_FILE):
        self.path = Path(path)

    def load(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        try:
            return json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            # If corrupt, back up and start from defaults
            backup = self.path.with_suffix(".bak")
            logger.warning(f"Settings file {self.path} unreadable ({e}), moved to {backup}")
            self.path.replace(backup)
            return None

    def save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")


# ─────────────────────────────────────────────────────────────────────────────
# Store
# ─────────────────────────────────────────────────────────────────────────────
class SettingsStore:
    """
    Holds the current Settings, loaded from `storage` on construction and
    written back on every change. Pass it to consumers explicitly.
    """

    def __init__(self, storage):
        self._storage = storage
        self._settings = Settings.from_dict(storage.load())
        self._listeners: List[Callable[[Settings], None]] = []

    def get(self) -> Settings:
        return Settings.from_dict(self._settings.to_dict())

    def update(self, **changes: Any) -> Settings:
        data = self._settings.to_dict()
        for key, value in changes.items():
            if key == "fields":
                unknown = set(value or {}) - set(OPTIONAL_FIELDS)
                if unknown:
                    raise ValueError(f"Unknown field toggles: {sorted(unknown)}")
                data["fields"].update(value or {})
            elif key in data:
                data[key] = value
            else:
                raise ValueError(f"Unknown setting: {key}")

        self._settings = Settings.from_dict(data)
        self._storage.save(self._settings.to_dict())
        for listener in list(self._listeners):
            listener(self.get())
        return self.get()

    def subscribe(self, callback: Callable[[Settings], None]) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return unsubscribe


# ─────────────────────────────────────────────────────────────────────────────
# Environment
# ─────────────────────────────────────────────────────────────────────────────
@dataclass
class AppConfig:
    reminder_recipients: List[str]
    settings_path: Path
    gemini_model: str

    @classmethod
    def from_env(cls) -> "AppConfig":
        raw = os.getenv("REMINDER_RECIPIENTS", "")
        return cls(
            reminder_recipients=[r.strip() for r in raw.split(",") if r.strip()],
            settings_path=Path(os.getenv("SETTINGS_PATH") or DEFAULT_SETTINGS_FILE),
            gemini_model=os.getenv("GEMINI_MODEL") or DEFAULT_GEMINI_MODEL,
        )
