from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Protocol


log = logging.getLogger(__name__)

PREFERENCES_FILE_NAME = "preferences.json"


@dataclass(frozen=True)
class LauncherPreferences:
    username: str = "Player"
    version: str | None = None
    ram_allocation: int = 2048
    window_width: int = 800
    window_height: int = 700
    theme: str = "default"
    show_beta_alpha: bool = False


_KNOWN_KEYS = {f.name for f in fields(LauncherPreferences)}


class PreferencesStore(Protocol):
    def get(self, key: str) -> Any: ...

    def set(self, **values: Any) -> None: ...


class JsonPreferencesStore:
    def __init__(self, state_dir: Path):
        self.path = state_dir / PREFERENCES_FILE_NAME

    def load(self) -> LauncherPreferences:
        if not self.path.exists():
            return LauncherPreferences()
        try:
            with self.path.open("r", encoding="utf-8-sig") as fh:
                raw: dict[str, Any] = json.load(fh)
        except (OSError, ValueError) as exc:
            log.error("Error reading preferences %s: %s", self.path, exc)
            return LauncherPreferences()
        if not isinstance(raw, dict):
            return LauncherPreferences()
        known = {k: v for k, v in raw.items() if k in _KNOWN_KEYS}
        return replace(LauncherPreferences(), **known)

    def save(self, prefs: LauncherPreferences) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(asdict(prefs), fh, indent=2, sort_keys=True)
        tmp.replace(self.path)

    def get(self, key: str) -> Any:
        if key not in _KNOWN_KEYS:
            raise KeyError(key)
        return getattr(self.load(), key)

    def set(self, **values: Any) -> None:
        unknown = sorted(set(values) - _KNOWN_KEYS)
        if unknown:
            raise KeyError(f"Unknown preference keys: {unknown}")
        self.save(replace(self.load(), **values))
