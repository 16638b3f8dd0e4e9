# ollachat/core/settings.py
from __future__ import annotations
import json, logging
from pathlib import Path
from typing import Any

log = logging.getLogger("settings")


class Settings:
    """Flat key/value JSON store; every set() is written straight back to disk."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.data: dict = {}
        self.load()

    def load(self):
        if not self.path.exists():
            self.data = {}
            return
        try:
            loaded = json.loads(self.path.read_text("utf-8"))
        except ValueError as e:
            log.warning("Ignoring unreadable settings file %s (%s)", self.path, e)
            loaded = {}
        self.data = loaded if isinstance(loaded, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any):
        if key in self.data and self.data[key] == value:
            return
        self.data[key] = value
        self.save()

    def save(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        tmp.write_text(json.dumps(self.data, indent=2), encoding="utf-8")
        tmp.replace(self.path)
