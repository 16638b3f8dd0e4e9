# ollachat/settings.py
from __future__ import annotations
import copy, json, logging
from pathlib import Path
from typing import Any, Dict
from .constants import DEFAULT_LOG_MAX_BYTES, DEFAULT_LOG_BACKUP_COUNT, DEFAULT_OLLAMA, DEFAULT_TIMEOUT

SCHEMA_VERSION = 1

DEFAULT_SETTINGS: Dict[str, Any] = {
    "schema": SCHEMA_VERSION,
    "logging": {
        "level": "INFO",
        "max_bytes": DEFAULT_LOG_MAX_BYTES,
        "backup_count": DEFAULT_LOG_BACKUP_COUNT,
    },
    "backend": {
        "base_url": DEFAULT_OLLAMA,
        "timeout": DEFAULT_TIMEOUT,
    },
}


def _fill_missing(target: dict, defaults: dict) -> dict:
    """Copy in any default key the file lacks, section by section. Existing values win."""
    for key, value in defaults.items():
        if key not in target:
            target[key] = copy.deepcopy(value)
        elif isinstance(value, dict) and isinstance(target[key], dict):
            _fill_missing(target[key], value)
    return target

def load_settings(path: Path) -> dict:
    """App-level config (logging, backend). Written out with defaults on first run."""
    if not path.exists():
        save_settings(path, DEFAULT_SETTINGS)
        return copy.deepcopy(DEFAULT_SETTINGS)
    with path.open("r", encoding="utf-8") as f:
        cfg = json.load(f)
    return _fill_missing(cfg, DEFAULT_SETTINGS)

def save_settings(path: Path, data: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, sort_keys=True)
    tmp.replace(path)

def update_section(path: Path, cfg: dict, section: str, **values) -> dict:
    """Return cfg with values merged into one section; saves only if something changed."""
    current = dict(cfg.get(section, {}))
    if all(current.get(k) == v for k, v in values.items()):
        return cfg
    current.update(values)
    updated = {**cfg, section: current}
    save_settings(path, updated)
    logging.getLogger("settings").info("Saved %s: %s", section, ", ".join(sorted(values)))
    return updated

def set_backend_url(path: Path, cfg: dict, base_url: str) -> dict:
    return update_section(path, cfg, "backend", base_url=base_url.rstrip("/"))
