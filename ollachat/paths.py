# ollachat/paths.py
from __future__ import annotations
import os
from pathlib import Path
from typing import Tuple

DATA_DIR_ENV = "OLLACHAT_DATA_DIR"


def default_data_dir() -> Path:
    """./data unless OLLACHAT_DATA_DIR points elsewhere."""
    return Path(os.getenv(DATA_DIR_ENV) or "data").expanduser().resolve()

def _ensure(path: Path) -> Path:
    path.mkdir(parents=True, exist_ok=True)
    return path

def log_paths(data_dir: Path) -> Tuple[Path, Path]:
    logs = _ensure(data_dir / "logs")
    return logs, logs / "app.log"

def settings_dir(data_dir: Path | None = None) -> Path:
    return _ensure(Path(data_dir or default_data_dir()).resolve() / "settings")

def app_settings_path(data_dir: Path | None = None) -> Path:
    # backend + logging
    return settings_dir(data_dir) / "app.json"

def chat_settings_path(data_dir: Path | None = None) -> Path:
    # model + sampling preferences
    return settings_dir(data_dir) / "chat.json"
