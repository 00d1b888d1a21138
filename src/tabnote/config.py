"""Application configuration defaults."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

APP_NAME = "tabnote"
SETTINGS_FILE_NAME = "settings.json"
AUTOSAVE_DIR_NAME = "autosave"


def _get_default_data_dir() -> Path:
    """Get the per-user data directory based on platform."""
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA", os.path.expanduser("~"))
        return Path(appdata) / APP_NAME
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / APP_NAME
    return Path.home() / ".local" / "share" / APP_NAME


@dataclass(slots=True)
class AppConfig:
    data_dir: Path | None = None
    settings_path: Path | None = None
    autosave_dir: Path | None = None
    snapshot_retention_days: int = 7

    def __post_init__(self) -> None:
        if self.data_dir is None:
            self.data_dir = _get_default_data_dir()
        self.data_dir = Path(self.data_dir)
        if self.settings_path is None:
            self.settings_path = self.data_dir / SETTINGS_FILE_NAME
        if self.autosave_dir is None:
            self.autosave_dir = self.data_dir / AUTOSAVE_DIR_NAME

    def ensure_dirs(self) -> None:
        """Create the directories the session writes into."""
        Path(self.settings_path).parent.mkdir(parents=True, exist_ok=True)
        Path(self.autosave_dir).mkdir(parents=True, exist_ok=True)
