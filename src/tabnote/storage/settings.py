"""Persistent application settings."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tabnote.errors import InvalidOperation
from tabnote.storage.writer import read_text, write_atomic

LOGGER = logging.getLogger(__name__)

MIN_OPACITY = 0.3
MAX_OPACITY = 1.0


class AppSettings(BaseModel):
    """Flat settings record stored as JSON with PascalCase keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", validate_assignment=True)

    window_opacity: float = Field(1.0, alias="WindowOpacity")
    is_topmost: bool = Field(False, alias="IsTopmost")
    is_dark_theme: bool = Field(False, alias="IsDarkTheme")
    auto_save_interval_seconds: int = Field(30, alias="AutoSaveIntervalSeconds", gt=0)
    is_auto_save_enabled: bool = Field(True, alias="IsAutoSaveEnabled")
    font_size: float = Field(14.0, alias="FontSize", gt=0)
    font_family: str = Field("Microsoft YaHei UI", alias="FontFamily")
    window_width: float = Field(800.0, alias="WindowWidth")
    window_height: float = Field(600.0, alias="WindowHeight")
    window_left: float = Field(100.0, alias="WindowLeft")
    window_top: float = Field(100.0, alias="WindowTop")

    @field_validator("window_opacity")
    @classmethod
    def _clamp_opacity(cls, value: float) -> float:
        return min(max(value, MIN_OPACITY), MAX_OPACITY)

    @classmethod
    def from_mapping(cls, data: Dict[str, Any], *, drop_invalid: bool = False) -> "AppSettings":
        """Validate a raw mapping, matching keys without regard to case.

        With ``drop_invalid`` the fields that fail validation fall back to
        their defaults and the rest of the mapping is kept.
        """
        lookup = _field_lookup()
        normalized: Dict[str, Any] = {}
        for key, value in data.items():
            name = lookup.get(str(key).casefold())
            if name is not None:
                normalized[name] = value
        try:
            return cls(**normalized)
        except ValidationError as exc:
            if not drop_invalid:
                raise
            invalid = {
                lookup.get(str(error["loc"][0]).casefold())
                for error in exc.errors()
                if error["loc"]
            }
            LOGGER.warning(
                "Resetting invalid settings to defaults: %s",
                ", ".join(sorted(name for name in invalid if name)),
            )
            return cls(**{k: v for k, v in normalized.items() if k not in invalid})

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True), indent=2)


def _field_lookup() -> Dict[str, str]:
    lookup: Dict[str, str] = {}
    for name, info in AppSettings.model_fields.items():
        lookup[name.casefold()] = name
        if info.alias:
            lookup[info.alias.casefold()] = name
    return lookup


def resolve_field_name(key: str) -> str:
    """Map a settings key in either naming style to the attribute name."""
    name = _field_lookup().get(key.casefold())
    if name is None:
        raise InvalidOperation(f"Unknown setting: {key}")
    return name


class SettingsStore:
    """Loads, mutates and persists the settings record.

    The in-memory record is authoritative; disk failures are logged and
    otherwise ignored.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._settings = AppSettings()
        self._lock = threading.Lock()

    @property
    def settings(self) -> AppSettings:
        return self._settings

    def load(self) -> AppSettings:
        """Read the settings file, falling back to defaults on any problem."""
        if not self.path.exists():
            LOGGER.debug("No settings file at %s, using defaults", self.path)
            self._settings = AppSettings()
            return self._settings

        try:
            data = json.loads(read_text(self.path))
            if not isinstance(data, dict):
                raise ValueError("settings file does not contain a JSON object")
            self._settings = AppSettings.from_mapping(data, drop_invalid=True)
        except (OSError, ValueError, ValidationError) as exc:
            LOGGER.warning("Ignoring unreadable settings file %s: %s", self.path, exc)
            self._settings = AppSettings()
        return self._settings

    def update(self, mutator: Callable[[AppSettings], None]) -> AppSettings:
        """Apply ``mutator`` to the record and persist it immediately.

        The mutator works on a copy; the record only changes when every
        assignment validates.
        """
        candidate = self._settings.model_copy()
        try:
            mutator(candidate)
        except ValidationError as exc:
            raise InvalidOperation(f"Invalid setting value: {exc.errors()[0]['msg']}") from exc
        self._settings = candidate
        self.flush()
        return self._settings

    def set_value(self, key: str, value: Any) -> AppSettings:
        return self.set_values({key: value})

    def set_values(self, values: Dict[str, Any]) -> AppSettings:
        """Set several settings by name in one all-or-nothing update."""
        resolved = [(resolve_field_name(key), value) for key, value in values.items()]

        def apply(settings: AppSettings) -> None:
            for name, value in resolved:
                setattr(settings, name, value)

        return self.update(apply)

    def flush(self) -> bool:
        """Write the record to disk. Returns False when the write failed."""
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                write_atomic(self.path, self._settings.to_json())
            except OSError as exc:
                LOGGER.warning("Unable to persist settings to %s: %s", self.path, exc)
                return False
        return True
