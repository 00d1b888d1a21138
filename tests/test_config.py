"""Tests for application configuration."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

from tabnote.config import AppConfig, _get_default_data_dir


class TestAppConfig:
    """Test AppConfig dataclass."""

    def test_default_config(self) -> None:
        """Should derive every path from the default data directory."""
        config = AppConfig()

        assert config.data_dir == _get_default_data_dir()
        assert config.settings_path == config.data_dir / "settings.json"
        assert config.autosave_dir == config.data_dir / "autosave"
        assert config.snapshot_retention_days == 7

    def test_custom_data_dir(self, tmp_path: Path) -> None:
        config = AppConfig(data_dir=tmp_path)

        assert config.settings_path == tmp_path / "settings.json"
        assert config.autosave_dir == tmp_path / "autosave"

    def test_explicit_paths_win(self, tmp_path: Path) -> None:
        config = AppConfig(
            data_dir=tmp_path,
            settings_path=tmp_path / "other.json",
            autosave_dir=tmp_path / "snaps",
            snapshot_retention_days=3,
        )

        assert config.settings_path == tmp_path / "other.json"
        assert config.autosave_dir == tmp_path / "snaps"
        assert config.snapshot_retention_days == 3

    def test_string_data_dir(self, tmp_path: Path) -> None:
        config = AppConfig(data_dir=str(tmp_path))  # type: ignore[arg-type]
        assert config.data_dir == tmp_path

    def test_ensure_dirs(self, tmp_path: Path) -> None:
        config = AppConfig(data_dir=tmp_path / "data")

        config.ensure_dirs()

        assert (tmp_path / "data").is_dir()
        assert (tmp_path / "data" / "autosave").is_dir()


class TestDefaultDataDir:
    def test_linux(self) -> None:
        with patch("tabnote.config.sys.platform", "linux"):
            assert _get_default_data_dir() == Path.home() / ".local" / "share" / "tabnote"

    def test_macos(self) -> None:
        with patch("tabnote.config.sys.platform", "darwin"):
            expected = Path.home() / "Library" / "Application Support" / "tabnote"
            assert _get_default_data_dir() == expected

    def test_windows(self, tmp_path: Path) -> None:
        with patch("tabnote.config.sys.platform", "win32"), patch.dict(
            "os.environ", {"APPDATA": str(tmp_path)}
        ):
            assert _get_default_data_dir() == tmp_path / "tabnote"
