"""Tests for pidash.config."""

from __future__ import annotations

import tomllib
from pathlib import Path
from unittest.mock import patch

import pytest

from pidash.config import (
    DEFAULT_CONFIG,
    _deep_merge,
    dump_default_config,
    load_config,
    validate_config,
)


class TestLoadConfigDefaults:
    def test_defaults_returned_when_no_file(self, tmp_path: Path) -> None:
        with patch("pidash.config._DEFAULT_PATH", tmp_path / "missing.toml"):
            cfg = load_config(None)
        assert cfg["interval_ms"] == 1000
        assert cfg["log_lines"] == 10
        assert cfg["history"] == {"width": 42, "height": 4}
        assert "vc_sm" in cfg["dma_categories"]

    def test_all_default_keys_present(self, tmp_path: Path) -> None:
        with patch("pidash.config._DEFAULT_PATH", tmp_path / "missing.toml"):
            cfg = load_config(None)
        assert set(cfg.keys()) == set(DEFAULT_CONFIG.keys())

    def test_default_location_used(self, tmp_path: Path) -> None:
        default = tmp_path / "config.toml"
        default.write_text("log_lines = 25\n")
        with patch("pidash.config._DEFAULT_PATH", default):
            cfg = load_config(None)
        assert cfg["log_lines"] == 25

    def test_invalid_default_location_ignored(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        default = tmp_path / "config.toml"
        default.write_text("log_lines = [\n")
        with patch("pidash.config._DEFAULT_PATH", default):
            cfg = load_config(None)
        assert cfg["log_lines"] == 10
        assert "ignoring invalid TOML" in capsys.readouterr().err


class TestTomlOverlay:
    def test_overrides_history_size(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "config.toml"
        toml_file.write_text("[history]\nheight = 6\n")
        cfg = load_config(toml_file)
        assert cfg["history"]["height"] == 6
        # Width keeps its default
        assert cfg["history"]["width"] == 42

    def test_adds_dma_category(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "config.toml"
        toml_file.write_text('[dma_categories]\nhevc = "Decoder"\n')
        cfg = load_config(toml_file)
        assert cfg["dma_categories"]["hevc"] == "Decoder"
        assert cfg["dma_categories"]["rpicam"] == "Camera App"

    def test_overrides_scalar(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "config.toml"
        toml_file.write_text('log_unit = "camera.service"\ninterval_ms = 250\n')
        cfg = load_config(toml_file)
        assert cfg["log_unit"] == "camera.service"
        assert cfg["interval_ms"] == 250

    def test_list_replaced_not_merged(self, tmp_path: Path) -> None:
        toml_file = tmp_path / "config.toml"
        toml_file.write_text('interfaces = ["usb0"]\n')
        cfg = load_config(toml_file)
        assert cfg["interfaces"] == ["usb0"]


class TestExplicitPath:
    def test_missing_explicit_path_errors(self, tmp_path: Path) -> None:
        missing = tmp_path / "nonexistent.toml"
        with pytest.raises(SystemExit):
            load_config(missing)

    def test_invalid_toml_errors(self, tmp_path: Path) -> None:
        bad_file = tmp_path / "bad.toml"
        bad_file.write_text("this is [not valid toml\n")
        with pytest.raises(SystemExit):
            load_config(bad_file)


class TestValidateConfig:
    def test_defaults_accepted(self) -> None:
        validate_config(DEFAULT_CONFIG)

    @pytest.mark.parametrize(
        "history",
        [
            {"width": 42, "height": 0},
            {"width": 0, "height": 4},
            {"width": 42, "height": -2},
            {"width": 42, "height": "4"},
            {"width": True, "height": 4},
        ],
    )
    def test_bad_history_exits(
        self, history: dict[str, object], capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as exc:
            validate_config({**DEFAULT_CONFIG, "history": history})
        assert exc.value.code == 1
        assert "pidash: invalid [history]" in capsys.readouterr().err

    def test_history_not_a_table(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            validate_config({**DEFAULT_CONFIG, "history": 4})
        assert "pidash: invalid [history]" in capsys.readouterr().err

    def test_zero_height_from_file_exits(self, tmp_path: Path) -> None:
        f = tmp_path / "config.toml"
        f.write_text("[history]\nheight = 0\n")
        with pytest.raises(SystemExit):
            validate_config(load_config(f))


class TestDumpDefaultConfig:
    def test_is_valid_toml(self) -> None:
        parsed = tomllib.loads(dump_default_config())
        assert "interval_ms" in parsed
        assert "history" in parsed
        assert "dma_categories" in parsed

    def test_matches_defaults(self) -> None:
        parsed = tomllib.loads(dump_default_config())
        assert parsed == DEFAULT_CONFIG


class TestDeepMerge:
    def test_scalar_overwrite(self) -> None:
        result = _deep_merge({"a": 1, "b": 2}, {"a": 10})
        assert result == {"a": 10, "b": 2}

    def test_nested_dict_merge(self) -> None:
        base = {"x": {"a": 1, "b": 2}}
        overlay = {"x": {"b": 3, "c": 4}}
        result = _deep_merge(base, overlay)
        assert result["x"] == {"a": 1, "b": 3, "c": 4}

    def test_new_key_added(self) -> None:
        result = _deep_merge({"a": 1}, {"b": 2})
        assert result == {"a": 1, "b": 2}
