"""Unit tests for conversation_loom.config."""
from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from conversation_loom.config import DeletePolicy, GraphConfig, LayoutConfig, load_config


class TestLayoutConfig:
    def test_defaults(self) -> None:
        config = LayoutConfig()
        assert config.level_spacing_x == 560
        assert config.level_spacing_y == 400
        assert config.merge_offset_x == 300
        assert config.jitter == 20

    def test_jitter_must_stay_below_half_spacing(self) -> None:
        with pytest.raises(ValidationError, match="jitter"):
            LayoutConfig(level_spacing_x=100, jitter=50)

    def test_spacing_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            LayoutConfig(level_spacing_y=0)


class TestGraphConfig:
    def test_defaults(self) -> None:
        config = GraphConfig()
        assert config.history_capacity == 50
        assert config.max_merge_sources == 5
        assert config.merge_warning_threshold == 3
        assert config.delete_policy is DeletePolicy.CASCADE
        assert config.layout_seed is None

    def test_merge_limit_can_be_disabled(self) -> None:
        assert GraphConfig(max_merge_sources=None).max_merge_sources is None

    def test_merge_limit_lower_bound(self) -> None:
        with pytest.raises(ValidationError):
            GraphConfig(max_merge_sources=1)


class TestLoadConfig:
    def test_reads_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "loom.yaml"
        path.write_text(
            "history_capacity: 10\n"
            "delete_policy: block\n"
            "layout_seed: 7\n"
            "layout:\n"
            "  level_spacing_x: 600\n",
            encoding="utf-8",
        )
        config = load_config(path)
        assert config.history_capacity == 10
        assert config.delete_policy is DeletePolicy.BLOCK
        assert config.layout_seed == 7
        assert config.layout.level_spacing_x == 600
        assert config.layout.level_spacing_y == 400

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == GraphConfig()

    def test_non_mapping_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)

    def test_invalid_value_rejected(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("history_capacity: 0\n", encoding="utf-8")
        with pytest.raises(ValidationError):
            load_config(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "absent.yaml")
