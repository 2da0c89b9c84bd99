"""Tests for watchlist.config_loader: config files merged with overrides."""

from __future__ import annotations

from pathlib import Path

import pytest

from watchlist._errors import ConfigError
from watchlist.config_loader import load_config


class TestLoadConfig:
    """load_config: yaml/toml discovery and merging."""

    def test_no_file_gives_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path)
        assert config.namespace == "default"
        assert config.want_initial_snapshot is True

    def test_yaml_top_level_keys(self, tmp_path: Path) -> None:
        (tmp_path / "watchlist.yaml").write_text(
            "namespace: kube-system\nallow_markers: false\nexpected_initial_count: 3\n"
        )
        config = load_config(tmp_path)
        assert config.namespace == "kube-system"
        assert config.allow_markers is False
        assert config.expected_initial_count == 3

    def test_yaml_watchlist_section(self, tmp_path: Path) -> None:
        (tmp_path / "watchlist.yml").write_text(
            "watchlist:\n  resource: deployments\n  resource_kind: Deployment\n"
        )
        config = load_config(tmp_path)
        assert config.resource == "deployments"
        assert config.resource_kind == "Deployment"

    def test_toml_section(self, tmp_path: Path) -> None:
        (tmp_path / "watchlist.toml").write_text(
            '[watchlist]\nboundary_annotation = "example.com/done"\nmax_reconnects = 2\n'
        )
        config = load_config(tmp_path)
        assert config.boundary_annotation == "example.com/done"
        assert config.max_reconnects == 2

    def test_yaml_preferred_over_toml(self, tmp_path: Path) -> None:
        (tmp_path / "watchlist.yaml").write_text("namespace: from-yaml\n")
        (tmp_path / "watchlist.toml").write_text('namespace = "from-toml"\n')
        assert load_config(tmp_path).namespace == "from-yaml"

    def test_overrides_win(self, tmp_path: Path) -> None:
        (tmp_path / "watchlist.yaml").write_text("namespace: from-file\n")
        config = load_config(tmp_path, namespace="from-cli")
        assert config.namespace == "from-cli"

    def test_none_overrides_ignored(self, tmp_path: Path) -> None:
        (tmp_path / "watchlist.yaml").write_text("allow_markers: false\n")
        config = load_config(tmp_path, allow_markers=None)
        assert config.allow_markers is False

    def test_unknown_key_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "watchlist.yaml").write_text("colour: blue\n")
        with pytest.raises(ConfigError, match="colour"):
            load_config(tmp_path)

    def test_invalid_yaml_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "watchlist.yaml").write_text("namespace: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(tmp_path)

    def test_non_mapping_yaml_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "watchlist.yaml").write_text("- just\n- a list\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(tmp_path)

    def test_invalid_toml_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "watchlist.toml").write_text("namespace = \n")
        with pytest.raises(ConfigError, match="Invalid TOML"):
            load_config(tmp_path)

    def test_invalid_values_surface_as_config_error(self, tmp_path: Path) -> None:
        (tmp_path / "watchlist.yaml").write_text("max_reconnects: -1\n")
        with pytest.raises(ConfigError):
            load_config(tmp_path)
