"""
Tests for configuration loading and environment layering.
"""

import json
import os

import pytest
from pydantic import ValidationError

from ghui.core.config import (
    GhuiConfig,
    get_cache_path,
    get_log_path,
    get_user_config_path,
    load_config,
    load_layered_env,
)
from ghui.core.config.loader import apply_env_overrides, deep_merge


@pytest.fixture
def scratch_environ(monkeypatch):
    """Let load_layered_env write to a throwaway copy of os.environ."""
    monkeypatch.setattr(os, "environ", dict(os.environ))
    return os.environ


class TestPaths:
    """Tests for XDG path helpers."""

    def test_user_config_path(self, isolated_env) -> None:
        assert get_user_config_path() == isolated_env / "config" / "ghui" / "config.json"

    def test_default_cache_path(self, isolated_env) -> None:
        assert get_cache_path() == isolated_env / "cache" / "ghui" / "cache.db"

    def test_configured_cache_path(self, tmp_path) -> None:
        config = GhuiConfig(cache={"path": str(tmp_path / "elsewhere.db")})
        assert get_cache_path(config) == tmp_path / "elsewhere.db"

    def test_log_path(self, isolated_env) -> None:
        assert get_log_path() == isolated_env / "state" / "ghui" / "ghui.log"


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults_without_file(self) -> None:
        config = load_config()

        assert config.refresh.interval_seconds == 30.0
        assert config.ui.exit_after_checkout is False
        assert config.ui.max_search_results == 500

    def test_user_file_is_merged(self) -> None:
        path = get_user_config_path()
        path.parent.mkdir(parents=True)
        path.write_text(json.dumps({"refresh": {"interval_seconds": 60}, "ui": {"editor": "nvim"}}))

        config = load_config()

        assert config.refresh.interval_seconds == 60.0
        assert config.refresh.actions_poll_seconds == 30.0
        assert config.ui.editor == "nvim"

    def test_invalid_json_falls_back_to_defaults(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{not json")

        assert load_config(path) == GhuiConfig()

    def test_env_overrides_file(self, tmp_path, monkeypatch) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"refresh": {"interval_seconds": 60}}))
        monkeypatch.setenv("GHUI_REFRESH_INTERVAL", "15")
        monkeypatch.setenv("GHUI_EXIT_AFTER_CHECKOUT", "true")

        config = load_config(path)

        assert config.refresh.interval_seconds == 15.0
        assert config.ui.exit_after_checkout is True

    def test_out_of_range_value_is_rejected(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"refresh": {"interval_seconds": 0}}))

        with pytest.raises(ValidationError):
            load_config(path)

    def test_unknown_keys_ignored(self, tmp_path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"theme": "dark"}))

        assert load_config(path) == GhuiConfig()


class TestEnvOverrides:
    """Tests for apply_env_overrides()."""

    def test_invalid_interval_ignored(self, monkeypatch) -> None:
        monkeypatch.setenv("GHUI_ACTIONS_POLL_INTERVAL", "soon")
        assert apply_env_overrides({}) == {}

    def test_too_small_interval_ignored(self, monkeypatch) -> None:
        monkeypatch.setenv("GHUI_REFRESH_INTERVAL", "0.5")
        assert apply_env_overrides({}) == {}

    def test_exit_after_checkout_false_values(self, monkeypatch) -> None:
        monkeypatch.setenv("GHUI_EXIT_AFTER_CHECKOUT", "0")
        assert apply_env_overrides({}) == {"ui": {"exit_after_checkout": False}}

    def test_does_not_mutate_input(self, monkeypatch) -> None:
        monkeypatch.setenv("GHUI_CACHE_PATH", "/tmp/x.db")
        original = {"cache": {"path": "/a.db"}}

        result = apply_env_overrides(original)

        assert result == {"cache": {"path": "/tmp/x.db"}}
        assert original == {"cache": {"path": "/a.db"}}


def test_deep_merge() -> None:
    assert deep_merge({"a": {"b": 1, "c": 2}}, {"a": {"c": 3}, "d": 4}) == {"a": {"b": 1, "c": 3}, "d": 4}


class TestLayeredEnv:
    """Tests for load_layered_env()."""

    def test_project_overrides_user_but_not_shell(self, tmp_path, scratch_environ) -> None:
        user_env = tmp_path / "user.env"
        user_env.write_text("GH_TOKEN=user\nCIRCLECI_TOKEN=user-circle\nGHUI_CACHE_PATH=/from/user\n")
        project_env = tmp_path / "project.env"
        project_env.write_text("GH_TOKEN=project\nGHUI_CACHE_PATH=/from/project\n")
        scratch_environ["GHUI_CACHE_PATH"] = "/from/shell"

        load_layered_env(user_env_paths=[user_env], project_env_paths=[project_env])

        assert scratch_environ["GH_TOKEN"] == "project"
        assert scratch_environ["CIRCLECI_TOKEN"] == "user-circle"
        assert scratch_environ["GHUI_CACHE_PATH"] == "/from/shell"

    def test_missing_files_are_ignored(self, tmp_path, scratch_environ) -> None:
        load_layered_env(project_dir=tmp_path)

        assert "GH_TOKEN" not in scratch_environ
