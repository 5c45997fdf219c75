"""Tests for hierarchical YAML config discovery and loading."""

import pytest
import yaml

from trail_sync.config_loader import (
    CONFIG_ENV_VAR,
    ensure_config,
    discover_config_files,
    interpolate_env_vars,
    load_hierarchical_config,
    load_yaml_file,
)


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """CWD and HOME inside tmp_path, no explicit config path."""
    home = tmp_path / "home"
    home.mkdir()
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.chdir(work)
    return work, home


class TestInterpolateEnvVars:
    def test_replaces_set_var(self, monkeypatch):
        monkeypatch.setenv("REMOTE_HOST", "remote.example.org")
        assert interpolate_env_vars("https://${REMOTE_HOST}") == "https://remote.example.org"

    def test_default_when_unset(self, monkeypatch):
        monkeypatch.delenv("UNSET_TRAIL_VAR", raising=False)
        assert interpolate_env_vars("${UNSET_TRAIL_VAR:-offline}") == "offline"

    def test_empty_var_uses_default(self, monkeypatch):
        monkeypatch.setenv("EMPTY_TRAIL_VAR", "")
        assert interpolate_env_vars("${EMPTY_TRAIL_VAR:-x}") == "x"

    def test_unset_without_default(self, monkeypatch):
        monkeypatch.delenv("UNSET_TRAIL_VAR", raising=False)
        assert interpolate_env_vars("key=${UNSET_TRAIL_VAR}") == "key="


class TestIncludeDirective:
    def test_include_relative_file(self, tmp_path):
        (tmp_path / "remote.yml").write_text("url: https://remote.example.org\n")
        main = tmp_path / "config.yml"
        main.write_text("remote: !include remote.yml\n")
        assert load_yaml_file(main) == {"remote": {"url": "https://remote.example.org"}}

    def test_circular_include_raises(self, tmp_path):
        (tmp_path / "a.yml").write_text("b: !include b.yml\n")
        (tmp_path / "b.yml").write_text("a: !include a.yml\n")
        with pytest.raises(ValueError, match="Circular include"):
            load_yaml_file(tmp_path / "a.yml")

    def test_missing_include(self, tmp_path):
        main = tmp_path / "config.yml"
        main.write_text("remote: !include nowhere.yml\n")
        with pytest.raises(FileNotFoundError, match="Include file not found"):
            load_yaml_file(main)

    def test_global_safe_loader_not_polluted(self, tmp_path):
        with pytest.raises(yaml.constructor.ConstructorError):
            yaml.safe_load("x: !include other.yml")

    def test_invalid_yaml(self, tmp_path):
        bad = tmp_path / "bad.yml"
        bad.write_text("remote: [unclosed\n")
        with pytest.raises(ValueError, match="Invalid YAML"):
            load_yaml_file(bad)


class TestDiscovery:
    def test_none_found(self, isolated):
        assert discover_config_files() == []
        assert load_hierarchical_config() == {}

    def test_project_before_global(self, isolated):
        work, home = isolated
        project = work / ".trail_sync" / "config.yml"
        project.parent.mkdir()
        project.write_text("sync:\n  enabled: false\n")
        user = home / ".config" / "trail_sync" / "config.yml"
        user.parent.mkdir(parents=True)
        user.write_text("sync:\n  enabled: true\nstore:\n  db_path: /home.db\n")

        assert discover_config_files() == [project, user]
        merged = load_hierarchical_config()
        assert merged["sync"] == {"enabled": False}
        assert merged["store"] == {"db_path": "/home.db"}

    def test_env_var_first(self, isolated, tmp_path, monkeypatch):
        custom = tmp_path / "custom.yml"
        custom.write_text("logging:\n  level: DEBUG\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(custom))
        assert discover_config_files()[0] == custom.resolve()

    def test_interpolation_after_merge(self, isolated, monkeypatch):
        work, _ = isolated
        monkeypatch.setenv("TRAIL_KEY_FOR_TEST", "s3cret")
        project = work / ".trail_sync" / "config.yml"
        project.parent.mkdir()
        project.write_text("remote:\n  key: ${TRAIL_KEY_FOR_TEST}\n")
        assert load_hierarchical_config()["remote"]["key"] == "s3cret"

    def test_non_dict_root_skipped(self, isolated):
        work, _ = isolated
        project = work / ".trail_sync" / "config.yml"
        project.parent.mkdir()
        project.write_text("- just\n- a list\n")
        assert load_hierarchical_config() == {}


class TestEnsureConfig:
    def test_creates_starter(self, isolated):
        work, _ = isolated
        path = ensure_config()
        assert path == work / ".trail_sync" / "config.yml"
        assert "trail-sync configuration" in path.read_text()
        # Starter is all comments
        assert load_yaml_file(path) is None

    def test_returns_existing(self, isolated):
        work, _ = isolated
        project = work / ".trail_sync" / "config.yml"
        project.parent.mkdir()
        project.write_text("sync: {}\n")
        assert ensure_config() == project
