"""
Tests for the config loader — frida-manager.yml discovery and validation.
"""

import textwrap
from pathlib import Path

import pytest

from frida_manager.core.config.loader import (
    CONFIG_ENV_VAR,
    ConfigError,
    find_config_file,
    load_config,
)
from frida_manager.core.models.config import DEFAULT_INDEX_URL


@pytest.fixture(autouse=True)
def _no_env_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)
    monkeypatch.chdir(tmp_path)


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults_when_no_file(self):
        config = load_config()
        assert config.release_index_url == DEFAULT_INDEX_URL
        assert config.binary_name == "frida-server"
        assert config.elevation_command == "su"
        assert config.root_check == "id-u"

    def test_flat_file(self, tmp_path: Path):
        path = tmp_path / "frida-manager.yml"
        path.write_text(textwrap.dedent("""\
            data_dir: /opt/frida-data
            elevation_command: "sudo -n sh"
            release_limit: 10
            start_timeout: 3
        """))
        config = load_config(path)
        assert config.data_dir == Path("/opt/frida-data")
        assert config.elevation_command == "sudo -n sh"
        assert config.release_limit == 10
        assert config.start_timeout == 3

    def test_nested_frida_section(self, tmp_path: Path):
        path = tmp_path / "frida-manager.yml"
        path.write_text("frida:\n  root_check: uid-text\n")
        assert load_config(path).root_check == "uid-text"

    def test_relative_dirs_resolve_against_file(self, tmp_path: Path):
        conf_dir = tmp_path / "conf"
        conf_dir.mkdir()
        path = conf_dir / "frida-manager.yml"
        path.write_text("data_dir: state\ninstall_dir: ~/bin\n")

        config = load_config(path)
        assert config.data_dir == conf_dir.resolve() / "state"
        assert config.install_dir == Path("~/bin").expanduser()

    def test_empty_file_is_defaults(self, tmp_path: Path):
        path = tmp_path / "frida-manager.yml"
        path.write_text("")
        assert load_config(path).release_limit == 50

    def test_search_upward(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        (tmp_path / "frida-manager.yml").write_text("release_limit: 7\n")
        nested = tmp_path / "a" / "b"
        nested.mkdir(parents=True)
        monkeypatch.chdir(nested)

        assert find_config_file() == tmp_path / "frida-manager.yml"
        assert load_config().release_limit == 7

    def test_env_var(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        path = tmp_path / "elsewhere.yml"
        path.write_text("release_limit: 3\n")
        monkeypatch.setenv(CONFIG_ENV_VAR, str(path))
        assert load_config().release_limit == 3


class TestConfigErrors:
    """Tests for invalid configuration."""

    def test_explicit_missing_file(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.yml")

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "frida-manager.yml"
        path.write_text("data_dir: [unclosed\n")
        with pytest.raises(ConfigError, match="Invalid YAML"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "frida-manager.yml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError, match="mapping"):
            load_config(path)

    def test_invalid_value(self, tmp_path: Path):
        path = tmp_path / "frida-manager.yml"
        path.write_text("release_limit: 500\n")
        with pytest.raises(ConfigError, match="Invalid manager configuration"):
            load_config(path)

    def test_unknown_root_check(self, tmp_path: Path):
        path = tmp_path / "frida-manager.yml"
        path.write_text("root_check: whoami\n")
        with pytest.raises(ConfigError):
            load_config(path)
