"""Unit tests for the config module."""

import os

import pytest

from fa_audit.utils.config import (
    DEFAULT_INDEXER_URL,
    DEFAULT_RPC_URL,
    ConfigHandle,
    FaAuditConfig,
    RpcConfig,
    SamplerConfig,
    get_config_paths,
    get_default_config,
    load_config,
    save_config,
)
from fa_audit.utils.errors import ConfigurationError


class TestConfigModels:
    """Tests for the configuration models."""

    def test_default_values(self):
        """Test default values."""
        config = FaAuditConfig()
        assert config.rpc.url == DEFAULT_RPC_URL
        assert config.rpc.timeout == 10.0
        assert config.rpc.max_retries == 2
        assert config.indexer.enabled is True
        assert config.indexer.graphql_url == DEFAULT_INDEXER_URL
        assert config.sampler.limit == 20
        assert config.sampler.prefer_v2 is False
        assert config.output.default_format == "terminal"

    def test_custom_values(self):
        """Test custom values."""
        config = FaAuditConfig(
            rpc=RpcConfig(url="https://rpc.test", timeout=3.0),
            sampler=SamplerConfig(limit=5, prefer_v2=True),
        )
        assert config.rpc.url == "https://rpc.test"
        assert config.rpc.timeout == 3.0
        assert config.sampler.limit == 5
        assert config.sampler.prefer_v2 is True

    def test_get_default_config(self):
        """Test the default config helper."""
        assert get_default_config() == FaAuditConfig()


class TestEnvOverrides:
    """Tests for environment variable overrides."""

    def test_overrides_applied(self, monkeypatch):
        """Test RPC and indexer URLs come from the environment."""
        monkeypatch.setenv("FA_AUDIT_RPC_URL", "https://env-rpc.test")
        monkeypatch.setenv("FA_AUDIT_INDEXER_URL", "https://env-indexer.test/graphql")

        config = FaAuditConfig().with_env_overrides()

        assert config.rpc.url == "https://env-rpc.test"
        assert config.indexer.graphql_url == "https://env-indexer.test/graphql"

    def test_no_overrides(self, monkeypatch):
        """Test the config is untouched without environment variables."""
        monkeypatch.delenv("FA_AUDIT_RPC_URL", raising=False)
        monkeypatch.delenv("FA_AUDIT_INDEXER_URL", raising=False)

        config = FaAuditConfig(rpc=RpcConfig(url="https://rpc.test"))

        assert config.with_env_overrides() == config


class TestLoadSave:
    """Tests for loading and saving config files."""

    def test_get_config_paths(self, monkeypatch, tmp_path):
        """Test the XDG directory is searched when set."""
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

        paths = get_config_paths()

        assert paths[0].name == ".fa-audit.yaml"
        assert paths[-1] == tmp_path / "fa-audit" / "config.yaml"

    def test_load_from_file(self, tmp_path):
        """Test loading a YAML file."""
        path = tmp_path / "config.yaml"
        path.write_text("rpc:\n  url: https://rpc.test\nsampler:\n  limit: 7\n")

        config = load_config(path)

        assert config.rpc.url == "https://rpc.test"
        assert config.sampler.limit == 7
        assert config.indexer.enabled is True

    def test_load_empty_file(self, tmp_path):
        """Test an empty file yields defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(path) == FaAuditConfig()

    def test_load_missing_file(self, tmp_path):
        """Test an explicit path that does not exist."""
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "missing.yaml")

    def test_load_invalid_yaml(self, tmp_path):
        """Test malformed YAML raises ConfigurationError."""
        path = tmp_path / "config.yaml"
        path.write_text("rpc: [unclosed\n")

        with pytest.raises(ConfigurationError) as exc_info:
            load_config(path)

        assert exc_info.value.code == "CONFIG_ERROR"
        assert "Invalid YAML" in exc_info.value.message

    def test_load_invalid_values(self, tmp_path):
        """Test values of the wrong type raise ConfigurationError."""
        path = tmp_path / "config.yaml"
        path.write_text("rpc:\n  timeout: soon\n")

        with pytest.raises(ConfigurationError, match="Failed to load config file"):
            load_config(path)

    def test_save_and_reload(self, tmp_path):
        """Test a saved config loads back unchanged."""
        config = FaAuditConfig(rpc=RpcConfig(url="https://rpc.test"), sampler=SamplerConfig(prefer_v2=True))
        path = save_config(config, tmp_path / "nested" / "config.yaml")

        assert path.exists()
        assert load_config(path) == config


class TestConfigHandle:
    """Tests for ConfigHandle."""

    def test_open_without_file(self, monkeypatch, tmp_path):
        """Test a handle with no file uses defaults and never reloads."""
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("HOME", str(tmp_path))
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)

        handle = ConfigHandle.open()

        assert handle.path is None
        assert handle.config == FaAuditConfig()
        assert handle.reload_if_changed() is False

    def test_reload_on_change(self, tmp_path):
        """Test edits to the file are picked up."""
        path = tmp_path / "config.yaml"
        path.write_text("sampler:\n  limit: 5\n")
        handle = ConfigHandle.open(path)
        assert handle.config.sampler.limit == 5
        assert handle.reload_if_changed() is False

        path.write_text("sampler:\n  limit: 9\n")
        stat = path.stat()
        os.utime(path, (stat.st_atime, stat.st_mtime + 10))

        assert handle.reload_if_changed() is True
        assert handle.config.sampler.limit == 9

    def test_reload_after_delete(self, tmp_path):
        """Test a deleted file falls back to defaults."""
        path = tmp_path / "config.yaml"
        path.write_text("sampler:\n  limit: 5\n")
        handle = ConfigHandle.open(path)

        path.unlink()

        assert handle.reload_if_changed() is True
        assert handle.config == FaAuditConfig()
