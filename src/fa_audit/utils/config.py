"""Configuration file support for fa-audit.

Configuration is an explicit object passed to whatever needs it. There is
no process-wide instance: callers that want to pick up edits to the file
hold a :class:`ConfigHandle` and call :meth:`ConfigHandle.reload_if_changed`.
"""

from __future__ import annotations

import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from fa_audit.utils.errors import ConfigurationError
from fa_audit.utils.logging import get_logger

logger = get_logger("config")

DEFAULT_RPC_URL = "https://rpc-mainnet.supra.com"
DEFAULT_INDEXER_URL = "https://suprascan.io/api/graphql"


class RpcConfig(BaseModel):
    """RPC endpoint configuration."""

    url: str = Field(default=DEFAULT_RPC_URL, description="Base URL of the chain RPC")
    timeout: float = Field(default=10.0, description="Per-request timeout in seconds")
    max_retries: int = Field(default=2, description="Attempts for transient failures")
    retry_delay: float = Field(default=0.5, description="Base delay for linear backoff")


class IndexerConfig(BaseModel):
    """Third-party indexer configuration."""

    enabled: bool = Field(default=True, description="Allow indexer fallback and parity")
    graphql_url: str = Field(default=DEFAULT_INDEXER_URL, description="GraphQL endpoint")
    environment: str = Field(default="mainnet", description="mainnet or testnet")
    timeout: float = Field(default=8.0, description="Per-request timeout in seconds")


class SamplerConfig(BaseModel):
    """Transaction behavior sampler configuration."""

    limit: int = Field(default=20, description="Transactions kept after merge")
    timeout: float = Field(default=8.0, description="Per-request timeout in seconds")
    prefer_v2: bool = Field(default=False, description="Try the v2 endpoint first")


class OutputConfig(BaseModel):
    """Output configuration."""

    default_format: str = Field(default="terminal", description="Default output format")
    color: bool = Field(default=True, description="Enable color output")


class FaAuditConfig(BaseModel):
    """Main configuration for fa-audit."""

    rpc: RpcConfig = Field(default_factory=RpcConfig)
    indexer: IndexerConfig = Field(default_factory=IndexerConfig)
    sampler: SamplerConfig = Field(default_factory=SamplerConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    def with_env_overrides(self) -> "FaAuditConfig":
        """Return a copy with environment variable overrides applied."""
        rpc_url = os.environ.get("FA_AUDIT_RPC_URL")
        indexer_url = os.environ.get("FA_AUDIT_INDEXER_URL")
        config = self
        if rpc_url:
            config = config.model_copy(
                update={"rpc": config.rpc.model_copy(update={"url": rpc_url})}
            )
        if indexer_url:
            config = config.model_copy(
                update={"indexer": config.indexer.model_copy(update={"graphql_url": indexer_url})}
            )
        return config


def get_config_paths() -> list[Path]:
    """Get possible configuration file paths.

    Returns:
        List of paths to check for configuration files
    """
    paths = []

    # Current directory
    paths.append(Path.cwd() / ".fa-audit.yaml")
    paths.append(Path.cwd() / ".fa-audit.yml")
    paths.append(Path.cwd() / "fa-audit.yaml")

    # Home directory
    home = Path.home()
    paths.append(home / ".fa-audit.yaml")
    paths.append(home / ".config" / "fa-audit" / "config.yaml")

    # XDG config directory
    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        paths.append(Path(xdg_config) / "fa-audit" / "config.yaml")

    return paths


def find_config_file() -> Path | None:
    """Return the first existing configuration file, if any."""
    for path in get_config_paths():
        if path.exists():
            return path
    return None


def load_config(config_path: Path | str | None = None) -> FaAuditConfig:
    """Load configuration from file.

    Args:
        config_path: Explicit path to config file. If None, searches default locations.

    Returns:
        Loaded configuration
    """
    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            return _load_config_file(path)
        raise FileNotFoundError(f"Config file not found: {config_path}")

    path = find_config_file()
    if path is not None:
        return _load_config_file(path)

    return FaAuditConfig()


def _load_config_file(path: Path) -> FaAuditConfig:
    """Load configuration from a specific file.

    Args:
        path: Path to config file

    Returns:
        Loaded configuration
    """
    try:
        data = yaml.safe_load(path.read_text())
        if data is None:
            return FaAuditConfig()
        return FaAuditConfig.model_validate(data)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config file: {e}")
    except Exception as e:
        raise ConfigurationError(f"Failed to load config file: {e}")


def save_config(config: FaAuditConfig, config_path: Path | str | None = None) -> Path:
    """Save configuration to file.

    Args:
        config: Configuration to save
        config_path: Path to save to. Defaults to ~/.config/fa-audit/config.yaml

    Returns:
        Path where config was saved
    """
    if config_path is None:
        config_path = Path.home() / ".config" / "fa-audit" / "config.yaml"
    else:
        config_path = Path(config_path)

    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json", exclude_defaults=True)
    config_path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=False))

    return config_path


def get_default_config() -> FaAuditConfig:
    """Get the default configuration.

    Returns:
        Default FaAuditConfig instance
    """
    return FaAuditConfig()


class ConfigHandle:
    """A loaded configuration together with the file it came from.

    Example:
        handle = ConfigHandle.open()
        client = SupraRpcClient.from_config(handle.config.rpc)
        ...
        if handle.reload_if_changed():
            client = SupraRpcClient.from_config(handle.config.rpc)
    """

    def __init__(self, config: FaAuditConfig, path: Path | None = None) -> None:
        """Initialize the handle.

        Args:
            config: The loaded configuration
            path: Source file, or None for defaults
        """
        self._config = config
        self._path = path
        self._mtime = self._stat(path)

    @classmethod
    def open(cls, config_path: Path | str | None = None) -> "ConfigHandle":
        """Load configuration and remember where it came from."""
        path = Path(config_path) if config_path is not None else find_config_file()
        config = load_config(path) if path is not None else FaAuditConfig()
        return cls(config, path)

    @property
    def config(self) -> FaAuditConfig:
        """The current configuration."""
        return self._config

    @property
    def path(self) -> Path | None:
        """The file the configuration was loaded from."""
        return self._path

    def reload_if_changed(self) -> bool:
        """Re-read the source file if its modification time changed.

        Returns:
            True if the configuration was reloaded
        """
        if self._path is None:
            return False

        mtime = self._stat(self._path)
        if mtime == self._mtime:
            return False

        logger.debug(f"Config file {self._path} changed, reloading")
        self._config = load_config(self._path) if mtime is not None else FaAuditConfig()
        self._mtime = mtime
        return True

    @staticmethod
    def _stat(path: Path | None) -> float | None:
        if path is None or not path.exists():
            return None
        return path.stat().st_mtime
