"""Utility functions for fa-audit."""

from fa_audit.utils.hashing import (
    compute_hash,
    overall_hash_from_map,
    short_hash,
    stable_json,
    surface_hash_from_fn_names,
)
from fa_audit.utils.logging import configure_logging, get_logger, get_logger_with_context
from fa_audit.utils.errors import (
    FaAuditError,
    ValidationError,
    ConfigurationError,
    retry,
    validate_address,
    validate_coin_type,
)
from fa_audit.utils.config import (
    FaAuditConfig,
    ConfigHandle,
    RpcConfig,
    IndexerConfig,
    SamplerConfig,
    OutputConfig,
    load_config,
    save_config,
    get_default_config,
)

__all__ = [
    # Hashing
    "compute_hash",
    "overall_hash_from_map",
    "short_hash",
    "stable_json",
    "surface_hash_from_fn_names",
    # Logging
    "configure_logging",
    "get_logger",
    "get_logger_with_context",
    # Errors
    "FaAuditError",
    "ValidationError",
    "ConfigurationError",
    "retry",
    "validate_address",
    "validate_coin_type",
    # Config
    "FaAuditConfig",
    "ConfigHandle",
    "RpcConfig",
    "IndexerConfig",
    "SamplerConfig",
    "OutputConfig",
    "load_config",
    "save_config",
    "get_default_config",
]
