"""Error handling utilities for fa-audit."""

from __future__ import annotations

import functools
import re
import time
from typing import Any, Callable, TypeVar

from fa_audit.models.common import AuditError

T = TypeVar("T")

_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{1,64}$")


class FaAuditError(Exception):
    """Base exception for fa-audit."""

    def __init__(self, message: str, code: str = "UNKNOWN_ERROR", details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_audit_error(self) -> AuditError:
        """Convert to AuditError model."""
        return AuditError(code=self.code, message=self.message, details=self.details)


class ValidationError(FaAuditError):
    """Validation failed."""

    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class ConfigurationError(FaAuditError):
    """Configuration error."""

    def __init__(self, message: str, config_key: str | None = None):
        details = {"config_key": config_key} if config_key else {}
        super().__init__(message, code="CONFIG_ERROR", details=details)


def retry(
    max_attempts: int = 3,
    delay: float = 0.5,
    exceptions: tuple[type[Exception], ...] = (Exception,),
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """Decorator to retry a function on failure.

    The wait between attempts grows linearly: ``delay``, ``2 * delay``, ...

    Args:
        max_attempts: Maximum number of attempts
        delay: Base delay between retries in seconds
        exceptions: Tuple of exceptions to catch and retry

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            last_exception: Exception | None = None

            for attempt in range(max_attempts):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    last_exception = e
                    if attempt < max_attempts - 1 and delay > 0:
                        time.sleep(delay * (attempt + 1))

            if last_exception:
                raise last_exception
            raise RuntimeError("Retry failed without exception")

        return wrapper

    return decorator


def validate_address(address: str) -> None:
    """Validate an on-chain account address.

    Args:
        address: Address to validate

    Raises:
        ValidationError: If address is invalid
    """
    if not address or not address.strip():
        raise ValidationError("Address cannot be empty", field="address")

    candidate = address.strip()
    if not candidate.lower().startswith("0x"):
        candidate = f"0x{candidate}"
    if not _ADDRESS_RE.match(candidate):
        raise ValidationError(f"Invalid address: {address}", field="address")


def validate_coin_type(coin_type: str) -> None:
    """Validate a coin type of the form ``0xADDR::module::Struct``.

    Args:
        coin_type: Coin type to validate

    Raises:
        ValidationError: If coin type is invalid
    """
    if not coin_type:
        raise ValidationError("Coin type cannot be empty", field="coin_type")

    parts = coin_type.split("::")
    if len(parts) != 3 or not all(parts):
        raise ValidationError(
            f"Coin type must look like 0xADDR::module::Struct: {coin_type}",
            field="coin_type",
        )
    validate_address(parts[0])

