"""Supra RPC client implementation."""

from __future__ import annotations

from typing import Any

import httpx

from fa_audit.models.pins import ModuleArtifact
from fa_audit.rpc.base import (
    ModuleListing,
    RawResponse,
    RpcError,
    RpcNotFoundError,
    RpcTransientError,
)
from fa_audit.utils.config import RpcConfig
from fa_audit.utils.errors import retry
from fa_audit.utils.logging import get_logger

logger = get_logger("rpc.supra")


def _module_list_items(body: Any) -> list[Any]:
    """Unwrap the module-list envelopes seen across RPC deployments."""
    if isinstance(body, list):
        return body
    if not isinstance(body, dict):
        return []

    wrapped = body.get("Modules")
    if isinstance(wrapped, dict):
        inner = wrapped.get("Modules")
        if isinstance(inner, dict) and isinstance(inner.get("modules"), list):
            return inner["modules"]
        if isinstance(wrapped.get("modules"), list):
            return wrapped["modules"]

    for key in ("modules", "data"):
        value = body.get(key)
        if isinstance(value, list):
            return value
        if isinstance(value, dict) and isinstance(value.get("modules"), list):
            return value["modules"]
    return []


def _module_name(item: Any) -> str | None:
    """Extract a module name from one list item, if the item carries one."""
    if isinstance(item, str):
        return item.split("::")[-1] or None
    if isinstance(item, (list, tuple)) and item:
        # [ "0xADDR::name", {address, name} ]
        if len(item) > 1 and isinstance(item[1], dict) and item[1].get("name"):
            return str(item[1]["name"])
        if isinstance(item[0], str) and "::" in item[0]:
            return item[0].split("::")[-1] or None
        return None
    if isinstance(item, dict):
        if item.get("name"):
            return str(item["name"])
        abi = item.get("abi")
        if isinstance(abi, dict) and abi.get("name"):
            return str(abi["name"])
        module_id = item.get("module_id")
        if isinstance(module_id, str) and "::" in module_id:
            return module_id.split("::")[-1] or None
    return None


def _unwrap_module(body: Any) -> dict[str, Any]:
    if not isinstance(body, dict):
        return {}
    for key in ("module", "data"):
        if isinstance(body.get(key), dict):
            return body[key]
    return body


def extract_bytecode(module: dict[str, Any]) -> str | None:
    """Bytecode hex from a module detail, if present."""
    for key in ("bytecode", "code"):
        value = module.get(key)
        if isinstance(value, str) and value:
            return value
        if isinstance(value, dict) and isinstance(value.get("bytecode"), str):
            return value["bytecode"]
    return None


def extract_abi(module: dict[str, Any]) -> dict[str, Any] | None:
    """ABI object from a module detail, if present."""
    for key in ("abi", "move_abi"):
        if isinstance(module.get(key), dict):
            return module[key]
    if "exposed_functions" in module or "entry_functions" in module:
        return {
            "exposed_functions": module.get("exposed_functions", []),
            "entry_functions": module.get("entry_functions", []),
        }
    return None


class SupraRpcClient:
    """Client for the Supra MoveVM REST API.

    Covers module listing and detail (v3 and v1), account resources and
    account transactions (v3 and v2). Transient failures are retried with
    linear backoff; a 404 is never retried.

    Example:
        client = SupraRpcClient("https://rpc-mainnet.supra.com")
        listing = client.list_modules("0x1")
        artifact = client.fetch_module("0x1", "coin")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        max_retries: int = 2,
        retry_delay: float = 0.5,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the RPC client.

        Args:
            base_url: Base URL of the RPC endpoint
            timeout: Request timeout in seconds
            max_retries: Maximum attempts for transient failures
            retry_delay: Base delay between attempts
            transport: Optional httpx transport (used by tests)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay
        self._transport = transport

    @classmethod
    def from_config(cls, config: RpcConfig, transport: httpx.BaseTransport | None = None) -> "SupraRpcClient":
        """Create a client from RPC configuration."""
        return cls(
            config.url,
            timeout=config.timeout,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    def _get_client(self, timeout: float | None = None) -> httpx.Client:
        """Create an HTTP client."""
        transport = self._transport or httpx.HTTPTransport(retries=1)
        return httpx.Client(
            timeout=timeout or self._timeout,
            transport=transport,
            follow_redirects=True,
        )

    def _send(self, path: str, params: dict[str, Any] | None, timeout: float | None) -> RawResponse:
        url = f"{self._base_url}{path}"
        try:
            with self._get_client(timeout) as client:
                response = client.get(url, params=params)
        except httpx.TimeoutException as e:
            raise RpcTransientError(f"Timeout fetching {url}: {e}", url=url)
        except httpx.HTTPError as e:
            raise RpcTransientError(f"Request to {url} failed: {e}", url=url)

        if response.status_code == 404:
            return RawResponse(status_code=404, body=None)
        if response.status_code < 200 or response.status_code >= 300:
            raise RpcTransientError(
                f"{url} returned HTTP {response.status_code}",
                url=url,
                status_code=response.status_code,
            )

        try:
            body = response.json()
        except ValueError:
            raise RpcError(f"Invalid JSON from {url}", code="PARSE_ERROR", url=url)
        return RawResponse(status_code=response.status_code, body=body)

    def get(
        self,
        path: str,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> RawResponse:
        """GET a path relative to the base URL.

        Returns 404 responses as-is so callers can apply their own fallback.

        Raises:
            RpcTransientError: After retries are exhausted
            RpcError: For unparseable bodies
        """
        send = retry(
            max_attempts=self._max_retries,
            delay=self._retry_delay,
            exceptions=(RpcTransientError,),
        )(self._send)
        return send(path, params, timeout)

    def _list(self, address: str, version: str) -> ModuleListing:
        source = f"rpc_{version}"
        response = self.get(f"/rpc/{version}/accounts/{address}/modules")
        if response.status_code == 404:
            logger.debug(f"No modules at {address} ({source})")
            return ModuleListing(address=address, names=[], source=source)

        if isinstance(response.body, dict) and response.body.get("error"):
            raise RpcError(f"{source} module list error: {response.body['error']}", code="RPC_ERROR")

        names = [_module_name(item) for item in _module_list_items(response.body)]
        logger.debug(f"Listed {len(names)} module(s) at {address} ({source})")
        return ModuleListing(address=address, names=names, source=source)

    def list_modules(self, address: str) -> ModuleListing:
        """List modules at an address with the v3 endpoint."""
        return self._list(address, "v3")

    def list_modules_v1(self, address: str) -> ModuleListing:
        """List modules at an address with the v1 endpoint."""
        return self._list(address, "v1")

    def fetch_module(self, address: str, name: str) -> ModuleArtifact:
        """Fetch a module's ABI and bytecode, trying v3 then v1.

        Never raises; an artifact with ``fetched_from="unknown"`` and an
        ``error`` is returned when both generations fail.
        """
        errors: list[str] = []
        for version in ("v3", "v1"):
            try:
                response = self.get(f"/rpc/{version}/accounts/{address}/modules/{name}")
            except RpcError as e:
                errors.append(str(e))
                continue
            if response.status_code == 404:
                errors.append(f"rpc_{version}: not found")
                continue

            module = _unwrap_module(response.body)
            bytecode = extract_bytecode(module)
            abi = extract_abi(module)
            if bytecode is None and abi is None:
                errors.append(f"rpc_{version}: no ABI or bytecode in response")
                continue

            return ModuleArtifact(
                module_address=address,
                module_name=name,
                abi=abi,
                bytecode=bytecode,
                fetched_from=f"rpc_{version}",
            )

        logger.debug(f"Module {address}::{name} unavailable: {'; '.join(errors)}")
        return ModuleArtifact(
            module_address=address,
            module_name=name,
            fetched_from="unknown",
            error="; ".join(errors) or "unavailable",
        )

    def list_resources(self, address: str) -> list[dict[str, Any]]:
        """List resources at an address, trying v3 then v1.

        Raises:
            RpcError: If both generations fail
        """
        last_error: RpcError | None = None
        for version in ("v3", "v1"):
            try:
                response = self.get(f"/rpc/{version}/accounts/{address}/resources")
            except RpcError as e:
                last_error = e
                continue
            if response.status_code == 404:
                return []

            body = response.body
            if isinstance(body, dict):
                resources = body.get("resources") or body.get("data") or []
            elif isinstance(body, list):
                resources = body
            else:
                resources = []
            return [r for r in resources if isinstance(r, dict)]

        raise last_error or RpcNotFoundError(f"{self._base_url}/accounts/{address}/resources")

    def get_account_transactions(
        self, address: str, version: str, limit: int | None = None, timeout: float | None = None
    ) -> RawResponse:
        """Fetch an account's transactions from the v3 or v2 endpoint."""
        params = {"limit": limit} if limit is not None else None
        return self.get(f"/rpc/{version}/accounts/{address}/transactions", params=params, timeout=timeout)
