"""Ethereum JSON-RPC provider over httpx.

Provides an async client for the node methods the orchestrator uses:
- ``eth_accounts``: accounts managed by the node/wallet
- ``eth_getBalance`` / ``eth_getTransactionCount``: preflight reads
- ``eth_estimateGas``: gas estimate when the caller gave none
- ``eth_getTransactionReceipt``: receipt polling (legacy convention)
- ``eth_sendTransaction``: a legacy-convention send function
- ``eth_sign``: a legacy-convention message sign function
"""

from __future__ import annotations

import itertools
from typing import TYPE_CHECKING, Any

import httpx

from tx_assist.errors.tx_errors import ProviderUnavailableError, RpcError

if TYPE_CHECKING:
    from tx_assist.config.settings import ProviderConfig

# Keys accepted by eth_sendTransaction whose values are hex quantities.
_QUANTITY_KEYS = ("value", "gas", "gasPrice", "nonce", "maxFeePerGas", "maxPriorityFeePerGas")


def to_hex(value: int | str) -> str:
    """Encode an integer as a JSON-RPC hex quantity (``0x``-prefixed)."""
    if isinstance(value, str):
        if value.startswith("0x"):
            return value
        value = int(value)
    return hex(value)


def from_hex(value: str | int | None) -> int:
    """Decode a JSON-RPC hex quantity. ``None`` decodes to 0."""
    if value is None:
        return 0
    if isinstance(value, int):
        return value
    return int(value, 16)


def encode_tx(tx: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of *tx* with quantities hex-encoded for the wire."""
    encoded: dict[str, Any] = {}
    for key, val in tx.items():
        if val is None:
            continue
        encoded[key] = to_hex(val) if key in _QUANTITY_KEYS else val
    return encoded


class JsonRpcProvider:
    """Async JSON-RPC client implementing the ``Provider`` protocol.

    Usage::

        provider = JsonRpcProvider(config.provider)
        await provider.connect()
        try:
            balance = await provider.get_balance("0xabc...")
        finally:
            await provider.close()
    """

    def __init__(self, config: ProviderConfig) -> None:
        """Initialize the provider.

        Args:
            config: Provider configuration (url, name, timeout).
        """
        self._config = config
        self._client: httpx.AsyncClient | None = None
        self._ids = itertools.count(1)

    @property
    def name(self) -> str:
        return self._config.name

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        self._client = httpx.AsyncClient(
            base_url=self._config.url,
            headers={"Content-Type": "application/json"},
            timeout=self._config.timeout,
        )

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    # ------------------------------------------------------------------
    # Provider protocol
    # ------------------------------------------------------------------

    async def get_accounts(self) -> list[str]:
        return list(await self._read("eth_accounts", []) or [])

    async def get_balance(self, address: str) -> int:
        return from_hex(await self._read("eth_getBalance", [address, "latest"]))

    async def get_transaction_count(self, address: str) -> int:
        return from_hex(await self._read("eth_getTransactionCount", [address, "latest"]))

    async def estimate_gas(self, tx: dict[str, Any]) -> int:
        return from_hex(await self._read("eth_estimateGas", [encode_tx(tx)]))

    async def get_receipt(self, tx_hash: str) -> dict[str, Any] | None:
        """Return the receipt for *tx_hash*, or None while it is unmined."""
        return await self._read("eth_getTransactionReceipt", [tx_hash])

    # ------------------------------------------------------------------
    # Send
    # ------------------------------------------------------------------

    async def send_transaction(self, tx: dict[str, Any]) -> str:
        """Ask the node's wallet to sign and broadcast *tx*; return the hash.

        Raises:
            RpcError: When the node answers with a JSON-RPC error object
                (user rejection, underpriced, ...).
            ProviderUnavailableError: On transport failures.
        """
        return await self._call("eth_sendTransaction", [encode_tx(tx)])

    async def sign_message(self, address: str, message: str) -> str:
        """Ask the node's wallet to sign *message* with *address*.

        Text is sent UTF-8 encoded; ``0x``-prefixed input is passed as-is.
        """
        data = message if message.startswith("0x") else "0x" + message.encode().hex()
        return await self._call("eth_sign", [address, data])

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> httpx.AsyncClient:
        """Return the HTTP client, raising if not connected."""
        if self._client is None:
            msg = "Provider not connected. Call connect() first."
            raise ProviderUnavailableError(msg)
        return self._client

    async def _read(self, method: str, params: list[Any]) -> Any:
        """Call a read method, folding RPC errors into ProviderUnavailableError."""
        try:
            return await self._call(method, params)
        except RpcError as exc:
            msg = f"{method} failed: {exc.message}"
            raise ProviderUnavailableError(msg, operation=method) from exc

    async def _call(self, method: str, params: list[Any]) -> Any:
        client = self._ensure_connected()
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        try:
            response = await client.post("", json=payload)
        except httpx.HTTPError as exc:
            msg = f"{method} request failed: {exc}"
            raise ProviderUnavailableError(msg, operation=method) from exc

        if response.status_code != 200:
            msg = f"{method} failed ({response.status_code}): {response.text}"
            raise ProviderUnavailableError(msg, operation=method)

        try:
            body = response.json()
        except ValueError as exc:
            msg = f"{method} returned malformed JSON"
            raise ProviderUnavailableError(msg, operation=method) from exc

        error = body.get("error")
        if error:
            raise RpcError(
                error.get("message", "unknown RPC error"),
                rpc_code=error.get("code"),
                data=error.get("data"),
            )
        return body.get("result")
