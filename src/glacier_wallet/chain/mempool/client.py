"""Esplora REST client — address usage, UTXOs, history, raw tx, broadcast.

Async HTTP client for the mempool.space / Esplora API:
- GET  /blocks/tip/height
- GET  /address/<addr>
- GET  /address/<addr>/utxo
- GET  /address/<addr>/txs
- GET  /tx/<txid>/hex
- POST /tx

The base URL selects the network (``https://mempool.space/testnet4/api``).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

import httpx

from glacier_wallet.errors.chain_errors import BroadcastRejectedError, ChainDataError

if TYPE_CHECKING:
    from collections.abc import Callable

_T = TypeVar("_T")

# ---------------------------------------------------------------------------
# Data models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AddressInfo:
    """Usage and balance of one address, confirmed and mempool combined."""

    used: bool
    balance: int  # satoshis


@dataclass(frozen=True)
class ChainUtxo:
    """An unspent output paying an address."""

    txid: str
    vout: int
    value: int  # satoshis


@dataclass(frozen=True)
class ChainTxOutput:
    """A decoded transaction output as reported by the explorer."""

    script_pubkey: bytes
    script_type: str
    script_asm: str
    value: int  # satoshis
    address: str | None = None


@dataclass(frozen=True)
class ChainTransaction:
    """A transaction with its decoded outputs."""

    txid: str
    outputs: tuple[ChainTxOutput, ...]


def _address_info(data: dict[str, Any]) -> AddressInfo:
    chain = data.get("chain_stats", {})
    mempool = data.get("mempool_stats", {})
    tx_count = chain.get("tx_count", 0) + mempool.get("tx_count", 0)
    funded = chain.get("funded_txo_sum", 0) + mempool.get("funded_txo_sum", 0)
    spent = chain.get("spent_txo_sum", 0) + mempool.get("spent_txo_sum", 0)
    return AddressInfo(used=tx_count > 0, balance=funded - spent)


def _utxos(items: list[dict[str, Any]]) -> list[ChainUtxo]:
    return [
        ChainUtxo(txid=str(item["txid"]), vout=int(item["vout"]), value=int(item["value"]))
        for item in items
    ]


def _transaction(data: dict[str, Any]) -> ChainTransaction:
    outputs = tuple(
        ChainTxOutput(
            script_pubkey=bytes.fromhex(vout.get("scriptpubkey", "")),
            script_type=vout.get("scriptpubkey_type", ""),
            script_asm=vout.get("scriptpubkey_asm", ""),
            value=int(vout.get("value", 0)),
            address=vout.get("scriptpubkey_address"),
        )
        for vout in data.get("vout", [])
    )
    return ChainTransaction(txid=str(data["txid"]), outputs=outputs)


def _transactions(items: list[dict[str, Any]]) -> list[ChainTransaction]:
    return [_transaction(item) for item in items]


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class MempoolClient:
    """Async HTTP client for an Esplora-compatible chain-data API.

    Usage::

        chain = MempoolClient("https://mempool.space/testnet4/api")
        await chain.connect()
        try:
            height = await chain.get_current_height()
            info = await chain.get_address_info("tb1q...")
        finally:
            await chain.close()
    """

    def __init__(self, base_url: str, *, timeout: float = 30.0) -> None:
        """Initialize the client.

        Args:
            base_url: Esplora REST base URL, without trailing slash.
            timeout: Per-request timeout in seconds.
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def connect(self) -> None:
        """Create the underlying HTTP client."""
        self._client = httpx.AsyncClient(base_url=self._base_url, timeout=self._timeout)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def is_connected(self) -> bool:
        """Check if the HTTP client is active."""
        return self._client is not None

    @property
    def base_url(self) -> str:
        """The API base URL."""
        return self._base_url

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_current_height(self) -> int:
        """Height of the current chain tip."""
        resp = await self._get("/blocks/tip/height")
        try:
            return int(resp.text.strip())
        except ValueError as exc:
            msg = f"Unexpected tip height response: {resp.text[:64]!r}"
            raise ChainDataError(msg) from exc

    async def get_address_info(self, address: str) -> AddressInfo:
        """Usage flag and balance of an address."""
        return await self._get_decoded(f"/address/{address}", _address_info)

    async def get_address_utxos(self, address: str) -> list[ChainUtxo]:
        """Unspent outputs paying an address."""
        return await self._get_decoded(f"/address/{address}/utxo", _utxos)

    async def get_address_transactions(self, address: str) -> list[ChainTransaction]:
        """Transactions touching an address, newest first."""
        return await self._get_decoded(f"/address/{address}/txs", _transactions)

    async def get_raw_transaction_hex(self, txid: str) -> str:
        """Raw serialized transaction as hex."""
        resp = await self._get(f"/tx/{txid}/hex")
        raw_hex = resp.text.strip()
        try:
            bytes.fromhex(raw_hex)
        except ValueError as exc:
            msg = f"GET /tx/{txid}/hex returned non-hex data: {raw_hex[:64]!r}"
            raise ChainDataError(msg) from exc
        return raw_hex

    async def broadcast_transaction(self, raw_tx_hex: str) -> str:
        """Submit a signed transaction.

        Returns:
            The txid reported by the node.

        Raises:
            BroadcastRejectedError: If the node refuses the transaction.
            ChainDataError: If the request itself fails.
        """
        client = self._ensure_connected()
        try:
            resp = await client.post(
                "/tx",
                content=raw_tx_hex,
                headers={"Content-Type": "text/plain"},
            )
        except httpx.HTTPError as exc:
            msg = f"Broadcast request failed: {exc}"
            raise ChainDataError(msg) from exc
        if resp.is_success:
            return resp.text.strip()
        reason = resp.text.strip()
        msg = f"Transaction rejected ({resp.status_code}): {reason}"
        raise BroadcastRejectedError(msg, reason=reason)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _ensure_connected(self) -> httpx.AsyncClient:
        if self._client is None:
            msg = "MempoolClient is not connected; call connect() first"
            raise RuntimeError(msg)
        return self._client

    async def _get(self, path: str) -> httpx.Response:
        client = self._ensure_connected()
        try:
            resp = await client.get(path)
        except httpx.HTTPError as exc:
            msg = f"GET {path} failed: {exc}"
            raise ChainDataError(msg) from exc
        if not resp.is_success:
            msg = f"GET {path} failed ({resp.status_code}): {resp.text[:200]}"
            raise ChainDataError(msg)
        return resp

    async def _get_json(self, path: str) -> Any:
        resp = await self._get(path)
        try:
            return resp.json()
        except ValueError as exc:
            msg = f"GET {path} returned invalid JSON"
            raise ChainDataError(msg) from exc

    async def _get_decoded(self, path: str, decode: Callable[[Any], _T]) -> _T:
        """GET *path* as JSON and map it through *decode*.

        A payload of the wrong shape (missing keys, wrong types, bad hex)
        is reported as :class:`ChainDataError`.
        """
        data = await self._get_json(path)
        try:
            return decode(data)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            msg = f"GET {path} returned an unexpected payload: {exc!r}"
            raise ChainDataError(msg) from exc
