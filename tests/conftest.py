"""Shared test fixtures for the glacier-wallet test suite."""

from __future__ import annotations

import pytest

from glacier_wallet.btc.address import address_to_script_pubkey
from glacier_wallet.btc.network import TESTNET4
from glacier_wallet.btc.transaction import Transaction, TxInput, TxOutput
from glacier_wallet.chain.mempool.client import (
    AddressInfo,
    ChainTransaction,
    ChainTxOutput,
    ChainUtxo,
)
from glacier_wallet.errors.chain_errors import BroadcastRejectedError, ChainDataError
from glacier_wallet.glacier.account import GlacierAccount
from glacier_wallet.glacier.codec import LockScriptCodec

# BIP39 test mnemonic (all-zero entropy)
MNEMONIC = (
    "abandon abandon abandon abandon abandon abandon "
    "abandon abandon abandon abandon abandon about"
)


def _dummy_txid(n: int) -> str:
    return f"{n:064x}"


class FakeChain:
    """In-memory stand-in for :class:`MempoolClient`.

    Unknown addresses are unused with zero balance. Addresses in
    ``failing`` raise :class:`ChainDataError` on every lookup.
    """

    def __init__(self, height: int = 200) -> None:
        self.height = height
        self.infos: dict[str, AddressInfo] = {}
        self.utxos: dict[str, list[ChainUtxo]] = {}
        self.transactions: dict[str, list[ChainTransaction]] = {}
        self.raw: dict[str, str] = {}
        self.failing: set[str] = set()
        self.failing_raw: set[str] = set()
        self.info_calls: list[str] = []
        self.broadcasted: list[str] = []
        self.reject_broadcast = False
        self.accept_limit: int | None = None
        self._counter = 0

    # -- MempoolClient surface ---------------------------------------------

    async def get_current_height(self) -> int:
        return self.height

    async def get_address_info(self, address: str) -> AddressInfo:
        self.info_calls.append(address)
        self._check(address)
        return self.infos.get(address, AddressInfo(used=False, balance=0))

    async def get_address_utxos(self, address: str) -> list[ChainUtxo]:
        self._check(address)
        return list(self.utxos.get(address, []))

    async def get_address_transactions(self, address: str) -> list[ChainTransaction]:
        self._check(address)
        return list(self.transactions.get(address, []))

    async def get_raw_transaction_hex(self, txid: str) -> str:
        if txid in self.failing_raw or txid not in self.raw:
            msg = f"GET /tx/{txid}/hex failed (404)"
            raise ChainDataError(msg)
        return self.raw[txid]

    async def broadcast_transaction(self, raw_tx_hex: str) -> str:
        limit_reached = self.accept_limit is not None and len(self.broadcasted) >= self.accept_limit
        if self.reject_broadcast or limit_reached:
            msg = "Transaction rejected (400): non-final"
            raise BroadcastRejectedError(msg, reason="non-final")
        self.broadcasted.append(raw_tx_hex)
        return Transaction.from_hex(raw_tx_hex).txid()

    def _check(self, address: str) -> None:
        if address in self.failing:
            msg = f"GET /address/{address} failed (503)"
            raise ChainDataError(msg)

    # -- Scenario helpers --------------------------------------------------

    def mark_used(self, address: str, balance: int = 0) -> None:
        self.infos[address] = AddressInfo(used=True, balance=balance)

    def fund(self, address: str, *values: int) -> list[ChainUtxo]:
        """Mark *address* used and give it one UTXO per value."""
        utxos = []
        for value in values:
            self._counter += 1
            utxos.append(ChainUtxo(txid=_dummy_txid(self._counter), vout=0, value=value))
        self.utxos.setdefault(address, []).extend(utxos)
        self.mark_used(address, sum(u.value for u in self.utxos[address]))
        return utxos

    def add_lock(
        self,
        account: GlacierAccount,
        codec: LockScriptCodec,
        lock_height: int,
        value: int,
        *,
        funded_from: int = 0,
        marker_height: int | None = None,
    ) -> ChainTransaction:
        """Record a lock transaction paying *value* to the lock at *lock_height*.

        The transaction shows up in the history of receive address
        *funded_from*. ``marker_height`` lets a test tag it with a height
        that does not match the lock it pays.
        """
        network = codec.network
        descriptor = codec.describe_lock(lock_height, account.lock_pubkey_hash(lock_height))
        lock_script = address_to_script_pubkey(descriptor.lock_address, network)
        marker = codec.build_lock_marker(lock_height if marker_height is None else marker_height)
        self._counter += 1
        tx = Transaction(
            inputs=[
                TxInput(prev_tx_id=bytes.fromhex(_dummy_txid(self._counter)), prev_tx_out_index=0)
            ],
            outputs=[TxOutput(value=value, script_pubkey=lock_script), TxOutput(0, marker)],
        )
        txid = tx.txid()
        self.raw[txid] = tx.to_hex()

        chain_tx = ChainTransaction(
            txid=txid,
            outputs=(
                ChainTxOutput(
                    script_pubkey=lock_script,
                    script_type="p2sh",
                    script_asm="",
                    value=value,
                    address=descriptor.lock_address,
                ),
                ChainTxOutput(
                    script_pubkey=marker, script_type="op_return", script_asm="", value=0
                ),
            ),
        )
        receive = account.receive_address(funded_from).address
        self.transactions.setdefault(receive, []).append(chain_tx)
        if receive not in self.infos:
            self.mark_used(receive)
        self.infos[descriptor.lock_address] = AddressInfo(used=True, balance=value)
        self.utxos[descriptor.lock_address] = [ChainUtxo(txid=txid, vout=0, value=value)]
        return chain_tx


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mnemonic() -> str:
    return MNEMONIC


@pytest.fixture
def network():
    return TESTNET4


@pytest.fixture
def account(network) -> GlacierAccount:
    """The test wallet's testnet4 account."""
    return GlacierAccount.from_mnemonic(MNEMONIC, network)


@pytest.fixture
def codec(network) -> LockScriptCodec:
    return LockScriptCodec(network)


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain(height=200)


@pytest.fixture
def app_config():
    """Provide a test AppConfig with safe defaults."""
    from glacier_wallet.config.settings import AppConfig, LockConfig

    return AppConfig(
        debug=True,
        mnemonic=MNEMONIC,
        lock=LockConfig(lock_offset=2),
    )


@pytest.fixture
def test_client(app_config, chain):
    """Provide a FastAPI TestClient wired to the in-memory chain."""
    from fastapi.testclient import TestClient

    from glacier_wallet.api.app import create_app

    app = create_app(config=app_config, chain=chain)
    with TestClient(app, raise_server_exceptions=False) as client:
        yield client
