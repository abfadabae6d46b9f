"""Chain-data access — Esplora / mempool.space REST client."""

from glacier_wallet.chain.mempool.client import (
    AddressInfo,
    ChainTransaction,
    ChainTxOutput,
    ChainUtxo,
    MempoolClient,
)

__all__ = ["AddressInfo", "ChainTransaction", "ChainTxOutput", "ChainUtxo", "MempoolClient"]
