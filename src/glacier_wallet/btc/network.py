"""Network parameters — address prefixes, BIP32 versions, account paths."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Network(enum.StrEnum):
    """Supported Bitcoin networks."""

    MAINNET = "mainnet"
    TESTNET4 = "testnet4"


@dataclass(frozen=True)
class NetworkParams:
    """Encoding constants for one network.

    Attributes:
        name: The :class:`Network` these parameters describe.
        bech32_hrp: Human-readable part of segwit addresses.
        p2pkh_version: Base58Check version byte for P2PKH addresses.
        p2sh_version: Base58Check version byte for P2SH addresses.
        wif_version: Version byte for WIF private keys.
        testnet: Selects tpub/tprv serialization for extended keys.
        account_path: BIP84 account node the wallet derives from.
        explorer_url: Default Esplora REST base URL.
    """

    name: Network
    bech32_hrp: str
    p2pkh_version: int
    p2sh_version: int
    wif_version: int
    testnet: bool
    account_path: str
    explorer_url: str


MAINNET = NetworkParams(
    name=Network.MAINNET,
    bech32_hrp="bc",
    p2pkh_version=0x00,
    p2sh_version=0x05,
    wif_version=0x80,
    testnet=False,
    account_path="m/84'/0'/0'",
    explorer_url="https://mempool.space/api",
)

TESTNET4 = NetworkParams(
    name=Network.TESTNET4,
    bech32_hrp="tb",
    p2pkh_version=0x6F,
    p2sh_version=0xC4,
    wif_version=0xEF,
    testnet=True,
    account_path="m/84'/1'/0'",
    explorer_url="https://mempool.space/testnet4/api",
)

_PARAMS = {
    Network.MAINNET: MAINNET,
    Network.TESTNET4: TESTNET4,
}


def get_network_params(network: Network | str) -> NetworkParams:
    """Look up the parameters for *network*.

    Raises:
        ValueError: If the network is not supported.
    """
    try:
        return _PARAMS[Network(network)]
    except ValueError:
        msg = f"Unsupported network: {network}"
        raise ValueError(msg) from None
