"""Tests for address encoding — btc/address.py."""

from __future__ import annotations

import pytest

from glacier_wallet.btc.address import (
    address_to_script_pubkey,
    privkey_to_wif,
    pubkey_to_p2wpkh_address,
    script_to_p2sh_address,
)
from glacier_wallet.btc.network import MAINNET, TESTNET4, Network, get_network_params
from glacier_wallet.btc.script import p2pkh_lock_script, p2sh_lock_script, p2wpkh_lock_script
from glacier_wallet.utils.crypto import hash160

# Generator point, compressed (BIP173 example key)
_PUBKEY = bytes.fromhex("0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798")


class TestSegwit:
    def test_mainnet_bip173_vector(self) -> None:
        assert pubkey_to_p2wpkh_address(_PUBKEY, MAINNET) == (
            "bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4"
        )

    def test_testnet_bip173_vector(self) -> None:
        assert pubkey_to_p2wpkh_address(_PUBKEY, TESTNET4) == (
            "tb1qw508d6qejxtdg4y5r3zarvary0c5xw7kxpjzsx"
        )

    def test_uncompressed_rejected(self) -> None:
        with pytest.raises(ValueError, match="33-byte"):
            pubkey_to_p2wpkh_address(b"\x04" + b"\x00" * 64, MAINNET)

    def test_to_script_pubkey(self) -> None:
        address = pubkey_to_p2wpkh_address(_PUBKEY, TESTNET4)
        assert address_to_script_pubkey(address, TESTNET4) == p2wpkh_lock_script(hash160(_PUBKEY))


class TestBase58Addresses:
    def test_p2sh_prefixes(self) -> None:
        script = b"\x51"
        assert script_to_p2sh_address(script, MAINNET).startswith("3")
        assert script_to_p2sh_address(script, TESTNET4)[0] == "2"

    def test_p2sh_to_script_pubkey(self) -> None:
        script = b"\x51\x52"
        address = script_to_p2sh_address(script, TESTNET4)
        assert address_to_script_pubkey(address, TESTNET4) == p2sh_lock_script(hash160(script))

    def test_wrong_network_rejected(self) -> None:
        address = script_to_p2sh_address(b"\x51", MAINNET)
        with pytest.raises(ValueError, match="does not belong"):
            address_to_script_pubkey(address, TESTNET4)

    def test_p2pkh_decodes(self) -> None:
        assert address_to_script_pubkey("1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH", MAINNET) == (
            p2pkh_lock_script(hash160(_PUBKEY))
        )

    def test_garbage_rejected(self) -> None:
        with pytest.raises(ValueError):
            address_to_script_pubkey("not-an-address", TESTNET4)


class TestWIF:
    def test_compressed_mainnet(self) -> None:
        wif = privkey_to_wif(b"\x00" * 31 + b"\x01", MAINNET)
        assert wif == "KwDiBf89QgGbjEhKnhXJuH7LrciVrZi3qYjgd9M7rFU73sVHnoWn"

    def test_testnet_prefix(self) -> None:
        assert privkey_to_wif(b"\x00" * 31 + b"\x01", TESTNET4).startswith("c")


class TestNetworkParams:
    def test_lookup_by_name(self) -> None:
        assert get_network_params("testnet4") is TESTNET4
        assert get_network_params(Network.MAINNET) is MAINNET

    def test_unknown_network(self) -> None:
        with pytest.raises(ValueError, match="Unsupported network"):
            get_network_params("regtest")
