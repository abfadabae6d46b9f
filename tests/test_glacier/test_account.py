"""Tests for the account key tree — receive and lock branches."""

from __future__ import annotations

import pytest

from glacier_wallet.btc.keys import ExtendedKey
from glacier_wallet.btc.network import MAINNET
from glacier_wallet.btc.script import p2wpkh_lock_script
from glacier_wallet.errors.glacier_errors import GlacierError
from glacier_wallet.glacier.account import GlacierAccount
from glacier_wallet.glacier.models import LOCK_BRANCH, RECEIVE_BRANCH


class TestFromMnemonic:
    def test_bip84_receive_vectors(self, mnemonic: str) -> None:
        account = GlacierAccount.from_mnemonic(mnemonic, MAINNET)
        assert account.receive_address(0).address == "bc1qcr8te4kr609gcawutmrza0j4xv80jy8z306fyu"
        assert account.receive_address(1).address == "bc1qnjg0jd8228aq7egyzacy8cys3knf9xvrerkf9g"

    def test_whitespace_is_normalised(self, mnemonic: str) -> None:
        messy = "  " + mnemonic.replace(" ", "   ") + "\n"
        a = GlacierAccount.from_mnemonic(messy, MAINNET)
        b = GlacierAccount.from_mnemonic(mnemonic, MAINNET)
        assert a.xpub == b.xpub

    def test_passphrase_changes_keys(self, mnemonic: str) -> None:
        a = GlacierAccount.from_mnemonic(mnemonic, MAINNET)
        b = GlacierAccount.from_mnemonic(mnemonic, MAINNET, passphrase="TREZOR")
        assert a.xpub != b.xpub

    def test_missing_mnemonic(self) -> None:
        with pytest.raises(GlacierError) as exc_info:
            GlacierAccount.from_mnemonic("   ", MAINNET)
        assert exc_info.value.code == "missing-mnemonic"

    @pytest.mark.parametrize(
        "phrase",
        [
            "abandon " * 11 + "abandon",
            "notaword " * 12,
            "abandon abandon about",
        ],
    )
    def test_invalid_mnemonic(self, phrase: str) -> None:
        with pytest.raises(GlacierError) as exc_info:
            GlacierAccount.from_mnemonic(phrase, MAINNET)
        assert exc_info.value.code == "invalid-mnemonic"

    def test_requires_private_key(self) -> None:
        public = ExtendedKey.from_seed(b"\x01" * 32).neuter()
        with pytest.raises(ValueError, match="private"):
            GlacierAccount(public, MAINNET)


class TestDerivation:
    def test_testnet_account(self, account: GlacierAccount) -> None:
        assert account.xpub.startswith("tpub")
        assert account.account_key.depth == 3
        assert account.receive_address(0).address.startswith("tb1q")

    def test_receive_address_fields(self, account: GlacierAccount) -> None:
        derived = account.receive_address(4)
        assert derived.branch == RECEIVE_BRANCH
        assert derived.index == 4
        assert derived.path == "m/84'/1'/0'/0/4"
        assert derived.used is False
        assert derived.balance == 0

    def test_receive_script_matches_address_key(self, account: GlacierAccount) -> None:
        key = account.derive(RECEIVE_BRANCH, 2)
        assert account.receive_script(2) == p2wpkh_lock_script(key.pubkey_hash())

    def test_lock_key_is_lock_branch_at_height(self, account: GlacierAccount) -> None:
        assert account.lock_key(150).key == account.derive(LOCK_BRANCH, 150).key
        assert account.lock_pubkey_hash(150) == account.derive(LOCK_BRANCH, 150).pubkey_hash()

    def test_branches_are_disjoint(self, account: GlacierAccount) -> None:
        assert account.lock_key(5).key != account.derive(RECEIVE_BRANCH, 5).key

    def test_lock_keys_differ_per_height(self, account: GlacierAccount) -> None:
        assert account.lock_pubkey_hash(150) != account.lock_pubkey_hash(151)

    def test_xpub_derives_same_receive_keys(self, account: GlacierAccount) -> None:
        public = ExtendedKey.from_string(account.xpub)
        assert public.derive_child(0).derive_child(3).key == (
            account.derive(RECEIVE_BRANCH, 3).public_key()
        )
