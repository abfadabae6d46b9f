"""GlacierAccount — the BIP84 account node every wallet key hangs off.

Key tree below ``m/84'/coin'/0'``:

- branch ``0``: P2WPKH receive addresses, index = address index
- branch ``3``: lock keys, index = lock height

The two branches never overlap, so a receive address can never collide with
a lock key.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from mnemonic import Mnemonic

from glacier_wallet.btc.address import pubkey_to_p2wpkh_address
from glacier_wallet.btc.keys import ExtendedKey
from glacier_wallet.btc.script import p2wpkh_lock_script
from glacier_wallet.errors.definitions import ErrInvalidMnemonic, ErrMissingMnemonic
from glacier_wallet.glacier.models import LOCK_BRANCH, RECEIVE_BRANCH, DerivedAddress

if TYPE_CHECKING:
    from glacier_wallet.btc.network import NetworkParams


class GlacierAccount:
    """Immutable account-level key material, shared across a request."""

    def __init__(self, account_key: ExtendedKey, network: NetworkParams) -> None:
        if not account_key.is_private:
            msg = "GlacierAccount requires a private account key"
            raise ValueError(msg)
        self._key = account_key
        self._network = network

    @classmethod
    def from_seed(cls, seed: bytes, network: NetworkParams) -> GlacierAccount:
        """Derive the account node from a BIP32 seed."""
        master = ExtendedKey.from_seed(seed, testnet=network.testnet)
        return cls(master.derive_path(network.account_path), network)

    @classmethod
    def from_mnemonic(
        cls, phrase: str, network: NetworkParams, passphrase: str = ""
    ) -> GlacierAccount:
        """Derive the account node from a BIP39 mnemonic.

        Raises:
            GlacierError: ``ErrMissingMnemonic`` when empty,
                ``ErrInvalidMnemonic`` when the checksum or words are wrong.
        """
        words = " ".join(phrase.split())
        if not words:
            raise ErrMissingMnemonic
        mnemo = Mnemonic("english")
        try:
            valid = mnemo.check(words)
        except (LookupError, ValueError):
            valid = False
        if not valid:
            raise ErrInvalidMnemonic
        return cls.from_seed(Mnemonic.to_seed(words, passphrase=passphrase), network)

    # -- Properties ----------------------------------------------------------

    @property
    def network(self) -> NetworkParams:
        return self._network

    @property
    def account_key(self) -> ExtendedKey:
        return self._key

    @property
    def xpub(self) -> str:
        """Serialized public account key (xpub / tpub)."""
        return self._key.neuter().to_string()

    # -- Derivation ----------------------------------------------------------

    def derive(self, branch: int, index: int) -> ExtendedKey:
        """Private key at ``account/branch/index`` (non-hardened)."""
        return self._key.derive_child(branch).derive_child(index)

    def path(self, branch: int, index: int) -> str:
        return f"{self._network.account_path}/{branch}/{index}"

    def receive_address(self, index: int) -> DerivedAddress:
        """The P2WPKH receive address at *index*."""
        key = self.derive(RECEIVE_BRANCH, index)
        return DerivedAddress(
            branch=RECEIVE_BRANCH,
            index=index,
            path=self.path(RECEIVE_BRANCH, index),
            address=pubkey_to_p2wpkh_address(key.public_key(), self._network),
        )

    def receive_script(self, index: int) -> bytes:
        """Locking script paying the receive address at *index*."""
        return p2wpkh_lock_script(self.derive(RECEIVE_BRANCH, index).pubkey_hash())

    def lock_key(self, lock_height: int) -> ExtendedKey:
        """The key owning the lock that matures at *lock_height*."""
        return self.derive(LOCK_BRANCH, lock_height)

    def lock_pubkey_hash(self, lock_height: int) -> bytes:
        return self.lock_key(lock_height).pubkey_hash()
