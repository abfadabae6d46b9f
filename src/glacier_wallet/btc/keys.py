"""BIP32 HD keys, Base58Check and secp256k1 ECDSA.

The key layer every wallet address and lock key is derived from:
- Base58 / Base58Check, shared by extended keys, P2SH addresses and WIF
- RFC6979 deterministic, low-S ECDSA over secp256k1 (via ``ecdsa``)
- :class:`ExtendedKey` with serialization, normal and hardened CKD and
  path walking
"""

from __future__ import annotations

import hashlib
import hmac
import struct
from dataclasses import dataclass, replace
from typing import Self

from ecdsa import SECP256k1, BadSignatureError, SigningKey, VerifyingKey
from ecdsa.der import UnexpectedDER
from ecdsa.ellipticcurve import INFINITY
from ecdsa.util import sigdecode_der, sigencode_der_canonize

from glacier_wallet.utils.crypto import hash160, sha256d

_N = SECP256k1.order
_G = SECP256k1.generator

HARDENED_OFFSET = 0x80000000

# (is_private, testnet) -> BIP32 version prefix
_VERSIONS: dict[tuple[bool, bool], bytes] = {
    (True, False): bytes.fromhex("0488ade4"),  # xprv
    (False, False): bytes.fromhex("0488b21e"),  # xpub
    (True, True): bytes.fromhex("04358394"),  # tprv
    (False, True): bytes.fromhex("043587cf"),  # tpub
}
_KINDS = {prefix: kind for kind, prefix in _VERSIONS.items()}

_SERIALIZED_LEN = 78


# ---------------------------------------------------------------------------
# Base58
# ---------------------------------------------------------------------------

_B58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"
_B58_VALUES = {char: value for value, char in enumerate(_B58_ALPHABET)}


def base58_encode(payload: bytes) -> str:
    """Plain Base58, one ``1`` per leading zero byte."""
    zeros = len(payload) - len(payload.lstrip(b"\0"))
    value = int.from_bytes(payload, "big")
    digits = ""
    while value:
        value, rem = divmod(value, 58)
        digits = _B58_ALPHABET[rem] + digits
    return _B58_ALPHABET[0] * zeros + digits


def base58_decode(s: str) -> bytes:
    """Inverse of :func:`base58_encode`.

    Raises:
        ValueError: On characters outside the Base58 alphabet.
    """
    value = 0
    for char in s:
        if char not in _B58_VALUES:
            msg = f"Invalid Base58 character: {char!r}"
            raise ValueError(msg)
        value = value * 58 + _B58_VALUES[char]
    ones = len(s) - len(s.lstrip(_B58_ALPHABET[0]))
    body = value.to_bytes((value.bit_length() + 7) // 8, "big")
    return b"\0" * ones + body


def base58check_encode(payload: bytes) -> str:
    return base58_encode(payload + sha256d(payload)[:4])


def base58check_decode(s: str) -> bytes:
    """Base58-decode *s* and strip its 4-byte double-SHA256 checksum.

    Raises:
        ValueError: If the string is malformed or the checksum is wrong.
    """
    raw = base58_decode(s)
    if len(raw) < 4:
        msg = f"Base58Check string too short ({len(raw)} bytes)"
        raise ValueError(msg)
    body = raw[:-4]
    if sha256d(body)[:4] != raw[-4:]:
        msg = f"Base58Check checksum mismatch for {s[:12]}..."
        raise ValueError(msg)
    return body


# ---------------------------------------------------------------------------
# ECDSA
# ---------------------------------------------------------------------------


def private_key_to_public_key(privkey_bytes: bytes) -> bytes:
    """Compressed SEC1 public key (33 bytes) for a 32-byte scalar."""
    signing_key = SigningKey.from_string(privkey_bytes, curve=SECP256k1)
    return signing_key.get_verifying_key().to_string("compressed")


def sign_digest(privkey_bytes: bytes, digest: bytes) -> bytes:
    """DER signature over *digest* with an RFC6979 nonce and low S.

    The sighash type byte is not appended.
    """
    signing_key = SigningKey.from_string(privkey_bytes, curve=SECP256k1)
    return signing_key.sign_digest_deterministic(
        digest, hashfunc=hashlib.sha256, sigencode=sigencode_der_canonize
    )


def verify_signature(pubkey_bytes: bytes, digest: bytes, signature: bytes) -> bool:
    """True if *signature* (DER, no sighash byte) signs *digest* for *pubkey_bytes*."""
    verifying_key = VerifyingKey.from_string(pubkey_bytes, curve=SECP256k1)
    try:
        return verifying_key.verify_digest(signature, digest, sigdecode=sigdecode_der)
    except (BadSignatureError, UnexpectedDER):
        return False


# ---------------------------------------------------------------------------
# BIP32
# ---------------------------------------------------------------------------


def _hmac_halves(key: bytes, data: bytes) -> tuple[int, bytes]:
    """HMAC-SHA512 split into (left half as int, right half as chain code)."""
    mac = hmac.new(key, data, hashlib.sha512).digest()
    return int.from_bytes(mac[:32], "big"), mac[32:]


def _parse_segment(segment: str) -> int:
    if segment[-1:] in ("'", "h", "H"):
        return int(segment[:-1]) + HARDENED_OFFSET
    return int(segment)


@dataclass(frozen=True)
class ExtendedKey:
    """A node of a BIP32 tree.

    Attributes:
        key: The 32-byte private scalar, or the 33-byte compressed public
            key when ``is_private`` is False.
        chain_code: 32-byte chain code.
        depth: Number of derivation steps from the master node.
        parent_fingerprint: Leading 4 bytes of the parent's pubkey hash.
        child_index: Index this node was derived at.
        is_private: Whether ``key`` is a private scalar.
        testnet: Selects tprv/tpub prefixes when serializing.
    """

    key: bytes
    chain_code: bytes
    depth: int
    parent_fingerprint: bytes
    child_index: int
    is_private: bool
    testnet: bool = False

    # -- Construction --------------------------------------------------------

    @classmethod
    def from_seed(cls, seed: bytes, *, testnet: bool = False) -> Self:
        """Master node for a BIP32 seed.

        Raises:
            ValueError: If the seed is not 16 to 64 bytes long, or yields an
                unusable master key.
        """
        if len(seed) < 16 or len(seed) > 64:
            msg = f"BIP32 seeds are 16 to 64 bytes, got {len(seed)}"
            raise ValueError(msg)
        scalar, chain_code = _hmac_halves(b"Bitcoin seed", seed)
        if not 0 < scalar < _N:
            msg = "Seed produced an out-of-range master key"
            raise ValueError(msg)
        return cls(
            key=scalar.to_bytes(32, "big"),
            chain_code=chain_code,
            depth=0,
            parent_fingerprint=bytes(4),
            child_index=0,
            is_private=True,
            testnet=testnet,
        )

    @classmethod
    def from_string(cls, s: str) -> Self:
        """Parse an xprv / xpub / tprv / tpub string."""
        raw = base58check_decode(s)
        if len(raw) != _SERIALIZED_LEN:
            msg = f"Extended key has length {len(raw)}, expected {_SERIALIZED_LEN}"
            raise ValueError(msg)
        kind = _KINDS.get(raw[:4])
        if kind is None:
            msg = f"Unknown extended key prefix {raw[:4].hex()}"
            raise ValueError(msg)
        is_private, testnet = kind
        (child_index,) = struct.unpack(">I", raw[9:13])
        return cls(
            key=raw[46:] if is_private else raw[45:],
            chain_code=raw[13:45],
            depth=raw[4],
            parent_fingerprint=raw[5:9],
            child_index=child_index,
            is_private=is_private,
            testnet=testnet,
        )

    # -- Serialization -------------------------------------------------------

    def serialize(self) -> bytes:
        """The 78-byte BIP32 encoding."""
        key_field = b"\0" + self.key if self.is_private else self.key
        return b"".join(
            (
                _VERSIONS[(self.is_private, self.testnet)],
                bytes([self.depth]),
                self.parent_fingerprint,
                struct.pack(">I", self.child_index),
                self.chain_code,
                key_field,
            )
        )

    def to_string(self) -> str:
        return base58check_encode(self.serialize())

    # -- Keys ----------------------------------------------------------------

    def public_key(self) -> bytes:
        """Compressed public key of this node."""
        return private_key_to_public_key(self.key) if self.is_private else self.key

    def pubkey_hash(self) -> bytes:
        return hash160(self.public_key())

    def neuter(self) -> ExtendedKey:
        """This node without its private half."""
        if not self.is_private:
            return self
        return replace(self, key=self.public_key(), is_private=False)

    # -- Derivation ----------------------------------------------------------

    def derive_child(self, index: int) -> ExtendedKey:
        """Child at *index*; indices from ``HARDENED_OFFSET`` up are hardened.

        Raises:
            ValueError: For an out-of-range index, a hardened step from a
                public node, or the (astronomically rare) invalid child.
        """
        if index < 0 or index > 0xFFFFFFFF:
            msg = f"Child index {index} does not fit in 32 bits"
            raise ValueError(msg)
        if index >= HARDENED_OFFSET:
            if not self.is_private:
                msg = "A public key cannot derive hardened children"
                raise ValueError(msg)
            material = b"\0" + self.key
        else:
            material = self.public_key()

        tweak, chain_code = _hmac_halves(self.chain_code, material + struct.pack(">I", index))
        if tweak >= _N:
            msg = f"Child {index} is invalid (tweak exceeds curve order)"
            raise ValueError(msg)

        child_key = self._tweak_private(tweak) if self.is_private else self._tweak_public(tweak)
        return ExtendedKey(
            key=child_key,
            chain_code=chain_code,
            depth=self.depth + 1,
            parent_fingerprint=self.pubkey_hash()[:4],
            child_index=index,
            is_private=self.is_private,
            testnet=self.testnet,
        )

    def derive_path(self, path: str) -> ExtendedKey:
        """Walk a path such as ``m/84'/1'/0'``; ``'`` or ``h`` marks hardened steps."""
        node = self
        for segment in path.strip().split("/"):
            if segment and segment not in ("m", "M"):
                node = node.derive_child(_parse_segment(segment))
        return node

    def _tweak_private(self, tweak: int) -> bytes:
        scalar = (int.from_bytes(self.key, "big") + tweak) % _N
        if scalar == 0:
            msg = "Derived private key is zero"
            raise ValueError(msg)
        return scalar.to_bytes(32, "big")

    def _tweak_public(self, tweak: int) -> bytes:
        point = VerifyingKey.from_string(self.key, curve=SECP256k1).pubkey.point + _G * tweak
        if point == INFINITY:
            msg = "Derived public key is the point at infinity"
            raise ValueError(msg)
        return VerifyingKey.from_public_point(point, curve=SECP256k1).to_string("compressed")
