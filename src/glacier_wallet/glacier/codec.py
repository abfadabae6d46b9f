"""LockScriptCodec — CLTV redeem scripts, lock addresses and discovery tags.

A Glacier lock is a P2SH output whose redeem script is::

    <lock_height> OP_CHECKLOCKTIMEVERIFY OP_DROP
    OP_DUP OP_HASH160 <pubkey_hash> OP_EQUALVERIFY OP_CHECKSIG

The funding transaction also carries an ``OP_RETURN "GLACIER <height>"``
output so the wallet can find its locks again from history alone. The tag
is only a hint; ownership is proven by re-deriving the script.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from glacier_wallet.btc.address import script_to_p2sh_address
from glacier_wallet.btc.script import (
    OpCode,
    null_data_payload,
    op_return_script,
    push_data,
    push_number,
)
from glacier_wallet.glacier.models import LockDescriptor

if TYPE_CHECKING:
    from glacier_wallet.btc.network import NetworkParams

MARKER_PREFIX = b"GLACIER"
MARKER_PREFIX_HEX = MARKER_PREFIX.hex().upper()

_MARKER_RE = re.compile(r"GLACIER (\d+)")


class LockScriptCodec:
    """Builds and recognises the scripts of the time-lock protocol."""

    def __init__(self, network: NetworkParams) -> None:
        self._network = network

    @property
    def network(self) -> NetworkParams:
        return self._network

    @staticmethod
    def build_redeem_script(lock_height: int, pubkey_hash: bytes) -> bytes:
        """CLTV redeem script locking *pubkey_hash* until *lock_height*."""
        if len(pubkey_hash) != 20:
            msg = f"pubkey_hash must be 20 bytes, got {len(pubkey_hash)}"
            raise ValueError(msg)
        return (
            push_number(lock_height)
            + bytes(
                [
                    OpCode.OP_CHECKLOCKTIMEVERIFY,
                    OpCode.OP_DROP,
                    OpCode.OP_DUP,
                    OpCode.OP_HASH160,
                ]
            )
            + push_data(pubkey_hash)
            + bytes([OpCode.OP_EQUALVERIFY, OpCode.OP_CHECKSIG])
        )

    @staticmethod
    def build_lock_marker(lock_height: int) -> bytes:
        """``OP_RETURN <"GLACIER <lock_height>">``."""
        return op_return_script(f"GLACIER {lock_height}".encode("ascii"))

    def lock_address_for(self, redeem_script: bytes) -> str:
        return script_to_p2sh_address(redeem_script, self._network)

    @staticmethod
    def is_lock_marker(script: bytes) -> bool:
        """True if *script* is null data whose payload starts with ``GLACIER``."""
        payload = null_data_payload(script)
        if payload is None:
            return False
        return payload.hex().upper().startswith(MARKER_PREFIX_HEX)

    @staticmethod
    def parse_lock_marker(script: bytes) -> int | None:
        """Lock height named by a discovery tag, or None if it is not one."""
        payload = null_data_payload(script)
        if payload is None:
            return None
        try:
            text = payload.decode("ascii")
        except UnicodeDecodeError:
            return None
        match = _MARKER_RE.fullmatch(text)
        if match is None:
            return None
        return int(match.group(1))

    def describe_lock(self, lock_height: int, pubkey_hash: bytes) -> LockDescriptor:
        """The one place a :class:`LockDescriptor` is assembled."""
        redeem_script = self.build_redeem_script(lock_height, pubkey_hash)
        return LockDescriptor(
            lock_height=lock_height,
            owner_pubkey_hash=pubkey_hash,
            redeem_script=redeem_script,
            lock_address=self.lock_address_for(redeem_script),
        )
