"""Bitcoin script building — pushes, script numbers, standard templates.

Provides construction and parsing of the scripts the wallet touches:
- Minimal data pushes and minimally-encoded script numbers
- P2PKH, P2WPKH and P2SH locking scripts
- OP_RETURN (null data) scripts
- Script tokenizing and type detection
"""

from __future__ import annotations

import enum
import struct

# ---------------------------------------------------------------------------
# Opcodes
# ---------------------------------------------------------------------------


class OpCode(int, enum.Enum):
    """Opcodes used by the wallet's templates."""

    OP_0 = 0x00
    OP_PUSHDATA1 = 0x4C
    OP_PUSHDATA2 = 0x4D
    OP_PUSHDATA4 = 0x4E
    OP_1NEGATE = 0x4F
    OP_1 = 0x51
    OP_16 = 0x60
    OP_RETURN = 0x6A
    OP_DROP = 0x75
    OP_DUP = 0x76
    OP_EQUAL = 0x87
    OP_EQUALVERIFY = 0x88
    OP_HASH160 = 0xA9
    OP_CHECKSIG = 0xAC
    OP_CHECKLOCKTIMEVERIFY = 0xB1


# ---------------------------------------------------------------------------
# Script Type
# ---------------------------------------------------------------------------


class ScriptType(enum.StrEnum):
    """Locking script types, named as Esplora reports them."""

    P2PKH = "p2pkh"
    P2SH = "p2sh"
    P2WPKH = "v0_p2wpkh"
    NULL_DATA = "op_return"
    UNKNOWN = "unknown"


# ---------------------------------------------------------------------------
# Data push helpers
# ---------------------------------------------------------------------------


def push_data(data: bytes) -> bytes:
    """Encode a data push using the smallest push opcode for its length."""
    length = len(data)
    if length == 0:
        return bytes([OpCode.OP_0])
    if length <= 0x4B:
        return bytes([length]) + data
    if length <= 0xFF:
        return bytes([OpCode.OP_PUSHDATA1, length]) + data
    if length <= 0xFFFF:
        return bytes([OpCode.OP_PUSHDATA2]) + struct.pack("<H", length) + data
    return bytes([OpCode.OP_PUSHDATA4]) + struct.pack("<I", length) + data


def encode_script_number(n: int) -> bytes:
    """Minimal little-endian sign-magnitude encoding of a script number.

    Zero encodes to the empty byte string.
    """
    if n == 0:
        return b""
    negative = n < 0
    magnitude = abs(n)
    result = bytearray()
    while magnitude:
        result.append(magnitude & 0xFF)
        magnitude >>= 8
    if result[-1] & 0x80:
        result.append(0x80 if negative else 0x00)
    elif negative:
        result[-1] |= 0x80
    return bytes(result)


def push_number(n: int) -> bytes:
    """Push *n* the way a minimal-push script compiler does.

    0 becomes ``OP_0``, -1 and 1..16 use their small-integer opcodes, every
    other value is a data push of its script-number encoding.
    """
    if n == 0:
        return bytes([OpCode.OP_0])
    if n == -1:
        return bytes([OpCode.OP_1NEGATE])
    if 1 <= n <= 16:
        return bytes([OpCode.OP_1 + n - 1])
    return push_data(encode_script_number(n))


# ---------------------------------------------------------------------------
# Standard locking scripts
# ---------------------------------------------------------------------------


def _require_hash20(value: bytes, name: str) -> None:
    if len(value) != 20:
        msg = f"{name} must be 20 bytes, got {len(value)}"
        raise ValueError(msg)


def p2pkh_lock_script(pubkey_hash: bytes) -> bytes:
    """``OP_DUP OP_HASH160 <20 bytes> OP_EQUALVERIFY OP_CHECKSIG``.

    Also the BIP143 script code of a P2WPKH input.
    """
    _require_hash20(pubkey_hash, "pubkey_hash")
    return (
        bytes([OpCode.OP_DUP, OpCode.OP_HASH160])
        + push_data(pubkey_hash)
        + bytes([OpCode.OP_EQUALVERIFY, OpCode.OP_CHECKSIG])
    )


def p2wpkh_lock_script(pubkey_hash: bytes) -> bytes:
    """``OP_0 <20 bytes>``."""
    _require_hash20(pubkey_hash, "pubkey_hash")
    return bytes([OpCode.OP_0]) + push_data(pubkey_hash)


def p2sh_lock_script(script_hash: bytes) -> bytes:
    """``OP_HASH160 <20 bytes> OP_EQUAL``."""
    _require_hash20(script_hash, "script_hash")
    return bytes([OpCode.OP_HASH160]) + push_data(script_hash) + bytes([OpCode.OP_EQUAL])


def op_return_script(*data_items: bytes) -> bytes:
    """Build a provably unspendable ``OP_RETURN <push> ...`` script."""
    script = bytes([OpCode.OP_RETURN])
    for item in data_items:
        script += push_data(item)
    return script


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_script(script: bytes) -> list[int | bytes]:
    """Tokenize a script into opcodes (int) and pushed data (bytes).

    Raises:
        ValueError: If a push runs past the end of the script.
    """
    chunks: list[int | bytes] = []
    i = 0
    while i < len(script):
        op = script[i]
        i += 1
        if 0 < op <= 0x4B:
            size = op
        elif op == OpCode.OP_PUSHDATA1:
            size = script[i] if i < len(script) else -1
            i += 1
        elif op == OpCode.OP_PUSHDATA2:
            size = struct.unpack("<H", script[i : i + 2])[0] if i + 2 <= len(script) else -1
            i += 2
        elif op == OpCode.OP_PUSHDATA4:
            size = struct.unpack("<I", script[i : i + 4])[0] if i + 4 <= len(script) else -1
            i += 4
        else:
            chunks.append(op)
            continue
        if size < 0 or i + size > len(script):
            msg = "Script push exceeds script length"
            raise ValueError(msg)
        chunks.append(script[i : i + size])
        i += size
    return chunks


def detect_script_type(script: bytes) -> ScriptType:
    """Classify a locking script."""
    if (
        len(script) == 25
        and script[0] == OpCode.OP_DUP
        and script[1] == OpCode.OP_HASH160
        and script[2] == 0x14
        and script[23] == OpCode.OP_EQUALVERIFY
        and script[24] == OpCode.OP_CHECKSIG
    ):
        return ScriptType.P2PKH
    if (
        len(script) == 23
        and script[0] == OpCode.OP_HASH160
        and script[1] == 0x14
        and script[22] == OpCode.OP_EQUAL
    ):
        return ScriptType.P2SH
    if len(script) == 22 and script[0] == OpCode.OP_0 and script[1] == 0x14:
        return ScriptType.P2WPKH
    if script[:1] == bytes([OpCode.OP_RETURN]):
        return ScriptType.NULL_DATA
    return ScriptType.UNKNOWN


def null_data_payload(script: bytes) -> bytes | None:
    """Return the last data push of an OP_RETURN script.

    None when the script is not null data, carries no push, or is malformed.
    """
    if detect_script_type(script) != ScriptType.NULL_DATA:
        return None
    try:
        chunks = parse_script(script[1:])
    except ValueError:
        return None
    pushes = [c for c in chunks if isinstance(c, bytes)]
    return pushes[-1] if pushes else None
