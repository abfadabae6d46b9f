"""Transaction wire format and signature hashes.

Covers what the lock pipeline needs from a transaction:
- inputs with optional segwit witness stacks, outputs, nLockTime
- legacy and BIP144 encodings, txid / wtxid
- the pre-segwit sighash (P2SH CLTV spends) and the BIP143 sighash
  (P2WPKH funding inputs), SIGHASH_ALL only
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from io import BytesIO

from glacier_wallet.utils.crypto import sha256d

# nSequence that opts an input out of nLockTime
SEQUENCE_FINAL = 0xFFFFFFFF

# Largest nSequence that keeps nLockTime enforced (no RBF signalling)
SEQUENCE_LOCKTIME_ENABLED = 0xFFFFFFFE

# nLockTime below this is a block height, from here on a timestamp
LOCKTIME_THRESHOLD = 500_000_000

SIGHASH_ALL = 0x01

_SEGWIT_MARKER = b"\x00\x01"

_VARINT_BANDS = ((b"", "<B", 0xFC), (b"\xfd", "<H", 0xFFFF), (b"\xfe", "<I", 0xFFFFFFFF))


# ---------------------------------------------------------------------------
# Primitive encoders / decoders
# ---------------------------------------------------------------------------


def encode_varint(n: int) -> bytes:
    """CompactSize encoding of *n*."""
    for prefix, fmt, limit in _VARINT_BANDS:
        if n <= limit:
            return prefix + struct.pack(fmt, n)
    return b"\xff" + struct.pack("<Q", n)


_VARINT_WIDTHS = {0xFD: "<H", 0xFE: "<I", 0xFF: "<Q"}


def read_varint(stream: BytesIO) -> int:
    """Read one CompactSize integer from *stream*."""
    (first,) = _take(stream, 1)
    fmt = _VARINT_WIDTHS.get(first)
    if fmt is None:
        return first
    return _unpack(stream, fmt)


def _take(stream: BytesIO, count: int) -> bytes:
    chunk = stream.read(count)
    if len(chunk) < count:
        msg = f"Unexpected end of stream: needed {count} bytes, {len(chunk)} left"
        raise ValueError(msg)
    return chunk


def _unpack(stream: BytesIO, fmt: str) -> int:
    return struct.unpack(fmt, _take(stream, struct.calcsize(fmt)))[0]


def _take_prefixed(stream: BytesIO) -> bytes:
    return _take(stream, read_varint(stream))


def _prefixed(data: bytes) -> bytes:
    return encode_varint(len(data)) + data


# ---------------------------------------------------------------------------
# Inputs and outputs
# ---------------------------------------------------------------------------


@dataclass
class TxInput:
    """One spent outpoint.

    ``prev_tx_id`` is kept in internal (little-endian) byte order, the way
    it is serialized; ``prev_tx_id_hex`` gives the explorer form.
    """

    prev_tx_id: bytes
    prev_tx_out_index: int
    script_sig: bytes = b""
    sequence: int = SEQUENCE_FINAL
    witness: list[bytes] = field(default_factory=list)

    @property
    def prev_tx_id_hex(self) -> str:
        return self.prev_tx_id[::-1].hex()

    def outpoint(self) -> bytes:
        return self.prev_tx_id + struct.pack("<I", self.prev_tx_out_index)

    def serialize(self, script_sig: bytes | None = None) -> bytes:
        """Wire form, with *script_sig* substituted when given (sighash use)."""
        script = self.script_sig if script_sig is None else script_sig
        return self.outpoint() + _prefixed(script) + struct.pack("<I", self.sequence)


@dataclass
class TxOutput:
    value: int
    script_pubkey: bytes

    def serialize(self) -> bytes:
        return struct.pack("<q", self.value) + _prefixed(self.script_pubkey)


def _read_input(stream: BytesIO) -> TxInput:
    prev_tx_id = _take(stream, 32)
    index = _unpack(stream, "<I")
    script_sig = _take_prefixed(stream)
    return TxInput(prev_tx_id, index, script_sig, _unpack(stream, "<I"))


def _read_output(stream: BytesIO) -> TxOutput:
    value = _unpack(stream, "<q")
    return TxOutput(value, _take_prefixed(stream))


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------


@dataclass
class Transaction:
    version: int = 2
    inputs: list[TxInput] = field(default_factory=list)
    outputs: list[TxOutput] = field(default_factory=list)
    locktime: int = 0

    # -- Building -----------------------------------------------------------

    def add_input(
        self,
        prev_tx_id: bytes,
        prev_tx_out_index: int,
        script_sig: bytes = b"",
        sequence: int = SEQUENCE_FINAL,
    ) -> TxInput:
        self.inputs.append(TxInput(prev_tx_id, prev_tx_out_index, script_sig, sequence))
        return self.inputs[-1]

    def add_output(self, value: int, script_pubkey: bytes) -> TxOutput:
        self.outputs.append(TxOutput(value, script_pubkey))
        return self.outputs[-1]

    # -- Encoding -----------------------------------------------------------

    def serialize(self, *, include_witness: bool = True) -> bytes:
        """Wire bytes; BIP144 layout only if some input carries a witness."""
        with_witness = include_witness and any(inp.witness for inp in self.inputs)
        parts = [struct.pack("<i", self.version)]
        if with_witness:
            parts.append(_SEGWIT_MARKER)
        parts.append(encode_varint(len(self.inputs)))
        parts.extend(inp.serialize() for inp in self.inputs)
        parts.append(encode_varint(len(self.outputs)))
        parts.extend(out.serialize() for out in self.outputs)
        if with_witness:
            for inp in self.inputs:
                parts.append(encode_varint(len(inp.witness)))
                parts.extend(_prefixed(item) for item in inp.witness)
        parts.append(struct.pack("<I", self.locktime))
        return b"".join(parts)

    def to_hex(self) -> str:
        return self.serialize().hex()

    def txid(self) -> str:
        """Display-order txid; witnesses are not committed to."""
        return sha256d(self.serialize(include_witness=False))[::-1].hex()

    def wtxid(self) -> str:
        return sha256d(self.serialize())[::-1].hex()

    # -- Decoding -----------------------------------------------------------

    @classmethod
    def from_hex(cls, hex_str: str) -> Transaction:
        return cls.from_bytes(bytes.fromhex(hex_str.strip()))

    @classmethod
    def from_bytes(cls, data: bytes) -> Transaction:
        """Parse a complete legacy or BIP144 transaction.

        Raises:
            ValueError: On truncation, an unknown segwit flag, or bytes left
                over after the locktime.
        """
        stream = BytesIO(data)
        version = _unpack(stream, "<i")
        n_inputs = read_varint(stream)
        has_witness = n_inputs == 0
        if has_witness:
            (flag,) = _take(stream, 1)
            if flag != 0x01:
                msg = f"Unsupported transaction flag: {flag:#x}"
                raise ValueError(msg)
            n_inputs = read_varint(stream)

        inputs = [_read_input(stream) for _ in range(n_inputs)]
        outputs = [_read_output(stream) for _ in range(read_varint(stream))]
        if has_witness:
            for inp in inputs:
                inp.witness = [_take_prefixed(stream) for _ in range(read_varint(stream))]
        locktime = _unpack(stream, "<I")

        if stream.read(1):
            msg = "Trailing bytes after transaction"
            raise ValueError(msg)
        return cls(version=version, inputs=inputs, outputs=outputs, locktime=locktime)

    # -- Signature hashes ---------------------------------------------------

    def _check_sighash_args(self, input_index: int, hashtype: int) -> None:
        if hashtype != SIGHASH_ALL:
            msg = f"Unsupported sighash type: {hashtype:#x}"
            raise ValueError(msg)
        if not 0 <= input_index < len(self.inputs):
            msg = f"Input index {input_index} out of range"
            raise IndexError(msg)

    def legacy_sighash(
        self, input_index: int, script_code: bytes, hashtype: int = SIGHASH_ALL
    ) -> bytes:
        """Pre-segwit digest: the signed input carries *script_code*, the rest are blank."""
        self._check_sighash_args(input_index, hashtype)
        parts = [struct.pack("<i", self.version), encode_varint(len(self.inputs))]
        parts.extend(
            inp.serialize(script_code if i == input_index else b"")
            for i, inp in enumerate(self.inputs)
        )
        parts.append(encode_varint(len(self.outputs)))
        parts.extend(out.serialize() for out in self.outputs)
        parts.append(struct.pack("<II", self.locktime, hashtype))
        return sha256d(b"".join(parts))

    def segwit_v0_sighash(
        self,
        input_index: int,
        script_code: bytes,
        value: int,
        hashtype: int = SIGHASH_ALL,
    ) -> bytes:
        """BIP143 digest for segwit v0 input *input_index* spending *value* sats."""
        self._check_sighash_args(input_index, hashtype)
        signed = self.inputs[input_index]
        prevouts = b"".join(inp.outpoint() for inp in self.inputs)
        sequences = b"".join(struct.pack("<I", inp.sequence) for inp in self.inputs)
        outputs = b"".join(out.serialize() for out in self.outputs)
        preimage = b"".join(
            (
                struct.pack("<i", self.version),
                sha256d(prevouts),
                sha256d(sequences),
                signed.outpoint(),
                _prefixed(script_code),
                struct.pack("<q", value),
                struct.pack("<I", signed.sequence),
                sha256d(outputs),
                struct.pack("<II", self.locktime, hashtype),
            )
        )
        return sha256d(preimage)
