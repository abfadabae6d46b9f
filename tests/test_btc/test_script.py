"""Tests for script building and parsing — btc/script.py."""

from __future__ import annotations

import pytest

from glacier_wallet.btc.script import (
    OpCode,
    ScriptType,
    detect_script_type,
    encode_script_number,
    null_data_payload,
    op_return_script,
    p2pkh_lock_script,
    p2sh_lock_script,
    p2wpkh_lock_script,
    parse_script,
    push_data,
    push_number,
)

_H20 = bytes(range(20))


class TestScriptNumbers:
    @pytest.mark.parametrize(
        ("n", "encoded"),
        [
            (0, ""),
            (1, "01"),
            (127, "7f"),
            (128, "8000"),
            (255, "ff00"),
            (256, "0001"),
            (-1, "81"),
            (-128, "8080"),
            (500_000, "20a107"),
        ],
    )
    def test_encode(self, n: int, encoded: str) -> None:
        assert encode_script_number(n).hex() == encoded


class TestPushes:
    def test_push_small(self) -> None:
        assert push_data(b"\xaa" * 3) == b"\x03\xaa\xaa\xaa"

    def test_push_empty(self) -> None:
        assert push_data(b"") == b"\x00"

    def test_pushdata1(self) -> None:
        script = push_data(b"\x01" * 80)
        assert script[:2] == bytes([OpCode.OP_PUSHDATA1, 80])

    def test_push_number_small_ints(self) -> None:
        assert push_number(0) == bytes([OpCode.OP_0])
        assert push_number(1) == bytes([OpCode.OP_1])
        assert push_number(16) == bytes([OpCode.OP_16])
        assert push_number(-1) == bytes([OpCode.OP_1NEGATE])

    def test_push_number_large(self) -> None:
        assert push_number(17) == b"\x01\x11"
        assert push_number(150) == b"\x02\x96\x00"


class TestTemplates:
    def test_p2pkh(self) -> None:
        script = p2pkh_lock_script(_H20)
        assert len(script) == 25
        assert detect_script_type(script) == ScriptType.P2PKH

    def test_p2wpkh(self) -> None:
        script = p2wpkh_lock_script(_H20)
        assert script == b"\x00\x14" + _H20
        assert detect_script_type(script) == ScriptType.P2WPKH

    def test_p2sh(self) -> None:
        script = p2sh_lock_script(_H20)
        assert script == b"\xa9\x14" + _H20 + b"\x87"
        assert detect_script_type(script) == ScriptType.P2SH

    def test_wrong_hash_length(self) -> None:
        with pytest.raises(ValueError, match="20 bytes"):
            p2sh_lock_script(b"\x00" * 19)

    def test_unknown(self) -> None:
        assert detect_script_type(b"\x51") == ScriptType.UNKNOWN


class TestParsing:
    def test_parse_mixed(self) -> None:
        script = bytes([OpCode.OP_DUP]) + push_data(b"\x01\x02") + bytes([OpCode.OP_CHECKSIG])
        assert parse_script(script) == [OpCode.OP_DUP, b"\x01\x02", OpCode.OP_CHECKSIG]

    def test_parse_truncated_push(self) -> None:
        with pytest.raises(ValueError, match="exceeds"):
            parse_script(b"\x05\x01\x02")

    def test_null_data_payload(self) -> None:
        script = op_return_script(b"hello")
        assert detect_script_type(script) == ScriptType.NULL_DATA
        assert null_data_payload(script) == b"hello"

    def test_null_data_payload_last_push(self) -> None:
        assert null_data_payload(op_return_script(b"a", b"b")) == b"b"

    def test_null_data_payload_not_null_data(self) -> None:
        assert null_data_payload(p2wpkh_lock_script(_H20)) is None

    def test_null_data_payload_bare_op_return(self) -> None:
        assert null_data_payload(bytes([OpCode.OP_RETURN])) is None

    def test_null_data_payload_malformed(self) -> None:
        assert null_data_payload(b"\x6a\x09abc") is None
