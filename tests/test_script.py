from __future__ import annotations

import pytest

from bobtx.script import DecodeError, Mode, check_leading_opcode, decode_script, push_data, truncate_parts


def test_decode_script_splits_opcodes_and_pushes() -> None:
    script = b"\x00\x6a" + push_data(b"prefix1") + push_data(b"\x13\x37") + b"\xac"

    assert decode_script(script) == [b"\x00", b"\x6a", b"prefix1", b"\x13\x37", b"\xac"]


def test_decode_script_reads_pushdata_prefixes() -> None:
    small = b"x" * 100
    large = b"y" * 300

    parts = decode_script(push_data(small) + push_data(large))

    assert parts == [small, large]


def test_decode_script_rejects_truncated_push() -> None:
    with pytest.raises(DecodeError):
        decode_script(b"\x05ab")


def test_decode_script_rejects_truncated_length_prefix() -> None:
    with pytest.raises(DecodeError):
        decode_script(b"\x4d\x01")


def test_push_data_encodings() -> None:
    assert push_data(b"") == b"\x00"
    assert push_data(b"x" * 10) == b"\x0a" + b"x" * 10
    assert push_data(b"x" * 100).startswith(b"\x4c\x64")
    assert push_data(b"x" * 300)[:3] == b"\x4d" + (300).to_bytes(2, "little")
    assert push_data(b"x" * 70000)[:5] == b"\x4e" + (70000).to_bytes(4, "little")


def test_shallow_truncation_keeps_first_and_last_128_parts() -> None:
    parts = [str(i).encode() for i in range(300)]

    truncated = truncate_parts(parts, Mode.SHALLOW)

    assert len(truncated) == 256
    assert truncated[0] == b"0"
    assert truncated[127] == b"127"
    assert truncated[128] == b"172"
    assert truncated[-1] == b"299"


def test_deep_mode_and_small_scripts_are_untouched() -> None:
    parts = [str(i).encode() for i in range(300)]

    assert len(truncate_parts(parts, Mode.DEEP)) == 300
    assert len(truncate_parts(parts)) == 300
    assert len(truncate_parts(parts[:255], "shallow")) == 255


def test_check_leading_opcode() -> None:
    check_leading_opcode([b"\x6a", b"data"])
    check_leading_opcode([b"data"])
    check_leading_opcode([])

    with pytest.raises(DecodeError, match="invalid opcode: ba"):
        check_leading_opcode([b"\xba"])
    with pytest.raises(DecodeError):
        check_leading_opcode([b"\xff", b"data"])
