from __future__ import annotations

import hashlib

import pytest

from bobtx.script import DecodeError
from bobtx.tx import Transaction, TxInput, TxOutput, decode_transaction, ser_compact_size

EXAMPLE_TX_HEX = (
    "0100000000010000000000000000"
    "33006a07707265666978310c6578616d706c652064617461021337017c0770726566697832"
    "0e6578616d706c6520646174612032"
    "00000000"
)

P2PKH_SCRIPT = bytes.fromhex("76a914751e76e8199196d454941c45d1b3a323f1433bd688ac")


def _sample_transaction() -> Transaction:
    return Transaction(
        version=1,
        inputs=[
            TxInput(
                prev_txid="ab" * 32,
                prev_index=3,
                unlocking_script=b"\x01\x02",
                sequence=0xFFFFFFFE,
                previous_satoshis=5000,
                previous_locking_script=P2PKH_SCRIPT,
            )
        ],
        outputs=[TxOutput(satoshis=4000, locking_script=P2PKH_SCRIPT)],
        lock_time=10,
    )


def test_decode_example_transaction() -> None:
    tx = decode_transaction(EXAMPLE_TX_HEX)

    assert tx.version == 1
    assert tx.inputs == []
    assert len(tx.outputs) == 1
    assert tx.outputs[0].satoshis == 0
    assert tx.outputs[0].locking_script[:2] == b"\x00\x6a"
    assert len(tx.outputs[0].locking_script) == 0x33
    assert tx.lock_time == 0
    assert not tx.is_extended


def test_txid_is_reversed_double_sha256() -> None:
    raw = bytes.fromhex(EXAMPLE_TX_HEX)
    expected = hashlib.sha256(hashlib.sha256(raw).digest()).digest()[::-1].hex()

    assert decode_transaction(EXAMPLE_TX_HEX).txid() == expected


def test_standard_serialization_round_trips() -> None:
    assert decode_transaction(EXAMPLE_TX_HEX).to_hex() == EXAMPLE_TX_HEX


def test_extended_format_carries_previous_outputs() -> None:
    tx = _sample_transaction()
    extended_hex = tx.to_hex(extended=True)

    assert extended_hex[8:20] == "0000000000ef"

    decoded = decode_transaction(extended_hex)

    assert decoded.is_extended
    assert decoded.inputs[0].previous_satoshis == 5000
    assert decoded.inputs[0].previous_locking_script == P2PKH_SCRIPT
    assert decoded.inputs[0].prev_txid == "ab" * 32
    assert decoded.inputs[0].sequence == 0xFFFFFFFE
    assert decoded.txid() == tx.txid()


def test_extended_serialization_needs_previous_outputs() -> None:
    tx = _sample_transaction()
    tx.inputs[0].previous_satoshis = None

    with pytest.raises(ValueError):
        tx.serialize(extended=True)


def test_decode_rejects_bad_hex() -> None:
    with pytest.raises(DecodeError):
        decode_transaction("zz")


def test_decode_rejects_truncated_transaction() -> None:
    with pytest.raises(DecodeError):
        decode_transaction(EXAMPLE_TX_HEX[:-10])


def test_decode_rejects_trailing_bytes() -> None:
    with pytest.raises(DecodeError, match="trailing"):
        decode_transaction(EXAMPLE_TX_HEX + "00")


def test_ser_compact_size() -> None:
    assert ser_compact_size(252) == b"\xfc"
    assert ser_compact_size(253) == b"\xfd\xfd\x00"
    assert ser_compact_size(0x10000) == b"\xfe\x00\x00\x01\x00"
