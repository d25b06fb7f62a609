"""Raw transaction decoding and serialization.

Both the standard wire format and the BSV Extended Format (BIP-239 style
``0000000000ef`` marker after the version) are understood. Extended
transactions carry the previous output's satoshis and locking script on every
input, which lets callers report input values without a UTXO lookup.
"""

from __future__ import annotations

import binascii
import hashlib
import logging
import struct
from dataclasses import dataclass, field
from typing import List

from .script import DecodeError

logger = logging.getLogger(__name__)

EXTENDED_FORMAT_MARKER = b"\x00\x00\x00\x00\x00\xef"


def double_sha256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def ser_compact_size(n: int) -> bytes:
    if n < 253:
        return bytes([n])
    if n <= 0xFFFF:
        return b"\xfd" + n.to_bytes(2, "little")
    if n <= 0xFFFFFFFF:
        return b"\xfe" + n.to_bytes(4, "little")
    return b"\xff" + n.to_bytes(8, "little")


@dataclass
class TxInput:
    prev_txid: str
    prev_index: int
    unlocking_script: bytes = b""
    sequence: int = 0xFFFFFFFF
    previous_satoshis: int | None = None
    previous_locking_script: bytes | None = None


@dataclass
class TxOutput:
    satoshis: int
    locking_script: bytes = b""


@dataclass
class Transaction:
    """Decoded transaction with just enough structure for BOB assembly."""

    version: int = 1
    inputs: List[TxInput] = field(default_factory=list)
    outputs: List[TxOutput] = field(default_factory=list)
    lock_time: int = 0

    @property
    def is_extended(self) -> bool:
        return bool(self.inputs) and all(
            item.previous_satoshis is not None and item.previous_locking_script is not None
            for item in self.inputs
        )

    def serialize(self, *, extended: bool = False) -> bytes:
        """Encode the transaction; ``extended`` requires previous output data."""

        if extended and not self.is_extended:
            raise ValueError("extended serialization needs previous satoshis and scripts on every input")

        chunks = [struct.pack("<I", self.version & 0xFFFFFFFF)]
        if extended:
            chunks.append(EXTENDED_FORMAT_MARKER)
        chunks.append(ser_compact_size(len(self.inputs)))
        for item in self.inputs:
            chunks.append(bytes.fromhex(item.prev_txid)[::-1])
            chunks.append(struct.pack("<I", item.prev_index))
            chunks.append(ser_compact_size(len(item.unlocking_script)))
            chunks.append(item.unlocking_script)
            chunks.append(struct.pack("<I", item.sequence))
            if extended:
                chunks.append(struct.pack("<Q", item.previous_satoshis))
                chunks.append(ser_compact_size(len(item.previous_locking_script)))
                chunks.append(item.previous_locking_script)
        chunks.append(ser_compact_size(len(self.outputs)))
        for output in self.outputs:
            chunks.append(struct.pack("<Q", output.satoshis))
            chunks.append(ser_compact_size(len(output.locking_script)))
            chunks.append(output.locking_script)
        chunks.append(struct.pack("<I", self.lock_time))
        return b"".join(chunks)

    def to_hex(self, *, extended: bool = False) -> str:
        return self.serialize(extended=extended).hex()

    def txid(self) -> str:
        """Return the transaction id as displayed by block explorers."""

        return double_sha256(self.serialize())[::-1].hex()


class _Reader:
    """Cursor over raw transaction bytes."""

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.cursor = 0

    def read(self, n: int) -> bytes:
        if self.cursor + n > len(self.data):
            raise DecodeError(
                f"read past end: need {n} bytes at offset {self.cursor}, have {len(self.data)}"
            )
        result = self.data[self.cursor:self.cursor + n]
        self.cursor += n
        return result

    def read_uint32(self) -> int:
        return struct.unpack("<I", self.read(4))[0]

    def read_uint64(self) -> int:
        return struct.unpack("<Q", self.read(8))[0]

    def read_compact_size(self) -> int:
        first = self.read(1)[0]
        if first < 0xFD:
            return first
        if first == 0xFD:
            return struct.unpack("<H", self.read(2))[0]
        if first == 0xFE:
            return self.read_uint32()
        return self.read_uint64()

    def read_var_bytes(self) -> bytes:
        return self.read(self.read_compact_size())

    def peek(self, n: int) -> bytes:
        return self.data[self.cursor:self.cursor + n]

    def remaining(self) -> int:
        return len(self.data) - self.cursor


def decode_transaction(raw_hex: str) -> Transaction:
    """Decode a hex encoded transaction in standard or extended format."""

    try:
        raw = binascii.unhexlify(raw_hex.strip())
    except (binascii.Error, ValueError) as exc:
        raise DecodeError(f"transaction is not valid hex: {exc}") from exc
    return decode_transaction_bytes(raw)


def decode_transaction_bytes(raw: bytes) -> Transaction:
    reader = _Reader(raw)
    version = reader.read_uint32()

    extended = reader.peek(len(EXTENDED_FORMAT_MARKER)) == EXTENDED_FORMAT_MARKER
    if extended:
        reader.read(len(EXTENDED_FORMAT_MARKER))

    inputs: List[TxInput] = []
    for _ in range(reader.read_compact_size()):
        prev_txid = reader.read(32)[::-1].hex()
        prev_index = reader.read_uint32()
        unlocking_script = reader.read_var_bytes()
        sequence = reader.read_uint32()
        previous_satoshis: int | None = None
        previous_locking_script: bytes | None = None
        if extended:
            previous_satoshis = reader.read_uint64()
            previous_locking_script = reader.read_var_bytes()
        inputs.append(
            TxInput(
                prev_txid=prev_txid,
                prev_index=prev_index,
                unlocking_script=unlocking_script,
                sequence=sequence,
                previous_satoshis=previous_satoshis,
                previous_locking_script=previous_locking_script,
            )
        )

    outputs: List[TxOutput] = []
    for _ in range(reader.read_compact_size()):
        satoshis = reader.read_uint64()
        outputs.append(TxOutput(satoshis=satoshis, locking_script=reader.read_var_bytes()))

    lock_time = reader.read_uint32()
    if reader.remaining():
        raise DecodeError(f"{reader.remaining()} unexpected trailing bytes after lock time")

    logger.debug(
        "Decoded %s transaction with %d inputs and %d outputs",
        "extended" if extended else "standard",
        len(inputs),
        len(outputs),
    )
    return Transaction(version=version, inputs=inputs, outputs=outputs, lock_time=lock_time)
