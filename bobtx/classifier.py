"""Classification of decoded script parts."""

from __future__ import annotations

import base64
from dataclasses import dataclass

from .model import Cell
from .opcodes import opcode_name


def part_string(data: bytes) -> str:
    """UTF-8 view of ``data``; undecodable bytes become U+FFFD."""

    return data.decode("utf-8", errors="replace")


@dataclass(frozen=True)
class ClassifiedPart:
    """A script part with every representation that applies to it."""

    data: bytes
    op: int | None = None
    ops: str | None = None
    hex: str | None = None
    base64: str | None = None
    string: str | None = None

    @property
    def is_opcode(self) -> bool:
        return self.op is not None

    @property
    def chunk_hex(self) -> str:
        return self.data.hex()

    def to_cell(self, index: int, chunk_index: int) -> Cell:
        return Cell(
            index=index,
            chunk_index=chunk_index,
            hex=self.hex,
            base64=self.base64,
            string=self.string,
            op=self.op,
            ops=self.ops,
        )


def classify_part(data: bytes) -> ClassifiedPart:
    """Classify one part as opcode and/or data.

    Opcode-typed parts only expose their data views when the opcode byte is a
    printable character, so a literal such as ``"|"`` pushed as a single byte
    stays matchable by string even though it collides with ``OP_SWAP``.
    """

    op: int | None = None
    ops: str | None = None
    if len(data) == 1:
        ops = opcode_name(data[0])
        if ops is not None:
            op = data[0]

    if op is not None and not chr(op).isprintable():
        return ClassifiedPart(data=data, op=op, ops=ops)

    return ClassifiedPart(
        data=data,
        op=op,
        ops=ops,
        hex=data.hex(),
        base64=base64.b64encode(data).decode("ascii"),
        string=part_string(data),
    )
