"""BOB record types.

The ``to_dict`` methods produce the JSON wire shape consumed downstream, using
the short BOB field names (``h``, ``b``, ``s``, ``ii``, ``tape``, ``e`` ...).
Optional fields are omitted when unset; empty strings are kept.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Tuple

COMPACT_JSON_SEPARATORS = (",", ":")


@dataclass(frozen=True)
class Cell:
    """One retained unit of script data within a tape.

    A printable opcode byte carries both the opcode fields and the
    ``hex``/``base64``/``string`` views.
    """

    index: int
    chunk_index: int
    hex: str | None = None
    base64: str | None = None
    long_base64: str | None = None
    string: str | None = None
    long_string: str | None = None
    op: int | None = None
    ops: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for key, value in (
            ("h", self.hex),
            ("b", self.base64),
            ("lb", self.long_base64),
            ("s", self.string),
            ("ls", self.long_string),
        ):
            if value is not None:
                data[key] = value
        data["i"] = self.index
        data["ii"] = self.chunk_index
        if self.op is not None:
            data["op"] = self.op
        if self.ops is not None:
            data["ops"] = self.ops
        return data


@dataclass(frozen=True)
class Tape:
    index: int
    cells: Tuple[Cell, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {"cell": [cell.to_dict() for cell in self.cells], "i": self.index}


@dataclass(frozen=True)
class Economics:
    """Address, value and reference data attached to an input or output."""

    index: int
    address: str | None = None
    value: int | None = None
    txid: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.address is not None:
            data["a"] = self.address
        if self.value is not None:
            data["v"] = self.value
        data["i"] = self.index
        if self.txid is not None:
            data["h"] = self.txid
        return data


@dataclass(frozen=True)
class XPut:
    """Tapes of one input or output script plus its economic metadata."""

    index: int
    tapes: Tuple[Tape, ...] = ()
    e: Economics = field(default_factory=lambda: Economics(index=0))

    @property
    def cells(self) -> Tuple[Cell, ...]:
        return tuple(cell for tape in self.tapes for cell in tape.cells)

    def to_dict(self) -> dict[str, Any]:
        return {
            "i": self.index,
            "tape": [tape.to_dict() for tape in self.tapes],
            "e": self.e.to_dict(),
        }


@dataclass(frozen=True)
class Input(XPut):
    sequence: int = 0xFFFFFFFF

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["seq"] = self.sequence
        return data


@dataclass(frozen=True)
class Output(XPut):
    pass


@dataclass(frozen=True)
class BlockInfo:
    """Block height and timestamp; supplied by the caller, never computed."""

    height: int = 0
    time: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {"i": self.height, "t": self.time}


@dataclass(frozen=True)
class BobTransaction:
    txid: str
    inputs: Tuple[Input, ...] = ()
    outputs: Tuple[Output, ...] = ()
    lock_time: int = 0
    block: BlockInfo = field(default_factory=BlockInfo)

    def to_dict(self) -> dict[str, Any]:
        return {
            "in": [item.to_dict() for item in self.inputs],
            "out": [item.to_dict() for item in self.outputs],
            "tx": {"h": self.txid},
            "blk": self.block.to_dict(),
            "lock": self.lock_time,
        }

    def to_json(self, *, indent: int | None = None) -> str:
        if indent is None:
            return json.dumps(self.to_dict(), separators=COMPACT_JSON_SEPARATORS)
        return json.dumps(self.to_dict(), indent=indent)
