"""Script part decoding and the shallow/deep truncation policy.

A script is decoded into an ordered list of *parts*: data pushes yield their
payload bytes and every other opcode yields a single byte. No attempt is made
to interpret the script.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Sequence

from .opcodes import OP_INVALIDOPCODE, OP_PUSHDATA1, OP_PUSHDATA2, OP_PUSHDATA4, is_known_opcode

logger = logging.getLogger(__name__)

SHALLOW_PART_LIMIT = 255
SHALLOW_KEEP = 128
MAX_PUSH_SIZE = 0xFFFFFFFF


class DecodeError(ValueError):
    """Raised when transaction or script bytes are malformed."""


class Mode(str, Enum):
    """How much of a large script is processed."""

    DEEP = "deep"
    SHALLOW = "shallow"


def decode_script(script: bytes) -> list[bytes]:
    """Split ``script`` into opcode and pushdata parts."""

    parts: list[bytes] = []
    cursor = 0
    length = len(script)

    while cursor < length:
        opcode = script[cursor]
        cursor += 1

        if 0x01 <= opcode <= 0x4B:
            size = opcode
        elif opcode == OP_PUSHDATA1:
            size = _read_length(script, cursor, 1)
            cursor += 1
        elif opcode == OP_PUSHDATA2:
            size = _read_length(script, cursor, 2)
            cursor += 2
        elif opcode == OP_PUSHDATA4:
            size = _read_length(script, cursor, 4)
            cursor += 4
        else:
            parts.append(bytes([opcode]))
            continue

        if cursor + size > length:
            raise DecodeError(
                f"push of {size} bytes at offset {cursor} runs past end of script ({length} bytes)"
            )
        parts.append(script[cursor:cursor + size])
        cursor += size

    return parts


def _read_length(script: bytes, cursor: int, width: int) -> int:
    if cursor + width > len(script):
        raise DecodeError(f"pushdata length prefix truncated at offset {cursor}")
    return int.from_bytes(script[cursor:cursor + width], "little")


def push_data(data: bytes) -> bytes:
    """Return the minimal push encoding for ``data``."""

    size = len(data)
    if size == 0:
        return b"\x00"
    if size <= 0x4B:
        return bytes([size]) + data
    if size <= 0xFF:
        return bytes([OP_PUSHDATA1, size]) + data
    if size <= 0xFFFF:
        return bytes([OP_PUSHDATA2]) + size.to_bytes(2, "little") + data
    if size <= MAX_PUSH_SIZE:
        return bytes([OP_PUSHDATA4]) + size.to_bytes(4, "little") + data
    raise ValueError(f"push of {size} bytes exceeds the PUSHDATA4 limit")


def truncate_parts(parts: Sequence[bytes], mode: Mode | str | None = None) -> list[bytes]:
    """Apply the shallow truncation policy to ``parts``.

    Outside of deep mode a script with more than 255 parts is reduced to its
    first 128 and last 128 parts, so prefix and suffix patterns survive while
    the middle of very large scripts is skipped.
    """

    if mode is None or Mode(mode) is Mode.DEEP or len(parts) <= SHALLOW_PART_LIMIT:
        return list(parts)
    logger.debug(
        "Truncating script of %d parts to first/last %d", len(parts), SHALLOW_KEEP
    )
    return list(parts[:SHALLOW_KEEP]) + list(parts[-SHALLOW_KEEP:])


def check_leading_opcode(parts: Sequence[bytes]) -> None:
    """Reject scripts that begin with an unassigned or invalid opcode byte."""

    if not parts or len(parts[0]) != 1:
        return
    value = parts[0][0]
    if value == OP_INVALIDOPCODE or not is_known_opcode(value):
        raise DecodeError(f"script begins with invalid opcode: {value:02x}")
