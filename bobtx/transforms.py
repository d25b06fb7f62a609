"""Cell transform hooks.

A transform receives every retained cell together with the hex of the part it
came from and returns the cell to keep. Raising aborts the parse.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Callable

from .model import Cell

Transform = Callable[[Cell, str], Cell]

DEFAULT_LONG_VALUE_LIMIT = 512


def identity_transform(cell: Cell, chunk_hex: str) -> Cell:
    return cell


def promote_long_values(limit: int = DEFAULT_LONG_VALUE_LIMIT) -> Transform:
    """Build a transform that moves oversized values to ``ls``/``lb``.

    Cells whose raw part is longer than ``limit`` bytes get their ``string``
    and ``base64`` moved into ``long_string`` and ``long_base64`` so consumers
    can index short values without dragging large payloads along.
    """

    if limit < 0:
        raise ValueError("limit must be non-negative")

    def transform(cell: Cell, chunk_hex: str) -> Cell:
        if len(chunk_hex) // 2 <= limit:
            return cell
        return replace(
            cell,
            long_string=cell.string,
            long_base64=cell.base64,
            string=None,
            base64=None,
        )

    return transform
