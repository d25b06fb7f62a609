"""Tape/cell splitter.

Walks the parts of one script in order, classifies each part, asks the rule
matcher whether it is a delimiter and builds the nested tape/cell structure.
All counters live on a :class:`_TapeBuilder` created per call, so concurrent or
consecutive splits never share state.
"""

from __future__ import annotations

import logging
from typing import List, Sequence, Tuple

from .classifier import ClassifiedPart, classify_part
from .model import Cell, Tape
from .rules import Include, SplitRule, match_rules, requirements_met
from .transforms import Transform, identity_transform

logger = logging.getLogger(__name__)


class TransformError(RuntimeError):
    """Raised when a caller supplied transform fails."""

    def __init__(self, chunk_index: int, message: str) -> None:
        super().__init__(f"transform failed at chunk {chunk_index}: {message}")
        self.chunk_index = chunk_index


class _TapeBuilder:
    def __init__(self, transform: Transform) -> None:
        self.transform = transform
        self.tapes: List[List[Cell]] = []
        self.tape_index = 0
        self.cell_index = 0
        self.prev_delimiter = False
        self.opened_right = False

    def advance(self) -> None:
        """Start a new group after a delimiter.

        The tape index only moves past a tape that actually exists, so runs of
        consecutive delimiters do not leave gaps. After a right-included
        delimiter the new tape already holds cell 0, so counting resumes at 1.
        """

        self.cell_index = 1 if self.opened_right else 0
        self.opened_right = False
        if len(self.tapes) > self.tape_index:
            self.tape_index += 1

    def make_cell(self, part: ClassifiedPart, chunk_index: int) -> Cell:
        cell = part.to_cell(self.cell_index, chunk_index)
        try:
            result = self.transform(cell, part.chunk_hex)
        except Exception as exc:
            raise TransformError(chunk_index, str(exc) or exc.__class__.__name__) from exc
        if not isinstance(result, Cell):
            raise TransformError(chunk_index, f"expected a Cell, got {type(result).__name__}")
        return result

    def add(self, part: ClassifiedPart, chunk_index: int) -> None:
        cell = self.make_cell(part, chunk_index)
        if len(self.tapes) == self.tape_index:
            self.tapes.append([])
        self.tapes[self.tape_index].append(cell)
        self.cell_index += 1

    def seal(self) -> None:
        if len(self.tapes) == self.tape_index:
            self.tapes.append([])

    def delimit(self, part: ClassifiedPart, chunk_index: int, include: Include | None) -> None:
        if include is None:
            self.cell_index = 0
        elif include is Include.LEFT:
            cell = self.make_cell(part, chunk_index)
            if self.tapes:
                self.tapes[-1].append(cell)
            else:
                self.tapes.append([cell])
            self.cell_index = 0
        elif include is Include.CENTER:
            self.seal()
            # slot 0 of the next group belongs to the dropped delimiter
            self.cell_index = 1
        elif include is Include.RIGHT:
            self.seal()
            self.cell_index = 0
            self.tapes.append([self.make_cell(part, chunk_index)])
            self.cell_index = 1
            self.opened_right = True

    def build(self) -> Tuple[Tape, ...]:
        return tuple(Tape(index=index, cells=tuple(cells)) for index, cells in enumerate(self.tapes))


def split_parts(
    parts: Sequence[bytes],
    rules: Sequence[SplitRule] = (),
    transform: Transform | None = None,
) -> Tuple[Tape, ...]:
    """Group ``parts`` into tapes wherever a split rule matches."""

    builder = _TapeBuilder(transform or identity_transform)
    seen_bytes: set[int] = set()

    for chunk_index, data in enumerate(parts):
        satisfied = requirements_met(rules, seen_bytes)
        if builder.prev_delimiter:
            builder.advance()

        part = classify_part(data)
        is_delimiter, include = match_rules(part, rules, satisfied)
        if is_delimiter:
            builder.delimit(part, chunk_index, include)
        else:
            builder.add(part, chunk_index)
        builder.prev_delimiter = is_delimiter

        if len(data) == 1:
            seen_bytes.add(data[0])

    tapes = builder.build()
    logger.debug("Split %d parts into %d tapes", len(parts), len(tapes))
    return tapes
