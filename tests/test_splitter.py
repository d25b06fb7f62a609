from __future__ import annotations

import threading
from dataclasses import replace

import pytest

from bobtx.model import Cell, Tape
from bobtx.rules import Include, SplitRule, Token
from bobtx.splitter import TransformError, split_parts
from bobtx.transforms import promote_long_values

RETURN_PARTS = [b"a", b"\x6a", b"b", b"c"]


def _shape(tapes: tuple[Tape, ...]) -> list[list[int]]:
    return [[cell.chunk_index for cell in tape.cells] for tape in tapes]


def _rules(include: Include | None) -> list[SplitRule]:
    return [SplitRule(Token(op=0x6A), include)]


def test_empty_script_has_no_tapes() -> None:
    assert split_parts([], _rules(Include.LEFT)) == ()


def test_no_matching_rule_gives_single_tape() -> None:
    parts = [b"one", b"\x00", b"two", b"\x76"]

    tapes = split_parts(parts, [SplitRule(Token(s="absent"))])

    assert len(tapes) == 1
    assert tapes[0].index == 0
    assert [cell.index for cell in tapes[0].cells] == [0, 1, 2, 3]
    assert [cell.chunk_index for cell in tapes[0].cells] == [0, 1, 2, 3]


def test_include_left_closes_current_tape() -> None:
    tapes = split_parts(RETURN_PARTS, _rules(Include.LEFT))

    assert _shape(tapes) == [[0, 1], [2, 3]]
    assert tapes[0].cells[1].ops == "OP_RETURN"
    assert tapes[0].cells[1].index == 1
    assert [cell.index for cell in tapes[1].cells] == [0, 1]


def test_include_right_opens_next_tape() -> None:
    tapes = split_parts(RETURN_PARTS, _rules(Include.RIGHT))

    assert _shape(tapes) == [[0], [1, 2, 3]]
    assert tapes[1].cells[0].op == 0x6A
    assert [tape.index for tape in tapes] == [0, 1]


def test_include_right_numbers_cells_from_zero() -> None:
    tapes = split_parts(RETURN_PARTS, _rules(Include.RIGHT))

    assert [[cell.index for cell in tape.cells] for tape in tapes] == [[0], [0, 1, 2]]


def test_trailing_and_repeated_right_delimiters() -> None:
    trailing = split_parts([b"a", b"b", b"\x6a"], _rules(Include.RIGHT))
    repeated = split_parts([b"a", b"\x6a", b"\x6a", b"b"], _rules(Include.RIGHT))

    assert [[(cell.chunk_index, cell.index) for cell in tape.cells] for tape in trailing] == [
        [(0, 0), (1, 1)],
        [(2, 0)],
    ]
    assert [[(cell.chunk_index, cell.index) for cell in tape.cells] for tape in repeated] == [
        [(0, 0)],
        [(1, 0)],
        [(2, 0), (3, 1)],
    ]


def test_include_center_drops_delimiter() -> None:
    tapes = split_parts(RETURN_PARTS, _rules(Include.CENTER))

    assert _shape(tapes) == [[0], [2, 3]]


def test_absent_include_drops_delimiter() -> None:
    tapes = split_parts(RETURN_PARTS, _rules(None))

    assert _shape(tapes) == [[0], [2, 3]]
    assert [cell.index for cell in tapes[1].cells] == [0, 1]


def test_center_retains_one_cell_fewer_than_left() -> None:
    parts = [b"a", b"\x6a", b"b", b"\x6a", b"c"]

    left = split_parts(parts, _rules(Include.LEFT))
    center = split_parts(parts, _rules(Include.CENTER))

    def count(tapes: tuple[Tape, ...]) -> int:
        return sum(len(tape.cells) for tape in tapes)

    assert count(left) == len(parts)
    assert count(center) == count(left) - 2


def test_consecutive_delimiters_do_not_skip_tape_indices() -> None:
    tapes = split_parts([b"a", b"\x6a", b"\x6a", b"\x6a", b"b"], _rules(None))

    assert _shape(tapes) == [[0], [4]]
    assert [tape.index for tape in tapes] == [0, 1]


def test_leading_delimiter() -> None:
    assert _shape(split_parts([b"\x6a", b"b"], _rules(Include.LEFT))) == [[0], [1]]
    assert _shape(split_parts([b"\x6a", b"b"], _rules(None))) == [[1]]


def test_require_only_applies_after_opcode_seen() -> None:
    rules = [SplitRule(Token(s="|"), require=0x6A)]

    tapes = split_parts([b"|", b"\x6a", b"|", b"x"], rules)

    assert _shape(tapes) == [[0, 1], [3]]


def test_bob_rules_split_multiple_protocols() -> None:
    rules = [
        SplitRule(Token(op=0x6A), Include.LEFT),
        SplitRule(Token(s="|"), require=0x6A),
    ]
    parts = [b"\x00", b"\x6a", b"1prefix", b"data", b"|", b"2prefix", b"more"]

    tapes = split_parts(parts, rules)

    assert _shape(tapes) == [[0, 1], [2, 3], [5, 6]]
    assert tapes[2].cells[0].string == "2prefix"


def test_transform_is_applied_to_every_retained_cell() -> None:
    seen: list[tuple[int, str]] = []

    def transform(cell: Cell, chunk_hex: str) -> Cell:
        seen.append((cell.chunk_index, chunk_hex))
        return replace(cell, string=(cell.string or "").upper())

    tapes = split_parts(RETURN_PARTS, _rules(Include.CENTER), transform)

    assert seen == [(0, "61"), (2, "62"), (3, "63")]
    assert tapes[1].cells[0].string == "B"


def test_transform_failure_aborts_split() -> None:
    def transform(cell: Cell, chunk_hex: str) -> Cell:
        if cell.chunk_index == 2:
            raise RuntimeError("boom")
        return cell

    with pytest.raises(TransformError, match="chunk 2: boom") as excinfo:
        split_parts(RETURN_PARTS, (), transform)
    assert excinfo.value.chunk_index == 2


def test_transform_must_return_a_cell() -> None:
    with pytest.raises(TransformError):
        split_parts([b"a"], (), lambda cell, chunk_hex: None)


def test_long_values_are_promoted() -> None:
    big = b"x" * 513
    small = b"y" * 512

    tapes = split_parts([big, small], (), promote_long_values())
    long_cell, short_cell = tapes[0].cells

    assert long_cell.string is None
    assert long_cell.base64 is None
    assert long_cell.long_string == "x" * 513
    assert long_cell.long_base64 is not None
    assert long_cell.hex == big.hex()
    assert "ls" in long_cell.to_dict() and "s" not in long_cell.to_dict()
    assert short_cell.string == "y" * 512
    assert short_cell.long_string is None


def test_promote_long_values_rejects_negative_limit() -> None:
    with pytest.raises(ValueError):
        promote_long_values(-1)


def test_concurrent_splits_do_not_share_state() -> None:
    rules = _rules(Include.LEFT)
    expected = split_parts(RETURN_PARTS * 20, rules)
    results: list[tuple[Tape, ...]] = []

    def worker() -> None:
        for _ in range(20):
            results.append(split_parts(RETURN_PARTS * 20, rules))

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(results) == 80
    assert all(result == expected for result in results)
