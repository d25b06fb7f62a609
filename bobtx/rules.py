"""Split rules and the delimiter matcher."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import AbstractSet, Any, Callable, Iterable, List, Sequence, Tuple

from .classifier import ClassifiedPart
from .opcodes import OP_RETURN, opcode_name, opcode_value


class Include(str, Enum):
    """Where a matched delimiter ends up relative to the tape boundary."""

    LEFT = "l"
    RIGHT = "r"
    CENTER = "c"


@dataclass(frozen=True)
class Token:
    """Pattern a delimiter must match: an opcode or a literal value."""

    op: int | None = None
    ops: str | None = None
    s: str | None = None
    b: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            key: value
            for key, value in (("op", self.op), ("ops", self.ops), ("s", self.s), ("b", self.b))
            if value is not None
        }


@dataclass(frozen=True)
class SplitRule:
    token: Token
    include: Include | None = None
    require: int | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"token": self.token.to_dict()}
        if self.include is not None:
            data["include"] = self.include.value
        if self.require is not None:
            data["require"] = self.require
        return data


def requirements_met(rules: Sequence[SplitRule], seen_bytes: AbstractSet[int]) -> List[bool]:
    """Evaluate each rule's ``require`` precondition.

    ``seen_bytes`` holds the values of every single-byte part that occurred
    earlier in the script.
    """

    return [rule.require is None or rule.require in seen_bytes for rule in rules]


def _rule_matches(rule: SplitRule, part: ClassifiedPart) -> bool:
    token = rule.token
    if part.is_opcode:
        return (
            (token.op is not None and token.op == part.op)
            or (token.ops is not None and token.ops == part.ops)
            or (token.s is not None and token.s.encode("utf-8") == bytes([part.op]))
        )
    return (token.s is not None and token.s == part.string) or (
        token.b is not None and token.b == part.base64
    )


def match_rules(
    part: ClassifiedPart, rules: Sequence[SplitRule], satisfied: Sequence[bool]
) -> Tuple[bool, Include | None]:
    """Return ``(is_delimiter, include)`` for ``part``.

    Every rule is checked; when several match, the last one listed decides the
    inclusion policy.
    """

    is_delimiter = False
    include: Include | None = None
    for rule_index, rule in enumerate(rules):
        if not satisfied[rule_index] or not _rule_matches(rule, part):
            continue
        is_delimiter = True
        include = rule.include
    return is_delimiter, include


def parse_split_rule(payload: Any, error_factory: Callable[[str], Exception]) -> SplitRule:
    """Convert a loosely-typed mapping into a :class:`SplitRule`."""

    if isinstance(payload, SplitRule):
        return payload
    if not isinstance(payload, dict):
        raise error_factory("split rule must be a mapping")

    token_block = payload.get("token")
    if not isinstance(token_block, dict) or not token_block:
        raise error_factory("split rule token must be a non-empty mapping")

    op = token_block.get("op")
    if op is not None:
        op = _coerce_opcode(op, "token.op", error_factory)
    ops = token_block.get("ops")
    if ops is not None:
        if not isinstance(ops, str) or opcode_value(ops) is None:
            raise error_factory(f"token.ops is not a known opcode name: {ops!r}")
        ops = opcode_name(opcode_value(ops))
    s = token_block.get("s")
    if s is not None and not isinstance(s, str):
        raise error_factory("token.s must be a string if provided")
    b = token_block.get("b")
    if b is not None and not isinstance(b, str):
        raise error_factory("token.b must be a base64 string if provided")
    if op is None and ops is None and s is None and b is None:
        raise error_factory("split rule token needs one of op, ops, s or b")

    include_raw = payload.get("include")
    include: Include | None = None
    if include_raw is not None:
        try:
            include = Include(str(include_raw).strip().lower())
        except ValueError as exc:
            raise error_factory(f"include must be one of l, r, c; got {include_raw!r}") from exc

    require = payload.get("require")
    if require is not None:
        require = _coerce_opcode(require, "require", error_factory)

    return SplitRule(token=Token(op=op, ops=ops, s=s, b=b), include=include, require=require)


def parse_split_rules(
    payload: Iterable[Any] | None, error_factory: Callable[[str], Exception]
) -> Tuple[SplitRule, ...]:
    if payload is None:
        return ()
    if isinstance(payload, (str, bytes, dict)):
        raise error_factory("split must be a list of rules")
    return tuple(parse_split_rule(item, error_factory) for item in payload)


def _coerce_opcode(raw: Any, label: str, error_factory: Callable[[str], Exception]) -> int:
    if isinstance(raw, bool):
        raise error_factory(f"{label} must be an opcode byte or name")
    if isinstance(raw, int):
        value = raw
    elif isinstance(raw, str):
        resolved = opcode_value(raw)
        if resolved is None:
            try:
                resolved = int(raw, 0)
            except ValueError as exc:
                raise error_factory(f"{label} is not a known opcode: {raw!r}") from exc
        value = resolved
    else:
        raise error_factory(f"{label} must be an opcode byte or name")
    if not 0 <= value <= 0xFF:
        raise error_factory(f"{label} must fit in one byte, got {value}")
    return value


# OP_RETURN closes the group it ends; "|" separates protocols inside the
# OP_RETURN payload and is dropped.
BOB_SPLIT_RULES: Tuple[SplitRule, ...] = (
    SplitRule(token=Token(op=OP_RETURN), include=Include.LEFT),
    SplitRule(token=Token(s="|"), require=OP_RETURN),
)
