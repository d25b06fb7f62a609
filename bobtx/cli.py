"""Command line interface for bobtx.

``bobtx parse`` turns a raw transaction (hex, file or txid fetched over RPC)
into BOB JSON; ``bobtx script`` splits a single script hex into tapes.
"""

from __future__ import annotations

import argparse
import binascii
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, Sequence

from .address import AddressDerivationError
from .config import (
    ConfigurationError,
    ParseConfig,
    load_parse_config,
    load_rpc_config,
    set_default_config_path,
)
from .model import COMPACT_JSON_SEPARATORS, BlockInfo
from .parser import parse, split_script
from .rpc_client import NodeRPCClient, RPCError, RPCTransportError, format_rpc_hint
from .rules import BOB_SPLIT_RULES
from .script import DecodeError
from .splitter import TransformError

logger = logging.getLogger(__name__)


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Convert raw transactions into BOB tapes")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--config",
        default=None,
        help="YAML config with parse/rpc sections (default: ~/.bobtx.yaml if present)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    parse_parser = subparsers.add_parser("parse", help="parse a transaction into BOB JSON")
    source = parse_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--hex", dest="raw_hex", help="Raw transaction hex")
    source.add_argument("--file", help="File containing raw transaction hex ('-' for stdin)")
    source.add_argument("--txid", help="Fetch the transaction from the configured node")
    _add_split_arguments(parse_parser)
    parse_parser.add_argument("--block-height", type=int, default=None, help="Block height to attach")
    parse_parser.add_argument("--block-time", type=int, default=None, help="Block timestamp to attach")
    parse_parser.add_argument("--rpc-endpoint", default=None, help="Override the node RPC URL")

    script_parser = subparsers.add_parser("script", help="split a single script hex into tapes")
    script_parser.add_argument("script_hex", help="Script bytes as hex")
    _add_split_arguments(script_parser)

    return parser


def _add_split_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--bob",
        action="store_true",
        help="Split on OP_RETURN (kept on the left) and '|' after OP_RETURN",
    )
    parser.add_argument("--mode", choices=["deep", "shallow"], default=None, help="Truncation mode")
    parser.add_argument("--network", choices=["mainnet", "testnet"], default=None)
    parser.add_argument(
        "--promote-long",
        type=int,
        default=None,
        metavar="BYTES",
        help="Move string/base64 of parts larger than BYTES into ls/lb",
    )
    parser.add_argument(
        "--reject-unknown-opcode",
        action="store_true",
        default=None,
        help="Fail on scripts that begin with an unassigned opcode byte",
    )
    parser.add_argument("--indent", type=int, default=None, help="Pretty-print JSON output")


def _parse_config_from_args(args: argparse.Namespace) -> ParseConfig:
    overrides: dict[str, Any] = {
        "mode": args.mode,
        "network": args.network,
        "promote_long_values": args.promote_long,
        "reject_unknown_leading_opcode": args.reject_unknown_opcode,
    }
    config = load_parse_config(overrides=overrides)
    if args.bob:
        config = replace(config, split=BOB_SPLIT_RULES + tuple(config.split))
    return config


def _read_raw_hex(args: argparse.Namespace) -> str:
    if args.raw_hex:
        return args.raw_hex.strip()
    if args.file == "-":
        return sys.stdin.read().strip()
    path = Path(args.file)
    if not path.exists():
        raise CLIError(f"transaction file not found: {path}")
    return path.read_text().strip()


def _dump(payload: Any, indent: int | None) -> str:
    if indent is None:
        return json.dumps(payload, separators=COMPACT_JSON_SEPARATORS)
    return json.dumps(payload, indent=indent)


def cmd_parse(args: argparse.Namespace) -> None:
    config = _parse_config_from_args(args)

    block: BlockInfo | None = None
    if args.txid:
        if args.rpc_endpoint:
            client = NodeRPCClient(load_rpc_config(overrides={"endpoint": args.rpc_endpoint}))
        else:
            client = NodeRPCClient.from_env()
        try:
            raw_hex, block = client.fetch_transaction(args.txid)
        except RPCError as exc:
            hint = format_rpc_hint(exc)
            raise CLIError(f"{exc}\nHint: {hint}" if hint else str(exc)) from exc
    else:
        raw_hex = _read_raw_hex(args)

    if args.block_height is not None or args.block_time is not None:
        base = block or BlockInfo()
        block = BlockInfo(
            height=args.block_height if args.block_height is not None else base.height,
            time=args.block_time if args.block_time is not None else base.time,
        )

    record = parse(replace(config, raw_tx_hex=raw_hex, block=block))
    logger.info(
        "Parsed %s: %d inputs, %d outputs", record.txid, len(record.inputs), len(record.outputs)
    )
    print(_dump(record.to_dict(), args.indent))


def cmd_script(args: argparse.Namespace) -> None:
    config = _parse_config_from_args(args)
    try:
        script = binascii.unhexlify(args.script_hex.strip())
    except (binascii.Error, ValueError) as exc:
        raise CLIError(f"script is not valid hex: {exc}") from exc
    tapes = split_script(script, config)
    print(_dump([tape.to_dict() for tape in tapes], args.indent))


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    set_default_config_path(args.config)
    try:
        if args.command == "parse":
            cmd_parse(args)
        elif args.command == "script":
            cmd_script(args)
        else:  # pragma: no cover - argparse enforces choices
            raise CLIError(f"Unknown command: {args.command}")
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except (
        CLIError,
        ConfigurationError,
        DecodeError,
        TransformError,
        AddressDerivationError,
        RPCError,
        RPCTransportError,
    ) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main()
