"""Entry point turning a raw transaction into a BOB record.

Each input and output script is decoded into parts, optionally truncated,
split into tapes and then merged with its economic metadata. Inputs and
outputs keep their original order.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import List, Sequence

from .address import address_from_public_key, script_addresses
from .config import ConfigurationError, ParseConfig, coerce_mode, coerce_network
from .model import BlockInfo, BobTransaction, Economics, Input, Output, Tape
from .script import check_leading_opcode, decode_script, truncate_parts
from .splitter import split_parts
from .tx import Transaction, TxInput, TxOutput, decode_transaction

logger = logging.getLogger(__name__)

COMPRESSED_PUBKEY_SIZE = 33
COINBASE_PREV_TXID = "00" * 32
COINBASE_PREV_INDEX = 0xFFFFFFFF


def parse(config: ParseConfig) -> BobTransaction:
    """Parse the transaction described by ``config`` into BOB format."""

    config = _validated(config)
    transaction = _resolve_transaction(config)
    inputs = [build_input(item, index, config) for index, item in enumerate(transaction.inputs)]
    outputs = [build_output(item, index, config) for index, item in enumerate(transaction.outputs)]

    record = BobTransaction(
        txid=transaction.txid(),
        inputs=tuple(inputs),
        outputs=tuple(outputs),
        lock_time=transaction.lock_time,
        block=config.block or BlockInfo(),
    )
    logger.debug(
        "Parsed %s with %d inputs and %d outputs", record.txid, len(inputs), len(outputs)
    )
    return record


def _validated(config: ParseConfig) -> ParseConfig:
    # configs built in code skip the loader's checks
    return replace(config, mode=coerce_mode(config.mode), network=coerce_network(config.network))


def _resolve_transaction(config: ParseConfig) -> Transaction:
    if config.transaction is not None:
        return config.transaction
    if not config.raw_tx_hex:
        raise ConfigurationError("raw tx must be set: provide a transaction or non-empty raw_tx_hex")
    return decode_transaction(config.raw_tx_hex)


def _decode(script: bytes | None, config: ParseConfig) -> List[bytes]:
    if not script:
        return []
    parts = decode_script(script)
    if config.reject_unknown_leading_opcode:
        check_leading_opcode(parts)
    return parts


def _tapes(parts: Sequence[bytes], config: ParseConfig) -> tuple[Tape, ...]:
    return split_parts(truncate_parts(parts, config.mode), config.split, config.transform)


def split_script(script: bytes | None, config: ParseConfig) -> tuple[Tape, ...]:
    """Split a single script with the rules, mode and transform of ``config``."""

    config = _validated(config)
    return _tapes(_decode(script, config), config)


def input_address(parts: Sequence[bytes], network: str = "mainnet") -> str | None:
    """Derive the spender's address from a ``<sig> <pubkey>`` unlocking script.

    Scripts of exactly two parts, or of more parts whose second part is a
    compressed public key, are treated as signature plus public key. Any other
    shape has no address. Derivation errors propagate.
    """

    if len(parts) == 2 or (len(parts) > 2 and len(parts[1]) == COMPRESSED_PUBKEY_SIZE):
        return address_from_public_key(parts[1], network)
    return None


def is_coinbase(tx_input: TxInput) -> bool:
    return tx_input.prev_txid == COINBASE_PREV_TXID and tx_input.prev_index == COINBASE_PREV_INDEX


def build_input(tx_input: TxInput, index: int, config: ParseConfig) -> Input:
    parts = _decode(tx_input.unlocking_script, config)
    # coinbase data is arbitrary, never <sig> <pubkey>
    address = None if is_coinbase(tx_input) else input_address(parts, config.network)
    return Input(
        index=index,
        tapes=_tapes(parts, config),
        e=Economics(
            index=tx_input.prev_index,
            address=address,
            value=tx_input.previous_satoshis,
            txid=tx_input.prev_txid,
        ),
        sequence=tx_input.sequence,
    )


def build_output(tx_output: TxOutput, index: int, config: ParseConfig) -> Output:
    parts = _decode(tx_output.locking_script, config)
    addresses = script_addresses(tx_output.locking_script, config.network)
    return Output(
        index=index,
        tapes=_tapes(parts, config),
        e=Economics(
            index=index,
            address=addresses[0] if addresses else None,
            value=tx_output.satoshis,
        ),
    )
