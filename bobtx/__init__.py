"""BOB transaction parser package."""

from .address import AddressDerivationError, address_from_public_key, script_addresses
from .config import ConfigurationError, ParseConfig, load_parse_config
from .model import BlockInfo, BobTransaction, Cell, Economics, Input, Output, Tape
from .parser import parse, split_script
from .rules import BOB_SPLIT_RULES, Include, SplitRule, Token
from .script import DecodeError, Mode, decode_script
from .splitter import TransformError, split_parts
from .transforms import identity_transform, promote_long_values
from .tx import Transaction, TxInput, TxOutput, decode_transaction

__all__ = [
    "AddressDerivationError",
    "address_from_public_key",
    "script_addresses",
    "ConfigurationError",
    "ParseConfig",
    "load_parse_config",
    "BlockInfo",
    "BobTransaction",
    "Cell",
    "Economics",
    "Input",
    "Output",
    "Tape",
    "parse",
    "split_script",
    "BOB_SPLIT_RULES",
    "Include",
    "SplitRule",
    "Token",
    "DecodeError",
    "Mode",
    "decode_script",
    "TransformError",
    "split_parts",
    "identity_transform",
    "promote_long_values",
    "Transaction",
    "TxInput",
    "TxOutput",
    "decode_transaction",
]
