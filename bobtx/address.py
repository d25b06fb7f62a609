"""Legacy Base58Check address derivation.

Only the two shapes BOB needs are recognised: a public key (for the input
heuristic) and the P2PKH / P2PK locking script templates for outputs. Public
keys are validated as secp256k1 points before hashing.
"""

from __future__ import annotations

import binascii
import hashlib
from typing import List

from cryptography.hazmat.primitives.asymmetric import ec

from .opcodes import OP_CHECKSIG, OP_DUP, OP_EQUALVERIFY, OP_HASH160

b58_digits = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

NETWORK_VERSIONS = {
    "mainnet": b"\x00",
    "testnet": b"\x6f",
}


class AddressDerivationError(ValueError):
    """Raised when a public key cannot be turned into an address."""


def _double_sha256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def hash160(data: bytes) -> bytes:
    return hashlib.new("ripemd160", hashlib.sha256(data).digest()).digest()


def base58_check_encode(payload: bytes, version: bytes) -> str:
    """Encode bytes into a Base58Check string with the provided version byte."""
    data = version + payload
    address_bytes = data + _double_sha256(data)[:4]

    value = int("0x0" + binascii.hexlify(address_bytes).decode("utf8"), 16)

    output: List[str] = []
    while value > 0:
        value, remainder = divmod(value, 58)
        output.append(b58_digits[remainder])
    encoded = "".join(output[::-1])

    leading_zero_count = 0
    for byte in address_bytes:
        if byte == 0:
            leading_zero_count += 1
        else:
            break

    return b58_digits[0] * leading_zero_count + encoded


def _network_version(network: str) -> bytes:
    try:
        return NETWORK_VERSIONS[network]
    except KeyError as exc:
        raise ValueError(f"Unknown network: {network}") from exc


def address_from_public_key_hash(pubkey_hash: bytes, network: str = "mainnet") -> str:
    if len(pubkey_hash) != 20:
        raise AddressDerivationError(f"public key hash must be 20 bytes, got {len(pubkey_hash)}")
    return base58_check_encode(pubkey_hash, _network_version(network))


def address_from_public_key(public_key: bytes, network: str = "mainnet") -> str:
    """Derive the P2PKH address for a SEC1 encoded secp256k1 public key.

    The key is hashed exactly as encoded, so compressed and uncompressed forms
    of the same point produce their respective (different) addresses.
    """

    try:
        ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), public_key)
    except (TypeError, ValueError) as exc:
        raise AddressDerivationError(
            f"invalid public key {public_key.hex()[:66]}: {exc}"
        ) from exc
    return address_from_public_key_hash(hash160(public_key), network)


def script_addresses(script: bytes, network: str = "mainnet") -> List[str]:
    """Return the addresses a locking script pays to.

    P2PKH and P2PK scripts yield one address; any other script yields an empty
    list rather than an error.
    """

    if (
        len(script) == 25
        and script[0] == OP_DUP
        and script[1] == OP_HASH160
        and script[2] == 0x14
        and script[23] == OP_EQUALVERIFY
        and script[24] == OP_CHECKSIG
    ):
        return [address_from_public_key_hash(script[3:23], network)]

    if script and script[-1] == OP_CHECKSIG and len(script) in (35, 67):
        key = script[1:-1]
        if script[0] == len(key):
            try:
                return [address_from_public_key(key, network)]
            except AddressDerivationError:
                return []
    return []
