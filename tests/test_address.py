from __future__ import annotations

import pytest

from bobtx.address import (
    AddressDerivationError,
    address_from_public_key,
    address_from_public_key_hash,
    hash160,
    script_addresses,
)

G_COMPRESSED = bytes.fromhex("0279BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798")
G_UNCOMPRESSED = bytes.fromhex(
    "0479BE667EF9DCBBAC55A06295CE870B07029BFCDB2DCE28D959F2815B16F81798"
    "483ADA7726A3C4655DA4FBFC0E1108A8FD17B448A68554199C47D08FFB10D4B8"
)
G_HASH160 = bytes.fromhex("751e76e8199196d454941c45d1b3a323f1433bd6")


def test_hash160_of_generator_point() -> None:
    assert hash160(G_COMPRESSED) == G_HASH160


def test_address_from_compressed_and_uncompressed_keys() -> None:
    assert address_from_public_key(G_COMPRESSED) == "1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"
    assert address_from_public_key(G_UNCOMPRESSED) == "1EHNa6Q4Jz2uvNExL497mE43ikXhwF6kZm"


def test_testnet_addresses_use_testnet_version() -> None:
    address = address_from_public_key(G_COMPRESSED, "testnet")

    assert address[0] in "mn"


def test_invalid_public_key_raises() -> None:
    with pytest.raises(AddressDerivationError):
        address_from_public_key(b"\x05" + b"\x11" * 32)
    with pytest.raises(AddressDerivationError):
        address_from_public_key(b"abc")


def test_public_key_hash_must_be_20_bytes() -> None:
    with pytest.raises(AddressDerivationError):
        address_from_public_key_hash(b"\x00" * 19)


def test_unknown_network_is_rejected() -> None:
    with pytest.raises(ValueError):
        address_from_public_key_hash(G_HASH160, "regtest")


def test_script_addresses_for_p2pkh_and_p2pk() -> None:
    p2pkh = bytes.fromhex("76a914") + G_HASH160 + bytes.fromhex("88ac")
    p2pk = bytes([33]) + G_COMPRESSED + b"\xac"

    assert script_addresses(p2pkh) == ["1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"]
    assert script_addresses(p2pk) == ["1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH"]


def test_script_addresses_empty_for_other_scripts() -> None:
    assert script_addresses(b"") == []
    assert script_addresses(b"\x00\x6a\x05hello") == []
    assert script_addresses(bytes([33]) + b"\x05" * 33 + b"\xac") == []
