# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Asymmetric cryptographic interfaces shared by the concrete key schemes.

Every key scheme supported by the builders implements the same three
protocols: a private key that signs, a public key that verifies, and a
signature value. Keys and signatures travel on the wire prefixed by a one byte
algorithm tag, see :class:`KeyAlgorithm`.

Supported Key Types:
- Ed25519: tag ``0x01``, 32 byte public keys
- secp256k1: tag ``0x02``, 33 byte compressed public keys

Examples:
    Parsing hex input regardless of prefix::

        from account_lib.asymmetric_crypto import parse_hex_input

        raw = parse_hex_input("0x4e5e3be6...")
        raw = parse_hex_input("4E5E3BE6...")

Note:
    This module defines protocols and interfaces only. Concrete implementations
    are provided in ``ed25519.py`` and ``secp256k1_ecdsa.py``; the tagged forms
    live in ``key_pair.py``.
"""

from __future__ import annotations

from enum import Enum

from typing_extensions import Protocol

from .bytesrepr import Deserializable, Serializable


class KeyAlgorithm(Enum):
    """Key schemes and the tag byte that prefixes their keys and signatures.

    Examples:
        Resolving a tag read from the wire::

            algorithm = KeyAlgorithm.from_tag(0x02)
            assert algorithm is KeyAlgorithm.SECP256K1
            assert algorithm.label == "secp256k1"
    """

    ED25519 = 1
    SECP256K1 = 2

    @property
    def label(self) -> str:
        """Lowercase scheme name, also used as the account-hash domain separator."""
        return self.name.lower()

    @staticmethod
    def from_tag(tag: int) -> KeyAlgorithm:
        try:
            return KeyAlgorithm(tag)
        except ValueError:
            raise ValueError(f"Unknown key algorithm tag: {tag}") from None


class PrivateKey(Deserializable, Serializable, Protocol):
    """Protocol for private keys.

    Methods:
        hex() -> str: Lowercase hex of the raw key bytes
        public_key() -> PublicKey: Derive the corresponding public key
        sign(data: bytes) -> Signature: Sign data and return signature
    """

    def hex(self) -> str:
        ...

    def public_key(self) -> PublicKey:
        ...

    def sign(self, data: bytes) -> Signature:
        ...


class PublicKey(Deserializable, Serializable, Protocol):
    """Protocol for public keys.

    ``to_crypto_bytes`` returns the raw, untagged key bytes. The tagged form
    is produced by the wrapper in ``key_pair.py``.
    """

    def to_crypto_bytes(self) -> bytes:
        ...

    def verify(self, data: bytes, signature: Signature) -> bool:
        ...


class Signature(Deserializable, Serializable, Protocol):
    """Protocol for signatures; ``data`` returns the raw, untagged bytes."""

    def data(self) -> bytes:
        ...


def parse_hex_input(value: str | bytes) -> bytes:
    """Parse a hex string (with or without ``0x``, any case) or pass bytes through.

    Raises:
        ValueError: If the string is not valid hex.
        TypeError: If the value is neither a string nor bytes.
    """
    if isinstance(value, str):
        if value[0:2] in ("0x", "0X"):
            value = value[2:]
        return bytes.fromhex(value)
    elif isinstance(value, (bytes, bytearray)):
        return bytes(value)
    else:
        raise TypeError("Input value must be a string or bytes.")
