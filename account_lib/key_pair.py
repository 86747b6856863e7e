# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Tagged keys, tagged signatures and the KeyPair used by transaction builders.

Casper-style chains prefix every public key and signature with a one byte
algorithm tag (``0x01`` Ed25519, ``0x02`` secp256k1). This module wraps the
concrete key types from ``ed25519`` and ``secp256k1_ecdsa`` with that tag and
provides :class:`KeyPair`, which holds a public key and, optionally, the
private key that produced it.

A public-key-only KeyPair is used to attach signatures produced elsewhere; it
can verify but never sign.

Examples:
    Signing with a secp256k1 private key (the default scheme)::

        from account_lib.key_pair import KeyPair

        key_pair = KeyPair(prv="306d5ee4d4b1f11b...")
        signature = key_pair.sign(deploy_hash)
        print(key_pair.get_keys()["pub"])  # "02..." uppercase

    Signing with an Ed25519 private key::

        key_pair = KeyPair(prv="4e5e3be6...", algorithm=KeyAlgorithm.ED25519)

    Attaching an external signature::

        external = KeyPair(pub="0203...")
        builder.signature(signature_hex, external)
"""

from __future__ import annotations

import unittest
from typing import Dict, Optional

from . import ed25519, secp256k1_ecdsa
from .asymmetric_crypto import KeyAlgorithm, parse_hex_input
from .bytesrepr import Deserializer, Serializer
from .errors import InvalidKeyError, MissingPrivateKeyError

_PUBLIC_KEYS = {
    KeyAlgorithm.ED25519: ed25519.PublicKey,
    KeyAlgorithm.SECP256K1: secp256k1_ecdsa.PublicKey,
}

_PRIVATE_KEYS = {
    KeyAlgorithm.ED25519: ed25519.PrivateKey,
    KeyAlgorithm.SECP256K1: secp256k1_ecdsa.PrivateKey,
}

_SIGNATURES = {
    KeyAlgorithm.ED25519: ed25519.Signature,
    KeyAlgorithm.SECP256K1: secp256k1_ecdsa.Signature,
}


class PublicKey:
    """A public key together with its algorithm tag.

    The canonical text form, returned by ``str()``, is the uppercase tagged
    hex. It doubles as the account address on Casper-style networks.

    Attributes:
        algorithm: The key scheme, which determines the tag byte.
        public_key: The concrete, untagged public key.
    """

    algorithm: KeyAlgorithm
    public_key: ed25519.PublicKey | secp256k1_ecdsa.PublicKey

    def __init__(self, public_key: ed25519.PublicKey | secp256k1_ecdsa.PublicKey):
        if isinstance(public_key, ed25519.PublicKey):
            self.algorithm = KeyAlgorithm.ED25519
        elif isinstance(public_key, secp256k1_ecdsa.PublicKey):
            self.algorithm = KeyAlgorithm.SECP256K1
        else:
            raise NotImplementedError()
        self.public_key = public_key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    def __hash__(self) -> int:
        return hash(self.to_bytes())

    def __str__(self) -> str:
        return self.hex().upper()

    def __repr__(self) -> str:
        return f"PublicKey({self})"

    @staticmethod
    def from_hex(value: str | bytes) -> PublicKey:
        """Parse a tagged public key from hex (any case) or raw bytes.

        Raises:
            InvalidKeyError: If the tag is unknown or the key bytes are invalid.
        """
        try:
            raw = parse_hex_input(value)
            if len(raw) < 1:
                raise ValueError("Empty public key")
            algorithm = KeyAlgorithm.from_tag(raw[0])
            return PublicKey(_PUBLIC_KEYS[algorithm].from_bytes_raw(raw[1:]))
        except (TypeError, ValueError) as e:
            raise InvalidKeyError(f"Invalid public key: {value}") from e

    def hex(self) -> str:
        return self.to_bytes().hex()

    def to_bytes(self) -> bytes:
        return bytes([self.algorithm.value]) + self.public_key.to_crypto_bytes()

    def verify(self, data: bytes, signature: Signature) -> bool:
        if signature.algorithm != self.algorithm:
            return False
        return self.public_key.verify(data, signature.signature)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PublicKey:
        algorithm = KeyAlgorithm.from_tag(deserializer.u8())
        return PublicKey(deserializer.struct(_PUBLIC_KEYS[algorithm]))

    def serialize(self, serializer: Serializer):
        serializer.u8(self.algorithm.value)
        serializer.struct(self.public_key)


class Signature:
    """A signature together with its algorithm tag."""

    algorithm: KeyAlgorithm
    signature: ed25519.Signature | secp256k1_ecdsa.Signature

    def __init__(self, signature: ed25519.Signature | secp256k1_ecdsa.Signature):
        if isinstance(signature, ed25519.Signature):
            self.algorithm = KeyAlgorithm.ED25519
        elif isinstance(signature, secp256k1_ecdsa.Signature):
            self.algorithm = KeyAlgorithm.SECP256K1
        else:
            raise NotImplementedError()
        self.signature = signature

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Signature):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    def __hash__(self) -> int:
        return hash(self.to_bytes())

    def __str__(self) -> str:
        return self.hex()

    def __repr__(self) -> str:
        return f"Signature({self})"

    @staticmethod
    def from_hex(
        value: str | bytes, algorithm: Optional[KeyAlgorithm] = None
    ) -> Signature:
        """Parse a signature from hex or bytes.

        A 65 byte input is read as tagged. A bare 64 byte signature is accepted
        when ``algorithm`` says which scheme produced it.

        Raises:
            InvalidKeyError: If the input cannot be read as a signature.
        """
        try:
            raw = parse_hex_input(value)
            if len(raw) == 64 and algorithm is not None:
                raw = bytes([algorithm.value]) + raw
            if len(raw) != 65:
                raise ValueError(f"Unexpected signature length: {len(raw)}")
            tagged = KeyAlgorithm.from_tag(raw[0])
            if algorithm is not None and tagged != algorithm:
                raise ValueError(
                    f"Signature is {tagged.label}, expected {algorithm.label}"
                )
            return Signature(_SIGNATURES[tagged](raw[1:]))
        except (TypeError, ValueError) as e:
            raise InvalidKeyError(f"Invalid signature: {value!r}") from e

    def hex(self) -> str:
        return self.to_bytes().hex()

    def to_bytes(self) -> bytes:
        return bytes([self.algorithm.value]) + self.signature.data()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Signature:
        algorithm = KeyAlgorithm.from_tag(deserializer.u8())
        return Signature(deserializer.struct(_SIGNATURES[algorithm]))

    def serialize(self, serializer: Serializer):
        serializer.u8(self.algorithm.value)
        serializer.struct(self.signature)


class KeyPair:
    """A public key and, optionally, its private key.

    Exactly one of ``prv`` or ``pub`` is given. With neither, a random key of
    ``algorithm`` is generated.

    Args:
        prv: Private key as 32 bytes of hex or raw bytes.
        pub: Tagged public key as hex or raw bytes; the tag selects the scheme.
        algorithm: Scheme for ``prv`` or for a generated key. Defaults to
            secp256k1.

    Raises:
        InvalidKeyError: If the supplied key cannot be decoded.
    """

    public_key: PublicKey
    private_key: Optional[ed25519.PrivateKey | secp256k1_ecdsa.PrivateKey]

    def __init__(
        self,
        prv: Optional[str | bytes] = None,
        pub: Optional[str | bytes] = None,
        algorithm: KeyAlgorithm = KeyAlgorithm.SECP256K1,
    ):
        if prv is not None and pub is not None:
            raise InvalidKeyError("Provide either a private or a public key, not both")

        if pub is not None:
            self.private_key = None
            self.public_key = PublicKey.from_hex(pub)
            return

        if prv is None:
            self.private_key = _PRIVATE_KEYS[algorithm].random()
        else:
            try:
                self.private_key = _PRIVATE_KEYS[algorithm].from_hex(prv)
            except (TypeError, ValueError) as e:
                raise InvalidKeyError() from e
        self.public_key = PublicKey(self.private_key.public_key())

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, KeyPair):
            return NotImplemented
        return self.public_key == other.public_key

    @property
    def algorithm(self) -> KeyAlgorithm:
        return self.public_key.algorithm

    def has_private_key(self) -> bool:
        return self.private_key is not None

    def get_keys(self) -> Dict[str, str]:
        """Return ``{"pub": <uppercase tagged hex>}`` plus ``"prv"`` when known."""
        keys = {"pub": str(self.public_key)}
        if self.private_key is not None:
            keys["prv"] = self.private_key.hex()
        return keys

    def get_address(self) -> str:
        return str(self.public_key)

    def sign(self, payload: bytes) -> Signature:
        """Sign ``payload`` with the private key.

        Raises:
            MissingPrivateKeyError: If this pair only holds a public key.
        """
        if self.private_key is None:
            raise MissingPrivateKeyError()
        return Signature(self.private_key.sign(payload))

    def verify(self, payload: bytes, signature: Signature) -> bool:
        return self.public_key.verify(payload, signature)


def validate_key(key: str | bytes, algorithm: KeyAlgorithm = KeyAlgorithm.SECP256K1):
    """Check that ``key`` is a private key of ``algorithm`` or a tagged public key.

    Raises:
        InvalidKeyError: If it decodes as neither.
    """
    try:
        KeyPair(prv=key, algorithm=algorithm)
        return
    except InvalidKeyError:
        pass
    try:
        PublicKey.from_hex(key)
    except InvalidKeyError:
        raise InvalidKeyError() from None


class Test(unittest.TestCase):
    SECP256K1_PRV = "306d5ee4d4b1f11b7d9e53a5ab7b9ba8d0ad8b9a2a8b3d0d08e1f0a3b0a7a011"
    ED25519_PRV = "4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe"

    def test_default_scheme_is_secp256k1(self):
        key_pair = KeyPair(prv=self.SECP256K1_PRV)
        pub = key_pair.get_keys()["pub"]

        self.assertEqual(key_pair.algorithm, KeyAlgorithm.SECP256K1)
        self.assertTrue(pub.startswith("02"))
        self.assertEqual(len(pub), 68)
        self.assertEqual(pub, pub.upper())
        self.assertEqual(key_pair.get_keys()["prv"], self.SECP256K1_PRV)

    def test_ed25519_tag(self):
        key_pair = KeyPair(prv=self.ED25519_PRV, algorithm=KeyAlgorithm.ED25519)
        pub = key_pair.get_address()

        self.assertTrue(pub.startswith("01"))
        self.assertEqual(len(pub), 66)

    def test_public_key_round_trip_is_case_insensitive(self):
        key_pair = KeyPair(prv=self.SECP256K1_PRV)
        lower = KeyPair(pub=key_pair.get_address().lower())

        self.assertEqual(lower, key_pair)
        self.assertFalse(lower.has_private_key())

    def test_sign_and_verify(self):
        for key_pair in (
            KeyPair(prv=self.SECP256K1_PRV),
            KeyPair(prv=self.ED25519_PRV, algorithm=KeyAlgorithm.ED25519),
        ):
            signature = key_pair.sign(b"payload")
            self.assertEqual(len(signature.to_bytes()), 65)
            self.assertEqual(signature.to_bytes()[0], key_pair.algorithm.value)
            self.assertTrue(key_pair.verify(b"payload", signature))
            self.assertEqual(Signature.from_hex(signature.hex()), signature)

    def test_public_only_pair_cannot_sign(self):
        public_only = KeyPair(pub=KeyPair(prv=self.SECP256K1_PRV).get_address())
        with self.assertRaises(MissingPrivateKeyError):
            public_only.sign(b"payload")

    def test_untagged_signature_needs_algorithm(self):
        signature = KeyPair(prv=self.SECP256K1_PRV).sign(b"payload")
        bare = signature.signature.data().hex()

        self.assertEqual(Signature.from_hex(bare, KeyAlgorithm.SECP256K1), signature)
        with self.assertRaises(InvalidKeyError):
            Signature.from_hex(bare)
        with self.assertRaises(InvalidKeyError):
            Signature.from_hex(signature.hex(), KeyAlgorithm.ED25519)

    def test_validate_key(self):
        with self.assertRaisesRegex(InvalidKeyError, "Invalid key"):
            validate_key("abc")
        validate_key(self.SECP256K1_PRV)
        validate_key(KeyPair(prv=self.SECP256K1_PRV).get_address())

    def test_invalid_public_keys(self):
        for value in ("", "03" + "00" * 33, "02" + "00" * 32, "01" + "00" * 31, "zz"):
            with self.assertRaises(InvalidKeyError):
                KeyPair(pub=value)

    def test_serialization(self):
        key_pair = KeyPair(prv=self.ED25519_PRV, algorithm=KeyAlgorithm.ED25519)

        ser = Serializer()
        key_pair.public_key.serialize(ser)
        self.assertEqual(ser.output(), key_pair.public_key.to_bytes())
        self.assertEqual(
            PublicKey.deserialize(Deserializer(ser.output())), key_pair.public_key
        )
