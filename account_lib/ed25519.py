# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Ed25519 keys and signatures.

This module wraps PyNaCl's signing and verify keys behind the interfaces in
``asymmetric_crypto``. On the wire an Ed25519 key or signature is written as
raw fixed-width bytes; the ``0x01`` algorithm tag is added by the tagged
wrappers in ``key_pair.py``.

Examples:
    Sign and verify::

        from account_lib.ed25519 import PrivateKey

        private_key = PrivateKey.random()
        signature = private_key.sign(b"deploy hash")
        assert private_key.public_key().verify(b"deploy hash", signature)
"""

from __future__ import annotations

import unittest
from typing import cast

from nacl.bindings import crypto_core_ed25519_is_valid_point
from nacl.exceptions import CryptoError
from nacl.signing import SigningKey, VerifyKey

from . import asymmetric_crypto
from .bytesrepr import Deserializer, Serializer


class PrivateKey(asymmetric_crypto.PrivateKey):
    """Ed25519 private key (32 byte seed) backed by a NaCl SigningKey.

    Attributes:
        LENGTH: The byte length of Ed25519 private keys (32)
        key: The underlying NaCl SigningKey instance
    """

    LENGTH: int = 32

    key: SigningKey

    def __init__(self, key: SigningKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self.key == other.key

    def __str__(self):
        return self.hex()

    @staticmethod
    def from_hex(value: str | bytes) -> PrivateKey:
        """Create a private key from a hex string or raw seed bytes.

        Raises:
            ValueError: If the input is not hex or is not exactly 32 bytes.
        """
        seed = asymmetric_crypto.parse_hex_input(value)
        if len(seed) != PrivateKey.LENGTH:
            raise ValueError("Length mismatch")
        return PrivateKey(SigningKey(seed))

    def hex(self) -> str:
        return self.key.encode().hex()

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.verify_key)

    @staticmethod
    def random() -> PrivateKey:
        return PrivateKey(SigningKey.generate())

    def sign(self, data: bytes) -> Signature:
        """Sign ``data`` directly; Ed25519 hashes internally and is deterministic."""
        return Signature(self.key.sign(data).signature)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PrivateKey:
        return PrivateKey(SigningKey(deserializer.fixed_bytes(PrivateKey.LENGTH)))

    def serialize(self, serializer: Serializer):
        serializer.fixed_bytes(self.key.encode())


class PublicKey(asymmetric_crypto.PublicKey):
    """Ed25519 public key for signature verification.

    Attributes:
        LENGTH: The byte length of Ed25519 public keys (32)
        key: The underlying NaCl VerifyKey instance
    """

    LENGTH: int = 32

    key: VerifyKey

    def __init__(self, key: VerifyKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.key == other.key

    def __str__(self) -> str:
        return self.key.encode().hex()

    @staticmethod
    def from_bytes_raw(value: bytes) -> PublicKey:
        """Create a public key from its raw 32 bytes.

        Raises:
            ValueError: If the length is wrong or the bytes are not a valid
                point of prime order.
        """
        if len(value) != PublicKey.LENGTH:
            raise ValueError("Length mismatch")
        if not crypto_core_ed25519_is_valid_point(value):
            raise ValueError("Not a valid Ed25519 point")
        return PublicKey(VerifyKey(value))

    @staticmethod
    def from_str(value: str) -> PublicKey:
        return PublicKey.from_bytes_raw(asymmetric_crypto.parse_hex_input(value))

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        """Verify a signature, returning False instead of raising on failure."""
        try:
            signature = cast(Signature, signature)
            self.key.verify(data, signature.data())
        except (CryptoError, ValueError):
            return False
        return True

    def to_crypto_bytes(self) -> bytes:
        return self.key.encode()

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PublicKey:
        return PublicKey.from_bytes_raw(deserializer.fixed_bytes(PublicKey.LENGTH))

    def serialize(self, serializer: Serializer):
        serializer.fixed_bytes(self.key.encode())


class Signature(asymmetric_crypto.Signature):
    """64 byte Ed25519 signature."""

    LENGTH: int = 64

    signature: bytes

    def __init__(self, signature: bytes):
        self.signature = signature

    def __eq__(self, other: object):
        if not isinstance(other, Signature):
            return NotImplemented
        return self.signature == other.signature

    def __str__(self) -> str:
        return self.signature.hex()

    def data(self) -> bytes:
        return self.signature

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Signature:
        return Signature(deserializer.fixed_bytes(Signature.LENGTH))

    def serialize(self, serializer: Serializer):
        serializer.fixed_bytes(self.signature)


class Test(unittest.TestCase):
    def test_private_key_from_hex(self):
        private_key_hex = PrivateKey.from_hex(
            "0x4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe"
        )
        private_key_upper = PrivateKey.from_hex(
            "4E5E3BE60F4BBD5E98D086D932F3CE779FF4B58DA99BF9E5241AE1212A29E5FE"
        )
        private_key_bytes = PrivateKey.from_hex(
            bytes.fromhex(
                "4e5e3be60f4bbd5e98d086d932f3ce779ff4b58da99bf9e5241ae1212a29e5fe"
            )
        )
        self.assertEqual(private_key_hex, private_key_upper)
        self.assertEqual(private_key_hex, private_key_bytes)

    def test_private_key_length(self):
        with self.assertRaisesRegex(ValueError, "Length mismatch"):
            PrivateKey.from_hex("abcd")

    def test_sign_and_verify(self):
        in_value = b"test_message"

        private_key = PrivateKey.random()
        public_key = private_key.public_key()

        signature = private_key.sign(in_value)
        self.assertTrue(public_key.verify(in_value, signature))
        self.assertFalse(public_key.verify(b"other_message", signature))

    def test_signing_is_deterministic(self):
        private_key = PrivateKey.random()
        self.assertEqual(private_key.sign(b"same"), private_key.sign(b"same"))

    def test_public_key_serialization(self):
        public_key = PrivateKey.random().public_key()

        ser = Serializer()
        public_key.serialize(ser)
        self.assertEqual(len(ser.output()), PublicKey.LENGTH)
        ser_public_key = PublicKey.deserialize(Deserializer(ser.output()))
        self.assertEqual(public_key, ser_public_key)

    def test_signature_serialization(self):
        signature = PrivateKey.random().sign(b"another_message")

        ser = Serializer()
        signature.serialize(ser)
        ser_signature = Signature.deserialize(Deserializer(ser.output()))
        self.assertEqual(signature, ser_signature)

    def test_public_key_from_rfc8032_seed(self):
        private_key = PrivateKey.from_hex(
            "9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60"
        )
        public_key = PublicKey.from_str(
            "d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a"
        )
        self.assertEqual(private_key.public_key(), public_key)

    def test_public_key_must_be_on_curve(self):
        for value in ("ab" * 32, "00" * 32, "ff" * 32, "01" + "00" * 31):
            with self.assertRaisesRegex(ValueError, "Not a valid Ed25519 point"):
                PublicKey.from_str(value)
            with self.assertRaises(ValueError):
                PublicKey.deserialize(Deserializer(bytes.fromhex(value)))
