# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
secp256k1 ECDSA keys and signatures.

Key Properties:
- **Curve**: secp256k1
- **Hash Function**: SHA-256 of the message (the deploy hash when signing)
- **Public Keys**: 33 byte SEC1 compressed points
- **Deterministic**: RFC 6979 nonces, so signing the same message twice
  yields the same signature
- **Normalized**: Signatures are low-S (s <= n/2), 64 bytes r||s

The ``0x02`` algorithm tag is added by the tagged wrappers in ``key_pair.py``.

Examples:
    Sign and verify::

        from account_lib.secp256k1_ecdsa import PrivateKey

        private_key = PrivateKey.from_hex("4e5e3be6...")
        signature = private_key.sign(deploy_hash)
        assert private_key.public_key().verify(deploy_hash, signature)
"""

from __future__ import annotations

import hashlib
import unittest
from typing import cast

from ecdsa import SECP256k1, SigningKey, VerifyingKey, util
from ecdsa.keys import BadSignatureError, MalformedPointError

from . import asymmetric_crypto
from .bytesrepr import Deserializer, Serializer


class PrivateKey(asymmetric_crypto.PrivateKey):
    """secp256k1 private key.

    Attributes:
        LENGTH: The byte length of secp256k1 private keys (32)
        key: The underlying ECDSA signing key object
    """

    LENGTH: int = 32

    key: SigningKey

    def __init__(self, key: SigningKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self.key.to_string() == other.key.to_string()

    def __str__(self):
        return self.hex()

    @staticmethod
    def from_hex(value: str | bytes) -> PrivateKey:
        """Create a private key from 32 bytes of hex or raw bytes.

        Raises:
            ValueError: If the input is not hex, has the wrong length or is not
                a valid scalar for the curve (zero or >= the group order).
        """
        secret = asymmetric_crypto.parse_hex_input(value)
        if len(secret) != PrivateKey.LENGTH:
            raise ValueError("Length mismatch")
        try:
            return PrivateKey(
                SigningKey.from_string(secret, SECP256k1, hashlib.sha256)
            )
        except MalformedPointError as e:
            raise ValueError(f"Invalid secp256k1 private key: {e}") from e

    def hex(self) -> str:
        return self.key.to_string().hex()

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.verifying_key)

    @staticmethod
    def random() -> PrivateKey:
        return PrivateKey(SigningKey.generate(curve=SECP256k1, hashfunc=hashlib.sha256))

    def sign(self, data: bytes) -> Signature:
        """Sign SHA-256(data) with an RFC 6979 nonce and normalize to low-S."""
        sig = self.key.sign_deterministic(data, hashfunc=hashlib.sha256)
        n = SECP256k1.generator.order()
        r, s = util.sigdecode_string(sig, n)
        # Both s and -s verify; only s <= n // 2 is accepted as canonical
        if s > (n // 2):
            mod_s = (s * -1) % n
            sig = util.sigencode_string(r, mod_s, n)
        return Signature(sig)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PrivateKey:
        return PrivateKey.from_hex(deserializer.fixed_bytes(PrivateKey.LENGTH))

    def serialize(self, serializer: Serializer):
        serializer.fixed_bytes(self.key.to_string())


class PublicKey(asymmetric_crypto.PublicKey):
    """secp256k1 public key in SEC1 compressed form.

    Attributes:
        LENGTH: Compressed key length (33)
        key: The underlying ECDSA verifying key object
    """

    LENGTH: int = 33

    key: VerifyingKey

    def __init__(self, key: VerifyingKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.to_crypto_bytes() == other.to_crypto_bytes()

    def __str__(self) -> str:
        return self.to_crypto_bytes().hex()

    @staticmethod
    def from_bytes_raw(value: bytes) -> PublicKey:
        """Create a public key from 33 compressed bytes.

        Raises:
            ValueError: If the length is wrong or the bytes are not a point on
                the curve.
        """
        if len(value) != PublicKey.LENGTH:
            raise ValueError("Length mismatch")
        try:
            return PublicKey(
                VerifyingKey.from_string(value, SECP256k1, hashlib.sha256)
            )
        except MalformedPointError as e:
            raise ValueError(f"Invalid secp256k1 public key: {e}") from e

    @staticmethod
    def from_str(value: str) -> PublicKey:
        return PublicKey.from_bytes_raw(asymmetric_crypto.parse_hex_input(value))

    def verify(self, data: bytes, signature: asymmetric_crypto.Signature) -> bool:
        try:
            signature = cast(Signature, signature)
            self.key.verify(signature.data(), data, hashfunc=hashlib.sha256)
        except (BadSignatureError, AssertionError, ValueError):
            return False
        return True

    def to_crypto_bytes(self) -> bytes:
        return self.key.to_string("compressed")

    @staticmethod
    def deserialize(deserializer: Deserializer) -> PublicKey:
        return PublicKey.from_bytes_raw(deserializer.fixed_bytes(PublicKey.LENGTH))

    def serialize(self, serializer: Serializer):
        serializer.fixed_bytes(self.to_crypto_bytes())


class Signature(asymmetric_crypto.Signature):
    """64 byte r||s secp256k1 signature."""

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
    PRIVATE_KEY = "306d5ee4d4b1f11b7d9e53a5ab7b9ba8d0ad8b9a2a8b3d0d08e1f0a3b0a7a011"

    def test_private_key_from_hex(self):
        self.assertEqual(
            PrivateKey.from_hex(self.PRIVATE_KEY),
            PrivateKey.from_hex("0x" + self.PRIVATE_KEY.upper()),
        )

    def test_private_key_out_of_range(self):
        with self.assertRaises(ValueError):
            PrivateKey.from_hex("00" * 32)
        with self.assertRaises(ValueError):
            PrivateKey.from_hex("ff" * 32)

    def test_public_key_is_compressed(self):
        public_key = PrivateKey.from_hex(self.PRIVATE_KEY).public_key()
        raw = public_key.to_crypto_bytes()

        self.assertEqual(len(raw), PublicKey.LENGTH)
        self.assertIn(raw[0], (2, 3))
        self.assertEqual(PublicKey.from_str(str(public_key)), public_key)

    def test_public_key_not_on_curve(self):
        with self.assertRaises(ValueError):
            PublicKey.from_bytes_raw(b"\x05" + b"\x01" * 32)

    def test_sign_and_verify(self):
        private_key = PrivateKey.from_hex(self.PRIVATE_KEY)
        public_key = private_key.public_key()

        signature = private_key.sign(b"test_message")
        self.assertTrue(public_key.verify(b"test_message", signature))
        self.assertFalse(public_key.verify(b"other_message", signature))

    def test_signature_is_deterministic_and_low_s(self):
        private_key = PrivateKey.random()
        n = SECP256k1.generator.order()

        for message in (b"a", b"b", b"c", b"d"):
            signature = private_key.sign(message)
            self.assertEqual(signature, private_key.sign(message))
            _, s = util.sigdecode_string(signature.data(), n)
            self.assertLessEqual(s, n // 2)

    def test_serialization(self):
        private_key = PrivateKey.random()

        ser = Serializer()
        private_key.public_key().serialize(ser)
        private_key.sign(b"message").serialize(ser)
        der = Deserializer(ser.output())

        self.assertEqual(PublicKey.deserialize(der), private_key.public_key())
        self.assertEqual(Signature.deserialize(der), private_key.sign(b"message"))
