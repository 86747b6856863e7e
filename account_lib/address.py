# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Account addresses for Casper-style networks.

An address is the tagged public key of the account written as hex: ``01``
followed by 64 hex characters for Ed25519 keys, or ``02`` followed by 66 hex
characters for compressed secp256k1 keys. Parsing is case-insensitive; the
canonical form is uppercase, and two addresses are equal when their canonical
forms are equal.

Beyond the textual format, the key must decode to a point on its curve; Ed25519
keys must also lie in the prime order subgroup. An address that only looks
right is rejected.

Examples:
    Parsing and comparing::

        from account_lib.address import AccountAddress

        a = AccountAddress.from_str("0203a1...")
        b = AccountAddress.from_str("0203A1...")
        assert a == b
        print(a)  # "0203A1..."

    Checking without raising::

        if not AccountAddress.is_valid(user_input):
            ...
"""

from __future__ import annotations

import re
import unittest

from .bytesrepr import Deserializer, Serializer
from .errors import InvalidAddressError, InvalidKeyError
from .key_pair import KeyPair, PublicKey

ADDRESS_PATTERN = re.compile(r"^(01[0-9a-fA-F]{64}|02[0-9a-fA-F]{66})$")


class AccountAddress:
    """The address of an account, identified by its tagged public key.

    Attributes:
        public_key: The tagged public key the address encodes.
    """

    public_key: PublicKey

    def __init__(self, public_key: PublicKey):
        self.public_key = public_key

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AccountAddress):
            return NotImplemented
        return self.public_key == other.public_key

    def __hash__(self) -> int:
        return hash(self.public_key)

    def __str__(self) -> str:
        return str(self.public_key)

    def __repr__(self) -> str:
        return f"AccountAddress({self})"

    @staticmethod
    def from_str(address: str) -> AccountAddress:
        """Parse an address in any case.

        Raises:
            InvalidAddressError: If the text does not match the address format
                or the key bytes are not a valid key.
        """
        if not isinstance(address, str) or not ADDRESS_PATTERN.match(address):
            raise InvalidAddressError(address)
        try:
            return AccountAddress(PublicKey.from_hex(address))
        except InvalidKeyError as e:
            raise InvalidAddressError(address) from e

    @staticmethod
    def from_key(key: PublicKey | KeyPair) -> AccountAddress:
        if isinstance(key, KeyPair):
            key = key.public_key
        return AccountAddress(key)

    @staticmethod
    def is_valid(address: str) -> bool:
        try:
            AccountAddress.from_str(address)
        except InvalidAddressError:
            return False
        return True

    @staticmethod
    def deserialize(deserializer: Deserializer) -> AccountAddress:
        return AccountAddress(deserializer.struct(PublicKey))

    def serialize(self, serializer: Serializer):
        serializer.struct(self.public_key)


def canonical_address(address: str) -> str:
    """Return the canonical uppercase form of ``address``.

    Raises:
        InvalidAddressError: If the address is invalid.
    """
    return str(AccountAddress.from_str(address))


class Test(unittest.TestCase):
    def setUp(self):
        self.secp256k1 = KeyPair(
            prv="306d5ee4d4b1f11b7d9e53a5ab7b9ba8d0ad8b9a2a8b3d0d08e1f0a3b0a7a011"
        ).get_address()

    def test_valid_address_any_case(self):
        self.assertTrue(AccountAddress.is_valid(self.secp256k1))
        self.assertTrue(AccountAddress.is_valid(self.secp256k1.lower()))
        self.assertEqual(
            AccountAddress.from_str(self.secp256k1.lower()),
            AccountAddress.from_str(self.secp256k1),
        )
        self.assertEqual(canonical_address(self.secp256k1.lower()), self.secp256k1)

    def test_invalid_addresses(self):
        for address in (
            "abc",
            "",
            "0x" + self.secp256k1,
            self.secp256k1[:-2],
            "03" + self.secp256k1[2:],
            # right shape, not a compressed point
            "0205" + "11" * 32,
        ):
            self.assertFalse(AccountAddress.is_valid(address), address)

    def test_invalid_address_message(self):
        with self.assertRaisesRegex(InvalidAddressError, "Invalid address abc"):
            AccountAddress.from_str("abc")

    def test_ed25519_address(self):
        address = "01d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a"
        self.assertEqual(str(AccountAddress.from_str(address)), address.upper())
        # right shape, not a point of the curve
        self.assertFalse(AccountAddress.is_valid("01" + "ab" * 32))

    def test_serialization(self):
        address = AccountAddress.from_str(self.secp256k1)

        ser = Serializer()
        address.serialize(ser)
        out = Deserializer(ser.output()).struct(AccountAddress)

        self.assertEqual(out, address)
