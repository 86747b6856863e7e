# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Builder for multisig wallet initialization transactions.

The deploy installs the network's wallet contract for the source account and
hands it the owner set. Owners are validated as they are added: each must be a
valid address, none may repeat, and no more than ``max_owners`` are accepted.
At build time the owner set must hold exactly ``required_owners`` entries.

Signers do not have to be owners; the source account usually signs.

Examples:
    Building and signing::

        builder = factory.get_wallet_initialization_builder()
        builder.fee({"gasLimit": "10000"})
        builder.source({"address": root})
        builder.owner(a).owner(b).owner(c)
        builder.sign({"key": root_private_key})
        tx = await builder.build()

    Adding a second signature offline::

        builder = factory.get_wallet_initialization_builder()
        builder.from_raw(tx.to_broadcast_format())
        builder.sign({"key": other_private_key})
        tx = await builder.build()
"""

from __future__ import annotations

import unittest
from typing import Callable, List

from .address import canonical_address
from .config import NetworkConfig
from .deploy import Deploy, ExecutableDeployItem
from .errors import (
    BuildTransactionError,
    DuplicateOwnerError,
    ImmutableFieldError,
    InvalidAddressError,
    InvalidFeeError,
    InvalidKeyError,
    MalformedTransactionError,
    MissingFeeError,
    MissingPrivateKeyError,
    MissingSourceError,
    TooManyOwnersError,
    WrongOwnerCountError,
)
from .key_pair import KeyPair, PublicKey
from .transaction import OWNERS_ARG, Transaction, TransactionType, owners_arg
from .transaction_builder import TransactionBuilder
from .validation import validate_owner_count, validate_owners


class WalletInitializationBuilder(TransactionBuilder):
    transaction_type = TransactionType.WALLET_INITIALIZATION

    _owners: List[str]

    def __init__(self, config: NetworkConfig):
        super().__init__(config)
        self._owners = []

    @property
    def owners(self) -> List[str]:
        return list(self._owners)

    def owner(self, address: str) -> WalletInitializationBuilder:
        """Add an owner to the multisig wallet.

        Raises:
            InvalidAddressError: If the address is invalid.
            DuplicateOwnerError: If the address is already an owner, in any case.
            TooManyOwnersError: If ``max_owners`` owners are already set.
            ImmutableFieldError: If the builder was seeded from raw data.
        """
        self._check_mutable("owner")
        validate_owners(self._owners, address, self._config.max_owners)
        self._owners.append(canonical_address(address))
        return self

    def _checks(self) -> List[Callable[[], None]]:
        return [
            lambda: validate_owner_count(self._owners, self._config.required_owners)
        ]

    def _session(self) -> ExecutableDeployItem:
        owners = [PublicKey.from_hex(owner) for owner in self._owners]
        return ExecutableDeployItem.module(
            self._config.wallet_init_contract, {OWNERS_ARG: owners_arg(owners)}
        )

    def _is_empty(self) -> bool:
        return super()._is_empty() and not self._owners

    def _load(self, transaction: Transaction):
        self._owners = transaction.owners


class Test(unittest.IsolatedAsyncioTestCase):
    FEE = {"gasLimit": "10000", "gasPrice": "1"}

    def setUp(self):
        self.root = KeyPair(
            prv="306d5ee4d4b1f11b7d9e53a5ab7b9ba8d0ad8b9a2a8b3d0d08e1f0a3b0a7a011"
        )
        self.accounts = [KeyPair(prv=f"{i}{i}" * 32) for i in range(1, 5)]
        self.addresses = [account.get_address() for account in self.accounts]
        self.config = NetworkConfig.for_network("tcspr")

    def unsigned_builder(self) -> WalletInitializationBuilder:
        builder = WalletInitializationBuilder(self.config)
        builder.fee(self.FEE)
        for address in self.addresses[:3]:
            builder.owner(address)
        builder.source({"address": self.root.get_address()})
        return builder

    def signed_builder(self) -> WalletInitializationBuilder:
        return self.unsigned_builder().sign({"key": self.root.private_key.hex()})

    async def test_build_init_transaction(self):
        tx = await self.signed_builder().build()
        json = tx.to_json()

        self.assertEqual(json["fee"], self.FEE)
        self.assertEqual(len(tx.signature), 1)
        self.assertEqual(json["from"], self.root.get_address())
        self.assertEqual(json["owners"], self.addresses[:3])
        self.assertEqual(json["chainName"], "casper-test")
        self.assertEqual(tx.type, TransactionType.WALLET_INITIALIZATION)
        self.assertTrue(tx.verify_signatures())

    async def test_lowercase_source_is_canonical(self):
        builder = self.unsigned_builder()
        builder.source(self.root.get_address().lower())
        tx = await builder.build()
        self.assertEqual(tx.to_json()["from"], self.root.get_address())

    async def test_external_signature(self):
        external = self.accounts[3]
        signature = external.sign(b"signed elsewhere").hex()

        builder = self.unsigned_builder()
        builder.signature(signature, KeyPair(pub=external.get_address()))
        tx = await builder.build()

        self.assertEqual(tx.to_json()["from"], self.root.get_address())
        self.assertEqual(tx.signature, [signature])

    async def test_external_signature_included_twice(self):
        external = self.accounts[3]
        signature = external.sign(b"signed elsewhere").hex()

        builder = self.unsigned_builder()
        builder.signature(signature, KeyPair(pub=external.get_address()))
        builder.signature(signature, KeyPair(pub=external.get_address()))
        tx = await builder.build()

        self.assertEqual(tx.to_json()["signatureCount"], 1)

    async def test_build_without_fee(self):
        builder = WalletInitializationBuilder(self.config)
        for address in self.addresses[:3]:
            builder.owner(address)
        builder.source({"address": self.root.get_address()})

        with self.assertRaisesRegex(
            MissingFeeError, "Invalid transaction: missing fee"
        ):
            await builder.build()

    async def test_wrong_number_of_owners(self):
        builder = WalletInitializationBuilder(self.config)
        builder.fee(self.FEE)
        builder.owner(self.addresses[0])
        builder.owner(self.addresses[1])
        builder.source({"address": self.root.get_address()})
        with self.assertRaisesRegex(
            WrongOwnerCountError, "wrong number of owners -- required: 3, found: 2"
        ):
            await builder.build()

        with self.assertRaisesRegex(
            DuplicateOwnerError, f"Repeated owner address: {self.addresses[0]}"
        ):
            builder.owner(self.addresses[0])
        self.assertEqual(builder.owners.count(self.addresses[0]), 1)

        builder.owner(self.addresses[2])
        with self.assertRaisesRegex(
            TooManyOwnersError,
            "A maximum of 3 owners can be set for a multisig wallet",
        ):
            builder.owner(self.addresses[3])
        self.assertEqual(len(builder.owners), 3)

        empty = WalletInitializationBuilder(self.config)
        empty.fee(self.FEE)
        empty.source({"address": self.root.get_address()})
        with self.assertRaisesRegex(
            WrongOwnerCountError, "wrong number of owners -- required: 3, found: 0"
        ):
            await empty.build()

    async def test_duplicate_owner_is_case_insensitive(self):
        builder = WalletInitializationBuilder(self.config)
        builder.owner(self.addresses[0])
        with self.assertRaises(DuplicateOwnerError):
            builder.owner(self.addresses[0].lower())

    async def test_build_without_source(self):
        builder = WalletInitializationBuilder(NetworkConfig.for_network("thbar"))
        builder.fee(self.FEE)
        for address in self.addresses[:3]:
            builder.owner(address)

        with self.assertRaisesRegex(
            MissingSourceError, "Invalid transaction: missing source"
        ):
            await builder.build()

    async def test_failed_build_leaves_state(self):
        builder = WalletInitializationBuilder(self.config)
        builder.fee(self.FEE).source(self.root.get_address())
        builder.owner(self.addresses[0]).owner(self.addresses[1])
        with self.assertRaises(WrongOwnerCountError):
            await builder.build()
        self.assertEqual(builder.owners, self.addresses[:2])

        builder.owner(self.addresses[2])
        tx = await builder.build()
        self.assertEqual(tx.owners, self.addresses[:3])

    def test_validate_address(self):
        builder = WalletInitializationBuilder(self.config)
        builder.validate_address({"address": self.addresses[0]})
        builder.validate_address(self.addresses[0].lower())
        with self.assertRaisesRegex(InvalidAddressError, "Invalid address abc"):
            builder.validate_address({"address": "abc"})
        with self.assertRaisesRegex(InvalidAddressError, "Invalid address abc"):
            builder.validate_address("abc")
        with self.assertRaises(InvalidAddressError):
            builder.validate_address({})

    def test_fee_must_be_positive(self):
        builder = WalletInitializationBuilder(self.config)
        with self.assertRaises(InvalidFeeError):
            builder.fee({"gasLimit": "-10"})
        builder.fee({"gasLimit": "10"})

    def test_validate_key(self):
        builder = WalletInitializationBuilder(self.config)
        with self.assertRaisesRegex(InvalidKeyError, "Invalid key"):
            builder.validate_key({"key": "abc"})
        builder.validate_key({"key": self.accounts[0].private_key.hex()})

    def test_sign_rejects_public_only_key(self):
        builder = WalletInitializationBuilder(self.config)
        with self.assertRaises(InvalidKeyError):
            builder.sign({"key": "abc"})
        with self.assertRaises(InvalidKeyError):
            builder.sign({"key": self.root.get_address()})
        with self.assertRaisesRegex(MissingPrivateKeyError, "Missing private key"):
            builder.sign(KeyPair(pub=self.root.get_address()))

    def test_validate_transaction(self):
        builder = WalletInitializationBuilder(self.config)
        with self.assertRaisesRegex(MissingFeeError, "missing fee"):
            builder.validate_transaction()
        builder.fee(self.FEE)
        with self.assertRaisesRegex(MissingSourceError, "missing source"):
            builder.validate_transaction()
        builder.source({"address": self.addresses[0]})
        for found, address in enumerate(self.addresses[:3]):
            with self.assertRaisesRegex(
                WrongOwnerCountError, f"required: 3, found: {found}"
            ):
                builder.validate_transaction()
            builder.owner(address)
        builder.validate_transaction()

    async def test_unsigned_round_trip(self):
        tx = await self.unsigned_builder().build()

        builder = WalletInitializationBuilder(self.config)
        builder.from_raw(tx.to_broadcast_format())
        tx2 = await builder.build()

        self.assertEqual(tx2.to_json(), tx.to_json())
        self.assertEqual(tx2.to_broadcast_format(), tx.to_broadcast_format())

    async def test_signed_round_trip(self):
        tx = await self.signed_builder().build()

        builder = WalletInitializationBuilder(self.config)
        builder.from_raw(tx.to_broadcast_format())
        tx2 = await builder.build()

        self.assertEqual(tx2.to_json(), tx.to_json())
        self.assertEqual(tx2.approvals, tx.approvals)

    async def test_offline_multisig(self):
        tx = await self.signed_builder().build()

        builder = WalletInitializationBuilder(self.config)
        builder.from_raw(tx.to_broadcast_format())
        builder.sign({"key": self.accounts[0].private_key.hex()})
        tx2 = await builder.build()

        builder = WalletInitializationBuilder(self.config)
        builder.from_raw(tx2.to_broadcast_format())
        builder.sign({"key": self.accounts[1].private_key.hex()})
        tx3 = await builder.build()

        self.assertEqual(tx3.id, tx.id)
        self.assertEqual(tx3.signature[:2], tx2.signature)
        self.assertEqual(tx3.signature[:1], tx.signature)
        self.assertEqual(
            tx3.signers(),
            [self.root.get_address(), self.addresses[0], self.addresses[1]],
        )
        self.assertTrue(tx3.verify_signatures())

    async def test_offline_external_signature(self):
        tx = await self.unsigned_builder().build()
        external = self.accounts[3]
        signature = external.sign(bytes.fromhex(tx.id)).hex()

        builder = WalletInitializationBuilder(self.config)
        builder.from_raw(tx.to_broadcast_format())
        builder.signature(signature, KeyPair(pub=external.get_address()))
        tx2 = await builder.build()

        self.assertEqual(tx2.signers(), [self.addresses[3]])
        self.assertTrue(tx2.verify_signatures())

    async def test_resigning_is_idempotent(self):
        tx = await self.signed_builder().build()

        builder = WalletInitializationBuilder(self.config)
        builder.from_raw(tx.to_broadcast_format())
        builder.sign({"key": self.root.private_key.hex()})
        tx2 = await builder.build()

        self.assertEqual(tx2.signature, tx.signature)

    async def test_seeded_fields_are_immutable(self):
        tx = await self.unsigned_builder().build()
        builder = WalletInitializationBuilder(self.config)
        builder.from_raw(tx.to_broadcast_format())

        with self.assertRaises(ImmutableFieldError):
            builder.fee(self.FEE)
        with self.assertRaises(ImmutableFieldError):
            builder.source(self.addresses[0])
        with self.assertRaises(ImmutableFieldError):
            builder.owner(self.addresses[3])

    def seed(self, payment: ExecutableDeployItem, chain_name: str) -> str:
        owners = [PublicKey.from_hex(address) for address in self.addresses[:3]]
        deploy = Deploy.new(
            self.root.public_key,
            payment,
            ExecutableDeployItem.module(b"", {OWNERS_ARG: owners_arg(owners)}),
            chain_name,
            1,
            1_800_000,
            1_600_000_000_000,
        )
        return deploy.to_bytes().hex()

    async def test_from_raw_rejects_invalid_fee(self):
        self.assertIsInstance(
            WalletInitializationBuilder(self.config).from_raw(
                self.seed(ExecutableDeployItem.standard_payment(10), "casper-test")
            ),
            WalletInitializationBuilder,
        )
        for payment, message in (
            (ExecutableDeployItem.standard_payment(0), "below or equal to zero"),
            (ExecutableDeployItem.module(b"", {}), "missing gasLimit"),
        ):
            builder = WalletInitializationBuilder(self.config)
            with self.assertRaisesRegex(MalformedTransactionError, message):
                builder.from_raw(self.seed(payment, "casper-test"))
            with self.assertRaises(MissingFeeError):
                await builder.build()

    def test_from_raw_rejects_other_chain(self):
        raw = self.seed(ExecutableDeployItem.standard_payment(10), "casper")
        with self.assertRaisesRegex(
            MalformedTransactionError, "Expected a transaction for casper-test"
        ):
            WalletInitializationBuilder(self.config).from_raw(raw)

    async def test_from_raw_needs_empty_builder(self):
        raw = (await self.unsigned_builder().build()).to_broadcast_format()

        seeded = WalletInitializationBuilder(self.config).from_raw(raw)
        with self.assertRaises(ImmutableFieldError):
            seeded.from_raw(raw)

        partial = WalletInitializationBuilder(self.config)
        partial.owner(self.addresses[0])
        with self.assertRaisesRegex(BuildTransactionError, "with fields set"):
            partial.from_raw(raw)
        self.assertEqual(partial.owners, self.addresses[:1])

    def test_from_raw_malformed(self):
        builder = WalletInitializationBuilder(self.config)
        for raw in ("", "zz", "deadbeef"):
            with self.assertRaises(MalformedTransactionError):
                builder.from_raw(raw)
        with self.assertRaises(MalformedTransactionError):
            builder.validate_raw_transaction(b"\x01\x02")
