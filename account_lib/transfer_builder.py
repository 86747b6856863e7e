# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Builder for native transfers between accounts.

The session is the chain's native transfer item with an ``amount`` in motes,
the ``target`` public key and an optional numeric ``id`` the recipient can
use to match deposits.
"""

from __future__ import annotations

import unittest
from typing import Callable, List, Optional

from .address import canonical_address
from .bytesrepr import MAX_U64
from .config import NetworkConfig
from .deploy import CLType, CLValue, ExecutableDeployItem
from .errors import (
    ImmutableFieldError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidFeeError,
    MalformedTransactionError,
    MissingAmountError,
    MissingDestinationError,
    MissingFeeError,
)
from .key_pair import KeyPair, PublicKey
from .transaction import (
    AMOUNT_ARG,
    TARGET_ARG,
    TRANSFER_ID_ARG,
    Transaction,
    TransactionType,
)
from .transaction_builder import TransactionBuilder
from .validation import parse_integer, validate_amount
from .wallet_initialization_builder import WalletInitializationBuilder


class TransferBuilder(TransactionBuilder):
    transaction_type = TransactionType.SEND

    _to: Optional[str]
    _amount: Optional[str]
    _transfer_id: Optional[int]

    def __init__(self, config: NetworkConfig):
        super().__init__(config)
        self._to = None
        self._amount = None
        self._transfer_id = None

    def to(self, address: str) -> TransferBuilder:
        """Set the recipient.

        Raises:
            InvalidAddressError: If the address is invalid.
        """
        self._check_mutable("to")
        self.validate_address(address)
        self._to = canonical_address(address)
        return self

    def amount(self, amount) -> TransferBuilder:
        """Set the amount in motes, as an int or a decimal string.

        Raises:
            InvalidAmountError: If the amount is malformed or not positive.
        """
        self._check_mutable("amount")
        self._amount = validate_amount(amount)
        return self

    def transfer_id(self, transfer_id: int) -> TransferBuilder:
        """Set the u64 id the recipient can match the deposit with.

        Raises:
            InvalidAmountError: If the id is not an integer in the u64 range.
        """
        self._check_mutable("transfer_id")
        self._transfer_id = parse_integer(
            transfer_id, "transfer id", InvalidAmountError, minimum=0, maximum=MAX_U64
        )
        return self

    def _checks(self) -> List[Callable[[], None]]:
        return [self._check_to, self._check_amount]

    def _check_to(self):
        if self._to is None:
            raise MissingDestinationError()

    def _check_amount(self):
        if self._amount is None:
            raise MissingAmountError()

    def _session(self) -> ExecutableDeployItem:
        return ExecutableDeployItem.transfer(
            {
                AMOUNT_ARG: CLValue.u512(int(self._amount)),
                TARGET_ARG: CLValue.public_key(PublicKey.from_hex(self._to)),
                TRANSFER_ID_ARG: CLValue.option(
                    self._transfer_id, CLType(CLType.U64)
                ),
            }
        )

    def _is_empty(self) -> bool:
        return (
            super()._is_empty()
            and self._to is None
            and self._amount is None
            and self._transfer_id is None
        )

    def _load(self, transaction: Transaction):
        self._to = transaction.to
        self._amount = transaction.amount
        self._transfer_id = transaction.transfer_id


class Test(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.sender = KeyPair(
            prv="306d5ee4d4b1f11b7d9e53a5ab7b9ba8d0ad8b9a2a8b3d0d08e1f0a3b0a7a011"
        )
        self.recipient = KeyPair(prv="55" * 32).get_address()
        self.config = NetworkConfig.for_network("cspr")

    def builder(self) -> TransferBuilder:
        builder = TransferBuilder(self.config)
        builder.fee({"gasLimit": "10000"})
        builder.source({"address": self.sender.get_address()})
        builder.to(self.recipient)
        builder.amount("2500000000")
        return builder

    async def test_build_transfer(self):
        tx = await self.builder().transfer_id(42).sign(self.sender).build()
        json = tx.to_json()

        self.assertEqual(tx.type, TransactionType.SEND)
        self.assertEqual(json["to"], self.recipient)
        self.assertEqual(json["amount"], "2500000000")
        self.assertEqual(json["transferId"], 42)
        self.assertEqual(json["chainName"], "casper")
        self.assertTrue(tx.verify_signatures())

    async def test_round_trip(self):
        tx = await self.builder().sign(self.sender).build()

        builder = TransferBuilder(self.config)
        builder.from_raw(tx.to_broadcast_format())
        tx2 = await builder.build()

        self.assertEqual(tx2.to_json(), tx.to_json())
        self.assertNotIn("transferId", tx2.to_json())
        with self.assertRaises(ImmutableFieldError):
            builder.amount(1)

    async def test_validation_order(self):
        builder = TransferBuilder(self.config)
        with self.assertRaises(MissingFeeError):
            await builder.build()
        builder.fee(10_000).source(self.sender.get_address())
        with self.assertRaisesRegex(MissingDestinationError, "missing to"):
            await builder.build()
        builder.to(self.recipient)
        with self.assertRaisesRegex(MissingAmountError, "missing amount"):
            await builder.build()

    def test_invalid_fields(self):
        builder = TransferBuilder(self.config)
        with self.assertRaises(InvalidAddressError):
            builder.to("abc")
        with self.assertRaises(InvalidAmountError):
            builder.amount("-1")
        with self.assertRaises(InvalidAmountError):
            builder.amount("1.5")
        with self.assertRaises(InvalidAmountError):
            builder.transfer_id(MAX_U64 + 1)
        with self.assertRaises(InvalidAmountError):
            builder.transfer_id(-1)
        with self.assertRaises(InvalidFeeError):
            builder.fee({"gasLimit": "10", "gasPrice": str(MAX_U64 + 1)})

    async def test_transfer_id_zero(self):
        tx = await self.builder().transfer_id(0).build()

        self.assertEqual(tx.transfer_id, 0)
        self.assertEqual(tx.to_json()["transferId"], 0)

    async def test_wrong_type_from_raw(self):
        tx = await self.builder().build()
        wallet_builder = WalletInitializationBuilder(self.config)
        with self.assertRaisesRegex(MalformedTransactionError, "Expected a"):
            wallet_builder.from_raw(tx.to_broadcast_format())
