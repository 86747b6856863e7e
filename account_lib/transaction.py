# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Built transactions: a typed, read-only view over a deploy and its approvals.

A :class:`Transaction` is produced by a builder's ``build()`` and never changes
its semantic fields afterwards. Its broadcast format is the lowercase hex of
the encoded deploy, including all approvals, which is also the form another
signer's builder accepts through ``from_raw``.

Examples:
    Inspecting a built transaction::

        tx = await builder.build()
        tx.to_json()["signatureCount"]  # 1
        raw = tx.to_broadcast_format()

    Decoding serialized input::

        tx = Transaction.from_raw(raw)
        tx.type  # TransactionType.WALLET_INITIALIZATION
"""

from __future__ import annotations

import logging
import unittest
from enum import Enum
from typing import Any, Dict, List, Optional

from .address import canonical_address
from .asymmetric_crypto import parse_hex_input
from .bytesrepr import DeserializationError
from .deploy import CLType, CLValue, Deploy, ExecutableDeployItem
from .errors import InvalidKeyError, MalformedTransactionError
from .key_pair import KeyPair, PublicKey


class TransactionType(Enum):
    WALLET_INITIALIZATION = "WalletInitialization"
    SEND = "Send"
    STAKING_LOCK = "StakingLock"
    STAKING_UNLOCK = "StakingUnlock"

    def __str__(self) -> str:
        return self.value


# Named arguments carried by the session item of each transaction type
OWNERS_ARG = "owners"
AMOUNT_ARG = "amount"
TARGET_ARG = "target"
TRANSFER_ID_ARG = "id"


OWNERS_TYPE = CLType(CLType.LIST, CLType(CLType.PUBLIC_KEY))


def owners_arg(owners: List[PublicKey]) -> CLValue:
    return CLValue(OWNERS_TYPE, owners)


def detect_type(deploy: Deploy) -> TransactionType:
    """Infer the transaction type from the shape of the session item.

    Raises:
        MalformedTransactionError: If the session matches no known type.
    """
    session = deploy.session
    if session.variant == ExecutableDeployItem.TRANSFER:
        if AMOUNT_ARG in session.args and TARGET_ARG in session.args:
            return TransactionType.SEND
    elif OWNERS_ARG in session.args:
        if session.args[OWNERS_ARG].cl_type == OWNERS_TYPE:
            return TransactionType.WALLET_INITIALIZATION
    logging.warning(f"Rejected deploy {deploy.hash.hex()}: unknown session item")
    raise MalformedTransactionError("Unrecognized transaction: unknown session item")


class Transaction:
    """A built transaction.

    Attributes are exposed as read-only properties. The only way to add
    approvals is to seed a new builder with :meth:`to_broadcast_format` and
    sign again.
    """

    _deploy: Deploy
    _type: TransactionType

    def __init__(self, deploy: Deploy, transaction_type: TransactionType):
        self._deploy = deploy
        self._type = transaction_type

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Transaction):
            return NotImplemented
        return self._type == other._type and self._deploy == other._deploy

    def __str__(self) -> str:
        return f"{self._type} transaction {self.id}"

    @staticmethod
    def from_raw(raw: str | bytes) -> Transaction:
        """Decode a transaction from its broadcast format (hex) or raw bytes.

        Raises:
            MalformedTransactionError: If the input is not a valid encoded
                deploy of a known transaction type.
        """
        try:
            deploy = Deploy.from_bytes(parse_hex_input(raw))
        except (DeserializationError, InvalidKeyError, TypeError, ValueError) as e:
            logging.warning(f"Rejected serialized transaction: {e}")
            raise MalformedTransactionError(
                f"Malformed transaction: {e}",
                raw if isinstance(raw, str) else None,
            ) from e
        return Transaction(deploy, detect_type(deploy))

    @property
    def deploy(self) -> Deploy:
        return self._deploy.copy()

    @property
    def type(self) -> TransactionType:
        return self._type

    @property
    def id(self) -> str:
        return self._deploy.hash.hex()

    @property
    def source(self) -> str:
        """The uppercase address of the account originating the transaction."""
        return str(self._deploy.header.account)

    @property
    def fee(self) -> Dict[str, str]:
        """Gas limit and price; ``gasLimit`` is absent when payment has no amount."""
        fee: Dict[str, str] = {}
        gas_limit = self._deploy.payment.arg(AMOUNT_ARG)
        if gas_limit is not None:
            fee["gasLimit"] = str(gas_limit)
        fee["gasPrice"] = str(self._deploy.header.gas_price)
        return fee

    @property
    def chain_name(self) -> str:
        return self._deploy.header.chain_name

    @property
    def owners(self) -> List[str]:
        if self._type != TransactionType.WALLET_INITIALIZATION:
            return []
        return [str(owner) for owner in self._deploy.session.arg(OWNERS_ARG)]

    @property
    def to(self) -> Optional[str]:
        if self._type != TransactionType.SEND:
            return None
        return str(self._deploy.session.arg(TARGET_ARG))

    @property
    def amount(self) -> Optional[str]:
        if self._type != TransactionType.SEND:
            return None
        return str(self._deploy.session.arg(AMOUNT_ARG))

    @property
    def transfer_id(self) -> Optional[int]:
        if self._type != TransactionType.SEND:
            return None
        return self._deploy.session.arg(TRANSFER_ID_ARG)

    @property
    def approvals(self) -> List[Dict[str, str]]:
        return [approval.to_json() for approval in self._deploy.approvals]

    @property
    def signature(self) -> List[str]:
        """Hex signatures of every approval, in signing order."""
        return [approval.signature.hex() for approval in self._deploy.approvals]

    def signers(self) -> List[str]:
        return [str(approval.signer) for approval in self._deploy.approvals]

    def is_signed_by(self, address: str) -> bool:
        return canonical_address(address) in self.signers()

    def verify_signatures(self) -> bool:
        return self._deploy.verify_approvals()

    def to_bytes(self) -> bytes:
        return self._deploy.to_bytes()

    def to_broadcast_format(self) -> str:
        return self.to_bytes().hex()

    def to_json(self) -> Dict[str, Any]:
        header = self._deploy.header
        json: Dict[str, Any] = {
            "id": self.id,
            "type": self._type.value,
            "from": self.source,
            "fee": self.fee,
            "signatureCount": len(self._deploy.approvals),
        }
        if self._type == TransactionType.WALLET_INITIALIZATION:
            json["owners"] = self.owners
        elif self._type == TransactionType.SEND:
            json["to"] = self.to
            json["amount"] = self.amount
            if self.transfer_id is not None:
                json["transferId"] = self.transfer_id
        json["chainName"] = self.chain_name
        json["timestamp"] = header.timestamp
        json["ttl"] = header.ttl
        return json


class Test(unittest.TestCase):
    def setUp(self):
        self.root = KeyPair(
            prv="306d5ee4d4b1f11b7d9e53a5ab7b9ba8d0ad8b9a2a8b3d0d08e1f0a3b0a7a011"
        )
        self.owners = [KeyPair().public_key for _ in range(3)]
        deploy = Deploy.new(
            self.root.public_key,
            ExecutableDeployItem.standard_payment(10_000),
            ExecutableDeployItem.module(b"", {OWNERS_ARG: owners_arg(self.owners)}),
            "casper-test",
            2,
            1_800_000,
            1_600_000_000_000,
        )
        deploy.approvals.append(deploy.sign(self.root))
        self.transaction = Transaction(deploy, TransactionType.WALLET_INITIALIZATION)

    def test_to_json(self):
        json = self.transaction.to_json()

        self.assertEqual(json["type"], "WalletInitialization")
        self.assertEqual(json["from"], self.root.get_address())
        self.assertEqual(json["fee"], {"gasLimit": "10000", "gasPrice": "2"})
        self.assertEqual(json["signatureCount"], 1)
        self.assertEqual(json["owners"], [str(owner) for owner in self.owners])
        self.assertEqual(json["chainName"], "casper-test")
        self.assertNotIn("to", json)

    def test_broadcast_format_round_trip(self):
        raw = self.transaction.to_broadcast_format()
        decoded = Transaction.from_raw(raw)

        self.assertEqual(raw, raw.lower())
        self.assertEqual(decoded, self.transaction)
        self.assertEqual(decoded.to_json(), self.transaction.to_json())
        self.assertEqual(Transaction.from_raw(bytes.fromhex(raw)), self.transaction)
        self.assertTrue(decoded.verify_signatures())
        self.assertTrue(decoded.is_signed_by(self.root.get_address().lower()))

    def test_deploy_is_a_copy(self):
        self.transaction.deploy.approvals.clear()
        self.assertEqual(len(self.transaction.signature), 1)

    def test_malformed_input(self):
        for raw in ("", "zz", "00" * 40, self.transaction.to_broadcast_format()[:-2]):
            with self.assertRaises(MalformedTransactionError, msg=raw):
                Transaction.from_raw(raw)

    def test_deeply_nested_argument_type(self):
        nested = CLType(CLType.U64)
        for _ in range(20):
            nested = CLType(CLType.OPTION, nested)
        payment = ExecutableDeployItem.module(
            b"", {AMOUNT_ARG: CLValue.u512(10_000), "extra": CLValue(nested, None)}
        )
        deploy = Deploy.new(
            self.root.public_key,
            payment,
            ExecutableDeployItem.module(b"", {OWNERS_ARG: owners_arg(self.owners)}),
            "casper-test",
            1,
            1_800_000,
            1_600_000_000_000,
        )
        raw = deploy.to_bytes().replace(
            b"\x0d" * 20 + b"\x05", b"\x0d" * 5000 + b"\x05"
        )

        with self.assertRaisesRegex(MalformedTransactionError, "nested deeper"):
            Transaction.from_raw(raw)
        with self.assertRaisesRegex(MalformedTransactionError, "nested deeper"):
            Transaction.from_raw(deploy.to_bytes())

    def test_fee_without_payment_amount(self):
        deploy = Deploy.new(
            self.root.public_key,
            ExecutableDeployItem.module(b"", {}),
            ExecutableDeployItem.module(b"", {OWNERS_ARG: owners_arg(self.owners)}),
            "casper-test",
            2,
            1_800_000,
            1_600_000_000_000,
        )
        transaction = Transaction.from_raw(deploy.to_bytes())

        self.assertEqual(transaction.fee, {"gasPrice": "2"})
        self.assertEqual(transaction.to_json()["fee"], {"gasPrice": "2"})

    def test_unknown_session(self):
        deploy = Deploy.new(
            self.root.public_key,
            ExecutableDeployItem.standard_payment(10_000),
            ExecutableDeployItem.module(b"", {"delegator": CLValue.u64(1)}),
            "casper-test",
            1,
            1_800_000,
            1_600_000_000_000,
        )
        with self.assertRaisesRegex(MalformedTransactionError, "Unrecognized"):
            Transaction.from_raw(deploy.to_bytes())
