# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Common state machine shared by all transaction builders.

A builder collects a fee, a source account and signers, then ``build()``
validates everything and assembles a :class:`~account_lib.transaction.Transaction`.
Subclasses add their type specific fields and describe the session item.

Field mutators validate their input immediately and return the builder so
calls can be chained. Completeness (a fee, a source, type specific fields) is
only checked by :meth:`TransactionBuilder.validate_transaction`, which
``build()`` calls first.

Signers are kept in call order. Private keys sign the deploy hash when
``build()`` runs; external signatures are attached as given. An identical
approval is never attached twice.

A builder seeded with :meth:`TransactionBuilder.from_raw` reuses the decoded
deploy as is. Its fields are fixed and it only accepts additional signatures,
which are appended after the approvals already present.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Mapping, Optional, Union

from .address import canonical_address
from .asymmetric_crypto import KeyAlgorithm
from .config import NetworkConfig
from .deploy import Approval, Deploy, ExecutableDeployItem
from .errors import (
    BuildTransactionError,
    ImmutableFieldError,
    InvalidFeeError,
    InvalidKeyError,
    MalformedTransactionError,
    MissingPrivateKeyError,
)
from .key_pair import KeyPair, PublicKey, Signature, validate_key
from .transaction import Transaction, TransactionType
from .validation import validate_address, validate_transaction, validate_value

SourceInput = Union[str, Mapping[str, str]]
KeyInput = Union[KeyPair, Mapping[str, str]]


class TransactionBuilder(ABC):
    """Base class for builders of one transaction type on one network."""

    transaction_type: TransactionType

    _config: NetworkConfig
    _fee: Optional[Dict[str, str]]
    _source: Optional[str]
    _signers: List[Union[KeyPair, Approval]]
    _seed: Optional[Deploy]

    def __init__(self, config: NetworkConfig):
        self._config = config
        self._fee = None
        self._source = None
        self._signers = []
        self._seed = None

    @property
    def config(self) -> NetworkConfig:
        return self._config

    def fee(self, fee) -> TransactionBuilder:
        """Set the fee from a gas limit or a ``{"gasLimit", "gasPrice"}`` mapping.

        Raises:
            InvalidFeeError: If the fee is malformed or not positive.
            ImmutableFieldError: If the builder was seeded from raw data.
        """
        self._check_mutable("fee")
        self._fee = validate_value(fee, self._config.gas_price)
        return self

    def source(self, source: SourceInput) -> TransactionBuilder:
        """Set the originating account from an address or ``{"address": ...}``.

        Raises:
            InvalidAddressError: If the address is invalid.
            ImmutableFieldError: If the builder was seeded from raw data.
        """
        self._check_mutable("source")
        address = _address(source)
        self.validate_address(address)
        self._source = canonical_address(address)
        return self

    def sign(self, key: KeyInput) -> TransactionBuilder:
        """Queue a private key that signs the deploy when ``build()`` runs.

        ``key`` is a KeyPair holding a private key, or ``{"key": <hex>}`` for a
        secp256k1 private key. ``{"key": <hex>, "algorithm": "ed25519"}``
        selects Ed25519.

        Raises:
            InvalidKeyError: If the key cannot be decoded.
            MissingPrivateKeyError: If the KeyPair only holds a public key.
        """
        if isinstance(key, KeyPair):
            key_pair = key
        else:
            algorithm = _algorithm(key.get("algorithm"))
            self.validate_key(key, algorithm)
            key_pair = KeyPair(prv=key["key"], algorithm=algorithm)
        if not key_pair.has_private_key():
            raise MissingPrivateKeyError()
        self._signers.append(key_pair)
        return self

    def signature(
        self, signature: str | bytes, key_pair: KeyPair
    ) -> TransactionBuilder:
        """Attach a signature produced elsewhere by the owner of ``key_pair``.

        The signature is not verified here; ``Transaction.verify_signatures``
        checks it against the built deploy.

        Raises:
            InvalidKeyError: If the signature cannot be decoded for the key scheme.
        """
        parsed = Signature.from_hex(signature, key_pair.algorithm)
        self._signers.append(Approval(key_pair.public_key, parsed))
        return self

    def from_raw(self, raw: str | bytes) -> TransactionBuilder:
        """Seed this builder from a serialized transaction of the same type.

        Only an empty builder can be seeded, and only once.

        Raises:
            MalformedTransactionError: If the input does not decode, decodes to
                another transaction type or network, or carries an invalid fee.
            ImmutableFieldError: If the builder was already seeded.
            BuildTransactionError: If fields were already set on the builder.
        """
        self._check_mutable("transaction")
        if not self._is_empty():
            raise BuildTransactionError(
                "Cannot load a serialized transaction into a builder with fields set"
            )
        transaction = self.validate_raw_transaction(raw)
        deploy = transaction.deploy
        self._fee = transaction.fee
        self._source = transaction.source
        self._load(transaction)
        self._seed = deploy
        logging.debug(f"Loaded {transaction} with {len(deploy.approvals)} approvals")
        return self

    def validate_address(self, address: SourceInput):
        """Raises ``InvalidAddressError`` unless the address is valid.

        ``address`` is either the address or ``{"address": <address>}``.
        """
        validate_address(_address(address))

    def validate_key(
        self,
        key: Mapping[str, str],
        algorithm: KeyAlgorithm = KeyAlgorithm.SECP256K1,
    ):
        """Raises ``InvalidKeyError`` unless ``key["key"]`` decodes as a key."""
        value = key.get("key")
        if value is None:
            raise InvalidKeyError()
        validate_key(value, algorithm)

    def validate_raw_transaction(self, raw: str | bytes) -> Transaction:
        """Decode ``raw`` and check it can seed this builder.

        Raises:
            MalformedTransactionError: If the input does not decode, is another
                transaction type, targets another chain or has an invalid fee.
        """
        transaction = Transaction.from_raw(raw)
        text = raw if isinstance(raw, str) else None
        if transaction.type != self.transaction_type:
            logging.warning(f"Rejected {transaction}: expected {self.transaction_type}")
            raise MalformedTransactionError(
                f"Expected a {self.transaction_type} transaction, "
                f"got {transaction.type}",
                text,
            )
        if transaction.chain_name != self._config.chain_name:
            logging.warning(
                f"Rejected {transaction}: expected chain {self._config.chain_name}"
            )
            raise MalformedTransactionError(
                f"Expected a transaction for {self._config.chain_name}, "
                f"got {transaction.chain_name}",
                text,
            )
        try:
            validate_value(transaction.fee, self._config.gas_price)
        except InvalidFeeError as e:
            logging.warning(f"Rejected {transaction}: {e}")
            raise MalformedTransactionError(f"Malformed transaction: {e}", text) from e
        return transaction

    def validate_transaction(self):
        """Check that the builder holds everything ``build()`` needs.

        Raises:
            MissingFeeError: If no fee was set.
            MissingSourceError: If no source was set.
            InvalidTransactionError: If a type specific field is missing.
        """
        validate_transaction(self._fee, self._source, *self._checks())

    async def build(self) -> Transaction:
        """Validate, assemble and sign the transaction.

        Builder state is left unchanged, so a failed build can be retried after
        fixing the reported field.
        """
        self.validate_transaction()
        deploy = self._deploy()
        for signer in self._signers:
            approval = deploy.sign(signer) if isinstance(signer, KeyPair) else signer
            if approval not in deploy.approvals:
                deploy.approvals.append(approval)
        transaction = Transaction(deploy, self.transaction_type)
        logging.info(
            f"Built {transaction} on {self._config.chain_name} "
            f"with {len(deploy.approvals)} approvals"
        )
        return transaction

    def _deploy(self) -> Deploy:
        if self._seed is not None:
            return self._seed.copy()
        return Deploy.new(
            PublicKey.from_hex(self._source),
            ExecutableDeployItem.standard_payment(int(self._fee["gasLimit"])),
            self._session(),
            self._config.chain_name,
            int(self._fee["gasPrice"]),
            self._config.ttl_ms,
            int(time.time() * 1000),
        )

    def _check_mutable(self, field: str):
        if self._seed is not None:
            raise ImmutableFieldError(field)

    def _is_empty(self) -> bool:
        """True while no field has been set; subclasses add their own fields."""
        return self._seed is None and self._fee is None and self._source is None

    @abstractmethod
    def _checks(self) -> List[Callable[[], None]]:
        """Type specific build-time checks, run in order after fee and source."""

    @abstractmethod
    def _session(self) -> ExecutableDeployItem:
        ...

    @abstractmethod
    def _load(self, transaction: Transaction):
        """Copy the type specific fields of a decoded transaction."""


def _address(source: SourceInput) -> Optional[str]:
    return source.get("address") if isinstance(source, Mapping) else source


def _algorithm(label: Optional[str]) -> KeyAlgorithm:
    if label is None:
        return KeyAlgorithm.SECP256K1
    for algorithm in KeyAlgorithm:
        if algorithm.label == label.lower():
            return algorithm
    raise InvalidKeyError(f"Unknown key algorithm: {label}")
