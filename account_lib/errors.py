# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Exception hierarchy for transaction building, signing and parsing.

Field-level problems (a bad address, a non-positive fee, a repeated owner) are
raised synchronously from the builder mutator that received the value.
Completeness problems (a missing fee or source, the wrong number of owners) are
raised only from ``validate_transaction`` and ``build``.

Examples:
    Catching a specific failure::

        try:
            builder.owner(address)
        except DuplicateOwnerError as e:
            print(f"Rejected: {e}")

    Catching anything raised while building::

        try:
            tx = await builder.build()
        except BuildTransactionError as e:
            print(f"Cannot build yet: {e}")
"""

from typing import Optional


class AccountLibError(Exception):
    """Base exception for every error raised by this package."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BuildTransactionError(AccountLibError):
    """A builder rejected a value or could not produce a transaction."""


class InvalidTransactionError(BuildTransactionError):
    """The builder state is incomplete and cannot be built yet."""


class InvalidAddressError(BuildTransactionError):
    """Exception raised when an address fails the network's format check."""

    def __init__(self, address: object):
        self.address = address
        super().__init__(f"Invalid address {address}")


class InvalidFeeError(BuildTransactionError):
    """Exception raised when a fee is malformed or not strictly positive."""


class InvalidAmountError(BuildTransactionError):
    """Exception raised when a transfer amount is malformed or not positive."""


class DuplicateOwnerError(BuildTransactionError):
    """Exception raised when an owner address is already in the owner set."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(f"Repeated owner address: {address}")


class TooManyOwnersError(BuildTransactionError):
    """Exception raised when adding an owner would exceed the maximum."""

    def __init__(self, max_owners: int):
        self.max_owners = max_owners
        super().__init__(
            f"A maximum of {max_owners} owners can be set for a multisig wallet"
        )


class ImmutableFieldError(BuildTransactionError):
    """Exception raised when changing a field of a builder seeded from raw data."""

    def __init__(self, field: str):
        self.field = field
        super().__init__(
            f"Cannot set {field}: the transaction was loaded from a serialized "
            "transaction and only accepts additional signatures"
        )


class MissingFeeError(InvalidTransactionError):
    def __init__(self):
        super().__init__("Invalid transaction: missing fee")


class MissingSourceError(InvalidTransactionError):
    def __init__(self):
        super().__init__("Invalid transaction: missing source")


class MissingDestinationError(InvalidTransactionError):
    def __init__(self):
        super().__init__("Invalid transaction: missing to")


class MissingAmountError(InvalidTransactionError):
    def __init__(self):
        super().__init__("Invalid transaction: missing amount")


class WrongOwnerCountError(InvalidTransactionError):
    """Exception raised at build time when the owner set has the wrong size."""

    def __init__(self, required: int, found: int):
        self.required = required
        self.found = found
        super().__init__(
            f"wrong number of owners -- required: {required}, found: {found}"
        )


class InvalidKeyError(AccountLibError):
    """Exception raised when a key cannot be decoded for the key scheme."""

    def __init__(self, message: str = "Invalid key"):
        super().__init__(message)


class SigningError(AccountLibError):
    """Exception raised when a signature cannot be produced."""


class MissingPrivateKeyError(SigningError):
    def __init__(self):
        super().__init__("Missing private key")


class MalformedTransactionError(AccountLibError):
    """Exception raised when serialized input cannot be decoded into a transaction."""

    def __init__(self, message: str, raw: Optional[str] = None):
        super().__init__(message)
        self.raw = raw


class UnregisteredNetworkError(AccountLibError):
    """Exception raised when no factory was registered for a network id."""

    def __init__(self, network_id: str):
        self.network_id = network_id
        super().__init__(f"Network {network_id} is not registered")


class UnsupportedTransactionTypeError(AccountLibError):
    """Exception raised when a network has no builder for a transaction type."""

    def __init__(self, network_id: str, transaction_type: object):
        self.network_id = network_id
        self.transaction_type = transaction_type
        super().__init__(
            f"Transaction type {transaction_type} is not supported on {network_id}"
        )
