# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Stateless validation used by the transaction builders.

Every function either returns normally or raises a specific error from
``errors``. Field checks (address, fee, amount, owner insertion) are called by
builder mutators as soon as a value arrives. ``validate_transaction`` is the
build-time gate: it checks fee, then source, then any type specific checks,
and raises on the first one that fails.

Examples:
    Normalizing a fee::

        validate_value({"gasLimit": "10"}, default_gas_price=1)
        # {"gasLimit": "10", "gasPrice": "1"}

    Adding an owner::

        validate_owners(owners, address, max_owners=3)
        owners.append(canonical_address(address))
"""

from __future__ import annotations

import unittest
from typing import Callable, Dict, Mapping, Optional, Sequence, Type, Union

from .address import AccountAddress
from .bytesrepr import MAX_U64, MAX_U512
from .errors import (
    DuplicateOwnerError,
    InvalidAddressError,
    InvalidAmountError,
    InvalidFeeError,
    MissingFeeError,
    MissingSourceError,
    TooManyOwnersError,
    WrongOwnerCountError,
)

FeeInput = Union[int, str, Mapping[str, Union[int, str]]]


def validate_address(address: str):
    """Raise ``InvalidAddressError`` unless ``address`` is a valid account address."""
    if not AccountAddress.is_valid(address):
        raise InvalidAddressError(address)


def parse_integer(
    value: object,
    name: str,
    error: Type[Exception] = InvalidFeeError,
    minimum: int = 1,
    maximum: int = MAX_U512,
) -> int:
    """Parse an int or a base-10 string and require ``minimum <= value <= maximum``.

    The default bounds accept the positive values of a U512.

    Raises:
        error: If the value is missing, not an integer, or out of bounds.
    """
    if value is None:
        raise error(f"Invalid {name}: missing value")
    if isinstance(value, bool):
        raise error(f"Invalid {name}: {value}")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = int(value.strip(), 10)
        except ValueError:
            raise error(f"Invalid {name}: {value}") from None
    else:
        raise error(f"Invalid {name}: {value!r}")
    if parsed < minimum:
        if minimum == 1:
            raise error(
                f"Invalid {name}: value cannot be below or equal to zero, got {value}"
            )
        raise error(f"Invalid {name}: value cannot be below {minimum}, got {value}")
    if parsed > maximum:
        raise error(f"Invalid {name}: value cannot exceed {maximum}, got {value}")
    return parsed


def validate_value(
    fee: Optional[FeeInput], default_gas_price: int = 1
) -> Dict[str, str]:
    """Validate a fee and return it as ``{"gasLimit": str, "gasPrice": str}``.

    The fee is either a scalar gas limit or a mapping with ``gasLimit`` and an
    optional ``gasPrice``.

    The gas limit is a U512 and the gas price a u64 on the wire.

    Raises:
        InvalidFeeError: If the fee is missing, malformed, not positive or too
            large for its encoding.
    """
    if fee is None:
        raise InvalidFeeError("Invalid fee: missing value")
    if isinstance(fee, Mapping):
        if "gasLimit" not in fee:
            raise InvalidFeeError("Invalid fee: missing gasLimit")
        gas_limit = parse_integer(fee["gasLimit"], "gas limit")
        gas_price = parse_integer(
            fee.get("gasPrice", default_gas_price), "gas price", maximum=MAX_U64
        )
    else:
        gas_limit = parse_integer(fee, "gas limit")
        gas_price = parse_integer(default_gas_price, "gas price", maximum=MAX_U64)
    return {"gasLimit": str(gas_limit), "gasPrice": str(gas_price)}


def validate_amount(amount: object) -> str:
    """Validate a transfer amount and return it as a decimal string.

    Raises:
        InvalidAmountError: If the amount is missing, malformed or not positive.
    """
    return str(parse_integer(amount, "amount", InvalidAmountError))


def validate_owners(owners: Sequence[str], address: str, max_owners: int = 3):
    """Check that ``address`` may be appended to ``owners``.

    ``owners`` holds canonical (uppercase) addresses.

    Raises:
        InvalidAddressError: If the address is invalid.
        DuplicateOwnerError: If the address is already an owner.
        TooManyOwnersError: If the owner set is already full.
    """
    canonical = str(AccountAddress.from_str(address))
    if canonical in owners:
        raise DuplicateOwnerError(address)
    if len(owners) >= max_owners:
        raise TooManyOwnersError(max_owners)


def validate_owner_count(owners: Sequence[str], required: int = 3):
    if len(owners) != required:
        raise WrongOwnerCountError(required, len(owners))


def validate_transaction(
    fee: Optional[Mapping[str, str]],
    source: Optional[str],
    *checks: Callable[[], None],
):
    """Build-time gate: fee, then source, then each type specific check in order.

    Only the first unmet precondition is reported.

    Raises:
        MissingFeeError: If no fee was set.
        MissingSourceError: If no source was set.
        InvalidTransactionError: Whatever the first failing check raises.
    """
    if fee is None:
        raise MissingFeeError()
    if source is None:
        raise MissingSourceError()
    for check in checks:
        check()


class Test(unittest.TestCase):
    def test_fee_forms(self):
        self.assertEqual(
            validate_value({"gasLimit": "10"}), {"gasLimit": "10", "gasPrice": "1"}
        )
        self.assertEqual(
            validate_value({"gasLimit": 10, "gasPrice": "3"}),
            {"gasLimit": "10", "gasPrice": "3"},
        )
        self.assertEqual(
            validate_value(25, default_gas_price=2), {"gasLimit": "25", "gasPrice": "2"}
        )

    def test_fee_must_be_positive(self):
        for fee in ({"gasLimit": "-10"}, {"gasLimit": "0"}, -1, 0, "1.5", "ten", None):
            with self.assertRaises(InvalidFeeError, msg=str(fee)):
                validate_value(fee)
        with self.assertRaises(InvalidFeeError):
            validate_value({"gasLimit": "10", "gasPrice": "-1"})
        with self.assertRaises(InvalidFeeError):
            validate_value({"gasPrice": "1"})

    def test_fee_fits_its_encoding(self):
        self.assertEqual(
            validate_value({"gasLimit": MAX_U512, "gasPrice": str(MAX_U64)}),
            {"gasLimit": str(MAX_U512), "gasPrice": str(MAX_U64)},
        )
        with self.assertRaisesRegex(InvalidFeeError, "gas price: value cannot exceed"):
            validate_value({"gasLimit": "10", "gasPrice": str(MAX_U64 + 1)})
        with self.assertRaisesRegex(InvalidFeeError, "gas limit: value cannot exceed"):
            validate_value(MAX_U512 + 1)
        with self.assertRaises(InvalidFeeError):
            validate_value(10, default_gas_price=MAX_U64 + 1)

    def test_amount(self):
        self.assertEqual(validate_amount("2500000000"), "2500000000")
        with self.assertRaises(InvalidAmountError):
            validate_amount("-1")
        with self.assertRaises(InvalidAmountError):
            validate_amount(MAX_U512 + 1)

    def test_integer_bounds(self):
        self.assertEqual(parse_integer("0", "id", minimum=0, maximum=MAX_U64), 0)
        self.assertEqual(
            parse_integer(MAX_U64, "id", minimum=0, maximum=MAX_U64), MAX_U64
        )
        with self.assertRaisesRegex(InvalidFeeError, "cannot be below 0"):
            parse_integer(-1, "id", minimum=0)
        with self.assertRaisesRegex(InvalidFeeError, "below or equal to zero"):
            parse_integer(0, "id")

    def test_owner_insertion(self):
        owner = "01d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a"
        other = "013d4017c3e843895a92b70aa74d1b7ebc9c982ccf2ec4968cc0cd55f12af4660c"
        owners = [owner.upper()]

        with self.assertRaisesRegex(DuplicateOwnerError, "Repeated owner address"):
            validate_owners(owners, owner.lower())
        with self.assertRaises(InvalidAddressError):
            validate_owners(owners, "abc")
        with self.assertRaisesRegex(TooManyOwnersError, "A maximum of 1 owners"):
            validate_owners(owners, other, max_owners=1)
        with self.assertRaises(InvalidAddressError):
            validate_owners(owners, "01" + "ab" * 32)
        validate_owners(owners, other)

    def test_owner_count(self):
        with self.assertRaisesRegex(
            WrongOwnerCountError, "wrong number of owners -- required: 3, found: 2"
        ):
            validate_owner_count(["A", "B"])
        validate_owner_count(["A", "B", "C"])

    def test_transaction_gate_order(self):
        def fail():
            raise WrongOwnerCountError(3, 0)

        with self.assertRaisesRegex(MissingFeeError, "missing fee"):
            validate_transaction(None, None, fail)
        with self.assertRaisesRegex(MissingSourceError, "missing source"):
            validate_transaction({"gasLimit": "1"}, None, fail)
        with self.assertRaises(WrongOwnerCountError):
            validate_transaction({"gasLimit": "1"}, "SOURCE", fail)
        validate_transaction({"gasLimit": "1"}, "SOURCE")
