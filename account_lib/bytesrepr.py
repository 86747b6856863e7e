# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Little-endian "bytesrepr" serialization used for deploys and their arguments.

The format is the canonical byte encoding of Casper-style chains. These
details matter for hashing and signing:

- Lengths of byte arrays, strings and sequences are ``u32`` little-endian.
- Fixed-width integers are little-endian.
- ``U512`` amounts are written as a one byte length followed by the minimal
  little-endian representation of the value (zero is a single ``0x00``).
- Options are a ``0x00``/``0x01`` tag followed by the value when present.

Examples:
    Basic serialization::

        from account_lib.bytesrepr import Serializer, Deserializer

        ser = Serializer()
        ser.str("casper-test")
        ser.u512(2_500_000_000)
        data = ser.output()

        der = Deserializer(data)
        chain = der.str()    # "casper-test"
        amount = der.u512()  # 2500000000

    Working with custom structures::

        class Approval:
            def serialize(self, serializer):
                serializer.fixed_bytes(self.signer)
                serializer.fixed_bytes(self.signature)

            @staticmethod
            def deserialize(deserializer):
                ...
"""

from __future__ import annotations

import io
import typing
import unittest
from typing import Dict, List, Optional

from typing_extensions import Protocol

MAX_U8 = 2**8 - 1
MAX_U32 = 2**32 - 1
MAX_U64 = 2**64 - 1
MAX_U512 = 2**512 - 1


class DeserializationError(Exception):
    """Raised when the input stream does not hold a valid encoding."""


class Deserializable(Protocol):
    """Protocol for objects that can be read back from a bytesrepr stream."""

    @classmethod
    def from_bytes(cls, indata: bytes) -> Deserializable:
        """Create an instance from encoded bytes, requiring all input be consumed.

        Raises:
            DeserializationError: If the data is truncated, malformed or has
                trailing bytes.
        """
        der = Deserializer(indata)
        value = der.struct(cls)
        if der.remaining() != 0:
            raise DeserializationError(
                f"Trailing bytes after {cls.__name__}: {der.remaining()}"
            )
        return value

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Deserializable:
        ...


class Serializable(Protocol):
    """Protocol for objects that can be written to a bytesrepr stream."""

    def to_bytes(self) -> bytes:
        ser = Serializer()
        ser.struct(self)
        return ser.output()

    def serialize(self, serializer: Serializer):
        ...


class Deserializer:
    """A bytesrepr deserializer reading from an in-memory byte stream.

    Attributes:
        _input: Internal BytesIO stream for reading data.
        _length: Total length of the input data.

    Examples:
        Reading collections::

            der = Deserializer(data)
            names = der.sequence(Deserializer.str)
            args = der.map(Deserializer.str, Deserializer.to_bytes)
            ttl = der.option(Deserializer.u64)
    """

    _input: io.BytesIO
    _length: int

    def __init__(self, data: bytes):
        self._length = len(data)
        self._input = io.BytesIO(data)

    def remaining(self) -> int:
        """Get the number of unread bytes."""
        return self._length - self._input.tell()

    def bool(self) -> bool:
        """Read a boolean encoded as a single ``0x00``/``0x01`` byte.

        Raises:
            DeserializationError: If the byte is neither 0 nor 1.
        """
        value = self._read_int(1)
        if value == 0:
            return False
        elif value == 1:
            return True
        else:
            raise DeserializationError(f"Unexpected boolean value: {value}")

    def to_bytes(self) -> bytes:
        """Read a ``u32`` length followed by that many raw bytes."""
        return self._read(self.u32())

    def fixed_bytes(self, length: int) -> bytes:
        return self._read(length)

    def map(
        self,
        key_decoder: typing.Callable[[Deserializer], typing.Any],
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> Dict[typing.Any, typing.Any]:
        """Read an ordered map: a ``u32`` count followed by key/value pairs.

        Duplicate keys are rejected so that decoding stays canonical.
        """
        length = self.u32()
        values: Dict = {}
        for _ in range(length):
            key = key_decoder(self)
            if key in values:
                raise DeserializationError(f"Duplicate map key: {key}")
            values[key] = value_decoder(self)
        return values

    def sequence(
        self,
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> List[typing.Any]:
        """Read a ``u32`` count followed by that many elements."""
        length = self.u32()
        if length > self.remaining():
            raise DeserializationError(
                f"Sequence length {length} exceeds remaining input {self.remaining()}"
            )
        values: List = []
        while len(values) < length:
            values.append(value_decoder(self))
        return values

    def option(
        self,
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> Optional[typing.Any]:
        """Read an optional value: a tag byte, then the value when the tag is 1."""
        if self.bool():
            return value_decoder(self)
        return None

    def str(self) -> str:
        """Read a UTF-8 string stored as length-prefixed bytes."""
        try:
            return self.to_bytes().decode()
        except UnicodeDecodeError as e:
            raise DeserializationError(f"Invalid UTF-8 string: {e}") from e

    def struct(self, struct: typing.Any) -> typing.Any:
        return struct.deserialize(self)

    def u8(self) -> int:
        return self._read_int(1)

    def u32(self) -> int:
        return self._read_int(4)

    def u64(self) -> int:
        return self._read_int(8)

    def u512(self) -> int:
        """Read a ``U512``: one length byte then that many little-endian bytes.

        Raises:
            DeserializationError: If the length exceeds 64 bytes.
        """
        length = self.u8()
        if length > 64:
            raise DeserializationError(f"U512 length out of range: {length}")
        return int.from_bytes(self._read(length), byteorder="little", signed=False)

    def _read(self, length: int) -> bytes:
        value = self._input.read(length)
        if value is None or len(value) < length:
            actual_length = 0 if value is None else len(value)
            error = (
                f"Unexpected end of input. Requested: {length}, found: {actual_length}"
            )
            raise DeserializationError(error)
        return value

    def _read_int(self, length: int) -> int:
        return int.from_bytes(self._read(length), byteorder="little", signed=False)


class Serializer:
    """A bytesrepr serializer accumulating output in memory.

    Examples:
        Serializing collections::

            ser = Serializer()
            ser.sequence(["a", "b"], Serializer.str)
            ser.option(None, Serializer.u64)
            data = ser.output()
    """

    _output: io.BytesIO

    def __init__(self):
        self._output = io.BytesIO()

    def output(self) -> bytes:
        return self._output.getvalue()

    def bool(self, value: bool):
        self._write_int(int(value), 1)

    def to_bytes(self, value: bytes):
        """Write a ``u32`` length followed by the raw bytes."""
        self.u32(len(value))
        self._output.write(value)

    def fixed_bytes(self, value):
        self._output.write(value)

    def map(
        self,
        values: typing.Dict[typing.Any, typing.Any],
        key_encoder: typing.Callable[[Serializer, typing.Any], None],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        """Write a map in insertion order.

        Named arguments are order sensitive on chain; entries are not sorted.
        """
        self.u32(len(values))
        for key, value in values.items():
            key_encoder(self, key)
            value_encoder(self, value)

    def sequence(
        self,
        values: typing.List[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        self.u32(len(values))
        for value in values:
            value_encoder(self, value)

    def option(
        self,
        value: Optional[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        if value is None:
            self.bool(False)
        else:
            self.bool(True)
            value_encoder(self, value)

    def str(self, value: str):
        self.to_bytes(value.encode())

    def struct(self, value: typing.Any):
        value.serialize(self)

    def u8(self, value: int):
        if value > MAX_U8:
            raise ValueError(f"Cannot encode {value} into u8")

        self._write_int(value, 1)

    def u32(self, value: int):
        if value > MAX_U32:
            raise ValueError(f"Cannot encode {value} into u32")

        self._write_int(value, 4)

    def u64(self, value: int):
        if value > MAX_U64:
            raise ValueError(f"Cannot encode {value} into u64")

        self._write_int(value, 8)

    def u512(self, value: int):
        """Write a ``U512`` as a length byte plus its minimal little-endian bytes."""
        if value < 0 or value > MAX_U512:
            raise ValueError(f"Cannot encode {value} into U512")

        length = (value.bit_length() + 7) // 8
        self.u8(length)
        self._output.write(value.to_bytes(length, "little", signed=False))

    def _write_int(self, value: int, length: int):
        self._output.write(value.to_bytes(length, "little", signed=False))


def encoder(
    value: typing.Any, encoder: typing.Callable[[Serializer, typing.Any], typing.Any]
) -> bytes:
    ser = Serializer()
    encoder(ser, value)
    return ser.output()


class Test(unittest.TestCase):
    def test_bool_true(self):
        in_value = True

        ser = Serializer()
        ser.bool(in_value)
        der = Deserializer(ser.output())
        out_value = der.bool()

        self.assertEqual(in_value, out_value)

    def test_bool_error(self):
        der = Deserializer(b"\x32")
        with self.assertRaises(DeserializationError):
            der.bool()

    def test_bytes_are_u32_length_prefixed(self):
        self.assertEqual(
            encoder(b"\x01\x02", Serializer.to_bytes), b"\x02\x00\x00\x00\x01\x02"
        )

    def test_str(self):
        encoded = "06000000636173706572"
        self.assertEqual(encoder("casper", Serializer.str).hex(), encoded)
        self.assertEqual(Deserializer(bytes.fromhex(encoded)).str(), "casper")

    def test_u64_little_endian(self):
        self.assertEqual(encoder(1800000, Serializer.u64).hex(), "40771b0000000000")

    def test_u512(self):
        self.assertEqual(encoder(0, Serializer.u512), b"\x00")
        self.assertEqual(encoder(255, Serializer.u512), b"\x01\xff")
        self.assertEqual(encoder(256, Serializer.u512), b"\x02\x00\x01")
        self.assertEqual(encoder(2_500_000_000, Serializer.u512).hex(), "0400f90295")
        self.assertEqual(
            Deserializer(bytes.fromhex("0400f90295")).u512(), 2_500_000_000
        )

    def test_u512_rejects_oversized_length(self):
        with self.assertRaises(DeserializationError):
            Deserializer(b"\x41" + b"\x00" * 65).u512()

    def test_map_keeps_insertion_order(self):
        in_value = {"b": 1, "a": 2}

        ser = Serializer()
        ser.map(in_value, Serializer.str, Serializer.u32)
        der = Deserializer(ser.output())
        out_value = der.map(Deserializer.str, Deserializer.u32)

        self.assertEqual(list(out_value.keys()), ["b", "a"])
        self.assertEqual(in_value, out_value)

    def test_option(self):
        ser = Serializer()
        ser.option(None, Serializer.u64)
        ser.option(7, Serializer.u64)
        der = Deserializer(ser.output())

        self.assertIsNone(der.option(Deserializer.u64))
        self.assertEqual(der.option(Deserializer.u64), 7)

    def test_sequence(self):
        in_value = ["a", "abc", "def", "ghi"]

        ser = Serializer()
        ser.sequence(in_value, Serializer.str)
        der = Deserializer(ser.output())
        out_value = der.sequence(Deserializer.str)

        self.assertEqual(in_value, out_value)

    def test_truncated_input(self):
        with self.assertRaisesRegex(DeserializationError, "Unexpected end of input"):
            Deserializer(b"\x05\x00\x00\x00ab").str()


if __name__ == "__main__":
    unittest.main()
