# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
This translates deploys, the chain-native transaction payload, to and from bytesrepr.

A deploy is a header, a payment item, a session item and a list of approvals.
Signers sign the deploy hash, which is the BLAKE2b-256 digest of the encoded
header; the header in turn commits to the payment and session through the
body hash. Approvals are therefore outside the signed payload and can be
appended by independent signers without invalidating earlier ones.
"""

from __future__ import annotations

import hashlib
import unittest
from typing import Any, Dict, List, Optional

from .bytesrepr import (
    Deserializable,
    DeserializationError,
    Deserializer,
    Serializable,
    Serializer,
    encoder,
)
from .key_pair import KeyPair, PublicKey, Signature

HASH_LENGTH = 32


def blake2b256(data: bytes) -> bytes:
    return hashlib.blake2b(data, digest_size=HASH_LENGTH).digest()


class CLType(Deserializable, Serializable):
    """Type descriptor of a CLValue; only the types the builders emit are supported."""

    U8: int = 3
    U32: int = 4
    U64: int = 5
    U512: int = 8
    STRING: int = 10
    OPTION: int = 13
    LIST: int = 14
    PUBLIC_KEY: int = 22

    SIMPLE = (U8, U32, U64, U512, STRING, PUBLIC_KEY)
    # Deepest chain of OPTION/LIST wrappers accepted when decoding
    MAX_DEPTH: int = 8

    tag: int
    inner: Optional[CLType]

    def __init__(self, tag: int, inner: Optional[CLType] = None):
        if tag in CLType.SIMPLE:
            assert inner is None, f"CLType {tag} takes no inner type"
        elif tag in (CLType.OPTION, CLType.LIST):
            assert inner is not None, f"CLType {tag} requires an inner type"
        else:
            raise DeserializationError(f"Unsupported CLType tag: {tag}")
        self.tag = tag
        self.inner = inner

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CLType):
            return NotImplemented
        return self.tag == other.tag and self.inner == other.inner

    def __str__(self) -> str:
        if self.inner is None:
            return str(self.tag)
        return f"{self.tag}({self.inner})"

    def encode_value(self, serializer: Serializer, value: Any):
        if self.tag == CLType.U8:
            serializer.u8(value)
        elif self.tag == CLType.U32:
            serializer.u32(value)
        elif self.tag == CLType.U64:
            serializer.u64(value)
        elif self.tag == CLType.U512:
            serializer.u512(value)
        elif self.tag == CLType.STRING:
            serializer.str(value)
        elif self.tag == CLType.PUBLIC_KEY:
            serializer.struct(value)
        elif self.tag == CLType.OPTION:
            serializer.option(value, self.inner.encode_value)
        else:
            serializer.sequence(value, self.inner.encode_value)

    def decode_value(self, deserializer: Deserializer) -> Any:
        if self.tag == CLType.U8:
            return deserializer.u8()
        elif self.tag == CLType.U32:
            return deserializer.u32()
        elif self.tag == CLType.U64:
            return deserializer.u64()
        elif self.tag == CLType.U512:
            return deserializer.u512()
        elif self.tag == CLType.STRING:
            return deserializer.str()
        elif self.tag == CLType.PUBLIC_KEY:
            return deserializer.struct(PublicKey)
        elif self.tag == CLType.OPTION:
            return deserializer.option(self.inner.decode_value)
        else:
            return deserializer.sequence(self.inner.decode_value)

    @staticmethod
    def deserialize(deserializer: Deserializer, depth: int = 0) -> CLType:
        if depth > CLType.MAX_DEPTH:
            raise DeserializationError(
                f"CLType nested deeper than {CLType.MAX_DEPTH} levels"
            )
        tag = deserializer.u8()
        if tag in (CLType.OPTION, CLType.LIST):
            return CLType(tag, CLType.deserialize(deserializer, depth + 1))
        return CLType(tag)

    def serialize(self, serializer: Serializer):
        serializer.u8(self.tag)
        if self.inner is not None:
            self.inner.serialize(serializer)


class CLValue(Deserializable, Serializable):
    """A typed runtime argument: the encoded value followed by its CLType."""

    cl_type: CLType
    value: Any

    def __init__(self, cl_type: CLType, value: Any):
        self.cl_type = cl_type
        self.value = value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CLValue):
            return NotImplemented
        return self.cl_type == other.cl_type and self.value == other.value

    def __str__(self) -> str:
        return f"CLValue({self.cl_type}, {self.value})"

    @staticmethod
    def u8(value: int) -> CLValue:
        return CLValue(CLType(CLType.U8), value)

    @staticmethod
    def u64(value: int) -> CLValue:
        return CLValue(CLType(CLType.U64), value)

    @staticmethod
    def u512(value: int) -> CLValue:
        return CLValue(CLType(CLType.U512), value)

    @staticmethod
    def string(value: str) -> CLValue:
        return CLValue(CLType(CLType.STRING), value)

    @staticmethod
    def public_key(value: PublicKey) -> CLValue:
        return CLValue(CLType(CLType.PUBLIC_KEY), value)

    @staticmethod
    def option(value: Optional[Any], inner: CLType) -> CLValue:
        return CLValue(CLType(CLType.OPTION, inner), value)

    @staticmethod
    def list(values: List[Any], inner: CLType) -> CLValue:
        return CLValue(CLType(CLType.LIST, inner), values)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> CLValue:
        raw = deserializer.to_bytes()
        cl_type = deserializer.struct(CLType)
        value_deserializer = Deserializer(raw)
        value = cl_type.decode_value(value_deserializer)
        if value_deserializer.remaining() != 0:
            raise DeserializationError(f"Trailing bytes in CLValue of type {cl_type}")
        return CLValue(cl_type, value)

    def serialize(self, serializer: Serializer):
        serializer.to_bytes(encoder(self.value, self.cl_type.encode_value))
        serializer.struct(self.cl_type)


class ExecutableDeployItem(Deserializable, Serializable):
    """Payment or session code of a deploy with its named runtime arguments."""

    MODULE_BYTES: int = 0
    TRANSFER: int = 5

    variant: int
    module_bytes: bytes
    args: Dict[str, CLValue]

    def __init__(
        self, variant: int, args: Dict[str, CLValue], module_bytes: bytes = b""
    ):
        if variant not in (
            ExecutableDeployItem.MODULE_BYTES,
            ExecutableDeployItem.TRANSFER,
        ):
            raise DeserializationError(f"Unsupported executable deploy item: {variant}")
        self.variant = variant
        self.args = args
        self.module_bytes = module_bytes

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ExecutableDeployItem):
            return NotImplemented
        return (
            self.variant == other.variant
            and self.module_bytes == other.module_bytes
            and self.args == other.args
        )

    def __str__(self) -> str:
        args = ", ".join(f"{name}={value}" for name, value in self.args.items())
        return f"ExecutableDeployItem({self.variant}, {args})"

    @staticmethod
    def module(module_bytes: bytes, args: Dict[str, CLValue]) -> ExecutableDeployItem:
        return ExecutableDeployItem(
            ExecutableDeployItem.MODULE_BYTES, args, module_bytes
        )

    @staticmethod
    def standard_payment(amount: int) -> ExecutableDeployItem:
        """The system standard payment: empty module bytes and an ``amount``."""
        return ExecutableDeployItem.module(b"", {"amount": CLValue.u512(amount)})

    @staticmethod
    def transfer(args: Dict[str, CLValue]) -> ExecutableDeployItem:
        return ExecutableDeployItem(ExecutableDeployItem.TRANSFER, args)

    def arg(self, name: str) -> Any:
        """Return the plain value of a named argument, or None when absent."""
        value = self.args.get(name)
        return None if value is None else value.value

    @staticmethod
    def deserialize(deserializer: Deserializer) -> ExecutableDeployItem:
        variant = deserializer.u8()
        if variant == ExecutableDeployItem.MODULE_BYTES:
            module_bytes = deserializer.to_bytes()
        elif variant == ExecutableDeployItem.TRANSFER:
            module_bytes = b""
        else:
            raise DeserializationError(f"Unsupported executable deploy item: {variant}")
        args = deserializer.map(Deserializer.str, CLValue.deserialize)
        return ExecutableDeployItem(variant, args, module_bytes)

    def serialize(self, serializer: Serializer):
        serializer.u8(self.variant)
        if self.variant == ExecutableDeployItem.MODULE_BYTES:
            serializer.to_bytes(self.module_bytes)
        serializer.map(self.args, Serializer.str, Serializer.struct)


class DeployHeader(Deserializable, Serializable):
    # Account paying for and originating the deploy
    account: PublicKey
    # Creation time, milliseconds since the Unix epoch
    timestamp: int
    # Time-to-live in milliseconds
    ttl: int
    gas_price: int
    # BLAKE2b-256 of the encoded payment followed by the encoded session
    body_hash: bytes
    dependencies: List[bytes]
    chain_name: str

    def __init__(
        self,
        account: PublicKey,
        timestamp: int,
        ttl: int,
        gas_price: int,
        body_hash: bytes,
        dependencies: List[bytes],
        chain_name: str,
    ):
        self.account = account
        self.timestamp = timestamp
        self.ttl = ttl
        self.gas_price = gas_price
        self.body_hash = body_hash
        self.dependencies = dependencies
        self.chain_name = chain_name

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DeployHeader):
            return NotImplemented
        return (
            self.account == other.account
            and self.timestamp == other.timestamp
            and self.ttl == other.ttl
            and self.gas_price == other.gas_price
            and self.body_hash == other.body_hash
            and self.dependencies == other.dependencies
            and self.chain_name == other.chain_name
        )

    def __str__(self):
        return f"""DeployHeader:
    account: {self.account}
    timestamp: {self.timestamp}
    ttl: {self.ttl}
    gas_price: {self.gas_price}
    body_hash: {self.body_hash.hex()}
    chain_name: {self.chain_name}
"""

    @staticmethod
    def deserialize(deserializer: Deserializer) -> DeployHeader:
        return DeployHeader(
            deserializer.struct(PublicKey),
            deserializer.u64(),
            deserializer.u64(),
            deserializer.u64(),
            deserializer.fixed_bytes(HASH_LENGTH),
            deserializer.sequence(lambda der: der.fixed_bytes(HASH_LENGTH)),
            deserializer.str(),
        )

    def serialize(self, serializer: Serializer):
        serializer.struct(self.account)
        serializer.u64(self.timestamp)
        serializer.u64(self.ttl)
        serializer.u64(self.gas_price)
        serializer.fixed_bytes(self.body_hash)
        serializer.sequence(self.dependencies, Serializer.fixed_bytes)
        serializer.str(self.chain_name)


class Approval(Deserializable, Serializable):
    """A signer's tagged public key and its tagged signature over the deploy hash."""

    signer: PublicKey
    signature: Signature

    def __init__(self, signer: PublicKey, signature: Signature):
        self.signer = signer
        self.signature = signature

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Approval):
            return NotImplemented
        return self.signer == other.signer and self.signature == other.signature

    def __str__(self) -> str:
        return f"Approval({self.signer}, {self.signature})"

    __repr__ = __str__

    def to_json(self) -> Dict[str, str]:
        return {"signer": self.signer.hex(), "signature": self.signature.hex()}

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Approval:
        return Approval(deserializer.struct(PublicKey), deserializer.struct(Signature))

    def serialize(self, serializer: Serializer):
        serializer.struct(self.signer)
        serializer.struct(self.signature)


class Deploy(Deserializable, Serializable):
    header: DeployHeader
    hash: bytes
    payment: ExecutableDeployItem
    session: ExecutableDeployItem
    approvals: List[Approval]

    def __init__(
        self,
        header: DeployHeader,
        payment: ExecutableDeployItem,
        session: ExecutableDeployItem,
        approvals: Optional[List[Approval]] = None,
        deploy_hash: Optional[bytes] = None,
    ):
        self.header = header
        self.payment = payment
        self.session = session
        self.approvals = [] if approvals is None else approvals
        if deploy_hash is None:
            deploy_hash = blake2b256(header.to_bytes())
        self.hash = deploy_hash

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Deploy):
            return NotImplemented
        return (
            self.hash == other.hash
            and self.header == other.header
            and self.payment == other.payment
            and self.session == other.session
            and self.approvals == other.approvals
        )

    def __str__(self) -> str:
        return f"Deploy {self.hash.hex()}: {self.header}approvals: {self.approvals}"

    @staticmethod
    def new(
        account: PublicKey,
        payment: ExecutableDeployItem,
        session: ExecutableDeployItem,
        chain_name: str,
        gas_price: int,
        ttl: int,
        timestamp: int,
        dependencies: Optional[List[bytes]] = None,
    ) -> Deploy:
        """Assemble an unsigned deploy, computing the body hash and deploy hash."""
        body_hash = Deploy.body_hash_of(payment, session)
        header = DeployHeader(
            account,
            timestamp,
            ttl,
            gas_price,
            body_hash,
            [] if dependencies is None else dependencies,
            chain_name,
        )
        return Deploy(header, payment, session)

    @staticmethod
    def body_hash_of(
        payment: ExecutableDeployItem, session: ExecutableDeployItem
    ) -> bytes:
        ser = Serializer()
        payment.serialize(ser)
        session.serialize(ser)
        return blake2b256(ser.output())

    def copy(self) -> Deploy:
        """A copy whose approval list can grow without touching this deploy."""
        return Deploy(
            self.header, self.payment, self.session, list(self.approvals), self.hash
        )

    def sign(self, key_pair: KeyPair) -> Approval:
        return Approval(key_pair.public_key, key_pair.sign(self.hash))

    def is_valid(self) -> bool:
        """True when the hashes commit to the header and body as encoded."""
        return (
            self.hash == blake2b256(self.header.to_bytes())
            and self.header.body_hash == Deploy.body_hash_of(self.payment, self.session)
        )

    def verify_approvals(self) -> bool:
        return all(
            approval.signer.verify(self.hash, approval.signature)
            for approval in self.approvals
        )

    def to_bytes(self) -> bytes:
        ser = Serializer()
        self.serialize(ser)
        return ser.output()

    @staticmethod
    def from_bytes(indata: bytes) -> Deploy:
        """Decode a deploy and check that its hashes match its contents.

        Raises:
            DeserializationError: If the input is malformed, has trailing bytes
                or its hashes do not match.
        """
        der = Deserializer(indata)
        deploy = der.struct(Deploy)
        if der.remaining() != 0:
            raise DeserializationError(
                f"Trailing bytes after deploy: {der.remaining()}"
            )
        if not deploy.is_valid():
            raise DeserializationError("Deploy hash does not match its contents")
        return deploy

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Deploy:
        header = deserializer.struct(DeployHeader)
        deploy_hash = deserializer.fixed_bytes(HASH_LENGTH)
        payment = deserializer.struct(ExecutableDeployItem)
        session = deserializer.struct(ExecutableDeployItem)
        approvals = deserializer.sequence(Approval.deserialize)
        return Deploy(header, payment, session, approvals, deploy_hash)

    def serialize(self, serializer: Serializer):
        serializer.struct(self.header)
        serializer.fixed_bytes(self.hash)
        serializer.struct(self.payment)
        serializer.struct(self.session)
        serializer.sequence(self.approvals, Serializer.struct)


class Test(unittest.TestCase):
    def setUp(self):
        self.sender = KeyPair(
            prv="306d5ee4d4b1f11b7d9e53a5ab7b9ba8d0ad8b9a2a8b3d0d08e1f0a3b0a7a011"
        )
        self.recipient = KeyPair()
        self.deploy = Deploy.new(
            self.sender.public_key,
            ExecutableDeployItem.standard_payment(10_000),
            ExecutableDeployItem.transfer(
                {
                    "amount": CLValue.u512(2_500_000_000),
                    "target": CLValue.public_key(self.recipient.public_key),
                    "id": CLValue.option(None, CLType(CLType.U64)),
                }
            ),
            "casper-test",
            1,
            1_800_000,
            1_600_000_000_000,
        )

    def test_round_trip(self):
        self.deploy.approvals.append(self.deploy.sign(self.sender))
        decoded = Deploy.from_bytes(self.deploy.to_bytes())

        self.assertEqual(decoded, self.deploy)
        self.assertEqual(decoded.to_bytes(), self.deploy.to_bytes())
        self.assertTrue(decoded.verify_approvals())
        self.assertEqual(decoded.session.arg("amount"), 2_500_000_000)
        self.assertIsNone(decoded.session.arg("id"))

    def test_hash_covers_header_and_body(self):
        self.assertTrue(self.deploy.is_valid())
        self.assertEqual(self.deploy.hash, blake2b256(self.deploy.header.to_bytes()))

    def test_approvals_do_not_change_hash(self):
        before = self.deploy.hash
        self.deploy.approvals.append(self.deploy.sign(self.sender))
        self.assertEqual(Deploy.from_bytes(self.deploy.to_bytes()).hash, before)

    def test_tampered_body_is_rejected(self):
        tampered = self.deploy.copy()
        tampered.payment = ExecutableDeployItem.standard_payment(1)
        with self.assertRaisesRegex(DeserializationError, "does not match"):
            Deploy.from_bytes(tampered.to_bytes())

    def test_trailing_bytes_are_rejected(self):
        with self.assertRaisesRegex(DeserializationError, "Trailing bytes"):
            Deploy.from_bytes(self.deploy.to_bytes() + b"\x00")

    def test_truncated_input_is_rejected(self):
        with self.assertRaises(DeserializationError):
            Deploy.from_bytes(self.deploy.to_bytes()[:-3])

    def test_list_of_public_keys(self):
        keys = [KeyPair().public_key for _ in range(3)]
        value = CLValue.list(keys, CLType(CLType.PUBLIC_KEY))

        ser = Serializer()
        value.serialize(ser)
        self.assertEqual(CLValue.deserialize(Deserializer(ser.output())), value)

    def test_nested_types_are_bounded(self):
        nested = CLType(CLType.U64)
        for _ in range(CLType.MAX_DEPTH):
            nested = CLType(CLType.OPTION, nested)
        self.assertEqual(Deserializer(nested.to_bytes()).struct(CLType), nested)

        too_deep = CLType(CLType.LIST, nested)
        with self.assertRaisesRegex(DeserializationError, "nested deeper"):
            Deserializer(too_deep.to_bytes()).struct(CLType)
        with self.assertRaisesRegex(DeserializationError, "nested deeper"):
            Deserializer(b"\x0d" * 5000 + b"\x03").struct(CLType)
