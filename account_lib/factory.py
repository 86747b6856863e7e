# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Per-network factories of transaction builders and the registry that holds them.

A factory binds a network id to its :class:`~account_lib.config.NetworkConfig`
and hands out fresh, empty builders. Factories are registered once per network
id; registering an id again returns the factory already in place, so two
threads racing to register the same network end up sharing one factory.

Examples:
    Using the default registry::

        from account_lib import factory

        tcspr = factory.register("tcspr", factory.TransactionBuilderFactory)
        builder = tcspr.get_wallet_initialization_builder()

    Owning a registry::

        registry = BuilderRegistry()
        registry.register("cspr", TransactionBuilderFactory)
        builder = registry.get_builder_for("cspr", TransactionType.SEND)

    Resuming a transaction from its broadcast format::

        builder = tcspr.from_raw(raw)
        builder.sign({"key": private_key})
        tx = await builder.build()
"""

from __future__ import annotations

import logging
import threading
import unittest
from typing import Callable, Dict, Optional, Type

from .config import NetworkConfig
from .errors import UnregisteredNetworkError, UnsupportedTransactionTypeError
from .key_pair import KeyPair
from .transaction import Transaction, TransactionType
from .transaction_builder import TransactionBuilder
from .transfer_builder import TransferBuilder
from .wallet_initialization_builder import WalletInitializationBuilder


class TransactionBuilderFactory:
    """Hands out builders for one network.

    Args:
        network_id: Identifier the factory is registered under, e.g. ``"tcspr"``.
        config: Network parameters; defaults to the preset for ``network_id``.
    """

    network_id: str
    config: NetworkConfig

    def __init__(self, network_id: str, config: Optional[NetworkConfig] = None):
        self.network_id = network_id
        if config is None:
            config = NetworkConfig.for_network(network_id)
        self.config = config

    def __str__(self) -> str:
        return f"TransactionBuilderFactory({self.network_id}, {self.config.chain_name})"

    def builders(self) -> Dict[TransactionType, Callable[[], TransactionBuilder]]:
        return {
            TransactionType.WALLET_INITIALIZATION: (
                self.get_wallet_initialization_builder
            ),
            TransactionType.SEND: self.get_transfer_builder,
        }

    def get_wallet_initialization_builder(self) -> WalletInitializationBuilder:
        return WalletInitializationBuilder(self.config)

    def get_transfer_builder(self) -> TransferBuilder:
        return TransferBuilder(self.config)

    def get_builder(self, transaction_type: TransactionType) -> TransactionBuilder:
        """Return a fresh builder for ``transaction_type``.

        Raises:
            UnsupportedTransactionTypeError: If this network has no such builder.
        """
        builder = self.builders().get(transaction_type)
        if builder is None:
            raise UnsupportedTransactionTypeError(self.network_id, transaction_type)
        return builder()

    def from_raw(self, raw: str | bytes) -> TransactionBuilder:
        """Return a builder of the right type seeded from a serialized transaction.

        Raises:
            MalformedTransactionError: If the input does not decode.
            UnsupportedTransactionTypeError: If the decoded type has no builder.
        """
        transaction = Transaction.from_raw(raw)
        return self.get_builder(transaction.type).from_raw(raw)


class BuilderRegistry:
    """Network-scoped factory registry; registration is insert-if-absent."""

    _factories: Dict[str, TransactionBuilderFactory]
    _lock: threading.Lock

    def __init__(self):
        self._factories = {}
        self._lock = threading.Lock()

    def register(
        self,
        network_id: str,
        factory_cls: Type[TransactionBuilderFactory] = TransactionBuilderFactory,
        config: Optional[NetworkConfig] = None,
    ) -> TransactionBuilderFactory:
        """Register a factory for ``network_id`` unless one already exists.

        Returns the registered factory, which is the existing one when the id
        was registered before.
        """
        with self._lock:
            factory = self._factories.get(network_id)
            if factory is None:
                factory = factory_cls(network_id, config)
                self._factories[network_id] = factory
                logging.info(f"Registered {factory}")
            return factory

    def get_factory(self, network_id: str) -> TransactionBuilderFactory:
        """
        Raises:
            UnregisteredNetworkError: If no factory is registered for the id.
        """
        factory = self._factories.get(network_id)
        if factory is None:
            raise UnregisteredNetworkError(network_id)
        return factory

    def get_builder_for(
        self, network_id: str, transaction_type: TransactionType
    ) -> TransactionBuilder:
        return self.get_factory(network_id).get_builder(transaction_type)


default_registry = BuilderRegistry()


def register(
    network_id: str,
    factory_cls: Type[TransactionBuilderFactory] = TransactionBuilderFactory,
    config: Optional[NetworkConfig] = None,
) -> TransactionBuilderFactory:
    return default_registry.register(network_id, factory_cls, config)


def get_builder_for(
    network_id: str, transaction_type: TransactionType
) -> TransactionBuilder:
    return default_registry.get_builder_for(network_id, transaction_type)


class Test(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.registry = BuilderRegistry()
        self.root = KeyPair(
            prv="306d5ee4d4b1f11b7d9e53a5ab7b9ba8d0ad8b9a2a8b3d0d08e1f0a3b0a7a011"
        )
        self.owners = [KeyPair(prv=f"{i}{i}" * 32).get_address() for i in range(1, 4)]

    def test_register_is_insert_if_absent(self):
        first = self.registry.register("tcspr", TransactionBuilderFactory)
        second = self.registry.register(
            "tcspr", TransactionBuilderFactory, NetworkConfig(chain_name="other")
        )

        self.assertIs(first, second)
        self.assertEqual(second.config.chain_name, "casper-test")
        self.assertIs(self.registry.get_factory("tcspr"), first)

    def test_concurrent_registration(self):
        factories = []

        def register_tcspr():
            factories.append(self.registry.register("tcspr"))

        threads = [threading.Thread(target=register_tcspr) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        self.assertEqual(len(factories), 8)
        self.assertTrue(all(factory is factories[0] for factory in factories))

    def test_unregistered_network(self):
        with self.assertRaises(UnregisteredNetworkError):
            self.registry.get_factory("cspr")
        with self.assertRaises(UnregisteredNetworkError):
            self.registry.get_builder_for("cspr", TransactionType.SEND)

    def test_unsupported_type(self):
        self.registry.register("cspr")
        with self.assertRaisesRegex(
            UnsupportedTransactionTypeError, "StakingLock is not supported on cspr"
        ):
            self.registry.get_builder_for("cspr", TransactionType.STAKING_LOCK)

    def test_builders_are_fresh(self):
        factory = self.registry.register("tcspr")
        first = factory.get_wallet_initialization_builder()
        first.owner(self.owners[0])

        self.assertEqual(factory.get_wallet_initialization_builder().owners, [])
        self.assertIsInstance(
            self.registry.get_builder_for("tcspr", TransactionType.SEND),
            TransferBuilder,
        )

    def test_unknown_network_uses_defaults(self):
        factory = self.registry.register("thbar")
        self.assertEqual(factory.config.chain_name, "thbar")

    def test_default_registry(self):
        factory = register("tcspr")
        self.assertIs(register("tcspr"), factory)
        self.assertIsInstance(
            get_builder_for("tcspr", TransactionType.WALLET_INITIALIZATION),
            WalletInitializationBuilder,
        )

    async def test_from_raw_detects_type(self):
        factory = self.registry.register("tcspr")
        builder = factory.get_wallet_initialization_builder()
        builder.fee({"gasLimit": "10000"}).source(self.root.get_address())
        for owner in self.owners:
            builder.owner(owner)
        tx = await builder.sign(self.root).build()

        resumed = factory.from_raw(tx.to_broadcast_format())
        self.assertIsInstance(resumed, WalletInitializationBuilder)
        self.assertEqual((await resumed.build()).to_json(), tx.to_json())
