# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Per-network parameters used when assembling deploys.

Examples:
    Presets for known networks::

        config = NetworkConfig.for_network("tcspr")
        config.chain_name  # "casper-test"

    Overriding parameters for a private network::

        config = NetworkConfig(
            chain_name="casper-net-1",
            gas_price=2,
            ttl_ms=3_600_000,
        )
        factory = TransactionBuilderFactory("local", config)
"""

from __future__ import annotations

import unittest
from dataclasses import dataclass, field, replace
from typing import Dict


@dataclass(frozen=True)
class NetworkConfig:
    """Parameters that shape deploys built for one network.

    Deploy Parameters:
        chain_name: Chain name written in the deploy header
        gas_price: Default gas price when a fee does not carry one (default: 1)
        ttl_ms: Deploy time-to-live in milliseconds (default: 30 minutes)
        wallet_init_contract: Session module bytes installing the multisig
            wallet (default: empty, supplied by the custody deployment)

    Multisig Parameters:
        required_owners: Exact owner count needed to build (default: 3)
        max_owners: Largest owner set accepted by ``owner()`` (default: 3)
    """

    chain_name: str
    gas_price: int = 1
    ttl_ms: int = 1_800_000
    wallet_init_contract: bytes = field(default=b"", repr=False)
    required_owners: int = 3
    max_owners: int = 3

    @staticmethod
    def for_network(network_id: str) -> NetworkConfig:
        """Return the preset for ``network_id`` or a default config named after it."""
        preset = NETWORK_PRESETS.get(network_id)
        if preset is not None:
            return preset
        return NetworkConfig(chain_name=network_id)

    def with_contract(self, wallet_init_contract: bytes) -> NetworkConfig:
        return replace(self, wallet_init_contract=wallet_init_contract)


NETWORK_PRESETS: Dict[str, NetworkConfig] = {
    "cspr": NetworkConfig(chain_name="casper"),
    "tcspr": NetworkConfig(chain_name="casper-test"),
}


class Test(unittest.TestCase):
    def test_presets(self):
        self.assertEqual(NetworkConfig.for_network("cspr").chain_name, "casper")
        self.assertEqual(NetworkConfig.for_network("tcspr").chain_name, "casper-test")

    def test_unknown_network_defaults(self):
        config = NetworkConfig.for_network("thbar")
        self.assertEqual(config.chain_name, "thbar")
        self.assertEqual(config.required_owners, 3)
        self.assertEqual(config.max_owners, 3)

    def test_with_contract(self):
        config = NetworkConfig.for_network("tcspr").with_contract(b"\x00asm")
        self.assertEqual(config.wallet_init_contract, b"\x00asm")
        self.assertEqual(NetworkConfig.for_network("tcspr").wallet_init_contract, b"")
