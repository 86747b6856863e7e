# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
account_lib - offline transaction builders for Casper-style account chains.

The library builds, validates, signs and serializes transactions without any
network access. It is meant for custody software that prepares a transaction
in one place and collects signatures in others: a serialized transaction can
be loaded into a fresh builder, signed again and re-serialized without
changing anything but its approvals.

Core Features:
- **Builder Factory**: Per-network factories handing out typed builders
- **Wallet Initialization**: Multisig wallet setup with exactly three owners
- **Transfers**: Native transfers with an optional transfer id
- **Key Material**: secp256k1 (default) and Ed25519 keys with tagged encodings
- **bytesrepr Codec**: Canonical little-endian encoding of deploys

Supported Networks:
- **cspr**: Casper mainnet, chain name ``casper``
- **tcspr**: Casper testnet, chain name ``casper-test``
- Any other id is accepted with default parameters named after the id

Quick Start:
    Building a wallet initialization::

        import asyncio
        from account_lib.factory import register

        factory = register("tcspr")
        builder = factory.get_wallet_initialization_builder()
        builder.fee({"gasLimit": "10000"})
        builder.source({"address": root_address})
        builder.owner(owner_a).owner(owner_b).owner(owner_c)
        builder.sign({"key": root_private_key})

        tx = asyncio.run(builder.build())
        raw = tx.to_broadcast_format()

    Adding a signature elsewhere::

        builder = factory.from_raw(raw)
        builder.sign({"key": owner_private_key})
        tx = asyncio.run(builder.build())

Module Organization:
    - **factory**: Builder factories and the network registry
    - **transaction_builder**: State and validation shared by all builders
    - **wallet_initialization_builder**: Multisig wallet initialization
    - **transfer_builder**: Native transfers
    - **transaction**: Built transactions and their serialized form
    - **deploy**: Deploy codec, hashing and approvals
    - **validation**: Field and build-time checks
    - **key_pair**, **ed25519**, **secp256k1_ecdsa**: Key material
    - **address**: Account addresses
    - **bytesrepr**: Byte encoding
    - **config**: Per-network parameters
    - **errors**: Exception hierarchy

Security Considerations:
    - **Private Keys**: Keys are never logged; keep them out of serialized output
    - **External Signatures**: Signatures attached with ``signature()`` are not
      verified until ``Transaction.verify_signatures()`` is called
"""
