import asyncio
import typing

from behave import given, then, use_step_matcher, when

from account_lib.errors import AccountLibError
from account_lib.factory import BuilderRegistry
from account_lib.key_pair import KeyPair

# Use regular expressions
use_step_matcher("re")

ROOT_PRIVATE_KEY = "306d5ee4d4b1f11b7d9e53a5ab7b9ba8d0ad8b9a2a8b3d0d08e1f0a3b0a7a011"


def account(name: str) -> KeyPair:
    if name == "root":
        return KeyPair(prv=ROOT_PRIVATE_KEY)
    return KeyPair(prv=(name * 2) * 32)


@given(r"a wallet initialization builder for (?P<network>\w+)")
def given_builder(context: typing.Any, network: str):
    context.factory = BuilderRegistry().register(network)
    context.builder = context.factory.get_wallet_initialization_builder()


@when(r"I set the fee to (?P<gas_limit>-?\d+)")
def when_set_fee(context: typing.Any, gas_limit: str):
    context.builder.fee({"gasLimit": gas_limit})


@when(r"I set the source to account (?P<name>\w+)")
def when_set_source(context: typing.Any, name: str):
    context.builder.source({"address": account(name).get_address()})


@when(r"I add owner account (?P<name>\w+)")
def when_add_owner(context: typing.Any, name: str):
    try:
        context.builder.owner(account(name).get_address())
        context.error = None
    except AccountLibError as e:
        context.error = e


@when(r"I sign with account (?P<name>\w+)")
def when_sign(context: typing.Any, name: str):
    context.builder.sign({"key": account(name).private_key.hex()})


@when(r"I build the transaction")
def when_build(context: typing.Any):
    try:
        context.transaction = asyncio.run(context.builder.build())
        context.error = None
    except AccountLibError as e:
        context.error = e


@when(r"I load the transaction into a new builder")
def when_reload(context: typing.Any):
    context.previous = context.transaction
    raw = context.transaction.to_broadcast_format()
    context.builder = context.factory.from_raw(raw)


@then(r"the transaction should have (?P<count>\d+) signatures?")
def then_signature_count(context: typing.Any, count: str):
    assert len(context.transaction.signature) == int(count), (
        "Expected " + count + " but got " + str(len(context.transaction.signature))
    )


@then(r"the transaction should be from account (?P<name>\w+)")
def then_from(context: typing.Any, name: str):
    assert context.transaction.to_json()["from"] == account(name).get_address()


@then(r"the transaction type should be (?P<transaction_type>\w+)")
def then_type(context: typing.Any, transaction_type: str):
    assert context.transaction.to_json()["type"] == transaction_type


@then(r"the signatures should be valid")
def then_signatures_valid(context: typing.Any):
    assert context.transaction.verify_signatures()


@then(r"the transaction should extend the loaded one")
def then_extends(context: typing.Any):
    assert context.transaction.id == context.previous.id
    previous = context.previous.signature
    assert context.transaction.signature[: len(previous)] == previous


@then(r'it should fail with "(?P<message>[^"]*)"')
def then_fail(context: typing.Any, message: str):
    assert context.error is not None, "Expected an error"
    assert str(context.error) == message, (
        "Expected " + message + " but got " + str(context.error)
    )
