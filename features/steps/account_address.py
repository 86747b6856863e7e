from behave import then, use_step_matcher, when

from account_lib.address import AccountAddress
from account_lib.errors import InvalidAddressError

# Use regular expressions
use_step_matcher("re")


@when("I parse the account address")
def when_parse_account_address(context):
    try:
        context.output = AccountAddress.from_str(context.input)
    except InvalidAddressError as e:
        context.output = e


@when("I convert the address to a string")
def when_account_address_to_string(context):
    context.output = str(context.input)


@when("I convert the address to lowercase hex")
def when_account_address_to_lowercase_hex(context):
    context.output = context.input.public_key.hex()


@then("I should fail to parse the account address")
def then_fail_account_address(context):
    assert isinstance(context.output, InvalidAddressError)
