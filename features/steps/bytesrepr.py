import typing

from behave import then, use_step_matcher, when

from account_lib.address import AccountAddress
from account_lib.bytesrepr import DeserializationError, Deserializer, Serializer

# Use regular expressions
use_step_matcher("re")


def encoder_for(input_type: str) -> typing.Callable[[Serializer, typing.Any], None]:
    if input_type == "bool":
        return Serializer.bool
    elif input_type == "u8":
        return Serializer.u8
    elif input_type == "u32":
        return Serializer.u32
    elif input_type == "u64":
        return Serializer.u64
    elif input_type == "u512":
        return Serializer.u512
    elif input_type == "address":
        return Serializer.struct
    elif input_type == "bytes":
        return Serializer.to_bytes
    elif input_type == "string":
        return Serializer.str
    raise Exception("Unrecognized input type")


def decoder_for(input_type: str) -> typing.Callable[[Deserializer], typing.Any]:
    if input_type == "bool":
        return Deserializer.bool
    elif input_type == "u8":
        return Deserializer.u8
    elif input_type == "u32":
        return Deserializer.u32
    elif input_type == "u64":
        return Deserializer.u64
    elif input_type == "u512":
        return Deserializer.u512
    elif input_type == "address":
        return AccountAddress.deserialize
    elif input_type == "bytes":
        return Deserializer.to_bytes
    elif input_type == "string":
        return Deserializer.str
    raise Exception("Unrecognized input type")


@when(r"I serialize as (?P<input_type>[a-zA-Z0-9]+)")
def when_serialize(context: typing.Any, input_type: str):
    ser = Serializer()
    encoder_for(input_type)(ser, context.input)
    context.output = ser.output()


@when(r"I deserialize as (?P<input_type>[a-zA-Z0-9]+)")
def when_deserialize(context: typing.Any, input_type: str):
    des = Deserializer(context.input)
    try:
        context.output = decoder_for(input_type)(des)
    except (DeserializationError, ValueError) as e:
        context.output = e


@when(r"I serialize as sequence of (?P<input_type>[a-zA-Z0-9]+)")
def when_serialize_sequence(context: typing.Any, input_type: str):
    ser = Serializer()
    ser.sequence(context.input, encoder_for(input_type))
    context.output = ser.output()


@when(r"I deserialize as sequence of (?P<input_type>[a-zA-Z0-9]+)")
def when_deserialize_sequence(context: typing.Any, input_type: str):
    des = Deserializer(context.input)
    try:
        context.output = des.sequence(decoder_for(input_type))
    except DeserializationError as e:
        context.output = e


@when(r"I deserialize as fixed bytes with length (?P<length>[0-9]+)")
def when_deserialize_fixed_bytes(context: typing.Any, length: str):
    try:
        des = Deserializer(context.input)
        context.output = des.fixed_bytes(int(length))
    except DeserializationError as e:
        context.output = e


@then(r"the deserialization should fail")
def then_fail_deserialization(context: typing.Any):
    assert isinstance(context.output, Exception)
