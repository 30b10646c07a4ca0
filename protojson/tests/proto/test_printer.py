"""Tests for message to JSON printing."""

import math

import pytest

from protojson.proto import (
    DURATION,
    DEFAULT_REGISTRY,
    JObject,
    JsonFormatError,
    JString,
    Message,
    Parser,
    Printer,
    PInt,
    PString,
    to_json_string,
    to_python,
)
from protojson.schema import parse_schema


def describe_printer():
    def prints_empty_message(expect, person):
        expect(Printer().print(Message(person))) == "{}"

    def prints_scalars(expect, person):
        msg = Message.build(
            person,
            name="Ada",
            id=7,
            score=2.25,
            ratio=0.5,
            verified=True,
            status="ACTIVE",
        )
        expect(Printer().print(msg)) == (
            '{"name":"Ada","id":7,"score":2.25,"ratio":0.5,"verified":true,"status":"ACTIVE"}'
        )

    def prints_fields_in_declaration_order(expect, person):
        msg = Message.build(person, tags=["x"], name="Ada")
        expect(list(to_python(Printer().to_json(msg)))) == ["name", "tags"]

    def prints_bytes_as_base64(expect, person):
        msg = Message.build(person, avatar=b"\x01\x02\x03")
        expect(Printer().print(msg)) == '{"avatar":"AQID"}'

    def prints_non_finite_doubles_as_strings(expect, person):
        msg = Message.build(person, score=math.nan, ratio=-math.inf)
        expect(Printer().print(msg)) == '{"score":"NaN","ratio":"-Infinity"}'

    def uses_module_level_printer(expect, person):
        expect(to_json_string(Message.build(person, name="Ada"))) == '{"name":"Ada"}'


def describe_default_values():
    def omits_proto3_zero_values(expect, person):
        msg = Message.build(person, id=0, name="", verified=False, status="STATUS_UNSPECIFIED")
        expect(Printer().print(msg)) == "{}"

    def includes_zero_values_when_asked(expect, person):
        msg = Message.build(person, id=0)
        expect(to_python(Printer(include_default_value_fields=True).to_json(msg))["id"]) == 0

    def includes_every_unset_field_when_asked(expect, person):
        printer = Printer(include_default_value_fields=True)
        expect(to_python(printer.to_json(Message(person)))) == {
            "name": "",
            "id": 0,
            "bigId": "0",
            "score": 0.0,
            "ratio": 0.0,
            "verified": False,
            "avatar": "",
            "status": "STATUS_UNSPECIFIED",
            "addresses": [],
            "tags": [],
            "counts": {},
            "byId": {},
            "flags": {},
            "nick": "",
            "history": [],
        }

    def keeps_explicit_presence_zero_values(expect, person):
        msg = Message.build(person, retries=0)
        expect(Printer().print(msg)) == '{"retries":0}'

    def keeps_legacy_zero_values(expect):
        schema = parse_schema(
            """
            syntax = "proto2";
            message Item {
                optional int32 count = 1;
                optional string label = 2;
            }
            """
        )
        msg = Message.build(schema.message("Item"), count=0)
        expect(Printer().print(msg)) == '{"count":0}'


def describe_field_names():
    def uses_json_names_by_default(expect, person):
        msg = Message.build(person, big_id=5, display_name="Al")
        expect(Printer().print(msg)) == '{"bigId":"5","nick":"Al"}'

    def preserves_declared_names(expect, person):
        msg = Message.build(person, big_id=5, display_name="Al")
        expect(Printer(preserve_field_names=True).print(msg)) == (
            '{"big_id":"5","display_name":"Al"}'
        )


def describe_64_bit_integers():
    def prints_strings_by_default(expect, person):
        msg = Message.build(person, big_id=9007199254740993)
        expect(Printer().print(msg)) == '{"bigId":"9007199254740993"}'

    def prints_numbers_when_asked(expect, person):
        msg = Message.build(person, big_id=9007199254740993)
        expect(Printer(format_long_as_number=True).print(msg)) == '{"bigId":9007199254740993}'


def describe_message_fields():
    def omits_unset_messages(expect, person):
        msg = Message.build(person, name="Ada")
        printer = Printer(include_default_value_fields=True)
        output = to_python(printer.to_json(msg))
        expect("homeAddress" in output) == False
        expect("manager" in output) == False
        expect("timeout" in output) == False

    def prints_nested_messages(expect, person):
        msg = Message.build(person, home_address={"city": "Oslo"}, manager={"name": "Boss"})
        expect(Printer().print(msg)) == '{"homeAddress":{"city":"Oslo"},"manager":{"name":"Boss"}}'

    def prints_empty_nested_message(expect, person):
        msg = Message.build(person, home_address={})
        expect(Printer().print(msg)) == '{"homeAddress":{}}'

    def prints_repeated_messages(expect, person):
        msg = Message.build(person, addresses=[{"city": "A"}, {"street": "B"}])
        expect(Printer().print(msg)) == '{"addresses":[{"city":"A"},{"street":"B"}]}'

    def omits_empty_repeated_messages(expect, person):
        msg = Message.build(person, addresses=[])
        expect(Printer().print(msg)) == "{}"

    def prints_well_known_durations(expect, person):
        msg = Message.build(person, timeout=Message.build(DURATION, seconds=1, nanos=500000000))
        expect(Printer().print(msg)) == '{"timeout":"1.500s"}'


def describe_map_fields():
    def prints_maps_as_objects(expect, person):
        msg = Message.build(person, counts={"a": 1, "b": 2})
        expect(Printer().print(msg)) == '{"counts":{"a":1,"b":2}}'

    def stringifies_integer_keys(expect, person):
        msg = Message.build(person, by_id={7: {"city": "Oslo"}, -2: {}})
        expect(Printer().print(msg)) == '{"byId":{"7":{"city":"Oslo"},"-2":{}}}'

    def stringifies_boolean_keys(expect, person):
        msg = Message.build(person, flags={True: "yes", False: ""})
        expect(Printer().print(msg)) == '{"flags":{"true":"yes","false":""}}'

    def stringifies_double_keys(expect):
        schema = parse_schema('syntax = "proto3"; message M { map<double, int32> m = 1; }')
        msg = Message.build(schema.message("M"), m={1.0: 1, 2.5: 2})
        expect(Printer().print(msg)) == '{"m":{"1.0":1,"2.5":2}}'

    def stringifies_float_keys_at_single_precision(expect):
        schema = parse_schema('syntax = "proto3"; message M { map<float, int32> m = 1; }')
        msg = Message.build(schema.message("M"), m={0.1: 1, 2.5: 2})
        text = Printer().print(msg)
        expect(text) == '{"m":{"0.1":1,"2.5":2}}'
        expect(Parser().from_json_string(text, schema.message("M"))) == msg

    def omits_empty_maps(expect, person):
        msg = Message.build(person, counts={})
        expect(Printer().print(msg)) == "{}"
        printer = Printer(include_default_value_fields=True)
        expect(printer.to_json(msg).get("counts")) == JObject()


def describe_printer_errors():
    def rejects_messages_in_scalar_fields(expect, person, address):
        name = person.find_field_by_name("name")
        msg = Message(person, {name: Message(address)})
        with pytest.raises(JsonFormatError):
            Printer().print(msg)

    def rejects_scalars_in_message_fields(expect, person):
        home = person.find_field_by_name("home_address")
        msg = Message(person, {home: PString("nowhere")})
        with pytest.raises(JsonFormatError) as exinfo:
            Printer().print(msg)

        expect(str(exinfo.value)).includes("homeAddress of example.Person")

    def rejects_invalid_durations(expect, person):
        msg = Message.build(person, timeout=Message.build(DURATION, seconds=1, nanos=-1))
        with pytest.raises(JsonFormatError):
            Printer().print(msg)


def describe_custom_formats():
    def uses_registered_writer_exclusively(expect, person, address):
        registry = DEFAULT_REGISTRY.register(
            address,
            lambda msg: JString("custom"),
            lambda value, descriptor: Message(descriptor),
        )
        msg = Message.build(person, home_address={"city": "Oslo"})
        expect(Printer(registry=registry).print(msg)) == '{"homeAddress":"custom"}'
        expect(Printer().print(msg)) == '{"homeAddress":{"city":"Oslo"}}'

    def overrides_top_level_message(expect, person):
        registry = DEFAULT_REGISTRY.register(
            person,
            lambda msg: JString(f"person {msg['id'].value}"),
            lambda value, descriptor: Message(descriptor),
        )
        msg = Message(person, {person.find_field_by_name("id"): PInt(3)})
        expect(Printer(registry=registry).print(msg)) == '"person 3"'
