"""Tests for JSON to message parsing."""

import pytest

from protojson.proto import (
    DEFAULT_REGISTRY,
    JArray,
    JInt,
    JNULL,
    JObject,
    JsonFormatError,
    JString,
    Message,
    Parser,
    PBoolean,
    PByteString,
    PDouble,
    PFloat,
    PInt,
    PLong,
    PRepeated,
    PString,
    Printer,
    from_json,
    from_json_string,
    to_float32,
)
from protojson.schema import FieldDescriptor, MessageDescriptor, ScalarType


def parse(descriptor, text):
    return Parser().from_json_string(text, descriptor)


def describe_parser():
    def parses_scalars(expect, person):
        msg = parse(
            person,
            '{"name":"Ada","id":7,"score":2.25,"ratio":1.1,"verified":true,"status":"ACTIVE"}',
        )
        expect(msg["name"]) == PString("Ada")
        expect(msg["id"]) == PInt(7)
        expect(msg["score"]) == PDouble(2.25)
        expect(msg["ratio"]) == PFloat(to_float32(1.1))
        expect(msg["verified"]) == PBoolean(True)
        expect(msg["status"].value.name) == "ACTIVE"

    def leaves_absent_fields_unset(expect, person):
        msg = parse(person, '{"name":"Ada"}')
        expect(len(msg.fields)) == 1
        expect(msg.has_field(person.find_field_by_name("id"))) == False

    def ignores_unknown_fields(expect, person):
        msg = parse(person, '{"name":"Ada","shoeSize":44}')
        expect(msg) == Message.build(person, name="Ada")

    def accepts_json_and_declared_names(expect, person):
        expect(parse(person, '{"bigId":"5"}')["big_id"]) == PLong(5)
        expect(parse(person, '{"big_id":"5"}')["big_id"]) == PLong(5)
        expect(parse(person, '{"nick":"Al"}')["display_name"]) == PString("Al")
        expect(parse(person, '{"display_name":"Al"}')["display_name"]) == PString("Al")

    def requires_an_object(expect, person):
        with pytest.raises(JsonFormatError) as exinfo:
            parse(person, "[1, 2]")

        expect(str(exinfo.value)).includes("Expected an object for example.Person, found array")

    def parses_value_trees(expect, person):
        tree = JObject((("name", JString("Ada")), ("id", JInt(3))))
        expect(from_json(tree, person)) == Message.build(person, name="Ada", id=3)

    def uses_module_level_parser(expect, person):
        expect(from_json_string('{"id":3}', person)) == Message.build(person, id=3)

    def rejects_invalid_json_text(expect, person):
        with pytest.raises(JsonFormatError) as exinfo:
            parse(person, '{"name": ')

        expect(str(exinfo.value)).includes("Invalid JSON")


def describe_integers():
    def truncates_32_bit_values(expect, person):
        expect(parse(person, '{"id":3.9}')["id"]) == PInt(3)
        expect(parse(person, '{"id":-3.9}')["id"]) == PInt(-3)
        expect(parse(person, '{"id":4294967301}')["id"]) == PInt(5)

    def reads_null_as_zero(expect, person):
        expect(parse(person, '{"id":null}')["id"]) == PInt(0)
        expect(parse(person, '{"bigId":null}')["big_id"]) == PLong(0)

    def accepts_strings_and_numbers_for_64_bit_values(expect, person):
        from_string = parse(person, '{"bigId":"9007199254740993"}')
        from_number = parse(person, '{"bigId":9007199254740993}')
        expect(from_string["big_id"]) == PLong(9007199254740993)
        expect(from_number) == from_string

    def rejects_malformed_64_bit_strings(expect, person):
        with pytest.raises(JsonFormatError) as exinfo:
            parse(person, '{"bigId":"12abc"}')

        expect(str(exinfo.value)).includes("bigId of example.Person")
        expect(isinstance(exinfo.value.__cause__, ValueError)) == True

    def rejects_strings_for_32_bit_values(expect, person):
        with pytest.raises(JsonFormatError) as exinfo:
            parse(person, '{"id":"7"}')

        expect(str(exinfo.value)).includes("Unexpected value")


def describe_floating_point():
    def accepts_integers_and_decimals(expect, person):
        expect(parse(person, '{"score":3}')["score"]) == PDouble(3.0)
        expect(parse(person, '{"score":1e3}')["score"]) == PDouble(1000.0)
        expect(parse(person, '{"score":null}')["score"]) == PDouble(0.0)
        expect(parse(person, '{"ratio":null}')["ratio"]) == PFloat(0.0)

    def accepts_non_finite_spellings(expect, person):
        msg = parse(person, '{"score":"-Infinity","ratio":"Infinity"}')
        expect(msg["score"]) == PDouble(float("-inf"))
        expect(msg["ratio"]) == PFloat(float("inf"))

    def rejects_other_strings(expect, person):
        with pytest.raises(JsonFormatError):
            parse(person, '{"score":"lots"}')

    def rejects_single_precision_overflow(expect, person):
        with pytest.raises(JsonFormatError):
            parse(person, '{"ratio":1e300}')


def describe_booleans_and_strings():
    def reads_null_as_default(expect, person):
        msg = parse(person, '{"verified":null,"name":null}')
        expect(msg["verified"]) == PBoolean(False)
        expect(msg["name"]) == PString("")

    def rejects_mismatched_kinds(expect, person):
        with pytest.raises(JsonFormatError):
            parse(person, '{"verified":"true"}')

        with pytest.raises(JsonFormatError):
            parse(person, '{"name":12}')


def describe_bytes():
    def decodes_base64(expect, person):
        expect(parse(person, '{"avatar":"AQID"}')["avatar"]) == PByteString(b"\x01\x02\x03")
        expect(parse(person, '{"avatar":null}')["avatar"]) == PByteString(b"")

    def rejects_malformed_base64(expect, person):
        with pytest.raises(JsonFormatError):
            parse(person, '{"avatar":"A"}')

        with pytest.raises(JsonFormatError):
            parse(person, '{"avatar":"AQ$D"}')


def describe_enums():
    def looks_up_names_exactly(expect, person):
        with pytest.raises(JsonFormatError) as exinfo:
            parse(person, '{"status":"active"}')

        expect(str(exinfo.value)).includes("Unrecognized enum value 'active'")

    def rejects_unknown_names(expect, person):
        with pytest.raises(JsonFormatError) as exinfo:
            parse(person, '{"status":"UNKNOWN_NAME"}')

        expect(str(exinfo.value)).includes("Unrecognized enum value 'UNKNOWN_NAME'")

    def rejects_numbers(expect, person):
        with pytest.raises(JsonFormatError):
            parse(person, '{"status":1}')

    def parses_repeated_enums(expect, person):
        msg = parse(person, '{"history":["ACTIVE","SUSPENDED"]}')
        expect([v.value.name for v in msg["history"]]) == ["ACTIVE", "SUSPENDED"]


def describe_repeated_fields():
    def parses_arrays_in_order(expect, person):
        msg = parse(person, '{"tags":["b","a"],"addresses":[{"city":"X"},{}]}')
        expect(msg["tags"]) == PRepeated((PString("b"), PString("a")))
        expect(msg["addresses"]) == Message.build(person, addresses=[{"city": "X"}, {}])["addresses"]

    def requires_arrays(expect, person):
        with pytest.raises(JsonFormatError) as exinfo:
            parse(person, '{"tags":"x"}')

        expect(str(exinfo.value)).includes("Expected an array for repeated field tags")


def describe_map_fields():
    def parses_objects_into_entries(expect, person):
        msg = parse(person, '{"counts":{"a":1,"b":2}}')
        expect(len(msg["counts"])) == 2
        expect(msg) == Message.build(person, counts={"a": 1, "b": 2})

    def converts_keys_to_key_type(expect, person):
        msg = parse(person, '{"byId":{"7":{"city":"Oslo"}},"flags":{"true":"y","false":"n"}}')
        expect(msg) == Message.build(
            person,
            by_id={7: {"city": "Oslo"}},
            flags={True: "y", False: "n"},
        )

    def requires_objects(expect, person):
        with pytest.raises(JsonFormatError) as exinfo:
            parse(person, '{"counts":[1]}')

        expect(str(exinfo.value)).includes("Expected an object for map field counts")

    def rejects_malformed_keys(expect, person):
        with pytest.raises(JsonFormatError):
            parse(person, '{"byId":{"seven":{}}}')

        with pytest.raises(JsonFormatError):
            parse(person, '{"flags":{"yes":"y"}}')


def describe_message_fields():
    def parses_nested_and_self_referencing_messages(expect, person):
        msg = parse(person, '{"manager":{"name":"Boss","manager":{"id":1}}}')
        expect(msg) == Message.build(person, manager={"name": "Boss", "manager": {"id": 1}})

    def rejects_non_objects(expect, person):
        with pytest.raises(JsonFormatError):
            parse(person, '{"homeAddress":null}')

        with pytest.raises(JsonFormatError):
            parse(person, '{"homeAddress":"Main St"}')

    def parses_durations(expect, person):
        msg = parse(person, '{"timeout":"-1.250s"}')
        timeout = msg["timeout"]
        expect(timeout["seconds"]) == PLong(-1)
        expect(timeout["nanos"]) == PInt(-250000000)

    def rejects_non_string_durations(expect, person):
        with pytest.raises(JsonFormatError) as exinfo:
            parse(person, '{"timeout":5}')

        expect(str(exinfo.value)).includes("Expected a string")


def describe_custom_formats():
    def uses_registered_parser_exclusively(expect, person, address):
        fixed = Message.build(address, city="Registry")
        registry = DEFAULT_REGISTRY.register(
            address, lambda msg: JString("x"), lambda value, descriptor: fixed
        )
        msg = Parser(registry=registry).from_json_string('{"homeAddress":{"city":"Oslo"}}', person)
        expect(msg["home_address"]) == fixed

    def applies_to_the_top_level(expect, person):
        registry = DEFAULT_REGISTRY.register(
            person,
            lambda msg: JNULL,
            lambda value, descriptor: Message.build(descriptor, name=str(len(value))),
        )
        msg = Parser(registry=registry).from_json(JArray((JNULL, JNULL)), person)
        expect(msg["name"]) == PString("2")

    def passes_the_target_descriptor(expect):
        own = MessageDescriptor(
            full_name="google.protobuf.Duration",
            fields=[
                FieldDescriptor(number=1, name="seconds", scalar_type=ScalarType.INT64),
                FieldDescriptor(number=2, name="nanos", scalar_type=ScalarType.INT32),
            ],
        )
        msg = Message.build(own, seconds=3)
        back = parse(own, Printer().print(msg))
        expect(back.descriptor is own) == True
        expect(back) == msg

    def rejects_messages_of_another_type(expect, person, address):
        registry = DEFAULT_REGISTRY.register(
            address, lambda msg: JString("x"), lambda value, descriptor: Message(person)
        )
        with pytest.raises(JsonFormatError) as exinfo:
            Parser(registry=registry).from_json(JString("x"), address)

        expect(str(exinfo.value)).includes("another type")


def describe_round_trip():
    def restores_populated_messages(expect, person):
        msg = Message.build(
            person,
            name="Ada",
            id=-7,
            big_id=9007199254740993,
            score=2.25,
            ratio=0.5,
            verified=True,
            avatar=b"\x01\x02\x03",
            status="SUSPENDED",
            home_address={"street": "1 Main St", "city": "Oslo"},
            addresses=[{"street": "2 Side St", "city": "Bergen"}],
            tags=["x", "y"],
            counts={"a": 1, "b": 2},
            by_id={5: {"street": "3 Back St", "city": "Trondheim"}},
            flags={True: "on"},
            retries=3,
            timeout={"seconds": 90, "nanos": 5000},
            display_name="Al",
            history=["ACTIVE"],
        )
        for printer in (
            Printer(),
            Printer(include_default_value_fields=True),
            Printer(preserve_field_names=True),
            Printer(format_long_as_number=True),
        ):
            expect(parse(person, printer.print(msg))) == msg

    def restores_nested_self_references(expect, person):
        msg = Message.build(person, name="Ada", manager={"name": "Boss", "id": 1})
        expect(parse(person, Printer().print(msg))) == msg

    def restores_sparse_messages_with_defaults(expect, person):
        msg = Message.build(person, name="Ada")
        back = parse(person, Printer(include_default_value_fields=True).print(msg))
        expect(back) == msg
        expect(back.has_field(person.find_field_by_name("id"))) == True
        expect(back.has_field(person.find_field_by_name("retries"))) == False

    def restores_zero_durations(expect, person):
        msg = Message.build(person, timeout={"seconds": 0})
        for printer in (Printer(), Printer(include_default_value_fields=True)):
            expect(parse(person, printer.print(msg))) == msg
