"""Schema definition parser using Lark.

Parses the subset of ``.proto`` files protojson needs (messages, enums,
maps, labels and ``json_name`` options) and links the result into
descriptors.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, TypeVar

from dataclasses_json import DataClassJsonMixin
from lark import Lark, Token
from lark.exceptions import LarkError
from lark.visitors import Transformer

from .types import (
    SCALAR_TYPE_NAMES,
    Cardinality,
    EnumDescriptor,
    EnumValueDescriptor,
    FieldDescriptor,
    MessageDescriptor,
    SchemaError,
    map_entry,
)

logger = logging.getLogger(__name__)

_g_parser: Lark | None = None


@dataclass
class ProtoOption(DataClassJsonMixin):
    """An ``option`` statement or a bracketed field option."""

    name: str
    value: Any


@dataclass
class ProtoEnumValue(DataClassJsonMixin):
    name: str
    number: int
    options: list[ProtoOption] = field(default_factory=list)


@dataclass
class ProtoEnum(DataClassJsonMixin):
    name: str
    values: list[ProtoEnumValue]
    options: list[ProtoOption] = field(default_factory=list)


@dataclass
class ProtoField(DataClassJsonMixin):
    """A field declaration. ``key_type`` is only set for map fields."""

    name: str
    number: int
    type: str
    label: str | None = None
    key_type: str | None = None
    options: list[ProtoOption] = field(default_factory=list)

    @property
    def is_map(self) -> bool:
        return self.key_type is not None

    def option(self, name: str) -> Any:
        for opt in self.options:
            if opt.name == name:
                return opt.value
        return None


@dataclass
class ProtoMessage(DataClassJsonMixin):
    name: str
    fields: list[ProtoField]
    messages: list["ProtoMessage"]
    enums: list[ProtoEnum]
    options: list[ProtoOption] = field(default_factory=list)


@dataclass
class ProtoFile(DataClassJsonMixin):
    """The parse tree of a schema file before linking."""

    syntax: str
    package: str | None
    imports: list[str]
    messages: list[ProtoMessage]
    enums: list[ProtoEnum]
    options: list[ProtoOption] = field(default_factory=list)


@dataclass
class _Syntax:
    value: str


@dataclass
class _Package:
    value: str


@dataclass
class _Import:
    value: str


@dataclass
class _Label:
    value: str


@dataclass
class _Options:
    values: list[ProtoOption]


TFilter = TypeVar("TFilter", bound=object)


def _filter(args: list[Any], class_type: type[TFilter]) -> list[TFilter]:
    return [v for v in args if isinstance(v, class_type)]


def _find_one(args: list[Any], class_type: type[object]) -> Any:
    filtered = _filter(args, class_type)
    if len(filtered) == 0:
        return None
    if len(filtered) > 1:
        raise SchemaError(f"Found more than one {class_type.__name__}")
    if hasattr(filtered[0], "value"):
        return filtered[0].value
    return filtered[0]


def _unquote(text: str) -> str:
    # Only simple escapes are meaningful in the statements we read
    return text[1:-1].replace('\\"', '"').replace("\\'", "'").replace("\\\\", "\\")


def _constant(token: Token) -> Any:
    text = str(token)
    if token.type == "STRING":
        return _unquote(text)
    if token.type == "NUMBER":
        if any(c in text for c in ".eE"):
            return float(text)
        return int(text)
    if text in ("true", "false"):
        return text == "true"
    return text


class TreeTransformer(Transformer):
    """Transform the parse tree into ``Proto*`` definitions."""

    def start(self, args: list[Any]) -> ProtoFile:
        return ProtoFile(
            syntax=_find_one(args, _Syntax) or "proto2",
            package=_find_one(args, _Package),
            imports=[imp.value for imp in _filter(args, _Import)],
            messages=_filter(args, ProtoMessage),
            enums=_filter(args, ProtoEnum),
            options=_filter(args, ProtoOption),
        )

    def syntax(self, args: list[Any]) -> _Syntax:
        return _Syntax(value=_unquote(str(args[0])))

    def package(self, args: list[Any]) -> _Package:
        return _Package(value=str(args[0]))

    def import_stmt(self, args: list[Any]) -> _Import:
        return _Import(value=_unquote(str(args[-1])))

    def option(self, args: list[Any]) -> ProtoOption:
        return ProtoOption(name=args[0], value=args[1])

    def option_name(self, args: list[Any]) -> str:
        if len(args) == 2:
            suffix = str(args[1]) if args[1] is not None else ""
            return f"({args[0]}){suffix}"
        return str(args[0])

    def constant(self, args: list[Any]) -> Any:
        return _constant(args[0])

    def message(self, args: list[Any]) -> ProtoMessage:
        return ProtoMessage(
            name=str(args[0]),
            fields=_filter(args, ProtoField),
            messages=_filter(args, ProtoMessage),
            enums=_filter(args, ProtoEnum),
            options=_filter(args, ProtoOption),
        )

    def label(self, args: list[Any]) -> _Label:
        return _Label(value=str(args[0]))

    def field(self, args: list[Any]) -> ProtoField:
        label, type_name, name, number, options = args
        return ProtoField(
            name=str(name),
            number=int(number),
            type=str(type_name),
            label=label.value if label is not None else None,
            options=options.values if options is not None else [],
        )

    def map_field(self, args: list[Any]) -> ProtoField:
        key_type, value_type, name, number, options = args
        return ProtoField(
            name=str(name),
            number=int(number),
            type=str(value_type),
            key_type=str(key_type),
            options=options.values if options is not None else [],
        )

    def field_options(self, args: list[Any]) -> _Options:
        return _Options(values=list(args))

    def field_option(self, args: list[Any]) -> ProtoOption:
        return ProtoOption(name=args[0], value=args[1])

    def enum(self, args: list[Any]) -> ProtoEnum:
        return ProtoEnum(
            name=str(args[0]),
            values=_filter(args, ProtoEnumValue),
            options=_filter(args, ProtoOption),
        )

    def enum_value(self, args: list[Any]) -> ProtoEnumValue:
        name, number, options = args
        return ProtoEnumValue(
            name=str(name),
            number=int(str(number)),
            options=options.values if options is not None else [],
        )

    def reserved(self, args: list[Any]) -> None:
        return None


@dataclass
class Schema:
    """Linked descriptors of one schema file, keyed by full name."""

    package: str | None
    syntax: str
    messages: dict[str, MessageDescriptor]
    enums: dict[str, EnumDescriptor]
    definition: ProtoFile

    def _qualify(self, name: str) -> list[str]:
        name = name.lstrip(".")
        if self.package and not name.startswith(f"{self.package}."):
            return [f"{self.package}.{name}", name]
        return [name]

    def message(self, name: str) -> MessageDescriptor:
        """Look up a message by full name or by name relative to the package."""
        for candidate in self._qualify(name):
            if candidate in self.messages:
                return self.messages[candidate]
        raise SchemaError(f"Unknown message type {name}")

    def enum(self, name: str) -> EnumDescriptor:
        for candidate in self._qualify(name):
            if candidate in self.enums:
                return self.enums[candidate]
        raise SchemaError(f"Unknown enum type {name}")


def _builtin_messages() -> dict[str, MessageDescriptor]:
    # Imported lazily, the well-known types build on this module
    from protojson.proto.wellknown import DURATION

    return {DURATION.full_name: DURATION}


def _entry_name(field_name: str) -> str:
    return "".join(part[:1].upper() + part[1:] for part in field_name.split("_")) + "Entry"


class _Linker:
    """Resolve type references and build descriptors for a parsed file."""

    def __init__(self, definition: ProtoFile) -> None:
        self.definition = definition
        self.proto3 = definition.syntax == "proto3"
        self.messages: dict[str, MessageDescriptor] = {}
        self.enums: dict[str, EnumDescriptor] = {}
        self.builtins = _builtin_messages()

    def link(self) -> Schema:
        prefix = self.definition.package or ""
        self._declare(prefix, self.definition.messages, self.definition.enums)
        for message in self.definition.messages:
            self._link_message(prefix, message)
        return Schema(
            package=self.definition.package,
            syntax=self.definition.syntax,
            messages=self.messages,
            enums=self.enums,
            definition=self.definition,
        )

    @staticmethod
    def _join(scope: str, name: str) -> str:
        return f"{scope}.{name}" if scope else name

    def _declare(self, scope: str, messages: list[ProtoMessage], enums: list[ProtoEnum]) -> None:
        for enum in enums:
            full_name = self._join(scope, enum.name)
            self._check_unique(full_name)
            self.enums[full_name] = self._build_enum(full_name, enum)
        for message in messages:
            full_name = self._join(scope, message.name)
            self._check_unique(full_name)
            self.messages[full_name] = MessageDescriptor(full_name=full_name, proto3=self.proto3)
            self._declare(full_name, message.messages, message.enums)

    def _check_unique(self, full_name: str) -> None:
        if full_name in self.messages or full_name in self.enums:
            raise SchemaError(f"{full_name} is already defined")

    def _build_enum(self, full_name: str, enum: ProtoEnum) -> EnumDescriptor:
        if not enum.values:
            raise SchemaError(f"Enum {full_name} must declare at least one value")
        if self.proto3 and enum.values[0].number != 0:
            raise SchemaError(f"The first value of proto3 enum {full_name} must be zero")
        return EnumDescriptor(
            full_name=full_name,
            values=[EnumValueDescriptor(name=v.name, number=v.number) for v in enum.values],
        )

    def _resolve(self, scope: str, type_name: str) -> MessageDescriptor | EnumDescriptor:
        if type_name.startswith("."):
            candidates = [type_name[1:]]
        else:
            candidates = []
            parts = scope.split(".") if scope else []
            while True:
                candidates.append(self._join(".".join(parts), type_name))
                if not parts:
                    break
                parts.pop()
        for candidate in candidates:
            if candidate in self.messages:
                return self.messages[candidate]
            if candidate in self.enums:
                return self.enums[candidate]
            if candidate in self.builtins:
                return self.builtins[candidate]
        raise SchemaError(f"Unresolved type {type_name} in {scope or 'file scope'}")

    def _link_message(self, scope: str, message: ProtoMessage) -> None:
        full_name = self._join(scope, message.name)
        descriptor = self.messages[full_name]
        for proto_field in message.fields:
            descriptor.add_field(self._build_field(full_name, proto_field))
        for nested in message.messages:
            self._link_message(full_name, nested)

    def _field_type(self, scope: str, type_name: str) -> dict[str, Any]:
        if type_name in SCALAR_TYPE_NAMES:
            return {"scalar_type": SCALAR_TYPE_NAMES[type_name]}
        resolved = self._resolve(scope, type_name)
        if isinstance(resolved, EnumDescriptor):
            return {"enum_type": resolved}
        return {"message_type": resolved}

    def _build_field(self, scope: str, proto_field: ProtoField) -> FieldDescriptor:
        if "." in proto_field.name:
            raise SchemaError(f"Invalid field name {proto_field.name} in {scope}")
        json_name = proto_field.option("json_name")

        if proto_field.is_map:
            assert proto_field.key_type is not None
            key_type = SCALAR_TYPE_NAMES.get(proto_field.key_type)
            if key_type is None:
                raise SchemaError(
                    f"Unsupported map key type {proto_field.key_type} for {scope}.{proto_field.name}"
                )
            value = FieldDescriptor(
                number=2, name="value", **self._field_type(scope, proto_field.type)
            )
            entry = map_entry(self._join(scope, _entry_name(proto_field.name)), key_type, value)
            entry.proto3 = self.proto3
            return FieldDescriptor(
                number=proto_field.number,
                name=proto_field.name,
                message_type=entry,
                cardinality=Cardinality.REPEATED,
                json_name=json_name,
            )

        return FieldDescriptor(
            number=proto_field.number,
            name=proto_field.name,
            cardinality=(
                Cardinality.REPEATED if proto_field.label == "repeated" else Cardinality.OPTIONAL
            ),
            json_name=json_name,
            proto3_optional=self.proto3 and proto_field.label == "optional",
            **self._field_type(scope, proto_field.type),
        )


def _get_parser() -> Lark:
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/protodef.lark", encoding="utf-8") as f:
            grammar = f.read()
        _g_parser = Lark(grammar, parser="lalr")
    return _g_parser


def parse_definition(text: str) -> ProtoFile:
    """Parse schema text into its unlinked definition."""
    try:
        tree = _get_parser().parse(text)
    except LarkError as exc:
        raise SchemaError(f"Invalid schema definition: {exc}") from exc
    return TreeTransformer().transform(tree)


def parse_schema(text: str) -> Schema:
    """Parse schema text and link it into descriptors."""
    definition = parse_definition(text)
    if definition.syntax not in ("proto2", "proto3"):
        raise SchemaError(f"Unsupported syntax {definition.syntax}")
    schema = _Linker(definition).link()
    logger.debug(
        "Parsed %s schema with %d messages and %d enums",
        schema.syntax,
        len(schema.messages),
        len(schema.enums),
    )
    return schema
