"""Descriptors describing message schemas at runtime.

Descriptors are built once per schema (by hand or by :func:`parse_schema`)
and treated as read-only afterwards. They compare by identity, so a field
descriptor can key the field mapping of a message value.
"""

from dataclasses import dataclass, field
from enum import StrEnum, auto


class SchemaError(RuntimeError):
    """Raised when a schema definition is invalid."""


class ScalarType(StrEnum):
    """Scalar kinds a field can hold."""

    BOOL = auto()
    INT32 = auto()
    INT64 = auto()
    FLOAT = auto()
    DOUBLE = auto()
    STRING = auto()
    BYTES = auto()


class FieldKind(StrEnum):
    """What a field's declared type refers to."""

    SCALAR = auto()
    ENUM = auto()
    MESSAGE = auto()


class Cardinality(StrEnum):
    OPTIONAL = auto()
    REPEATED = auto()


# Proto spellings of the scalar types
SCALAR_TYPE_NAMES: dict[str, ScalarType] = {
    "bool": ScalarType.BOOL,
    "int32": ScalarType.INT32,
    "sint32": ScalarType.INT32,
    "sfixed32": ScalarType.INT32,
    "uint32": ScalarType.INT32,
    "fixed32": ScalarType.INT32,
    "int64": ScalarType.INT64,
    "sint64": ScalarType.INT64,
    "sfixed64": ScalarType.INT64,
    "uint64": ScalarType.INT64,
    "fixed64": ScalarType.INT64,
    "float": ScalarType.FLOAT,
    "double": ScalarType.DOUBLE,
    "string": ScalarType.STRING,
    "bytes": ScalarType.BYTES,
}

# Scalar types allowed as map keys
MAP_KEY_TYPES = frozenset(
    [
        ScalarType.BOOL,
        ScalarType.INT32,
        ScalarType.INT64,
        ScalarType.FLOAT,
        ScalarType.DOUBLE,
        ScalarType.STRING,
    ]
)


def to_json_name(name: str) -> str:
    """Project a field name onto its camelCase JSON name.

    Underscores are dropped and the character following one is upper-cased,
    which is how protoc derives ``json_name``.
    """
    result = []
    capitalize_next = False
    for char in name:
        if char == "_":
            capitalize_next = True
        elif capitalize_next:
            result.append(char.upper())
            capitalize_next = False
        else:
            result.append(char)
    return "".join(result)


@dataclass(eq=False, slots=True)
class EnumValueDescriptor:
    """A single named enum value."""

    name: str
    number: int

    def __repr__(self) -> str:
        return f"EnumValueDescriptor({self.name}={self.number})"


@dataclass(eq=False, slots=True)
class EnumDescriptor:
    """Describes an enum type. The first value is the default."""

    full_name: str
    values: list[EnumValueDescriptor]

    def __post_init__(self) -> None:
        if not self.values:
            raise SchemaError(f"Enum {self.full_name} must declare at least one value")

    @property
    def name(self) -> str:
        return self.full_name.rsplit(".", 1)[-1]

    @property
    def default(self) -> EnumValueDescriptor:
        return self.values[0]

    def find_value_by_name(self, name: str) -> EnumValueDescriptor | None:
        for value in self.values:
            if value.name == name:
                return value
        return None

    def find_value_by_number(self, number: int) -> EnumValueDescriptor | None:
        for value in self.values:
            if value.number == number:
                return value
        return None


@dataclass(eq=False, slots=True)
class FieldDescriptor:
    """Describes one field of a message.

    Exactly one of ``scalar_type``, ``enum_type`` or ``message_type`` is set.
    ``json_name`` defaults to the camelCase projection of ``name``.
    ``proto3_optional`` marks a proto3 ``optional`` field, which has explicit
    presence even though its message uses proto3 semantics.
    """

    number: int
    name: str
    scalar_type: ScalarType | None = None
    enum_type: EnumDescriptor | None = None
    message_type: "MessageDescriptor | None" = None
    cardinality: Cardinality = Cardinality.OPTIONAL
    json_name: str | None = None
    proto3_optional: bool = False
    containing_message: "MessageDescriptor | None" = field(default=None, repr=False)

    def __post_init__(self) -> None:
        declared = [t for t in (self.scalar_type, self.enum_type, self.message_type) if t is not None]
        if len(declared) != 1:
            raise SchemaError(f"Field {self.name} must declare exactly one type")
        if self.number <= 0:
            raise SchemaError(f"Field {self.name} has invalid number {self.number}")
        if self.json_name is None:
            self.json_name = to_json_name(self.name)
        if self.proto3_optional and self.cardinality == Cardinality.REPEATED:
            raise SchemaError(f"Repeated field {self.name} cannot be optional")

    @property
    def kind(self) -> FieldKind:
        if self.message_type is not None:
            return FieldKind.MESSAGE
        if self.enum_type is not None:
            return FieldKind.ENUM
        return FieldKind.SCALAR

    @property
    def is_message(self) -> bool:
        return self.message_type is not None

    @property
    def is_enum(self) -> bool:
        return self.enum_type is not None

    @property
    def is_repeated(self) -> bool:
        return self.cardinality == Cardinality.REPEATED

    @property
    def is_optional(self) -> bool:
        return self.cardinality == Cardinality.OPTIONAL

    @property
    def is_map_field(self) -> bool:
        return self.is_repeated and self.message_type is not None and self.message_type.map_entry

    @property
    def has_explicit_presence(self) -> bool:
        """Whether a set zero value is distinguishable from an unset field."""
        if self.is_repeated:
            return False
        if self.is_message or self.proto3_optional:
            return True
        return not (self.containing_message is not None and self.containing_message.proto3)

    @property
    def type_name(self) -> str:
        if self.message_type is not None:
            return self.message_type.full_name
        if self.enum_type is not None:
            return self.enum_type.full_name
        assert self.scalar_type is not None
        return str(self.scalar_type)


@dataclass(eq=False, slots=True)
class MessageDescriptor:
    """Describes a message type as an ordered list of fields.

    ``map_entry`` marks the synthetic two-field (1=key, 2=value) message
    backing a map field. ``proto3`` selects proto3 presence semantics for
    singular scalar fields.
    """

    full_name: str
    fields: list[FieldDescriptor] = field(default_factory=list)
    map_entry: bool = False
    proto3: bool = True
    _by_number: dict[int, FieldDescriptor] = field(default_factory=dict, init=False, repr=False)
    _by_name: dict[str, FieldDescriptor] = field(default_factory=dict, init=False, repr=False)
    _by_json_name: dict[str, FieldDescriptor] = field(
        default_factory=dict, init=False, repr=False
    )

    def __post_init__(self) -> None:
        fields = list(self.fields)
        self.fields = []
        for fd in fields:
            self.add_field(fd)

    @property
    def name(self) -> str:
        return self.full_name.rsplit(".", 1)[-1]

    def add_field(self, fd: FieldDescriptor) -> FieldDescriptor:
        """Attach a field while the schema is being built."""
        if fd.number in self._by_number:
            raise SchemaError(f"Field number {fd.number} is used twice in {self.full_name}")
        if fd.name in self._by_name:
            raise SchemaError(f"Field name {fd.name} is used twice in {self.full_name}")
        fd.containing_message = self
        self.fields.append(fd)
        self._by_number[fd.number] = fd
        self._by_name[fd.name] = fd
        assert fd.json_name is not None
        self._by_json_name.setdefault(fd.json_name, fd)
        return fd

    def find_field_by_number(self, number: int) -> FieldDescriptor | None:
        return self._by_number.get(number)

    def find_field_by_name(self, name: str) -> FieldDescriptor | None:
        return self._by_name.get(name)

    def find_field_by_json_name(self, json_name: str) -> FieldDescriptor | None:
        return self._by_json_name.get(json_name)

    def map_key_value(self) -> tuple[FieldDescriptor, FieldDescriptor]:
        """Return the (key, value) fields of a map entry."""
        key = self.find_field_by_number(1)
        value = self.find_field_by_number(2)
        if not self.map_entry or key is None or value is None:
            raise SchemaError(f"{self.full_name} is not a map entry")
        return key, value


def map_entry(
    full_name: str,
    key_type: ScalarType,
    value: FieldDescriptor,
) -> MessageDescriptor:
    """Build the synthetic entry message backing a map field.

    ``value`` must be numbered 2 and named ``value``; the key field is
    synthesized from ``key_type``.
    """
    if key_type not in MAP_KEY_TYPES:
        raise SchemaError(f"Unsupported map key type {key_type} for {full_name}")
    if value.number != 2 or value.name != "value" or value.is_repeated:
        raise SchemaError(f"Map entry {full_name} needs a singular value field numbered 2")
    key = FieldDescriptor(number=1, name="key", scalar_type=key_type)
    return MessageDescriptor(full_name=full_name, fields=[key, value], map_entry=True)


def map_field(
    number: int,
    name: str,
    key_type: ScalarType,
    *,
    scalar_type: ScalarType | None = None,
    enum_type: EnumDescriptor | None = None,
    message_type: MessageDescriptor | None = None,
    entry_name: str | None = None,
    json_name: str | None = None,
) -> FieldDescriptor:
    """Build a map field together with its synthetic entry message."""
    if entry_name is None:
        entry_name = "".join(part[:1].upper() + part[1:] for part in name.split("_")) + "Entry"
    value = FieldDescriptor(
        number=2,
        name="value",
        scalar_type=scalar_type,
        enum_type=enum_type,
        message_type=message_type,
    )
    return FieldDescriptor(
        number=number,
        name=name,
        message_type=map_entry(entry_name, key_type, value),
        cardinality=Cardinality.REPEATED,
        json_name=json_name,
    )
