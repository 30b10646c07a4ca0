"""Reflective value model for message fields.

A field's content is one of the ``P*`` variants below. ``PRepeated`` holds
both true repeated fields and map fields, whose elements are two-field
key/value entry messages. ``Message`` is itself a value: an immutable
mapping from field descriptor to value where absent fields are unset.
"""

import struct
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Self

from protojson.schema.types import (
    EnumValueDescriptor,
    FieldDescriptor,
    MessageDescriptor,
    ScalarType,
    SchemaError,
)


@dataclass(frozen=True, slots=True)
class PEmpty:
    """An unset singular field."""


@dataclass(frozen=True, slots=True)
class PBoolean:
    value: bool


@dataclass(frozen=True, slots=True)
class PInt:
    """A 32-bit integer."""

    value: int


@dataclass(frozen=True, slots=True)
class PLong:
    """A 64-bit integer."""

    value: int


@dataclass(frozen=True, slots=True)
class PFloat:
    value: float


@dataclass(frozen=True, slots=True)
class PDouble:
    value: float


@dataclass(frozen=True, slots=True)
class PString:
    value: str


@dataclass(frozen=True, slots=True)
class PByteString:
    value: bytes


@dataclass(frozen=True, slots=True)
class PEnum:
    value: EnumValueDescriptor


@dataclass(frozen=True, slots=True)
class PRepeated:
    values: tuple["Value", ...] = ()

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator["Value"]:
        return iter(self.values)


EMPTY = PEmpty()

INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def wrap_int32(value: int) -> int:
    """Truncate an integer to its low 32 bits, signed."""
    return (value + 2**31) % 2**32 - 2**31


def wrap_int64(value: int) -> int:
    """Truncate an integer to its low 64 bits, signed."""
    return (value + 2**63) % 2**64 - 2**63


def to_float32(value: float) -> float:
    """Round a double to single precision."""
    return struct.unpack("=f", struct.pack("=f", value))[0]


@dataclass(frozen=True, eq=False)
class Message:
    """A message value: descriptor plus the fields that are set.

    Example:
        msg = Message.build(person_descriptor, name="Ada", id=7)
        msg.get_field(person_descriptor.find_field_by_name("name"))  # PString("Ada")
    """

    descriptor: MessageDescriptor
    fields: Mapping[FieldDescriptor, "Value"] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for fd in self.fields:
            if fd.containing_message is not self.descriptor:
                raise SchemaError(f"Field {fd.name} does not belong to {self.descriptor.full_name}")
        object.__setattr__(self, "fields", MappingProxyType(dict(self.fields)))

    def _significant_fields(self) -> dict[FieldDescriptor, "Value"]:
        """Return the fields that do not read the same as unset ones.

        Empty repeated fields and zero values of fields without explicit
        presence are indistinguishable from unset fields, so equality and
        hashing skip them.
        """
        return {fd: value for fd, value in self.fields.items() if not _reads_as_unset(fd, value)}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Message):
            return NotImplemented
        return (
            self.descriptor is other.descriptor
            and self._significant_fields() == other._significant_fields()
        )

    def __hash__(self) -> int:
        significant = self._significant_fields()
        return hash((id(self.descriptor), frozenset((id(k), v) for k, v in significant.items())))

    def __repr__(self) -> str:
        body = ", ".join(f"{fd.name}={value!r}" for fd, value in self.fields.items())
        return f"Message<{self.descriptor.full_name}>({body})"

    def has_field(self, fd: FieldDescriptor) -> bool:
        return fd in self.fields

    def get_field(self, fd: FieldDescriptor) -> "Value":
        """Return the field's value, or its unset form.

        Unset singular fields read as ``PEmpty``, unset repeated fields as an
        empty ``PRepeated``.
        """
        if fd in self.fields:
            return self.fields[fd]
        if fd.is_repeated:
            return PRepeated()
        return EMPTY

    def get_field_by_number(self, number: int) -> "Value | None":
        """Return the raw value of a field, or None when it is unset."""
        fd = self.descriptor.find_field_by_number(number)
        if fd is None:
            raise SchemaError(f"{self.descriptor.full_name} has no field number {number}")
        return self.fields.get(fd)

    def __getitem__(self, name: str) -> "Value":
        fd = self.descriptor.find_field_by_name(name)
        if fd is None:
            raise KeyError(name)
        return self.get_field(fd)

    @classmethod
    def build(cls, descriptor: MessageDescriptor, **values: Any) -> Self:
        """Build a message from Python values keyed by field name.

        Values are coerced to the field's declared type: ints, floats, str,
        bytes and bool for scalars, enum names or numbers for enums, dicts or
        messages for nested messages, lists for repeated fields and dicts for
        map fields. ``P*`` values and ``None`` (unset) pass through.
        """
        fields: dict[FieldDescriptor, Value] = {}
        for name, raw in values.items():
            fd = descriptor.find_field_by_name(name)
            if fd is None:
                raise SchemaError(f"{descriptor.full_name} has no field {name}")
            if raw is None:
                continue
            fields[fd] = coerce(fd, raw)
        return cls(descriptor, fields)


Value = (
    PEmpty
    | PBoolean
    | PInt
    | PLong
    | PFloat
    | PDouble
    | PString
    | PByteString
    | PEnum
    | PRepeated
    | Message
)

_VALUE_TYPES = (
    PEmpty,
    PBoolean,
    PInt,
    PLong,
    PFloat,
    PDouble,
    PString,
    PByteString,
    PEnum,
    PRepeated,
    Message,
)


def zero_value(fd: FieldDescriptor) -> "Value | None":
    """Return the zero value of a singular scalar or enum field.

    Returns None for repeated and message fields, which have no single zero.
    """
    if fd.is_repeated or fd.is_message:
        return None
    if fd.enum_type is not None:
        return PEnum(fd.enum_type.default)
    match fd.scalar_type:
        case ScalarType.BOOL:
            return PBoolean(False)
        case ScalarType.INT32:
            return PInt(0)
        case ScalarType.INT64:
            return PLong(0)
        case ScalarType.FLOAT:
            return PFloat(0.0)
        case ScalarType.DOUBLE:
            return PDouble(0.0)
        case ScalarType.STRING:
            return PString("")
        case ScalarType.BYTES:
            return PByteString(b"")
    return None


def _reads_as_unset(fd: FieldDescriptor, value: "Value") -> bool:
    match value:
        case PEmpty():
            return True
        case PRepeated(values):
            return not values
    return not fd.has_explicit_presence and value == zero_value(fd)


def scalar(scalar_type: ScalarType, raw: Any) -> Value:
    """Wrap a Python scalar in the variant for ``scalar_type``."""
    match scalar_type:
        case ScalarType.BOOL:
            return PBoolean(bool(raw))
        case ScalarType.INT32:
            return PInt(wrap_int32(int(raw)))
        case ScalarType.INT64:
            return PLong(wrap_int64(int(raw)))
        case ScalarType.FLOAT:
            return PFloat(to_float32(float(raw)))
        case ScalarType.DOUBLE:
            return PDouble(float(raw))
        case ScalarType.STRING:
            return PString(str(raw))
        case ScalarType.BYTES:
            return PByteString(bytes(raw))


def _coerce_single(fd: FieldDescriptor, raw: Any) -> Value:
    if isinstance(raw, _VALUE_TYPES):
        return raw
    if fd.message_type is not None:
        if isinstance(raw, Mapping):
            return Message.build(fd.message_type, **raw)
        raise SchemaError(f"Cannot use {raw!r} as message {fd.message_type.full_name}")
    if fd.enum_type is not None:
        if isinstance(raw, EnumValueDescriptor):
            return PEnum(raw)
        found = (
            fd.enum_type.find_value_by_name(raw)
            if isinstance(raw, str)
            else fd.enum_type.find_value_by_number(int(raw))
        )
        if found is None:
            raise SchemaError(f"{raw!r} is not a value of {fd.enum_type.full_name}")
        return PEnum(found)
    assert fd.scalar_type is not None
    return scalar(fd.scalar_type, raw)


def coerce(fd: FieldDescriptor, raw: Any) -> Value:
    """Convert a Python value into the value variant ``fd`` declares."""
    if isinstance(raw, _VALUE_TYPES):
        return raw
    if fd.is_map_field:
        if not isinstance(raw, Mapping):
            raise SchemaError(f"Map field {fd.name} needs a mapping, got {raw!r}")
        return map_entries(fd, raw)
    if fd.is_repeated:
        return PRepeated(tuple(_coerce_single(fd, item) for item in raw))
    return _coerce_single(fd, raw)


def map_entries(fd: FieldDescriptor, mapping: Mapping[Any, Any]) -> PRepeated:
    """Build the value of a map field from a Python mapping."""
    assert fd.message_type is not None
    entry_type = fd.message_type
    key_fd, value_fd = entry_type.map_key_value()
    return PRepeated(
        tuple(
            Message(entry_type, {key_fd: coerce(key_fd, key), value_fd: coerce(value_fd, value)})
            for key, value in mapping.items()
        )
    )
