"""Conversion between message values and the proto3 JSON mapping.

``Printer`` turns a message into a JSON value tree and ``Parser`` turns a
JSON value tree back into a message for a given descriptor. Both walk the
descriptor at run time and consult a ``FormatRegistry`` first, so message
types with a special JSON form (such as ``google.protobuf.Duration``) can
bypass the field-by-field mapping.

Printers, parsers and registries are immutable and can be shared between
threads.
"""

import base64
import binascii
import logging
import math
import re
from decimal import InvalidOperation

from protojson.schema.types import FieldDescriptor, MessageDescriptor, ScalarType

from .jvalue import (
    JArray,
    JBool,
    JDecimal,
    JDouble,
    JInt,
    JNull,
    JObject,
    JsonFormatError,
    JString,
    JValue,
    kind,
    parse_json,
    render_json,
)
from .registry import FormatRegistry
from .values import (
    Message,
    PBoolean,
    PByteString,
    PDouble,
    PEmpty,
    PEnum,
    PFloat,
    PInt,
    PLong,
    PRepeated,
    PString,
    Value,
    to_float32,
    wrap_int32,
    wrap_int64,
    zero_value,
)
from .wellknown import DURATION, read_duration, write_duration

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY = FormatRegistry().register(DURATION, write_duration, read_duration)

_INTEGER_RE = re.compile(r"-?[0-9]+")

# Proto3 JSON spelling of non-finite floating point values
_NON_FINITE = {"NaN": math.nan, "Infinity": math.inf, "-Infinity": -math.inf}


def default_value(fd: FieldDescriptor) -> Value:
    """Return the zero value of a singular non-message field."""
    if fd.is_repeated:
        raise JsonFormatError(f"No single default value for repeated field {fd.name}")
    value = zero_value(fd)
    if value is None:
        raise JsonFormatError(f"No default value for message field {fd.name}")
    return value


def _field_label(fd: FieldDescriptor) -> str:
    container = fd.containing_message.full_name if fd.containing_message else "<unknown>"
    return f"{fd.json_name} of {container}"


def _float_json(value: float) -> JValue:
    if math.isnan(value):
        return JString("NaN")
    if math.isinf(value):
        return JString("Infinity" if value > 0 else "-Infinity")
    return JDouble(value)


def _float32_text(value: float) -> str:
    """Return the shortest decimal text that rounds back to the same float32."""
    for digits in range(1, 10):
        text = repr(float(f"{value:.{digits}g}"))
        if to_float32(float(text)) == value:
            return text
    return repr(value)


class Printer:
    """Converts messages to JSON.

    Args:
        include_default_value_fields: Emit fields holding their zero value,
            and empty repeated and map fields, instead of omitting them.
        preserve_field_names: Use the declared field name instead of the
            camelCase JSON name.
        format_long_as_number: Emit 64-bit integers as JSON numbers instead
            of strings.
        registry: Custom formats that override the default mapping.
    """

    def __init__(
        self,
        include_default_value_fields: bool = False,
        preserve_field_names: bool = False,
        format_long_as_number: bool = False,
        registry: FormatRegistry | None = None,
    ) -> None:
        self._include_default_value_fields = include_default_value_fields
        self._preserve_field_names = preserve_field_names
        self._format_long_as_number = format_long_as_number
        self._registry = registry if registry is not None else DEFAULT_REGISTRY

    @property
    def include_default_value_fields(self) -> bool:
        return self._include_default_value_fields

    @property
    def preserve_field_names(self) -> bool:
        return self._preserve_field_names

    @property
    def format_long_as_number(self) -> bool:
        return self._format_long_as_number

    @property
    def registry(self) -> FormatRegistry:
        return self._registry

    def print(self, message: Message, indent: int | None = None) -> str:
        """Render a message as JSON text, compact unless ``indent`` is given."""
        return render_json(self.to_json(message), indent=indent)

    def to_json(self, message: Message) -> JValue:
        """Convert a message to a JSON value tree."""
        writer = self._registry.get_writer(message.descriptor)
        if writer is not None:
            logger.debug("Using custom writer for %s", message.descriptor.full_name)
            return writer(message)

        out: list[tuple[str, JValue]] = []
        for fd in message.descriptor.fields:
            name = fd.name if self._preserve_field_names else fd.json_name
            assert name is not None
            if fd.is_message:
                self._serialize_message_field(fd, name, message.get_field(fd), out)
            else:
                self._serialize_non_message_field(fd, name, message.get_field(fd), out)
        return JObject(tuple(out))

    def _serialize_message_field(
        self,
        fd: FieldDescriptor,
        name: str,
        value: Value,
        out: list[tuple[str, JValue]],
    ) -> None:
        match value:
            case PEmpty():
                # Unset messages are never printed, a default instance could recurse forever
                pass
            case PRepeated(()):
                if self._include_default_value_fields:
                    out.append((name, JObject() if fd.is_map_field else JArray()))
            case PRepeated(items) if fd.is_map_field:
                out.append((name, self._serialize_map(fd, items)))
            case PRepeated(items):
                out.append((name, JArray(tuple(self._message_item(fd, item) for item in items))))
            case Message() if not fd.is_repeated:
                out.append((name, self.to_json(value)))
            case _:
                raise JsonFormatError(f"Unexpected value {value!r} for field {_field_label(fd)}")

    def _message_item(self, fd: FieldDescriptor, item: Value) -> JValue:
        if not isinstance(item, Message):
            raise JsonFormatError(f"Unexpected value {item!r} in field {_field_label(fd)}")
        return self.to_json(item)

    def _serialize_map(self, fd: FieldDescriptor, entries: tuple[Value, ...]) -> JObject:
        assert fd.message_type is not None
        key_fd, value_fd = fd.message_type.map_key_value()
        out: list[tuple[str, JValue]] = []
        for entry in entries:
            if not isinstance(entry, Message):
                raise JsonFormatError(f"Unexpected map entry {entry!r} in field {_field_label(fd)}")
            key = self._map_key(fd, entry.get_field(key_fd))
            if value_fd.message_type is not None:
                nested = entry.fields.get(value_fd)
                if nested is None:
                    nested = Message(value_fd.message_type)
                out.append((key, self._message_item(value_fd, nested)))
            else:
                raw = entry.get_field(value_fd)
                if isinstance(raw, PEmpty):
                    raw = default_value(value_fd)
                out.append((key, self._serialize_single_value(value_fd, raw)))
        return JObject(tuple(out))

    def _map_key(self, fd: FieldDescriptor, key: Value) -> str:
        match key:
            case PBoolean(v):
                return "true" if v else "false"
            case PInt(v) | PLong(v):
                return str(v)
            case PFloat(v):
                return _float32_text(v)
            case PDouble(v):
                return repr(v)
            case PString(v):
                return v
            case PEmpty():
                assert fd.message_type is not None
                key_fd, _ = fd.message_type.map_key_value()
                return self._map_key(fd, default_value(key_fd))
        raise JsonFormatError(f"Unexpected value for key: {key!r}")

    def _serialize_non_message_field(
        self,
        fd: FieldDescriptor,
        name: str,
        value: Value,
        out: list[tuple[str, JValue]],
    ) -> None:
        match value:
            case PEmpty():
                # Unset fields with presence stay absent so parsing keeps them unset
                if self._include_default_value_fields and not fd.has_explicit_presence:
                    out.append((name, self._serialize_single_value(fd, default_value(fd))))
            case PRepeated(items):
                if items or self._include_default_value_fields:
                    out.append(
                        (name, JArray(tuple(self._serialize_single_value(fd, v) for v in items)))
                    )
            case _:
                if (
                    self._include_default_value_fields
                    or fd.has_explicit_presence
                    or value != default_value(fd)
                ):
                    out.append((name, self._serialize_single_value(fd, value)))

    def _serialize_single_value(self, fd: FieldDescriptor, value: Value) -> JValue:
        match value:
            case PEnum(v):
                return JString(v.name)
            case PInt(v):
                return JInt(v)
            case PLong(v):
                return JInt(v) if self._format_long_as_number else JString(str(v))
            case PDouble(v) | PFloat(v):
                return _float_json(v)
            case PBoolean(v):
                return JBool(v)
            case PString(v):
                return JString(v)
            case PByteString(v):
                return JString(base64.b64encode(v).decode("ascii"))
        raise JsonFormatError(f"Unexpected value {value!r} for field {_field_label(fd)}")


class Parser:
    """Converts JSON to messages.

    Args:
        registry: Custom formats that override the default mapping.
    """

    def __init__(self, registry: FormatRegistry | None = None) -> None:
        self._registry = registry if registry is not None else DEFAULT_REGISTRY

    @property
    def registry(self) -> FormatRegistry:
        return self._registry

    def from_json_string(self, text: str, descriptor: MessageDescriptor) -> Message:
        """Parse JSON text into a message of type ``descriptor``."""
        return self.from_json(parse_json(text), descriptor)

    def from_json(self, value: JValue, descriptor: MessageDescriptor) -> Message:
        """Parse a JSON value tree into a message of type ``descriptor``.

        Fields missing from the JSON object are left unset.
        """
        reader = self._registry.get_parser(descriptor)
        if reader is not None:
            logger.debug("Using custom parser for %s", descriptor.full_name)
            result = reader(value, descriptor)
            if result.descriptor is not descriptor:
                raise JsonFormatError(
                    f"Custom parser for {descriptor.full_name} built a message of another type"
                )
            return result

        if not isinstance(value, JObject):
            raise JsonFormatError(
                f"Expected an object for {descriptor.full_name}, found {kind(value)}"
            )

        values = value.to_dict()
        fields: dict[FieldDescriptor, Value] = {}
        for fd in descriptor.fields:
            assert fd.json_name is not None
            if fd.json_name in values:
                fields[fd] = self.parse_value(fd, values[fd.json_name])
            elif fd.name in values:
                fields[fd] = self.parse_value(fd, values[fd.name])
        return Message(descriptor, fields)

    def parse_value(self, fd: FieldDescriptor, value: JValue) -> Value:
        """Parse the JSON value of one field, map and repeated fields included."""
        if fd.is_map_field:
            if not isinstance(value, JObject):
                raise JsonFormatError(f"Expected an object for map field {_field_label(fd)}")
            assert fd.message_type is not None
            entry_type = fd.message_type
            key_fd, value_fd = entry_type.map_key_value()
            return PRepeated(
                tuple(
                    Message(
                        entry_type,
                        {
                            key_fd: self._parse_map_key(fd, key_fd, key),
                            value_fd: self.parse_single_value(value_fd, item),
                        },
                    )
                    for key, item in value.fields
                )
            )
        if fd.is_repeated:
            if not isinstance(value, JArray):
                raise JsonFormatError(f"Expected an array for repeated field {_field_label(fd)}")
            return PRepeated(tuple(self.parse_single_value(fd, item) for item in value))
        return self.parse_single_value(fd, value)

    def _parse_map_key(self, fd: FieldDescriptor, key_fd: FieldDescriptor, key: str) -> Value:
        try:
            match key_fd.scalar_type:
                case ScalarType.BOOL:
                    if key not in ("true", "false"):
                        raise ValueError(f"not a boolean: {key!r}")
                    return PBoolean(key == "true")
                case ScalarType.INT32:
                    return PInt(_parse_int32(key))
                case ScalarType.INT64:
                    return PLong(_parse_int64(key))
                case ScalarType.FLOAT:
                    return PFloat(to_float32(float(key)))
                case ScalarType.DOUBLE:
                    return PDouble(float(key))
                case ScalarType.STRING:
                    return PString(key)
        except (ValueError, OverflowError) as exc:
            raise JsonFormatError(f"Invalid map key {key!r} for field {_field_label(fd)}") from exc
        raise JsonFormatError(f"Unsupported type for key for {fd.name}")

    def parse_single_value(self, fd: FieldDescriptor, value: JValue) -> Value:
        """Parse one element according to the field's declared type."""
        if fd.message_type is not None:
            return self.from_json(value, fd.message_type)
        if fd.enum_type is not None:
            if isinstance(value, JString):
                found = fd.enum_type.find_value_by_name(value.value)
                if found is None:
                    raise JsonFormatError(f"Unrecognized enum value '{value.value}'")
                return PEnum(found)
            raise self._unexpected(fd, value)

        try:
            match (fd.scalar_type, value):
                case (ScalarType.INT32, JInt(x)):
                    return PInt(wrap_int32(x))
                case (ScalarType.INT32, JDecimal(x)):
                    return PInt(wrap_int32(int(x)))
                case (ScalarType.INT32, JDouble(x)):
                    return PInt(wrap_int32(int(x)))
                case (ScalarType.INT32, JNull()):
                    return PInt(0)
                case (ScalarType.INT64, JInt(x)):
                    return PLong(wrap_int64(x))
                case (ScalarType.INT64, JDecimal(x)):
                    return PLong(wrap_int64(int(x)))
                case (ScalarType.INT64, JString(x)):
                    return PLong(_parse_int64(x))
                case (ScalarType.INT64, JNull()):
                    return PLong(0)
                case (ScalarType.DOUBLE, JInt(x) | JDecimal(x) | JDouble(x)):
                    return PDouble(float(x))
                case (ScalarType.DOUBLE, JString(x)) if x in _NON_FINITE:
                    return PDouble(_NON_FINITE[x])
                case (ScalarType.DOUBLE, JNull()):
                    return PDouble(0.0)
                case (ScalarType.FLOAT, JInt(x) | JDecimal(x) | JDouble(x)):
                    return PFloat(to_float32(float(x)))
                case (ScalarType.FLOAT, JString(x)) if x in _NON_FINITE:
                    return PFloat(_NON_FINITE[x])
                case (ScalarType.FLOAT, JNull()):
                    return PFloat(0.0)
                case (ScalarType.BOOL, JBool(b)):
                    return PBoolean(b)
                case (ScalarType.BOOL, JNull()):
                    return PBoolean(False)
                case (ScalarType.STRING, JString(s)):
                    return PString(s)
                case (ScalarType.STRING, JNull()):
                    return PString("")
                case (ScalarType.BYTES, JString(s)):
                    return PByteString(base64.b64decode(s, validate=True))
                case (ScalarType.BYTES, JNull()):
                    return PByteString(b"")
        except (ValueError, OverflowError, InvalidOperation, binascii.Error) as exc:
            raise JsonFormatError(
                f"Invalid value {_describe(value)} for field {_field_label(fd)}"
            ) from exc
        raise self._unexpected(fd, value)

    @staticmethod
    def _unexpected(fd: FieldDescriptor, value: JValue) -> JsonFormatError:
        return JsonFormatError(f"Unexpected value ({_describe(value)}) for field {_field_label(fd)}")


def _describe(value: JValue) -> str:
    match value:
        case JString(v):
            return repr(v)
        case JInt(v) | JDecimal(v) | JDouble(v) | JBool(v):
            return str(v)
    return kind(value)


def _parse_int64(text: str) -> int:
    if not _INTEGER_RE.fullmatch(text):
        raise ValueError(f"not an integer: {text!r}")
    return wrap_int64(int(text))


def _parse_int32(text: str) -> int:
    if not _INTEGER_RE.fullmatch(text):
        raise ValueError(f"not an integer: {text!r}")
    return wrap_int32(int(text))


printer = Printer()
parser = Parser()


def to_json_string(message: Message) -> str:
    return printer.print(message)


def to_json(message: Message) -> JValue:
    return printer.to_json(message)


def from_json(value: JValue, descriptor: MessageDescriptor) -> Message:
    return parser.from_json(value, descriptor)


def from_json_string(text: str, descriptor: MessageDescriptor) -> Message:
    return parser.from_json_string(text, descriptor)

