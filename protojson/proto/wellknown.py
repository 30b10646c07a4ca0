"""Well-known message types with a non-object JSON representation."""

import re

from protojson.schema.types import FieldDescriptor, MessageDescriptor, ScalarType

from .jvalue import JString, JsonFormatError, JValue, kind
from .values import Message, PEmpty, PInt, PLong, Value

DURATION = MessageDescriptor(
    full_name="google.protobuf.Duration",
    fields=[
        FieldDescriptor(number=1, name="seconds", scalar_type=ScalarType.INT64),
        FieldDescriptor(number=2, name="nanos", scalar_type=ScalarType.INT32),
    ],
)

# +-10,000 years, as defined for google.protobuf.Duration
DURATION_MAX_SECONDS = 315_576_000_000
NANOS_PER_SECOND = 1_000_000_000

_DURATION_RE = re.compile(r"(-)?([0-9]+)(?:\.([0-9]{1,9}))?s")


def _int_field(msg: Message, number: int) -> int:
    value: Value | None = msg.get_field_by_number(number)
    match value:
        case None | PEmpty():
            return 0
        case PLong(v) | PInt(v):
            return v
    raise JsonFormatError(f"Unexpected value {value!r} in {msg.descriptor.full_name}")


def _duration_field(descriptor: MessageDescriptor, number: int) -> FieldDescriptor:
    fd = descriptor.find_field_by_number(number)
    if fd is None:
        raise JsonFormatError(f"{descriptor.full_name} has no field number {number}")
    return fd


def _check_duration(seconds: int, nanos: int) -> None:
    if not -DURATION_MAX_SECONDS <= seconds <= DURATION_MAX_SECONDS:
        raise JsonFormatError(f"Duration seconds out of range: {seconds}")
    if not -NANOS_PER_SECOND < nanos < NANOS_PER_SECOND:
        raise JsonFormatError(f"Duration nanos out of range: {nanos}")
    if (seconds < 0 < nanos) or (nanos < 0 < seconds):
        raise JsonFormatError("Duration seconds and nanos must have the same sign")


def format_nanos(nanos: int) -> str:
    """Format a fraction of a second with 3, 6 or 9 digits."""
    if nanos % 1_000_000 == 0:
        return f"{nanos // 1_000_000:03d}"
    if nanos % 1_000 == 0:
        return f"{nanos // 1_000:06d}"
    return f"{nanos:09d}"


def write_duration(msg: Message) -> JValue:
    """Render a Duration as signed seconds with an optional fraction, e.g. ``"-1.5s"``."""
    seconds = _int_field(msg, 1)
    nanos = _int_field(msg, 2)
    _check_duration(seconds, nanos)

    sign = "-" if seconds < 0 or nanos < 0 else ""
    text = f"{sign}{abs(seconds)}"
    if nanos:
        text += "." + format_nanos(abs(nanos))
    return JString(text + "s")


def parse_duration(text: str, descriptor: MessageDescriptor = DURATION) -> Message:
    """Parse the Duration text form into a message of type ``descriptor``."""
    match = _DURATION_RE.fullmatch(text)
    if not match:
        raise JsonFormatError(f"Invalid duration format: {text!r}")
    negative, whole, fraction = match.groups()
    seconds = int(whole)
    nanos = int(fraction.ljust(9, "0")) if fraction else 0
    if negative:
        seconds, nanos = -seconds, -nanos
    _check_duration(seconds, nanos)

    seconds_fd = _duration_field(descriptor, 1)
    nanos_fd = _duration_field(descriptor, 2)
    fields: dict[FieldDescriptor, Value] = {}
    if seconds:
        fields[seconds_fd] = PLong(seconds)
    if nanos:
        fields[nanos_fd] = PInt(nanos)
    return Message(descriptor, fields)


def read_duration(value: JValue, descriptor: MessageDescriptor = DURATION) -> Message:
    if isinstance(value, JString):
        return parse_duration(value.value, descriptor)
    raise JsonFormatError(f"Expected a string for {descriptor.full_name}, found {kind(value)}")

