"""Generic JSON value tree and the JSON text boundary.

Numbers keep the form they were written in: ``JInt`` for integer literals,
``JDecimal`` for literals with a fraction or exponent. The printer produces
``JDouble`` for float and double fields.
"""

import json
from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal
from typing import Any


class JsonFormatError(RuntimeError):
    """Raised when a value cannot be converted to or from JSON.

    The underlying error, if any, is chained as ``__cause__``.
    """


@dataclass(frozen=True, slots=True)
class JNull:
    pass


@dataclass(frozen=True, slots=True)
class JBool:
    value: bool


@dataclass(frozen=True, slots=True)
class JInt:
    value: int


@dataclass(frozen=True, slots=True)
class JDecimal:
    value: Decimal


@dataclass(frozen=True, slots=True)
class JDouble:
    value: float


@dataclass(frozen=True, slots=True)
class JString:
    value: str


@dataclass(frozen=True, slots=True)
class JArray:
    items: tuple["JValue", ...] = ()

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator["JValue"]:
        return iter(self.items)


@dataclass(frozen=True, slots=True)
class JObject:
    """An object as an ordered list of (name, value) pairs."""

    fields: tuple[tuple[str, "JValue"], ...] = ()

    def __len__(self) -> int:
        return len(self.fields)

    def get(self, name: str) -> "JValue | None":
        """Return the value of the last field called ``name``."""
        found = None
        for key, value in self.fields:
            if key == name:
                found = value
        return found

    def to_dict(self) -> dict[str, "JValue"]:
        return dict(self.fields)


JValue = JNull | JBool | JInt | JDecimal | JDouble | JString | JArray | JObject

JNULL = JNull()


def kind(value: JValue) -> str:
    """Human readable name of a JSON value's kind, used in error messages."""
    match value:
        case JNull():
            return "null"
        case JBool():
            return "boolean"
        case JInt() | JDecimal() | JDouble():
            return "number"
        case JString():
            return "string"
        case JArray():
            return "array"
        case JObject():
            return "object"
    raise JsonFormatError(f"Not a JSON value: {value!r}")


def from_python(obj: Any) -> JValue:
    """Convert decoded Python JSON data into a value tree.

    Objects may be given as dicts or as lists of (name, value) pairs, the
    latter being what ``object_pairs_hook`` hands over.
    """
    if obj is None:
        return JNULL
    if isinstance(obj, bool):
        return JBool(obj)
    if isinstance(obj, int):
        return JInt(obj)
    if isinstance(obj, Decimal):
        return JDecimal(obj)
    if isinstance(obj, float):
        return JDouble(obj)
    if isinstance(obj, str):
        return JString(obj)
    if isinstance(obj, _Pairs):
        return JObject(tuple((key, from_python(value)) for key, value in obj))
    if isinstance(obj, dict):
        return JObject(tuple((str(key), from_python(value)) for key, value in obj.items()))
    if isinstance(obj, (list, tuple)):
        return JArray(tuple(from_python(item) for item in obj))
    raise JsonFormatError(f"Cannot represent {type(obj).__name__} as JSON")


def to_python(value: JValue) -> Any:
    """Convert a value tree into plain Python data.

    Decimal literals become floats; duplicate object keys keep the last value.
    """
    match value:
        case JNull():
            return None
        case JBool(v) | JInt(v) | JDouble(v) | JString(v):
            return v
        case JDecimal(v):
            return float(v)
        case JArray(items):
            return [to_python(item) for item in items]
        case JObject(fields):
            return {key: to_python(item) for key, item in fields}
    raise JsonFormatError(f"Not a JSON value: {value!r}")


class _Pairs(list):
    """Object members in document order, as produced by the decoder."""


def parse_json(text: str) -> JValue:
    """Parse JSON text into a value tree."""
    try:
        decoded = json.loads(text, object_pairs_hook=_Pairs, parse_float=Decimal)
    except json.JSONDecodeError as exc:
        raise JsonFormatError(f"Invalid JSON: {exc}") from exc
    return from_python(decoded)


def render_json(value: JValue, indent: int | None = None) -> str:
    """Render a value tree as JSON text, compact unless ``indent`` is given."""
    separators = (",", ":") if indent is None else (",", ": ")
    return json.dumps(to_python(value), indent=indent, separators=separators, ensure_ascii=False)
