"""Registry of custom JSON formats for specific message types."""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from protojson.schema.types import MessageDescriptor

from .jvalue import JValue
from .values import Message

Writer = Callable[[Message], JValue]
Reader = Callable[[JValue, MessageDescriptor], Message]


@dataclass(frozen=True)
class FormatRegistry:
    """Immutable mapping from message full name to a (writer, parser) pair.

    A registered pair replaces field-by-field conversion for that message
    type entirely. The parser is called with the JSON value and the
    descriptor to build, so one entry serves every descriptor sharing the
    full name. ``register`` returns a new registry and leaves this one
    untouched, so a registry can be shared freely between printers and
    parsers.

    Example:
        registry = DEFAULT_REGISTRY.register(money_descriptor, write_money, parse_money)
        Printer(registry=registry).print(msg)
    """

    formats: Mapping[str, tuple[Writer, Reader]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "formats", MappingProxyType(dict(self.formats)))

    def register(
        self,
        message_type: MessageDescriptor | str,
        writer: Writer,
        parser: Reader,
    ) -> "FormatRegistry":
        """Return a registry with a custom format for ``message_type`` added."""
        formats = dict(self.formats)
        formats[_key(message_type)] = (writer, parser)
        return FormatRegistry(formats)

    def get_writer(self, message_type: MessageDescriptor | str) -> Writer | None:
        entry = self.formats.get(_key(message_type))
        return entry[0] if entry else None

    def get_parser(self, message_type: MessageDescriptor | str) -> Reader | None:
        entry = self.formats.get(_key(message_type))
        return entry[1] if entry else None

    def __contains__(self, message_type: object) -> bool:
        if not isinstance(message_type, (MessageDescriptor, str)):
            return False
        return _key(message_type) in self.formats


def _key(message_type: MessageDescriptor | str) -> str:
    if isinstance(message_type, MessageDescriptor):
        return message_type.full_name
    return message_type
