"""Message values, JSON values and the conversions between them."""

from .json_format import DEFAULT_REGISTRY as DEFAULT_REGISTRY
from .json_format import Parser as Parser
from .json_format import Printer as Printer
from .json_format import default_value as default_value
from .json_format import from_json as from_json
from .json_format import from_json_string as from_json_string
from .json_format import to_json as to_json
from .json_format import to_json_string as to_json_string
from .jvalue import *
from .registry import FormatRegistry as FormatRegistry
from .values import *
from .wellknown import DURATION as DURATION
