"""Message schema descriptors and the schema file parser."""

from .parser import Schema as Schema
from .parser import parse_definition as parse_definition
from .parser import parse_schema as parse_schema
from .types import *
