"""protojson - proto3 JSON mapping for reflective message values."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("protojson")
except PackageNotFoundError:
    __version__ = "(local)"
