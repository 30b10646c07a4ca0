"""Unit tests configuration file."""

import os

import pytest

from protojson.schema import parse_schema

FILE_DIR = os.path.dirname(os.path.realpath(__file__))


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


@pytest.fixture
def schema():
    with open(f"{FILE_DIR}/example.proto", encoding="utf-8") as f:
        return parse_schema(f.read())


@pytest.fixture
def person(schema):
    return schema.message("Person")


@pytest.fixture
def address(schema):
    return schema.message("Address")
