"""Command-line interface for protojson."""

from __future__ import annotations

import json
import logging
import sys

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from protojson.proto import JsonFormatError, Parser, Printer
from protojson.schema import FieldDescriptor, Schema, SchemaError, parse_schema


def _load_schema(schema_file: str) -> Schema:
    with open(schema_file, encoding="utf-8") as f:
        return parse_schema(f.read())


@click.group()
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging")
def cli(verbose: bool) -> None:
    """Convert between protocol buffer messages and JSON."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


@cli.command()
@click.option(
    "--schema",
    "-s",
    "schema_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Schema (.proto) file",
)
@click.option("--message", "-m", "message_name", required=True, help="Message type to convert")
@click.option("--input", "-i", "input_file", default="-", help="Input JSON file (- for stdin)")
@click.option("--include-defaults", is_flag=True, help="Emit fields holding default values")
@click.option("--preserve-names", is_flag=True, help="Use declared field names")
@click.option("--long-as-number", is_flag=True, help="Emit 64-bit integers as numbers")
@click.option("--indent", type=int, default=None, help="Pretty-print with this indent")
def convert(
    schema_file: str,
    message_name: str,
    input_file: str,
    include_defaults: bool,
    preserve_names: bool,
    long_as_number: bool,
    indent: int | None,
) -> None:
    """Parse JSON as a message and print its canonical JSON form."""
    with click.open_file(input_file, encoding="utf-8") as f:
        text = f.read()

    printer = Printer(
        include_default_value_fields=include_defaults,
        preserve_field_names=preserve_names,
        format_long_as_number=long_as_number,
    )
    try:
        descriptor = _load_schema(schema_file).message(message_name)
        message = Parser().from_json_string(text, descriptor)
        output = printer.print(message, indent=indent)
    except (JsonFormatError, SchemaError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo(output)


@cli.command()
@click.option(
    "--schema",
    "-s",
    "schema_file",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="Schema (.proto) file",
)
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(schema_file: str, output_json: bool) -> None:
    """Display the messages and fields of a schema."""
    try:
        schema = _load_schema(schema_file)
    except SchemaError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if output_json:
        print(json.dumps(schema.definition.to_dict(), indent=2))
    else:
        _output_plain(schema)


def _label(fd: FieldDescriptor) -> str:
    if fd.is_map_field:
        return "map"
    if fd.is_repeated:
        return "repeated"
    if fd.proto3_optional:
        return "optional"
    return ""


def _type_name(fd: FieldDescriptor) -> str:
    if fd.is_map_field:
        assert fd.message_type is not None
        key, value = fd.message_type.map_key_value()
        return f"map<{key.type_name}, {value.type_name}>"
    return fd.type_name


def _output_plain(schema: Schema) -> None:
    """Output schema info using rich text formatting."""
    console = Console()

    console.print(f"[bold cyan]Schema[/bold cyan] {schema.package or ''} ({schema.syntax})")
    console.print()

    for name, descriptor in schema.messages.items():
        console.print(f"[bold cyan]{name}[/bold cyan]")
        table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
        table.add_column("#", style="green", justify="right")
        table.add_column("Name", style="white")
        table.add_column("JSON name", style="yellow")
        table.add_column("Type", style="white")
        table.add_column("Label", style="dim")

        for fd in descriptor.fields:
            table.add_row(str(fd.number), fd.name, fd.json_name, _type_name(fd), _label(fd))

        console.print(table)
        console.print()

    if schema.enums:
        console.print("[bold cyan]Enums[/bold cyan]")
        enum_table = Table(show_header=False, box=None, padding=(0, 2, 0, 2))
        enum_table.add_column("Name", style="white")
        enum_table.add_column("Values", style="dim")
        for name, enum in schema.enums.items():
            enum_table.add_row(name, ", ".join(f"{v.name}={v.number}" for v in enum.values))
        console.print(enum_table)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
