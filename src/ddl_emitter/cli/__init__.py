"""CLI module for PostgreSQL DDL emission.

Provides commands to emit DDL files from a schema document, check a
document for problems without writing anything, and show the table
creation order including foreign keys deferred to break reference cycles.

Usage:
    ddl-emitter emit schema.toml --output-dir build/sql
    ddl-emitter emit schema.toml --save-mode --new-line crlf
    ddl-emitter emit schema.json --stdout
    ddl-emitter check schema.toml
    ddl-emitter order schema.toml
    ddl-emitter --config ddl.toml emit

Commands:
    emit   - Write one DDL file per service
    check  - Report diagnostics without writing files
    order  - Show table creation order and deferred foreign keys
"""

import argparse
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ddl_emitter.config.loader import DEFAULT_CONFIG_FILE, load_emitter_config
from ddl_emitter.config.models import EmitterConfig
from ddl_emitter.diagnostics import DiagnosticCollector, DiagnosticSeverity
from ddl_emitter.emitter import build_root, emit_document
from ddl_emitter.schema.document import SchemaDocument, load_schema_document

console = Console()


# ============================================================================
# Shared helpers
# ============================================================================


def _load_config(args: argparse.Namespace) -> EmitterConfig | None:
    """Resolve configuration from --config, ./ddl.toml and CLI flags.

    Flags given on the command line override the config file.

    Returns:
        EmitterConfig, or None if the config file could not be loaded.
    """
    config_path = getattr(args, "config", None)
    try:
        if config_path:
            config = load_emitter_config(Path(config_path))
        elif Path(DEFAULT_CONFIG_FILE).exists():
            config = load_emitter_config(Path(DEFAULT_CONFIG_FILE))
        else:
            config = EmitterConfig()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return None

    overrides = {}
    if getattr(args, "output_file", None):
        overrides["output_file"] = args.output_file
    if getattr(args, "new_line", None):
        overrides["new_line"] = args.new_line
    if getattr(args, "save_mode", False):
        overrides["save_mode"] = True
    if getattr(args, "emit_non_entity_types", False):
        overrides["emit_non_entity_types"] = True
    if overrides:
        config.options = config.options.model_copy(update=overrides)

    if getattr(args, "output_dir", None):
        config.output_dir = args.output_dir
    if getattr(args, "schema", None):
        config.schema_file = args.schema
    return config


def _load_document(schema_file: str) -> SchemaDocument | None:
    try:
        return load_schema_document(Path(schema_file))
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error: {e}[/red]")
        return None


def _diagnostics_table(title: str, diagnostics: list) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Severity")
    table.add_column("Code", style="dim", no_wrap=True)
    table.add_column("Target")
    table.add_column("Message")

    for d in diagnostics:
        style = "red" if d.severity is DiagnosticSeverity.ERROR else "yellow"
        table.add_row(f"[{style}]{d.severity.value}[/{style}]", d.code, d.target or "", d.message)
    return table


# ============================================================================
# Command implementations
# ============================================================================


def cmd_emit(args: argparse.Namespace) -> int:
    """Emit one DDL file per service of the schema document.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 if every service was emitted, 1 otherwise.
    """
    config = _load_config(args)
    if config is None:
        return 1
    document = _load_document(config.schema_file)
    if document is None:
        return 1

    output_dir = None if args.stdout else Path(config.output_dir)
    results = emit_document(document, config.options, output_dir=output_dir)

    exit_code = 0
    for result in results:
        label = result.service + (f" {result.version}" if result.version else "")
        if result.diagnostics:
            console.print(_diagnostics_table(f"Diagnostics: {label}", result.diagnostics))

        if not result.success:
            console.print(f"[bold red]x[/bold red] {label}: not emitted")
            exit_code = 1
        elif args.stdout:
            # plain print keeps the SQL free of rich markup processing
            print(result.sql)
        else:
            console.print(f"[bold green]v[/bold green] {label} -> [cyan]{result.output_file}[/cyan]")

    if not results:
        console.print("[yellow]No services found in schema document.[/yellow]")
    return exit_code


def cmd_check(args: argparse.Namespace) -> int:
    """Report diagnostics of every service without writing files.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 if no service has an error diagnostic, 1 otherwise.
    """
    config = _load_config(args)
    if config is None:
        return 1
    document = _load_document(config.schema_file)
    if document is None:
        return 1

    exit_code = 0
    for service in document.services:
        label = service.name + (f" {service.version}" if service.version else "")
        diagnostics = DiagnosticCollector()
        build_root(service, config.options, diagnostics)

        if not diagnostics.diagnostics:
            console.print(f"[bold green]v[/bold green] {label}: no problems found")
            continue

        console.print(_diagnostics_table(f"Diagnostics: {label}", diagnostics.diagnostics))
        if diagnostics.has_errors():
            exit_code = 1

    return exit_code


def cmd_order(args: argparse.Namespace) -> int:
    """Show the creation order of the tables of every service.

    Args:
        args: Parsed CLI arguments.

    Returns:
        0 on success, 1 if a service has error diagnostics.
    """
    config = _load_config(args)
    if config is None:
        return 1
    document = _load_document(config.schema_file)
    if document is None:
        return 1

    exit_code = 0
    for service in document.services:
        label = service.name + (f" {service.version}" if service.version else "")
        diagnostics = DiagnosticCollector()
        root = build_root(service, config.options, diagnostics)
        if diagnostics.has_errors():
            console.print(_diagnostics_table(f"Diagnostics: {label}", diagnostics.diagnostics))
            exit_code = 1
            continue

        ordering = root.order_tables()
        deferred: dict[str, list[str]] = {}
        for fk in ordering.alter_statements:
            deferred.setdefault(fk.table_name, []).append(
                f"({', '.join(fk.columns)}) -> {fk.referenced_table_name}"
            )

        table = Table(title=f"Table Order: {label}", show_header=True, header_style="bold")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Table")
        table.add_column("Deferred foreign keys", style="yellow")
        for position, entity in enumerate(ordering.tables, start=1):
            name = root.identifier_of(entity)
            table.add_row(str(position), name, "\n".join(deferred.get(name, [])))
        console.print(table)

    return exit_code


# ============================================================================
# Main entry point
# ============================================================================


def _add_schema_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "schema",
        nargs="?",
        help="Path to the schema document (.toml or .json); defaults to [schema] file in ddl.toml",
    )


def main() -> int:
    """Main CLI entry point.

    Parses command line arguments and dispatches to appropriate handler.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    parser = argparse.ArgumentParser(
        prog="ddl-emitter",
        description="Emit PostgreSQL DDL from a declarative schema document",
    )

    # Global options
    parser.add_argument(
        "--config",
        default=None,
        help=f"Path to the emitter config (default: ./{DEFAULT_CONFIG_FILE} if present)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log debug output of the schema core",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # emit command
    p_emit = subparsers.add_parser(
        "emit",
        help="Write one DDL file per service",
    )
    _add_schema_argument(p_emit)
    p_emit.add_argument(
        "--output-dir",
        "-o",
        default=None,
        help="Directory for the generated files",
    )
    p_emit.add_argument(
        "--output-file",
        default=None,
        help="File name template; supports {service-name} and {version}",
    )
    p_emit.add_argument(
        "--new-line",
        choices=["lf", "crlf"],
        default=None,
        help="Line ending of the generated files",
    )
    p_emit.add_argument(
        "--save-mode",
        action="store_true",
        help="Emit idempotent IF NOT EXISTS statements",
    )
    p_emit.add_argument(
        "--emit-non-entity-types",
        action="store_true",
        help="Also emit tables declared with entity = false",
    )
    p_emit.add_argument(
        "--stdout",
        action="store_true",
        help="Print the SQL instead of writing files",
    )
    p_emit.set_defaults(func=cmd_emit)

    # check command
    p_check = subparsers.add_parser(
        "check",
        help="Report diagnostics without writing files",
    )
    _add_schema_argument(p_check)
    p_check.set_defaults(func=cmd_check)

    # order command
    p_order = subparsers.add_parser(
        "order",
        help="Show table creation order and deferred foreign keys",
    )
    _add_schema_argument(p_order)
    p_order.set_defaults(func=cmd_order)

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
