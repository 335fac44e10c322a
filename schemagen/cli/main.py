"""Command-line interface for schemagen - typed Python bindings for SQL Server schemas."""
import argparse
import logging
import sys
from pathlib import Path
from typing import Dict

from schemagen.catalog import list_supported_catalogs
from schemagen.config.connection import load_connection_config, validate_connection_config
from schemagen.core.introspect import introspect_database
from schemagen.output.python import render_all

logger = logging.getLogger(__name__)


def write_files(files: Dict[str, str], output_dir: str) -> None:
    """Write rendered modules into output_dir, creating it if needed."""
    target = Path(output_dir)
    target.mkdir(parents=True, exist_ok=True)
    for file_name, content in files.items():
        path = target / file_name
        path.write_text(content, encoding='utf-8')
        logger.info("Wrote %s", path)


def run_generate(args):
    """Introspect the design-time database and write generated bindings."""
    try:
        config = load_connection_config(args.conn_file, args.catalog)
        if args.server:
            config['server'] = args.server
        validate_connection_config(args.catalog, config)

        bundles = introspect_database(config, args.catalog)
        files = render_all(bundles)

        if args.stdout:
            for file_name, content in files.items():
                print(f"# === {file_name} ===")
                print(content)
        else:
            write_files(files, args.output_dir)
            print(f"Generated {len(files) - 1} schema module(s) in {args.output_dir}")

        sys.exit(0)

    except Exception as e:  # pylint: disable=broad-except
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


def main():
    """Parse command line arguments and execute appropriate command."""
    parser = argparse.ArgumentParser(
        description="schemagen - typed Python bindings for database schemas",
        epilog="Examples:\n"
               "  schemagen generate --conn-file dev.yaml --output-dir db\n"
               "  schemagen generate --server localhost,1433 --stdout",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    subparsers = parser.add_subparsers(dest="command")

    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate bindings from a live database",
        description="Introspect tables, stored procedures, functions and table types "
                    "and write one Python module per schema"
    )
    generate_parser.add_argument(
        "--catalog",
        choices=list_supported_catalogs(),
        default="sqlserver",
        help="Database catalog type (default: sqlserver)"
    )
    generate_parser.add_argument(
        "--conn-file",
        help="Path to connection config file (default: ~/.schemagen/{catalog}.yaml)"
    )
    generate_parser.add_argument(
        "--server",
        help="Design-time server address, overrides the connection string's SERVER"
    )
    output_group = generate_parser.add_mutually_exclusive_group()
    output_group.add_argument(
        "--output-dir", default="generated",
        help="Directory to write the generated package to (default: generated)"
    )
    output_group.add_argument(
        "--stdout", action="store_true",
        help="Print generated modules instead of writing files"
    )
    generate_parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Log progress to stderr"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO if getattr(args, "verbose", False) else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s"
    )

    if args.command == "generate":
        run_generate(args)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
