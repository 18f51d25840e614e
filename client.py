import argparse
import logging
import sys

from db import do_meta_command, execute_statement, prepare_statement
from exceptions import ExecutionError, FatalError, MetaCommandError, PrepareError
from models import MetaCommandResult
from storage import Table


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Single-table paged record store.")
    parser.add_argument("db_path", help="Existing database file (may be empty)")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level for diagnostics written to stderr",
    )
    parser.add_argument("--prompt", default="db> ", help="Prompt printed before each command")
    return parser


def run(table: Table, prompt: str) -> int:
    """Read commands until .exit or end of input. Returns the exit status."""
    while True:
        try:
            command = input(prompt).strip()
        except (EOFError, KeyboardInterrupt):
            print()
            try:
                table.close_db()
            except ExecutionError as e:
                print(f"Error: {e}")
                return 1
            return 0

        if not command:
            continue

        if command.startswith("."):
            try:
                if do_meta_command(command, table) == MetaCommandResult.EXIT:
                    return 0
            except MetaCommandError as e:
                print(e)
            except ExecutionError as e:
                print(f"Error: {e}")
            continue

        try:
            statement = prepare_statement(command)
        except PrepareError as e:
            print(e)
            continue

        try:
            rows = execute_statement(statement, table)
        except ExecutionError as e:
            print(f"Error: {e}")
            continue

        for row in rows:
            print(row)
        print("Executed.")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        stream=sys.stderr,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        table = Table.open_db(args.db_path, create=False)
        return run(table, args.prompt)
    except FatalError as e:
        print(e, file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
