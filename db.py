import logging
import re
from pathlib import Path

from exceptions import ExecutionError, PrepareSyntaxError, UnrecognizedMetaCommand, UnrecognizedStatement
from models import MetaCommandResult, Row, Statement, StatementType
from models.row import MAX_ID
from storage import Table

logger = logging.getLogger(__name__)

_UNSIGNED_INT = re.compile(r"\+?[0-9]+")


def _parse_id(token: str) -> int:
    if not _UNSIGNED_INT.fullmatch(token) or int(token) > MAX_ID:
        raise PrepareSyntaxError("Syntax error. Could not parse statement.")
    return int(token)


def prepare_insert(line: str) -> Statement:
    args = line.split()
    if len(args) != 4:
        raise PrepareSyntaxError(f"Insert Command Argument Error: {line!r}")
    row = Row.new(_parse_id(args[1]), args[2], args[3])
    return Statement(type=StatementType.INSERT, row_to_insert=row)


def prepare_statement(line: str) -> Statement:
    """Turn one command line into a Statement or raise a PrepareError."""
    args = line.split()
    if not args:
        raise PrepareSyntaxError("Syntax error. Empty statement.")

    if args[0] == "insert":
        return prepare_insert(line)
    if args[0] == "select":
        return Statement(type=StatementType.SELECT)
    raise UnrecognizedStatement(f"Unrecognized Statement: {line!r}")


def execute_statement(statement: Statement, table: Table) -> list[Row]:
    """Run a prepared statement. Returns the selected rows (empty for insert)."""
    if statement.type == StatementType.INSERT:
        if statement.row_to_insert is None:
            raise ExecutionError("Insert statement has no row")
        row_num = table.insert(statement.row_to_insert)
        logger.debug("Inserted row %d (id=%d)", row_num, statement.row_to_insert.id)
        return []
    return list(table.select())


def do_meta_command(line: str, table: Table) -> MetaCommandResult:
    """Handle a dot-command. Only .exit is defined: it flushes and closes the table."""
    if line.strip() == ".exit":
        table.close_db()
        return MetaCommandResult.EXIT
    raise UnrecognizedMetaCommand(f"Unrecognized Meta Command: {line!r}")


class RowDB:
    """Single-table database handle tying the prepare and execute steps together."""

    def __init__(self, path: Path | str, create: bool = True):
        self.table = Table.open_db(path, create=create)

    def execute(self, line: str) -> list[Row]:
        return execute_statement(prepare_statement(line), self.table)

    def insert(self, id: int, username: str, email: str) -> None:
        execute_statement(Statement(type=StatementType.INSERT, row_to_insert=Row.new(id, username, email)), self.table)

    def select(self) -> list[Row]:
        return execute_statement(Statement(type=StatementType.SELECT), self.table)

    def meta(self, line: str) -> MetaCommandResult:
        return do_meta_command(line, self.table)

    @property
    def num_rows(self) -> int:
        return self.table.num_rows

    def close(self) -> None:
        if not self.table.closed:
            self.table.close_db()

    def __enter__(self) -> "RowDB":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
