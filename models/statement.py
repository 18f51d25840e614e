"""Prepared statements produced from a command line."""

from dataclasses import dataclass
from enum import IntEnum

from models.row import Row


class StatementType(IntEnum):
    """Statement kinds understood by the executor."""

    INSERT = 1
    SELECT = 2


class MetaCommandResult(IntEnum):
    EXIT = 1


@dataclass
class Statement:
    """A parsed statement. Only INSERT carries a row."""

    type: StatementType
    row_to_insert: Row | None = None
