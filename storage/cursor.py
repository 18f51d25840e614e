"""Positional cursor over a Table.

A cursor is created at one of two positions:

- table_start: row 0, used for full scans
- table_end: one past the last row, used only to locate the next append slot

It moves forward only; there is no rewind.
"""

from collections.abc import Iterator
from typing import TYPE_CHECKING, Self

from storage.pager import ROWS_PER_PAGE

if TYPE_CHECKING:
    from storage.table import Table


class Cursor:
    def __init__(self, table: "Table", row_num: int, end_of_table: bool):
        self.table = table
        self.row_num = row_num
        self.end_of_table = end_of_table

    @classmethod
    def table_start(cls, table: "Table") -> Self:
        return cls(table, 0, table.num_rows == 0)

    @classmethod
    def table_end(cls, table: "Table") -> Self:
        return cls(table, table.num_rows, True)

    @property
    def page_num(self) -> int:
        return self.row_num // ROWS_PER_PAGE

    @property
    def slot(self) -> int:
        return self.row_num % ROWS_PER_PAGE

    def cursor_value(self) -> bytearray:
        """Shared slot buffer for the current row (may fault the page in)."""
        return self.table.row_slot(self.row_num)

    def advance(self) -> None:
        self.row_num += 1
        if self.row_num >= self.table.num_rows:
            self.end_of_table = True

    def __iter__(self) -> Iterator[bytearray]:
        while not self.end_of_table:
            yield self.cursor_value()
            self.advance()
