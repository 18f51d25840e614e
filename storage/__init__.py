"""Storage layer: page cache, table addressing and cursors."""

from storage.cursor import Cursor
from storage.pager import PAGE_SIZE, ROWS_PER_PAGE, TABLE_MAX_PAGES, Page, Pager
from storage.table import TABLE_MAX_ROWS, Table

__all__ = [
    "Pager",
    "Page",
    "Table",
    "Cursor",
    "PAGE_SIZE",
    "ROWS_PER_PAGE",
    "TABLE_MAX_PAGES",
    "TABLE_MAX_ROWS",
]
