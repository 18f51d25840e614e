"""Dense row sequence on top of the Pager.

Rows occupy indices 0 .. num_rows - 1 with no gaps. Row N lives in page
N // ROWS_PER_PAGE at slot N % ROWS_PER_PAGE. The row count is derived from
the file length on open and only grows afterwards.

The row count on open is not file_length // ROW_SIZE: every full page on
disk ends in PAGE_SIZE % ROW_SIZE unused bytes, so that formula would count
a phantom row once 14 full pages exist. rows_in_file follows the page-aligned
layout instead and agrees with it for files shorter than one page.
"""

import logging
import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Self

from exceptions import TableFull
from models.row import ROW_SIZE, Row
from storage.cursor import Cursor
from storage.pager import PAGE_SIZE, ROWS_PER_PAGE, TABLE_MAX_PAGES, Pager

logger = logging.getLogger(__name__)

TABLE_MAX_ROWS = ROWS_PER_PAGE * TABLE_MAX_PAGES


def locate(row_num: int) -> tuple[int, int]:
    """Map a row index to its (page_num, slot) address."""
    return divmod(row_num, ROWS_PER_PAGE)


def rows_in_file(file_length: int) -> int:
    """Row count implied by a file length.

    Full pages are written whole, so each one holds ROWS_PER_PAGE rows followed
    by PAGE_SIZE % ROW_SIZE unused bytes. Below one page this is simply
    file_length // ROW_SIZE; a partial trailing row is dropped.
    """
    full_pages, remainder = divmod(file_length, PAGE_SIZE)
    return full_pages * ROWS_PER_PAGE + min(remainder // ROW_SIZE, ROWS_PER_PAGE)


def trailing_bytes(file_length: int) -> int:
    """Bytes at the end of the file that do not form a whole row."""
    remainder = file_length % PAGE_SIZE
    return remainder - min(remainder // ROW_SIZE, ROWS_PER_PAGE) * ROW_SIZE


class Table:
    """Owns a Pager and is the only writer of num_rows.

    All page-cache and row-count mutations happen under self.lock, which is
    the single mutual-exclusion domain for this table. A scan takes the lock
    for each row it decodes and releases it before yielding, so rows appended
    before the scan reaches the end are seen.
    """

    def __init__(self, pager: Pager):
        self.pager = pager
        self.lock = threading.RLock()
        self.num_rows = rows_in_file(pager.file_length)
        self._closed = False

        trailing = trailing_bytes(pager.file_length)
        if trailing:
            logger.warning(
                "%s: %d trailing bytes do not form a whole row and are ignored", pager.path, trailing
            )

    @classmethod
    def open_db(cls, path: Path | str, create: bool = True) -> Self:
        table = cls(Pager(path, create=create))
        logger.info("Opened table %s with %d rows", table.pager.path, table.num_rows)
        return table

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def is_full(self) -> bool:
        return self.num_rows >= TABLE_MAX_ROWS

    def row_slot(self, row_num: int) -> bytearray:
        """Return the shared buffer for row_num, materializing it if needed.

        Even a read can mutate the cache here: an absent page is faulted in and
        an absent slot becomes a zero-filled buffer.
        """
        page_num, slot = locate(row_num)
        with self.lock:
            page = self.pager.get_page(page_num)
            if not page.is_materialized(slot):
                logger.debug("Materialized empty slot %d of page %d", slot, page_num)
            return page.materialize(slot)

    def insert(self, row: Row) -> int:
        """Append a row and return its index. Raises TableFull at capacity."""
        with self.lock:
            if self.is_full:
                raise TableFull("Execute Table Full")
            cursor = Cursor.table_end(self)
            row.serialize(cursor.cursor_value())
            self.num_rows += 1
            return cursor.row_num

    def select(self) -> Iterator[Row]:
        """Yield every row in index order."""
        with self.lock:
            cursor = Cursor.table_start(self)
        while True:
            with self.lock:
                if cursor.end_of_table:
                    return
                row = Row.deserialize(cursor.cursor_value())
                cursor.advance()
            yield row

    def close_db(self) -> None:
        """Flush every materialized page covered by num_rows, then close the file.

        Full pages are written whole; a trailing partial page writes only the
        bytes of the rows it holds. Pages that were never faulted in are
        skipped. On a flush failure the error propagates and later pages stay
        unflushed.
        """
        with self.lock:
            num_full_pages, num_additional_rows = divmod(self.num_rows, ROWS_PER_PAGE)

            for page_num in range(num_full_pages):
                if self.pager.is_cached(page_num):
                    self.pager.flush(page_num, PAGE_SIZE)
                    self.pager.evict(page_num)

            if num_additional_rows > 0:
                page_num = num_full_pages
                if self.pager.is_cached(page_num):
                    self.pager.flush(page_num, num_additional_rows * ROW_SIZE)
                    self.pager.evict(page_num)

            self.pager.sync()
            self.pager.close()
            self._closed = True
            logger.info("Closed table %s with %d rows", self.pager.path, self.num_rows)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self._closed:
            self.close_db()
