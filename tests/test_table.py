"""Tests for Table bookkeeping and Cursor positioning."""

import math
import threading
from pathlib import Path

import pytest

from exceptions import FlushError, TableFull
from models.row import ROW_SIZE, Row
from storage import PAGE_SIZE, ROWS_PER_PAGE, TABLE_MAX_PAGES, TABLE_MAX_ROWS, Cursor, Table
from storage.table import locate, rows_in_file, trailing_bytes


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "table.db"


@pytest.fixture
def table(db_path: Path) -> Table:
    with Table.open_db(db_path) as t:
        yield t


def fill(table: Table, count: int) -> None:
    for i in range(count):
        table.insert(Row.new(i + 1, f"user{i + 1}", f"user{i + 1}@example.com"))


class FailingPastOffset:
    """File wrapper whose writes fail at or beyond a byte offset."""

    def __init__(self, f, limit: int):
        self._f = f
        self._limit = limit
        self._pos = 0

    def seek(self, offset: int) -> int:
        self._pos = offset
        return self._f.seek(offset)

    def write(self, data: bytes) -> int:
        if self._pos >= self._limit:
            raise OSError("disk full")
        return self._f.write(data)

    def flush(self) -> None:
        self._f.flush()

    def fileno(self) -> int:
        return self._f.fileno()

    def close(self) -> None:
        self._f.close()


class TestAddressing:
    """Tests for row addressing and row counts derived from file length."""

    def test_locate(self):
        assert locate(0) == (0, 0)
        assert locate(ROWS_PER_PAGE - 1) == (0, ROWS_PER_PAGE - 1)
        assert locate(ROWS_PER_PAGE) == (1, 0)
        assert locate(TABLE_MAX_ROWS - 1) == (TABLE_MAX_PAGES - 1, ROWS_PER_PAGE - 1)

    def test_max_rows(self):
        assert TABLE_MAX_ROWS == ROWS_PER_PAGE * TABLE_MAX_PAGES

    @pytest.mark.parametrize(
        "file_length,expected",
        [
            (0, 0),
            (ROW_SIZE, 1),
            (2 * ROW_SIZE + 10, 2),
            (PAGE_SIZE, ROWS_PER_PAGE),
            (PAGE_SIZE + 3 * ROW_SIZE, ROWS_PER_PAGE + 3),
            (14 * PAGE_SIZE, 14 * ROWS_PER_PAGE),
            (20 * PAGE_SIZE, 20 * ROWS_PER_PAGE),
        ],
    )
    def test_rows_in_file(self, file_length, expected):
        assert rows_in_file(file_length) == expected

    def test_trailing_bytes(self):
        assert trailing_bytes(2 * ROW_SIZE + 10) == 10
        assert trailing_bytes(PAGE_SIZE) == 0


class TestOpen:
    """Tests for opening a table on an existing file."""

    def test_empty_file(self, table: Table):
        assert table.num_rows == 0
        assert not table.is_full

    def test_row_count_from_file_length(self, db_path: Path):
        db_path.write_bytes(Row.new(1, "a", "b").to_bytes() * 3)
        with Table.open_db(db_path) as table:
            assert table.num_rows == 3

    def test_truncated_row_is_ignored(self, db_path: Path):
        db_path.write_bytes(Row.new(1, "a", "b").to_bytes() * 2 + b"\x01\x02\x03")
        with Table.open_db(db_path) as table:
            assert table.num_rows == 2


class TestCursor:
    """Tests for cursor positioning and slot access."""

    def test_table_start_on_empty(self, table: Table):
        cursor = Cursor.table_start(table)
        assert cursor.row_num == 0
        assert cursor.end_of_table

    def test_table_start_with_rows(self, table: Table):
        fill(table, 2)
        cursor = Cursor.table_start(table)
        assert cursor.row_num == 0
        assert not cursor.end_of_table

    def test_table_end(self, table: Table):
        fill(table, 5)
        cursor = Cursor.table_end(table)
        assert cursor.row_num == 5
        assert cursor.end_of_table

    def test_advance_to_end(self, table: Table):
        fill(table, 2)
        cursor = Cursor.table_start(table)
        cursor.advance()
        assert not cursor.end_of_table
        cursor.advance()
        assert cursor.end_of_table
        assert cursor.row_num == 2

    def test_page_and_slot(self, table: Table):
        cursor = Cursor(table, ROWS_PER_PAGE + 3, False)
        assert cursor.page_num == 1
        assert cursor.slot == 3

    def test_cursor_value_shares_cache_buffer(self, table: Table):
        fill(table, 1)
        cursor = Cursor.table_start(table)
        buf = cursor.cursor_value()
        Row.new(99, "changed", "c@x.com").serialize(buf)

        assert table.pager.get_page(0)[0] is buf
        assert next(table.select()).id == 99

    def test_cursor_value_materializes_empty_slot(self, table: Table):
        buf = Cursor.table_end(table).cursor_value()
        assert buf == bytearray(ROW_SIZE)
        assert table.pager.get_page(0).is_materialized(0)

    def test_iteration(self, table: Table):
        fill(table, 3)
        ids = [Row.deserialize(buf).id for buf in Cursor.table_start(table)]
        assert ids == [1, 2, 3]


class TestInsertSelect:
    """Tests for appending rows and full scans."""

    def test_insertion_order_preserved(self, table: Table):
        fill(table, 3)
        assert [row.id for row in table.select()] == [1, 2, 3]

    def test_order_across_pages(self, table: Table):
        count = ROWS_PER_PAGE * 2 + 5
        fill(table, count)
        assert [row.id for row in table.select()] == list(range(1, count + 1))

    def test_insert_returns_row_index(self, table: Table):
        assert table.insert(Row.new(10, "a", "b")) == 0
        assert table.insert(Row.new(11, "c", "d")) == 1
        assert table.num_rows == 2

    def test_capacity_exhaustion(self, table: Table):
        fill(table, TABLE_MAX_ROWS)
        assert table.is_full

        with pytest.raises(TableFull):
            table.insert(Row.new(0, "x", "y"))
        assert table.num_rows == TABLE_MAX_ROWS

    def test_scan_sees_rows_appended_mid_scan(self, table: Table):
        fill(table, 2)
        rows = table.select()
        assert next(rows).id == 1

        table.insert(Row.new(3, "carol", "c@z.com"))
        assert [row.id for row in rows] == [2, 3]

    def test_suspended_scan_does_not_hold_lock(self, table: Table):
        fill(table, 2)
        rows = table.select()
        next(rows)

        acquired = []

        def grab():
            if table.lock.acquire(timeout=1):
                acquired.append(True)
                table.lock.release()

        worker = threading.Thread(target=grab)
        worker.start()
        worker.join()
        assert acquired == [True]


class TestPersistence:
    """Tests for flushing on close and reading back on reopen."""

    def test_durability_across_reopen(self, db_path: Path):
        with Table.open_db(db_path) as table:
            table.insert(Row.new(1, "alice", "a@x.com"))
            table.insert(Row.new(2, "bob", "b@y.com"))

        with Table.open_db(db_path) as table:
            rows = list(table.select())

        assert [(r.id, r.username, r.email) for r in rows] == [(1, "alice", "a@x.com"), (2, "bob", "b@y.com")]

    def test_nothing_durable_before_close(self, db_path: Path):
        table = Table.open_db(db_path)
        table.insert(Row.new(1, "alice", "a@x.com"))
        assert db_path.stat().st_size == 0
        table.close_db()
        assert db_path.stat().st_size == ROW_SIZE

    def test_close_flushes_full_and_partial_pages(self, db_path: Path):
        count = ROWS_PER_PAGE + 2
        with Table.open_db(db_path) as table:
            fill(table, count)

        assert db_path.stat().st_size == PAGE_SIZE + 2 * ROW_SIZE
        with Table.open_db(db_path) as table:
            assert table.num_rows == count
            assert [row.id for row in table.select()] == list(range(1, count + 1))

    def test_reopen_many_pages(self, db_path: Path):
        count = ROWS_PER_PAGE * 15 + 1
        with Table.open_db(db_path) as table:
            fill(table, count)

        with Table.open_db(db_path) as table:
            assert table.num_rows == count
            rows = list(table.select())
        assert rows[-1].id == count

    def test_append_after_reopen(self, db_path: Path):
        with Table.open_db(db_path) as table:
            fill(table, 3)
        with Table.open_db(db_path) as table:
            table.insert(Row.new(4, "dave", "d@x.com"))
        with Table.open_db(db_path) as table:
            assert [row.id for row in table.select()] == [1, 2, 3, 4]

    def test_close_evicts_pages(self, db_path: Path):
        table = Table.open_db(db_path)
        fill(table, ROWS_PER_PAGE + 1)
        table.close_db()
        assert table.pager.cached_page_numbers() == []
        assert table.closed

    def test_flush_failure_propagates(self, table: Table, monkeypatch):
        fill(table, 1)

        def fail(page_num, byte_count):
            raise FlushError("Error writing page buffer")

        monkeypatch.setattr(table.pager, "flush", fail)
        with pytest.raises(FlushError):
            table.close_db()
        assert not table.closed
        monkeypatch.undo()

    def test_flush_failure_keeps_earlier_pages_and_retry_finishes(self, db_path: Path, monkeypatch):
        count = ROWS_PER_PAGE + 2
        table = Table.open_db(db_path)
        fill(table, count)
        monkeypatch.setattr(table.pager, "_file", FailingPastOffset(table.pager._file, PAGE_SIZE))

        with pytest.raises(FlushError, match="page 1"):
            table.close_db()

        assert not table.closed
        data = db_path.read_bytes()
        assert len(data) == PAGE_SIZE
        assert [Row.deserialize(data[i * ROW_SIZE :]).id for i in range(ROWS_PER_PAGE)] == list(
            range(1, ROWS_PER_PAGE + 1)
        )
        assert table.pager.cached_page_numbers() == [1]

        monkeypatch.undo()
        table.close_db()
        assert table.closed
        assert db_path.stat().st_size == PAGE_SIZE + 2 * ROW_SIZE

        with Table.open_db(db_path) as reopened:
            assert [row.id for row in reopened.select()] == list(range(1, count + 1))

    def test_reopen_exactly_fourteen_full_pages(self, db_path: Path):
        count = ROWS_PER_PAGE * 14
        with Table.open_db(db_path) as table:
            fill(table, count)

        assert db_path.stat().st_size == 14 * PAGE_SIZE
        with Table.open_db(db_path) as table:
            assert table.num_rows == count
            rows = list(table.select())
        assert len(rows) == count
        assert rows[-1].id == count


class TestLazyMaterialization:
    """Tests that scans fault in only the pages they need."""

    def test_scan_touches_only_needed_pages(self, db_path: Path):
        count = ROWS_PER_PAGE * 3 + 1
        with Table.open_db(db_path) as table:
            fill(table, count)

        with Table.open_db(db_path) as table:
            assert table.pager.cached_page_numbers() == []
            list(table.select())
            assert max(table.pager.cached_page_numbers()) <= math.ceil(count / ROWS_PER_PAGE) - 1

    def test_empty_scan_touches_nothing(self, table: Table):
        assert list(table.select()) == []
        assert table.pager.cached_page_numbers() == []
