#!/usr/bin/env python3
"""Database inspection tool for debugging and learning.

Usage:
    uv run python tools/db_inspect.py --db ./tmp/dev.db --summary
    uv run python tools/db_inspect.py --db ./tmp/dev.db --page 0
    uv run python tools/db_inspect.py --db ./tmp/dev.db --rows
"""

import argparse
import sys
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from exceptions import FatalError
from models.row import ROW_SIZE, Row
from storage.pager import PAGE_SIZE, ROWS_PER_PAGE, Pager
from storage.table import TABLE_MAX_ROWS, Table, rows_in_file, trailing_bytes


def summarize(pager: Pager) -> str:
    """File statistics as seen at open time."""
    full_pages, partial = divmod(pager.file_length, PAGE_SIZE)
    lines = [
        "=== File Statistics ===",
        f"  Path: {pager.path}",
        f"  File Size: {pager.file_length} bytes",
        f"  Pages: {pager.num_pages} ({full_pages} full, {1 if partial else 0} partial)",
        f"  Rows: {rows_in_file(pager.file_length)} / {TABLE_MAX_ROWS}",
        f"  Trailing Bytes: {trailing_bytes(pager.file_length)}",
        f"  Row Size: {ROW_SIZE} bytes, {ROWS_PER_PAGE} rows per page",
    ]
    return "\n".join(lines)


def describe_page(pager: Pager, page_num: int) -> str:
    """Slot occupancy of one page, decoding every materialized slot."""
    page = pager.get_page(page_num)
    lines = [f"=== Page {page_num} ({page.materialized_count()}/{ROWS_PER_PAGE} slots) ==="]
    for slot in range(ROWS_PER_PAGE):
        buf = page[slot]
        if buf is None:
            lines.append(f"  [{slot:2d}] empty")
        else:
            lines.append(f"  [{slot:2d}] {Row.deserialize(buf)}")
    return "\n".join(lines)


def dump_rows(table: Table) -> str:
    lines = [f"=== Rows ({table.num_rows}) ==="]
    lines.extend(f"  {row}" for row in table.select())
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Inspect a rowdb database file")
    parser.add_argument("--db", required=True, help="Path to database file")
    parser.add_argument("--summary", action="store_true", help="Print file statistics")
    parser.add_argument("--page", type=int, help="Print slot occupancy of a page")
    parser.add_argument("--rows", action="store_true", help="Print every row")
    args = parser.parse_args(argv)

    db_path = Path(args.db)
    if not db_path.exists():
        print(f"Error: Database file not found: {db_path}", file=sys.stderr)
        return 1

    # Read-only use: the table is never closed through close_db, so nothing is flushed
    try:
        table = Table.open_db(db_path, create=False)
    except FatalError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        if args.summary or (args.page is None and not args.rows):
            print(summarize(table.pager))
        if args.page is not None:
            print(describe_page(table.pager, args.page))
        if args.rows:
            print(dump_rows(table))
    except FatalError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        table.pager.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
