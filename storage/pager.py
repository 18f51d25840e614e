"""Page cache over the flat database file.

File layout:
    A header-less concatenation of ROW_SIZE-byte records. Page N covers the
    byte range [N * PAGE_SIZE, (N + 1) * PAGE_SIZE); the tail of each page
    that does not fit a whole row is never written.

Pages are read into memory on first access and are only written back (and
evicted) when the Table asks for an explicit flush at close time.
"""

import logging
import os
from pathlib import Path
from typing import Self

from exceptions import DatabaseOpenError, FlushError, PageOutOfBounds
from models.row import ROW_SIZE

logger = logging.getLogger(__name__)

PAGE_SIZE = 4096
TABLE_MAX_PAGES = 100
ROWS_PER_PAGE = PAGE_SIZE // ROW_SIZE

_EMPTY_SLOT = bytes(ROW_SIZE)


class Page:
    """Fixed array of ROWS_PER_PAGE optional row buffers.

    A slot is either None (never materialized) or a bytearray of exactly
    ROW_SIZE bytes. The bytearray is shared with whoever asked for it, so
    writes through a cursor land directly in the cache.
    """

    def __init__(self, slots: list[bytearray | None] | None = None):
        self.slots: list[bytearray | None] = slots or [None] * ROWS_PER_PAGE

    def __len__(self) -> int:
        return len(self.slots)

    def __getitem__(self, slot: int) -> bytearray | None:
        return self.slots[slot]

    def is_materialized(self, slot: int) -> bool:
        return self.slots[slot] is not None

    def materialize(self, slot: int) -> bytearray:
        """Return the slot buffer, creating a zero-filled one if absent."""
        buf = self.slots[slot]
        if buf is None:
            buf = bytearray(ROW_SIZE)
            self.slots[slot] = buf
        return buf

    def materialized_count(self) -> int:
        return sum(1 for s in self.slots if s is not None)

    def to_bytes(self) -> bytes:
        """Assemble a PAGE_SIZE buffer. Absent slots contribute zero bytes."""
        data = bytearray(PAGE_SIZE)
        for i, buf in enumerate(self.slots):
            if buf is not None:
                data[i * ROW_SIZE : (i + 1) * ROW_SIZE] = buf
        return bytes(data)

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        """Build a page from raw file bytes.

        All-zero chunks are treated as never written and stay unmaterialized,
        so a stored row with id 0 and empty strings is indistinguishable from
        an empty slot.
        """
        data = data.ljust(PAGE_SIZE, b"\x00")
        slots: list[bytearray | None] = []
        for i in range(ROWS_PER_PAGE):
            chunk = data[i * ROW_SIZE : (i + 1) * ROW_SIZE]
            slots.append(None if chunk == _EMPTY_SLOT else bytearray(chunk))
        return cls(slots)


class Pager:
    """Owns the database file handle and the in-memory page cache."""

    def __init__(self, path: Path | str, create: bool = True):
        self.path = Path(path)
        self._file = None
        self.pages: list[Page | None] = [None] * TABLE_MAX_PAGES

        if not self.path.exists() and not create:
            raise DatabaseOpenError(f"Database file not found: {self.path}")

        try:
            if not self.path.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.touch()
            self._file = open(self.path, "r+b")
            self.file_length = os.fstat(self._file.fileno()).st_size
        except OSError as e:
            raise DatabaseOpenError(f"Unable to open file {self.path}: {e}") from e

        logger.info("Opened %s (%d bytes)", self.path, self.file_length)

    @property
    def num_pages(self) -> int:
        """Pages present in the file at open time, counting a partial last page."""
        return -(-self.file_length // PAGE_SIZE)

    def _page_offset(self, page_num: int) -> int:
        return page_num * PAGE_SIZE

    def _check_bounds(self, page_num: int) -> None:
        if page_num < 0 or page_num >= TABLE_MAX_PAGES:
            raise PageOutOfBounds(f"Tried to fetch page number out of bounds. {page_num}")

    def _read_page_raw(self, page_num: int) -> bytes:
        if self._file is None:
            raise RuntimeError("Pager is closed")

        self._file.seek(self._page_offset(page_num))
        return self._file.read(PAGE_SIZE)

    def get_page(self, page_num: int) -> Page:
        """Return the cached page, faulting it in from the file on first access."""
        self._check_bounds(page_num)

        page = self.pages[page_num]
        if page is None:
            if page_num < self.num_pages:
                page = Page.from_bytes(self._read_page_raw(page_num))
                logger.debug("Faulted in page %d (%d rows)", page_num, page.materialized_count())
            else:
                page = Page()
                logger.debug("Allocated empty page %d", page_num)
            self.pages[page_num] = page
        return page

    def is_cached(self, page_num: int) -> bool:
        self._check_bounds(page_num)
        return self.pages[page_num] is not None

    def cached_page_numbers(self) -> list[int]:
        return [i for i, page in enumerate(self.pages) if page is not None]

    def evict(self, page_num: int) -> None:
        self._check_bounds(page_num)
        self.pages[page_num] = None

    def flush(self, page_num: int, byte_count: int = PAGE_SIZE) -> None:
        """Write the first byte_count bytes of a cached page back to the file."""
        self._check_bounds(page_num)
        if not 0 <= byte_count <= PAGE_SIZE:
            raise ValueError(f"byte_count must be between 0 and {PAGE_SIZE}, got {byte_count}")

        page = self.pages[page_num]
        if page is None:
            raise FlushError(f"Tried to flush page {page_num}, which is not cached")
        if self._file is None:
            raise FlushError("Pager is closed")

        data = page.to_bytes()[:byte_count]
        try:
            self._file.seek(self._page_offset(page_num))
            self._file.write(data)
            self._file.flush()
        except OSError as e:
            logger.error("Error writing page %d: %s", page_num, e)
            raise FlushError(f"Error writing page buffer for page {page_num}: {e}") from e

        logger.debug("Flushed page %d (%d bytes)", page_num, byte_count)

    def sync(self) -> None:
        """Flush all writes to disk."""
        if self._file is not None:
            self._file.flush()
            os.fsync(self._file.fileno())

    @property
    def closed(self) -> bool:
        return self._file is None

    def close(self) -> None:
        """Close the database file."""
        if self._file is not None:
            self._file.close()
            self._file = None
            logger.info("Closed %s", self.path)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
