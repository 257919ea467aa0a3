"""url_rewrite_import.bunch_source

Bunch sources: yield successive bounded groups of raw rows.

A bunch is a dict of row number -> raw row. Row numbers are positions in the
whole stream (0-based, continuing across bunches). An empty dict means the
stream is exhausted; callers loop until they get one.
"""

from __future__ import annotations

import csv
from pathlib import Path
from typing import Any, Iterable, Iterator, Protocol

from url_rewrite_import.normalize import normalize_headers

DEFAULT_BUNCH_SIZE = 100

Bunch = dict[int, dict[str, Any]]


class BunchSource(Protocol):
    def get_next_bunch(self) -> Bunch: ...


class _IteratorBunchSource:
    """Slices an iterator of rows into bunches of at most bunch_size rows."""

    def __init__(self, rows: Iterator[dict[str, Any]], bunch_size: int) -> None:
        if bunch_size < 1:
            raise ValueError("bunch_size must be >= 1.")
        self._rows = rows
        self.bunch_size = bunch_size
        self._next_row_num = 0
        self.rows_read = 0

    def get_next_bunch(self) -> Bunch:
        bunch: Bunch = {}
        for row in self._rows:
            bunch[self._next_row_num] = row
            self._next_row_num += 1
            self.rows_read += 1
            if len(bunch) >= self.bunch_size:
                break
        return bunch


class ListBunchSource(_IteratorBunchSource):
    """In-memory rows, used by tests and by callers that already hold data."""

    def __init__(
        self,
        rows: Iterable[dict[str, Any]],
        bunch_size: int = DEFAULT_BUNCH_SIZE,
    ) -> None:
        super().__init__(iter(list(rows)), bunch_size)


class CsvBunchSource(_IteratorBunchSource):
    """Streams a CSV file in bunches.

    Header keys are whitespace-stripped and blank cells become None. The file
    is read lazily; call close() (or use as a context manager) when done.
    An undecodable or malformed header raises UnicodeDecodeError / csv.Error
    from the constructor, with the file already closed; the same errors can
    surface from get_next_bunch() further into the file.
    """

    def __init__(self, path: Path, bunch_size: int = DEFAULT_BUNCH_SIZE) -> None:
        self.path = Path(path)
        self._fh = self.path.open(encoding="utf-8-sig", newline="")
        reader = csv.DictReader(self._fh)
        try:
            self.fieldnames: list[str] = [f.strip() for f in (reader.fieldnames or [])]
        except (UnicodeDecodeError, csv.Error):
            self._fh.close()
            raise
        super().__init__((normalize_headers(r) for r in reader), bunch_size)

    def close(self) -> None:
        if not self._fh.closed:
            self._fh.close()

    def __enter__(self) -> "CsvBunchSource":
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
