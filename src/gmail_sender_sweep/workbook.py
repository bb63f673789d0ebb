"""SQLite-backed workbook of sheet-like grids used as durable table storage."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator

from gmail_sender_sweep.constants import WORKBOOK_PATH

Cell = Any  # str | int | float | None

_CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS sheets (
    name TEXT PRIMARY KEY,
    frozen_rows INTEGER NOT NULL DEFAULT 0,
    has_filter INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS cells (
    sheet TEXT NOT NULL,
    row INTEGER NOT NULL,
    col INTEGER NOT NULL,
    value,
    PRIMARY KEY (sheet, row, col),
    FOREIGN KEY (sheet) REFERENCES sheets(name)
);

CREATE TABLE IF NOT EXISTS column_formats (
    sheet TEXT NOT NULL,
    col INTEGER NOT NULL,
    format TEXT NOT NULL,
    PRIMARY KEY (sheet, col),
    FOREIGN KEY (sheet) REFERENCES sheets(name)
);
"""


class Workbook:
    """Named grids of 1-based (row, col) cells persisted in SQLite.

    Every write commits immediately unless it runs inside :meth:`atomic`,
    in which case the whole block commits (or rolls back) together.
    """

    def __init__(self, db_path: Path | None = None) -> None:
        self.db_path = Path(db_path or WORKBOOK_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path))
        self._conn.row_factory = sqlite3.Row
        self._depth = 0
        self._conn.executescript(_CREATE_TABLES_SQL)

    # --- transactions ---

    @contextmanager
    def atomic(self) -> Iterator[Workbook]:
        """Group writes so they persist together or not at all."""
        self._depth += 1
        try:
            yield self
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self._conn.rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            self._conn.commit()

    def _commit(self) -> None:
        if self._depth == 0:
            self._conn.commit()

    # --- sheets ---

    def has_sheet(self, name: str) -> bool:
        row = self._conn.execute("SELECT 1 FROM sheets WHERE name = ?", (name,)).fetchone()
        return row is not None

    def ensure_sheet(self, name: str) -> None:
        self._conn.execute("INSERT OR IGNORE INTO sheets (name) VALUES (?)", (name,))
        self._commit()

    def delete_sheet(self, name: str) -> None:
        self._conn.execute("DELETE FROM cells WHERE sheet = ?", (name,))
        self._conn.execute("DELETE FROM column_formats WHERE sheet = ?", (name,))
        self._conn.execute("DELETE FROM sheets WHERE name = ?", (name,))
        self._commit()

    def _require(self, name: str) -> None:
        if not self.has_sheet(name):
            raise KeyError(f"Sheet not found: {name}")

    # --- ranges ---

    def read_range(self, sheet: str, row: int, col: int, num_rows: int, num_cols: int) -> list[list[Cell]]:
        """Return a num_rows x num_cols grid; empty cells read as None."""
        self._require(sheet)
        grid: list[list[Cell]] = [[None] * num_cols for _ in range(num_rows)]
        if num_rows <= 0 or num_cols <= 0:
            return grid
        rows = self._conn.execute(
            "SELECT row, col, value FROM cells WHERE sheet = ? "
            "AND row BETWEEN ? AND ? AND col BETWEEN ? AND ?",
            (sheet, row, row + num_rows - 1, col, col + num_cols - 1),
        ).fetchall()
        for r in rows:
            grid[r["row"] - row][r["col"] - col] = r["value"]
        return grid

    def read_rows(self, sheet: str, start_row: int, num_cols: int) -> list[list[Cell]]:
        """Read every row from start_row down to the last used row."""
        last = self.last_row(sheet)
        if last < start_row:
            return []
        return self.read_range(sheet, start_row, 1, last - start_row + 1, num_cols)

    def write_range(self, sheet: str, row: int, col: int, values: list[list[Cell]]) -> None:
        self._require(sheet)
        params = [
            (sheet, row + i, col + j, value)
            for i, line in enumerate(values)
            for j, value in enumerate(line)
        ]
        self._conn.executemany(
            "INSERT OR REPLACE INTO cells (sheet, row, col, value) VALUES (?, ?, ?, ?)",
            params,
        )
        self._conn.execute(
            "DELETE FROM cells WHERE sheet = ? AND value IS NULL", (sheet,)
        )
        self._commit()

    def last_row(self, sheet: str) -> int:
        self._require(sheet)
        row = self._conn.execute(
            "SELECT MAX(row) AS r FROM cells WHERE sheet = ?", (sheet,)
        ).fetchone()
        return row["r"] or 0

    def clear(self, sheet: str) -> None:
        """Clear cell contents, keeping formats and frozen rows."""
        self._require(sheet)
        self._conn.execute("DELETE FROM cells WHERE sheet = ?", (sheet,))
        self._commit()

    def delete_row(self, sheet: str, row: int) -> None:
        """Delete one row and shift the rows below it up."""
        self._require(sheet)
        self._conn.execute("DELETE FROM cells WHERE sheet = ? AND row = ?", (sheet, row))
        # Shift through negative row numbers to avoid primary key collisions.
        self._conn.execute(
            "UPDATE cells SET row = -(row - 1) WHERE sheet = ? AND row > ?", (sheet, row)
        )
        self._conn.execute("UPDATE cells SET row = -row WHERE sheet = ? AND row < 0", (sheet,))
        self._commit()

    # --- presentation ---

    def freeze_rows(self, sheet: str, rows: int) -> None:
        self._require(sheet)
        self._conn.execute("UPDATE sheets SET frozen_rows = ? WHERE name = ?", (rows, sheet))
        self._commit()

    def create_filter(self, sheet: str) -> None:
        self._set_filter(sheet, True)

    def remove_filter(self, sheet: str) -> None:
        self._set_filter(sheet, False)

    def _set_filter(self, sheet: str, enabled: bool) -> None:
        self._require(sheet)
        self._conn.execute(
            "UPDATE sheets SET has_filter = ? WHERE name = ?", (int(enabled), sheet)
        )
        self._commit()

    def set_column_format(self, sheet: str, col: int, fmt: str) -> None:
        self._require(sheet)
        self._conn.execute(
            "INSERT OR REPLACE INTO column_formats (sheet, col, format) VALUES (?, ?, ?)",
            (sheet, col, fmt),
        )
        self._commit()

    def column_format(self, sheet: str, col: int) -> str | None:
        row = self._conn.execute(
            "SELECT format FROM column_formats WHERE sheet = ? AND col = ?", (sheet, col)
        ).fetchone()
        return row["format"] if row else None

    def sheet_info(self, sheet: str) -> dict:
        self._require(sheet)
        row = self._conn.execute(
            "SELECT frozen_rows, has_filter FROM sheets WHERE name = ?", (sheet,)
        ).fetchone()
        return {
            "frozen_rows": row["frozen_rows"],
            "has_filter": bool(row["has_filter"]),
            "last_row": self.last_row(sheet),
        }

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # --- context manager ---

    def __enter__(self) -> Workbook:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        self.close()
