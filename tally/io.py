"""Table sources and sinks.

The engines never look tables up or render them; callers inject a
:class:`TableSource` to fetch a table by name and a :class:`TableSink` to turn
a result back into text.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Protocol

from tally.errors import TableNotFoundError
from tally.table import SEPARATOR, Table, is_separator

logger = logging.getLogger(__name__)


class TableSource(Protocol):
    def resolve(self, name: str) -> Table: ...


class TableSink(Protocol):
    def render(self, table: Table) -> str: ...


class MemoryTableSource:
    """Named tables held in memory."""

    def __init__(self, tables: dict[str, Table] | None = None):
        self.tables: dict[str, Table] = dict(tables or {})

    def add(self, name: str, table: Table) -> None:
        self.tables[name] = table

    def resolve(self, name: str) -> Table:
        try:
            return self.tables[name]
        except KeyError:
            raise TableNotFoundError(
                f"No table named {name!r}. Available tables: {', '.join(sorted(self.tables))}"
            ) from None


def load_csv(path: str | Path, has_header: bool = True) -> Table:
    """Read a CSV file into a table; blank lines become separators."""
    with open(path, newline="", encoding="utf-8") as f:
        rows = [row if row else SEPARATOR for row in csv.reader(f)]
    table = Table.from_rows(rows, has_header=has_header)
    logger.debug("Loaded %s: %d rows, %d columns", path, len(table), table.width)
    return table


class CsvTableSource:
    """Tables stored as ``<root>/<name>.csv``."""

    def __init__(self, root: str | Path, has_header: bool = True):
        self.root = Path(root).resolve()
        self.has_header = has_header

    def path_for(self, name: str) -> Path:
        path = (self.root / f"{name}.csv").resolve()
        if not path.is_relative_to(self.root):
            raise TableNotFoundError(f"Table name {name!r} escapes the data directory")
        return path

    def resolve(self, name: str) -> Table:
        path = self.path_for(name)
        if not path.is_file():
            raise TableNotFoundError(f"No table named {name!r} in {self.root}")
        return load_csv(path, has_header=self.has_header)

    def names(self) -> list[str]:
        if not self.root.is_dir():
            return []
        return sorted(p.stem for p in self.root.glob("*.csv"))


class OrgTableSink:
    """Renders a table as pipe-delimited text with ``|---+---|`` rule lines."""

    def render(self, table: Table) -> str:
        rows = table.to_rows()
        data = [r for r in rows if not is_separator(r)]
        width = max((len(r) for r in data), default=0)
        if width == 0:
            return ""
        widths = [0] * width
        for row in data:
            for i, cell in enumerate(row):
                widths[i] = max(widths[i], len(cell))

        lines = []
        for row in rows:
            if is_separator(row):
                lines.append("|" + "+".join("-" * (w + 2) for w in widths) + "|")
                continue
            cells = list(row) + [""] * (width - len(row))
            lines.append("| " + " | ".join(c.ljust(w) for c, w in zip(cells, widths)) + " |")
        return "\n".join(lines)
