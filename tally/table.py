"""Table model shared by the aggregation and transposition engines."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Union


class _Separator:
    """Marker for a horizontal rule between blocks of rows."""

    _instance: "_Separator | None" = None

    def __new__(cls) -> "_Separator":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SEPARATOR"


SEPARATOR = _Separator()

# JSON spelling of a separator row
HLINE = "hline"

Row = Union[list[str], _Separator]


def is_separator(row: Any) -> bool:
    return row is SEPARATOR or row is None or row == HLINE


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


@dataclass
class Table:
    """Ordered rows of text cells, optionally named by a header.

    A row is either ``SEPARATOR`` or a list of cell strings. Without a header
    the columns are addressed positionally as ``$1``, ``$2``, ...
    """

    rows: list[Row] = field(default_factory=list)
    header: list[str] | None = None

    @classmethod
    def from_rows(cls, rows: Iterable[Any], has_header: bool = True) -> "Table":
        """Build a table from raw rows (lists of cells, ``None`` or ``"hline"``).

        With ``has_header`` the first non-separator row becomes the header and
        the rule lines right below it are dropped.
        """
        normalized: list[Row] = [
            SEPARATOR if is_separator(r) else [_cell_text(c) for c in r]
            for r in rows
        ]
        if not has_header:
            return cls(rows=normalized)

        header = None
        body: list[Row] = []
        for i, row in enumerate(normalized):
            if not is_separator(row):
                header = row
                body = normalized[i + 1:]
                break
        while body and is_separator(body[0]):
            body = body[1:]
        return cls(rows=body, header=header)

    @property
    def width(self) -> int:
        widths = [len(r) for r in self.rows if not is_separator(r)]
        if self.header is not None:
            widths.append(len(self.header))
        return max(widths, default=0)

    @property
    def column_names(self) -> list[str]:
        """Header names, padded with positional names for extra columns."""
        names = list(self.header or [])
        names.extend(f"${i}" for i in range(len(names) + 1, self.width + 1))
        return names

    def data_rows(self) -> Iterator[list[str]]:
        for row in self.rows:
            if not is_separator(row):
                yield row

    def to_rows(self) -> list[Row]:
        """Header (followed by a rule) and body as one row list."""
        if self.header is None:
            return list(self.rows)
        return [list(self.header), SEPARATOR, *self.rows]

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe form: separators are spelled ``"hline"``."""
        return {
            "header": self.header,
            "rows": [HLINE if is_separator(r) else list(r) for r in self.rows],
        }

    def __len__(self) -> int:
        return sum(1 for _ in self.data_rows())
