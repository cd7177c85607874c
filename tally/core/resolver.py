"""Column reference resolution."""

from __future__ import annotations

import re

from tally.errors import ColumnResolutionError
from tally.core.expr import compile_formula
from tally.core.specs import split_column_specs
from tally.table import Table

BLOCK_COLUMN = "hline"

_POSITIONAL_RE = re.compile(r"^\$(\d+)$")


def _unquote(name: str) -> str:
    text = name.strip()
    if len(text) >= 2 and text[0] in "'\"" and text[-1] == text[0]:
        return text[1:-1]
    return text


class ColumnResolver:
    """Maps column names and ``$N`` positions of one table to positions.

    Positions are 1-based; position 0 is the block counter, addressed by the
    pseudo-name ``hline``. Tables without a header only accept ``$N``.
    """

    def __init__(self, table: Table):
        self.width = table.width
        self.header = list(table.header) if table.header is not None else None
        self._index: dict[str, int] = {}
        for i, name in enumerate(self.header or [], start=1):
            if name and name not in self._index:
                self._index[name] = i

    def resolve(self, name: str) -> int:
        text = _unquote(name)
        if text == BLOCK_COLUMN:
            return 0

        m = _POSITIONAL_RE.match(text)
        if m:
            position = int(m.group(1))
            if 1 <= position <= self.width:
                return position
            raise ColumnResolutionError(
                f"Column {name!r} is out of range, table has {self.width} columns"
            )

        if self.header is None:
            raise ColumnResolutionError(
                f"Unknown column {name!r}: table has no header, use $1..${self.width}"
            )
        if text in self._index:
            return self._index[text]
        raise ColumnResolutionError(
            f"Unknown column {name!r}. Available columns: {', '.join(self._index)}"
        )

    def try_resolve(self, name: str) -> int | None:
        try:
            return self.resolve(name)
        except ColumnResolutionError:
            return None

    def column_name(self, position: int) -> str:
        if position == 0:
            return BLOCK_COLUMN
        if self.header and position <= len(self.header) and self.header[position - 1]:
            return self.header[position - 1]
        return f"${position}"

    def rewrite_formula(self, formula: str) -> tuple[str, frozenset[int]]:
        """Positional form of a formula and the positions it references."""
        expr = compile_formula(formula, self)
        return expr.to_text(), expr.positions()

    def resolve_list(self, text: str) -> list[int]:
        """Resolve a whitespace-separated list of column references."""
        return [self.resolve(name) for name in split_column_specs(text)]
