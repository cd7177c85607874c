"""Multi-key sorting of output rows and block separator insertion."""

from __future__ import annotations

from dataclasses import dataclass
from functools import cmp_to_key
from typing import TYPE_CHECKING, Any, Sequence

from tally.core.values import Date, Duration, is_number, parse
from tally.table import SEPARATOR, Row

if TYPE_CHECKING:
    from tally.core.specs import ColumnSpec


def _alphabetic(cell: str) -> Any:
    return cell


def _numeric(cell: str) -> Any:
    value = parse(cell)
    if is_number(value):
        return value
    if isinstance(value, Duration):
        return value.seconds
    return None


def _temporal(cell: str) -> Any:
    value = parse(cell)
    if isinstance(value, Date):
        return value.epoch_seconds
    if isinstance(value, Duration):
        return value.seconds
    return None


_EXTRACTORS = {"a": _alphabetic, "n": _numeric, "t": _temporal}


@dataclass(frozen=True)
class SortDirective:
    column_index: int
    kind: str
    descending: bool = False
    strength: int | None = None

    def extract(self, row: Sequence[str]) -> Any:
        """Sort key of ``row``, or None when the cell has no value of this kind."""
        cell = row[self.column_index] if self.column_index < len(row) else ""
        return _EXTRACTORS[self.kind](cell)


def order_directives(specs: Sequence["ColumnSpec"]) -> list[SortDirective]:
    """Sort directives of a column list, most significant first.

    Explicit strengths come first in ascending order, then directives
    without one; column order breaks ties.
    """
    directives = [
        SortDirective(i, spec.sort.kind, spec.sort.descending, spec.sort.strength)
        for i, spec in enumerate(specs)
        if spec.sort is not None
    ]
    return sorted(directives, key=lambda d: (d.strength is None, d.strength or 0, d.column_index))


def _compare(a: Sequence[str], b: Sequence[str], directives: Sequence[SortDirective]) -> int:
    for directive in directives:
        ka, kb = directive.extract(a), directive.extract(b)
        if ka is None and kb is None:
            continue
        # missing values trail in both directions
        if ka is None:
            return 1
        if kb is None:
            return -1
        if ka == kb:
            continue
        result = -1 if ka < kb else 1
        return -result if directive.descending else result
    return 0


def sort_rows(rows: list[list[str]], directives: Sequence[SortDirective]) -> list[list[str]]:
    if not directives:
        return list(rows)
    return sorted(rows, key=cmp_to_key(lambda a, b: _compare(a, b, directives)))


def insert_separators(rows: Sequence[list[str]], directives: Sequence[SortDirective],
                      depth: int) -> list[Row]:
    """Put a separator between rows whose leading sort keys differ.

    Only the first ``depth`` directives are compared; no separator ever
    precedes the first row.
    """
    leading = list(directives[:max(depth, 0)])
    if not leading:
        return list(rows)

    def signature(row: Sequence[str]) -> tuple[Any, ...]:
        keys = []
        for d in leading:
            key = d.extract(row)
            if key is None:
                key = row[d.column_index] if d.column_index < len(row) else ""
            keys.append(key)
        return tuple(keys)

    out: list[Row] = []
    previous = None
    for row in rows:
        current = signature(row)
        if out and current != previous:
            out.append(SEPARATOR)
        out.append(row)
        previous = current
    return out
