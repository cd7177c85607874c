"""Row filtering and grouping by key columns."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

from tally.errors import TallyError
from tally.core.evaluator import RowScope
from tally.core.expr import Node, compile_formula
from tally.core.operators import truthy

if TYPE_CHECKING:
    from tally.core.resolver import ColumnResolver

logger = logging.getLogger(__name__)


class RowFilter:
    """Boolean formula evaluated once per input row.

    A row whose evaluation fails (missing cell, incompatible comparison) is
    excluded, never an error for the whole run.
    """

    def __init__(self, text: str, expr: Node):
        self.text = text
        self.expr = expr

    def matches(self, row: Sequence[str]) -> bool:
        """``row`` is augmented: position 0 holds the block index."""
        try:
            return truthy(RowScope(row).eval(self.expr))
        except TallyError as exc:
            logger.debug("Filter %r excluded row %r: %s", self.text, list(row[1:]), exc)
            return False


def compile_filter(text: str | None, resolver: "ColumnResolver") -> RowFilter | None:
    if text is None or not text.strip():
        return None
    return RowFilter(text, compile_formula(text, resolver))


@dataclass
class Group:
    key: tuple[str, ...]
    rows: list[list[str]] = field(default_factory=list)


class GroupIndex:
    """Partitions rows into groups by the raw text of their key cells.

    Groups keep first-appearance order and rows keep input order within a
    group.
    """

    def __init__(self, key_positions: Sequence[int], row_filter: RowFilter | None = None):
        self.key_positions = tuple(key_positions)
        self.row_filter = row_filter
        self._groups: dict[tuple[str, ...], Group] = {}
        self.rows_seen = 0
        self.rows_kept = 0

    def add_row(self, cells: Sequence[str], block_index: int) -> bool:
        """Add one data row; returns False when the filter rejected it."""
        self.rows_seen += 1
        row = [str(block_index), *cells]
        if self.row_filter is not None and not self.row_filter.matches(row):
            return False
        key = tuple(row[p] if p < len(row) else "" for p in self.key_positions)
        group = self._groups.get(key)
        if group is None:
            group = self._groups[key] = Group(key)
        group.rows.append(row)
        self.rows_kept += 1
        return True

    @property
    def groups(self) -> list[Group]:
        return list(self._groups.values())

    def __len__(self) -> int:
        return len(self._groups)
