"""Table transposition: selected columns become rows."""

from __future__ import annotations

import logging
from typing import Any

from tally.core.grouping import compile_filter
from tally.core.models import TransposeConfig
from tally.core.resolver import BLOCK_COLUMN, ColumnResolver
from tally.table import SEPARATOR, Row, Table, is_separator

logger = logging.getLogger(__name__)


def transpose(table: Table, config: TransposeConfig | dict[str, Any] | None = None) -> Table:
    """Swap rows and columns of ``table``.

    The header, when present, becomes the first output column, followed by
    one column per accepted data row. Input separators turn into empty
    columns, and an output row whose cells are all empty turns into a
    separator. The result has no header.
    """
    if config is None:
        config = TransposeConfig()
    elif not isinstance(config, TransposeConfig):
        config = TransposeConfig.model_validate(config)

    resolver = ColumnResolver(table)
    if config.cols:
        positions = resolver.resolve_list(config.cols)
    else:
        positions = list(range(1, table.width + 1))
    row_filter = compile_filter(config.cond, resolver)

    def pick(row: list[str]) -> list[str]:
        return [row[p] if p < len(row) else "" for p in positions]

    columns: list[list[str]] = []
    if table.header is not None:
        columns.append(pick([BLOCK_COLUMN, *table.header]))

    block = 0
    seen_data = False
    rejected = 0
    for row in table.rows:
        if is_separator(row):
            if seen_data:
                block += 1
            columns.append([""] * len(positions))
            continue
        seen_data = True
        augmented = [str(block), *row]
        if row_filter is not None and not row_filter.matches(augmented):
            rejected += 1
            continue
        columns.append(pick(augmented))

    rows: list[Row] = []
    if columns:
        for k in range(len(positions)):
            cells = [column[k] for column in columns]
            rows.append(cells if any(cells) else SEPARATOR)

    logger.info("Transposed %d columns into rows (%d rows filtered out)", len(positions), rejected)
    return Table(rows=rows)
