"""Group-and-aggregate driver."""

from __future__ import annotations

import logging
import time
from typing import Any

from tally.core.evaluator import GroupEvaluator
from tally.core.grouping import GroupIndex, compile_filter
from tally.core.models import AggregateConfig
from tally.core.resolver import ColumnResolver
from tally.core.sorting import insert_separators, order_directives, sort_rows
from tally.core.specs import ColumnSpec, build_column_specs
from tally.table import Row, Table, is_separator

logger = logging.getLogger(__name__)


def key_positions(specs: list[ColumnSpec]) -> list[int]:
    """Distinct key column positions in column-list order."""
    positions: list[int] = []
    for spec in specs:
        if spec.is_key and spec.key_position not in positions:
            positions.append(spec.key_position)
    return positions


def group_rows(table: Table, index: GroupIndex) -> GroupIndex:
    """Feed every data row of ``table`` into ``index``.

    The block index starts at 0 and grows by one at each separator that
    follows a data row.
    """
    block = 0
    seen_data = False
    for row in table.rows:
        if is_separator(row):
            if seen_data:
                block += 1
            continue
        seen_data = True
        index.add_row(row, block)
    return index


def aggregate(table: Table, config: AggregateConfig | dict[str, Any]) -> Table:
    """Group ``table`` by its key columns and compute one row per group.

    Every spec, column reference and formula is resolved before any row is
    read, so a bad column spec fails the whole run without partial output.
    """
    if not isinstance(config, AggregateConfig):
        config = AggregateConfig.model_validate(config)
    started = time.perf_counter()

    resolver = ColumnResolver(table)
    specs = build_column_specs(config.cols, resolver)
    row_filter = compile_filter(config.cond, resolver)

    index = group_rows(table, GroupIndex(key_positions(specs), row_filter))

    rows = []
    for group in index.groups:
        evaluator = GroupEvaluator(group, config.numeric)
        rows.append([evaluator.evaluate(spec) for spec in specs])

    directives = order_directives(specs)
    rows = sort_rows(rows, directives)
    laid_out: list[Row] = insert_separators(rows, directives, config.hline)

    visible = [i for i, spec in enumerate(specs) if not spec.invisible]
    header = [specs[i].title for i in visible]
    body: list[Row] = [
        row if is_separator(row) else [row[i] for i in visible]
        for row in laid_out
    ]

    logger.info(
        "Aggregated %d of %d rows into %d groups (%d columns) in %.1f ms",
        index.rows_kept, index.rows_seen, len(index), len(header),
        (time.perf_counter() - started) * 1000,
    )
    return Table(rows=body, header=header)
