import logging

import pytest
from pydantic import ValidationError

from tally.errors import ColumnResolutionError, FormulaCompileError, SpecSyntaxError
from tally.core import AggregateConfig, NumericFormat, aggregate
from tally.table import SEPARATOR, Table


def test_mean_and_sum_per_day(sales):
    result = aggregate(sales, AggregateConfig(cols="Day mean(Level) sum(Quantity)"))
    assert result.header == ["Day", "mean(Level)", "sum(Quantity)"]
    assert result.rows == [["Monday", "27.5", "14"], ["Tuesday", "51", "12"]]


def test_config_may_be_a_dict(sales):
    result = aggregate(sales, {"cols": "Day count()", "cond": None, "hline": None})
    assert result.rows == [["Monday", "2"], ["Tuesday", "1"]]


def test_filter(sales):
    result = aggregate(sales, AggregateConfig(cols="Day sum(Quantity)", cond="Level > 30"))
    assert result.rows == [["Tuesday", "12"]]
    result = aggregate(sales, AggregateConfig(cols="Day sum(Quantity)", cond="Level > 25"))
    assert result.rows == [["Monday", "11"], ["Tuesday", "12"]]


def test_names_and_quoted_formulas(sales):
    result = aggregate(sales, AggregateConfig(
        cols="'Day';'weekday' 'sum(Quantity * 2)';'double'",
    ))
    assert result.header == ["weekday", "double"]
    assert result.rows == [["Monday", "28"], ["Tuesday", "24"]]


def test_sorting_and_invisible_columns(sales):
    result = aggregate(sales, AggregateConfig(cols="Day sum(Quantity);^n"))
    assert [r[0] for r in result.rows] == ["Tuesday", "Monday"]

    result = aggregate(sales, AggregateConfig(cols="Day sum(Quantity);^N;<>"))
    assert result.header == ["Day"]
    assert result.rows == [["Monday"], ["Tuesday"]]

    result = aggregate(sales, AggregateConfig(cols="Day;^A"))
    assert result.rows == [["Tuesday"], ["Monday"]]


def test_sort_strength_wins_over_column_order():
    table = Table.from_rows([
        ["K", "V"], ["a", "2"], ["b", "1"], ["c", "1"],
    ])
    result = aggregate(table, AggregateConfig(cols="K;^A sum(V);^n1"))
    assert result.rows == [["c", "1"], ["b", "1"], ["a", "2"]]


def test_block_index_as_key(blocks):
    result = aggregate(blocks, AggregateConfig(cols="hline Item sum(Qty)"))
    assert result.header == ["hline", "Item", "sum(Qty)"]
    assert result.rows == [["0", "a", "1"], ["1", "a", "2"], ["1", "b", "3"]]


def test_separator_depth(blocks):
    result = aggregate(blocks, AggregateConfig(cols="hline;^n Item sum(Qty)", hline=1))
    assert result.rows == [["0", "a", "1"], SEPARATOR, ["1", "a", "2"], ["1", "b", "3"]]


def test_regrouping_separated_blocks_matches_direct_grouping(blocks):
    """Blocks produced at depth N regroup into the same partition as the N keys."""
    separated = aggregate(blocks, AggregateConfig(cols="Item;^a Qty", hline=1))
    assert SEPARATOR in separated.rows
    regrouped = aggregate(separated, AggregateConfig(cols="hline list(Qty)"))
    direct = aggregate(blocks, AggregateConfig(cols="Item list(Qty)"))
    assert [r[1] for r in regrouped.rows] == [r[1] for r in direct.rows]


def test_no_key_columns_yield_one_row(sales):
    result = aggregate(sales, AggregateConfig(cols="count() sum(Quantity) vmean(Level)"))
    assert result.rows == [["3", "26", "35.3333333333"]]


def test_commutative_aggregates_ignore_row_order(sales):
    shuffled = Table(rows=list(reversed(sales.rows)), header=sales.header)
    cols = AggregateConfig(cols="Day sum(Quantity) mean(Level) list(Level)")
    forward = {r[0]: r for r in aggregate(sales, cols).rows}
    backward = {r[0]: r for r in aggregate(shuffled, cols).rows}
    assert forward["Monday"][1:3] == backward["Monday"][1:3]
    assert forward["Monday"][3] == "30, 25"
    assert backward["Monday"][3] == "25, 30"


def test_numeric_context(sales):
    config = AggregateConfig(cols="Day mean(Level)",
                             numeric=NumericFormat(float_style="fix", precision=3))
    assert aggregate(sales, config).rows[0] == ["Monday", "27.500"]


def test_headerless_table():
    table = Table.from_rows([["a", "1"], ["a", "2"]], has_header=False)
    result = aggregate(table, AggregateConfig(cols="$1 sum($2)"))
    assert result.header == ["$1", "sum($2)"]
    assert result.rows == [["a", "3"]]


@pytest.mark.parametrize("cols, error", [
    ("Day sum(Nope)", FormulaCompileError),
    ("Day $9", ColumnResolutionError),
    ("Day sum(Level);^q", SpecSyntaxError),
    ("Day sum(Level", FormulaCompileError),
    ("Day sum(Level*1e999)", FormulaCompileError),
])
def test_fatal_errors_abort_the_run(sales, cols, error):
    with pytest.raises(error):
        aggregate(sales, AggregateConfig(cols=cols))


def test_invalid_config_is_rejected():
    with pytest.raises(ValidationError):
        AggregateConfig(cols="")
    with pytest.raises(ValidationError):
        AggregateConfig(cols="x", hline=-1)


def test_run_is_logged(sales, caplog):
    with caplog.at_level(logging.INFO, logger="tally.core.aggregate"):
        aggregate(sales, AggregateConfig(cols="Day sum(Quantity)"))
    assert "Aggregated 3 of 3 rows into 2 groups" in caplog.text


def test_extreme_exponent_cells_are_counted():
    table = Table.from_rows([["K", "X"], ["a", "1e99999999"], ["a", "2"]])
    result = aggregate(table, {"cols": "K count(X) max(X)"})
    assert result.rows == [["a", "2", "inf"]]


def test_filter_overflow_excludes_the_row():
    table = Table.from_rows([
        ["K", "D", "N"],
        ["a", "2024-01-01", "1"],
        ["b", "2024-01-01", "3000000"],
    ])
    result = aggregate(table, {"cols": "K count()", "cond": "D+N>D"})
    assert result.rows == [["a", "1"]]
