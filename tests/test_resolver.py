import pytest

from tally.errors import ColumnResolutionError
from tally.core.resolver import ColumnResolver
from tally.table import Table


def test_resolve_names_positions_and_block(sales):
    resolver = ColumnResolver(sales)
    assert resolver.resolve("Day") == 1
    assert resolver.resolve("'Quantity'") == 3
    assert resolver.resolve('"Level"') == 2
    assert resolver.resolve("$3") == 3
    assert resolver.resolve("hline") == 0


@pytest.mark.parametrize("name", ["$0", "$4", "Nope"])
def test_resolve_rejects_unknown(sales, name):
    with pytest.raises(ColumnResolutionError) as exc:
        ColumnResolver(sales).resolve(name)
    assert name in str(exc.value)


def test_unknown_name_lists_available_columns(sales):
    with pytest.raises(ColumnResolutionError, match="Day, Level, Quantity"):
        ColumnResolver(sales).resolve("Weekday")


def test_headerless_table_only_accepts_positions():
    resolver = ColumnResolver(Table.from_rows([["1", "2"]], has_header=False))
    assert resolver.resolve("$2") == 2
    with pytest.raises(ColumnResolutionError):
        resolver.resolve("Day")


def test_duplicate_header_names_resolve_to_first():
    resolver = ColumnResolver(Table.from_rows([["x", "x"], ["1", "2"]]))
    assert resolver.resolve("x") == 1


def test_rewrite_formula(sales):
    resolver = ColumnResolver(sales)
    assert resolver.rewrite_formula("sum(Quantity) + vmean(Level)") == (
        "sum($3) + mean($2)", frozenset({2, 3}),
    )
    assert resolver.rewrite_formula("(Level + 1) * 2")[0] == "($2 + 1) * 2"
    assert resolver.rewrite_formula("Level^2")[0] == "$2 ^ 2"
    assert resolver.rewrite_formula("Day = 'Monday'")[0] == '$1 == "Monday"'


def test_resolve_list(sales):
    assert ColumnResolver(sales).resolve_list("Quantity $1 hline") == [3, 1, 0]


def test_column_name(sales):
    resolver = ColumnResolver(sales)
    assert resolver.column_name(0) == "hline"
    assert resolver.column_name(2) == "Level"
