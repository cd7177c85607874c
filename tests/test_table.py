from tally.table import SEPARATOR, Table, is_separator


def test_from_rows_takes_first_row_as_header():
    table = Table.from_rows([["a", "b"], "hline", ["1", "2"], None, [" 3 ", 4]])
    assert table.header == ["a", "b"]
    assert table.rows == [["1", "2"], SEPARATOR, ["3", "4"]]
    assert len(table) == 2


def test_headerless_table_synthesizes_names():
    table = Table.from_rows([["1", "2", "3"]], has_header=False)
    assert table.header is None
    assert table.column_names == ["$1", "$2", "$3"]


def test_to_dict_spells_separators_as_hline():
    table = Table(rows=[["1"], SEPARATOR, ["2"]], header=["x"])
    assert table.to_dict() == {"header": ["x"], "rows": [["1"], "hline", ["2"]]}
    assert table.to_rows()[1] is SEPARATOR


def test_is_separator():
    assert is_separator(SEPARATOR)
    assert is_separator("hline")
    assert is_separator(None)
    assert not is_separator(["hline"])
