import pytest

from tally.errors import TableNotFoundError
from tally.io import CsvTableSource, MemoryTableSource, OrgTableSink, load_csv
from tally.table import SEPARATOR, Table


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return path


def test_load_csv_turns_blank_lines_into_separators(tmp_path):
    path = _write(tmp_path / "sales.csv", "Day,Level\nMonday,30\n\nTuesday,51\n")
    table = load_csv(path)
    assert table.header == ["Day", "Level"]
    assert table.rows == [["Monday", "30"], SEPARATOR, ["Tuesday", "51"]]


def test_csv_source_resolves_by_name(tmp_path):
    _write(tmp_path / "sales.csv", "Day,Level\nMonday,30\n")
    source = CsvTableSource(tmp_path)
    assert source.names() == ["sales"]
    assert len(source.resolve("sales")) == 1


def test_csv_source_headerless(tmp_path):
    _write(tmp_path / "raw.csv", "1,2\n3,4\n")
    table = CsvTableSource(tmp_path, has_header=False).resolve("raw")
    assert table.header is None
    assert len(table) == 2


@pytest.mark.parametrize("name", ["missing", "../outside", "sub/../../x"])
def test_csv_source_rejects_unknown_and_escaping_names(tmp_path, name):
    (tmp_path.parent / "outside.csv").write_text("a\n1\n", encoding="utf-8")
    with pytest.raises(TableNotFoundError):
        CsvTableSource(tmp_path).resolve(name)


def test_memory_source():
    table = Table.from_rows([["x"], ["1"]])
    source = MemoryTableSource({"t": table})
    assert source.resolve("t") is table
    with pytest.raises(TableNotFoundError, match="Available tables: t"):
        source.resolve("u")


def test_org_sink_pads_columns_and_draws_rules():
    table = Table(rows=[["1", "2"], SEPARATOR, ["10"]], header=["a", "bb"])
    assert OrgTableSink().render(table) == "\n".join([
        "| a  | bb |",
        "|----+----|",
        "| 1  | 2  |",
        "|----+----|",
        "| 10 |    |",
    ])


def test_org_sink_empty_table():
    assert OrgTableSink().render(Table()) == ""
