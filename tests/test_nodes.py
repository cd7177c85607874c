import pytest

from tally.config import update_settings
from tally.nodes.compute.aggregate import AggregateNode
from tally.nodes.compute.transpose import TransposeNode
from tally.nodes.inputs.csv_source import CsvSourceNode
from tally.nodes.inputs.table_source import TableSourceNode
from tally.nodes.outputs.grid import GridNode
from tally.nodes.outputs.org_text import OrgTextNode
from tally.table import Table


def test_table_source(sales_rows):
    out = TableSourceNode().execute({}, {"rows": sales_rows})
    assert out["rows"] == 3
    assert out["columns"] == ["Day", "Level", "Quantity"]
    assert isinstance(out["table"], Table)


def test_csv_source_uses_configured_data_dir(tmp_path):
    (tmp_path / "sales.csv").write_text("Day,Level\nMonday,30\n", encoding="utf-8")
    update_settings({"data_dir": str(tmp_path)})
    out = CsvSourceNode().execute({}, {"name": "sales"})
    assert out["rows"] == 1


def test_aggregate_node(sales):
    out = AggregateNode().execute({"table": sales}, {"cols": "Day sum(Quantity)"})
    assert out["table"].rows == [["Monday", "14"], ["Tuesday", "12"]]
    assert out["columns"] == ["Day", "sum(Quantity)"]


def test_aggregate_node_uses_configured_precision(sales):
    update_settings({"precision": 3})
    out = AggregateNode().execute({"table": sales}, {"cols": "mean(Level)"})
    assert out["table"].rows == [["35.3"]]


def test_aggregate_node_requires_a_table():
    with pytest.raises(ValueError, match="No input table"):
        AggregateNode().execute({}, {"cols": "x"})


def test_transpose_node(sales):
    out = TransposeNode().execute({"table": sales}, {"cols": "Day"})
    assert out["table"].rows == [["Day", "Monday", "Monday", "Tuesday"]]
    assert out["columns"] == ["$1", "$2", "$3", "$4"]


def test_grid_node_pages_and_marks_separators(blocks):
    out = GridNode().execute({"table": blocks}, {"page_size": 2})
    assert out == {"header": ["Item", "Qty"], "rows": [["a", "1"], "hline", ["a", "2"]], "total": 3}
    assert GridNode().execute({}, {}) == {"header": None, "rows": [], "total": 0}


def test_org_text_node(sales):
    out = OrgTextNode().execute({"table": sales}, {})
    assert out["text"].splitlines()[0] == "| Day     | Level | Quantity |"
