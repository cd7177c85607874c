"""CSV file source node."""

from typing import Any

from tally.config import get_settings
from tally.io import CsvTableSource
from tally.nodes.base import BaseNode, NodeMeta, NodePort, table_output


class CsvSourceNode(BaseNode):
    meta = NodeMeta(
        id="csv_source",
        label="CSV Table",
        category="input",
        description="Load a table from <data_dir>/<name>.csv",
        inputs=[],
        outputs=[NodePort(name="out", description="Loaded table")],
        config_schema={
            "type": "object",
            "properties": {
                "name": {"type": "string", "title": "Table Name"},
                "data_dir": {"type": "string", "title": "Data Directory"},
                "has_header": {"type": "boolean", "title": "First Row Is Header",
                               "default": True},
            },
            "required": ["name"],
        },
    )

    def execute(self, inputs: dict[str, Any], config: dict[str, Any]) -> dict[str, Any]:
        root = config.get("data_dir") or get_settings().data_dir
        source = CsvTableSource(root, has_header=config.get("has_header", True))
        return table_output(source.resolve(config["name"]))
