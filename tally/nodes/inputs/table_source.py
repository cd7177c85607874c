"""Inline table source node."""

from typing import Any

from tally.nodes.base import BaseNode, NodeMeta, NodePort, table_output
from tally.table import Table


class TableSourceNode(BaseNode):
    meta = NodeMeta(
        id="table_source",
        label="Table",
        category="input",
        description="Table given inline as rows of cells",
        inputs=[],
        outputs=[NodePort(name="out", description="Source table")],
        config_schema={
            "type": "object",
            "properties": {
                "rows": {
                    "type": "array",
                    "title": "Rows",
                    "items": {
                        "oneOf": [
                            {"type": "array", "items": {"type": "string"}},
                            {"type": "string", "enum": ["hline"]},
                        ],
                    },
                },
                "has_header": {"type": "boolean", "title": "First Row Is Header",
                               "default": True},
            },
            "required": ["rows"],
        },
    )

    def execute(self, inputs: dict[str, Any], config: dict[str, Any]) -> dict[str, Any]:
        table = Table.from_rows(config["rows"], has_header=config.get("has_header", True))
        return table_output(table)
