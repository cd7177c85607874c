"""Data grid output node."""

from typing import Any

from tally.nodes.base import BaseNode, NodeMeta, NodePort
from tally.table import HLINE, is_separator


class GridNode(BaseNode):
    meta = NodeMeta(
        id="grid",
        label="Data Grid",
        category="output",
        description="Display a table as JSON rows",
        inputs=[NodePort(name="in", description="Table to display")],
        outputs=[],
        config_schema={
            "type": "object",
            "properties": {
                "page_size": {"type": "integer", "title": "Page Size", "default": 100},
            },
        },
    )

    def execute(self, inputs: dict[str, Any], config: dict[str, Any]) -> dict[str, Any]:
        table = inputs.get("table")
        if table is None:
            return {"header": None, "rows": [], "total": 0}

        page_size = config.get("page_size", 100)
        rows = []
        shown = 0
        for row in table.rows:
            if shown >= page_size:
                break
            if is_separator(row):
                rows.append(HLINE)
                continue
            rows.append(list(row))
            shown += 1

        return {
            "header": table.header,
            "rows": rows,
            "total": len(table),
        }
