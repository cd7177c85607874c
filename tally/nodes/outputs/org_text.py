"""Org text output node."""

from typing import Any

from tally.io import OrgTableSink
from tally.nodes.base import BaseNode, NodeMeta, NodePort, require_table


class OrgTextNode(BaseNode):
    meta = NodeMeta(
        id="org_text",
        label="Org Table Text",
        category="output",
        description="Render a table as pipe-delimited org text",
        inputs=[NodePort(name="in", description="Table to render")],
        outputs=[],
        config_schema={"type": "object", "properties": {}},
    )

    def execute(self, inputs: dict[str, Any], config: dict[str, Any]) -> dict[str, Any]:
        table = require_table(inputs)
        return {"text": OrgTableSink().render(table)}
