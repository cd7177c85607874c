"""Aggregate node: group rows and compute one row per group."""

from typing import Any

from tally.config import get_settings
from tally.core import AggregateConfig, aggregate
from tally.nodes.base import BaseNode, NodeMeta, NodePort, require_table, table_output


class AggregateNode(BaseNode):
    config_model = AggregateConfig
    meta = NodeMeta(
        id="aggregate",
        label="Aggregate",
        category="compute",
        description="Group rows by key columns and compute aggregate formulas",
        inputs=[NodePort(name="in", description="Input table")],
        outputs=[NodePort(name="out", description="Aggregated table")],
    )

    def execute(self, inputs: dict[str, Any], config: dict[str, Any]) -> dict[str, Any]:
        table = require_table(inputs)
        values = dict(config)
        if not values.get("numeric"):
            values["numeric"] = {"precision": get_settings().precision}
        return table_output(aggregate(table, self.parse_config(values)))
