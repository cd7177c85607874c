"""Transpose node: selected columns become rows."""

from typing import Any

from tally.core import TransposeConfig, transpose
from tally.nodes.base import BaseNode, NodeMeta, NodePort, require_table, table_output


class TransposeNode(BaseNode):
    config_model = TransposeConfig
    meta = NodeMeta(
        id="transpose",
        label="Transpose",
        category="compute",
        description="Swap rows and columns",
        inputs=[NodePort(name="in", description="Input table")],
        outputs=[NodePort(name="out", description="Transposed table")],
    )

    def execute(self, inputs: dict[str, Any], config: dict[str, Any]) -> dict[str, Any]:
        return table_output(transpose(require_table(inputs), self.parse_config(config)))
