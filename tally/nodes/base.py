"""Base node definitions for tally pipeline nodes."""

from typing import Any, ClassVar, Literal

from pydantic import BaseModel, Field

from tally.table import Table


class NodePort(BaseModel):
    """Describes an input or output port on a node."""
    name: str
    description: str = ""


class NodeMeta(BaseModel):
    """Metadata describing a node type for pipeline builders."""
    id: str                                          # e.g. "aggregate"
    label: str                                       # e.g. "Aggregate"
    category: Literal["input", "compute", "output"]
    description: str = ""
    inputs: list[NodePort] = Field(default_factory=list)
    outputs: list[NodePort] = Field(default_factory=list)
    config_schema: dict[str, Any] = Field(default_factory=dict)  # JSON Schema


class BaseNode:
    """Base class for all pipeline nodes.

    Subclasses define a `meta` class attribute (NodeMeta) and override
    `execute()`. A subclass with a `config_model` gets its config validated
    by `parse_config()` and, when `meta` leaves it empty, its config schema
    generated from the model. Tables travel between nodes under "table".
    """

    meta: ClassVar[NodeMeta]
    config_model: ClassVar[type[BaseModel] | None] = None

    def __init_subclass__(cls, **kwargs: Any):
        super().__init_subclass__(**kwargs)
        meta = cls.__dict__.get("meta")
        if meta is not None and cls.config_model is not None and not meta.config_schema:
            cls.meta = meta.model_copy(
                update={"config_schema": cls.config_model.model_json_schema()}
            )

    def parse_config(self, config: dict[str, Any]) -> Any:
        if self.config_model is None:
            return config
        return self.config_model.model_validate(config)

    def execute(self, inputs: dict[str, Any], config: dict[str, Any]) -> dict[str, Any]:
        """Execute this node. Receives merged upstream dicts, returns output dict."""
        raise NotImplementedError


def require_table(inputs: dict[str, Any]) -> Table:
    table = inputs.get("table")
    if table is None:
        raise ValueError("No input table provided (missing 'table' in inputs)")
    return table


def table_output(table: Table) -> dict[str, Any]:
    """Downstream dict for a table: the table itself plus a JSON-safe summary."""
    return {
        "table": table,
        "rows": len(table),
        "columns": table.header or [f"${i}" for i in range(1, table.width + 1)],
    }
