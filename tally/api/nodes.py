"""Node types API."""

from fastapi import APIRouter, HTTPException

from tally.engine.registry import NodeRegistry

router = APIRouter(prefix="/api/nodes", tags=["nodes"])

_registry: NodeRegistry | None = None


def get_registry() -> NodeRegistry:
    """Process-wide registry, discovered on first use."""
    global _registry
    if _registry is None:
        _registry = NodeRegistry()
        _registry.discover()
    return _registry


@router.get("")
def list_node_types(category: str | None = None):
    """Metadata of every node type, optionally limited to one category."""
    metas = get_registry().list_meta()
    if category is not None:
        metas = [m for m in metas if m["category"] == category]
    return metas


@router.get("/{type_id}")
def get_node_type(type_id: str):
    try:
        node_cls = get_registry().get(type_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown node type: {type_id}")
    return node_cls.meta.model_dump()
