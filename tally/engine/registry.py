"""Node type registry with autodiscovery."""

import importlib
import logging
import pkgutil
from typing import Any

from tally.nodes.base import BaseNode

logger = logging.getLogger(__name__)

NODE_PACKAGES = ("tally.nodes.inputs", "tally.nodes.compute", "tally.nodes.outputs")


class NodeRegistry:
    """Indexes node types by their meta id."""

    def __init__(self):
        self.node_types: dict[str, type[BaseNode]] = {}

    def register(self, node_cls: type[BaseNode]) -> type[BaseNode]:
        node_id = node_cls.meta.id
        existing = self.node_types.get(node_id)
        if existing is not None and existing is not node_cls:
            raise ValueError(
                f"Node type {node_id!r} defined by both "
                f"{existing.__module__}.{existing.__name__} and "
                f"{node_cls.__module__}.{node_cls.__name__}"
            )
        self.node_types[node_id] = node_cls
        return node_cls

    def discover(self, packages: tuple[str, ...] = NODE_PACKAGES):
        """Register every BaseNode subclass found in the modules of ``packages``."""
        for pkg_name in packages:
            pkg = importlib.import_module(pkg_name)
            for module_info in pkgutil.iter_modules(pkg.__path__):
                mod = importlib.import_module(f"{pkg_name}.{module_info.name}")
                for attr in vars(mod).values():
                    if (isinstance(attr, type)
                            and issubclass(attr, BaseNode)
                            and attr is not BaseNode
                            and attr.__module__ == mod.__name__
                            and "meta" in attr.__dict__):
                        self.register(attr)
        logger.debug("Discovered node types: %s", ", ".join(sorted(self.node_types)))

    def get(self, node_type_id: str) -> type[BaseNode]:
        """Get a node class by type ID. Raises KeyError if not found."""
        try:
            return self.node_types[node_type_id]
        except KeyError:
            raise KeyError(f"Unknown node type: {node_type_id}") from None

    def list_meta(self) -> list[dict[str, Any]]:
        """Metadata of all registered nodes, inputs first and outputs last."""
        rank = {"input": 0, "compute": 1, "output": 2}
        classes = sorted(self.node_types.values(),
                         key=lambda cls: (rank[cls.meta.category], cls.meta.id))
        return [cls.meta.model_dump() for cls in classes]
