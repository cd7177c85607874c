"""Shared test fixtures for tally."""

import pytest

from tally.config import reset_settings
from tally.engine.registry import NodeRegistry
from tally.table import Table


SALES_ROWS = [
    ["Day", "Level", "Quantity"],
    "hline",
    ["Monday", "30", "11"],
    ["Monday", "25", "3"],
    ["Tuesday", "51", "12"],
]


@pytest.fixture
def sales_rows():
    return [list(r) if isinstance(r, list) else r for r in SALES_ROWS]


@pytest.fixture
def sales():
    """The three-row Day/Level/Quantity table used throughout the docs."""
    return Table.from_rows(SALES_ROWS)


@pytest.fixture
def blocks():
    """Item/Qty table split into two blocks by a separator."""
    return Table.from_rows([
        ["Item", "Qty"],
        ["a", "1"],
        "hline",
        ["a", "2"],
        ["b", "3"],
    ])


@pytest.fixture
def registry():
    reg = NodeRegistry()
    reg.discover()
    return reg


@pytest.fixture(autouse=True)
def _clean_settings():
    yield
    reset_settings()
