"""Aggregation and transposition engines."""

from tally.core.aggregate import aggregate
from tally.core.models import AggregateConfig, NumericFormat, TransposeConfig
from tally.core.transpose import transpose

__all__ = ["aggregate", "transpose", "AggregateConfig", "NumericFormat", "TransposeConfig"]
