from __future__ import annotations


class TallyError(ValueError):
    """Base error class for table aggregation."""


class SpecSyntaxError(TallyError):
    """Raised when a column specification string is malformed."""


class ColumnResolutionError(TallyError):
    """Raised when a column name or position does not exist in the table."""


class FormulaCompileError(TallyError):
    """Raised when a formula is malformed or references an unknown identifier."""


class FilterEvaluationFailure(TallyError):
    """Raised while evaluating a row filter; the row is discarded, never fatal."""


class ArithmeticDegradation(TallyError):
    """Raised by an operator that cannot combine its operands numerically.

    The evaluator catches it and falls back to a symbolic rendering.
    """


class TableNotFoundError(TallyError):
    """Raised when a table source has no table of the requested name."""


class PipelineError(TallyError):
    """Raised when a pipeline graph is malformed (cycle, dangling edge)."""
