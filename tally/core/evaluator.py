"""Interpretation of compiled formulas over groups and over single rows."""

from __future__ import annotations

import logging
from fractions import Fraction
from typing import TYPE_CHECKING, Any, Sequence

from tally.errors import ArithmeticDegradation, FilterEvaluationFailure
from tally.core.expr import Call, ColumnRef, Literal, Node
from tally.core.operators import (
    BINARY_OPERATORS,
    FUNCTIONS,
    LOGICAL_OPERATORS,
    UNARY_OPERATORS,
    truthy,
)
from tally.core.values import CellFormat, Symbol, format_value, parse

if TYPE_CHECKING:
    from tally.core.grouping import Group
    from tally.core.models import NumericFormat
    from tally.core.specs import ColumnSpec

logger = logging.getLogger(__name__)


def _cell(row: Sequence[str], position: int) -> str:
    return row[position] if position < len(row) else ""


def _lift(fn, args: list[Any]) -> Any:
    """Apply a scalar function elementwise over any sequence arguments."""
    lengths = {len(a) for a in args if isinstance(a, list)}
    if not lengths:
        return fn(*args)
    if len(lengths) > 1:
        raise ArithmeticDegradation("Sequences of different lengths")
    (n,) = lengths
    return [fn(*(a[i] if isinstance(a, list) else a for a in args)) for i in range(n)]


class Interpreter:
    """Walks an expression tree.

    Subclasses decide what a column reference evaluates to. In ``strict``
    mode operator failures propagate; otherwise they degrade to a symbolic
    value so one odd cell never aborts a run.
    """

    strict = False

    def __init__(self, cell_format: CellFormat | None = None,
                 numeric: "NumericFormat | None" = None):
        self.cell_format = cell_format or CellFormat()
        self.numeric = numeric
        angle = self.cell_format.angle_mode or (numeric.angle_mode if numeric else "deg")
        self.angle_mode = angle

    def column_value(self, position: int) -> Any:
        raise NotImplementedError

    def row_count(self) -> int:
        raise NotImplementedError

    def render(self, value: Any) -> str:
        return format_value(value, None, self.numeric)

    def eval(self, node: Node) -> Any:
        if isinstance(node, Literal):
            return Symbol(node.value) if isinstance(node.value, str) else node.value
        if isinstance(node, ColumnRef):
            return self.column_value(node.position)
        return self._call(node)

    def _call(self, node: Call) -> Any:
        name = node.name
        if name in LOGICAL_OPERATORS:
            result = name == "and"
            for arg in node.args:
                if truthy(self.eval(arg)) != result:
                    return not result
            return result
        if name in UNARY_OPERATORS:
            operand = self.eval(node.args[0])
            return self._apply(UNARY_OPERATORS[name], [operand], lambda v: f"{name}({v[0]})")
        if name in BINARY_OPERATORS:
            args = [self.eval(a) for a in node.args]
            return self._apply(BINARY_OPERATORS[name], args,
                               lambda v: f"{v[0]} {name} {v[1]}")

        fn = FUNCTIONS[name]
        if fn.aggregate:
            if name == "count" and not node.args:
                return Fraction(self.row_count())
            seqs = [self._as_sequence(self.eval(a)) for a in node.args]
            try:
                return fn.impl(*seqs)
            except ArithmeticDegradation as exc:
                if self.strict:
                    raise
                logger.debug("Degrading %s to symbolic form: %s", name, exc)
                listed = ", ".join(
                    "[" + ", ".join(self.render(v) for v in seq if v is not None) + "]"
                    for seq in seqs
                )
                return Symbol(f"{name}({listed})")

        args = [self.eval(a) for a in node.args]
        impl = fn.impl
        if fn.angle:
            angle_mode = self.angle_mode
            impl = lambda x: fn.impl(x, angle_mode=angle_mode)  # noqa: E731
        return self._apply(impl, args, lambda v: f"{name}({', '.join(v)})")

    def _apply(self, fn, args: list[Any], describe) -> Any:
        def safe(*values: Any) -> Any:
            try:
                return fn(*values)
            except ArithmeticDegradation as exc:
                if self.strict:
                    raise
                logger.debug("Degrading to symbolic form: %s", exc)
                return Symbol(describe([self._operand_text(v) for v in values]))

        try:
            return _lift(safe, args)
        except ArithmeticDegradation:
            if self.strict:
                raise
            return Symbol(describe([self._operand_text(v) for v in args]))

    def _operand_text(self, value: Any) -> str:
        text = self.render(value)
        if isinstance(value, Symbol) and " " in text and not text.startswith("["):
            return f"({text})"
        return text

    @staticmethod
    def _as_sequence(value: Any) -> list[Any]:
        return value if isinstance(value, list) else [value]


class GroupEvaluator:
    """Computes output cells for one group.

    Parsed column sequences are cached per group, keyed by position and the
    parse modes of the requesting column.
    """

    def __init__(self, group: "Group", numeric: "NumericFormat | None" = None):
        self.group = group
        self.numeric = numeric
        self._sequences: dict[tuple[int, bool, bool], list[Any]] = {}

    def sequence(self, position: int, keep_empty: bool = False,
                 numbers_only: bool = False) -> list[Any]:
        key = (position, keep_empty, numbers_only)
        if key not in self._sequences:
            self._sequences[key] = [
                parse(_cell(row, position), keep_empty=keep_empty, numbers_only=numbers_only)
                for row in self.group.rows
            ]
        return self._sequences[key]

    def evaluate(self, spec: "ColumnSpec") -> str:
        """Rendered output cell of ``spec`` for this group."""
        if spec.is_key:
            return _cell(self.group.rows[0], spec.key_position)
        if spec.cell_format.literal:
            return spec.formula

        expr = spec.expr
        if (isinstance(expr, Call) and expr.name == "list" and len(expr.args) == 1
                and isinstance(expr.args[0], ColumnRef)):
            position = expr.args[0].position
            return ", ".join(_cell(row, position) for row in self.group.rows)

        value = _GroupScope(self, spec.cell_format).eval(expr)
        return format_value(value, spec.cell_format, self.numeric)


class _GroupScope(Interpreter):
    def __init__(self, evaluator: GroupEvaluator, cell_format: CellFormat):
        super().__init__(cell_format, evaluator.numeric)
        self.evaluator = evaluator

    def column_value(self, position: int) -> list[Any]:
        fmt = self.cell_format
        return self.evaluator.sequence(position, fmt.keep_empty, fmt.numbers_only)

    def row_count(self) -> int:
        return len(self.evaluator.group.rows)


class RowScope(Interpreter):
    """Evaluates a formula against one row, for row filters.

    Missing cells and type mismatches raise FilterEvaluationFailure.
    """

    strict = True

    def __init__(self, row: Sequence[str]):
        super().__init__()
        self.row = row

    def column_value(self, position: int) -> Any:
        if position >= len(self.row):
            raise FilterEvaluationFailure(f"Row has no cell at position {position}")
        return parse(self.row[position])

    def row_count(self) -> int:
        return 1
