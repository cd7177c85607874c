"""Formula compiler: formula text to a typed expression tree.

The tree has three node kinds: :class:`Literal`, :class:`ColumnRef` and
:class:`Call`. Operators are calls too (``Call("+", (a, b))``), so the
evaluator only needs one dispatch.

Formulas use a calculator-style syntax (``$2``, ``X^2``, ``a = b``, ``&&``,
``||``, ``!``). A quote-aware pre-scan maps those onto Python syntax, then the
text is parsed with :func:`ast.parse` and every node is validated and
converted; nothing is ever passed to ``eval``.
"""

from __future__ import annotations

import ast
import math
import re
from dataclasses import dataclass
from fractions import Fraction
from typing import TYPE_CHECKING, Any, Union

from tally.errors import FormulaCompileError
from tally.core.operators import FUNCTIONS, canonical_name

if TYPE_CHECKING:
    from tally.core.resolver import ColumnResolver


_DOLLAR_RE = re.compile(r"\$(\d+)")
_PLACEHOLDER_RE = re.compile(r"^__col_(\d+)__$")

_BINOPS = {
    ast.Add: "+", ast.Sub: "-", ast.Mult: "*", ast.Div: "/",
    ast.Pow: "^", ast.Mod: "%",
}
_CMPOPS = {
    ast.Eq: "==", ast.NotEq: "!=", ast.Lt: "<", ast.LtE: "<=",
    ast.Gt: ">", ast.GtE: ">=",
}
_CONSTANTS = {"pi": math.pi}

# Binding strength used when rendering a tree back to text
_PRECEDENCE = {
    "or": 1, "and": 2, "not": 3,
    "==": 4, "!=": 4, "<": 4, "<=": 4, ">": 4, ">=": 4,
    "+": 5, "-": 5, "*": 6, "/": 6, "%": 6, "neg": 7, "^": 8,
}
_ATOM = 9


@dataclass(frozen=True)
class Literal:
    value: Any
    text: str = ""

    def to_text(self) -> str:
        if self.text:
            return self.text
        if isinstance(self.value, str):
            quote = "'" if '"' in self.value else '"'
            return f"{quote}{self.value}{quote}"
        return str(self.value)

    def positions(self) -> frozenset[int]:
        return frozenset()


@dataclass(frozen=True)
class ColumnRef:
    position: int

    def to_text(self) -> str:
        return "hline" if self.position == 0 else f"${self.position}"

    def positions(self) -> frozenset[int]:
        return frozenset({self.position})


@dataclass(frozen=True)
class Call:
    name: str
    args: tuple["Node", ...] = ()

    def to_text(self) -> str:
        prec = _PRECEDENCE.get(self.name)
        if prec is None:
            return f"{self.name}({', '.join(a.to_text() for a in self.args)})"
        if self.name in ("neg", "not"):
            sign = "-" if self.name == "neg" else "!"
            return sign + _wrap(self.args[0], prec, strict=False)
        if self.name in ("and", "or"):
            joiner = " && " if self.name == "and" else " || "
            return joiner.join(_wrap(a, prec, strict=False) for a in self.args)
        left, right = self.args
        right_assoc = self.name == "^"
        return (f"{_wrap(left, prec, strict=right_assoc)} {self.name} "
                f"{_wrap(right, prec, strict=not right_assoc)}")

    def positions(self) -> frozenset[int]:
        found: frozenset[int] = frozenset()
        for arg in self.args:
            found |= arg.positions()
        return found


Node = Union[Literal, ColumnRef, Call]


def _precedence(node: Node) -> int:
    if isinstance(node, Call):
        return _PRECEDENCE.get(node.name, _ATOM)
    if isinstance(node, Literal) and node.to_text().startswith("-"):
        return _PRECEDENCE["neg"]
    return _ATOM


def _wrap(node: Node, parent: int, strict: bool) -> str:
    prec = _precedence(node)
    text = node.to_text()
    if prec < parent or (strict and prec == parent):
        return f"({text})"
    return text


# ------------------------------------------------------------------
# Pre-scan
# ------------------------------------------------------------------

def _prescan(text: str) -> str:
    """Rewrite calculator syntax into Python syntax, leaving quoted text alone."""
    out: list[str] = []
    i, n = 0, len(text)
    while i < n:
        ch = text[i]
        if ch in "'\"":
            end = text.find(ch, i + 1)
            if end < 0:
                raise FormulaCompileError(f"Unterminated quote in formula {text!r}")
            out.append(text[i:end + 1])
            i = end + 1
            continue
        if ch == "$":
            m = _DOLLAR_RE.match(text, i)
            if not m:
                raise FormulaCompileError(f"Malformed column reference in formula {text!r}")
            out.append(f" __col_{m.group(1)}__ ")
            i = m.end()
            continue
        pair = text[i:i + 2]
        if pair in ("==", "!=", "<=", ">="):
            out.append(pair)
            i += 2
        elif pair == "&&":
            out.append(" and ")
            i += 2
        elif pair == "||":
            out.append(" or ")
            i += 2
        elif ch == "!":
            out.append(" not ")
            i += 1
        elif ch == "=":
            out.append("==")
            i += 1
        elif ch == "^":
            out.append("**")
            i += 1
        else:
            out.append(ch)
            i += 1
    return "".join(out)


# ------------------------------------------------------------------
# Compiler
# ------------------------------------------------------------------

def compile_formula(text: str, resolver: "ColumnResolver") -> Node:
    """Compile formula text into a tree with every column resolved.

    Raises FormulaCompileError for malformed syntax, unknown functions and
    identifiers that are neither columns nor known constants.
    """
    source = _prescan(text).strip()
    if not source:
        raise FormulaCompileError("Empty formula")
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as exc:
        raise FormulaCompileError(f"Malformed formula {text!r}: {exc.msg}") from None
    except ValueError as exc:
        raise FormulaCompileError(f"Malformed formula {text!r}: {exc}") from None
    return _Compiler(text, source, resolver).visit(tree.body)


class _Compiler:
    def __init__(self, text: str, source: str, resolver: "ColumnResolver"):
        self.text = text
        self.source = source
        self.resolver = resolver

    def fail(self, message: str) -> FormulaCompileError:
        return FormulaCompileError(f"{message} in formula {self.text!r}")

    def visit(self, node: ast.AST) -> Node:
        if isinstance(node, ast.Constant):
            return self._constant(node)
        if isinstance(node, ast.Name):
            return self._name(node.id)
        if isinstance(node, ast.BinOp):
            op = _BINOPS.get(type(node.op))
            if op is None:
                raise self.fail(f"Unsupported operator {type(node.op).__name__}")
            return Call(op, (self.visit(node.left), self.visit(node.right)))
        if isinstance(node, ast.UnaryOp):
            return self._unary(node)
        if isinstance(node, ast.Compare):
            operands = [self.visit(node.left)] + [self.visit(c) for c in node.comparators]
            tests = []
            for i, op in enumerate(node.ops):
                name = _CMPOPS.get(type(op))
                if name is None:
                    raise self.fail(f"Unsupported comparison {type(op).__name__}")
                tests.append(Call(name, (operands[i], operands[i + 1])))
            return tests[0] if len(tests) == 1 else Call("and", tuple(tests))
        if isinstance(node, ast.BoolOp):
            name = "and" if isinstance(node.op, ast.And) else "or"
            return Call(name, tuple(self.visit(v) for v in node.values))
        if isinstance(node, ast.Call):
            return self._call(node)
        raise self.fail(f"Unsupported expression element {type(node).__name__}")

    def _constant(self, node: ast.Constant) -> Node:
        value = node.value
        if isinstance(value, str):
            position = self.resolver.try_resolve(value)
            if position is not None:
                return ColumnRef(position)
            return Literal(value)
        if isinstance(value, bool):
            return Literal(Fraction(int(value)), str(int(value)))
        if isinstance(value, float) and not math.isfinite(value):
            raise self.fail("Numeric literal out of range")
        if isinstance(value, (int, float)):
            text = ast.get_source_segment(self.source, node) or repr(value)
            return Literal(Fraction(repr(value)) if isinstance(value, float) else Fraction(value),
                           text)
        raise self.fail(f"Unsupported literal {value!r}")

    def _name(self, name: str) -> Node:
        m = _PLACEHOLDER_RE.match(name)
        if m:
            return ColumnRef(self.resolver.resolve(f"${m.group(1)}"))
        position = self.resolver.try_resolve(name)
        if position is not None:
            return ColumnRef(position)
        if name in _CONSTANTS:
            return Literal(_CONSTANTS[name], name)
        raise self.fail(f"Unknown identifier {name!r}")

    def _unary(self, node: ast.UnaryOp) -> Node:
        operand = self.visit(node.operand)
        if isinstance(node.op, ast.UAdd):
            return operand
        if isinstance(node.op, ast.Not):
            return Call("not", (operand,))
        if isinstance(node.op, ast.USub):
            if isinstance(operand, Literal) and isinstance(operand.value, Fraction):
                return Literal(-operand.value, f"-{operand.to_text()}")
            return Call("neg", (operand,))
        raise self.fail(f"Unsupported unary operator {type(node.op).__name__}")

    def _call(self, node: ast.Call) -> Node:
        if not isinstance(node.func, ast.Name) or node.keywords:
            raise self.fail("Unsupported function call")
        name = canonical_name(node.func.id)
        if name is None:
            raise self.fail(f"Unknown function {node.func.id!r}")
        fn = FUNCTIONS[name]
        if not fn.min_args <= len(node.args) <= fn.max_args:
            raise self.fail(f"Function {name!r} takes {fn.min_args}..{fn.max_args} "
                            f"arguments, got {len(node.args)}")
        if any(isinstance(a, ast.Starred) for a in node.args):
            raise self.fail("Unsupported starred argument")
        return Call(name, tuple(self.visit(a) for a in node.args))
