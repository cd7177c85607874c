"""Column specification parser.

A column list is a whitespace-separated sequence of specs, each of the form::

    formula[;format][;^sort][;<invisible>][;'name']

for example ``Day mean(Level);f1;^N 'sum(X * X)';'squares'``. Quoted
substrings (single or double quotes) protect ``;`` and whitespace, and a
double quote inside single quotes is literal (and vice versa).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tally.errors import SpecSyntaxError
from tally.core.expr import ColumnRef, Literal, Node, compile_formula
from tally.core.values import CellFormat, parse_format

if TYPE_CHECKING:
    from tally.core.resolver import ColumnResolver


_SORT_RE = re.compile(r"^\^([aAnNtT])(\d*)$")


@dataclass(frozen=True)
class SortSpec:
    kind: str               # "a" alphabetic, "n" numeric, "t" time
    descending: bool = False
    strength: int | None = None


@dataclass(frozen=True)
class RawColumnSpec:
    """One column spec split into its segments, not yet resolved."""

    text: str
    formula: str
    format: str | None = None
    sort: SortSpec | None = None
    invisible: bool = False
    name: str | None = None


@dataclass(frozen=True)
class ColumnSpec:
    """A column spec resolved against a table, ready to evaluate."""

    formula: str
    format: str | None
    sort: SortSpec | None
    invisible: bool
    name: str | None
    positional_formula: str
    referenced_positions: frozenset[int]
    expr: Node
    cell_format: CellFormat

    @property
    def is_key(self) -> bool:
        return isinstance(self.expr, ColumnRef)

    @property
    def key_position(self) -> int | None:
        return self.expr.position if isinstance(self.expr, ColumnRef) else None

    @property
    def title(self) -> str:
        return self.name if self.name is not None else self.formula


def _split(text: str, separators: str) -> list[str]:
    """Split at unquoted, unparenthesised separator characters."""
    parts: list[str] = []
    buf: list[str] = []
    quote = None
    depth = 0
    for ch in text:
        if quote:
            buf.append(ch)
            if ch == quote:
                quote = None
            continue
        if ch in "'\"":
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")" and depth:
            depth -= 1
        elif depth == 0 and ch in separators:
            parts.append("".join(buf))
            buf = []
            continue
        buf.append(ch)
    if quote:
        raise SpecSyntaxError(f"Unmatched {quote} in column spec {text!r}")
    parts.append("".join(buf))
    return parts


def split_column_specs(text: str) -> list[str]:
    """Split a column list into individual spec strings."""
    return [part for part in _split(text or "", " \t\r\n") if part]


def parse_column_spec(text: str) -> RawColumnSpec:
    segments = [s.strip() for s in _split(text.strip(), ";")]
    formula = segments[0]
    if not formula:
        raise SpecSyntaxError(f"Empty formula in column spec {text!r}")

    fmt = sort = name = None
    invisible = False
    for seg in segments[1:]:
        if not seg:
            continue
        lead = seg[0]
        if lead == "^":
            m = _SORT_RE.match(seg)
            if not m or sort is not None:
                raise SpecSyntaxError(f"Invalid sort directive {seg!r} in column spec {text!r}")
            kind = m.group(1)
            sort = SortSpec(kind=kind.lower(), descending=kind.isupper(),
                            strength=int(m.group(2)) if m.group(2) else None)
        elif lead == "<":
            if not seg.endswith(">"):
                raise SpecSyntaxError(f"Unclosed <...> in column spec {text!r}")
            invisible = True
        elif lead in "'\"":
            if len(seg) < 2 or seg[-1] != lead or name is not None:
                raise SpecSyntaxError(f"Invalid column name {seg!r} in column spec {text!r}")
            name = seg[1:-1]
        elif lead == "%" or lead.isalnum():
            if fmt is not None:
                raise SpecSyntaxError(f"More than one format in column spec {text!r}")
            fmt = seg
        else:
            raise SpecSyntaxError(f"Unknown directive {seg!r} in column spec {text!r}")

    return RawColumnSpec(text=text, formula=formula, format=fmt, sort=sort,
                         invisible=invisible, name=name)


def _quoted_body(text: str) -> str | None:
    if len(text) >= 2 and text[0] in "'\"" and text.find(text[0], 1) == len(text) - 1:
        return text[1:-1]
    return None


def build_column_spec(raw: RawColumnSpec, resolver: "ColumnResolver") -> ColumnSpec:
    cell_format = parse_format(raw.format)
    formula = raw.formula
    body = _quoted_body(formula)
    expr: Node
    if cell_format.literal:
        expr = Literal(formula, formula)
    elif body is not None:
        # a quoted formula is either a column name or a protected expression
        position = resolver.try_resolve(body)
        expr = ColumnRef(position) if position is not None else compile_formula(body, resolver)
        formula = body
    else:
        expr = compile_formula(formula, resolver)
    return ColumnSpec(
        formula=formula,
        format=raw.format,
        sort=raw.sort,
        invisible=raw.invisible,
        name=raw.name,
        positional_formula=expr.to_text(),
        referenced_positions=expr.positions(),
        expr=expr,
        cell_format=cell_format,
    )


def build_column_specs(text: str, resolver: "ColumnResolver") -> list[ColumnSpec]:
    """Parse and resolve a whole column list."""
    texts = split_column_specs(text)
    if not texts:
        raise SpecSyntaxError("No column specifications given")
    return [build_column_spec(parse_column_spec(t), resolver) for t in texts]
