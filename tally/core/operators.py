"""Arithmetic on typed values and the catalog of formula functions.

Scalar operators combine two values of compatible kinds (numbers, dates,
durations). Anything they cannot combine raises
:class:`~tally.errors.ArithmeticDegradation`; the evaluator turns that into a
symbolic rendering instead of failing the run.

Aggregate functions receive whole sequences, one per argument, with absent
cells still in place as ``None`` so two sequences stay aligned row by row.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, localcontext
from fractions import Fraction
from typing import Any, Callable

from tally.errors import ArithmeticDegradation
from tally.core.values import Date, Duration, ErrorForm, Symbol, format_value, is_number


def _degrade(op: str, *args: Any) -> ArithmeticDegradation:
    kinds = ", ".join(type(a).__name__ for a in args)
    return ArithmeticDegradation(f"Cannot apply {op!r} to {kinds}")


# ------------------------------------------------------------------
# Scalar operators
# ------------------------------------------------------------------

def add(a: Any, b: Any) -> Any:
    if a is None or b is None:
        return None
    if is_number(a) and is_number(b):
        return a + b
    if isinstance(a, Duration) and isinstance(b, Duration):
        return Duration(a.seconds + b.seconds)
    if isinstance(a, Date) and is_number(b):
        return _shift("+", a, days=b)
    if is_number(a) and isinstance(b, Date):
        return _shift("+", b, days=a)
    if isinstance(a, Date) and isinstance(b, Duration):
        return _shift("+", a, seconds=b.seconds)
    raise _degrade("+", a, b)


def sub(a: Any, b: Any) -> Any:
    if a is None or b is None:
        return None
    if is_number(a) and is_number(b):
        return a - b
    if isinstance(a, Duration) and isinstance(b, Duration):
        return Duration(a.seconds - b.seconds)
    if isinstance(a, Date) and isinstance(b, Date):
        delta = a.moment - b.moment
        return Fraction(delta.days) + Fraction(delta.seconds, 86400)
    if isinstance(a, Date) and is_number(b):
        return _shift("-", a, days=-b)
    if isinstance(a, Date) and isinstance(b, Duration):
        return _shift("-", a, seconds=-b.seconds)
    raise _degrade("-", a, b)


def mul(a: Any, b: Any) -> Any:
    if a is None or b is None:
        return None
    if is_number(a) and is_number(b):
        return a * b
    if isinstance(a, Duration) and is_number(b):
        return Duration(_exact(a.seconds * b))
    if is_number(a) and isinstance(b, Duration):
        return Duration(_exact(a * b.seconds))
    raise _degrade("*", a, b)


def div(a: Any, b: Any) -> Any:
    if a is None or b is None:
        return None
    if is_number(b) and b == 0:
        raise _degrade("/", a, b)
    if is_number(a) and is_number(b):
        return a / b
    if isinstance(a, Duration) and is_number(b):
        return Duration(_exact(a.seconds / b))
    if isinstance(a, Duration) and isinstance(b, Duration) and b.seconds:
        return a.seconds / b.seconds
    raise _degrade("/", a, b)


_MAX_EXACT_POWER = 4096


def power(a: Any, b: Any) -> Any:
    if a is None or b is None:
        return None
    if not (is_number(a) and is_number(b)):
        raise _degrade("^", a, b)
    try:
        if (isinstance(a, Fraction) and isinstance(b, Fraction) and b.denominator == 1
                and abs(b.numerator) <= _MAX_EXACT_POWER):
            return a ** b.numerator
        result = math.pow(float(a), float(b))
    except (ZeroDivisionError, ValueError, OverflowError):
        raise _degrade("^", a, b) from None
    return result


def mod(a: Any, b: Any) -> Any:
    if a is None or b is None:
        return None
    if is_number(a) and is_number(b) and b != 0:
        return a % b
    raise _degrade("%", a, b)


def neg(a: Any) -> Any:
    if a is None:
        return None
    if is_number(a):
        return -a
    if isinstance(a, Duration):
        return Duration(-a.seconds)
    raise _degrade("neg", a)


def _shift(op: str, date: Date, days: Any = 0, seconds: Any = 0) -> Date:
    """Move ``date``; results outside the calendar range degrade."""
    try:
        delta = timedelta(days=float(days), seconds=float(seconds))
        return _moved(date, delta)
    except (OverflowError, ValueError):
        raise _degrade(op, date, days or seconds) from None


def _moved(date: Date, delta: timedelta) -> Date:
    return Date(date.moment + delta, style=date.style,
                has_time=date.has_time or bool(delta.seconds))


def _exact(value: Any) -> Fraction:
    return value if isinstance(value, Fraction) else Fraction(value)


# ------------------------------------------------------------------
# Comparisons
# ------------------------------------------------------------------

def _ordering_key(value: Any) -> tuple[str, Any]:
    if is_number(value):
        return "number", value
    if isinstance(value, Duration):
        return "duration", value.seconds
    if isinstance(value, Date):
        return "date", value.moment
    if isinstance(value, Symbol):
        return "text", value.text
    raise ArithmeticDegradation(f"Value {value!r} cannot be ordered")


def equal(a: Any, b: Any) -> bool:
    a = Symbol("") if a is None else a
    b = Symbol("") if b is None else b
    kind_a, key_a = _ordering_key(a)
    kind_b, key_b = _ordering_key(b)
    return kind_a == kind_b and key_a == key_b


def _ordered(op: str, test: Callable[[Any, Any], bool]) -> Callable[[Any, Any], bool]:
    def compare(a: Any, b: Any) -> bool:
        if a is None or b is None:
            raise _degrade(op, a, b)
        kind_a, key_a = _ordering_key(a)
        kind_b, key_b = _ordering_key(b)
        if kind_a != kind_b:
            raise _degrade(op, a, b)
        return test(key_a, key_b)
    return compare


def truthy(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if is_number(value):
        return value != 0 and not (isinstance(value, float) and math.isnan(value))
    if isinstance(value, Symbol):
        return bool(value.text)
    if isinstance(value, list):
        return bool(value) and all(truthy(v) for v in value)
    return True


BINARY_OPERATORS: dict[str, Callable[[Any, Any], Any]] = {
    "+": add,
    "-": sub,
    "*": mul,
    "/": div,
    "^": power,
    "%": mod,
    "==": equal,
    "!=": lambda a, b: not equal(a, b),
    "<": _ordered("<", lambda a, b: a < b),
    "<=": _ordered("<=", lambda a, b: a <= b),
    ">": _ordered(">", lambda a, b: a > b),
    ">=": _ordered(">=", lambda a, b: a >= b),
}

UNARY_OPERATORS: dict[str, Callable[[Any], Any]] = {
    "neg": neg,
    "not": lambda a: not truthy(a),
}

LOGICAL_OPERATORS = {"and", "or"}


# ------------------------------------------------------------------
# Reductions
# ------------------------------------------------------------------

def _present(values: list[Any]) -> list[Any]:
    return [v for v in values if v is not None]


def _numbers(values: list[Any], name: str) -> list[Any]:
    present = _present(values)
    for v in present:
        if not is_number(v):
            raise _degrade(name, v)
    return present


def _fold(op: Callable[[Any, Any], Any], values: list[Any], start: Any) -> Any:
    if not values:
        return start
    total = values[0]
    for v in values[1:]:
        total = op(total, v)
    return total


def _float_sqrt(x: Fraction) -> float:
    try:
        return math.sqrt(x)
    except OverflowError:
        pass
    # too large for a float before the root is taken
    with localcontext() as ctx:
        ctx.prec = 40
        root = float((Decimal(x.numerator) / Decimal(x.denominator)).sqrt())
    if not math.isfinite(root):
        raise _degrade("sqrt", x)
    return root


def sqrt(x: Any) -> Any:
    if isinstance(x, Fraction):
        if x < 0:
            raise _degrade("sqrt", x)
        num, den = math.isqrt(x.numerator), math.isqrt(x.denominator)
        if num * num == x.numerator and den * den == x.denominator:
            return Fraction(num, den)
        return _float_sqrt(x)
    if isinstance(x, float) and x >= 0:
        return math.sqrt(x)
    raise _degrade("sqrt", x)


def agg_count(values: list[Any]) -> Fraction:
    return Fraction(len(_present(values)))


def agg_list(values: list[Any]) -> Symbol:
    return Symbol(", ".join(format_value(v) for v in _present(values)))


def agg_sum(values: list[Any]) -> Any:
    return _fold(add, _present(values), Fraction(0))


def agg_prod(values: list[Any]) -> Any:
    return _fold(mul, _present(values), Fraction(1))


def agg_mean(values: list[Any]) -> Any:
    present = _present(values)
    if not present:
        return None
    if all(isinstance(v, Date) for v in present):
        try:
            offset = sum((v.moment - present[0].moment for v in present), timedelta()) / len(present)
            return _moved(present[0], offset)
        except OverflowError:
            raise _degrade("mean", *present) from None
    return div(agg_sum(present), Fraction(len(present)))


def agg_hmean(values: list[Any]) -> Any:
    present = _numbers(values, "hmean")
    if not present:
        return None
    if any(v == 0 for v in present):
        raise _degrade("hmean", Fraction(0))
    return Fraction(len(present)) / sum(1 / v for v in present)


def agg_gmean(values: list[Any]) -> Any:
    present = _numbers(values, "gmean")
    if not present:
        return None
    product = agg_prod(present)
    if product < 0:
        raise _degrade("gmean", product)
    return power(product, Fraction(1, len(present)))


def agg_median(values: list[Any]) -> Any:
    present = _present(values)
    if not present:
        return None
    keys = [_ordering_key(v) for v in present]
    if len({kind for kind, _ in keys}) != 1 or keys[0][0] == "text":
        raise _degrade("median", *present)
    ordered = [v for _, v in sorted(zip([k for _, k in keys], present), key=lambda p: p[0])]
    mid = len(ordered) // 2
    if len(ordered) % 2:
        return ordered[mid]
    return agg_mean([ordered[mid - 1], ordered[mid]])


def _extreme(values: list[Any], name: str, pick: Callable) -> Any:
    present = _present(values)
    if not present:
        return None
    keys = [_ordering_key(v) for v in present]
    if len({kind for kind, _ in keys}) != 1 or keys[0][0] == "text":
        raise _degrade(name, *present)
    index = pick(range(len(present)), key=lambda i: keys[i][1])
    return present[index]


def agg_max(values: list[Any]) -> Any:
    return _extreme(values, "max", max)


def agg_min(values: list[Any]) -> Any:
    return _extreme(values, "min", min)


def agg_span(values: list[Any]) -> Any:
    if not _present(values):
        return None
    return sub(agg_max(values), agg_min(values))


def _variance(values: list[Any], name: str, sample: bool) -> Any:
    present = _numbers(values, name)
    n = len(present)
    if n == 0:
        return None
    if sample and n == 1:
        return Fraction(0)
    mean = sum(present) / n
    squares = sum((v - mean) ** 2 for v in present)
    return squares / (n - 1 if sample else n)


def agg_var(values: list[Any]) -> Any:
    return _variance(values, "var", sample=True)


def agg_pvar(values: list[Any]) -> Any:
    return _variance(values, "pvar", sample=False)


def agg_sdev(values: list[Any]) -> Any:
    var = agg_var(values)
    return None if var is None else sqrt(var)


def agg_psdev(values: list[Any]) -> Any:
    var = agg_pvar(values)
    return None if var is None else sqrt(var)


def agg_meane(values: list[Any]) -> Any:
    present = _numbers(values, "meane")
    if not present:
        return None
    mean = agg_mean(present)
    if len(present) < 2:
        return ErrorForm(mean, Fraction(0))
    return ErrorForm(mean, div(agg_sdev(present), sqrt(Fraction(len(present)))))


def _pairs(xs: list[Any], ys: list[Any], name: str) -> list[tuple[Any, Any]]:
    if len(xs) != len(ys):
        raise ArithmeticDegradation(f"{name} needs sequences of equal length")
    pairs = [(x, y) for x, y in zip(xs, ys) if x is not None and y is not None]
    for x, y in pairs:
        if not (is_number(x) and is_number(y)):
            raise _degrade(name, x, y)
    return pairs


def _covariance(xs: list[Any], ys: list[Any], name: str, sample: bool) -> Any:
    pairs = _pairs(xs, ys, name)
    n = len(pairs)
    if n == 0:
        return None
    if sample and n == 1:
        return Fraction(0)
    mx = sum(x for x, _ in pairs) / n
    my = sum(y for _, y in pairs) / n
    total = sum((x - mx) * (y - my) for x, y in pairs)
    return total / (n - 1 if sample else n)


def agg_cov(xs: list[Any], ys: list[Any]) -> Any:
    return _covariance(xs, ys, "cov", sample=True)


def agg_pcov(xs: list[Any], ys: list[Any]) -> Any:
    return _covariance(xs, ys, "pcov", sample=False)


def agg_corr(xs: list[Any], ys: list[Any]) -> Any:
    pairs = _pairs(xs, ys, "corr")
    if len(pairs) < 2:
        return None
    cov = _covariance(xs, ys, "corr", sample=False)
    vx = _variance([x for x, _ in pairs], "corr", sample=False)
    vy = _variance([y for _, y in pairs], "corr", sample=False)
    if vx == 0 or vy == 0:
        raise ArithmeticDegradation("corr of a constant sequence")
    return div(cov, mul(sqrt(vx), sqrt(vy)))


# ------------------------------------------------------------------
# Elementwise functions
# ------------------------------------------------------------------

def _real(name: str, fn: Callable[[float], float], domain: Callable[[Any], bool] = lambda x: True):
    def apply(x: Any) -> Any:
        if x is None:
            return None
        if not is_number(x) or not domain(x):
            raise _degrade(name, x)
        try:
            return fn(float(x))
        except (ValueError, OverflowError):
            raise _degrade(name, x) from None
    return apply


def _trig(name: str, fn: Callable[[float], float]):
    def apply(x: Any, angle_mode: str = "deg") -> Any:
        if x is None:
            return None
        if not is_number(x):
            raise _degrade(name, x)
        try:
            radians = math.radians(float(x)) if angle_mode == "deg" else float(x)
            return fn(radians)
        except (ValueError, OverflowError):
            raise _degrade(name, x) from None
    return apply


def fn_abs(x: Any) -> Any:
    if x is None:
        return None
    if is_number(x):
        return abs(x)
    if isinstance(x, Duration):
        return Duration(abs(x.seconds))
    raise _degrade("abs", x)


def fn_round(x: Any, digits: Any = Fraction(0)) -> Any:
    if x is None or digits is None:
        return None
    if not (is_number(x) and is_number(digits)) or int(digits) != digits:
        raise _degrade("round", x, digits)
    if isinstance(x, float) and not math.isfinite(x):
        return x
    if abs(digits) > _MAX_EXACT_POWER:
        raise _degrade("round", x, digits)
    scale = Fraction(10) ** int(digits)
    scaled = abs(Fraction(x)) * scale
    rounded = Fraction(math.floor(scaled + Fraction(1, 2))) / scale
    return -rounded if x < 0 else rounded


def fn_sqrt(x: Any) -> Any:
    return None if x is None else sqrt(x)


@dataclass(frozen=True)
class Function:
    """Catalog entry for a formula function."""

    name: str
    min_args: int
    max_args: int
    impl: Callable[..., Any]
    aggregate: bool = False
    angle: bool = False


FUNCTIONS: dict[str, Function] = {f.name: f for f in [
    Function("count", 0, 1, agg_count, aggregate=True),
    Function("list", 1, 1, agg_list, aggregate=True),
    Function("sum", 1, 1, agg_sum, aggregate=True),
    Function("prod", 1, 1, agg_prod, aggregate=True),
    Function("mean", 1, 1, agg_mean, aggregate=True),
    Function("meane", 1, 1, agg_meane, aggregate=True),
    Function("hmean", 1, 1, agg_hmean, aggregate=True),
    Function("gmean", 1, 1, agg_gmean, aggregate=True),
    Function("median", 1, 1, agg_median, aggregate=True),
    Function("max", 1, 1, agg_max, aggregate=True),
    Function("min", 1, 1, agg_min, aggregate=True),
    Function("span", 1, 1, agg_span, aggregate=True),
    Function("var", 1, 1, agg_var, aggregate=True),
    Function("pvar", 1, 1, agg_pvar, aggregate=True),
    Function("sdev", 1, 1, agg_sdev, aggregate=True),
    Function("psdev", 1, 1, agg_psdev, aggregate=True),
    Function("cov", 2, 2, agg_cov, aggregate=True),
    Function("pcov", 2, 2, agg_pcov, aggregate=True),
    Function("corr", 2, 2, agg_corr, aggregate=True),
    Function("abs", 1, 1, fn_abs),
    Function("sqrt", 1, 1, fn_sqrt),
    Function("round", 1, 2, fn_round),
    Function("exp", 1, 1, _real("exp", math.exp)),
    Function("ln", 1, 1, _real("ln", math.log, lambda x: x > 0)),
    Function("log10", 1, 1, _real("log10", math.log10, lambda x: x > 0)),
    Function("sin", 1, 1, _trig("sin", math.sin), angle=True),
    Function("cos", 1, 1, _trig("cos", math.cos), angle=True),
    Function("tan", 1, 1, _trig("tan", math.tan), angle=True),
]}

ALIASES = {
    "stdev": "sdev",
    "pstdev": "psdev",
    "product": "prod",
}


def canonical_name(name: str) -> str | None:
    """Canonical spelling of a function name, or None when unknown.

    Aggregates also answer to the ``v`` prefix: ``vsum`` is ``sum``.
    """
    name = ALIASES.get(name, name)
    if name in FUNCTIONS:
        return name
    if name.startswith("v"):
        rest = ALIASES.get(name[1:], name[1:])
        if rest in FUNCTIONS and FUNCTIONS[rest].aggregate:
            return rest
    return None
