"""Typed cell values: parsing from text and rendering back to text.

Cells are parsed into one of:

- ``None`` for an absent (empty) cell,
- ``Fraction`` for exact numbers, ``float`` for inexact ones (and NaN),
- :class:`Date` for calendar values and org-style timestamps,
- :class:`Duration` for ``hh:mm[:ss]`` elapsed times,
- :class:`Symbol` for anything else, kept verbatim.

Rendering is driven by a per-column :class:`CellFormat` (parsed from the
format segment of a column spec) on top of the invocation-wide
:class:`~tally.core.models.NumericFormat`.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal, localcontext
from fractions import Fraction
from typing import TYPE_CHECKING, Any, Union

from tally.errors import SpecSyntaxError

if TYPE_CHECKING:
    from tally.core.models import NumericFormat


_NUMBER_RE = re.compile(r"^[-+]?(\d+\.?\d*|\.\d+)([eE][-+]?\d+)?$")
_MAX_EXACT_EXPONENT = 1000
_MAX_EXACT_DIGITS = 1000
_DATE_RE = re.compile(
    r"^(?P<open>[<\[]?)"
    r"(?P<y>\d{4})-(?P<m>\d{2})-(?P<d>\d{2})"
    r"(?:\s+[^\d\s<>\[\]]+)?"
    r"(?:[\sT]+(?P<H>\d{1,2}):(?P<M>\d{2})(?::(?P<S>\d{2}))?)?"
    r"(?P<close>[>\]]?)$"
)
_DURATION_RE = re.compile(r"^(?P<sign>-?)(?P<h>\d+):(?P<m>[0-5]\d)(?::(?P<s>[0-5]\d))?$")
_FORMAT_RE = re.compile(r"^(?:[A-Za-z]\d*)+$")
_FORMAT_FLAG_RE = re.compile(r"([A-Za-z])(\d*)")

_EPOCH = datetime(1970, 1, 1)
_CLOSING = {"<": ">", "[": "]", "": ""}


@dataclass(frozen=True)
class Symbol:
    """Text that is not a number, date or duration."""

    text: str

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True, order=True)
class Duration:
    """Elapsed time in seconds."""

    seconds: Fraction


@dataclass(frozen=True)
class Date:
    """Calendar value; ``style`` remembers the bracket it was written with."""

    moment: datetime
    style: str = ""
    has_time: bool = False

    @property
    def epoch_seconds(self) -> float:
        return (self.moment - _EPOCH).total_seconds()


@dataclass(frozen=True)
class ErrorForm:
    """A mean together with its standard error."""

    mean: Any
    error: Any


Number = Union[Fraction, float]


def is_number(value: Any) -> bool:
    return isinstance(value, (Fraction, float)) and not isinstance(value, bool)


# ------------------------------------------------------------------
# Parsing
# ------------------------------------------------------------------

def parse(text: str, keep_empty: bool = False, numbers_only: bool = False) -> Any:
    """Parse one cell.

    ``keep_empty`` turns empty cells into NaN instead of absent values;
    ``numbers_only`` replaces every non-numeric value by zero.
    """
    t = (text or "").strip()
    if not t:
        return math.nan if keep_empty else None

    value = _parse_non_empty(t)
    if numbers_only and not is_number(value):
        return Fraction(0)
    return value


def _parse_number(m: re.Match) -> Number:
    """Exact value of a numeric cell, or a float once it is too large to hold exactly."""
    mantissa, exponent = m.group(1), (m.group(2) or "")[1:].lstrip("+-").lstrip("0")
    if (len(mantissa) > _MAX_EXACT_DIGITS or len(exponent) > 4
            or (exponent and int(exponent) > _MAX_EXACT_EXPONENT)):
        return float(m.group(0))
    return Fraction(m.group(0))


def _parse_non_empty(t: str) -> Any:
    m = _NUMBER_RE.match(t)
    if m:
        return _parse_number(m)

    m = _DATE_RE.match(t)
    if m and _CLOSING[m.group("open")] == m.group("close"):
        try:
            moment = datetime(
                int(m.group("y")), int(m.group("m")), int(m.group("d")),
                int(m.group("H") or 0), int(m.group("M") or 0), int(m.group("S") or 0),
            )
        except ValueError:
            return Symbol(t)
        return Date(moment, style=m.group("open"), has_time=m.group("H") is not None)

    m = _DURATION_RE.match(t)
    if m:
        seconds = int(m.group("h")) * 3600 + int(m.group("m")) * 60 + int(m.group("s") or 0)
        return Duration(Fraction(-seconds if m.group("sign") else seconds))

    return Symbol(t)


# ------------------------------------------------------------------
# Column formats
# ------------------------------------------------------------------

@dataclass(frozen=True)
class CellFormat:
    """Per-column rendering and parsing options."""

    printf: str | None = None
    float_style: str | None = None
    digits: int | None = None
    precision: int | None = None
    duration: str | None = None
    literal: bool = False
    numbers_only: bool = False
    keep_empty: bool = False
    prefer_fraction: bool | None = None
    angle_mode: str | None = None


_STYLE_FLAGS = {"f": "fix", "s": "sci", "e": "eng"}


def parse_format(text: str | None) -> CellFormat:
    """Parse the format segment of a column spec.

    Either a printf pattern (``%.2f``) or a run of flags: ``fN``/``sN``/``eN``
    fixed, scientific and engineering notation, ``pN`` precision, ``N``
    numbers only, ``E`` keep empty cells as NaN, ``L`` literal, ``F`` prefer
    fractions, ``D``/``R`` degrees/radians, ``T``/``U``/``t`` durations.
    """
    if not text:
        return CellFormat()

    if text.startswith("%"):
        try:
            text % 1.0
        except (TypeError, ValueError):
            raise SpecSyntaxError(f"Invalid printf format {text!r}") from None
        return CellFormat(printf=text)

    if not _FORMAT_RE.match(text):
        raise SpecSyntaxError(f"Invalid format {text!r}")

    opts: dict[str, Any] = {}
    for flag, digits in _FORMAT_FLAG_RE.findall(text):
        if flag in _STYLE_FLAGS:
            opts["float_style"] = _STYLE_FLAGS[flag]
            if digits:
                opts["digits"] = int(digits)
        elif flag == "p":
            if not digits or int(digits) < 1:
                raise SpecSyntaxError(f"Precision flag needs a positive number in {text!r}")
            opts["precision"] = int(digits)
        elif digits:
            raise SpecSyntaxError(f"Flag {flag!r} takes no number in {text!r}")
        elif flag == "N":
            opts["numbers_only"] = True
        elif flag == "E":
            opts["keep_empty"] = True
        elif flag == "L":
            opts["literal"] = True
        elif flag == "F":
            opts["prefer_fraction"] = True
        elif flag == "D":
            opts["angle_mode"] = "deg"
        elif flag == "R":
            opts["angle_mode"] = "rad"
        elif flag in ("T", "U", "t"):
            opts["duration"] = flag
        else:
            raise SpecSyntaxError(f"Unknown format flag {flag!r} in {text!r}")
    return CellFormat(**opts)


# ------------------------------------------------------------------
# Rendering
# ------------------------------------------------------------------

def format_value(value: Any, fmt: CellFormat | None = None,
                 numeric: "NumericFormat | None" = None) -> str:
    """Render a value as cell text."""
    fmt = fmt or CellFormat()
    if value is None:
        return ""
    if isinstance(value, list):
        return "[" + ", ".join(format_value(v, fmt, numeric) for v in value) + "]"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, Symbol):
        return value.text
    if isinstance(value, str):
        return value
    if isinstance(value, Date):
        return _format_date(value)
    if isinstance(value, Duration):
        if fmt.duration == "t":
            return _format_number(value.seconds / 3600, fmt, numeric)
        return _format_duration(value.seconds, with_seconds=fmt.duration != "U")
    if isinstance(value, ErrorForm):
        return f"{format_value(value.mean, fmt, numeric)} +/- {format_value(value.error, fmt, numeric)}"

    if fmt.duration in ("T", "U"):
        return _format_duration(value, with_seconds=fmt.duration == "T")
    if fmt.duration == "t":
        value = value / 3600
    if fmt.printf:
        try:
            return fmt.printf % float(value)
        except (TypeError, ValueError, OverflowError):
            pass
    return _format_number(value, fmt, numeric)


def _format_number(value: Number, fmt: CellFormat, numeric: "NumericFormat | None") -> str:
    precision = fmt.precision or (numeric.precision if numeric else 12)
    style = fmt.float_style or (numeric.float_style if numeric else "float")
    prefer_fraction = fmt.prefer_fraction
    if prefer_fraction is None:
        prefer_fraction = numeric.prefer_fraction if numeric else False

    if isinstance(value, float):
        if math.isnan(value):
            return "nan"
        if math.isinf(value):
            return "inf" if value > 0 else "-inf"

    if style != "float":
        digits = fmt.digits if fmt.digits is not None else precision
        return _format_styled(_to_decimal(value), style, digits)

    if isinstance(value, Fraction) and _printable_exactly(value):
        if value.denominator == 1:
            return str(value.numerator)
        if prefer_fraction:
            return f"{value.numerator}:{value.denominator}"

    with localcontext() as ctx:
        ctx.prec = precision
        dec = +_to_decimal(value)
    return _plain_decimal(dec, precision)


# about 3000 decimal digits
_MAX_PLAIN_BITS = 10000


def _printable_exactly(value: Fraction) -> bool:
    return max(value.numerator.bit_length(), value.denominator.bit_length()) <= _MAX_PLAIN_BITS


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, Fraction):
        with localcontext() as ctx:
            ctx.prec = 60
            return Decimal(value.numerator) / Decimal(value.denominator)
    return Decimal(repr(value))


def _plain_decimal(dec: Decimal, precision: int) -> str:
    if dec.is_zero():
        return "0"
    dec = dec.normalize()
    adjusted = dec.adjusted()
    if -7 < adjusted < precision:
        return format(dec, "f")
    return format(dec, "e").replace("e+", "e")


def _format_styled(dec: Decimal, style: str, digits: int) -> str:
    if style == "fix":
        quantum = Decimal(1).scaleb(-digits)
        with localcontext() as ctx:
            ctx.prec = max(60, dec.adjusted() + digits + 2)
            return format(dec.quantize(quantum, rounding=ROUND_HALF_UP), "f")
    if dec.is_zero():
        return f"{0:.{digits}f}e0"
    if style == "sci":
        return format(dec, f".{digits}e").replace("e+", "e")
    # engineering: exponent is a multiple of three
    exponent = dec.adjusted() - dec.adjusted() % 3
    mantissa = dec.scaleb(-exponent)
    return f"{format(mantissa, f'.{digits}f')}e{exponent}"


def _format_date(value: Date) -> str:
    text = value.moment.strftime("%Y-%m-%d %a" if value.style else "%Y-%m-%d")
    if value.has_time:
        text += value.moment.strftime(" %H:%M")
    return f"{value.style}{text}{_CLOSING[value.style]}"


def _format_duration(seconds: Number, with_seconds: bool = True) -> str:
    if isinstance(seconds, float) and not math.isfinite(seconds):
        return "nan"
    total = Fraction(seconds)
    sign = "-" if total < 0 else ""
    total = abs(total)
    if not with_seconds:
        total = Fraction(math.floor(total / 60 + Fraction(1, 2)) * 60)
    whole = math.floor(total + Fraction(1, 2))
    hours, rest = divmod(whole, 3600)
    minutes, secs = divmod(rest, 60)
    if with_seconds:
        return f"{sign}{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{sign}{hours:02d}:{minutes:02d}"
