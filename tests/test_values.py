import math
from datetime import datetime
from fractions import Fraction

import pytest

from tally.errors import SpecSyntaxError
from tally.core.models import NumericFormat
from tally.core.values import (
    Date,
    Duration,
    ErrorForm,
    Symbol,
    format_value,
    parse,
    parse_format,
)


@pytest.mark.parametrize("text, expected", [
    ("12", Fraction(12)),
    ("-0.25", Fraction(-1, 4)),
    ("1.5e3", Fraction(1500)),
    (".5", Fraction(1, 2)),
    ("abc", Symbol("abc")),
    ("1:30", Duration(Fraction(5400))),
    ("10:00:15", Duration(Fraction(36015))),
])
def test_parse(text, expected):
    assert parse(text) == expected


def test_parse_empty_cells():
    assert parse("") is None
    assert parse("   ") is None
    assert math.isnan(parse("", keep_empty=True))


def test_parse_dates():
    assert parse("2024-01-15") == Date(datetime(2024, 1, 15))
    stamp = parse("<2024-01-15 Mon 10:30>")
    assert stamp == Date(datetime(2024, 1, 15, 10, 30), style="<", has_time=True)
    assert parse("[2024-01-15 Mon]").style == "["
    # mismatched brackets are plain text
    assert parse("<2024-01-15]") == Symbol("<2024-01-15]")
    assert parse("2024-02-30") == Symbol("2024-02-30")


def test_numbers_only_zeroes_everything_else():
    assert parse("abc", numbers_only=True) == 0
    assert parse("1:30", numbers_only=True) == 0
    assert parse("7", numbers_only=True) == 7
    assert parse("", numbers_only=True) is None


def test_parse_format_flags():
    fmt = parse_format("f2NE")
    assert fmt.float_style == "fix"
    assert fmt.digits == 2
    assert fmt.numbers_only and fmt.keep_empty
    assert parse_format("p4R").precision == 4
    assert parse_format("p4R").angle_mode == "rad"
    assert parse_format("U").duration == "U"
    assert parse_format("%.1f").printf == "%.1f"
    assert parse_format(None) == parse_format("")


@pytest.mark.parametrize("text", ["%q", "x", "N3", "p", "f2-"])
def test_parse_format_rejects(text):
    with pytest.raises(SpecSyntaxError):
        parse_format(text)


@pytest.mark.parametrize("value, fmt, expected", [
    (Fraction(14), None, "14"),
    (Fraction(55, 2), None, "27.5"),
    (Fraction(1, 3), None, "0.333333333333"),
    (Fraction(1, 3), "F", "1:3"),
    (Fraction(1, 3), "p3", "0.333"),
    (Fraction(55, 2), "f2", "27.50"),
    (Fraction(5, 2), "f0", "3"),
    (Fraction(1234567, 1000), "s2", "1.23e3"),
    (Fraction(1234567, 1000), "e2", "1.23e3"),
    (Fraction(55, 2), "%.3f", "27.500"),
    (Fraction(5400), "T", "01:30:00"),
    (Fraction(5400), "t", "1.5"),
    (0.1 + 0.2, None, "0.3"),
    (None, None, ""),
    (True, None, "1"),
    (Symbol("x y"), None, "x y"),
])
def test_format_value(value, fmt, expected):
    assert format_value(value, parse_format(fmt)) == expected


def test_format_durations_and_dates():
    assert format_value(Duration(Fraction(8100))) == "02:15:00"
    assert format_value(Duration(Fraction(8100)), parse_format("U")) == "02:15"
    assert format_value(Duration(Fraction(8100)), parse_format("t")) == "2.25"
    assert format_value(parse("<2024-01-15 Mon 10:30>")) == "<2024-01-15 Mon 10:30>"
    assert format_value(parse("2024-01-15")) == "2024-01-15"


def test_format_collections():
    assert format_value([Fraction(4), Fraction(9)]) == "[4, 9]"
    assert format_value(ErrorForm(Fraction(2), Fraction(1, 2))) == "2 +/- 0.5"


def test_numeric_context_supplies_defaults():
    ctx = NumericFormat(precision=3, prefer_fraction=True)
    assert format_value(Fraction(1, 3), None, ctx) == "1:3"
    assert format_value(2 / 3, None, ctx) == "0.667"
    assert format_value(Fraction(1, 3), parse_format("f2"), ctx) == "0.33"


def test_extreme_exponents_parse_as_floats():
    assert parse("1e99999999") == math.inf
    assert parse("-1e99999999") == -math.inf
    assert parse("1e-99999999") == 0.0
    assert isinstance(parse("9" * 2000), float)
    assert parse("1e300") == Fraction(10) ** 300


def test_huge_exact_integers_render_in_e_notation():
    assert format_value(Fraction(10) ** 5000) == "1e5000"
    assert format_value(Fraction(10) ** 50) == "1" + "0" * 50
