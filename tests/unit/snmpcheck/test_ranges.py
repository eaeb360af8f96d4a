#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

import math

import pytest

from snmpcheck.exceptions import RangeParseError
from snmpcheck.ranges import evaluate, parse_range, RangeSpec
from snmpcheck.state import State


@pytest.mark.parametrize(
    "text, expected",
    [
        pytest.param("90", RangeSpec(False, 0.0, 90.0), id="end only"),
        pytest.param("10:", RangeSpec(False, 10.0, math.inf), id="start only"),
        pytest.param(":90", RangeSpec(False, 0.0, 90.0), id="omitted start is zero"),
        pytest.param("10:90", RangeSpec(False, 10.0, 90.0), id="start and end"),
        pytest.param("~:90", RangeSpec(False, -math.inf, 90.0), id="negative infinity"),
        pytest.param("@10:90", RangeSpec(True, 10.0, 90.0), id="inside"),
        pytest.param("10:~", RangeSpec(False, 10.0, math.inf), id="positive infinity"),
        pytest.param("-20:-10", RangeSpec(False, -20.0, -10.0), id="negative bounds"),
        pytest.param("0.5:1e2", RangeSpec(False, 0.5, 100.0), id="fraction and exponent"),
        pytest.param(" @~:5 ", RangeSpec(True, -math.inf, 5.0), id="surrounding whitespace"),
        pytest.param("10:10", RangeSpec(False, 10.0, 10.0), id="single value"),
    ],
)
def test_parse_range(text: str, expected: RangeSpec) -> None:
    assert parse_range(text) == expected


@pytest.mark.parametrize(
    "text",
    ["", "   ", "@", ":", "90:10", "abc", "10:abc", "1:2:3", "@@10", "-5", "nan", "inf", "10 :20"],
)
def test_parse_range_invalid(text: str) -> None:
    with pytest.raises(RangeParseError):
        parse_range(text)


@pytest.mark.parametrize("text", ["90", "10:", ":90", "10:90", "~:90", "@10:90", "@~:", "0.25:"])
def test_serialization_reparses_equal(text: str) -> None:
    spec = parse_range(text)
    assert parse_range(str(spec)) == spec


def test_serialization_is_canonical() -> None:
    assert str(parse_range(":90")) == "0:90"
    assert str(parse_range("@10.5:~")) == "@10.5:"


def test_inverted_bounds_cannot_be_constructed() -> None:
    with pytest.raises(RangeParseError):
        RangeSpec(False, 5.0, 1.0)


@pytest.mark.parametrize(
    "value, alarm",
    [
        (10, False),
        (90, False),
        (50, False),
        (9.999, True),
        (90.001, True),
        (-1, True),
    ],
)
def test_compare_bounds_are_inclusive(value: float, alarm: bool) -> None:
    assert parse_range("10:90").compare(value) is alarm


@pytest.mark.parametrize(
    "value, alarm",
    [
        (10, True),
        (90, True),
        (50, True),
        (9.999, False),
        (90.001, False),
    ],
)
def test_compare_negated(value: float, alarm: bool) -> None:
    assert parse_range("@10:90").compare(value) is alarm


@pytest.mark.parametrize("value", [-100.0, 0.0, 9.5, 42.0, 89.9, 95.0, 1e9])
def test_negation_inverts_away_from_the_bounds(value: float) -> None:
    spec = parse_range("10:90")
    assert spec.negated().compare(value) is not spec.compare(value)


@pytest.mark.parametrize("value", [10.0, 90.0])
def test_negation_at_the_bounds(value: float) -> None:
    # A value on a bound is inside the range, so only the negated range alarms
    spec = parse_range("10:90")
    assert spec.compare(value) is False
    assert spec.negated().compare(value) is True


def test_negated_twice() -> None:
    spec = parse_range("@10:90")
    assert spec.negated().negated() == spec
    assert spec.negated().negate is False


def test_open_ranges() -> None:
    assert parse_range("~:90").compare(-1e12) is False
    assert parse_range("10:").compare(1e12) is False
    assert parse_range("10:").compare(9) is True


@pytest.mark.parametrize(
    "value, expected_state",
    [
        (95, State.CRIT),
        (90.5, State.CRIT),
        (90, State.WARN),
        (85, State.WARN),
        (80, State.OK),
        (50, State.OK),
    ],
)
def test_evaluate_precedence(value: float, expected_state: State) -> None:
    state, _message = evaluate("80", "90", value)
    assert state is expected_state


def test_evaluate_critical_wins_over_warning() -> None:
    # both thresholds alarm, critical is reported
    assert evaluate("~:10", "~:20", 50) == (
        State.CRIT,
        "value 50 outside of critical range ~:20",
    )


def test_evaluate_inside_range() -> None:
    assert evaluate("@0:20", "@0:10", 15) == (
        State.WARN,
        "value 15 inside of warning range @0:20",
    )


@pytest.mark.parametrize(
    "warning, critical, expected_message",
    [
        pytest.param(
            "80",
            "90:10",
            "error parsing critical pattern '90:10': lower bound 90 is above upper bound 10",
            id="critical",
        ),
        pytest.param(
            "eighty",
            "90",
            "error parsing warning pattern 'eighty': invalid bound 'eighty'",
            id="warning",
        ),
        pytest.param(
            "",
            "x",
            "error parsing critical pattern 'x': invalid bound 'x'",
            id="critical reported first",
        ),
    ],
)
def test_evaluate_parse_errors(warning: str, critical: str, expected_message: str) -> None:
    assert evaluate(warning, critical, 50) == (State.UNKNOWN, expected_message)


def test_evaluate_parse_error_takes_precedence() -> None:
    # the value would be critical, but the warning threshold is broken
    assert evaluate("80:", "90", 95)[0] is State.CRIT
    assert evaluate("80:x", "90", 95)[0] is State.UNKNOWN


@pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
def test_evaluate_non_finite_value(value: float) -> None:
    state, _message = evaluate("80", "90", value)
    assert state is State.UNKNOWN
