#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""Threshold ranges in the syntax of the monitoring plug-in guidelines

    [@]start:end

* ``10``      alarm if the value is < 0 or > 10
* ``10:``     alarm if the value is < 10
* ``~:10``    alarm if the value is > 10
* ``10:20``   alarm if the value is < 10 or > 20
* ``@10:20``  alarm if the value is >= 10 and <= 20

An omitted start means 0, an omitted end means infinity and ``~`` stands for
the infinity of the side it is written on.

>>> spec = parse_range("@10:20")
>>> spec.compare(15), spec.compare(25)
(True, False)
>>> str(parse_range("~:90"))
'~:90'
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, replace
from typing import Final

from .exceptions import RangeParseError
from .state import State

_INFINITY_SIGIL: Final = "~"
_NEGATE_SIGIL: Final = "@"
_NUMBER_PATTERN: Final = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")


@dataclass(frozen=True)
class RangeSpec:
    negate: bool
    lower: float
    upper: float

    def __post_init__(self) -> None:
        if self.lower > self.upper:
            raise RangeParseError(
                f"lower bound {_render_bound(self.lower)} is above upper bound "
                f"{_render_bound(self.upper)}"
            )

    def compare(self, value: float) -> bool:
        """Return True if the value raises an alarm

        Both bounds belong to the range, regardless of the polarity.
        """
        inside = self.lower <= value <= self.upper
        return inside if self.negate else not inside

    def negated(self) -> RangeSpec:
        return replace(self, negate=not self.negate)

    def __str__(self) -> str:
        prefix = _NEGATE_SIGIL if self.negate else ""
        if self.upper == math.inf:
            return f"{prefix}{_render_bound(self.lower)}:"
        return f"{prefix}{_render_bound(self.lower)}:{_render_bound(self.upper)}"


def _render_bound(bound: float) -> str:
    if math.isinf(bound):
        return _INFINITY_SIGIL
    if bound.is_integer():
        return "%d" % bound
    return repr(bound)


def _parse_bound(text: str, *, infinity: float) -> float:
    if text == _INFINITY_SIGIL:
        return infinity
    if not _NUMBER_PATTERN.fullmatch(text):
        raise RangeParseError(f"invalid bound {text!r}")
    return float(text)


def parse_range(text: str) -> RangeSpec:
    """Parse the threshold text into a RangeSpec

    >>> parse_range("90")
    RangeSpec(negate=False, lower=0.0, upper=90.0)
    >>> parse_range("10:")
    RangeSpec(negate=False, lower=10.0, upper=inf)
    >>> parse_range("~:-5.5")
    RangeSpec(negate=False, lower=-inf, upper=-5.5)
    """
    spec = text.strip()
    negate = spec.startswith(_NEGATE_SIGIL)
    if negate:
        spec = spec[len(_NEGATE_SIGIL) :]

    if not spec:
        raise RangeParseError("empty range")

    if ":" not in spec:
        return RangeSpec(negate, 0.0, _parse_bound(spec, infinity=math.inf))

    start, end = spec.split(":", 1)
    if not start and not end:
        raise RangeParseError("range without any bound")
    if ":" in end:
        raise RangeParseError("more than one ':' in range")

    return RangeSpec(
        negate,
        _parse_bound(start, infinity=-math.inf) if start else 0.0,
        _parse_bound(end, infinity=math.inf) if end else math.inf,
    )


def evaluate(warning: str, critical: str, value: float) -> tuple[State, str]:
    """Compare the value against both thresholds

    Both thresholds are parsed before anything is compared: a malformed
    threshold always results in UNKNOWN.

    >>> evaluate("80", "90", 95)
    (<State.CRIT: 2>, 'value 95 outside of critical range 0:90')
    >>> evaluate("80", "9O", 95)[0]
    <State.UNKNOWN: 3>
    """
    parsed: dict[str, RangeSpec] = {}
    for name, text in (("critical", critical), ("warning", warning)):
        try:
            parsed[name] = parse_range(text)
        except RangeParseError as e:
            return State.UNKNOWN, f"error parsing {name} pattern {text!r}: {e}"

    if not math.isfinite(value):
        return State.UNKNOWN, f"cannot compare {value!r} against thresholds"

    for name, state in (("critical", State.CRIT), ("warning", State.WARN)):
        spec = parsed[name]
        if spec.compare(value):
            where = "inside" if spec.negate else "outside"
            return state, f"value {value:g} {where} of {name} range {spec}"
    return State.OK, f"value {value:g} within thresholds"
