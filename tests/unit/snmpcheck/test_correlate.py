#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

from collections.abc import Iterator

import pytest

from tests.unit.mocks_and_helpers import FakeSNMPBackend

from snmpcheck.correlate import (
    build_related_oid,
    fetch_correlated_value,
    fetch_correlated_values,
    find_row_index,
    free_percentage,
)
from snmpcheck.exceptions import (
    EmptyResultError,
    InvalidTotalError,
    MKGeneralException,
    MKSNMPError,
    RowNotFoundError,
)
from snmpcheck.snmplib import SNMPValue, SNMPValueKind, TableRow

_DESCR = ".1.3.6.1.2.1.25.2.3.1.3"

_ROWS = [
    TableRow((1,), SNMPValue.string("/boot")),
    TableRow((2,), SNMPValue.string("/")),
    TableRow((5,), SNMPValue.string("/data")),
]


def _storage_table() -> dict[str, SNMPValue]:
    return {
        f"{_DESCR}.1": SNMPValue.string("/boot"),
        f"{_DESCR}.2": SNMPValue.string("/"),
        f"{_DESCR}.5": SNMPValue.string("/data"),
        ".1.3.6.1.2.1.25.2.3.1.5.1": SNMPValue.integer(100),
        ".1.3.6.1.2.1.25.2.3.1.5.2": SNMPValue.integer(1000),
        ".1.3.6.1.2.1.25.2.3.1.5.5": SNMPValue.integer(0),
        ".1.3.6.1.2.1.25.2.3.1.6.1": SNMPValue.integer(10),
        ".1.3.6.1.2.1.25.2.3.1.6.2": SNMPValue.integer(250),
    }


@pytest.mark.parametrize(
    "target, expected",
    [
        ("/", "2"),
        ("/boot", "1"),
        ("/data", "5"),
    ],
)
def test_find_row_index(target: str, expected: str) -> None:
    assert find_row_index(_ROWS, target) == expected


def test_find_row_index_not_found() -> None:
    with pytest.raises(RowNotFoundError):
        find_row_index(_ROWS, "/missing")


def test_find_row_index_empty_table() -> None:
    with pytest.raises(RowNotFoundError):
        find_row_index([], "/")


def test_find_row_index_first_match_wins() -> None:
    rows = [
        TableRow((3,), SNMPValue.string("/")),
        TableRow((7,), SNMPValue.string("/")),
    ]
    assert find_row_index(rows, "/") == "3"


def test_find_row_index_uses_last_segment_of_composite_index() -> None:
    rows = [TableRow((4, 1, 9), SNMPValue.string("/srv"))]
    assert find_row_index(rows, "/srv") == "9"


def test_find_row_index_compares_exact_kind() -> None:
    rows = [
        TableRow((1,), SNMPValue.integer(2)),
        TableRow((2,), SNMPValue.string("2")),
    ]
    assert find_row_index(rows, "2") == "2"
    assert find_row_index(rows, 2) == "1"


def test_find_row_index_stops_consuming() -> None:
    consumed: list[TableRow] = []
    closed: list[bool] = []

    def producer() -> Iterator[TableRow]:
        try:
            for row in _ROWS:
                consumed.append(row)
                yield row
        finally:
            closed.append(True)

    assert find_row_index(producer(), "/boot") == "1"
    assert consumed == _ROWS[:1]
    assert closed == [True]


def test_find_row_index_closes_exhausted_stream() -> None:
    backend = FakeSNMPBackend(_storage_table())
    with pytest.raises(RowNotFoundError):
        find_row_index(backend.walk(_DESCR), "/missing")
    assert backend.walk_finished
    assert backend.walk_closed


def test_walk_is_abandoned_after_match() -> None:
    backend = FakeSNMPBackend(_storage_table())
    assert find_row_index(backend.walk(_DESCR), "/boot") == "1"
    assert backend.rows_sent == 1
    assert backend.walk_closed
    assert not backend.walk_finished


@pytest.mark.parametrize(
    "base_oid, trim_segments, suffix, row_index, expected",
    [
        (".1.3.6.1.2.1.25.2.3.1.3", 1, "5", "2", ".1.3.6.1.2.1.25.2.3.1.5.2"),
        (".1.3.6.1.2.1.25.2.3.1.3", 1, ".6", "2", ".1.3.6.1.2.1.25.2.3.1.6.2"),
        ("1.3.6.1.4.1.2021.9.1.2", 1, "9", "31", ".1.3.6.1.4.1.2021.9.1.9.31"),
        (".1.3.6.1.4.1.2021.9.1.2", 0, "1", "4", ".1.3.6.1.4.1.2021.9.1.2.1.4"),
        (".1.3.6.1.4.1.2021.9.1.2", 3, "1.3.7", "4", ".1.3.6.1.4.1.2021.1.3.7.4"),
    ],
)
def test_build_related_oid(
    base_oid: str, trim_segments: int, suffix: str, row_index: str, expected: str
) -> None:
    assert build_related_oid(base_oid, trim_segments, suffix, row_index) == expected


@pytest.mark.parametrize(
    "trim_segments, suffix",
    [
        (-1, "5"),
        (3, "5"),
        (1, ""),
        (1, "."),
    ],
)
def test_build_related_oid_invalid(trim_segments: int, suffix: str) -> None:
    with pytest.raises(MKGeneralException):
        build_related_oid(".1.3.6", trim_segments, suffix, "1")


def test_fetch_correlated_value() -> None:
    backend = FakeSNMPBackend(_storage_table())
    value = fetch_correlated_value(backend, _DESCR, "/", 1, "5")
    assert value == SNMPValue(SNMPValueKind.INTEGER, 1000)
    assert backend.requested == [_DESCR, ".1.3.6.1.2.1.25.2.3.1.5.2"]


def test_fetch_correlated_values_derive_percentage() -> None:
    backend = FakeSNMPBackend(_storage_table())
    values = fetch_correlated_values(backend, _DESCR, "/", 1, ["5", "6"])
    assert free_percentage(values["6"].as_int(), values["5"].as_int()) == 25.0
    # one walk for all the columns
    assert backend.requested == [
        _DESCR,
        ".1.3.6.1.2.1.25.2.3.1.5.2",
        ".1.3.6.1.2.1.25.2.3.1.6.2",
    ]


def test_fetch_correlated_value_row_not_found() -> None:
    backend = FakeSNMPBackend(_storage_table())
    with pytest.raises(RowNotFoundError):
        fetch_correlated_value(backend, _DESCR, "/missing", 1, "5")
    assert backend.requested == [_DESCR]


def test_fetch_correlated_value_empty_result() -> None:
    backend = FakeSNMPBackend(_storage_table())
    with pytest.raises(EmptyResultError):
        fetch_correlated_value(backend, _DESCR, "/data", 1, "6")


def test_fetch_correlated_value_transport_error_is_propagated() -> None:
    backend = FakeSNMPBackend(
        _storage_table(), failing_oids=[".1.3.6.1.2.1.25.2.3.1.5.2"]
    )
    with pytest.raises(MKSNMPError, match="Timeout: No Response"):
        fetch_correlated_value(backend, _DESCR, "/", 1, "5")


def test_fetch_correlated_value_walk_error_is_propagated() -> None:
    backend = FakeSNMPBackend(_storage_table(), failing_oids=[_DESCR])
    with pytest.raises(MKSNMPError):
        fetch_correlated_value(backend, _DESCR, "/", 1, "5")


@pytest.mark.parametrize(
    "available, total, expected",
    [
        (250, 1000, 25.0),
        (0, 1000, 0.0),
        (1000, 1000, 100.0),
        (1, 3, 100 / 3),
    ],
)
def test_free_percentage(available: int, total: int, expected: float) -> None:
    assert free_percentage(available, total) == pytest.approx(expected)


@pytest.mark.parametrize("total", [0, -2048])
def test_free_percentage_invalid_total(total: int) -> None:
    with pytest.raises(InvalidTotalError):
        free_percentage(0, total)
