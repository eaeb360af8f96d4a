#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""Look up a value in one SNMP table by a name found in another one

Agents publish related information in columns that share the row index.
For example the UCD-SNMP-MIB dskTable has the mount point in column 2
(``.1.3.6.1.4.1.2021.9.1.2``) and the used percentage in column 9. To get the
usage of ``/var`` we walk column 2 until we see ``/var``, take the index of
that row and fetch ``.1.3.6.1.4.1.2021.9.1.9.<index>``.
"""

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence

from .exceptions import EmptyResultError, InvalidTotalError, MKGeneralException, RowNotFoundError
from .snmplib import normalize_oid, OID, SNMPBackend, SNMPValue, TableRow

logger = logging.getLogger("snmpcheck.correlate")


def find_row_index(rows: Iterable[TableRow], target: str | int | float) -> str:
    """Return the index of the first row whose value equals the target

    Rows are consumed one at a time. If the rows come from a generator it is
    closed right after the match, which stops the underlying walk.
    """
    row_iter: Iterator[TableRow] = iter(rows)
    try:
        for row in row_iter:
            if row.value.matches(target):
                logger.debug("Found %r in row %s", target, ".".join(map(str, row.suffix)))
                return row.index
    finally:
        if (close := getattr(row_iter, "close", None)) is not None:
            close()
    raise RowNotFoundError(f"no row with value {target!r}")


def build_related_oid(
    base_oid: OID, trim_segments: int, replacement_suffix: str, row_index: str
) -> OID:
    """Build the OID of a related column for the given row index

    >>> build_related_oid(".1.3.6.1.2.1.25.2.3.1.3", 1, "5", "31")
    '.1.3.6.1.2.1.25.2.3.1.5.31'
    >>> build_related_oid(".1.3.6.1.4.1.2021.9.1.2", 1, ".9", "1")
    '.1.3.6.1.4.1.2021.9.1.9.1'
    """
    segments = normalize_oid(base_oid).strip(".").split(".")
    if not 0 <= trim_segments < len(segments):
        raise MKGeneralException(
            f"Cannot remove {trim_segments} segments from OID {normalize_oid(base_oid)}"
        )
    if not replacement_suffix.strip("."):
        raise MKGeneralException("Missing column to append to OID %s" % normalize_oid(base_oid))
    trimmed = segments[: len(segments) - trim_segments]
    return ".%s.%s.%s" % (".".join(trimmed), replacement_suffix.strip("."), row_index)


def fetch_correlated_values(
    backend: SNMPBackend,
    base_oid: OID,
    target: str | int | float,
    trim_segments: int,
    replacement_suffixes: Sequence[str],
) -> Mapping[str, SNMPValue]:
    """Walk the base OID for the target and GET every related column of that row

    The result maps each of the replacement suffixes to the fetched value.
    """
    row_index = find_row_index(backend.walk(base_oid), target)

    values = {}
    for suffix in replacement_suffixes:
        oid = build_related_oid(base_oid, trim_segments, suffix, row_index)
        if not (result := backend.get(oid)):
            raise EmptyResultError(f"no value found at associated OID {oid}")
        values[suffix] = result[0]
    return values


def fetch_correlated_value(
    backend: SNMPBackend,
    base_oid: OID,
    target: str | int | float,
    trim_segments: int,
    replacement_suffix: str,
) -> SNMPValue:
    return fetch_correlated_values(
        backend, base_oid, target, trim_segments, [replacement_suffix]
    )[replacement_suffix]


def free_percentage(available: int, total: int) -> float:
    """
    >>> free_percentage(250, 1000)
    25.0
    """
    if total <= 0:
        raise InvalidTotalError(f"total size is {total}")
    return available * 100 / total
