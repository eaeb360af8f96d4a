#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""User-defined exceptions of the SNMP disk checks."""

__all__ = [
    "EmptyResultError",
    "InvalidTotalError",
    "MKException",
    "MKFetcherError",
    "MKGeneralException",
    "MKSNMPError",
    "RangeParseError",
    "RowNotFoundError",
    "SNMPValueTypeError",
]


# never used directly in the code. Just some wrapper to make all of our
# exceptions handleable with one call
class MKException(Exception):
    pass


class MKGeneralException(MKException):
    pass


class MKFetcherError(MKException):
    """An exception common to the SNMP backends."""


class MKSNMPError(MKFetcherError):
    """Transport level failure: timeout, unreachable agent, protocol error."""


class RangeParseError(MKGeneralException):
    """The text of a threshold range is malformed or its bounds are inverted."""


class RowNotFoundError(MKGeneralException):
    """No row of the walked table carries the requested value."""


class EmptyResultError(MKGeneralException):
    """A GET succeeded but the agent answered without any variable."""


class SNMPValueTypeError(MKGeneralException):
    """The agent answered with a different kind of value than expected."""


class InvalidTotalError(MKGeneralException):
    """A percentage was requested relative to a total that is zero or negative."""
