#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

from __future__ import annotations

import abc
import enum
import logging
from collections.abc import Generator, Sequence
from dataclasses import dataclass
from types import TracebackType
from typing import NamedTuple, Self

from snmpcheck.exceptions import MKSNMPError, SNMPValueTypeError

OID = str
SNMPCommunity = str


class SNMPBackendEnum(enum.Enum):
    PYSNMP = "pysnmp"
    CLASSIC = "classic"

    def serialize(self) -> str:
        return self.name

    @classmethod
    def deserialize(cls, name: str) -> Self:
        return cls[name]


class SNMPVersion(enum.Enum):
    V1 = "1"
    V2C = "2c"

    def serialize(self) -> str:
        return self.name

    @classmethod
    def deserialize(cls, name: str) -> Self:
        return cls[name]


class SNMPValueKind(enum.Enum):
    INTEGER = "INTEGER"
    UNSIGNED = "Unsigned32"
    COUNTER = "Counter32"
    COUNTER64 = "Counter64"
    GAUGE = "Gauge32"
    TIMETICKS = "Timeticks"
    REAL = "Float"
    STRING = "STRING"
    OID = "OID"
    IPADDRESS = "IpAddress"
    NULL = "NULL"


_INTEGER_KINDS = frozenset(
    {
        SNMPValueKind.INTEGER,
        SNMPValueKind.UNSIGNED,
        SNMPValueKind.COUNTER,
        SNMPValueKind.COUNTER64,
        SNMPValueKind.GAUGE,
        SNMPValueKind.TIMETICKS,
    }
)

_TEXT_KINDS = frozenset({SNMPValueKind.STRING, SNMPValueKind.OID, SNMPValueKind.IPADDRESS})


@dataclass(frozen=True)
class SNMPValue:
    """A scalar as answered by the agent, tagged with its SNMP type

    Conversions are checked: asking a string for its integer value is an
    error instead of a crash somewhere further down.

    >>> SNMPValue(SNMPValueKind.GAUGE, 42).as_float()
    42.0
    >>> SNMPValue.string("/var").as_int()
    Traceback (most recent call last):
        ...
    snmpcheck.exceptions.SNMPValueTypeError: expected an integer, got STRING '/var'
    """

    kind: SNMPValueKind
    value: int | float | str | None

    def __post_init__(self) -> None:
        match self.kind:
            case kind if kind in _INTEGER_KINDS:
                valid = isinstance(self.value, int) and not isinstance(self.value, bool)
            case SNMPValueKind.REAL:
                valid = isinstance(self.value, float)
            case kind if kind in _TEXT_KINDS:
                valid = isinstance(self.value, str)
            case _:
                valid = self.value is None
        if not valid:
            raise SNMPValueTypeError(f"{self.value!r} is not a valid {self.kind.value} value")

    @classmethod
    def integer(cls, value: int) -> SNMPValue:
        return cls(SNMPValueKind.INTEGER, value)

    @classmethod
    def string(cls, value: str) -> SNMPValue:
        return cls(SNMPValueKind.STRING, value)

    @property
    def is_numeric(self) -> bool:
        return self.kind in _INTEGER_KINDS or self.kind is SNMPValueKind.REAL

    def as_int(self) -> int:
        if self.kind not in _INTEGER_KINDS:
            raise SNMPValueTypeError(f"expected an integer, got {self}")
        assert isinstance(self.value, int)
        return self.value

    def as_float(self) -> float:
        if not self.is_numeric:
            raise SNMPValueTypeError(f"expected a number, got {self}")
        assert isinstance(self.value, int | float)
        return float(self.value)

    def as_str(self) -> str:
        if self.kind not in _TEXT_KINDS:
            raise SNMPValueTypeError(f"expected a string, got {self}")
        assert isinstance(self.value, str)
        return self.value

    def matches(self, target: str | int | float) -> bool:
        """Exact comparison against a plain python value of the same kind"""
        if isinstance(target, str):
            return self.kind in _TEXT_KINDS and self.value == target
        return self.is_numeric and self.value == target

    def __str__(self) -> str:
        return f"{self.kind.value} {self.value!r}"


class TableRow(NamedTuple):
    """One entry of a table walk

    The suffix is the part of the OID beneath the walked base, i.e. the row
    index. It may consist of more than one segment.

    >>> TableRow((1, 4), SNMPValue.string("/")).index
    '4'
    """

    suffix: tuple[int, ...]
    value: SNMPValue

    @property
    def index(self) -> str:
        return str(self.suffix[-1])


def normalize_oid(oid: OID) -> OID:
    """
    >>> normalize_oid("1.3.6.1.2.1.25")
    '.1.3.6.1.2.1.25'
    """
    return oid if oid.startswith(".") else "." + oid


def oid_to_tuple(oid: OID) -> tuple[int, ...]:
    try:
        return tuple(int(segment) for segment in oid.strip(".").split("."))
    except ValueError:
        raise MKSNMPError(f"Invalid OID: {oid!r}")


def oid_suffix(oid: OID, base: OID) -> tuple[int, ...]:
    """Return the segments of a full OID beneath the given base

    >>> oid_suffix(".1.3.6.1.2.1.25.2.3.1.3.31", ".1.3.6.1.2.1.25.2.3.1.3")
    (31,)
    """
    full, prefix = oid_to_tuple(oid), oid_to_tuple(base)
    if len(full) <= len(prefix) or full[: len(prefix)] != prefix:
        raise MKSNMPError(f"OID {oid} is not beneath {base}")
    return full[len(prefix) :]


# Wraps the configuration of a host into a single object for the SNMP code
@dataclass(frozen=True, kw_only=True)
class SNMPHostConfig:
    hostname: str
    ipaddress: str
    community: SNMPCommunity
    port: int
    snmp_version: SNMPVersion
    timeout: float
    retries: int
    snmp_backend: SNMPBackendEnum

    @property
    def is_ipv6_primary(self) -> bool:
        return ":" in self.ipaddress


class SNMPBackend(abc.ABC):
    """Access to a single agent, valid for the duration of one check"""

    def __init__(self, snmp_config: SNMPHostConfig, logger: logging.Logger) -> None:
        super().__init__()
        self._logger = logger
        self.config = snmp_config

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    @property
    def hostname(self) -> str:
        return self.config.hostname

    @property
    def address(self) -> str:
        return self.config.ipaddress

    @property
    def port(self) -> int:
        return self.config.port

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Release the transport resources of this backend"""

    @abc.abstractmethod
    def get(self, /, oid: OID) -> Sequence[SNMPValue]:
        """Fetch a single OID from the agent

        An OID the agent does not know results in an empty sequence.
        """
        raise NotImplementedError()

    @abc.abstractmethod
    def walk(self, /, oid: OID) -> Generator[TableRow, None, None]:
        """Walk the subtree beneath the given OID, one row at a time

        The rows are requested lazily. Closing the generator stops the walk
        and no further request is sent to the agent.
        """
        raise NotImplementedError()
