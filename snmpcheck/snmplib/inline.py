#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""SNMP backend talking to the agent with PySNMP"""

import asyncio
import logging
from collections.abc import AsyncGenerator, Awaitable, Generator, Sequence
from typing import Any, TypeVar

from pyasn1.type import univ
from pysnmp.error import PySnmpError
from pysnmp.hlapi.v3arch.asyncio import (
    CommunityData,
    ContextData,
    get_cmd,
    ObjectIdentity,
    ObjectType,
    SnmpEngine,
    Udp6TransportTarget,
    UdpTransportTarget,
    walk_cmd,
)
from pysnmp.proto import rfc1902, rfc1905

from snmpcheck.exceptions import MKSNMPError
from snmpcheck.log import VERBOSE

from ._typedefs import (
    normalize_oid,
    OID,
    oid_suffix,
    SNMPBackend,
    SNMPHostConfig,
    SNMPValue,
    SNMPValueKind,
    SNMPVersion,
    TableRow,
)

_T = TypeVar("_T")

# error-status noSuchName: the way SNMPv1 agents report an unknown OID
_NO_SUCH_NAME = 2

# Most specific classes first: Gauge32 is derived from Unsigned32 and all of
# them from univ.Integer.
_INTEGER_TYPES: Sequence[tuple[type[univ.Integer], SNMPValueKind]] = (
    (rfc1902.Counter64, SNMPValueKind.COUNTER64),
    (rfc1902.Counter32, SNMPValueKind.COUNTER),
    (rfc1902.Gauge32, SNMPValueKind.GAUGE),
    (rfc1902.TimeTicks, SNMPValueKind.TIMETICKS),
    (rfc1902.Unsigned32, SNMPValueKind.UNSIGNED),
    (univ.Integer, SNMPValueKind.INTEGER),
)


def ensure_str(value: str | bytes, *, encoding: str | None = None) -> str:
    if isinstance(value, str):
        return value
    if encoding:
        return value.decode(encoding)
    try:
        return value.decode()
    except UnicodeDecodeError:
        return value.decode("latin1")


def to_snmp_value(value: Any) -> SNMPValue | None:
    """Convert a PySNMP value into an SNMPValue, None for missing variables"""
    if isinstance(value, rfc1905.NoSuchObject | rfc1905.NoSuchInstance | rfc1905.EndOfMibView):
        return None
    for integer_type, kind in _INTEGER_TYPES:
        if isinstance(value, integer_type):
            return SNMPValue(kind, int(value))
    if isinstance(value, rfc1902.IpAddress):
        return SNMPValue(SNMPValueKind.IPADDRESS, value.prettyPrint())
    if isinstance(value, univ.OctetString):
        return SNMPValue.string(ensure_str(value.asOctets()))
    if isinstance(value, univ.ObjectIdentifier):
        return SNMPValue(SNMPValueKind.OID, normalize_oid(str(value)))
    if isinstance(value, univ.Null):
        return SNMPValue(SNMPValueKind.NULL, None)
    raise MKSNMPError(f"Unsupported SNMP value: {value!r}")


class PySNMPBackend(SNMPBackend):
    """Runs the asyncio API of PySNMP step by step on a private event loop

    Each network request is bounded by the timeout of the host configuration.
    """

    def __init__(self, snmp_config: SNMPHostConfig, logger: logging.Logger) -> None:
        super().__init__(snmp_config, logger)
        self._loop = asyncio.new_event_loop()
        self._engine = SnmpEngine()
        self._transport: UdpTransportTarget | Udp6TransportTarget | None = None

    def close(self) -> None:
        if self._loop.is_closed():
            return
        try:
            self._engine.close_dispatcher()
            self._loop.run_until_complete(self._loop.shutdown_asyncgens())
        finally:
            self._loop.close()

    def get(self, /, oid: OID) -> Sequence[SNMPValue]:
        oid = normalize_oid(oid)
        self._logger.log(VERBOSE, "Getting OID %s from %s", oid, self.address)
        error_indication, error_status, error_index, var_binds = self._run(
            get_cmd(
                self._engine,
                self._auth_data(),
                self._transport_target(),
                ContextData(),
                ObjectType(ObjectIdentity(oid.lstrip("."))),
                lookupMib=False,
            )
        )
        if error_status and int(error_status) == _NO_SUCH_NAME:
            self._logger.debug("SNMP answer: ==> noSuchName")
            return []
        self._raise_for_error(error_indication, error_status, error_index, var_binds)

        values = []
        for var_bind in var_binds:
            self._logger.debug("SNMP answer: %s ==> [%s]", var_bind[0], var_bind[1].prettyPrint())
            if (value := to_snmp_value(var_bind[1])) is not None:
                values.append(value)
        return values

    def walk(self, /, oid: OID) -> Generator[TableRow, None, None]:
        base_oid = normalize_oid(oid)
        self._logger.log(VERBOSE, "Walking OID %s on %s", base_oid, self.address)
        responses: AsyncGenerator[Any, None] = walk_cmd(
            self._engine,
            self._auth_data(),
            self._transport_target(),
            ContextData(),
            ObjectType(ObjectIdentity(base_oid.lstrip("."))),
            lexicographicMode=False,
            lookupMib=False,
        )
        try:
            while True:
                try:
                    error_indication, error_status, error_index, var_binds = self._run(
                        responses.__anext__()
                    )
                except StopAsyncIteration:
                    return
                self._raise_for_error(error_indication, error_status, error_index, var_binds)

                for var_bind in var_binds:
                    name, value = str(var_bind[0]), to_snmp_value(var_bind[1])
                    self._logger.debug("SNMP answer: %s ==> [%s]", name, value)
                    if value is None:
                        continue
                    yield TableRow(oid_suffix(name, base_oid), value)
        finally:
            # Also reached when the consumer closes us early: no further
            # request is sent once the walk is finalized.
            if not self._loop.is_closed():
                self._run(responses.aclose())

    def _run(self, awaitable: Awaitable[_T]) -> _T:
        try:
            return self._loop.run_until_complete(awaitable)
        except PySnmpError as e:
            raise MKSNMPError(f"SNMP Error on {self.address}: {e}")

    def _auth_data(self) -> CommunityData:
        return CommunityData(
            self.config.community,
            mpModel=0 if self.config.snmp_version is SNMPVersion.V1 else 1,
        )

    def _transport_target(self) -> UdpTransportTarget | Udp6TransportTarget:
        if self._transport is None:
            target_type = (
                Udp6TransportTarget if self.config.is_ipv6_primary else UdpTransportTarget
            )
            self._transport = self._run(
                target_type.create(
                    (self.address, self.port),
                    timeout=self.config.timeout,
                    retries=self.config.retries,
                )
            )
        return self._transport

    def _raise_for_error(
        self,
        error_indication: Any,
        error_status: Any,
        error_index: Any,
        var_binds: Sequence[Any],
    ) -> None:
        if error_indication:
            raise MKSNMPError(f"SNMP Error on {self.address}: {error_indication}")
        if error_status:
            position = int(error_index) - 1 if error_index else -1
            culprit = var_binds[position][0] if 0 <= position < len(var_binds) else "?"
            raise MKSNMPError(
                f"SNMP Error on {self.address}: {error_status.prettyPrint()} at {culprit}"
            )
