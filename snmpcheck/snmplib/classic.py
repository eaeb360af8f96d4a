#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""SNMP backend using the net-snmp command line tools"""

import re
import subprocess
from collections.abc import Generator, Iterable, Iterator, Sequence

from snmpcheck.exceptions import MKSNMPError, SNMPValueTypeError
from snmpcheck.log import VERBOSE

from ._typedefs import (
    normalize_oid,
    OID,
    oid_suffix,
    SNMPBackend,
    SNMPValue,
    SNMPValueKind,
    SNMPVersion,
    TableRow,
)

# numeric OIDs, numeric enums, numeric timeticks, no units. No -OQ: we want the types.
_OUTPUT_OPTIONS = ["-On", "-Oe", "-Ot", "-OU"]

_MISSING_VALUE_PREFIXES = (
    "No more variables",
    "End of MIB",
    "No Such Object available",
    "No Such Instance currently exists",
)

_INTEGER_TYPES = {
    "INTEGER": SNMPValueKind.INTEGER,
    "Unsigned32": SNMPValueKind.UNSIGNED,
    "UInteger32": SNMPValueKind.UNSIGNED,
    "Counter32": SNMPValueKind.COUNTER,
    "Counter64": SNMPValueKind.COUNTER64,
    "Gauge32": SNMPValueKind.GAUGE,
    "Timeticks": SNMPValueKind.TIMETICKS,
}


class ClassicSNMPBackend(SNMPBackend):
    def get(self, /, oid: OID) -> Sequence[SNMPValue]:
        command = (
            self._snmp_base_command("get")
            + _OUTPUT_OPTIONS
            + [self._snmp_target(), normalize_oid(oid)]
        )
        self._logger.log(VERBOSE, "Running '%s'", subprocess.list2cmdline(command))

        completed_process = subprocess.run(
            command,
            close_fds=True,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
            check=False,
        )
        if completed_process.returncode:
            raise MKSNMPError(
                "SNMP Error on %s: %s (Exit-Code: %d)"
                % (self.address, completed_process.stderr.strip(), completed_process.returncode)
            )

        self._logger.debug("SNMP answer: ==> [%s]", completed_process.stdout.strip())
        return [
            value
            for _oid, value in iter_varbinds(completed_process.stdout.splitlines())
            if value is not None
        ]

    def walk(self, /, oid: OID) -> Generator[TableRow, None, None]:
        base_oid = normalize_oid(oid)
        command = (
            self._snmp_base_command("walk") + _OUTPUT_OPTIONS + [self._snmp_target(), base_oid]
        )
        self._logger.log(VERBOSE, "Running '%s'", subprocess.list2cmdline(command))

        snmp_process = subprocess.Popen(
            command,
            close_fds=True,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            encoding="utf-8",
            errors="replace",
        )
        assert snmp_process.stdout is not None
        assert snmp_process.stderr is not None

        completed = False
        try:
            for row_oid, value in iter_varbinds(snmp_process.stdout):
                if value is None:
                    continue
                self._logger.debug("SNMP answer: %s ==> [%s]", row_oid, value)
                yield TableRow(oid_suffix(row_oid, base_oid), value)
            completed = True
        finally:
            # Also reached when the consumer closes us early: do not let
            # snmpwalk continue in the background.
            if not completed and snmp_process.poll() is None:
                self._logger.log(VERBOSE, "Stopping snmpwalk (PID %d)", snmp_process.pid)
                snmp_process.terminate()
            snmp_process.wait()
            error = snmp_process.stderr.read()
            snmp_process.stdout.close()
            snmp_process.stderr.close()

        if snmp_process.returncode:
            raise MKSNMPError(
                "SNMP Error on %s: %s (Exit-Code: %d)"
                % (self.address, error.strip(), snmp_process.returncode)
            )

    def _snmp_target(self) -> str:
        if self.config.is_ipv6_primary:
            address = "udp6:[%s]" % self.address
        else:
            address = self.address
        if self.port == 161:
            return address
        return "%s:%d" % (address, self.port)

    def _snmp_base_command(self, what: str) -> list[str]:
        command = ["snmpget"] if what == "get" else ["snmpwalk"]
        options = ["-v1" if self.config.snmp_version is SNMPVersion.V1 else "-v2c"]
        options += ["-c", self.config.community]

        # Do not load *any* MIB files. This save lot's of CPU.
        options += ["-m", "", "-M", ""]

        options += ["-t", "%0.2f" % self.config.timeout]
        options += ["-r", "%d" % self.config.retries]
        return command + options


def iter_varbinds(lines: Iterable[str]) -> Iterator[tuple[OID, SNMPValue | None]]:
    """Parse the output of snmpget/snmpwalk as it comes in

    Variables the agent does not have are reported with the value None.

    >>> list(iter_varbinds(['.1.3.6.1.4.1.2021.9.1.9.1 = INTEGER: 42']))
    [('.1.3.6.1.4.1.2021.9.1.9.1', SNMPValue(kind=<SNMPValueKind.INTEGER: 'INTEGER'>, value=42))]
    """
    line_iter = iter(lines)
    for raw_line in line_iter:
        line = raw_line.strip()
        oid, sep, value = line.partition("=")
        if not sep:
            continue  # broken line, must contain =
        oid, value = oid.strip(), value.strip()

        # Strings containing line feeds are continued on the next line(s).
        _type, _sep, payload = value.partition(": ")
        if payload == '"' or (payload.startswith('"') and not payload.endswith('"')):
            for next_line in line_iter:
                value += "\n" + next_line.rstrip("\n")
                if value.endswith('"'):
                    break

        yield oid, parse_snmp_value(value)


def parse_snmp_value(text: str) -> SNMPValue | None:
    """Turn the typed representation of net-snmp into an SNMPValue

    >>> parse_snmp_value('STRING: "/var/log"')
    SNMPValue(kind=<SNMPValueKind.STRING: 'STRING'>, value='/var/log')
    >>> parse_snmp_value('Timeticks: (4711) 0:00:47.11').as_int()
    4711
    >>> parse_snmp_value('No Such Instance currently exists at this OID') is None
    True
    """
    if text.startswith(_MISSING_VALUE_PREFIXES):
        return None
    if text == "NULL":
        return SNMPValue(SNMPValueKind.NULL, None)

    type_name, sep, payload = text.partition(": ")
    if not sep:
        if text.endswith(":"):  # empty payload, e.g. 'STRING:'
            type_name, payload = text[:-1], ""
        else:
            return SNMPValue.string(strip_snmp_value(text))

    if (kind := _INTEGER_TYPES.get(type_name)) is not None:
        # Enums and timeticks may come as "up(1)" or "(4711) 0:00:47.11"
        if (match := re.search(r"\((\d+)\)", payload)) is not None:
            payload = match.group(1)
        try:
            return SNMPValue(kind, int(payload.split()[0]))
        except (IndexError, ValueError):
            raise SNMPValueTypeError(f"invalid {type_name} value: {payload!r}")

    match type_name:
        case "STRING":
            return SNMPValue.string(strip_snmp_value(payload))
        case "Hex-STRING":
            return SNMPValue.string(bytes.fromhex(payload).decode("latin1"))
        case "OID":
            return SNMPValue(SNMPValueKind.OID, payload)
        case "IpAddress":
            return SNMPValue(SNMPValueKind.IPADDRESS, payload)
        case "Opaque":
            _float_type, _sep, number = payload.partition(": ")
            try:
                return SNMPValue(SNMPValueKind.REAL, float(number))
            except ValueError:
                raise SNMPValueTypeError(f"unsupported Opaque value: {payload!r}")
    raise SNMPValueTypeError(f"unsupported SNMP value: {text!r}")


def strip_snmp_value(value: str) -> str:
    v = value.strip()
    if len(v) > 1 and v.startswith('"') and v.endswith('"'):
        v = v[1:-1]
        # Fix for non hex encoded string which have been somehow encoded by the
        # netsnmp command line tools. An example:
        # Checking windows systems via SNMP with hr_fs: disk names like c:\
        # are reported as c:\\, fix this to single \
        return v.replace("\\\\", "\\")
    return v
