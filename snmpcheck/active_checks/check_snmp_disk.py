#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""check_snmp_disk - Monitor disk and inode usage via SNMP"""

from __future__ import annotations

import argparse
import enum
import logging
import sys
from collections.abc import Callable, Sequence
from typing import NoReturn

from pydantic import BaseModel, ConfigDict

from snmpcheck import __version__
from snmpcheck import log
from snmpcheck.correlate import fetch_correlated_value, fetch_correlated_values, free_percentage
from snmpcheck.exceptions import (
    EmptyResultError,
    InvalidTotalError,
    MKException,
    MKSNMPError,
    RowNotFoundError,
    SNMPValueTypeError,
)
from snmpcheck.ranges import evaluate
from snmpcheck.snmplib import (
    make_backend,
    OID,
    SNMPBackend,
    SNMPBackendEnum,
    SNMPHostConfig,
    SNMPVersion,
)
from snmpcheck.state import State

# HOST-RESOURCES-MIB::hrStorageTable
HR_STORAGE_DESCR = ".1.3.6.1.2.1.25.2.3.1.3"
HR_STORAGE_SIZE = "5"
HR_STORAGE_AVAILABLE = "6"

# UCD-SNMP-MIB::dskTable
DSK_PATH = ".1.3.6.1.4.1.2021.9.1.2"
DSK_PERCENT = "9"
DSK_PERCENT_NODE = "10"

BackendFactory = Callable[[SNMPHostConfig, logging.Logger], SNMPBackend]


class Command(enum.Enum):
    LIST = "list"
    STORAGE = "storage"
    DISK = "disk"
    INODES = "inodes"


class Args(BaseModel):
    model_config = ConfigDict(frozen=True)

    command: Command
    hostname: str
    community: str
    port: int
    snmp_version: SNMPVersion
    backend: SNMPBackendEnum
    timeout: float
    retries: int
    verbose: int
    debug: bool
    warning: str = "~:80"
    critical: str = "~:90"
    mount: str = "/"
    names_oid: OID | None = None
    storage: bool = False

    def host_config(self) -> SNMPHostConfig:
        return SNMPHostConfig(
            hostname=self.hostname,
            ipaddress=self.hostname,
            community=self.community,
            port=self.port,
            snmp_version=self.snmp_version,
            timeout=self.timeout,
            retries=self.retries,
            snmp_backend=self.backend,
        )


def main(
    argv: Sequence[str] | None = None,
    backend_factory: BackendFactory | None = None,
) -> int:
    args = parse_arguments(sys.argv[1:] if argv is None else argv)

    if args.verbose:
        log.setup_console_logging()
        log.logger.setLevel(log.verbosity_to_log_level(min(args.verbose, 2)))

    exitcode, output = _check_snmp_disk_main(args, backend_factory or make_backend)
    _output_check_result(output)
    return exitcode


def _output_check_result(s: str) -> None:
    sys.stdout.write("%s\n" % s)


class ArgParser(argparse.ArgumentParser):
    # A usage error must not look like CRITICAL (exit code 2) to the core
    def error(self, message: str) -> NoReturn:
        self.print_usage(sys.stderr)
        self.exit(int(State.UNKNOWN), "UNKNOWN: Invalid arguments - %s\n" % message)


def parse_arguments(argv: Sequence[str]) -> Args:
    parser = ArgParser(
        prog="check_snmp_disk",
        description="Check disk space and inode usage of a host via SNMP.",
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s version " + __version__,
    )
    parser.add_argument(
        "-t",
        "--timeout",
        type=float,
        metavar="SECONDS",
        default=5.0,
        help="Timeout of every single SNMP request (Default: 5)",
    )
    parser.add_argument(
        "-r",
        "--retries",
        type=int,
        metavar="RETRIES",
        default=1,
        help="Number of retries of an SNMP request that timed out (Default: 1)",
    )
    parser.add_argument(
        "-C",
        "--community",
        type=str,
        metavar="COMMUNITY",
        default="public",
        help='SNMP community string (Default: "public")',
    )
    parser.add_argument(
        "-p",
        "--port",
        type=int,
        metavar="PORT",
        default=161,
        help="UDP port of the SNMP agent (Default: 161)",
    )
    parser.add_argument(
        "--snmp-version",
        type=SNMPVersion,
        choices=SNMPVersion,
        default=SNMPVersion.V2C,
        metavar="VERSION",
        help="SNMP protocol version, 1 or 2c (Default: 2c)",
    )
    parser.add_argument(
        "--backend",
        type=SNMPBackendEnum,
        choices=SNMPBackendEnum,
        default=SNMPBackendEnum.PYSNMP,
        metavar="BACKEND",
        help="Query the agent with PySNMP (pysnmp) or the net-snmp command line tools "
        "(classic). (Default: pysnmp)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Verbose mode, give twice for debug output on stderr",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Debug mode: let Python exceptions come through.",
    )

    thresholds = argparse.ArgumentParser(add_help=False)
    thresholds.add_argument(
        "-w",
        "--warning",
        type=str,
        metavar="RANGE",
        default="~:80",
        help="Warning threshold in the syntax [@]start:end (Default: ~:80)",
    )
    thresholds.add_argument(
        "-c",
        "--critical",
        type=str,
        metavar="RANGE",
        default="~:90",
        help="Critical threshold in the syntax [@]start:end (Default: ~:90)",
    )
    thresholds.add_argument(
        "-m",
        "--mount",
        type=str,
        metavar="MOUNTPOINT",
        default="/",
        help='Drive mount point to check (Default: "/")',
    )
    thresholds.add_argument(
        "--names-oid",
        type=str,
        metavar="OID",
        default=None,
        help="Column holding the drive names, if the agent does not use the standard table",
    )

    subparsers = parser.add_subparsers(dest="command", required=True, metavar="COMMAND")
    list_parser = subparsers.add_parser(
        Command.LIST.value, aliases=["l"], help="list drives on host"
    )
    list_parser.add_argument(
        "--storage",
        action="store_true",
        help="List the entries of hrStorageTable instead of the UCD-SNMP-MIB dskTable",
    )
    list_parser.add_argument(
        "--names-oid",
        type=str,
        metavar="OID",
        default=None,
        help="Column to list",
    )
    subparsers.add_parser(
        Command.STORAGE.value,
        parents=[thresholds],
        help="check the free space in percent (HOST-RESOURCES-MIB)",
    )
    subparsers.add_parser(
        Command.DISK.value,
        parents=[thresholds],
        help="check the used disk space in percent (UCD-SNMP-MIB)",
    )
    subparsers.add_parser(
        Command.INODES.value,
        parents=[thresholds],
        help="check the used inodes in percent (UCD-SNMP-MIB)",
    )
    for subparser in subparsers.choices.values():
        subparser.add_argument("hostname", type=str, metavar="HOSTNAME", help="Host to query")

    arguments = vars(parser.parse_args(argv))
    if arguments["command"] == "l":
        arguments["command"] = Command.LIST.value
    return Args.model_validate(arguments)


def _check_snmp_disk_main(args: Args, backend_factory: BackendFactory) -> tuple[int, str]:
    try:
        with backend_factory(args.host_config(), log.logger) as backend:
            match args.command:
                case Command.LIST:
                    return 0, _list_drives(backend, args)
                case Command.STORAGE:
                    state, summary = _check_storage(backend, args)
                case Command.DISK:
                    state, summary = _check_ucd_percentage(backend, args, DSK_PERCENT)
                case Command.INODES:
                    state, summary = _check_ucd_percentage(backend, args, DSK_PERCENT_NODE)

    except MKException as e:
        if args.debug:
            raise
        state, summary = State.UNKNOWN, _describe_error(e, args)

    except Exception as e:
        if args.debug:
            raise
        state, summary = State.UNKNOWN, f"Unhandled exception: {e}"

    return int(state), f"{state.label}: {summary}"


def _describe_error(exc: MKException, args: Args) -> str:
    match exc:
        case RowNotFoundError():
            return f"Couldn't find drive {args.mount}: {exc}"
        case EmptyResultError():
            return f"Couldn't find drive free space: {exc}"
        case InvalidTotalError():
            return f"Cannot compute free space of {args.mount}: {exc}"
        case SNMPValueTypeError():
            return f"Unexpected answer for drive {args.mount}: {exc}"
        case MKSNMPError():
            return str(exc)
    return f"{type(exc).__name__}: {exc}"


def _list_drives(backend: SNMPBackend, args: Args) -> str:
    names_oid = args.names_oid or (HR_STORAGE_DESCR if args.storage else DSK_PATH)
    return "\n".join(str(row.value.value) for row in backend.walk(names_oid))


def _check_storage(backend: SNMPBackend, args: Args) -> tuple[State, str]:
    values = fetch_correlated_values(
        backend,
        args.names_oid or HR_STORAGE_DESCR,
        args.mount,
        1,
        [HR_STORAGE_SIZE, HR_STORAGE_AVAILABLE],
    )
    freespace = free_percentage(
        values[HR_STORAGE_AVAILABLE].as_int(), values[HR_STORAGE_SIZE].as_int()
    )
    return _apply_levels(args, freespace, "%s %02.2f" % (args.mount, freespace))


def _check_ucd_percentage(backend: SNMPBackend, args: Args, column: str) -> tuple[State, str]:
    percentage = fetch_correlated_value(
        backend, args.names_oid or DSK_PATH, args.mount, 1, column
    ).as_int()
    return _apply_levels(args, percentage, "%s %d%%" % (args.mount, percentage))


def _apply_levels(args: Args, value: float, summary: str) -> tuple[State, str]:
    state, message = evaluate(args.warning, args.critical, value)
    log.logger.log(log.VERBOSE, "%s: %s", args.mount, message)
    if state is State.UNKNOWN:
        return state, message
    return state, summary


if __name__ == "__main__":
    sys.exit(main())
