#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.
"""Package with our SNMP stuff."""

import logging
from typing import assert_never

from ._typedefs import normalize_oid as normalize_oid
from ._typedefs import OID as OID
from ._typedefs import oid_suffix as oid_suffix
from ._typedefs import oid_to_tuple as oid_to_tuple
from ._typedefs import SNMPBackend as SNMPBackend
from ._typedefs import SNMPBackendEnum as SNMPBackendEnum
from ._typedefs import SNMPCommunity as SNMPCommunity
from ._typedefs import SNMPHostConfig as SNMPHostConfig
from ._typedefs import SNMPValue as SNMPValue
from ._typedefs import SNMPValueKind as SNMPValueKind
from ._typedefs import SNMPVersion as SNMPVersion
from ._typedefs import TableRow as TableRow


def make_backend(snmp_config: SNMPHostConfig, logger: logging.Logger) -> SNMPBackend:
    match snmp_config.snmp_backend:
        case SNMPBackendEnum.CLASSIC:
            from .classic import ClassicSNMPBackend

            return ClassicSNMPBackend(snmp_config, logger)
        case SNMPBackendEnum.PYSNMP:
            from .inline import PySNMPBackend

            return PySNMPBackend(snmp_config, logger)
        case _:
            assert_never(snmp_config.snmp_backend)
