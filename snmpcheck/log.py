#!/usr/bin/env python3
# Copyright (C) 2019 Checkmk GmbH - License: GNU General Public License v2
# This file is part of Checkmk (https://checkmk.com). It is subject to the terms and
# conditions defined in the file COPYING, which is part of this source code package.

import logging
import sys
from typing import IO

# Just for reference, the predefined logging levels:
#
# syslog/CMC    Python         added to Python
# --------------------------------------------
# crit   2      CRITICAL 50
# err    3      ERROR    40
# warn   4      WARNING  30                 <= default level in Python
# info   6      INFO     20
#                              VERBOSE  15
# debug  7      DEBUG    10

# We need an additional log level between INFO and DEBUG to reflect the
# -v and -vv options of the checks.
VERBOSE = 15
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("snmpcheck")


def get_formatter(
    format_str: str = "%(asctime)s [%(levelno)s] [%(name)s %(process)d] %(message)s",
) -> logging.Formatter:
    """Returns a new message formater instance that uses the standard
    log format by default. You can also set another format if you like."""
    return logging.Formatter(format_str)


def clear_console_logging() -> None:
    logger.handlers[:] = []
    logger.addHandler(logging.NullHandler())
    logger.setLevel(logging.INFO)


# Set default logging handler to avoid "No handler found" warnings.
clear_console_logging()


def setup_console_logging(stream: IO[str] | None = None) -> None:
    """Write all log messages to the console without date/time or logger name.

    The check result is written to stdout and parsed by the monitoring core, so
    the log lines go to stderr unless another stream is given.
    """
    setup_logging_handler(sys.stderr if stream is None else stream, get_formatter("%(message)s"))


def setup_logging_handler(stream: IO[str], formatter: logging.Formatter) -> None:
    """This method enables all log messages to be written to the given
    stream file object."""
    handler = logging.StreamHandler(stream=stream)
    handler.setFormatter(formatter)

    del logger.handlers[:]  # Remove all previously existing handlers
    logger.addHandler(handler)


def verbosity_to_log_level(verbosity: int) -> int:
    """Values for "verbosity":

      0: enables INFO and above
      1: enables VERBOSE and above
      2: enables DEBUG and above (ALL messages)

    >>> verbosity_to_log_level(1) == VERBOSE
    True
    """
    if verbosity == 0:
        return logging.INFO
    if verbosity == 1:
        return VERBOSE
    if verbosity == 2:
        return logging.DEBUG
    raise ValueError()
