#!/usr/bin/env python3
"""
Logging setup for the resource-control benchmark orchestrator.

Console messages keep the "[INFO] ..." shape used throughout the tool.
Verbosity is the number of -v flags given on the command line.
"""

import logging
import sys

BASE_FORMAT = "[%(levelname)s] %(message)s"
VERBOSE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def verbosity_to_level(verbosity: int) -> int:
    """Map a -v count to a logging level."""
    if verbosity <= 0:
        return logging.INFO
    return logging.DEBUG


def setup_logging(verbosity: int = 0) -> None:
    """
    Configure the root logger.

    Args:
        verbosity: Number of -v flags (0: INFO, 1: DEBUG, 2+: DEBUG with
            timestamps and logger names)
    """
    fmt = VERBOSE_FORMAT if verbosity >= 2 else BASE_FORMAT
    logging.basicConfig(
        level=verbosity_to_level(verbosity),
        format=fmt,
        stream=sys.stderr,
        force=True,
    )
