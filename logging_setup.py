# -*- coding: utf-8 -*-
########################
# logging_setup.py
########################
# Purpose:
# - Configure python logging once for the command line entry point.
#
# Design notes:
# - Library modules only call logging.getLogger(__name__). Only spopt.py calls setup_logging().
# - Does nothing when the root logger already has handlers (tests, embedding applications).
#
########################
# Interfaces:
# Public functions:
# - setup_logging(args: Any = None, *, name: str = "spopt") -> None
#
########################

from __future__ import annotations

import logging
import os
from typing import Any, Optional


def _parse_level(text: Optional[str]) -> Optional[int]:
    if not text:
        return None
    value = str(text).strip().upper()
    if not value:
        return None
    mapping = {
        "CRITICAL": logging.CRITICAL,
        "ERROR": logging.ERROR,
        "WARNING": logging.WARNING,
        "WARN": logging.WARNING,
        "INFO": logging.INFO,
        "DEBUG": logging.DEBUG,
        "NOTSET": logging.NOTSET,
    }
    return mapping.get(value)


def setup_logging(args: Any = None, *, name: str = "spopt") -> None:
    """Configure python logging once.

    Priority (highest first):
    - env SPOPT_LOG_LEVEL
    - CLI flags: --quiet / --debug (if present on args)
    - default: WARNING
    """

    root = logging.getLogger()
    if root.handlers:
        return

    env_level = _parse_level(os.environ.get("SPOPT_LOG_LEVEL"))

    quiet = bool(getattr(args, "quiet", False)) if args is not None else False
    debug = bool(getattr(args, "debug", False)) if args is not None else False

    level = logging.WARNING
    if quiet:
        level = logging.ERROR
    if debug:
        level = logging.DEBUG
    if env_level is not None:
        level = int(env_level)

    fmt = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    datefmt = "%H:%M:%S"

    logging.basicConfig(level=level, format=fmt, datefmt=datefmt)

    logging.getLogger(name).debug(
        "logging initialized (level=%s, quiet=%s, debug=%s)",
        logging.getLevelName(level),
        quiet,
        debug,
    )
