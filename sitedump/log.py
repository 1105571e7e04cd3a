"""Logging setup: one ``sitedump`` logger, messages tagged with the site slug."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Union

LOGGER_NAME = "sitedump"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(site)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_root_logger(level: Union[int, str] = logging.INFO, log_file: Optional[Union[str, Path]] = None) -> logging.Logger:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    root_logger = logging.getLogger(LOGGER_NAME)
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    ch = logging.StreamHandler(stream=sys.stdout)
    ch.setLevel(level)
    ch.setFormatter(formatter)
    root_logger.addHandler(ch)
    if log_file is not None:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(formatter)
        root_logger.addHandler(fh)
    root_logger.propagate = False
    return root_logger


def get_site_logger(site_slug: str) -> logging.LoggerAdapter:
    logger = logging.getLogger(f"{LOGGER_NAME}.{site_slug}")
    return logging.LoggerAdapter(logger, extra={"site": site_slug})
