# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/epinio_installer/logging/log.py

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

LOGGER_NAME = "epinio_installer"
LOG_DIR = Path(".epinio-installer") / "logs"

_FORMAT = "%(asctime)s | %(levelname)-7s | %(threadName)s | %(message)s"
_DATEFMT = "%Y-%m-%d %H:%M:%S"


def close_logging(name: str = LOGGER_NAME) -> None:
    """Detach and close every handler installed on `name`."""
    logger = logging.getLogger(name)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = LOGGER_NAME,
    verbose: bool = False,
) -> tuple[logging.Logger, str, Path]:
    """
    One log file per run with the full trace: every helm/kubectl command,
    its output, and every event. The console only gets warnings unless
    `verbose`, since progress is printed by the console observer.

    Returns the logger, the run id (shared with the event stream) and the
    log file path.
    """
    run_id = str(uuid.uuid4())
    base_dir = base_dir or Path.home() / LOG_DIR
    base_dir.mkdir(parents=True, exist_ok=True)
    started = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{name}-{started}-{run_id}.log"

    close_logging(name)
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    formatter = logging.Formatter(_FORMAT, datefmt=_DATEFMT)
    for handler, level in (
        (logging.FileHandler(log_path), logging.DEBUG),
        (logging.StreamHandler(), logging.DEBUG if verbose else logging.WARNING),
    ):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.info("=== epinio-installer run %s started ===", run_id)
    logger.info("log_file=%s", log_path)
    return logger, run_id, log_path
