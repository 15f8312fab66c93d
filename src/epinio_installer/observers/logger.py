# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging

from .events import BaseEvent


class LoggerObserver:
    """
    Writes every event into the run log as `[EVENT] Type: key=value, ...`.
    Debug only: the console observer and the executor already report failures.
    """

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def notify(self, event: BaseEvent) -> None:
        fields = ", ".join(f"{k}={v}" for k, v in event.dict().items() if k not in ("ts", "run_id"))
        self.logger.debug("[EVENT] %s: %s", type(event).__name__, fields)
