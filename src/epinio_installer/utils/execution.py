# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

import threading
from dataclasses import dataclass, field

@dataclass(frozen=True)
class ExecutionContext:
    """
    controls how commands are executed and carries the cancellation signal
    shared by the executor and every worker of one run
    """

    dry_run: bool = False
    _cancel: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)

    def cancel(self) -> None:
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`, returning True early if the run was cancelled."""
        return self._cancel.wait(seconds)


class Cancelled(RuntimeError):
    """Raised by blocking waits when the run was cancelled."""
