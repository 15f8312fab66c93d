# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Sequence

from ..config.models import Component
from .planner import validate_dependencies, needers

INSTALL = "install"
UNINSTALL = "uninstall"


class Scheduler:
    """
    Execution state of one walk: `running` and `done` per component id,
    guarded by a single lock that is never held while a component is applied.

    A component becomes eligible when everything it waits for is done. In the
    install direction it waits for its `needs`; uninstalling, it waits for its
    needers (the components that need it).
    """

    def __init__(self, components: Sequence[Component], direction: str = INSTALL):
        if direction not in (INSTALL, UNINSTALL):
            raise ValueError(f"unknown walk direction '{direction}'")
        validate_dependencies(components)
        self.direction = direction
        self.components = list(components)
        self._lock = threading.Lock()
        self._done: Dict[str, bool] = {c.id: False for c in self.components}
        self._running: Dict[str, bool] = {c.id: False for c in self.components}
        self._failed: Dict[str, BaseException] = {}

        if direction == INSTALL:
            self._waits_for = {c.id: list(c.needs) for c in self.components}
        else:
            reverse = needers(self.components)
            self._waits_for = {c.id: list(reverse.get(c.id, [])) for c in self.components}

    def _eligible(self, component_id: str) -> bool:
        if self._done[component_id] or self._running[component_id] or component_id in self._failed:
            return False
        return all(self._done[d] for d in self._waits_for[component_id])

    def has_eligible(self) -> bool:
        with self._lock:
            return any(self._eligible(c.id) for c in self.components)

    def take_eligible(self, limit: Optional[int] = None) -> List[Component]:
        """Mark eligible components running (at most `limit`) and return them, in manifest order."""
        with self._lock:
            ready = [c for c in self.components if self._eligible(c.id)]
            if limit is not None:
                ready = ready[:max(limit, 0)]
            for c in ready:
                self._running[c.id] = True
            return ready

    def mark_done(self, component_id: str) -> None:
        with self._lock:
            self._running[component_id] = False
            self._done[component_id] = True

    def mark_failed(self, component_id: str, error: BaseException) -> None:
        with self._lock:
            self._running[component_id] = False
            self._failed[component_id] = error

    def all_done(self) -> bool:
        with self._lock:
            return all(self._done.values())

    def in_flight(self) -> int:
        with self._lock:
            return sum(1 for r in self._running.values() if r)

    def failed(self) -> Dict[str, BaseException]:
        with self._lock:
            return dict(self._failed)

    def pending_ids(self) -> List[str]:
        with self._lock:
            return [
                c.id
                for c in self.components
                if not self._done[c.id] and not self._running[c.id] and c.id not in self._failed
            ]
