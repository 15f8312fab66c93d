# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/epinio_installer/observers/console.py
from typing import Callable

from .events import (
    BaseEvent,
    CheckStarted,
    CheckTimedOut,
    ComponentFailed,
    ComponentRetry,
    ComponentStarted,
    ComponentSucceeded,
    PlanComputed,
    WalkSummary,
)


class ConsoleObserver:
    """Short human readable progress lines, one per lifecycle event."""

    def __init__(self, echo: Callable[[str], None] = print):
        self.echo = echo

    def notify(self, event: BaseEvent) -> None:
        line = self.format(event)
        if line:
            self.echo(line)

    def format(self, event: BaseEvent) -> str:
        if isinstance(event, PlanComputed):
            return "Planned order: " + ", ".join(event.order)
        if isinstance(event, ComponentStarted):
            verb = "Installing" if event.direction == "install" else "Removing"
            return f"  {verb} {event.id} ({event.type}) ..."
        if isinstance(event, ComponentSucceeded):
            return f"  ✓ {event.id} done in {event.duration_ms / 1000:.1f}s"
        if isinstance(event, ComponentRetry):
            return f"  ↻ {event.id} retry #{event.attempt}: {event.error.splitlines()[0] if event.error else ''}"
        if isinstance(event, ComponentFailed):
            return f"  ✗ {event.id} failed: {event.error}"
        if isinstance(event, CheckStarted):
            return f"    waiting for {event.check} '{event.selector}' in {event.namespace or '-'}"
        if isinstance(event, CheckTimedOut):
            return f"    {event.check} check for {event.id} timed out after {event.timeout_s}s"
        if isinstance(event, WalkSummary):
            status = "cancelled" if event.cancelled else ("failed" if event.failed else "ok")
            return f"{event.direction}: {status} (done={event.done} failed={event.failed} pending={event.pending})"
        return ""
