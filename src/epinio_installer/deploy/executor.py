# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from ..config.models import Component
from ..utils.execution import ExecutionContext
from .scheduler import INSTALL, UNINSTALL, Scheduler

# Observer bits
from ..observers.dispatcher import EventBus
from ..observers.events import (
    new_ctx,
    stamp,
    ComponentStarted,
    ComponentSucceeded,
    ComponentFailed,
    WalkSummary,
)

log = logging.getLogger("epinio_installer")

# How often the dispatch loop wakes up without a finished component, so a
# cancellation is noticed even while every worker is blocked.
CANCEL_POLL_SECONDS = 0.5


class Action(Protocol):
    def apply(self, ctx: ExecutionContext, component: Component) -> None: ...


class WalkError(RuntimeError):
    def __init__(self, result: "WalkResult"):
        super().__init__(result.describe())
        self.result = result


@dataclass
class WalkResult:
    direction: str
    applied: List[str] = field(default_factory=list)          # in completion order
    failed: Dict[str, BaseException] = field(default_factory=dict)
    pending: List[str] = field(default_factory=list)          # never started
    cancelled: bool = False
    first_failure: Optional[Tuple[str, BaseException]] = None

    @property
    def ok(self) -> bool:
        return not self.failed and not self.pending and not self.cancelled

    def summary(self) -> str:
        return f"DONE={len(self.applied)} FAILED={len(self.failed)} PENDING={len(self.pending)}"

    def describe(self) -> str:
        if self.ok:
            return f"{self.direction} complete: {self.summary()}"
        parts = [f"{self.direction} incomplete: {self.summary()}"]
        if self.first_failure:
            cid, err = self.first_failure
            parts.append(f"first failure at component '{cid}': {err}")
        if self.cancelled:
            parts.append("cancelled")
        if self.pending:
            parts.append("not started: " + ", ".join(self.pending))
        return "; ".join(parts)

    def raise_for_status(self) -> None:
        if not self.ok:
            raise WalkError(self)


def _walk(
    ctx: ExecutionContext,
    components: Sequence[Component],
    action: Action,
    direction: str,
    bus: Optional[EventBus],
    run_ctx: Optional[dict],
    fail_fast: bool,
    max_workers: Optional[int],
) -> WalkResult:
    bus = bus or EventBus()
    run_ctx = run_ctx or new_ctx(env="dev", context=None)
    if max_workers is not None and max_workers < 1:
        raise ValueError(f"max_workers must be at least 1, got {max_workers}")
    scheduler = Scheduler(components, direction)

    # workers report (id, error-or-None) here once their state is recorded
    finished: "queue.Queue[Tuple[str, Optional[BaseException]]]" = queue.Queue()
    threads: List[threading.Thread] = []
    result = WalkResult(direction=direction)
    stopping = False

    def worker(c: Component) -> None:
        t0 = time.time()
        bus.emit(ComponentStarted(id=c.id, namespace=c.namespace, type=c.type.value, direction=direction, **stamp(run_ctx)))
        try:
            action.apply(ctx, c)
        except Exception as e:
            log.error("[%s] %s failed: %s", direction, c.id, e, exc_info=log.isEnabledFor(logging.DEBUG))
            scheduler.mark_failed(c.id, e)
            bus.emit(ComponentFailed(id=c.id, error=str(e), **stamp(run_ctx)))
            finished.put((c.id, e))
            return
        scheduler.mark_done(c.id)
        duration_ms = int((time.time() - t0) * 1000)
        log.info("[%s] %s done (%d ms)", direction, c.id, duration_ms)
        bus.emit(ComponentSucceeded(id=c.id, duration_ms=duration_ms, **stamp(run_ctx)))
        finished.put((c.id, None))

    def record(cid: str, err: Optional[BaseException]) -> None:
        nonlocal stopping
        if err is None:
            result.applied.append(cid)
            return
        if result.first_failure is None:
            result.first_failure = (cid, err)
        if fail_fast and not stopping:
            log.warning("[%s] not starting new components after failure of %s", direction, cid)
            stopping = True

    while True:
        if ctx.cancelled and not result.cancelled:
            log.warning("[%s] cancelled, waiting for %d running components", direction, scheduler.in_flight())
            result.cancelled = True
            stopping = True

        if not stopping:
            limit = None if max_workers is None else max_workers - scheduler.in_flight()
            for c in scheduler.take_eligible(limit):
                log.debug("[%s] dispatching %s", direction, c.id)
                t = threading.Thread(target=worker, args=(c,), name=f"{direction}-{c.id}")
                threads.append(t)
                t.start()

        if scheduler.all_done():
            break
        # nothing running and nothing startable: a failure, cancellation or cycle blocks the rest
        if scheduler.in_flight() == 0 and (stopping or not scheduler.has_eligible()):
            break

        try:
            cid, err = finished.get(timeout=CANCEL_POLL_SECONDS)
        except queue.Empty:
            continue
        except KeyboardInterrupt:
            ctx.cancel()
            continue
        record(cid, err)

    for t in threads:
        t.join()
    while True:
        try:
            cid, err = finished.get_nowait()
        except queue.Empty:
            break
        record(cid, err)

    result.failed = scheduler.failed()
    result.pending = scheduler.pending_ids()

    bus.emit(
        WalkSummary(
            direction=direction,
            done=len(result.applied),
            failed=len(result.failed),
            pending=len(result.pending),
            cancelled=result.cancelled,
            **stamp(run_ctx),
        )
    )
    log.info("[%s] %s", direction, result.describe())
    return result


def walk(
    ctx: ExecutionContext,
    components: Sequence[Component],
    action: Action,
    *,
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
    fail_fast: bool = True,
    max_workers: Optional[int] = None,
) -> WalkResult:
    """
    Apply `action` to every component, concurrently, starting a component
    only once all the components it needs are done.

    Returns after every started component finished. A failure is recorded in
    the result; with fail_fast no further components are started after it.
    Cancelling `ctx` also stops new starts.
    """
    return _walk(ctx, components, action, INSTALL, bus, run_ctx, fail_fast, max_workers)


def reverse_walk(
    ctx: ExecutionContext,
    components: Sequence[Component],
    action: Action,
    *,
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
    fail_fast: bool = True,
    max_workers: Optional[int] = None,
) -> WalkResult:
    """
    Like walk, but in reverse dependency order: a component is started only
    once every component that needs it is done.
    """
    return _walk(ctx, components, action, UNINSTALL, bus, run_ctx, fail_fast, max_workers)
