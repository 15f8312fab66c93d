# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid

@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single install/uninstall invocation
    env: str          # dev/staging/prod
    context: Optional[str]  # kube-context

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def new_ctx(env: str, context: Optional[str], run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": now(),
        "run_id": run_id or str(uuid.uuid4()),
        "env": env,
        "context": context,
    }


def stamp(ctx: Dict[str, Any]) -> Dict[str, Any]:
    """Copy of a run context with a fresh timestamp."""
    return {**ctx, "ts": now()}


# ----- Planner -----

@dataclass(frozen=True)
class PlanComputed(BaseEvent):
    order: List[str]

@dataclass(frozen=True)
class PlanFailed(BaseEvent):
    error: str


# ----- Per-component lifecycle -----

@dataclass(frozen=True)
class ComponentStarted(BaseEvent):
    id: str
    namespace: str
    type: str
    direction: str    # "install" | "uninstall"

@dataclass(frozen=True)
class ComponentSucceeded(BaseEvent):
    id: str
    duration_ms: int

@dataclass(frozen=True)
class ComponentFailed(BaseEvent):
    id: str
    error: str

@dataclass(frozen=True)
class ComponentRetry(BaseEvent):
    id: str
    attempt: int
    error: str

# ----- Readiness checks -----

@dataclass(frozen=True)
class CheckStarted(BaseEvent):
    id: str
    check: str
    namespace: str
    selector: str
    timeout_s: int

@dataclass(frozen=True)
class CheckSucceeded(BaseEvent):
    id: str
    check: str

@dataclass(frozen=True)
class CheckTimedOut(BaseEvent):
    id: str
    check: str
    timeout_s: int

# ----- Summary -----

@dataclass(frozen=True)
class WalkSummary(BaseEvent):
    direction: str
    done: int
    failed: int
    pending: int
    cancelled: bool
