# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Set

from ..config.models import Component

# Observer bits
from ..observers.dispatcher import EventBus
from ..observers.events import PlanComputed, PlanFailed, new_ctx


class PlanError(ValueError):
    def __init__(self, message: str, plan: Optional[List[Component]] = None):
        super().__init__(message)
        self.plan = plan or []


class UnknownDependencyError(PlanError):
    pass


class CyclicDependencyError(PlanError):
    pass


def validate_dependencies(components: Sequence[Component]) -> None:
    ids: Set[str] = {c.id for c in components}
    for c in components:
        for d in c.needs:
            if d not in ids:
                raise UnknownDependencyError(
                    f"Component '{c.id}' needs unknown component '{d}'"
                )


def needers(components: Sequence[Component]) -> Dict[str, List[str]]:
    """Reverse edges: for every id, the ids of the components that need it."""
    out: Dict[str, List[str]] = {c.id: [] for c in components}
    for c in components:
        for d in c.needs:
            out.setdefault(d, []).append(c.id)
    return out


def build_plan(
    components: Sequence[Component],
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
) -> List[Component]:
    """
    Topological order of components (Kahn's algorithm) based on 'needs'.

    Only validates and orders, nothing is executed. Ties between independent
    components are broken by manifest order, but callers should not rely on
    any particular order among them.

    Raises CyclicDependencyError naming the leftover edges, with the partial
    plan attached. Emits PlanComputed / PlanFailed if an EventBus is provided.
    """
    ctx = run_ctx or new_ctx(env="dev", context=None)
    try:
        validate_dependencies(components)

        # edges still in the graph: id -> ids it needs
        graph: Dict[str, Set[str]] = {c.id: set(c.needs) for c in components if c.needs}
        reverse = needers(components)

        # set of all nodes with no incoming edge, in manifest order
        frontier: List[Component] = [c for c in components if c.id not in graph]
        by_id = {c.id: c for c in components}
        position = {c.id: i for i, c in enumerate(components)}
        plan: List[Component] = []

        while frontier:
            n = frontier.pop(0)
            plan.append(n)
            for m in reverse.get(n.id, []):
                deps = graph.get(m)
                if deps is None:
                    continue
                deps.discard(n.id)
                if not deps:
                    del graph[m]
                    frontier.append(by_id[m])
            frontier.sort(key=lambda c: position[c.id])

        if graph:
            edges = ", ".join(f"{m} -> {sorted(d)}" for m, d in sorted(graph.items()))
            raise CyclicDependencyError(f"cycle: has edges {edges}", plan=plan)

        if bus:
            bus.emit(PlanComputed(order=[c.id for c in plan], **ctx))
        return plan

    except Exception as e:
        if bus:
            bus.emit(PlanFailed(error=str(e), **ctx))
        raise
