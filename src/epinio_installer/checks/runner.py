# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/epinio_installer/checks/runner.py

from __future__ import annotations

import logging
from typing import Optional

from epinio_installer.config.models import ActionType, Component, ComponentAction
from epinio_installer.k8s.client import ClusterClient
from epinio_installer.observers.dispatcher import EventBus
from epinio_installer.observers.events import (
    CheckStarted,
    CheckSucceeded,
    CheckTimedOut,
    new_ctx,
    stamp,
)
from epinio_installer.utils.execution import ExecutionContext

log = logging.getLogger("epinio_installer")


class CheckTimeoutError(TimeoutError):
    pass


class UnknownCheckError(ValueError):
    pass


class CheckRunner:
    """
    Blocks until a component's readiness check holds. All check types share
    one timeout.
    """

    def __init__(
        self,
        cluster: ClusterClient,
        timeout_seconds: float,
        bus: Optional[EventBus] = None,
        run_ctx: Optional[dict] = None,
    ):
        self.cluster = cluster
        self.timeout_seconds = timeout_seconds
        self.bus = bus or EventBus()
        self.run_ctx = run_ctx or new_ctx(env="dev", context=None)

    @staticmethod
    def namespace_for(component: Component, check: ComponentAction) -> str:
        return check.namespace or component.namespace

    def run(self, ctx: ExecutionContext, component: Component, check: ComponentAction) -> None:
        namespace = self.namespace_for(component, check)
        kind = check.type.value

        self.bus.emit(
            CheckStarted(
                id=component.id,
                check=kind,
                namespace=namespace,
                selector=check.selector,
                timeout_s=int(self.timeout_seconds),
                **stamp(self.run_ctx),
            )
        )
        log.info("[check] %s: waiting for %s '%s' in '%s'", component.id, kind, check.selector, namespace)

        try:
            if check.type == ActionType.POD:
                self.cluster.wait_for_pod_ready(ctx, namespace, check.selector, self.timeout_seconds)
            elif check.type == ActionType.LOADBALANCER:
                self.cluster.wait_for_loadbalancer(ctx, namespace, check.selector, self.timeout_seconds)
            elif check.type == ActionType.CRD:
                self.cluster.wait_for_crd(ctx, check.selector, self.timeout_seconds)
            elif check.type == ActionType.JOB:
                self.cluster.wait_for_job_completed(ctx, namespace, check.selector, self.timeout_seconds)
            else:  # pragma: no cover - pydantic rejects other values
                raise UnknownCheckError(f"unknown check type '{check.type}' on component '{component.id}'")
        except TimeoutError as e:
            self.bus.emit(
                CheckTimedOut(id=component.id, check=kind, timeout_s=int(self.timeout_seconds), **stamp(self.run_ctx))
            )
            raise CheckTimeoutError(f"{component.id}: {e}") from e

        self.bus.emit(CheckSucceeded(id=component.id, check=kind, **stamp(self.run_ctx)))
