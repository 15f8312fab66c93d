# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/epinio_installer/deploy/actions.py

from __future__ import annotations

import logging
import threading
from typing import List

from ..checks.runner import CheckRunner
from ..config.models import Component, ComponentType
from ..helm.cli_runner import HelmCliRunner
from ..kube.kubectl import KubectlRunner
from ..kube.namespaces import NamespaceApplier
from ..utils.execution import ExecutionContext

log = logging.getLogger("epinio_installer")


class UnknownComponentTypeError(ValueError):
    pass


class Install:
    """pre-deploy checks, then the applier for the component's type, then wait-complete checks"""

    def __init__(
        self,
        *,
        helm: HelmCliRunner,
        kubectl: KubectlRunner,
        namespaces: NamespaceApplier,
        checks: CheckRunner,
    ):
        self.helm = helm
        self.kubectl = kubectl
        self.namespaces = namespaces
        self.checks = checks

    def apply(self, ctx: ExecutionContext, component: Component) -> None:
        for check in component.pre_deploy:
            self.checks.run(ctx, component, check)

        if component.type == ComponentType.HELM:
            self.helm.upgrade_install(component)
        elif component.type == ComponentType.YAML:
            self.kubectl.apply(component, ctx)
        elif component.type == ComponentType.NAMESPACE:
            # an existing namespace is merged into, not an error
            self.namespaces.apply(component)
        else:  # pragma: no cover - pydantic rejects other values
            raise UnknownComponentTypeError(f"component '{component.id}' has unknown type '{component.type}'")

        for check in component.wait_complete:
            self.checks.run(ctx, component, check)


class Uninstall:
    """delete through the component's applier; removal has no readiness checks"""

    def __init__(
        self,
        *,
        helm: HelmCliRunner,
        kubectl: KubectlRunner,
        namespaces: NamespaceApplier,
    ):
        self.helm = helm
        self.kubectl = kubectl
        self.namespaces = namespaces

    def apply(self, ctx: ExecutionContext, component: Component) -> None:
        if component.type == ComponentType.HELM:
            self.helm.uninstall(component)
        elif component.type == ComponentType.YAML:
            self.kubectl.delete(component, ctx)
        elif component.type == ComponentType.NAMESPACE:
            self.namespaces.delete(component)
        else:  # pragma: no cover
            raise UnknownComponentTypeError(f"component '{component.id}' has unknown type '{component.type}'")


class DryRun:
    """Records the order components are visited in; touches nothing."""

    def __init__(self):
        self._lock = threading.Lock()
        self.visited: List[str] = []

    def apply(self, ctx: ExecutionContext, component: Component) -> None:
        log.info("[dry-run] %s (%s) needs=%s", component.id, component.type.value, component.needs)
        with self._lock:
            self.visited.append(component.id)
