# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/epinio_installer/k8s/client.py
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, Optional

from kubernetes import client, config
from kubernetes.client.rest import ApiException

from epinio_installer.utils.execution import Cancelled, ExecutionContext

log = logging.getLogger("epinio_installer")

POLL_INTERVAL_SECONDS = 2


def _condition_true(obj: Any, kind: str) -> bool:
    conditions = getattr(getattr(obj, "status", None), "conditions", None) or []
    return any(c.type == kind and c.status == "True" for c in conditions)


class ClusterClient:
    """
    The slice of the Kubernetes API the installer needs: namespace CRUD and
    blocking waits for pods, load balancers, CRDs and jobs.

    The typed API objects can be injected, which is how the tests run
    without a cluster.
    """

    def __init__(
        self,
        core: Any = None,
        batch: Any = None,
        extensions: Any = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.core = core if core is not None else client.CoreV1Api()
        self.batch = batch if batch is not None else client.BatchV1Api()
        self.extensions = extensions if extensions is not None else client.ApiextensionsV1Api()
        self.poll_interval = poll_interval
        self.clock = clock

    @classmethod
    def from_kubeconfig(cls, kubeconfig: Optional[str] = None, kube_context: Optional[str] = None) -> "ClusterClient":
        if kubeconfig or kube_context:
            config.load_kube_config(config_file=kubeconfig, context=kube_context)
        else:
            try:
                config.load_kube_config()
            except config.ConfigException:
                config.load_incluster_config()
        return cls()

    # ------------------------- namespaces -------------------------

    def create_namespace(self, name: str, labels: Dict[str, str], annotations: Dict[str, str]) -> Any:
        body = client.V1Namespace(
            metadata=client.V1ObjectMeta(name=name, labels=labels or None, annotations=annotations or None)
        )
        return self.core.create_namespace(body=body)

    def get_namespace(self, name: str) -> Any:
        return self.core.read_namespace(name=name)

    def update_namespace(self, namespace: Any) -> Any:
        # replace carries the resourceVersion we read, so concurrent edits conflict instead of being lost
        return self.core.replace_namespace(name=namespace.metadata.name, body=namespace)

    def delete_namespace(self, name: str) -> None:
        self.core.delete_namespace(name=name)

    # ------------------------- waits -------------------------

    def _poll(
        self,
        ctx: ExecutionContext,
        ready: Callable[[], bool],
        timeout_seconds: float,
        what: str,
    ) -> None:
        deadline = self.clock() + timeout_seconds
        while True:
            if ctx.cancelled:
                raise Cancelled(f"cancelled while waiting for {what}")
            if ready():
                return
            if self.clock() >= deadline:
                raise TimeoutError(f"timed out after {timeout_seconds}s waiting for {what}")
            ctx.wait(self.poll_interval)

    def wait_for_pod_ready(self, ctx: ExecutionContext, namespace: str, selector: str, timeout_seconds: float) -> None:
        def ready() -> bool:
            pods = self.core.list_namespaced_pod(namespace=namespace, label_selector=selector)
            return any(_condition_true(p, "Ready") for p in pods.items)

        self._poll(ctx, ready, timeout_seconds, f"pod '{selector}' in '{namespace}' to be ready")

    def wait_for_loadbalancer(self, ctx: ExecutionContext, namespace: str, selector: str, timeout_seconds: float) -> None:
        def ready() -> bool:
            services = self.core.list_namespaced_service(namespace=namespace, label_selector=selector)
            for svc in services.items:
                lb = getattr(svc.status, "load_balancer", None)
                for ingress in (getattr(lb, "ingress", None) or []):
                    if ingress.ip or ingress.hostname:
                        return True
            return False

        self._poll(ctx, ready, timeout_seconds, f"service '{selector}' in '{namespace}' to get a load balancer")

    def wait_for_crd(self, ctx: ExecutionContext, name: str, timeout_seconds: float) -> None:
        def ready() -> bool:
            try:
                crd = self.extensions.read_custom_resource_definition(name=name)
            except ApiException as e:
                if e.status == 404:
                    return False
                raise
            return _condition_true(crd, "Established")

        self._poll(ctx, ready, timeout_seconds, f"CRD '{name}' to be established")

    def wait_for_job_completed(self, ctx: ExecutionContext, namespace: str, selector: str, timeout_seconds: float) -> None:
        """`selector` is a job name, or a label selector when it contains '='."""

        def ready() -> bool:
            if "=" in selector:
                jobs = self.batch.list_namespaced_job(namespace=namespace, label_selector=selector).items
                return bool(jobs) and all(_condition_true(j, "Complete") for j in jobs)
            try:
                job = self.batch.read_namespaced_job(name=selector, namespace=namespace)
            except ApiException as e:
                if e.status == 404:
                    return False
                raise
            return _condition_true(job, "Complete")

        self._poll(ctx, ready, timeout_seconds, f"job '{selector}' in '{namespace}' to complete")
