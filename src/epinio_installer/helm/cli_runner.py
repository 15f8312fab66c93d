# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import logging
import subprocess
from typing import List

from .errors import HelmError, HelmSourceError
from ..config.models import Component

log = logging.getLogger("epinio_installer")

RELEASE_NOT_FOUND = "release: not found"


class HelmCliRunner:
    """
    A pragmatic wrapper around the `helm` CLI for helm-type components.
    - install is always 'upgrade --install', so re-running an install is safe.
    - uninstall of a missing release counts as done.
    - Testable by mocking subprocess.run.
    """

    def __init__(
        self,
        kube_context: str | None = None,
        kubeconfig: str | None = None,
        timeout_seconds: int | None = None,
        env: dict[str, str] | None = None,
    ):
        self.kube_context = kube_context
        self.kubeconfig = kubeconfig
        self.timeout_seconds = timeout_seconds
        self.env = env or {}

    # ------------------------- internal helpers -------------------------

    def _base(self) -> list[str]:
        cmd = ["helm"]
        if self.kube_context:
            cmd += ["--kube-context", self.kube_context]
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        return cmd

    def _run(self, argv: List[str]) -> tuple[int, str]:
        """Run a helm command, returning (rc, combined stdout+stderr)."""
        log.info("[helm] $ %s", " ".join(argv))
        cp = subprocess.run(
            argv,
            check=False,
            text=True,
            capture_output=True,
            env=self.env or None,
        )
        out = (cp.stdout or "") + (cp.stderr or "")
        if out.strip():
            log.debug("[helm][exit %s]\n%s", cp.returncode, out.rstrip())
        return cp.returncode, out

    @staticmethod
    def release_name(component: Component) -> str:
        return component.source.name or component.id

    def chart_args(self, component: Component) -> list[str]:
        """
        Release name and chart reference for `helm upgrade --install`.

        Raises HelmSourceError unless exactly one of path, url or chart+url
        is set on the component's source.
        """
        source = component.source
        release = self.release_name(component)
        if source.is_path():
            return [release, source.path]
        if source.is_url():
            return [release, source.url]
        if source.is_helm_ref():
            args = [release, source.chart, "--repo", source.url]
            if source.version:
                args += ["--version", source.version]
            return args
        raise HelmSourceError(
            f"component '{component.id}' has no usable helm source: "
            "set exactly one of 'path', 'url', or 'chart' together with a repo 'url'"
        )

    @staticmethod
    def _namespace_args(component: Component) -> list[str]:
        return ["--namespace", component.namespace] if component.namespace else []

    # ------------------------- applier methods -------------------------

    def upgrade_install(self, component: Component) -> None:
        # validated before anything is spawned
        chart = self.chart_args(component)

        argv = (
            self._base()
            + ["upgrade", "--install"]
            + chart
            + self._namespace_args(component)
            + ["--create-namespace", "--wait"]
        )
        if self.timeout_seconds:
            argv += ["--timeout", f"{self.timeout_seconds}s"]
        for value in component.values:
            argv += ["--set", f"{value.name}={value.value}"]

        rc, out = self._run(argv)
        if rc != 0:
            raise HelmError(f"installing helm release '{component.id}' failed (rc={rc}):\n{out}")

    def uninstall(self, component: Component) -> None:
        argv = (
            self._base()
            + ["uninstall", self.release_name(component)]
            + self._namespace_args(component)
            + ["--wait"]
        )
        rc, out = self._run(argv)
        if rc == 0:
            return
        if RELEASE_NOT_FOUND in out:
            log.info("[helm] release '%s' already gone", self.release_name(component))
            return
        raise HelmError(f"uninstalling helm release '{component.id}' failed (rc={rc}):\n{out}")
