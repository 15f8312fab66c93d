# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/epinio_installer/kube/kubectl.py

from __future__ import annotations

import logging
import os
import subprocess
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator

from jinja2 import Environment, StrictUndefined

from epinio_installer.config.models import Component
from epinio_installer.observers.dispatcher import EventBus
from epinio_installer.observers.events import ComponentRetry, new_ctx, stamp
from epinio_installer.utils.execution import ExecutionContext
from epinio_installer.utils.retry import is_retryable, retry

log = logging.getLogger("epinio_installer")

DELETE_IDEMPOTENT_MARKERS = ("not found", "no matches")


class KubectlError(RuntimeError):
    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        # what kubectl printed; retries are decided on this alone
        self.output = output


def render_template(component: Component) -> str:
    """
    Render a YAML component's file with its values exposed as `Values`,
    e.g. ``{{ Values.domain }}``. Go template references such as
    ``{{ .Values.domain }}`` are not Jinja and fail to render.
    """
    path = Path(component.source.path)
    text = path.read_text()
    env = Environment(autoescape=False, undefined=StrictUndefined, keep_trailing_newline=True)
    tmpl = env.from_string(text)
    return tmpl.render(Values=component.values_map())


class KubectlRunner:
    """
    kubectl apply/delete of yaml-type components.

    Files with values are rendered to a temp file first. Both operations
    retry with a fixed delay while kubectl's output looks transient, until
    they succeed or the run's ExecutionContext is cancelled.
    """

    def __init__(
        self,
        *,
        kubeconfig: str | None = None,
        kube_context: str | None = None,
        retry_delay: float = 5,
        sleep: Callable[[float], object] = time.sleep,
        bus: EventBus | None = None,
        run_ctx: dict | None = None,
    ):
        self.kubeconfig = kubeconfig
        self.kube_context = kube_context
        self.retry_delay = retry_delay
        self.sleep = sleep
        self.bus = bus
        self.run_ctx = run_ctx or new_ctx(env="dev", context=kube_context)

    def _base(self) -> list[str]:
        cmd = ["kubectl"]
        if self.kubeconfig:
            cmd += ["--kubeconfig", self.kubeconfig]
        if self.kube_context:
            cmd += ["--context", self.kube_context]
        return cmd

    def _run(self, args: list[str]) -> tuple[int, str]:
        """Returns (rc, combined stdout+stderr)."""
        argv = self._base() + args
        log.info("[kubectl] $ %s", " ".join(argv))
        cp = subprocess.run(argv, check=False, text=True, capture_output=True)
        out = (cp.stdout or "") + (cp.stderr or "")
        if out.strip():
            log.debug("[kubectl][exit %s]\n%s", cp.returncode, out.rstrip())
        return cp.returncode, out

    @contextmanager
    def _manifest_path(self, component: Component) -> Iterator[str]:
        if not component.values:
            yield component.source.path
            return

        rendered = render_template(component)
        fd, tmp = tempfile.mkstemp(prefix=f"epinio-{component.id}-", suffix=".yaml")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(rendered)
            yield tmp
        finally:
            os.remove(tmp)

    def _on_retry(self, component: Component, verb: str):
        def _log(attempt: int, exc: Exception) -> None:
            log.warning("[kubectl] retrying to %s %s (attempt %d): %s", verb, component.source.path, attempt, exc)
            if self.bus:
                self.bus.emit(ComponentRetry(id=component.id, attempt=attempt, error=str(exc), **stamp(self.run_ctx)))
        return _log

    def _with_retry(
        self,
        component: Component,
        verb: str,
        fn: Callable[[], None],
        ctx: ExecutionContext | None,
    ) -> None:
        # waiting on the run's context ends the retries once it is cancelled
        sleep = ctx.wait if ctx is not None else self.sleep
        retry(
            retries=None,
            delay=self.retry_delay,
            retry_on=(KubectlError,),
            retry_if=lambda exc: is_retryable(exc.output),
            on_retry=self._on_retry(component, verb),
            sleep=sleep,
        )(fn)()

    def apply(self, component: Component, ctx: ExecutionContext | None = None) -> None:
        with self._manifest_path(component) as path:
            args = ["apply", "--wait", "--filename", path]
            # providing the namespace errors if the yaml already defines a different one
            if component.namespace:
                args += ["--namespace", component.namespace]

            def _apply() -> None:
                rc, out = self._run(args)
                if rc != 0:
                    raise KubectlError(
                        f"applying YAML for '{component.id}' from '{component.source.path}' failed:\n{out}",
                        output=out,
                    )

            self._with_retry(component, "apply", _apply, ctx)

    def delete(self, component: Component, ctx: ExecutionContext | None = None) -> None:
        with self._manifest_path(component) as path:
            args = ["delete", "--wait", "--filename", path]
            if component.namespace:
                args += ["--namespace", component.namespace]

            def _delete() -> None:
                rc, out = self._run(args)
                if rc == 0:
                    return
                if any(marker in out for marker in DELETE_IDEMPOTENT_MARKERS):
                    log.info("[kubectl] resources of '%s' already gone", component.id)
                    return
                raise KubectlError(
                    f"deleting YAML for '{component.id}' from '{component.source.path}' failed:\n{out}",
                    output=out,
                )

            self._with_retry(component, "delete", _delete, ctx)
