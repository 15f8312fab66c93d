# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/epinio_installer/cli/app.py
from __future__ import annotations

import platform
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import typer

from epinio_installer.checks.runner import CheckRunner
from epinio_installer.config.loader import ManifestError, load_manifest
from epinio_installer.config.models import Component, Manifest
from epinio_installer.config.settings import InstallerSettings, load_settings
from epinio_installer.deploy.actions import DryRun, Install, Uninstall
from epinio_installer.deploy.executor import WalkResult, reverse_walk, walk
from epinio_installer.deploy.planner import PlanError, build_plan
from epinio_installer.helm.cli_runner import HelmCliRunner
from epinio_installer.k8s.client import ClusterClient
from epinio_installer.kube.kubectl import KubectlRunner
from epinio_installer.kube.namespaces import NamespaceApplier
from epinio_installer.logging.log import init_logging
from epinio_installer.observers.console import ConsoleObserver
from epinio_installer.observers.dispatcher import EventBus
from epinio_installer.observers.jsonfile import JsonFileObserver
from epinio_installer.observers.logger import LoggerObserver
from epinio_installer.observers.events import new_ctx
from epinio_installer.utils.execution import ExecutionContext
from epinio_installer.version import __version__


# ------------------------------------------------------------------------------
# CLI setup
# ------------------------------------------------------------------------------

app = typer.Typer(help="Epinio Installer: installs and removes the platform components of a manifest")

REQUIRED_COMMANDS = ("kubectl", "helm")

ManifestOption = typer.Option(
    None, "--manifest", "-m", envvar="EPINIO_MANIFEST", help="Path of the installation manifest"
)
KubeconfigOption = typer.Option(
    None, "--kubeconfig", "-c", envvar="KUBECONFIG", help="Path to a kubeconfig, not required in-cluster"
)
ContextOption = typer.Option(None, "--context", help="Kubernetes context to use")
TimeoutMultiplierOption = typer.Option(
    None, "--timeout-multiplier", envvar="EPINIO_TIMEOUT_MULTIPLIER", help="Multiply timeouts by this factor"
)
DryRunOption = typer.Option(False, "--dry-run", help="Walk the manifest without touching the cluster")
DebugOption = typer.Option(False, "--debug", help="Verbose console logging")
SkipOption = typer.Option(
    None, "--skip", help="Leave out a component, e.g. one that is already installed (repeatable)"
)


@dataclass
class Run:
    settings: InstallerSettings
    bus: EventBus
    run_ctx: dict
    components: List[Component]


def check_dependencies() -> None:
    """Fails unless every external command the installer shells out to is on PATH."""
    missing = [name for name in REQUIRED_COMMANDS if shutil.which(name) is None]
    for name in missing:
        typer.secho(f"Not found: {name}", fg=typer.colors.RED, err=True)
    if missing:
        typer.secho("please check your PATH, some of our dependencies were not found", err=True)
        raise typer.Exit(code=1)


def _without(m: Manifest, skip: Optional[List[str]]) -> Manifest:
    """Drop skipped components; whatever needed them no longer waits for them."""
    for cid in skip or []:
        if cid not in m.ids():
            raise ManifestError(f"cannot skip unknown component '{cid}'")
        m = m.without(cid)
    return m


def _start(
    *,
    manifest: Optional[str],
    skip: Optional[List[str]],
    kubeconfig: Optional[str],
    context: Optional[str],
    timeout_multiplier: Optional[int],
    debug: bool,
) -> Run:
    try:
        settings = load_settings().with_overrides(
            manifest=manifest,
            kubeconfig=kubeconfig,
            kube_context=context,
            timeout_multiplier=timeout_multiplier,
        )
    except ValueError as e:
        typer.secho(f"Invalid settings: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    logger, run_id, log_path = init_logging(verbose=debug)
    logger.debug("settings: %s", settings)

    typer.echo(f"  Run ID   : {run_id}")
    typer.echo(f"  Logs     : {log_path}")
    typer.echo(f"  Manifest : {settings.manifest}")
    typer.echo("")

    bus = EventBus(
        observers=[
            ConsoleObserver(echo=typer.echo),
            LoggerObserver(logger),
            JsonFileObserver(log_path.with_suffix(".jsonl")),
        ]
    )
    run_ctx = new_ctx(env=settings.environment, context=settings.kube_context, run_id=run_id)

    try:
        m = _without(load_manifest(settings.manifest), skip)
        components = build_plan(m.components, bus=bus, run_ctx=run_ctx)
    except (ManifestError, PlanError) as e:
        typer.secho(f"Invalid manifest: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    return Run(settings=settings, bus=bus, run_ctx=run_ctx, components=components)


def _appliers(run: Run) -> tuple[HelmCliRunner, KubectlRunner, NamespaceApplier, ClusterClient]:
    s = run.settings
    cluster = ClusterClient.from_kubeconfig(s.kubeconfig, s.kube_context)
    helm = HelmCliRunner(kube_context=s.kube_context, kubeconfig=s.kubeconfig, timeout_seconds=s.helm_timeout_seconds)
    kubectl = KubectlRunner(
        kubeconfig=s.kubeconfig,
        kube_context=s.kube_context,
        retry_delay=s.retry_delay_seconds,
        bus=run.bus,
        run_ctx=run.run_ctx,
    )
    return helm, kubectl, NamespaceApplier(cluster), cluster


def _finish(result: WalkResult) -> None:
    typer.echo("")
    if result.ok:
        typer.secho(result.describe(), fg=typer.colors.GREEN)
        return
    typer.secho(result.describe(), fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


# ------------------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------------------

@app.command()
def install(
    manifest: Optional[str] = ManifestOption,
    kubeconfig: Optional[str] = KubeconfigOption,
    context: Optional[str] = ContextOption,
    timeout_multiplier: Optional[int] = TimeoutMultiplierOption,
    dry_run: bool = DryRunOption,
    debug: bool = DebugOption,
    skip: Optional[List[str]] = SkipOption,
):
    """Install every component of the manifest, in dependency order."""
    typer.secho("Epinio installation started", bold=True)
    run = _start(manifest=manifest, skip=skip, kubeconfig=kubeconfig, context=context,
                 timeout_multiplier=timeout_multiplier, debug=debug)
    ctx = ExecutionContext(dry_run=dry_run)

    if dry_run:
        action = DryRun()
    else:
        check_dependencies()
        helm, kubectl, namespaces, cluster = _appliers(run)
        checks = CheckRunner(cluster, run.settings.check_timeout_seconds, bus=run.bus, run_ctx=run.run_ctx)
        action = Install(helm=helm, kubectl=kubectl, namespaces=namespaces, checks=checks)

    result = walk(ctx, run.components, action, bus=run.bus, run_ctx=run.run_ctx,
                  max_workers=run.settings.max_workers)
    _finish(result)


@app.command()
def uninstall(
    manifest: Optional[str] = ManifestOption,
    kubeconfig: Optional[str] = KubeconfigOption,
    context: Optional[str] = ContextOption,
    timeout_multiplier: Optional[int] = TimeoutMultiplierOption,
    dry_run: bool = DryRunOption,
    debug: bool = DebugOption,
    skip: Optional[List[str]] = SkipOption,
):
    """Remove every component of the manifest, dependents first."""
    typer.secho("Epinio uninstall started", bold=True)
    run = _start(manifest=manifest, skip=skip, kubeconfig=kubeconfig, context=context,
                 timeout_multiplier=timeout_multiplier, debug=debug)
    ctx = ExecutionContext(dry_run=dry_run)

    if dry_run:
        action = DryRun()
    else:
        check_dependencies()
        helm, kubectl, namespaces, _ = _appliers(run)
        action = Uninstall(helm=helm, kubectl=kubectl, namespaces=namespaces)

    result = reverse_walk(ctx, run.components, action, bus=run.bus, run_ctx=run.run_ctx,
                          max_workers=run.settings.max_workers)
    _finish(result)


@app.command()
def plan(
    manifest: Path = typer.Option(
        Path("epinio-install.yml"), "--manifest", "-m", envvar="EPINIO_MANIFEST", help="Path of the installation manifest"
    ),
    skip: Optional[List[str]] = SkipOption,
):
    """Validate the manifest and print the planned installation order."""
    try:
        m = _without(load_manifest(manifest), skip)
        ordered = build_plan(m.components)
    except (ManifestError, PlanError) as e:
        typer.secho(f"Invalid manifest: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)

    for i, c in enumerate(ordered, start=1):
        needs = f" (needs {', '.join(c.needs)})" if c.needs else ""
        typer.echo(f"{i:>2}. {c.id} [{c.type.value}]{needs}")


@app.command()
def version():
    """Print the version number."""
    typer.echo(f"Epinio Installer Version: {__version__}")
    typer.echo(f"Python Version: {platform.python_version()}")


def main() -> None:
    app()


if __name__ == "__main__":
    app()
