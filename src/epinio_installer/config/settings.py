# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/epinio_installer/config/settings.py

from __future__ import annotations
from dataclasses import dataclass, replace
import os
from typing import Optional

# Base durations, all but retry_delay are scaled by the timeout multiplier.
DEPLOYMENT_TIMEOUT_SECONDS = 180
HELM_TIMEOUT_SECONDS = 600
RETRY_DELAY_SECONDS = 5


@dataclass(frozen=True)
class InstallerSettings:
    manifest: str = "epinio-install.yml"
    kubeconfig: Optional[str] = None
    kube_context: Optional[str] = None
    timeout_multiplier: int = 1
    retry_delay_seconds: float = RETRY_DELAY_SECONDS
    max_workers: Optional[int] = None
    environment: str = "dev"

    def __post_init__(self):
        if self.max_workers is not None and self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.timeout_multiplier < 1:
            raise ValueError(f"timeout_multiplier must be at least 1, got {self.timeout_multiplier}")

    @property
    def check_timeout_seconds(self) -> int:
        return DEPLOYMENT_TIMEOUT_SECONDS * self.timeout_multiplier

    @property
    def helm_timeout_seconds(self) -> int:
        return HELM_TIMEOUT_SECONDS * self.timeout_multiplier

    def with_overrides(self, **overrides) -> "InstallerSettings":
        # CLI flags left unset arrive as None and must not clobber env values
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_settings() -> InstallerSettings:
    # sensible defaults for dev; override via env
    return InstallerSettings(
        manifest=os.getenv("EPINIO_MANIFEST", "epinio-install.yml"),
        kubeconfig=os.getenv("KUBECONFIG") or None,
        kube_context=os.getenv("EPINIO_KUBE_CONTEXT") or None,
        timeout_multiplier=int(os.getenv("EPINIO_TIMEOUT_MULTIPLIER", "1")),
        retry_delay_seconds=float(os.getenv("EPINIO_RETRY_DELAY", str(RETRY_DELAY_SECONDS))),
        max_workers=int(os.environ["EPINIO_MAX_WORKERS"]) if os.getenv("EPINIO_MAX_WORKERS") else None,
        environment=os.getenv("EPINIO_ENVIRONMENT", "dev"),
    )
