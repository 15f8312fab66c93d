# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/epinio_installer/helm/errors.py
class HelmError(RuntimeError):
    """Base class for Helm-related failures."""

class HelmSourceError(HelmError, ValueError):
    """Raised when a component's source is not a usable chart reference."""
