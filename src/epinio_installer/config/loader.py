# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/epinio_installer/config/loader.py

import logging
import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import Manifest

log = logging.getLogger("epinio_installer")


class ManifestError(ValueError):
    """Raised when a manifest cannot be read or does not validate."""


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    raw = path.read_text()
    expanded = os.path.expandvars(raw)
    return yaml.safe_load(expanded) or {}


def load_manifest(path: str | Path) -> Manifest:
    """
    Load and validate an installation manifest.

    The file holds a top-level ``Components`` list. ``${ENV_VAR}``
    placeholders anywhere in the file are resolved at load time, so chart
    versions or domains can be injected from the environment.

    Raises ManifestError when the file is missing, is not YAML, or does not
    match the component schema. Dependency problems (unknown ids, cycles)
    are left to the planner.
    """
    path = Path(path)
    if not path.is_file():
        raise ManifestError(f"manifest not found: {path}")

    try:
        data = _load_yaml(path)
    except yaml.YAMLError as e:
        raise ManifestError(f"manifest {path} is not valid YAML: {e}") from e

    if not isinstance(data, dict):
        raise ManifestError(f"manifest {path} must be a mapping with a 'Components' list")

    try:
        manifest = Manifest.model_validate(data)
    except ValidationError as e:
        raise ManifestError(f"manifest {path} is invalid:\n{e}") from e

    log.debug("Loaded manifest %s with %d components: %s", path, len(manifest.components), manifest)
    return manifest
