"""Cluster spec file loading with validation.

SECURITY: File size is checked before reading. Input validation is
performed at the boundary.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES
from .models import ClusterSpec

logger = logging.getLogger(__name__)

SPEC_KIND = "ManagedCluster"


class SpecLoadError(Exception):
    """Raised when spec loading or validation fails."""

    pass


def load_cluster_spec(spec_path: Path) -> ClusterSpec:
    """Load and validate a managed cluster spec from YAML.

    Accepts either the spec fields at the top level or a Kubernetes-style
    document with apiVersion/kind/metadata/spec, in which case only the
    spec section is used. If metadata.name is set and spec.name is not,
    the metadata name is used as the cluster name.

    Args:
        spec_path: Path to the YAML file.

    Returns:
        Validated ClusterSpec.

    Raises:
        SpecLoadError: If the spec cannot be loaded or fails validation.
    """
    if not spec_path.exists():
        raise SpecLoadError(f"Spec file not found: {spec_path}")

    try:
        file_size = spec_path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat spec file {spec_path}: {e}") from e

    if file_size > MAX_SPEC_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Spec file exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {spec_path}"
        )

    try:
        content = spec_path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read spec file {spec_path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {spec_path}: {e}") from e

    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Spec file must contain a YAML mapping: {spec_path}")

    if "apiVersion" in raw_data and "spec" in raw_data:
        kind = raw_data.get("kind")
        if kind is not None and kind != SPEC_KIND:
            raise SpecLoadError(f"Expected kind {SPEC_KIND}, got {kind}: {spec_path}")

        spec_data = raw_data.get("spec") or {}
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {spec_path}")

        metadata = raw_data.get("metadata") or {}
        if isinstance(metadata, dict) and metadata.get("name") and "name" not in spec_data:
            spec_data = {**spec_data, "name": metadata["name"]}
    else:
        spec_data = raw_data

    try:
        spec = ClusterSpec.model_validate(spec_data)
    except ValidationError as e:
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            errors.append(f"  - {loc}: {error['msg']}")

        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {spec_path}:\n{error_list}") from e

    logger.info("Loaded spec for managed cluster '%s' from %s", spec.name, spec_path)
    return spec
