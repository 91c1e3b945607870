"""Normalized diff between desired and existing managed clusters.

A full object comparison always reports a difference: the provider fills in
read-only and computed fields (provisioning state, FQDN, power state, node
image versions, ...) that a request body never carries. Comparing the raw
objects would send an update on every cycle.

Only properties that were sent in the create request AND that may
change after creation are compared. Everything set at
creation time only (identity, network plugin and policy, SSH keys, agent
pool composition) is excluded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from azure.mgmt.containerservice.models import ManagedCluster

logger = logging.getLogger(__name__)

# Dotted attribute paths on ManagedCluster compared after creation
UPDATABLE_PROPERTIES: tuple[str, ...] = ("kubernetes_version",)


@dataclass(frozen=True)
class PropertyChange:
    """A single differing property.

    Attributes:
        path: Dotted attribute path on ManagedCluster
        desired: Value built from the spec
        existing: Value reported by the provider
    """

    path: str
    desired: Any
    existing: Any


@dataclass
class NormalizedDiff:
    """Differences restricted to the updatable properties."""

    changes: list[PropertyChange] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        """Check whether an update is required."""
        return bool(self.changes)

    def format(self) -> str:
        """Render the diff as +new / -old lines for logging."""
        lines: list[str] = []
        for change in self.changes:
            lines.append(f"  {change.path}:")
            lines.append(f"-   {change.existing!r}")
            lines.append(f"+   {change.desired!r}")
        return "\n".join(lines)


def _get_path(obj: Any, path: str) -> Any:
    """Resolve a dotted attribute path, returning None for any missing link."""
    value = obj
    for part in path.split("."):
        if value is None:
            return None
        value = getattr(value, part, None)
    return value


def normalize_properties(
    cluster: ManagedCluster | None,
    properties: tuple[str, ...] = UPDATABLE_PROPERTIES,
) -> dict[str, Any]:
    """Project a managed cluster onto the compared properties.

    Args:
        cluster: Desired or existing managed cluster.
        properties: Dotted attribute paths to keep.

    Returns:
        Mapping of path to value; missing values map to None.
    """
    return {path: _get_path(cluster, path) for path in properties}


def compute_diff(
    desired: ManagedCluster,
    existing: ManagedCluster,
    properties: tuple[str, ...] = UPDATABLE_PROPERTIES,
) -> NormalizedDiff:
    """Compare the normalized projections of two managed clusters.

    Args:
        desired: Cluster built from the spec.
        existing: Cluster fetched from the provider.
        properties: Dotted attribute paths to compare.

    Returns:
        NormalizedDiff listing every differing property in order.
    """
    desired_normalized = normalize_properties(desired, properties)
    existing_normalized = normalize_properties(existing, properties)

    diff = NormalizedDiff()
    for path in properties:
        if desired_normalized[path] != existing_normalized[path]:
            diff.changes.append(
                PropertyChange(
                    path=path,
                    desired=desired_normalized[path],
                    existing=existing_normalized[path],
                )
            )

    logger.debug(
        "Computed normalized diff",
        extra={"compared": list(properties), "changed": [c.path for c in diff.changes]},
    )
    return diff
