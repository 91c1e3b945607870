"""Idempotent create/update/delete of an AKS managed cluster.

ManagedClusterService is invoked repeatedly by a control loop until the
provider state matches the ClusterSpec. Each call re-fetches the current
state, so the service holds nothing between calls:

1. Build the desired ManagedCluster from the spec
2. Fetch the existing cluster
3. Not found: create it
4. Found but mid-transition (Creating, Updating, Deleting, ...): refuse
5. Found and settled: update only if a normalized property differs

At most one mutating call is issued per reconcile. Nothing is retried here;
failures are raised to the caller, which re-invokes on its next cycle.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any

from azure.mgmt.containerservice.models import ManagedCluster

from .builder import build_managed_cluster
from .client import PROVIDER_ERRORS, ManagedClusterClient, is_not_found
from .config import ClusterDefaults
from .diff_normalizer import compute_diff
from .errors import InvalidInputError, ProviderError, ProvisioningBlockedError
from .models import ClusterSpec, is_terminal
from .tracing import Tracer, get_tracer

logger = logging.getLogger(__name__)


class ReconcileOutcome(str, Enum):
    """What a reconcile call did."""

    NO_OP = "NoOp"
    CREATE = "Create"
    UPDATE = "Update"


def _require_spec(spec: Any) -> ClusterSpec:
    if not isinstance(spec, ClusterSpec):
        raise InvalidInputError(
            f"expected managed cluster specification, got {type(spec).__name__}"
        )
    return spec


class ManagedClusterService:
    """Reconciles managed clusters through a ManagedClusterClient."""

    def __init__(
        self,
        client: ManagedClusterClient,
        defaults: ClusterDefaults | None = None,
        *,
        dry_run: bool = False,
        tracer: Tracer | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            client: Provider client used for every call.
            defaults: Fixed values written into built clusters.
            dry_run: Decide and log, but skip mutating calls.
            tracer: Span tracer (defaults to the global tracer).
        """
        self._client = client
        self._defaults = defaults or ClusterDefaults()
        self._dry_run = dry_run
        self._tracer = tracer or get_tracer()

    async def get(self, spec: ClusterSpec) -> ManagedCluster:
        """Fetch the managed cluster described by spec.

        Raises:
            InvalidInputError: If spec is not a ClusterSpec.
        """
        with self._tracer.start_span("managedclusters.Service.Get"):
            spec = _require_spec(spec)
            return await self._client.get(spec.resource_group_name, spec.name)

    async def get_credentials(self, resource_group: str, name: str) -> bytes:
        """Fetch the admin kubeconfig of a managed cluster."""
        with self._tracer.start_span(
            "managedclusters.Service.GetCredentials",
            resource_group=resource_group,
            cluster=name,
        ):
            return await self._client.get_credentials(resource_group, name)

    async def reconcile(self, spec: ClusterSpec) -> ReconcileOutcome:
        """Idempotently create or update a managed cluster, if possible.

        Returns:
            The action taken.

        Raises:
            InvalidInputError: If spec is not a ClusterSpec.
            InvalidSpecError: If the spec cannot be built into a request.
            ProvisioningBlockedError: If the cluster is mid-transition.
            ProviderError: If a provider call fails.
        """
        with self._tracer.start_span("managedclusters.Service.Reconcile") as span:
            spec = _require_spec(spec)
            resource_group, name = spec.resource_group_name, spec.name
            span.set_attribute("resource_group", resource_group)
            span.set_attribute("cluster", name)

            desired = build_managed_cluster(spec, self._defaults)

            try:
                existing = await self._client.get(resource_group, name)
            except PROVIDER_ERRORS as e:
                if not is_not_found(e):
                    raise ProviderError("failed to get existing managed cluster") from e
                existing = None

            if existing is None:
                logger.info(
                    "Managed cluster not found, creating",
                    extra={"resource_group": resource_group, "cluster": name},
                )
                await self._create_or_update(resource_group, name, desired, "create")
                span.set_attribute("outcome", ReconcileOutcome.CREATE.value)
                return ReconcileOutcome.CREATE

            provisioning_state = existing.provisioning_state
            if not is_terminal(provisioning_state):
                logger.warning(
                    "Managed cluster is mid-transition, not updating",
                    extra={
                        "resource_group": resource_group,
                        "cluster": name,
                        "provisioning_state": provisioning_state,
                    },
                )
                raise ProvisioningBlockedError(provisioning_state)

            diff = compute_diff(desired, existing)
            if not diff.has_changes:
                logger.info(
                    "Managed cluster up to date",
                    extra={"resource_group": resource_group, "cluster": name},
                )
                span.set_attribute("outcome", ReconcileOutcome.NO_OP.value)
                return ReconcileOutcome.NO_OP

            logger.info(
                f"Update required (+new -old):\n{diff.format()}",
                extra={
                    "resource_group": resource_group,
                    "cluster": name,
                    "changed_properties": [c.path for c in diff.changes],
                },
            )
            await self._create_or_update(resource_group, name, desired, "update")
            span.set_attribute("outcome", ReconcileOutcome.UPDATE.value)
            return ReconcileOutcome.UPDATE

    async def delete(self, spec: ClusterSpec) -> None:
        """Delete the managed cluster described by spec.

        An already-absent cluster counts as deleted.

        Raises:
            InvalidInputError: If spec is not a ClusterSpec.
            ProviderError: If the provider rejects the deletion.
        """
        with self._tracer.start_span("managedclusters.Service.Delete") as span:
            spec = _require_spec(spec)
            resource_group, name = spec.resource_group_name, spec.name
            span.set_attribute("resource_group", resource_group)
            span.set_attribute("cluster", name)

            logger.info(
                "Deleting managed cluster",
                extra={"resource_group": resource_group, "cluster": name},
            )
            if self._dry_run:
                logger.info("Dry run: skipping delete", extra={"cluster": name})
                return

            try:
                await self._client.delete(resource_group, name)
            except PROVIDER_ERRORS as e:
                if is_not_found(e):
                    logger.info("Managed cluster already deleted", extra={"cluster": name})
                    return
                raise ProviderError(
                    f"failed to delete managed cluster {name} in resource group {resource_group}"
                ) from e

            logger.info(
                "Successfully deleted managed cluster",
                extra={"resource_group": resource_group, "cluster": name},
            )

    async def _create_or_update(
        self,
        resource_group: str,
        name: str,
        cluster: ManagedCluster,
        action: str,
    ) -> None:
        if self._dry_run:
            logger.info(f"Dry run: skipping {action}", extra={"cluster": name})
            return

        try:
            await self._client.create_or_update(resource_group, name, cluster)
        except PROVIDER_ERRORS as e:
            raise ProviderError(f"failed to {action} managed cluster") from e
