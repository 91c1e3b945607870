"""Provider client for AKS managed clusters.

The service talks to the provider only through the four operations of
ManagedClusterClient. AzureManagedClusterClient implements them on top of
the synchronous Azure SDK: each SDK call runs in the default executor and is
bounded by a timeout, so a hung control-plane call never blocks the event
loop forever. Caller cancellation propagates into every call unchanged.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from typing import Any, Protocol, TypeVar

from azure.core.exceptions import AzureError, HttpResponseError, ResourceNotFoundError
from azure.mgmt.containerservice import ContainerServiceClient
from azure.mgmt.containerservice.models import ManagedCluster

from .config import DEFAULT_API_TIMEOUT_SECONDS, Config
from .errors import ProviderError
from .security import get_managed_identity_credential

logger = logging.getLogger(__name__)

T = TypeVar("T")

HTTP_NOT_FOUND = 404

# Exceptions a provider call may raise for reasons outside our control
PROVIDER_ERRORS: tuple[type[Exception], ...] = (AzureError, TimeoutError)


def is_not_found(error: BaseException) -> bool:
    """Check whether a provider error means the resource does not exist."""
    if isinstance(error, ResourceNotFoundError):
        return True
    return isinstance(error, HttpResponseError) and error.status_code == HTTP_NOT_FOUND


class ManagedClusterClient(Protocol):
    """Operations the service needs from the provider."""

    async def get(self, resource_group: str, name: str) -> ManagedCluster:
        """Fetch a managed cluster; raises a not-found error if absent."""
        ...

    async def create_or_update(
        self, resource_group: str, name: str, cluster: ManagedCluster
    ) -> None:
        """Submit the full managed cluster; returns once the provider accepted it."""
        ...

    async def delete(self, resource_group: str, name: str) -> None:
        """Request deletion; raises a not-found error if absent."""
        ...

    async def get_credentials(self, resource_group: str, name: str) -> bytes:
        """Fetch the admin kubeconfig."""
        ...


class AzureManagedClusterClient:
    """ManagedClusterClient backed by azure-mgmt-containerservice.

    Long-running operations are started and acknowledged, not awaited:
    provisioning continues on the provider side and the next reconcile
    observes the resulting provisioning state.
    """

    def __init__(
        self,
        client: ContainerServiceClient,
        timeout_seconds: int = DEFAULT_API_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize with an SDK client.

        Args:
            client: Authenticated ContainerServiceClient.
            timeout_seconds: Upper bound for each provider call.
        """
        self._client = client
        self._timeout_seconds = timeout_seconds

    @classmethod
    def create(
        cls,
        subscription_id: str,
        managed_identity_client_id: str | None = None,
        timeout_seconds: int = DEFAULT_API_TIMEOUT_SECONDS,
    ) -> AzureManagedClusterClient:
        """Create a client authenticated with a managed identity.

        Raises:
            SecretlessViolationError: If credential environment variables detected.
        """
        credential = get_managed_identity_credential(managed_identity_client_id)
        client = ContainerServiceClient(
            credential=credential,
            subscription_id=subscription_id,
        )
        return cls(client, timeout_seconds=timeout_seconds)

    @classmethod
    def from_config(cls, config: Config) -> AzureManagedClusterClient:
        """Create a client for the controller configuration."""
        return cls.create(
            config.subscription_id,
            config.managed_identity_client_id,
            timeout_seconds=config.api_timeout_seconds,
        )

    async def _call(self, operation_name: str, func: Callable[..., T], **kwargs: Any) -> T:
        """Run a blocking SDK call in the executor with a timeout."""
        loop = asyncio.get_running_loop()
        try:
            return await asyncio.wait_for(
                loop.run_in_executor(None, functools.partial(func, **kwargs)),
                timeout=self._timeout_seconds,
            )
        except TimeoutError:
            logger.error(
                f"{operation_name} timed out",
                extra={
                    "timeout_seconds": self._timeout_seconds,
                    "resource_group": kwargs.get("resource_group_name"),
                    "cluster": kwargs.get("resource_name"),
                },
            )
            raise

    async def get(self, resource_group: str, name: str) -> ManagedCluster:
        return await self._call(
            "Get managed cluster",
            self._client.managed_clusters.get,
            resource_group_name=resource_group,
            resource_name=name,
        )

    async def create_or_update(
        self, resource_group: str, name: str, cluster: ManagedCluster
    ) -> None:
        poller = await self._call(
            "Create or update managed cluster",
            self._client.managed_clusters.begin_create_or_update,
            resource_group_name=resource_group,
            resource_name=name,
            parameters=cluster,
        )
        logger.debug(
            "Managed cluster create or update accepted",
            extra={"resource_group": resource_group, "cluster": name, "status": poller.status()},
        )

    async def delete(self, resource_group: str, name: str) -> None:
        poller = await self._call(
            "Delete managed cluster",
            self._client.managed_clusters.begin_delete,
            resource_group_name=resource_group,
            resource_name=name,
        )
        logger.debug(
            "Managed cluster delete accepted",
            extra={"resource_group": resource_group, "cluster": name, "status": poller.status()},
        )

    async def get_credentials(self, resource_group: str, name: str) -> bytes:
        results = await self._call(
            "List managed cluster admin credentials",
            self._client.managed_clusters.list_cluster_admin_credentials,
            resource_group_name=resource_group,
            resource_name=name,
        )
        if not results.kubeconfigs or results.kubeconfigs[0].value is None:
            raise ProviderError(
                f"no kubeconfig returned for managed cluster {name} in resource group "
                f"{resource_group}"
            )
        return bytes(results.kubeconfigs[0].value)
