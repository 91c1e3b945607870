"""Azure API mock for AKS managed cluster tests.

Provides an in-memory stand-in for the Container Service control plane so
the service and controller can be exercised without Azure connectivity.

Usage:
    from azure_mock import MockAzureContext

    with MockAzureContext() as ctx:
        client = AzureManagedClusterClient.create(subscription_id)
        service = ManagedClusterService(client)
        await service.reconcile(spec)

        assert ctx.state.mutating_call_count == 1
"""

from .containerservice import (
    MockContainerServiceClient,
    MockManagedClusterState,
    MockPoller,
    RecordedCall,
    make_http_error,
)
from .context import MockAzureContext
from .credential import MockManagedIdentityCredential, create_mock_credential

__all__ = [
    "MockAzureContext",
    "MockContainerServiceClient",
    "MockManagedClusterState",
    "MockManagedIdentityCredential",
    "MockPoller",
    "RecordedCall",
    "create_mock_credential",
    "make_http_error",
]
