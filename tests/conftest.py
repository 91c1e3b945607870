"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for azure_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

from azure_mock import MockContainerServiceClient, MockManagedClusterState  # noqa: E402

from aks_operator.client import AzureManagedClusterClient  # noqa: E402
from aks_operator.managed_clusters import ManagedClusterService  # noqa: E402
from aks_operator.models import ClusterSpec  # noqa: E402
from aks_operator.tracing import Tracer  # noqa: E402

SUBNET_ID = (
    "/subscriptions/00000000-0000-0000-0000-000000000001/resourceGroups/rg-network"
    "/providers/Microsoft.Network/virtualNetworks/vnet-aks/subnets/nodes"
)


def make_spec(**overrides: object) -> ClusterSpec:
    """Build a valid ClusterSpec, overriding fields by python name."""
    fields: dict[str, object] = {
        "name": "aks-test",
        "resource_group_name": "rg-aks",
        "node_resource_group_name": "rg-aks-nodes",
        "vnet_subnet_id": SUBNET_ID,
        "location": "westeurope",
        "tags": {"environment": "test"},
        "version": "1.29.2",
        "load_balancer_sku": "Standard",
        "network_plugin": "azure",
        "network_policy": "calico",
        "ssh_public_key": "ssh-rsa AAAAB3NzaC1yc2E test@example.com",
        "agent_pools": [
            {"name": "system", "sku": "Standard_D4s_v5", "replicas": 3, "os_disk_size_gb": 128},
        ],
    }
    fields.update(overrides)
    return ClusterSpec(**fields)


@pytest.fixture
def cluster_spec() -> ClusterSpec:
    """A valid cluster spec without service networking."""
    return make_spec()


@pytest.fixture
def mock_state() -> MockManagedClusterState:
    """Empty mock control plane."""
    return MockManagedClusterState()


@pytest.fixture
def tracer() -> Tracer:
    """Tracer keeping finished spans for assertions."""
    t = Tracer()
    t.record_finished()
    return t


@pytest.fixture
def service(mock_state: MockManagedClusterState, tracer: Tracer) -> ManagedClusterService:
    """Service backed by the mock control plane."""
    client = AzureManagedClusterClient(MockContainerServiceClient(mock_state), timeout_seconds=5)
    return ManagedClusterService(client, tracer=tracer)
