"""Tests for the Azure-backed managed cluster client."""

from __future__ import annotations

import time
from typing import Any

import pytest
from azure.core.exceptions import ResourceNotFoundError, ServiceRequestError
from azure_mock import MockContainerServiceClient, MockManagedClusterState, make_http_error
from conftest import make_spec

from aks_operator.builder import build_managed_cluster
from aks_operator.client import AzureManagedClusterClient, is_not_found
from aks_operator.errors import ProviderError


class TestIsNotFound:
    """Tests for not-found classification."""

    def test_resource_not_found(self) -> None:
        assert is_not_found(ResourceNotFoundError(message="gone")) is True

    def test_http_404(self) -> None:
        assert is_not_found(make_http_error(404)) is True

    @pytest.mark.parametrize("status_code", [400, 403, 409, 500])
    def test_other_status_codes(self, status_code: int) -> None:
        assert is_not_found(make_http_error(status_code)) is False

    def test_transport_and_timeout_errors(self) -> None:
        """Errors without a status code are not not-found."""
        assert is_not_found(ServiceRequestError(message="connection reset")) is False
        assert is_not_found(TimeoutError()) is False


class TestAzureManagedClusterClient:
    """Tests for AzureManagedClusterClient."""

    @pytest.fixture
    def client(self, mock_state: MockManagedClusterState) -> AzureManagedClusterClient:
        return AzureManagedClusterClient(MockContainerServiceClient(mock_state), timeout_seconds=5)

    @pytest.mark.asyncio
    async def test_get_passes_identifiers(
        self, client: AzureManagedClusterClient, mock_state: MockManagedClusterState
    ) -> None:
        """Resource group and name reach the SDK call."""
        mock_state.put_cluster("rg-aks", "aks-test", build_managed_cluster(make_spec()))

        cluster = await client.get("rg-aks", "aks-test")

        assert cluster.name == "aks-test"
        [call] = mock_state.calls
        assert (call.operation, call.resource_group, call.name) == ("get", "rg-aks", "aks-test")

    @pytest.mark.asyncio
    async def test_create_or_update_is_acknowledged(
        self, client: AzureManagedClusterClient, mock_state: MockManagedClusterState
    ) -> None:
        """The call returns once the operation was accepted."""
        mock_state.settled_state = "Creating"

        await client.create_or_update("rg-aks", "aks-test", build_managed_cluster(make_spec()))

        stored = mock_state.get_cluster("rg-aks", "aks-test")
        assert stored is not None
        assert stored.provisioning_state == "Creating"

    @pytest.mark.asyncio
    async def test_delete_absent_raises_not_found(self, client: AzureManagedClusterClient) -> None:
        """The client does not translate not-found errors."""
        with pytest.raises(ResourceNotFoundError):
            await client.delete("rg-aks", "aks-test")

    @pytest.mark.asyncio
    async def test_get_credentials_returns_bytes(
        self, client: AzureManagedClusterClient, mock_state: MockManagedClusterState
    ) -> None:
        """The first kubeconfig is returned as bytes."""
        mock_state.put_cluster("rg-aks", "aks-test", build_managed_cluster(make_spec()))
        mock_state.kubeconfigs[("rg-aks", "aks-test")] = b"apiVersion: v1\n"

        kubeconfig = await client.get_credentials("rg-aks", "aks-test")

        assert isinstance(kubeconfig, bytes)
        assert kubeconfig == b"apiVersion: v1\n"

    @pytest.mark.asyncio
    async def test_get_credentials_without_kubeconfig(
        self, client: AzureManagedClusterClient, mock_state: MockManagedClusterState
    ) -> None:
        """An empty credential list is a ProviderError."""
        mock_state.put_cluster("rg-aks", "aks-test", build_managed_cluster(make_spec()))

        with pytest.raises(ProviderError, match="no kubeconfig returned"):
            await client.get_credentials("rg-aks", "aks-test")

    @pytest.mark.asyncio
    async def test_call_timeout(self, mock_state: MockManagedClusterState) -> None:
        """A call exceeding the timeout raises TimeoutError."""
        sdk = MockContainerServiceClient(mock_state)

        def hung_get(**kwargs: Any) -> None:
            time.sleep(0.5)

        sdk.managed_clusters.get = hung_get  # type: ignore[method-assign]
        client = AzureManagedClusterClient(sdk, timeout_seconds=0.05)  # type: ignore[arg-type]

        with pytest.raises(TimeoutError):
            await client.get("rg-aks", "aks-test")
