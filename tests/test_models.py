"""Tests for cluster spec models."""

from __future__ import annotations

import pytest
from conftest import make_spec
from pydantic import ValidationError

from aks_operator.models import (
    ClusterSpec,
    PoolSpec,
    ProvisioningState,
    is_terminal,
)


class TestProvisioningState:
    """Tests for provisioning state helpers."""

    @pytest.mark.parametrize("state", ["Succeeded", "Failed", "Canceled"])
    def test_terminal_states(self, state: str) -> None:
        """Settled states allow mutation."""
        assert is_terminal(state) is True

    @pytest.mark.parametrize(
        "state", ["Creating", "Updating", "Deleting", "Upgrading", "Scaling", "Starting", None]
    )
    def test_non_terminal_states(self, state: str | None) -> None:
        """In-progress and unknown states block mutation."""
        assert is_terminal(state) is False

    def test_enum_members_are_strings(self) -> None:
        """Enum members compare equal to the provider's strings."""
        assert ProvisioningState.SUCCEEDED == "Succeeded"
        assert is_terminal(ProvisioningState.CANCELED) is True


class TestPoolSpec:
    """Tests for PoolSpec."""

    def test_camel_case_aliases(self) -> None:
        """Pools parse from the YAML field names."""
        pool = PoolSpec.model_validate(
            {"name": "system", "vmSku": "Standard_D2s_v5", "replicaCount": 2, "osDiskSizeGB": 64}
        )
        assert pool.sku == "Standard_D2s_v5"
        assert pool.replicas == 2
        assert pool.os_disk_size_gb == 64

    def test_zero_replicas_allowed(self) -> None:
        """A pool may be scaled to zero."""
        pool = PoolSpec(name="burst", sku="Standard_D2s_v5", replicas=0, os_disk_size_gb=64)
        assert pool.replicas == 0

    def test_negative_replicas_rejected(self) -> None:
        """Negative replica counts are invalid."""
        with pytest.raises(ValidationError):
            PoolSpec(name="system", sku="Standard_D2s_v5", replicas=-1, os_disk_size_gb=64)

    def test_zero_disk_rejected(self) -> None:
        """OS disk size must be positive."""
        with pytest.raises(ValidationError):
            PoolSpec(name="system", sku="Standard_D2s_v5", replicas=1, os_disk_size_gb=0)

    def test_int32_bound(self) -> None:
        """Counts above int32 are rejected."""
        with pytest.raises(ValidationError):
            PoolSpec(name="system", sku="Standard_D2s_v5", replicas=2**31, os_disk_size_gb=64)


class TestClusterSpec:
    """Tests for ClusterSpec."""

    def test_parses_camel_case(self) -> None:
        """All fields parse from the YAML field names."""
        spec = ClusterSpec.model_validate(
            {
                "name": "aks-prod",
                "resourceGroup": "rg-aks",
                "nodeResourceGroup": "rg-aks-nodes",
                "vnetSubnetID": "/subscriptions/x/subnets/nodes",
                "location": "westeurope",
                "kubernetesVersion": "1.29.2",
                "loadBalancerSKU": "Standard",
                "networkPlugin": "kubenet",
                "networkPolicy": "calico",
                "sshPublicKey": "ssh-rsa AAAA",
                "podCIDR": "192.168.0.0/16",
                "serviceCIDR": "10.0.0.0/16",
                "dnsServiceIP": "10.0.0.10",
                "agentPools": [
                    {"name": "system", "vmSku": "Standard_D2s_v5", "replicaCount": 1, "osDiskSizeGB": 30}
                ],
            }
        )

        assert spec.resource_group_name == "rg-aks"
        assert spec.node_resource_group_name == "rg-aks-nodes"
        assert spec.network_plugin == "kubenet"
        assert spec.pod_cidr == "192.168.0.0/16"
        assert spec.dns_service_ip == "10.0.0.10"
        assert spec.agent_pools[0].name == "system"

    def test_optional_defaults(self) -> None:
        """Optional fields default to empty / absent."""
        spec = ClusterSpec(
            name="aks",
            resource_group_name="rg",
            node_resource_group_name="rg-nodes",
            vnet_subnet_id="/subnets/nodes",
            location="westeurope",
            version="1.29.2",
        )

        assert spec.tags == {}
        assert spec.agent_pools == []
        assert spec.load_balancer_sku == ""
        assert spec.ssh_public_key == ""
        assert spec.service_cidr == ""
        assert spec.dns_service_ip is None

    @pytest.mark.parametrize(
        "field", ["name", "resource_group_name", "node_resource_group_name", "vnet_subnet_id", "location"]
    )
    def test_empty_identifiers_rejected(self, field: str) -> None:
        """Identifiers must be non-empty."""
        with pytest.raises(ValidationError):
            make_spec(**{field: ""})

    def test_blank_version_rejected(self) -> None:
        """Kubernetes version must not be blank."""
        with pytest.raises(ValidationError) as exc_info:
            make_spec(version="  ")
        assert "kubernetesVersion" in str(exc_info.value)

    def test_frozen(self) -> None:
        """Specs cannot be modified after construction."""
        spec = make_spec()
        with pytest.raises(ValidationError):
            spec.version = "1.30.0"  # type: ignore[misc]

    def test_unknown_fields_ignored(self) -> None:
        """Extra keys are ignored for forward compatibility."""
        spec = make_spec(autoUpgradeChannel="stable")
        assert not hasattr(spec, "autoUpgradeChannel")
