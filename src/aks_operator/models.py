"""Pydantic models for managed cluster specifications.

These models provide:
1. Type-safe YAML parsing
2. Validation at the boundary (fail fast, fail loudly)
3. Immutable input for the builder
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated

from pydantic import BaseModel, Field, field_validator

# Azure models agent pool counts and disk sizes as int32
INT32_MAX = 2**31 - 1


class ProvisioningState(str, Enum):
    """Provisioning states reported by the managed cluster provider.

    The provider may report other transient values; anything that is not
    one of the terminal states is treated as in-progress.
    """

    CREATING = "Creating"
    UPDATING = "Updating"
    DELETING = "Deleting"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    CANCELED = "Canceled"


TERMINAL_PROVISIONING_STATES: frozenset[str] = frozenset({
    ProvisioningState.SUCCEEDED.value,
    ProvisioningState.FAILED.value,
    ProvisioningState.CANCELED.value,
})


def is_terminal(provisioning_state: str | None) -> bool:
    """Check whether a cluster may be mutated in this provisioning state."""
    return provisioning_state in TERMINAL_PROVISIONING_STATES


class PoolSpec(BaseModel):
    """Agent pool specification."""

    model_config = {"extra": "ignore", "populate_by_name": True, "frozen": True}

    name: Annotated[str, Field(min_length=1)]
    sku: Annotated[str, Field(min_length=1, alias="vmSku")]
    replicas: Annotated[int, Field(ge=0, le=INT32_MAX, alias="replicaCount")]
    os_disk_size_gb: Annotated[int, Field(gt=0, le=INT32_MAX, alias="osDiskSizeGB")]


class ClusterSpec(BaseModel):
    """Desired state of a managed cluster.

    Empty load balancer SKU, network plugin or network policy means the
    provider default applies ("Standard", "azure", "azure"). Empty pod or
    service CIDR means the value is not requested.
    """

    model_config = {"extra": "ignore", "populate_by_name": True, "frozen": True}

    name: Annotated[str, Field(min_length=1)]
    resource_group_name: Annotated[str, Field(min_length=1, alias="resourceGroup")]
    node_resource_group_name: Annotated[str, Field(min_length=1, alias="nodeResourceGroup")]
    vnet_subnet_id: Annotated[str, Field(min_length=1, alias="vnetSubnetID")]
    location: Annotated[str, Field(min_length=1)]
    tags: dict[str, str] = Field(default_factory=dict)
    version: str = Field(alias="kubernetesVersion")

    load_balancer_sku: str = Field("", alias="loadBalancerSKU")
    network_plugin: str = Field("", alias="networkPlugin")
    network_policy: str = Field("", alias="networkPolicy")

    ssh_public_key: str = Field("", alias="sshPublicKey")

    agent_pools: list[PoolSpec] = Field(default_factory=list, alias="agentPools")

    pod_cidr: str = Field("", alias="podCIDR")
    service_cidr: str = Field("", alias="serviceCIDR")
    dns_service_ip: str | None = Field(None, alias="dnsServiceIP")

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        # Format is validated by the provider; only reject blanks here
        if not v.strip():
            raise ValueError("kubernetesVersion must not be empty")
        return v
