"""Build the provider-side managed cluster from a ClusterSpec.

The builder is a pure transformation: it fills in the fixed policy values
(identity, admin user, service principal sentinel, pool type and mode) and
the computed DNS service IP, and returns a fresh SDK object every call.
"""

from __future__ import annotations

import ipaddress

from azure.mgmt.containerservice.models import (
    AgentPoolMode,
    AgentPoolType,
    ContainerServiceLinuxProfile,
    ContainerServiceNetworkProfile,
    ContainerServiceSshConfiguration,
    ContainerServiceSshPublicKey,
    ManagedCluster,
    ManagedClusterAgentPoolProfile,
    ManagedClusterIdentity,
    ManagedClusterServicePrincipalProfile,
    ResourceIdentityType,
)

from .config import ClusterDefaults
from .errors import InvalidSpecError
from .models import ClusterSpec, PoolSpec

# Final octet of the derived cluster DNS service IP
DNS_SERVICE_IP_LAST_OCTET = 10


def derive_dns_service_ip(service_cidr: str) -> str:
    """Derive the cluster DNS service IP from the service CIDR.

    Takes the network base address and overwrites its final byte with 10,
    so "10.0.0.0/16" becomes "10.0.0.10". The prefix length is not checked:
    for prefixes longer than /24 (e.g. "10.0.0.16/28") the result falls
    outside the range, and callers must pass dnsServiceIP explicitly.

    Raises:
        InvalidSpecError: If service_cidr is not a CIDR block.
    """
    _, sep, prefix = service_cidr.partition("/")
    # Netmask and hostmask suffixes are not CIDR notation
    if not sep or not (prefix.isascii() and prefix.isdigit()):
        raise InvalidSpecError(f"failed to parse service cidr: {service_cidr!r} is not a CIDR")

    try:
        network = ipaddress.ip_network(service_cidr, strict=False)
    except ValueError as e:
        raise InvalidSpecError(f"failed to parse service cidr: {e}") from e

    packed = bytearray(network.network_address.packed)
    packed[-1] = DNS_SERVICE_IP_LAST_OCTET
    return str(ipaddress.ip_address(bytes(packed)))


def _build_network_profile(spec: ClusterSpec) -> ContainerServiceNetworkProfile:
    # Empty enum strings are left unset so the provider default applies
    profile = ContainerServiceNetworkProfile(
        network_plugin=spec.network_plugin or None,
        network_policy=spec.network_policy or None,
        load_balancer_sku=spec.load_balancer_sku or None,
    )

    if spec.pod_cidr:
        profile.pod_cidr = spec.pod_cidr

    if spec.service_cidr:
        profile.service_cidr = spec.service_cidr
        if spec.dns_service_ip is None:
            profile.dns_service_ip = derive_dns_service_ip(spec.service_cidr)
        else:
            profile.dns_service_ip = spec.dns_service_ip

    return profile


def _build_agent_pool_profile(pool: PoolSpec, vnet_subnet_id: str) -> ManagedClusterAgentPoolProfile:
    return ManagedClusterAgentPoolProfile(
        name=pool.name,
        vm_size=pool.sku,
        os_disk_size_gb=pool.os_disk_size_gb,
        count=pool.replicas,
        type=AgentPoolType.VIRTUAL_MACHINE_SCALE_SETS,
        vnet_subnet_id=vnet_subnet_id,
        mode=AgentPoolMode.SYSTEM,
    )


def build_managed_cluster(
    spec: ClusterSpec,
    defaults: ClusterDefaults | None = None,
) -> ManagedCluster:
    """Map a ClusterSpec to a complete ManagedCluster request body.

    Args:
        spec: Desired cluster state. Not modified.
        defaults: Admin username and service principal sentinel to write.

    Returns:
        A new ManagedCluster ready for create_or_update.

    Raises:
        InvalidSpecError: If the service CIDR needs parsing and is malformed.
    """
    defaults = defaults or ClusterDefaults()

    public_keys = []
    if spec.ssh_public_key:
        public_keys.append(ContainerServiceSshPublicKey(key_data=spec.ssh_public_key))

    return ManagedCluster(
        location=spec.location,
        tags=dict(spec.tags),
        identity=ManagedClusterIdentity(type=ResourceIdentityType.SYSTEM_ASSIGNED),
        node_resource_group=spec.node_resource_group_name,
        dns_prefix=spec.name,
        kubernetes_version=spec.version,
        linux_profile=ContainerServiceLinuxProfile(
            admin_username=defaults.admin_username,
            ssh=ContainerServiceSshConfiguration(public_keys=public_keys),
        ),
        service_principal_profile=ManagedClusterServicePrincipalProfile(
            client_id=defaults.managed_identity_client_id,
        ),
        network_profile=_build_network_profile(spec),
        agent_pool_profiles=[
            _build_agent_pool_profile(pool, spec.vnet_subnet_id) for pool in spec.agent_pools
        ],
    )
