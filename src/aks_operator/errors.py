"""Errors raised by managed cluster operations.

Every failure of the service is a ManagedClusterError subclass so callers
can tell "retry later" (ProvisioningBlockedError) apart from caller bugs
and provider failures.
"""

from __future__ import annotations


class ManagedClusterError(Exception):
    """Base class for managed cluster operation errors."""

    pass


class InvalidInputError(ManagedClusterError):
    """An entry point received something other than a ClusterSpec.

    This is a caller bug and is never retried.
    """

    pass


class InvalidSpecError(ManagedClusterError):
    """The cluster spec cannot be turned into a provider request."""

    pass


class ProvisioningBlockedError(ManagedClusterError):
    """The cluster is mid-transition and cannot be mutated right now.

    Not a failure: the caller should re-invoke reconcile later.
    """

    def __init__(self, provisioning_state: str | None) -> None:
        self.provisioning_state = provisioning_state
        super().__init__(
            "Unable to update existing managed cluster in non terminal state. "
            "Managed cluster must be in one of the following provisioning states: "
            f"canceled, failed, or succeeded. Actual state: {provisioning_state}"
        )


class ProviderError(ManagedClusterError):
    """A provider call failed.

    The original exception is chained as __cause__.
    """

    pass
