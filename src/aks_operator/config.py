"""Configuration management with validation.

Invalid configuration is rejected at load time so the controller never
starts half-configured.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


# Configuration constants with documented bounds
DEFAULT_RECONCILE_INTERVAL_SECONDS = 60
MIN_RECONCILE_INTERVAL_SECONDS = 10
MAX_RECONCILE_INTERVAL_SECONDS = 3600

DEFAULT_API_TIMEOUT_SECONDS = 120
MIN_API_TIMEOUT_SECONDS = 1
MAX_API_TIMEOUT_SECONDS = 600

MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024  # 1MB max spec file

# Fixed values written into every managed cluster we build
DEFAULT_ADMIN_USERNAME = "azureuser"
MANAGED_IDENTITY_CLIENT_ID = "msi"  # Sentinel: cluster authenticates via managed identity

VALID_SUBSCRIPTION_ID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
VALID_CLUSTER_NAME_PATTERN = r"^[a-zA-Z0-9][a-zA-Z0-9_-]{0,62}$"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ClusterDefaults:
    """Values the builder writes into every managed cluster.

    These are not part of the cluster spec: the admin username and the
    service principal sentinel are fixed policy for clusters managed here.
    """

    admin_username: str = DEFAULT_ADMIN_USERNAME
    managed_identity_client_id: str = MANAGED_IDENTITY_CLIENT_ID


@dataclass(frozen=True)
class Config:
    """Controller configuration loaded from environment variables.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    # Required fields
    subscription_id: str

    # Paths
    specs_dir: Path = field(default_factory=lambda: Path("/specs"))
    cluster_name: str = "cluster"

    # Timing
    reconcile_interval_seconds: int = DEFAULT_RECONCILE_INTERVAL_SECONDS
    api_timeout_seconds: int = DEFAULT_API_TIMEOUT_SECONDS

    # Identity used by the controller itself (None = system-assigned)
    managed_identity_client_id: str | None = None

    # Behavior
    dry_run: bool = False
    log_level: str = "INFO"

    defaults: ClusterDefaults = field(default_factory=ClusterDefaults)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        errors: list[str] = []

        if not self.subscription_id:
            errors.append("AZURE_SUBSCRIPTION_ID is required")
        elif not re.match(VALID_SUBSCRIPTION_ID_PATTERN, self.subscription_id.lower()):
            errors.append(f"AZURE_SUBSCRIPTION_ID must be a valid GUID: {self.subscription_id}")

        if not re.match(VALID_CLUSTER_NAME_PATTERN, self.cluster_name):
            errors.append(
                f"CLUSTER_NAME must match pattern {VALID_CLUSTER_NAME_PATTERN}: {self.cluster_name}"
            )

        if not (
            MIN_RECONCILE_INTERVAL_SECONDS
            <= self.reconcile_interval_seconds
            <= MAX_RECONCILE_INTERVAL_SECONDS
        ):
            errors.append(
                f"RECONCILE_INTERVAL must be between {MIN_RECONCILE_INTERVAL_SECONDS} "
                f"and {MAX_RECONCILE_INTERVAL_SECONDS} seconds"
            )

        if not (MIN_API_TIMEOUT_SECONDS <= self.api_timeout_seconds <= MAX_API_TIMEOUT_SECONDS):
            errors.append(
                f"AZURE_API_TIMEOUT must be between {MIN_API_TIMEOUT_SECONDS} "
                f"and {MAX_API_TIMEOUT_SECONDS} seconds"
            )

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            errors.append(f"LOG_LEVEL must be one of {list(VALID_LOG_LEVELS)}: {self.log_level}")

        if not self.defaults.admin_username:
            errors.append("DEFAULT_ADMIN_USERNAME must not be empty")

        if not self.specs_dir.exists():
            errors.append(f"Specs directory does not exist: {self.specs_dir}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @property
    def spec_path(self) -> Path:
        """Path of the YAML spec for the managed cluster."""
        return self.specs_dir / f"{self.cluster_name}.yaml"

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            AZURE_SUBSCRIPTION_ID: Subscription holding the managed cluster
            SPECS_DIR: Directory containing cluster specs (default: /specs)
            CLUSTER_NAME: Spec file stem to reconcile (default: cluster)
            RECONCILE_INTERVAL: Seconds between reconciliation cycles (default: 60)
            AZURE_API_TIMEOUT: Timeout for a single Azure call in seconds (default: 120)
            AZURE_CLIENT_ID: Client ID of a user-assigned managed identity
            DEFAULT_ADMIN_USERNAME: Linux admin user on cluster nodes (default: azureuser)
            DRY_RUN: If "true", report the decision without mutating (default: false)
            LOG_LEVEL: Root log level (default: INFO)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        return cls(
            subscription_id=os.environ.get("AZURE_SUBSCRIPTION_ID", ""),
            specs_dir=Path(os.environ.get("SPECS_DIR", "/specs")),
            cluster_name=os.environ.get("CLUSTER_NAME", "cluster"),
            reconcile_interval_seconds=get_int(
                "RECONCILE_INTERVAL", DEFAULT_RECONCILE_INTERVAL_SECONDS
            ),
            api_timeout_seconds=get_int("AZURE_API_TIMEOUT", DEFAULT_API_TIMEOUT_SECONDS),
            managed_identity_client_id=os.environ.get("AZURE_CLIENT_ID") or None,
            dry_run=get_bool("DRY_RUN", False),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
            defaults=ClusterDefaults(
                admin_username=os.environ.get("DEFAULT_ADMIN_USERNAME", DEFAULT_ADMIN_USERNAME),
            ),
        )
