"""AKS managed cluster CLI (aksctl).

One-shot access to the managed cluster service, plus the control loop.

Usage:
    aksctl render cluster.yaml                 # Print the built cluster, no Azure call
    aksctl reconcile cluster.yaml              # Create or update once
    aksctl get cluster.yaml                    # Show provisioning state
    aksctl delete cluster.yaml                 # Delete the cluster
    aksctl credentials my-rg my-aks -o kubeconfig
    aksctl run --once                          # One controller cycle from env config
"""

from __future__ import annotations

import asyncio
import json
import os
import sys
from collections.abc import Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import click
from azure.core.exceptions import AzureError

from .builder import build_managed_cluster
from .client import AzureManagedClusterClient
from .config import DEFAULT_API_TIMEOUT_SECONDS, ClusterDefaults
from .errors import ManagedClusterError, ProvisioningBlockedError
from .main import main as run_controller
from .main import setup_logging
from .managed_clusters import ManagedClusterService
from .models import ClusterSpec
from .security import SecretlessViolationError
from .spec_loader import SpecLoadError, load_cluster_spec

T = TypeVar("T")


@dataclass
class CliContext:
    """Options shared by all commands."""

    subscription_id: str | None
    client_id: str | None
    timeout_seconds: int
    dry_run: bool

    def service(self) -> ManagedClusterService:
        """Create a service talking to Azure."""
        if not self.subscription_id:
            raise click.UsageError(
                "--subscription-id (or AZURE_SUBSCRIPTION_ID) is required for this command"
            )
        try:
            client = AzureManagedClusterClient.create(
                self.subscription_id,
                self.client_id,
                timeout_seconds=self.timeout_seconds,
            )
        except SecretlessViolationError as e:
            raise click.ClickException(str(e)) from e
        return ManagedClusterService(client, ClusterDefaults(), dry_run=self.dry_run)


def load_spec_or_fail(spec_file: Path) -> ClusterSpec:
    """Load a cluster spec, turning load errors into CLI errors."""
    try:
        return load_cluster_spec(spec_file)
    except SpecLoadError as e:
        raise click.ClickException(str(e)) from e


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a service call, turning service errors into CLI errors."""
    try:
        return asyncio.run(coro)
    except ProvisioningBlockedError as e:
        raise click.ClickException(f"{e} (retry later)") from e
    except ManagedClusterError as e:
        cause = f": {e.__cause__}" if e.__cause__ else ""
        raise click.ClickException(f"{e}{cause}") from e
    except AzureError as e:
        raise click.ClickException(f"Azure request failed: {e}") from e


# =============================================================================
# Main CLI Group
# =============================================================================


@click.group()
@click.version_option(version="0.1.0", prog_name="aksctl")
@click.option(
    "--subscription-id",
    envvar="AZURE_SUBSCRIPTION_ID",
    help="Subscription holding the managed cluster",
)
@click.option(
    "--client-id",
    envvar="AZURE_CLIENT_ID",
    help="Client ID of a user-assigned managed identity",
)
@click.option(
    "--timeout",
    "timeout_seconds",
    envvar="AZURE_API_TIMEOUT",
    type=click.IntRange(1, 600),
    default=DEFAULT_API_TIMEOUT_SECONDS,
    show_default=True,
    help="Timeout for each Azure call in seconds",
)
@click.option("--dry-run", is_flag=True, help="Decide and log, but do not mutate")
@click.option("--log-level", default="WARNING", show_default=True, help="Log level")
@click.pass_context
def cli(
    ctx: click.Context,
    subscription_id: str | None,
    client_id: str | None,
    timeout_seconds: int,
    dry_run: bool,
    log_level: str,
) -> None:
    """AKS managed cluster CLI (aksctl).

    \b
    Quick Start:
        aksctl render cluster.yaml     # Inspect what would be sent
        aksctl reconcile cluster.yaml  # Converge the cluster once
    """
    setup_logging(log_level)
    ctx.obj = CliContext(
        subscription_id=subscription_id,
        client_id=client_id,
        timeout_seconds=timeout_seconds,
        dry_run=dry_run,
    )


# =============================================================================
# Cluster Commands
# =============================================================================


@cli.command()
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def render(spec_file: Path) -> None:
    """Print the managed cluster built from SPEC_FILE as JSON."""
    spec = load_spec_or_fail(spec_file)
    try:
        cluster = build_managed_cluster(spec, ClusterDefaults())
    except ManagedClusterError as e:
        raise click.ClickException(str(e)) from e
    click.echo(json.dumps(cluster.as_dict(), indent=2, sort_keys=True, default=str))


@cli.command()
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def reconcile(obj: CliContext, spec_file: Path) -> None:
    """Create or update the managed cluster described by SPEC_FILE."""
    spec = load_spec_or_fail(spec_file)
    outcome = run_async(obj.service().reconcile(spec))
    click.secho(f"✓ {spec.name}: {outcome.value}", fg="green")


@cli.command()
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_obj
def get(obj: CliContext, spec_file: Path) -> None:
    """Show the current state of the managed cluster described by SPEC_FILE."""
    spec = load_spec_or_fail(spec_file)
    cluster = run_async(obj.service().get(spec))
    click.echo(
        json.dumps(
            {
                "name": cluster.name,
                "location": cluster.location,
                "provisioningState": cluster.provisioning_state,
                "kubernetesVersion": cluster.kubernetes_version,
                "fqdn": cluster.fqdn,
            },
            indent=2,
        )
    )


@cli.command()
@click.argument("spec_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_obj
def delete(obj: CliContext, spec_file: Path, yes: bool) -> None:
    """Delete the managed cluster described by SPEC_FILE."""
    spec = load_spec_or_fail(spec_file)
    if not yes:
        click.confirm(
            f"Delete managed cluster {spec.name} in resource group {spec.resource_group_name}?",
            abort=True,
        )
    run_async(obj.service().delete(spec))
    click.secho(f"✓ Delete requested for {spec.name}", fg="green")


@cli.command()
@click.argument("resource_group")
@click.argument("name")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    help="Write kubeconfig to this file instead of stdout",
)
@click.pass_obj
def credentials(obj: CliContext, resource_group: str, name: str, output: Path | None) -> None:
    """Fetch the admin kubeconfig of managed cluster NAME."""
    kubeconfig = run_async(obj.service().get_credentials(resource_group, name))
    if output is None:
        click.echo(kubeconfig.decode("utf-8"), nl=False)
        return

    # Owner-only from creation on; fchmod also tightens a pre-existing file
    fd = os.open(output, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    os.fchmod(fd, 0o600)
    with os.fdopen(fd, "wb") as f:
        f.write(kubeconfig)
    click.secho(f"✓ Kubeconfig written to {output}", fg="green")


@cli.command()
@click.option("--once", is_flag=True, help="Exit after a single reconcile cycle")
def run(once: bool) -> None:
    """Run the controller loop with configuration from the environment."""
    sys.exit(asyncio.run(run_controller(once=once)))


if __name__ == "__main__":
    cli()
