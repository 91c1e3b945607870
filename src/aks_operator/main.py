"""Main entry point for the AKS managed cluster controller.

The controller is the control loop around ManagedClusterService: it loads
the cluster spec and reconciles on a fixed interval until shut down. The
service itself never retries, so a blocked or failed cycle is simply
re-invoked on the next interval.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from dataclasses import dataclass, field
from datetime import UTC, datetime

from .client import AzureManagedClusterClient
from .config import Config, ConfigurationError
from .errors import ManagedClusterError, ProvisioningBlockedError
from .managed_clusters import ManagedClusterService, ReconcileOutcome
from .security import SecretlessViolationError
from .spec_loader import SpecLoadError, load_cluster_spec

logger = logging.getLogger(__name__)

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_LOG_ATTRS = frozenset({
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "exc_info",
    "exc_text",
    "thread",
    "threadName",
    "taskName",
    "message",
})


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_LOG_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO") -> None:
    """Configure structured logging with JSON output for production."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    # Replace a handler installed by an earlier call (CLI then controller)
    for existing in list(root_logger.handlers):
        if isinstance(existing.formatter, JsonFormatter):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level.upper())

    # Reduce noise from Azure SDK
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


@dataclass
class ControllerResult:
    """Result of a single control loop cycle."""

    cluster: str
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    outcome: ReconcileOutcome | None = None
    blocked: bool = False
    error: Exception | None = None

    @property
    def duration_seconds(self) -> float:
        """Calculate duration in seconds."""
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        """Check if the cycle succeeded."""
        return self.error is None


class ClusterController:
    """Runs reconcile on an interval until shutdown."""

    def __init__(self, config: Config, service: ManagedClusterService) -> None:
        self._config = config
        self._service = service
        self._shutdown_event = asyncio.Event()

    async def reconcile_once(self) -> ControllerResult:
        """Load the spec and run one reconcile."""
        result = ControllerResult(cluster=self._config.cluster_name)
        try:
            spec = load_cluster_spec(self._config.spec_path)
            result.cluster = spec.name
            result.outcome = await self._service.reconcile(spec)
        except ProvisioningBlockedError as e:
            result.blocked = True
            result.error = e
        except (SpecLoadError, ManagedClusterError) as e:
            result.error = e
        except Exception as e:
            logger.exception("Unexpected error during reconciliation")
            result.error = e
        finally:
            result.end_time = datetime.now(UTC)
        return result

    async def run(self, once: bool = False) -> ControllerResult | None:
        """Run reconciliation cycles until shutdown (or after one if once).

        Returns:
            The result of the last cycle, or None if no cycle ran.
        """
        logger.info(
            "Starting controller",
            extra={
                "cluster": self._config.cluster_name,
                "interval_seconds": self._config.reconcile_interval_seconds,
                "dry_run": self._config.dry_run,
            },
        )

        result: ControllerResult | None = None
        while not self._shutdown_event.is_set():
            result = await self.reconcile_once()
            self._log_result(result)
            if once:
                break

            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(),
                    timeout=self._config.reconcile_interval_seconds,
                )
            except TimeoutError:
                pass

        logger.info("Controller shutdown complete", extra={"cluster": self._config.cluster_name})
        return result

    def shutdown(self) -> None:
        """Signal the controller to stop."""
        logger.info("Shutdown requested", extra={"cluster": self._config.cluster_name})
        self._shutdown_event.set()

    def _log_result(self, result: ControllerResult) -> None:
        extra = {
            "cluster": result.cluster,
            "outcome": result.outcome.value if result.outcome else None,
            "duration_seconds": result.duration_seconds,
        }
        if result.blocked:
            logger.info("Reconciliation deferred, cluster is mid-transition", extra=extra)
        elif result.error is not None:
            logger.error(
                "Reconciliation failed",
                extra={**extra, "error": str(result.error), "error_type": type(result.error).__name__},
            )
        else:
            logger.info("Reconciliation completed", extra=extra)


def build_service(config: Config) -> ManagedClusterService:
    """Create a service wired to Azure with the controller's managed identity."""
    return ManagedClusterService(
        AzureManagedClusterClient.from_config(config),
        config.defaults,
        dry_run=config.dry_run,
    )


async def main(once: bool = False) -> int:
    """Run the controller.

    Returns:
        Exit code (0 success, 1 configuration error or failed single cycle,
        2 security violation). A blocked single cycle counts as success.
    """
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        setup_logging()
        logger.error("Configuration error", extra={"error": str(e)})
        return 1

    setup_logging(config.log_level)
    logger.info(
        "Starting AKS managed cluster controller",
        extra={
            "subscription_id": config.subscription_id,
            "cluster": config.cluster_name,
            "specs_dir": str(config.specs_dir),
        },
    )

    try:
        controller = ClusterController(config, build_service(config))
    except SecretlessViolationError as e:
        logger.critical(
            "Security violation: credentials detected in environment",
            extra={"error": str(e)},
        )
        return 2

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, controller.shutdown)

    result = await controller.run(once=once)
    logger.info("Controller stopped")
    if once and result is not None and not result.success and not result.blocked:
        return 1
    return 0


def run() -> None:
    """Entry point for the controller process."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
