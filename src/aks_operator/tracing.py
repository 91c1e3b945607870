"""Span tracking for managed cluster operations.

Every public service entry point runs inside a span. A span is opened on
entry and closed on every exit path, including errors, and is emitted as one
structured log record so operations can be correlated and timed from the
container logs.
"""

from __future__ import annotations

import logging
import os
import time
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

# Version is set at build time or falls back to dev
OPERATOR_VERSION = os.environ.get("OPERATOR_VERSION", "dev")


@dataclass
class Span:
    """A single traced operation."""

    name: str
    span_id: str = field(default_factory=lambda: uuid.uuid4().hex[:16])
    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    attributes: dict[str, Any] = field(default_factory=dict)
    duration_seconds: float = 0.0
    error: str | None = None
    error_type: str | None = None
    ended: bool = False

    def set_attribute(self, key: str, value: Any) -> None:
        """Attach an attribute to the span."""
        self.attributes[key] = value

    def record_error(self, error: BaseException) -> None:
        """Mark the span as failed."""
        self.error = str(error)
        self.error_type = type(error).__name__

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = asdict(self)
        result["start_time"] = self.start_time.isoformat()
        return result


class Tracer:
    """Creates spans and logs them when they end."""

    def __init__(self) -> None:
        self._instance_id = os.environ.get("CONTAINER_INSTANCE_ID", "")
        self._finished: list[Span] = []
        self._record_finished = False

    def record_finished(self, enabled: bool = True) -> None:
        """Keep finished spans in memory (used by tests)."""
        self._record_finished = enabled
        self._finished.clear()

    @property
    def finished_spans(self) -> list[Span]:
        """Spans ended since recording was enabled."""
        return list(self._finished)

    @contextmanager
    def start_span(self, name: str, **attributes: Any) -> Iterator[Span]:
        """Open a span for the duration of the with-block.

        Exceptions raised inside the block are recorded on the span and
        re-raised unchanged.
        """
        span = Span(name=name, attributes=dict(attributes))
        started = time.monotonic()
        try:
            yield span
        except BaseException as e:
            span.record_error(e)
            raise
        finally:
            span.duration_seconds = time.monotonic() - started
            span.ended = True
            self._end(span)

    def _end(self, span: Span) -> None:
        if self._record_finished:
            self._finished.append(span)

        logger.log(
            logging.WARNING if span.error else logging.DEBUG,
            "Span finished",
            extra={
                "span": span.to_dict(),
                "span_name": span.name,
                "duration_seconds": span.duration_seconds,
                "operator_version": OPERATOR_VERSION,
                "operator_instance_id": self._instance_id,
            },
        )


# Global singleton tracer
_tracer: Tracer | None = None


def get_tracer() -> Tracer:
    """Get the global tracer instance."""
    global _tracer
    if _tracer is None:
        _tracer = Tracer()
    return _tracer
