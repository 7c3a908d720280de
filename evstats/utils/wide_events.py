"""
Wide Events (Canonical Log Lines) for the analytics engine

One structured JSON event per analytic operation (model fit, scheduling
run, health check, API request) instead of a trail of scattered log lines.
Each event carries:
- identifiers (request_id, optional trace_id such as a dataset hash)
- business metrics (samples used, predicted SoH, windows found)
- technical metrics (loss, cache hits) and per-phase timings
- success/failure with the error attached

Tail sampling keeps every failure, every slow operation and every
noteworthy outcome, and samples the rest.
"""

import random
import time
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import structlog

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

# Outcomes that are always worth a log line, whatever the sampling says
NOTEWORTHY_OUTCOMES = (
    "model_untrained",
    "critical_anomaly",
    "insufficient_time",
    "oracle_missing",
)


class WideEvent:
    """
    Collects context while an operation runs and logs it once at the end.

    Usage:
        event = WideEvent("range_model_training", trace_id=dataset_hash)
        event.add_context(trip_count=len(trips))

        with event.timer("fit"):
            fit = fit_linear_regression(...)

        event.add_business_metric("samples", fit_samples)
        event.add_technical_metric("loss", fit.loss)
        event.emit()
    """

    def __init__(self, operation: str, request_id: Optional[str] = None, trace_id: Optional[str] = None):
        self.operation = operation
        self.context: Dict[str, Any] = {
            "operation": operation,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "start_time": time.time(),
            "request_id": request_id or str(uuid.uuid4()),
        }
        if trace_id:
            self.context["trace_id"] = trace_id

        self.logger = structlog.get_logger()

    def add_context(self, **kwargs) -> "WideEvent":
        """Add identifying context (dataset sizes, settings, ids)."""
        self.context.update(kwargs)
        return self

    def add_business_metric(self, key: str, value: Any) -> "WideEvent":
        """Add domain outcomes (samples, predicted SoH, windows, anomalies)."""
        self.context.setdefault("business_metrics", {})[key] = value
        return self

    def add_technical_metric(self, key: str, value: Any) -> "WideEvent":
        """Add technical measurements (loss, cache hits, probe counts)."""
        self.context.setdefault("technical_metrics", {})[key] = value
        return self

    def add_outcome(self, outcome: str) -> "WideEvent":
        """Tag a notable result such as 'insufficient_time'."""
        self.context.setdefault("outcomes", []).append(outcome)
        return self

    def add_error(self, error: Exception, **kwargs) -> "WideEvent":
        self.context["error"] = {
            "type": type(error).__name__,
            "message": str(error),
            "details": kwargs,
        }
        self.context["success"] = False
        return self

    def mark_success(self) -> "WideEvent":
        self.context["success"] = True
        return self

    def mark_failure(self, reason: str) -> "WideEvent":
        self.context["success"] = False
        self.context["failure_reason"] = reason
        return self

    @contextmanager
    def timer(self, phase: str):
        """
        Time one phase of the operation.

        Output lands in performance_breakdown, e.g. {"fit_ms": 212.4}.
        """
        start = time.time()
        try:
            yield
        finally:
            duration_ms = (time.time() - start) * 1000
            self.context.setdefault("performance_breakdown", {})[f"{phase}_ms"] = round(duration_ms, 2)

    def set_duration(self) -> "WideEvent":
        if "start_time" in self.context:
            duration_ms = (time.time() - self.context["start_time"]) * 1000
            self.context["duration_ms"] = round(duration_ms, 2)
            del self.context["start_time"]
        return self

    def should_emit(self, sample_rate: float = 0.05, slow_threshold_ms: float = 1000) -> bool:
        """
        Tail sampling: errors, slow operations and noteworthy outcomes are
        always kept; everything else is sampled at sample_rate.
        """
        if not self.context.get("success", True):
            return True

        if self.context.get("duration_ms", 0) > slow_threshold_ms:
            return True

        outcomes = self.context.get("outcomes", [])
        if any(outcome in NOTEWORTHY_OUTCOMES for outcome in outcomes):
            return True

        return random.random() < sample_rate

    def emit(self, level: str = "info", force: bool = False) -> None:
        """
        Log the event as one line.

        Args:
            level: Log level (info, warning, error)
            force: Skip tail sampling
        """
        self.set_duration()

        if not force and not self.should_emit():
            return

        log_method = getattr(self.logger, level, self.logger.info)
        log_method(f"{self.operation}_complete", **self.context)


@contextmanager
def track_operation(operation: str, **initial_context):
    """
    Wrap an operation in a wide event that is emitted on exit.

    Usage:
        with track_operation("health_check", trip_count=len(trips)) as event:
            anomalies = run_checks()
            event.add_business_metric("anomalies", len(anomalies))
    """
    event = WideEvent(operation)
    event.add_context(**initial_context)

    try:
        yield event
        event.mark_success()
    except Exception as e:
        event.add_error(e)
        event.mark_failure(str(e))
        raise
    finally:
        event.emit(level="error" if not event.context.get("success", True) else "info", force=True)


def log_training_event(
    model: str,
    samples: int,
    loss: float,
    success: bool,
    **kwargs,
) -> None:
    """Log the outcome of a model fit that ran outside track_operation (e.g. in a worker)."""
    event = WideEvent(f"{model}_model_training")
    event.add_context(**kwargs)
    event.add_business_metric("samples", samples)
    event.add_technical_metric("loss", loss)
    if samples == 0:
        event.add_outcome("model_untrained")

    if success:
        event.mark_success()
    else:
        event.mark_failure(kwargs.get("error", "Unknown error"))

    event.emit(force=True)
