"""
Sampling and pipeline metrics on top of OpenTelemetry.

Instruments are recorded on an OTel ``Meter``; the collector also keeps
in-process aggregates per step so callers can inspect acceptance rates without
a metrics backend.
"""

from collections import defaultdict
from typing import Any

from opentelemetry import metrics
from opentelemetry.metrics import Counter, Histogram, Meter, NoOpMeter

from .logging import get_logger

logger = get_logger(__name__)

SAMPLE_OUTCOMES = ("accepted", "invalid", "red_flag")


class MetricsCollector:
    """Centralized metrics collection for steps and pipelines."""

    def __init__(self, meter: Meter):
        self.meter = meter
        self._counters: dict[str, Counter] = {}
        self._histograms: dict[str, Histogram] = {}

        self._step_runs: dict[str, int] = defaultdict(int)
        self._step_failures: dict[str, int] = defaultdict(int)
        self._sample_outcomes: dict[str, dict[str, int]] = defaultdict(
            lambda: dict.fromkeys(SAMPLE_OUTCOMES, 0)
        )
        self._attempts: dict[str, list[int]] = defaultdict(list)
        self._accepted: dict[str, list[int]] = defaultdict(list)

        self._setup_default_metrics()

    def _setup_default_metrics(self):
        self._counters["samples_total"] = self.meter.create_counter(
            "forge_samples_total", description="Generator samples by outcome", unit="1"
        )
        self._counters["step_executions_total"] = self.meter.create_counter(
            "forge_step_executions_total", description="Step executions", unit="1"
        )
        self._histograms["step_duration"] = self.meter.create_histogram(
            "forge_step_duration_seconds", description="Step execution duration", unit="s"
        )
        self._histograms["step_attempts"] = self.meter.create_histogram(
            "forge_step_attempts", description="Sampling attempts per step execution", unit="1"
        )
        self._histograms["step_accepted"] = self.meter.create_histogram(
            "forge_step_accepted_samples", description="Accepted samples per step execution", unit="1"
        )
        self._counters["pipeline_runs_total"] = self.meter.create_counter(
            "forge_pipeline_runs_total", description="Pipeline runs", unit="1"
        )
        self._histograms["pipeline_duration"] = self.meter.create_histogram(
            "forge_pipeline_duration_seconds", description="Pipeline run duration", unit="s"
        )

    def record_sample(self, step: str, outcome: str) -> None:
        """Record one sampling attempt; ``outcome`` is one of ``SAMPLE_OUTCOMES``."""
        if outcome not in SAMPLE_OUTCOMES:
            raise ValueError(f"unknown sample outcome: {outcome}")
        self._counters["samples_total"].add(1, {"step": step, "outcome": outcome})
        self._sample_outcomes[step][outcome] += 1

    def record_step(
        self, step: str, duration: float, attempts: int, accepted: int, success: bool
    ) -> None:
        attributes = {"step": step, "success": str(success).lower()}
        self._counters["step_executions_total"].add(1, attributes)
        self._histograms["step_duration"].record(duration, attributes)
        self._histograms["step_attempts"].record(attempts, attributes)
        self._histograms["step_accepted"].record(accepted, attributes)

        self._step_runs[step] += 1
        if not success:
            self._step_failures[step] += 1
        self._attempts[step].append(attempts)
        self._accepted[step].append(accepted)

    def record_pipeline(self, pipeline: str, duration: float, success: bool, stages_run: int):
        attributes = {
            "pipeline": pipeline,
            "success": str(success).lower(),
            "stages_run": str(stages_run),
        }
        self._counters["pipeline_runs_total"].add(1, attributes)
        self._histograms["pipeline_duration"].record(duration, attributes)

    def get_step_metrics(self) -> dict[str, Any]:
        """Aggregate per-step figures recorded so far."""
        data = {}
        for step in set(self._step_runs) | set(self._sample_outcomes):
            outcomes = dict(self._sample_outcomes[step])
            total = sum(outcomes.values())
            attempts = self._attempts[step]
            accepted = self._accepted[step]
            data[step] = {
                "executions": self._step_runs[step],
                "failures": self._step_failures[step],
                "samples": outcomes,
                "acceptance_rate": outcomes["accepted"] / total if total else 0.0,
                "avg_attempts": sum(attempts) / len(attempts) if attempts else 0.0,
                "avg_accepted": sum(accepted) / len(accepted) if accepted else 0.0,
            }
        return data


_metrics_collector: MetricsCollector | None = None


def setup_metrics(meter: Meter) -> MetricsCollector:
    """Install a global collector recording on ``meter``."""
    global _metrics_collector
    _metrics_collector = MetricsCollector(meter)
    return _metrics_collector


def get_metrics_collector() -> MetricsCollector:
    """Get the global collector, creating one from settings on first use."""
    global _metrics_collector
    if _metrics_collector is None:
        from ..config.settings import get_settings

        config = get_settings().observability
        if config.enable_metrics:
            meter = metrics.get_meter(config.service_name, config.service_version)
        else:
            meter = NoOpMeter(config.service_name)
        _metrics_collector = MetricsCollector(meter)
    return _metrics_collector
