from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, generate_latest


class GeocodeMetrics:
    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._registry = registry or CollectorRegistry()
        self._enqueue_counter = Counter(
            "geocode_jobs_enqueued_total",
            "Geocode enqueue requests by outcome",
            labelnames=("outcome",),
            registry=self._registry,
        )
        self._processed_counter = Counter(
            "geocode_jobs_processed_total",
            "Geocode jobs processed by status",
            labelnames=("status",),
            registry=self._registry,
        )

    def observe_enqueue(self, outcome: str) -> None:
        self._enqueue_counter.labels(outcome).inc()

    def observe_processed(self, status: str) -> None:
        self._processed_counter.labels(status).inc()

    def value(self, name: str, labels: dict[str, str]) -> float:
        return self._registry.get_sample_value(name, labels) or 0.0

    def render(self) -> str:
        return generate_latest(self._registry).decode("utf-8")
