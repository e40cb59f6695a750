"""Prometheus metrics for provider calls and pipeline stages."""

from prometheus_client import Counter, Histogram

# Provider call metrics
provider_latency_ms = Histogram(
    "provider_latency_ms",
    "Provider call latency in milliseconds",
    ["provider", "outcome"],
    buckets=[10, 50, 100, 200, 500, 1000, 2000, 4000, 8000, 16000],
)

provider_errors_total = Counter(
    "provider_errors_total",
    "Total provider call errors",
    ["provider", "reason"],
)

provider_cache_hits_total = Counter(
    "provider_cache_hits_total",
    "Total provider cache hits",
    ["provider"],
)

# Pipeline metrics
place_resolutions_total = Counter(
    "place_resolutions_total",
    "Resolved locations by source tier",
    ["tier"],
)

budget_normalizations_total = Counter(
    "budget_normalizations_total",
    "Budget normalizer outcomes",
    ["outcome"],
)

pipeline_stage_latency_ms = Histogram(
    "pipeline_stage_latency_ms",
    "Itinerary pipeline stage latency in milliseconds",
    ["operation", "stage"],
    buckets=[10, 50, 100, 500, 1000, 2500, 5000, 10000, 30000, 60000],
)


class PrometheusProviderMetrics:
    """Prometheus-based provider metrics implementation."""

    def record_latency(self, provider: str, outcome: str, latency_ms: float) -> None:
        provider_latency_ms.labels(provider=provider, outcome=outcome).observe(latency_ms)

    def inc_error(self, provider: str, reason: str) -> None:
        provider_errors_total.labels(provider=provider, reason=reason).inc()

    def inc_cache_hit(self, provider: str) -> None:
        provider_cache_hits_total.labels(provider=provider).inc()


def record_resolution(tier: str) -> None:
    """Count one resolved location for its tier."""
    place_resolutions_total.labels(tier=tier).inc()


def record_normalization(outcome: str) -> None:
    """Count one normalizer run (scaled, unchanged, degenerate)."""
    budget_normalizations_total.labels(outcome=outcome).inc()


def record_stage(operation: str, stage: str, latency_ms: float) -> None:
    pipeline_stage_latency_ms.labels(operation=operation, stage=stage).observe(latency_ms)
