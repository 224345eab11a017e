"""Counters and distributions describing lifecycle and delivery activity."""
from .definitions import DEFAULT_METRIC_DEFINITIONS, MetricDefinition
from .exporters import PrometheusExporter
from .registry import CounterMetric, DistributionMetric, MetricsRegistry

metrics_registry = MetricsRegistry()


def register_default_metrics(registry: MetricsRegistry | None = None) -> MetricsRegistry:
    """Declare every default series on ``registry`` (the process registry by default)."""
    target = registry or metrics_registry
    factories = {"counter": target.counter, "distribution": target.distribution}
    for definition in DEFAULT_METRIC_DEFINITIONS:
        factory = factories.get(definition.metric_type)
        if factory is None:
            raise ValueError(f"Unsupported metric type {definition.metric_type!r} for {definition.name}")
        factory(definition.name, description=definition.description, label_names=definition.label_names)
    return target


# declared at import so /metrics lists every series from the start
register_default_metrics()

__all__ = [
    "CounterMetric",
    "DistributionMetric",
    "MetricDefinition",
    "MetricsRegistry",
    "PrometheusExporter",
    "metrics_registry",
    "register_default_metrics",
]
