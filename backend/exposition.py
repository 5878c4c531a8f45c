"""
Bridge from the MetricRegistry to prometheus_client.

RegistryCollector turns each registry snapshot into metric families on
every scrape. render_latest encodes them in the text exposition format
under the catalog names exactly: counters keep their DCGM names, with no
`_total` suffix on the family or its samples, the way dcgm-exporter
publishes them.
"""
from typing import Iterable, Iterator, List, Tuple

from prometheus_client import CONTENT_TYPE_LATEST
from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector, CollectorRegistry
from prometheus_client.utils import floatToGoString

from metric_registry import MetricFamilySnapshot, MetricRegistry


class RegistryCollector(Collector):
    """Custom collector exposing a MetricRegistry snapshot."""

    def __init__(self, registry: MetricRegistry):
        self.registry = registry

    def collect(self) -> Iterator[Metric]:
        for family in self.registry.snapshot():
            if family.descriptor.is_counter:
                yield _counter_family(family)
            else:
                yield _gauge_family(family)


def _gauge_family(family: MetricFamilySnapshot) -> Metric:
    descriptor = family.descriptor
    metric = GaugeMetricFamily(descriptor.name, descriptor.help, labels=list(descriptor.label_names))
    for sample in family.samples:
        metric.add_metric([sample.labels[name] for name in descriptor.label_names], sample.value)
    return metric


def _counter_family(family: MetricFamilySnapshot) -> Metric:
    # CounterMetricFamily would rename the samples to <name>_total.
    descriptor = family.descriptor
    metric = Metric(descriptor.name, descriptor.help, "counter")
    for sample in family.samples:
        metric.add_sample(descriptor.name, {name: sample.labels[name] for name in descriptor.label_names}, sample.value)
    return metric


def build_collector_registry(registry: MetricRegistry) -> CollectorRegistry:
    """A dedicated CollectorRegistry so process/platform collectors stay out of the output."""
    collector_registry = CollectorRegistry()
    collector_registry.register(RegistryCollector(registry))
    return collector_registry


def _escape_help(text: str) -> str:
    return text.replace("\\", r"\\").replace("\n", r"\n")


def _escape_label_value(value: str) -> str:
    return value.replace("\\", r"\\").replace("\n", r"\n").replace('"', r"\"")


def _format_family(metric: Metric) -> List[str]:
    lines = [
        f"# HELP {metric.name} {_escape_help(metric.documentation)}\n",
        f"# TYPE {metric.name} {metric.type}\n",
    ]
    for sample in metric.samples:
        if sample.labels:
            labelstr = ",".join(f'{key}="{_escape_label_value(value)}"' for key, value in sample.labels.items())
            lines.append(f"{sample.name}{{{labelstr}}} {floatToGoString(sample.value)}\n")
        else:
            lines.append(f"{sample.name} {floatToGoString(sample.value)}\n")
    return lines


def encode_families(metrics: Iterable[Metric]) -> bytes:
    """
    Text exposition (version 0.0.4) of the given families.

    prometheus_client's generate_latest always writes counters as
    `<name>_total`, which would break dashboards keyed on DCGM names, so the
    HELP/TYPE/sample lines are written here with the family name unchanged.
    """
    output = []
    for metric in metrics:
        output.extend(_format_family(metric))
    return "".join(output).encode("utf-8")


def render_latest(collector_registry: CollectorRegistry) -> Tuple[bytes, str]:
    """Encode the current state in the text exposition format."""
    return encode_families(collector_registry.collect()), CONTENT_TYPE_LATEST
