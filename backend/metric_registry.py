"""
In-memory store of live metric series.

Every write is validated against its descriptor before it is staged. Writes
are applied in batches under a single lock, and snapshots take the same lock,
so a reader never sees half of a batch.
"""
import logging
import math
import threading
from types import MappingProxyType
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from exporter_errors import (
    ConfigurationError,
    InvalidDelta,
    LabelSchemaMismatch,
    UnknownDescriptor,
)
from metric_taxonomy import MetricDescriptor

logger = logging.getLogger(__name__)

SeriesKey = Tuple[str, ...]


@dataclass(frozen=True)
class SeriesSample:
    labels: Mapping[str, str]
    value: float


@dataclass(frozen=True)
class MetricFamilySnapshot:
    descriptor: MetricDescriptor
    samples: Tuple[SeriesSample, ...]


@dataclass(frozen=True)
class StagedWrite:
    descriptor: MetricDescriptor
    key: SeriesKey
    value: float


class WriteBatch:
    """Validated writes waiting to be committed together."""

    def __init__(self, registry: "MetricRegistry"):
        self._registry = registry
        self._writes: List[StagedWrite] = []

    def upsert(self, name: str, labels: Mapping[str, str], value: float) -> None:
        self._writes.append(self._registry.validate(name, labels, value))

    def extend(self, other: "WriteBatch") -> None:
        self._writes.extend(other._writes)

    def __iter__(self):
        return iter(self._writes)

    def __len__(self) -> int:
        return len(self._writes)


class MetricRegistry:
    """
    Owns the registered descriptors and one value per (descriptor, label set).

    Gauges are replaced on each write; counters add the written delta.
    Series are never removed.
    """

    def __init__(self, descriptors: Optional[Iterable[MetricDescriptor]] = None):
        self._lock = threading.Lock()
        self._descriptors: Dict[str, MetricDescriptor] = {}
        # name -> series key -> value; dicts keep first-write order
        self._series: Dict[str, Dict[SeriesKey, float]] = {}
        for descriptor in descriptors or ():
            self.register(descriptor)

    def register(self, descriptor: MetricDescriptor) -> None:
        with self._lock:
            if descriptor.name in self._descriptors:
                raise ConfigurationError(f"metric descriptor {descriptor.name!r} registered twice")
            self._descriptors[descriptor.name] = descriptor
            self._series[descriptor.name] = {}

    def descriptor(self, name: str) -> MetricDescriptor:
        try:
            return self._descriptors[name]
        except KeyError:
            raise UnknownDescriptor(name) from None

    def descriptors(self) -> List[MetricDescriptor]:
        return list(self._descriptors.values())

    def validate(self, name: str, labels: Mapping[str, str], value: float) -> StagedWrite:
        """Check a write against its descriptor and return it in staged form."""
        descriptor = self.descriptor(name)
        if set(labels) != set(descriptor.label_names):
            raise LabelSchemaMismatch(name, descriptor.label_names, labels.keys())
        value = float(value)
        if descriptor.is_counter and (value < 0 or math.isnan(value)):
            raise InvalidDelta(name, value)
        key = tuple(str(labels[label]) for label in descriptor.label_names)
        return StagedWrite(descriptor=descriptor, key=key, value=value)

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def commit(self, batch: WriteBatch) -> int:
        """Apply every write in the batch atomically. Returns the number of writes."""
        with self._lock:
            for write in batch:
                series = self._series[write.descriptor.name]
                if write.descriptor.is_counter:
                    series[write.key] = series.get(write.key, 0.0) + write.value
                else:
                    series[write.key] = write.value
        logger.debug("Committed %d metric writes", len(batch))
        return len(batch)

    def upsert(self, name: str, labels: Mapping[str, str], value: float) -> None:
        batch = self.batch()
        batch.upsert(name, labels, value)
        self.commit(batch)

    def get(self, name: str, labels: Mapping[str, str]) -> Optional[float]:
        descriptor = self.descriptor(name)
        if set(labels) != set(descriptor.label_names):
            raise LabelSchemaMismatch(name, descriptor.label_names, labels.keys())
        key = tuple(str(labels[label]) for label in descriptor.label_names)
        with self._lock:
            return self._series[name].get(key)

    def series_count(self) -> int:
        with self._lock:
            return sum(len(series) for series in self._series.values())

    def snapshot(self) -> Tuple[MetricFamilySnapshot, ...]:
        """Point-in-time copy of all series, grouped by descriptor in registration order."""
        with self._lock:
            families = []
            for name, descriptor in self._descriptors.items():
                samples = tuple(
                    SeriesSample(labels=MappingProxyType(dict(zip(descriptor.label_names, key))), value=value)
                    for key, value in self._series[name].items()
                )
                families.append(MetricFamilySnapshot(descriptor=descriptor, samples=samples))
        return tuple(families)
