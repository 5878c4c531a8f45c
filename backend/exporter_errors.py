"""
Error kinds raised by the metric catalog and registry.

ConfigurationError is fatal and only raised while the catalog is being built.
The MetricWriteError family signals schema drift inside a generation cycle;
the generator logs it and skips the affected device.
"""


class ExporterError(Exception):
    """Base class for all exporter errors."""


class ConfigurationError(ExporterError):
    """A metric descriptor was registered twice."""


class MetricWriteError(ExporterError):
    """A write to the registry was rejected."""

    def __init__(self, metric_name: str, message: str):
        super().__init__(f"{metric_name}: {message}")
        self.metric_name = metric_name


class UnknownDescriptor(MetricWriteError):
    def __init__(self, metric_name: str):
        super().__init__(metric_name, "metric descriptor is not registered")


class LabelSchemaMismatch(MetricWriteError):
    def __init__(self, metric_name: str, expected, actual):
        missing = sorted(set(expected) - set(actual))
        extra = sorted(set(actual) - set(expected))
        super().__init__(metric_name, f"label schema mismatch (missing={missing}, extra={extra})")
        self.missing = missing
        self.extra = extra


class InvalidDelta(MetricWriteError):
    def __init__(self, metric_name: str, value: float):
        super().__init__(metric_name, f"counter delta must be non-negative, got {value}")
        self.value = value
