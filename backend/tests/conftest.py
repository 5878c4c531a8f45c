"""
Pytest fixtures for ppu-exporter tests.
"""
import random
import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config_schema import ExporterConfig, NodeIdentity
from device_identity import DeviceIdentityResolver
from metric_registry import MetricRegistry
from metric_taxonomy import build_catalog
from sample_generator import SampleGenerator


@pytest.fixture
def node_identity():
    """Node identity used for every generated series."""
    return NodeIdentity(
        node_name="ppu-worker-test",
        node_pool_id="np-test",
        pod_source="ecs",
        driver_version="1.5.1-1d747a",
    )


@pytest.fixture
def registry():
    """Registry holding the full default catalog."""
    return MetricRegistry(build_catalog().values())


@pytest.fixture
def seeded_rng():
    return random.Random(1234)


@pytest.fixture
def generator(registry, seeded_rng):
    """SampleGenerator with a deterministic random source."""
    return SampleGenerator(registry, DeviceIdentityResolver(seeded_rng), seeded_rng)


@pytest.fixture
def exporter_config():
    """Small, fast configuration for app-level tests."""
    return ExporterConfig(
        node_name="ppu-worker-test",
        node_pool_id="np-test",
        device_count=4,
        refresh_interval_seconds=3600,
        random_seed=7,
    )
