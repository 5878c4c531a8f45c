"""
Tests for the metric catalog.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from exporter_errors import ConfigurationError
from metric_taxonomy import (
    CUSTOM_DESCRIPTORS,
    CUSTOM_DEVICE_LABELS,
    DEFAULT_DESCRIPTORS,
    DEVICE_DESCRIPTORS,
    DEVICE_LABELS,
    ILLEGAL_PROCESS_LABELS,
    NODE_LABELS,
    PROFILING_DESCRIPTORS,
    MetricKind,
    build_catalog,
    gauge,
)


class TestCatalog:
    """Tests for build_catalog."""

    def test_default_catalog_size(self):
        catalog = build_catalog()
        assert len(catalog) == len(DEFAULT_DESCRIPTORS) == 36
        assert len(CUSTOM_DESCRIPTORS) == 8
        assert len(DEVICE_DESCRIPTORS) == 23
        assert len(PROFILING_DESCRIPTORS) == 5

    def test_keyed_by_name_in_declaration_order(self):
        catalog = build_catalog()
        assert list(catalog) == [d.name for d in DEFAULT_DESCRIPTORS]
        assert catalog["DCGM_FI_DEV_FB_FREE"].help == "Framebuffer memory free (in MiB)."

    def test_duplicate_name_rejected(self):
        duplicate = gauge("DCGM_FI_DEV_GPU_TEMP", "another help text")
        with pytest.raises(ConfigurationError, match="DCGM_FI_DEV_GPU_TEMP"):
            build_catalog(DEFAULT_DESCRIPTORS + (duplicate,))

    def test_counter_kinds(self):
        catalog = build_catalog()
        counters = {name for name, d in catalog.items() if d.kind is MetricKind.COUNTER}
        assert counters == {
            "DCGM_FI_DEV_NVLINK_BANDWIDTH_TOTAL",
            "DCGM_FI_DEV_RETIRED_DBE",
            "DCGM_FI_DEV_RETIRED_PENDING",
            "DCGM_FI_DEV_RETIRED_SBE",
            "DCGM_FI_PROF_NVLINK_RX_BYTES",
            "DCGM_FI_PROF_NVLINK_TX_BYTES",
        }


class TestLabelSchemas:
    """Every descriptor uses one of the fixed label shapes."""

    def test_only_known_shapes(self):
        shapes = {NODE_LABELS, DEVICE_LABELS, CUSTOM_DEVICE_LABELS, ILLEGAL_PROCESS_LABELS}
        for descriptor in DEFAULT_DESCRIPTORS:
            assert descriptor.label_names in shapes, descriptor.name

    def test_custom_device_shape(self):
        """Custom-device labels add driver version and support flag and drop Hostname."""
        assert "Hostname" not in CUSTOM_DEVICE_LABELS
        assert set(CUSTOM_DEVICE_LABELS) - set(DEVICE_LABELS) == {"DriverVersion", "SupportDCGM"}

    def test_illegal_process_shape(self):
        extra = set(ILLEGAL_PROCESS_LABELS) - set(DEVICE_LABELS)
        assert {"ProcessId", "ProcessName", "PodName", "ContainerName", "NamespaceName"} <= extra

    def test_illegal_process_descriptors(self):
        catalog = build_catalog()
        illegal = [name for name, d in catalog.items() if d.label_names == ILLEGAL_PROCESS_LABELS]
        assert len(illegal) == 5
        assert all(name.startswith("DCGM_CUSTOM_ILLEGAL_PROCESS_") for name in illegal)

    def test_node_level_descriptors(self):
        catalog = build_catalog()
        node_level = {name for name, d in catalog.items() if d.label_names == NODE_LABELS}
        assert node_level == {"DCGM_CUSTOM_ALLOCATE_MODE", "DCGM_FI_DEV_COUNT"}
