"""
Tests for the prometheus_client bridge.
"""
import pytest
import sys
import os

from prometheus_client.parser import text_string_to_metric_families

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from exposition import RegistryCollector, build_collector_registry, render_latest
from metric_registry import MetricRegistry
from metric_taxonomy import DEFAULT_DESCRIPTORS, gauge


@pytest.fixture
def scraped(generator, registry, node_identity):
    """Parsed exposition output after one 16-device cycle."""
    generator.generate_cycle(16, node_identity)
    payload, _ = render_latest(build_collector_registry(registry))
    return {family.name: family for family in text_string_to_metric_families(payload.decode("utf-8"))}


class TestCollector:
    """Tests for RegistryCollector.collect."""

    def test_one_family_per_descriptor(self, registry):
        families = list(RegistryCollector(registry).collect())
        assert [f.name for f in families] == [d.name for d in DEFAULT_DESCRIPTORS]

    def test_types_follow_descriptor_kind(self, registry):
        kinds = {f.name: f.type for f in RegistryCollector(registry).collect()}
        for descriptor in DEFAULT_DESCRIPTORS:
            assert kinds[descriptor.name] == descriptor.kind.value

    def test_empty_registry_has_no_samples(self, registry):
        assert all(f.samples == [] for f in RegistryCollector(registry).collect())


class TestRenderedText:
    """Tests for the text exposition output."""

    def test_content_type(self, registry):
        _, content_type = render_latest(build_collector_registry(registry))
        assert content_type.startswith("text/plain")

    def test_help_and_type_lines(self, generator, registry, node_identity):
        generator.generate_cycle(1, node_identity)
        text = render_latest(build_collector_registry(registry))[0].decode("utf-8")
        assert "# HELP DCGM_FI_DEV_GPU_TEMP GPU temperature (in C)." in text
        assert "# TYPE DCGM_FI_DEV_GPU_TEMP gauge" in text
        assert "# TYPE DCGM_FI_DEV_RETIRED_DBE counter" in text
        assert "# HELP DCGM_FI_DEV_RETIRED_DBE Total number of retired pages due to double-bit errors." in text

    def test_series_per_device(self, scraped):
        temps = scraped["DCGM_FI_DEV_GPU_TEMP"].samples
        assert sorted(int(s.labels["gpu"]) for s in temps) == list(range(16))

    def test_labels_round_trip(self, scraped):
        sample = next(s for s in scraped["DCGM_FI_DEV_FB_USED"].samples if s.labels["gpu"] == "14")
        assert sample.labels["device"] == "nvidia14"
        assert sample.labels["UUID"] == "GPU-019e4201-8930-0014-0000-000020029626"
        assert sample.labels["modelName"] == "PPU-ZW810E"

    def test_memory_consistency_survives_encoding(self, scraped):
        used = {s.labels["gpu"]: s.value for s in scraped["DCGM_FI_DEV_FB_USED"].samples}
        free = {s.labels["gpu"]: s.value for s in scraped["DCGM_FI_DEV_FB_FREE"].samples}
        for gpu in used:
            assert used[gpu] + free[gpu] == 98304.0

    def test_illegal_process_series(self, scraped):
        samples = scraped["DCGM_CUSTOM_ILLEGAL_PROCESS_MEM_USED"].samples
        assert {s.labels["gpu"]: s.value for s in samples} == {"0": 544.0, "14": 4454.0}

    def test_node_level_gauges(self, scraped):
        assert scraped["DCGM_FI_DEV_COUNT"].samples[0].value == 16.0
        assert scraped["DCGM_FI_DEV_COUNT"].samples[0].labels == {}


class TestCounterNames:
    """Counters are served under their catalog names."""

    def test_sample_lines_use_catalog_names(self, generator, registry, node_identity):
        generator.generate_cycle(2, node_identity)
        text = render_latest(build_collector_registry(registry))[0].decode("utf-8")
        sample_names = {
            line.split("{", 1)[0].split(" ", 1)[0]
            for line in text.splitlines()
            if line and not line.startswith("#")
        }
        for descriptor in DEFAULT_DESCRIPTORS:
            assert descriptor.name in sample_names
        assert not any(name.endswith("_total") for name in sample_names)

    def test_counter_type_line_and_samples_match(self, generator, registry, node_identity):
        generator.generate_cycle(1, node_identity)
        text = render_latest(build_collector_registry(registry))[0].decode("utf-8")
        lines = text.splitlines()
        type_index = lines.index("# TYPE DCGM_FI_PROF_NVLINK_RX_BYTES counter")
        assert lines[type_index + 1].startswith('DCGM_FI_PROF_NVLINK_RX_BYTES{')
        assert "DCGM_FI_PROF_NVLINK_RX_BYTES_total" not in text

    def test_collector_counter_samples_keep_name(self, generator, registry, node_identity):
        generator.generate_cycle(1, node_identity)
        families = {f.name: f for f in RegistryCollector(registry).collect()}
        retired = families["DCGM_FI_DEV_RETIRED_DBE"]
        assert retired.type == "counter"
        assert [s.name for s in retired.samples] == ["DCGM_FI_DEV_RETIRED_DBE"]

    def test_parser_reads_counters_back(self, scraped):
        family = scraped["DCGM_FI_DEV_RETIRED_SBE"]
        assert family.type == "counter"
        assert len(family.samples) == 16


class TestEscaping:
    """Tests for label and help escaping."""

    def test_special_characters_round_trip(self):
        registry = MetricRegistry([gauge("TEST_GAUGE", 'help with \\ and\nnewline', ("name",))])
        registry.upsert("TEST_GAUGE", {"name": 'quote " slash \\ line\nbreak'}, 1.5)
        text = render_latest(build_collector_registry(registry))[0].decode("utf-8")
        family = next(text_string_to_metric_families(text))
        assert family.documentation == 'help with \\ and\nnewline'
        assert family.samples[0].labels == {"name": 'quote " slash \\ line\nbreak'}
        assert family.samples[0].value == 1.5
