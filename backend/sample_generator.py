"""
Value generator for the simulated PPU fleet.

Produces one internally consistent sample per metric, per device, per cycle
and commits the whole cycle to the registry in a single batch. The fleet is
modeled as mostly idle: near-zero utilization, narrow temperature and power
bands, fixed clocks and zero error counters. A couple of devices carry extra
memory load and an "illegal" process so those code paths show up in the
exported data.
"""
import logging
import random
import time
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

from config_schema import NodeIdentity
from device_identity import DeviceIdentity, DeviceIdentityResolver
from exporter_errors import MetricWriteError
from metric_registry import MetricRegistry, WriteBatch

logger = logging.getLogger(__name__)

FB_TOTAL_MIB = 98304.0

BASELINE_USED_MIB = (18.0, 100.0)    # base, random span
HOT_USED_MIB = (500.0, 4000.0)
HOT_DEVICE_INDICES: FrozenSet[int] = frozenset({0, 14})

GPU_TEMP_C = (30.0, 10.0)
MEMORY_TEMP_OFFSET_C = (2.0, 3.0)
POWER_USAGE_W = (80.0, 15.0)
GPU_UTIL_MAX = 10.0
MEM_COPY_UTIL_MAX = 5.0
DRAM_ACTIVE_MAX = 5.0

APP_MEM_CLOCK_MHZ = 1800
APP_SM_CLOCK_MHZ = 1700
MEM_CLOCK_MHZ = 1800
SM_CLOCK_MHZ = 200
VIDEO_CLOCK_MHZ = 1000

THROTTLE_IDLE = 1
THROTTLE_POWER_LIMIT = 5
POWER_LIMIT_PROBABILITY = 0.2

ALLOCATE_MODE_NONE = 0

# Per-device values of the illegal process: (mem copy util, mem used MiB)
ILLEGAL_PROCESS_LOAD: Dict[int, tuple] = {
    0: (0, 544),
    14: (4, 4454),
}
ILLEGAL_PROCESS_ATTRIBUTION = {
    "AllocateMode": "none",
    "ContainerName": "",
    "NamespaceName": "",
    "PodName": "",
    "ProcessId": "3003",
    "ProcessName": "python",
    "ProcessType": "C",
}

ZERO_COUNTERS = (
    "DCGM_FI_DEV_RETIRED_DBE",
    "DCGM_FI_DEV_RETIRED_PENDING",
    "DCGM_FI_DEV_RETIRED_SBE",
    "DCGM_FI_DEV_NVLINK_BANDWIDTH_TOTAL",
    "DCGM_FI_PROF_NVLINK_RX_BYTES",
    "DCGM_FI_PROF_NVLINK_TX_BYTES",
)


@dataclass
class DeviceSample:
    """Values drawn for one device in one cycle."""
    fb_total: float
    fb_used: float
    fb_free: float
    gpu_temp: float
    memory_temp: float
    power_usage: float
    gpu_util: float
    mem_copy_util: float
    dram_active: float
    throttle_reason: int


@dataclass
class CycleReport:
    cycle: int
    device_count: int
    devices_written: int
    devices_skipped: List[int]
    writes: int
    duration_seconds: float

    @property
    def ok(self) -> bool:
        return not self.devices_skipped


def _uniform(rng: random.Random, band: tuple) -> float:
    base, span = band
    return base + rng.random() * span


class SampleGenerator:
    """
    Fills a MetricRegistry with a fresh cycle of device samples.

    The random source is owned by the generator so tests can seed it.
    """

    def __init__(
        self,
        registry: MetricRegistry,
        resolver: Optional[DeviceIdentityResolver] = None,
        rng: Optional[random.Random] = None,
        hot_devices: FrozenSet[int] = HOT_DEVICE_INDICES,
        illegal_process_load: Optional[Dict[int, tuple]] = None,
    ):
        self.registry = registry
        self.rng = rng or random.Random()
        self.resolver = resolver or DeviceIdentityResolver(self.rng)
        self.hot_devices = frozenset(hot_devices)
        self.illegal_process_load = dict(ILLEGAL_PROCESS_LOAD if illegal_process_load is None else illegal_process_load)
        self.cycles_completed = 0
        self.last_report: Optional[CycleReport] = None

    def draw_sample(self, index: int) -> DeviceSample:
        rng = self.rng
        band = HOT_USED_MIB if index in self.hot_devices else BASELINE_USED_MIB
        # DCGM reports framebuffer sizes in whole MiB
        fb_used = float(round(_uniform(rng, band)))
        gpu_temp = _uniform(rng, GPU_TEMP_C)
        memory_temp = gpu_temp + _uniform(rng, MEMORY_TEMP_OFFSET_C)
        throttle = THROTTLE_POWER_LIMIT if rng.random() < POWER_LIMIT_PROBABILITY else THROTTLE_IDLE
        return DeviceSample(
            fb_total=FB_TOTAL_MIB,
            fb_used=fb_used,
            fb_free=FB_TOTAL_MIB - fb_used,
            gpu_temp=gpu_temp,
            memory_temp=memory_temp,
            power_usage=_uniform(rng, POWER_USAGE_W),
            gpu_util=rng.random() * GPU_UTIL_MAX,
            mem_copy_util=rng.random() * MEM_COPY_UTIL_MAX,
            dram_active=rng.random() * DRAM_ACTIVE_MAX,
            throttle_reason=throttle,
        )

    @staticmethod
    def device_labels(node: NodeIdentity, device: DeviceIdentity) -> Dict[str, str]:
        return {
            "Hostname": node.node_name,
            "NodeName": node.node_name,
            "NodePoolId": node.node_pool_id,
            "PodSource": node.pod_source,
            "UUID": device.unique_id,
            "device": device.device_name,
            "gpu": device.gpu,
            "modelName": device.model_name,
        }

    @staticmethod
    def custom_device_labels(node: NodeIdentity, device: DeviceIdentity) -> Dict[str, str]:
        return {
            "DriverVersion": node.driver_version,
            "NodeName": node.node_name,
            "NodePoolId": node.node_pool_id,
            "PodSource": node.pod_source,
            "SupportDCGM": "Yes",
            "UUID": device.unique_id,
            "device": device.device_name,
            "gpu": device.gpu,
            "modelName": device.model_name,
        }

    @staticmethod
    def illegal_process_labels(node: NodeIdentity, device: DeviceIdentity) -> Dict[str, str]:
        labels = dict(ILLEGAL_PROCESS_ATTRIBUTION)
        labels.update({
            "NodeName": node.node_name,
            "NodePoolId": node.node_pool_id,
            "PodSource": node.pod_source,
            "UUID": device.unique_id,
            "device": device.device_name,
            "gpu": device.gpu,
            "modelName": device.model_name,
        })
        return labels

    def stage_device(self, batch: WriteBatch, node: NodeIdentity, index: int) -> DeviceSample:
        """Stage every series of one device into `batch`."""
        device = self.resolver.resolve(index)
        labels = self.device_labels(node, device)
        custom_labels = self.custom_device_labels(node, device)
        sample = self.draw_sample(index)

        batch.upsert("DCGM_CUSTOM_DEV_FB_ALLOCATED", custom_labels, 0)
        batch.upsert("DCGM_CUSTOM_DEV_FB_TOTAL", custom_labels, sample.fb_total)

        batch.upsert("DCGM_FI_DEV_APP_MEM_CLOCK", labels, APP_MEM_CLOCK_MHZ)
        batch.upsert("DCGM_FI_DEV_APP_SM_CLOCK", labels, APP_SM_CLOCK_MHZ)
        batch.upsert("DCGM_FI_DEV_BAR1_TOTAL", labels, sample.fb_total)
        batch.upsert("DCGM_FI_DEV_BAR1_USED", labels, sample.fb_used)
        batch.upsert("DCGM_FI_DEV_CLOCK_THROTTLE_REASONS", labels, sample.throttle_reason)

        batch.upsert("DCGM_FI_DEV_DEC_UTIL", labels, 0)
        batch.upsert("DCGM_FI_DEV_ENC_UTIL", labels, 0)
        batch.upsert("DCGM_FI_DEV_GPU_UTIL", labels, sample.gpu_util)

        batch.upsert("DCGM_FI_DEV_FB_FREE", labels, sample.fb_free)
        batch.upsert("DCGM_FI_DEV_FB_USED", labels, sample.fb_used)
        batch.upsert("DCGM_FI_DEV_MEM_COPY_UTIL", labels, sample.mem_copy_util)

        batch.upsert("DCGM_FI_DEV_GPU_TEMP", labels, sample.gpu_temp)
        batch.upsert("DCGM_FI_DEV_MEMORY_TEMP", labels, sample.memory_temp)

        batch.upsert("DCGM_FI_DEV_MEM_CLOCK", labels, MEM_CLOCK_MHZ)
        batch.upsert("DCGM_FI_DEV_SM_CLOCK", labels, SM_CLOCK_MHZ)
        batch.upsert("DCGM_FI_DEV_VIDEO_CLOCK", labels, VIDEO_CLOCK_MHZ)

        batch.upsert("DCGM_FI_DEV_POWER_USAGE", labels, sample.power_usage)

        # Idle fleet: nothing to count yet, but the series must exist
        for name in ZERO_COUNTERS:
            batch.upsert(name, labels, 0)
        batch.upsert("DCGM_FI_DEV_XID_ERRORS", labels, 0)

        batch.upsert("DCGM_FI_PROF_DRAM_ACTIVE", labels, sample.dram_active)
        batch.upsert("DCGM_FI_PROF_PCIE_RX_BYTES", labels, 0)
        batch.upsert("DCGM_FI_PROF_PCIE_TX_BYTES", labels, 0)

        if index in self.illegal_process_load:
            self.stage_illegal_process(batch, node, device)
        return sample

    def stage_illegal_process(self, batch: WriteBatch, node: NodeIdentity, device: DeviceIdentity) -> None:
        mem_copy_util, mem_used = self.illegal_process_load[device.index]
        labels = self.illegal_process_labels(node, device)
        batch.upsert("DCGM_CUSTOM_ILLEGAL_PROCESS_DECODE_UTIL", labels, 0)
        batch.upsert("DCGM_CUSTOM_ILLEGAL_PROCESS_ENCODE_UTIL", labels, 0)
        batch.upsert("DCGM_CUSTOM_ILLEGAL_PROCESS_MEM_COPY_UTIL", labels, mem_copy_util)
        batch.upsert("DCGM_CUSTOM_ILLEGAL_PROCESS_MEM_USED", labels, mem_used)
        batch.upsert("DCGM_CUSTOM_ILLEGAL_PROCESS_SM_UTIL", labels, 0)

    def generate_cycle(self, device_count: int, node: NodeIdentity) -> CycleReport:
        """
        Run one generation cycle over devices [0, device_count).

        A device whose writes fail validation is logged and skipped; its
        previous values stay in the registry untouched. Everything else is
        committed in one batch.
        """
        if device_count < 0:
            raise ValueError(f"device_count must be non-negative, got {device_count}")

        started = time.monotonic()
        cycle_batch = self.registry.batch()
        skipped: List[int] = []

        for index in range(device_count):
            device_batch = self.registry.batch()
            try:
                self.stage_device(device_batch, node, index)
            except MetricWriteError:
                logger.exception("Skipping device %d for this cycle: metric schema drift", index)
                skipped.append(index)
                continue
            cycle_batch.extend(device_batch)

        # A node without devices exports nothing at all
        if device_count:
            node_batch = self.registry.batch()
            try:
                node_batch.upsert("DCGM_CUSTOM_ALLOCATE_MODE", {}, ALLOCATE_MODE_NONE)
                node_batch.upsert("DCGM_FI_DEV_COUNT", {}, device_count)
            except MetricWriteError:
                logger.exception("Skipping node-level gauges for this cycle")
            else:
                cycle_batch.extend(node_batch)

        writes = self.registry.commit(cycle_batch)
        self.cycles_completed += 1
        report = CycleReport(
            cycle=self.cycles_completed,
            device_count=device_count,
            devices_written=device_count - len(skipped),
            devices_skipped=skipped,
            writes=writes,
            duration_seconds=time.monotonic() - started,
        )
        self.last_report = report
        if skipped:
            logger.warning("Cycle %d finished with %d skipped device(s): %s", report.cycle, len(skipped), skipped)
        else:
            logger.debug("Cycle %d wrote %d series for %d device(s)", report.cycle, writes, device_count)
        return report
