"""
Catalog of the metric descriptors exported by the simulated PPU agent.

Descriptors are plain data: adding a metric means adding an entry to one of
the group tuples below. Label names follow the DCGM exporter shipped with
ACK GPU nodes, including its mixed casing.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Tuple

from exporter_errors import ConfigurationError


class MetricKind(str, Enum):
    GAUGE = "gauge"
    COUNTER = "counter"


@dataclass(frozen=True)
class MetricDescriptor:
    name: str
    help: str
    kind: MetricKind
    label_names: Tuple[str, ...]

    @property
    def is_counter(self) -> bool:
        return self.kind is MetricKind.COUNTER


# --- Label schemas ---

NODE_LABELS: Tuple[str, ...] = ()

DEVICE_LABELS: Tuple[str, ...] = (
    "Hostname", "NodeName", "NodePoolId", "PodSource",
    "UUID", "device", "gpu", "modelName",
)

CUSTOM_DEVICE_LABELS: Tuple[str, ...] = (
    "DriverVersion", "NodeName", "NodePoolId", "PodSource", "SupportDCGM",
    "UUID", "device", "gpu", "modelName",
)

ILLEGAL_PROCESS_LABELS: Tuple[str, ...] = (
    "AllocateMode", "ContainerName", "NamespaceName", "NodeName", "NodePoolId",
    "PodName", "PodSource", "ProcessId", "ProcessName", "ProcessType",
    "UUID", "device", "gpu", "modelName",
)


def gauge(name: str, help_text: str, labels: Tuple[str, ...] = DEVICE_LABELS) -> MetricDescriptor:
    return MetricDescriptor(name=name, help=help_text, kind=MetricKind.GAUGE, label_names=labels)


def counter(name: str, help_text: str, labels: Tuple[str, ...] = DEVICE_LABELS) -> MetricDescriptor:
    return MetricDescriptor(name=name, help=help_text, kind=MetricKind.COUNTER, label_names=labels)


_ILLEGAL_SUFFIX = "of illegal gpu process(container request gpus with NVIDIA_VISIBLE_DEVICES=all),it is a custom metric defined by ACK"

# --- Group (a): custom allocation metrics ---

CUSTOM_DESCRIPTORS: Tuple[MetricDescriptor, ...] = (
    gauge("DCGM_CUSTOM_ALLOCATE_MODE",
          "GPU allocate mode of node,value in [None:0,Exclusive:1,Share:2]", NODE_LABELS),
    gauge("DCGM_CUSTOM_DEV_FB_ALLOCATED",
          "Allocated framebuffer memory ratio(0~1) of device,it is a custom metric created by ack",
          CUSTOM_DEVICE_LABELS),
    gauge("DCGM_CUSTOM_DEV_FB_TOTAL",
          "Total framebuffer memory of device(in MiB),it is a custom metric created by ack",
          CUSTOM_DEVICE_LABELS),
    gauge("DCGM_CUSTOM_ILLEGAL_PROCESS_DECODE_UTIL", f"Decode utilization {_ILLEGAL_SUFFIX}", ILLEGAL_PROCESS_LABELS),
    gauge("DCGM_CUSTOM_ILLEGAL_PROCESS_ENCODE_UTIL", f"Encode utilization {_ILLEGAL_SUFFIX}", ILLEGAL_PROCESS_LABELS),
    gauge("DCGM_CUSTOM_ILLEGAL_PROCESS_MEM_COPY_UTIL", f"Memory copy utilization {_ILLEGAL_SUFFIX}", ILLEGAL_PROCESS_LABELS),
    gauge("DCGM_CUSTOM_ILLEGAL_PROCESS_MEM_USED", f"Used memory(in MiB) {_ILLEGAL_SUFFIX}", ILLEGAL_PROCESS_LABELS),
    gauge("DCGM_CUSTOM_ILLEGAL_PROCESS_SM_UTIL", f"SM utilization {_ILLEGAL_SUFFIX}", ILLEGAL_PROCESS_LABELS),
)

# --- Group (b): standard device telemetry ---

DEVICE_DESCRIPTORS: Tuple[MetricDescriptor, ...] = (
    gauge("DCGM_FI_DEV_APP_MEM_CLOCK", "Memory Application clocks(in MHz)."),
    gauge("DCGM_FI_DEV_APP_SM_CLOCK", "SM Application clocks (in MHz)."),
    gauge("DCGM_FI_DEV_BAR1_TOTAL", "Total BAR1 of the GPU in MB"),
    gauge("DCGM_FI_DEV_BAR1_USED", "Used BAR1 of the GPU in MB"),
    gauge("DCGM_FI_DEV_CLOCK_THROTTLE_REASONS", "A bitmap of why the clock is throttled."),
    gauge("DCGM_FI_DEV_COUNT", "total devices on the node.", NODE_LABELS),
    gauge("DCGM_FI_DEV_DEC_UTIL", "Decoder utilization (in %)."),
    gauge("DCGM_FI_DEV_ENC_UTIL", "Encoder utilization (in %)."),
    gauge("DCGM_FI_DEV_FB_FREE", "Framebuffer memory free (in MiB)."),
    gauge("DCGM_FI_DEV_FB_USED", "Framebuffer memory used (in MiB)."),
    gauge("DCGM_FI_DEV_GPU_TEMP", "GPU temperature (in C)."),
    gauge("DCGM_FI_DEV_GPU_UTIL", "GPU utilization (in %)."),
    gauge("DCGM_FI_DEV_MEMORY_TEMP", "Memory temperature (in C)."),
    gauge("DCGM_FI_DEV_MEM_CLOCK", "Memory clock frequency (in MHz)."),
    gauge("DCGM_FI_DEV_MEM_COPY_UTIL", "Memory utilization (in %)."),
    counter("DCGM_FI_DEV_NVLINK_BANDWIDTH_TOTAL", "Total number of NVLink bandwidth counters for all lanes."),
    gauge("DCGM_FI_DEV_POWER_USAGE", "Power draw (in W)."),
    counter("DCGM_FI_DEV_RETIRED_DBE", "Total number of retired pages due to double-bit errors."),
    counter("DCGM_FI_DEV_RETIRED_PENDING", "Total number of pages pending retirement."),
    counter("DCGM_FI_DEV_RETIRED_SBE", "Total number of retired pages due to single-bit errors."),
    gauge("DCGM_FI_DEV_SM_CLOCK", "SM clock frequency (in MHz)."),
    gauge("DCGM_FI_DEV_VIDEO_CLOCK", "Video encoder/decoder clock for the device."),
    gauge("DCGM_FI_DEV_XID_ERRORS", "Value of the last XID error encountered."),
)

# --- Group (c): profiling metrics ---

PROFILING_DESCRIPTORS: Tuple[MetricDescriptor, ...] = (
    gauge("DCGM_FI_PROF_DRAM_ACTIVE",
          "Ratio of cycles the device memory interface is active sending or receiving data (in %)."),
    counter("DCGM_FI_PROF_NVLINK_RX_BYTES",
            "The number of bytes of active NvLink rx (receive) data including both header and payload."),
    counter("DCGM_FI_PROF_NVLINK_TX_BYTES",
            "The number of bytes of active NvLink tx (transmit) data including both header and payload."),
    gauge("DCGM_FI_PROF_PCIE_RX_BYTES",
          "The rate of data received over the PCIe bus - including both protocol headers and data payloads - in bytes per second."),
    gauge("DCGM_FI_PROF_PCIE_TX_BYTES",
          "The rate of data transmitted over the PCIe bus - including both protocol headers and data payloads - in bytes per second."),
)

DEFAULT_DESCRIPTORS: Tuple[MetricDescriptor, ...] = CUSTOM_DESCRIPTORS + DEVICE_DESCRIPTORS + PROFILING_DESCRIPTORS


def build_catalog(descriptors: Iterable[MetricDescriptor] = DEFAULT_DESCRIPTORS) -> Dict[str, MetricDescriptor]:
    """
    Index descriptors by name, preserving declaration order.

    Raises:
        ConfigurationError: if two descriptors share a name.
    """
    catalog: Dict[str, MetricDescriptor] = {}
    for descriptor in descriptors:
        if descriptor.name in catalog:
            raise ConfigurationError(f"metric descriptor {descriptor.name!r} registered twice")
        catalog[descriptor.name] = descriptor
    return catalog
