"""
Stable synthetic identities for simulated PPU devices.
"""
import random
import threading
from dataclasses import dataclass
from typing import Dict, Optional

MODEL_NAME = "PPU-ZW810E"
DEVICE_NAME_PREFIX = "nvidia"

# Identifiers captured from a real 16-card node so demo output looks familiar
CANNED_UUIDS = (
    "GPU-019e0219-0331-020a-0000-0000608e8e2e",
    "GPU-019e0225-c611-0110-0000-0000c0663c0e",
    "GPU-019e120d-8850-032c-0000-0000406a3958",
    "GPU-019e120d-8930-0516-0000-000040b6030b",
    "GPU-019e1211-40c0-0624-0000-000060f3f056",
    "GPU-019e1211-4120-0524-0000-0000c09f426b",
    "GPU-019e1215-0231-0014-0000-000060512b5e",
    "GPU-019e1215-0241-0820-0000-0000a0087936",
    "GPU-019e1215-0281-0210-0000-0000a0d60a51",
    "GPU-019e1215-c280-0416-0000-0000407aa063",
    "GPU-019e1215-c2a0-0226-0000-0000c0c6fa0a",
    "GPU-019e4201-0591-0330-0000-000060416e2b",
    "GPU-019e4201-8920-0430-0000-0000605abd70",
    "GPU-019e4201-8920-0614-0000-0000603e9c39",
    "GPU-019e4201-8930-0014-0000-000020029626",
    "GPU-019ec20c-49c2-0224-0000-0000e02b8d24",
)


@dataclass(frozen=True)
class DeviceIdentity:
    index: int
    unique_id: str
    model_name: str
    device_name: str

    @property
    def gpu(self) -> str:
        """Value of the `gpu` label."""
        return str(self.index)


def device_name_for(index: int) -> str:
    return f"{DEVICE_NAME_PREFIX}{index}"


def synthesize_uuid(index: int, rng: random.Random) -> str:
    """
    Build a well-formed identifier for an index outside the canned table.

    The index field holds four digits, so indices of 10000 and above wrap.
    """
    return "GPU-019e%04d-%04d-%04d-0000-0000%08x" % (
        index % 10000,
        rng.randrange(10000),
        rng.randrange(10000),
        rng.randrange(0xFFFFFFFF),
    )


class DeviceIdentityResolver:
    """
    Maps a device index to its synthetic identity.

    Indices covered by CANNED_UUIDS always resolve to the same identifier.
    Identifiers for higher indices are drawn once from the resolver's random
    source and cached, so they stay stable for the life of the resolver even
    though they differ between runs.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()
        self._synthesized: Dict[int, str] = {}
        self._lock = threading.Lock()

    def resolve(self, index: int) -> DeviceIdentity:
        if index < 0:
            raise ValueError(f"device index must be non-negative, got {index}")
        return DeviceIdentity(
            index=index,
            unique_id=self._unique_id(index),
            model_name=MODEL_NAME,
            device_name=device_name_for(index),
        )

    def _unique_id(self, index: int) -> str:
        if index < len(CANNED_UUIDS):
            return CANNED_UUIDS[index]
        with self._lock:
            uuid = self._synthesized.get(index)
            if uuid is None:
                uuid = synthesize_uuid(index, self._rng)
                self._synthesized[index] = uuid
            return uuid
