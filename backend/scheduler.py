import logging
import threading
from typing import Optional

from config_schema import NodeIdentity
from sample_generator import CycleReport, SampleGenerator

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """
    Runs generation cycles on a background thread.

    start() performs the first cycle synchronously so the registry is
    populated before the first scrape, then repeats every `interval_seconds`
    until stop() is called.
    """

    def __init__(self, generator: SampleGenerator, node: NodeIdentity, device_count: int, interval_seconds: float = 30.0):
        self.generator = generator
        self.node = node
        self.device_count = device_count
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self.failed_cycles = 0

    def run_once(self) -> Optional[CycleReport]:
        try:
            return self.generator.generate_cycle(self.device_count, self.node)
        except Exception:
            self.failed_cycles += 1
            logger.exception("Metric generation cycle failed; keeping previous values")
            return None

    def _run(self):
        logger.info("Metric refresh loop started (interval: %ss)", self.interval_seconds)
        # Wait for the interval or until stop event is set
        while not self._stop_event.wait(self.interval_seconds):
            self.run_once()
        logger.info("Metric refresh loop finished.")

    def start(self):
        if self.is_running():
            return
        self._stop_event.clear()
        self.run_once()
        self._thread = threading.Thread(target=self._run, name="metric-refresh", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0):
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()
