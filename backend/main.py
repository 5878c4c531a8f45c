import asyncio
import logging
import os
import random
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, Response
from fastapi.responses import HTMLResponse
from prometheus_client import CollectorRegistry

from config_schema import ExporterConfig, load_config_from_env
from device_identity import DeviceIdentityResolver
from exposition import build_collector_registry, render_latest
from metric_registry import MetricRegistry
from metric_taxonomy import DEFAULT_DESCRIPTORS, build_catalog
from sample_generator import SampleGenerator
from scheduler import RefreshScheduler


logger = logging.getLogger(__name__)

APP_VERSION = os.getenv("APP_VERSION", "dev")

LANDING_PAGE = """<html>
<head><title>PPU Exporter</title></head>
<body>
<h1>PPU Exporter</h1>
<p><a href="/metrics">Metrics</a></p>
</body>
</html>"""


@dataclass
class ExporterRuntime:
    config: ExporterConfig
    registry: MetricRegistry
    generator: SampleGenerator
    scheduler: RefreshScheduler
    collector_registry: CollectorRegistry


def build_runtime(config: ExporterConfig, rng: Optional[random.Random] = None, descriptors=DEFAULT_DESCRIPTORS) -> ExporterRuntime:
    """
    Wire catalog, registry, generator and scheduler for one exporter process.

    Raises ConfigurationError if the metric catalog contains a duplicate; this
    happens before any generation cycle runs.
    """
    catalog = build_catalog(descriptors)
    registry = MetricRegistry(catalog.values())
    rng = rng or random.Random(config.random_seed)
    generator = SampleGenerator(registry, DeviceIdentityResolver(rng), rng)
    scheduler = RefreshScheduler(
        generator,
        config.node_identity(),
        config.device_count,
        interval_seconds=config.refresh_interval_seconds,
    )
    return ExporterRuntime(
        config=config,
        registry=registry,
        generator=generator,
        scheduler=scheduler,
        collector_registry=build_collector_registry(registry),
    )


def create_app(config: Optional[ExporterConfig] = None, runtime: Optional[ExporterRuntime] = None) -> FastAPI:
    """
    Application factory.

    With no arguments the configuration comes from PPU_EXPORTER_* environment
    variables, so the app can also be served directly with
    `uvicorn --factory main:create_app`.
    """
    runtime = runtime or build_runtime(config or load_config_from_env())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Starting PPU exporter on port %d", runtime.config.port)
        logger.info("Node name: %s", runtime.config.node_name)
        logger.info("GPU count: %d", runtime.config.device_count)
        # The first cycle runs synchronously inside start(); keep it off the event loop.
        await asyncio.to_thread(runtime.scheduler.start)
        try:
            yield
        finally:
            await asyncio.to_thread(runtime.scheduler.stop)

    app = FastAPI(
        title="PPU Exporter",
        description="Synthetic DCGM-style telemetry for simulated PPU devices.",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.runtime = runtime

    @app.get("/", response_class=HTMLResponse, summary="Landing page")
    async def root():
        return LANDING_PAGE

    @app.get("/metrics", summary="Prometheus scrape endpoint")
    def metrics():
        payload, content_type = render_latest(runtime.collector_registry)
        return Response(content=payload, media_type=content_type)

    @app.get("/status", response_model=dict, summary="Generator state")
    async def status():
        report = runtime.generator.last_report
        return {
            "version": APP_VERSION,
            "node_name": runtime.config.node_name,
            "node_pool_id": runtime.config.node_pool_id,
            "device_count": runtime.config.device_count,
            "refresh_interval_seconds": runtime.config.refresh_interval_seconds,
            "running": runtime.scheduler.is_running(),
            "cycles_completed": runtime.generator.cycles_completed,
            "failed_cycles": runtime.scheduler.failed_cycles,
            "series": runtime.registry.series_count(),
            "last_cycle": None if report is None else {
                "cycle": report.cycle,
                "devices_written": report.devices_written,
                "devices_skipped": report.devices_skipped,
                "writes": report.writes,
                "duration_seconds": report.duration_seconds,
            },
        }

    return app
