"""
Command-line entry point for the PPU exporter.

Flags default to PPU_EXPORTER_* environment variables (a .env file in the
working directory is honored), then to the built-in defaults.
"""
import argparse
import logging
import sys

import uvicorn
from dotenv import load_dotenv
from pydantic import ValidationError

from config_schema import (
    DEFAULT_DEVICE_COUNT,
    DEFAULT_DRIVER_VERSION,
    DEFAULT_NODE_NAME,
    DEFAULT_NODE_POOL_ID,
    DEFAULT_POD_SOURCE,
    DEFAULT_PORT,
    DEFAULT_REFRESH_INTERVAL_SECONDS,
    load_config_from_env,
)
from exporter_errors import ConfigurationError
from main import create_app

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ppu-exporter",
        description="Serve synthetic DCGM-style metrics for simulated PPU devices",
    )
    parser.add_argument("--node-name", type=str, default=None,
                        help=f"Node name for metrics (default: {DEFAULT_NODE_NAME})")
    parser.add_argument("--node-pool-id", type=str, default=None,
                        help=f"Node pool ID (default: {DEFAULT_NODE_POOL_ID})")
    parser.add_argument("--pod-source", type=str, default=None,
                        help=f"Pod source (default: {DEFAULT_POD_SOURCE})")
    parser.add_argument("--host", type=str, default=None,
                        help="Address to bind (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None,
                        help=f"Port to serve metrics (default: {DEFAULT_PORT})")
    parser.add_argument("--gpu-count", dest="device_count", type=int, default=None,
                        help=f"Number of GPUs to simulate (default: {DEFAULT_DEVICE_COUNT})")
    parser.add_argument("--driver-version", type=str, default=None,
                        help=f"Driver version (default: {DEFAULT_DRIVER_VERSION})")
    parser.add_argument("--interval", dest="refresh_interval_seconds", type=float, default=None,
                        help=f"Seconds between metric refreshes (default: {DEFAULT_REFRESH_INTERVAL_SECONDS:g})")
    parser.add_argument("--seed", dest="random_seed", type=int, default=None,
                        help="Seed the random source for reproducible output")
    parser.add_argument("--log-level", type=str, default="INFO",
                        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (default: INFO)")
    return parser


def main(argv=None) -> int:
    load_dotenv()
    args = create_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config_from_env(
            node_name=args.node_name,
            node_pool_id=args.node_pool_id,
            pod_source=args.pod_source,
            host=args.host,
            port=args.port,
            device_count=args.device_count,
            driver_version=args.driver_version,
            refresh_interval_seconds=args.refresh_interval_seconds,
            random_seed=args.random_seed,
        )
    except ValidationError as e:
        logger.error("Invalid configuration: %s", e)
        return 2

    try:
        app = create_app(config)
    except ConfigurationError as e:
        logger.error("Metric catalog is invalid, refusing to start: %s", e)
        return 1

    uvicorn.run(app, host=config.host, port=config.port, log_level=args.log_level.lower())
    return 0


if __name__ == "__main__":
    sys.exit(main())
