import os
from typing import Optional
from pydantic import BaseModel, Field

DEFAULT_NODE_NAME = "ppu-worker-mock"
DEFAULT_NODE_POOL_ID = "default"
DEFAULT_POD_SOURCE = "ecs"
DEFAULT_PORT = 8080
DEFAULT_DEVICE_COUNT = 16
DEFAULT_DRIVER_VERSION = "1.5.1-1d747a"
DEFAULT_REFRESH_INTERVAL_SECONDS = 30.0

ENV_PREFIX = "PPU_EXPORTER_"


class NodeIdentity(BaseModel):
    """Identity of the simulated node, stamped onto every device series."""
    node_name: str = Field(DEFAULT_NODE_NAME, description="Value of the NodeName and Hostname labels.")
    node_pool_id: str = Field(DEFAULT_NODE_POOL_ID, description="Value of the NodePoolId label.")
    pod_source: str = Field(DEFAULT_POD_SOURCE, description="Workload source tag (PodSource label).")
    driver_version: str = Field(DEFAULT_DRIVER_VERSION, description="Value of the DriverVersion label.")

    model_config = {"frozen": True}


class ExporterConfig(BaseModel):
    """Startup configuration for the exporter process."""
    node_name: str = DEFAULT_NODE_NAME
    node_pool_id: str = DEFAULT_NODE_POOL_ID
    pod_source: str = DEFAULT_POD_SOURCE
    driver_version: str = DEFAULT_DRIVER_VERSION
    host: str = "0.0.0.0"
    port: int = Field(DEFAULT_PORT, ge=0, le=65535)
    device_count: int = Field(DEFAULT_DEVICE_COUNT, ge=0, description="Number of simulated devices.")
    refresh_interval_seconds: float = Field(DEFAULT_REFRESH_INTERVAL_SECONDS, gt=0, description="Seconds between generation cycles.")
    random_seed: Optional[int] = Field(None, description="Seed for the generator's random source (None = OS entropy).")

    def node_identity(self) -> NodeIdentity:
        return NodeIdentity(
            node_name=self.node_name,
            node_pool_id=self.node_pool_id,
            pod_source=self.pod_source,
            driver_version=self.driver_version,
        )


def load_config_from_env(**overrides) -> ExporterConfig:
    """
    Build an ExporterConfig from PPU_EXPORTER_* environment variables.

    Keyword overrides that are not None win over the environment.
    """
    values = {}
    for field_name in ExporterConfig.model_fields:
        env_value = os.getenv(f"{ENV_PREFIX}{field_name.upper()}")
        if env_value is not None and env_value != "":
            values[field_name] = env_value
    for key, value in overrides.items():
        if value is not None:
            values[key] = value
    return ExporterConfig(**values)
