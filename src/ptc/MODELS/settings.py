"""
Runtime settings, read from ``PTC_*`` environment variables or a ``.env`` file.
"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_IMAGE = "apachepulsar/pulsar-test-latest-version:latest"


class ClusterSettings(BaseSettings):
    """
    Knobs that are not part of a cluster's topology.
    """
    model_config = SettingsConfigDict(env_prefix="PTC_", env_file=".env", extra="ignore")

    image: str = DEFAULT_IMAGE
    startup_timeout: float = Field(default=120.0, gt=0)
    max_parallelism: int = Field(default=8, ge=1)
    log_level: str = "INFO"
    log_format: str = "console"
