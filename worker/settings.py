"""Process settings."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Sample settings, read from the environment and .env."""

    # Credential descriptor consumed by the authentication step
    azure_auth_location: Optional[str] = None

    # "arm" talks to Resource Manager, "memory" runs against the local simulation
    management_backend: str = "arm"

    # Resource Manager
    arm_endpoint: Optional[str] = None  # Defaults to the credentials file endpoint
    authority_host: Optional[str] = None
    plan_sku: str = "S1"

    # Long-running operations
    lro_poll_interval_seconds: float = 5.0
    lro_timeout_seconds: float = 1800.0
    http_timeout_seconds: float = 60.0

    # Sample layout
    sample_config_path: Optional[str] = None
    certificate_dir: str = "."

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


def get_settings() -> Settings:
    """Read settings from the current environment."""
    return Settings()
