"""Run the web app provisioning sample once."""

from typing import Optional

import structlog

from engine.arm import ArmProvisioningClient
from engine.auth import load_credentials
from engine.client import ProvisioningClient
from engine.memory import InMemoryProvisioningClient
from engine.orchestrator import Orchestrator
from models.config import load_sample_config
from models.run import RunResult

from .log import setup_logging
from .settings import Settings, get_settings


logger = structlog.get_logger()


def build_client(settings: Settings) -> ProvisioningClient:
    """
    Build the provisioning client for the configured backend.

    Args:
        settings: Process settings

    Returns:
        Provisioning client

    Raises:
        CredentialsError: If the Resource Manager backend has no usable credentials
        ValueError: If the backend is unknown
    """
    backend = settings.management_backend.lower()

    if backend == "memory":
        return InMemoryProvisioningClient()

    if backend == "arm":
        credentials = load_credentials(settings.azure_auth_location)
        return ArmProvisioningClient.from_credentials(
            credentials,
            authority_host=settings.authority_host,
            endpoint=settings.arm_endpoint,
            poll_interval=settings.lro_poll_interval_seconds,
            timeout=settings.lro_timeout_seconds,
            http_timeout=settings.http_timeout_seconds,
            plan_sku=settings.plan_sku,
        )

    raise ValueError(f"Unsupported management backend: {settings.management_backend}")


def run_sample(settings: Settings) -> Optional[RunResult]:
    """
    Authenticate, then provision and tear down the sample resources.

    Every error is logged here; nothing propagates to the caller.

    Args:
        settings: Process settings

    Returns:
        RunResult, or None if the run could not start or the resource group
        could not be created
    """
    client = None
    try:
        client = build_client(settings)

        logger.info(
            "Selected subscription",
            subscription_id=client.subscription_id,
            backend=settings.management_backend,
        )

        orchestrator = Orchestrator(
            config=load_sample_config(settings.sample_config_path),
            certificate_dir=settings.certificate_dir,
        )
        return orchestrator.run(client)

    except Exception as e:
        logger.error("Sample run failed", error=str(e), exc_info=True)
        return None

    finally:
        close = getattr(client, "close", None)
        if close is not None:
            close()


def main():
    """Main entry point."""
    settings = get_settings()

    setup_logging(settings.log_level, settings.log_format)

    run_sample(settings)


if __name__ == "__main__":
    main()
