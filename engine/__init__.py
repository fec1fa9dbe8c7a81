"""Provisioning engine."""

from .arm import ArmProvisioningClient
from .auth import ClientCredentialsAuth, ServicePrincipalCredentials, load_credentials
from .certificate import create_self_signed_certificate
from .client import ProvisioningClient
from .errors import (
    CertificateError,
    CredentialsError,
    ManagementApiError,
    OperationFailedError,
    OperationTimeoutError,
    ProvisioningError,
    ResourceNotFoundError,
)
from .memory import InMemoryProvisioningClient
from .naming import create_password, random_resource_name
from .orchestrator import Orchestrator

__all__ = [
    "ArmProvisioningClient",
    "ClientCredentialsAuth",
    "ServicePrincipalCredentials",
    "load_credentials",
    "create_self_signed_certificate",
    "ProvisioningClient",
    "CertificateError",
    "CredentialsError",
    "ManagementApiError",
    "OperationFailedError",
    "OperationTimeoutError",
    "ProvisioningError",
    "ResourceNotFoundError",
    "InMemoryProvisioningClient",
    "create_password",
    "random_resource_name",
    "Orchestrator",
]
