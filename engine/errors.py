"""Error taxonomy for provisioning runs."""

from typing import Optional


class ProvisioningError(Exception):
    """Base class for all provisioning errors."""


class CredentialsError(ProvisioningError):
    """Raised when the credential descriptor is missing or malformed."""


class ManagementApiError(ProvisioningError):
    """Raised when the management API rejects a request."""

    def __init__(self, status_code: int, code: str, message: str):
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"Management API error: {status_code=} {code=} {message=}")


class ResourceNotFoundError(ManagementApiError):
    """Raised when the addressed resource does not exist."""

    def __init__(self, code: str = "ResourceNotFound", message: str = "Resource not found"):
        super().__init__(404, code, message)


class OperationFailedError(ProvisioningError):
    """Raised when a long-running operation reaches a non-successful terminal state."""

    def __init__(self, status: str, message: Optional[str] = None):
        self.status = status
        self.message = message
        super().__init__(f"Long-running operation ended as {status}: {message or 'no details'}")


class OperationTimeoutError(ProvisioningError):
    """Raised when a long-running operation does not finish before the deadline."""

    def __init__(self, url: str, timeout: float):
        self.url = url
        self.timeout = timeout
        super().__init__(f"Operation did not complete within {timeout} seconds: {url}")


class CertificateError(ProvisioningError):
    """Raised when the local certificate cannot be generated."""

