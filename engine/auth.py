"""Service principal authentication for the Resource Manager API."""

import json
import time
from pathlib import Path
from typing import Generator, Optional, Union

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError

from .errors import CredentialsError


logger = structlog.get_logger()

DEFAULT_AUTHORITY_HOST = "https://login.microsoftonline.com"
DEFAULT_RESOURCE_MANAGER_ENDPOINT = "https://management.azure.com/"

# Refresh this many seconds before the token actually expires
TOKEN_EXPIRY_MARGIN = 300


class ServicePrincipalCredentials(BaseModel):
    """Credential descriptor written by `az ad sp create-for-rbac --sdk-auth`."""

    client_id: str = Field(..., alias="clientId")
    client_secret: str = Field(..., alias="clientSecret")
    tenant_id: str = Field(..., alias="tenantId")
    subscription_id: str = Field(..., alias="subscriptionId")
    authority_host: str = Field(DEFAULT_AUTHORITY_HOST, alias="activeDirectoryEndpointUrl")
    resource_manager_endpoint: str = Field(
        DEFAULT_RESOURCE_MANAGER_ENDPOINT, alias="resourceManagerEndpointUrl"
    )


def load_credentials(path: Optional[Union[str, Path]]) -> ServicePrincipalCredentials:
    """
    Load the credential descriptor.

    Args:
        path: File named by AZURE_AUTH_LOCATION

    Returns:
        Parsed credentials

    Raises:
        CredentialsError: If the path is unset, unreadable or malformed
    """
    if not path:
        raise CredentialsError("AZURE_AUTH_LOCATION is not set")

    try:
        with open(path) as f:
            data = json.load(f)
    except OSError as e:
        raise CredentialsError(f"Unable to read credentials file {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise CredentialsError(f"Credentials file {path} is not valid JSON: {e}") from e

    try:
        return ServicePrincipalCredentials(**data)
    except ValidationError as e:
        raise CredentialsError(f"Credentials file {path} is incomplete: {e}") from e


class ClientCredentialsAuth(httpx.Auth):
    """
    OAuth2 client credentials flow.

    A token is requested on first use and cached until shortly before it
    expires; the token request goes through the same transport as the API call.
    """

    requires_response_body = True

    def __init__(
        self,
        credentials: ServicePrincipalCredentials,
        authority_host: Optional[str] = None,
        clock=time.monotonic,
    ):
        self.credentials = credentials
        self.authority_host = (authority_host or credentials.authority_host).rstrip("/")
        self.scope = credentials.resource_manager_endpoint.rstrip("/") + "/.default"
        self._clock = clock
        self._token: Optional[str] = None
        self._expires_at = 0.0

    def auth_flow(self, request: httpx.Request) -> Generator[httpx.Request, httpx.Response, None]:
        if self._token is None or self._clock() >= self._expires_at:
            token_response = yield self._build_token_request()
            self._update_token(token_response)

        request.headers["Authorization"] = f"Bearer {self._token}"
        yield request

    def _build_token_request(self) -> httpx.Request:
        """Build the token request for the configured tenant."""
        url = f"{self.authority_host}/{self.credentials.tenant_id}/oauth2/v2.0/token"
        return httpx.Request(
            "POST",
            url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.credentials.client_id,
                "client_secret": self.credentials.client_secret,
                "scope": self.scope,
            },
        )

    def _update_token(self, response: httpx.Response) -> None:
        """
        Store the token from a token endpoint response.

        Raises:
            CredentialsError: If the token endpoint rejected the credentials
        """
        if response.status_code != 200:
            try:
                detail = response.json().get("error_description", response.text)
            except ValueError:
                detail = response.text
            raise CredentialsError(f"Token request failed ({response.status_code}): {detail}")

        payload = response.json()
        self._token = payload["access_token"]
        expires_in = int(payload.get("expires_in", 3600))
        self._expires_at = self._clock() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)

        logger.debug("Acquired management token", expires_in=expires_in)
