"""Resource Manager REST client."""

import time
from typing import Any, Dict, List, Optional

import httpx
import structlog

from models.resources import (
    AppHandle,
    ContactInfo,
    DomainHandle,
    PlanHandle,
    PlanPatch,
    ResourceGroupHandle,
    RoutingMethod,
    RoutingProfileHandle,
    SiteConfig,
)

from .auth import (
    DEFAULT_RESOURCE_MANAGER_ENDPOINT,
    ClientCredentialsAuth,
    ServicePrincipalCredentials,
)
from .client import (
    APP_TYPE,
    DOMAIN_TYPE,
    PLAN_TYPE,
    ROUTING_PROFILE_TYPE,
    resource_group_path,
    resource_path,
)
from .errors import (
    ManagementApiError,
    OperationFailedError,
    OperationTimeoutError,
    ResourceNotFoundError,
)


logger = structlog.get_logger()

RESOURCE_GROUP_API_VERSION = "2021-04-01"
API_VERSIONS = {
    DOMAIN_TYPE: "2022-09-01",
    PLAN_TYPE: "2022-09-01",
    APP_TYPE: "2022-09-01",
    ROUTING_PROFILE_TYPE: "2022-04-01",
}

SUCCEEDED_STATES = {"succeeded"}
FAILED_STATES = {"failed", "canceled", "cancelled"}

AZURE_ENDPOINT_TYPE = "Microsoft.Network/trafficManagerProfiles/azureEndpoints"


class ArmProvisioningClient:
    """
    Provisioning client backed by the Resource Manager REST API.

    Every mutating call waits for its long-running operation, following
    Azure-AsyncOperation, Location or provisioningState, whichever the
    service returns.
    """

    def __init__(
        self,
        subscription_id: str,
        auth: httpx.Auth,
        endpoint: str = DEFAULT_RESOURCE_MANAGER_ENDPOINT,
        poll_interval: float = 5.0,
        timeout: float = 1800.0,
        http_timeout: float = 60.0,
        plan_sku: str = "S1",
        transport: Optional[httpx.BaseTransport] = None,
        sleep=time.sleep,
        clock=time.monotonic,
    ):
        """
        Initialize Resource Manager client.

        Args:
            subscription_id: Subscription every resource is created in
            auth: httpx auth flow adding the bearer token
            endpoint: Resource Manager base URL
            poll_interval: Seconds between polls when the service sends no Retry-After
            timeout: Seconds a long-running operation may take
            http_timeout: Timeout of a single HTTP request
            plan_sku: Pricing tier of created plans
            transport: Optional httpx transport
        """
        self.subscription_id = subscription_id
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.plan_sku = plan_sku
        self._sleep = sleep
        self._clock = clock
        self._http = httpx.Client(
            base_url=endpoint,
            auth=auth,
            timeout=http_timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @classmethod
    def from_credentials(
        cls,
        credentials: ServicePrincipalCredentials,
        authority_host: Optional[str] = None,
        endpoint: Optional[str] = None,
        **kwargs: Any,
    ) -> "ArmProvisioningClient":
        """Build a client authenticated as a service principal."""
        return cls(
            subscription_id=credentials.subscription_id,
            auth=ClientCredentialsAuth(credentials, authority_host=authority_host),
            endpoint=endpoint or credentials.resource_manager_endpoint,
            **kwargs,
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._http.close()

    def __enter__(self) -> "ArmProvisioningClient":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def create_resource_group(self, name: str, region: str) -> ResourceGroupHandle:
        path = resource_group_path(self.subscription_id, name)
        body = self._put(path, RESOURCE_GROUP_API_VERSION, {"location": region})
        return ResourceGroupHandle(id=body["id"], name=body["name"], region=body["location"])

    def create_or_update_domain(
        self, group: ResourceGroupHandle, name: str, contact: ContactInfo
    ) -> DomainHandle:
        contact_body = _contact_body(contact)
        body = self._put(
            resource_path(group, DOMAIN_TYPE, name),
            API_VERSIONS[DOMAIN_TYPE],
            {
                "location": "global",
                "properties": {
                    "contactAdmin": contact_body,
                    "contactBilling": contact_body,
                    "contactRegistrant": contact_body,
                    "contactTech": contact_body,
                    "privacy": contact.privacy,
                    "autoRenew": contact.auto_renew,
                },
            },
        )
        return DomainHandle(id=body["id"], name=body["name"])

    def create_or_update_plan(
        self, group: ResourceGroupHandle, name: str, region: str
    ) -> PlanHandle:
        body = self._put(
            resource_path(group, PLAN_TYPE, name),
            API_VERSIONS[PLAN_TYPE],
            {
                "location": region,
                "kind": "linux",
                "sku": {"name": self.plan_sku},
                "properties": {"reserved": True},
            },
        )
        return _plan_handle(body)

    def create_or_update_app(
        self,
        group: ResourceGroupHandle,
        name: str,
        plan_id: str,
        region: str,
        site_config: SiteConfig,
    ) -> AppHandle:
        body = self._put(
            resource_path(group, APP_TYPE, name),
            API_VERSIONS[APP_TYPE],
            {
                "location": region,
                "properties": {
                    "serverFarmId": plan_id,
                    "siteConfig": site_config.to_properties(),
                },
            },
        )
        properties = body.get("properties") or {}
        return AppHandle(
            id=body["id"],
            name=body["name"],
            region=body.get("location", region),
            plan_id=properties.get("serverFarmId", plan_id),
            site_config=site_config,
        )

    def create_or_update_routing_profile(
        self,
        group: ResourceGroupHandle,
        name: str,
        routing_method: RoutingMethod,
        endpoints: List[str],
    ) -> RoutingProfileHandle:
        body = self._put(
            resource_path(group, ROUTING_PROFILE_TYPE, name),
            API_VERSIONS[ROUTING_PROFILE_TYPE],
            {
                "location": "global",
                "properties": {
                    "trafficRoutingMethod": routing_method.value,
                    "dnsConfig": {"relativeName": name, "ttl": 30},
                    "monitorConfig": {"protocol": "HTTP", "port": 80, "path": "/"},
                    "endpoints": [
                        {
                            "name": f"endpoint{index + 1}",
                            "type": AZURE_ENDPOINT_TYPE,
                            "properties": {
                                "targetResourceId": endpoint,
                                "endpointStatus": "Enabled",
                                "weight": 1,
                            },
                        }
                        for index, endpoint in enumerate(endpoints)
                    ],
                },
            },
        )
        properties = body.get("properties") or {}
        return RoutingProfileHandle(
            id=body["id"],
            name=body["name"],
            routing_method=RoutingMethod(properties.get("trafficRoutingMethod", routing_method)),
            endpoints=[
                endpoint["properties"]["targetResourceId"]
                for endpoint in properties.get("endpoints", [])
            ],
        )

    def update_plan(self, plan: PlanHandle, patch: PlanPatch) -> PlanHandle:
        api_version = API_VERSIONS[PLAN_TYPE]
        response = self._send(
            "PATCH",
            plan.id,
            api_version,
            {"properties": {"targetWorkerCount": patch.target_capacity}},
        )
        return _plan_handle(self._wait(response, plan.id, api_version))

    def delete_resource_group(self, group: ResourceGroupHandle) -> None:
        response = self._send("DELETE", group.id, RESOURCE_GROUP_API_VERSION)
        deadline = self._clock() + self.timeout

        async_url = response.headers.get("Azure-AsyncOperation")
        location = response.headers.get("Location")
        if async_url:
            self._poll_async_operation(async_url, response, deadline)
        elif response.status_code == 202 and location:
            self._poll_location(location, response, deadline)

    def _put(self, path: str, api_version: str, body: Dict[str, Any]) -> Dict[str, Any]:
        """PUT a resource and wait for it to be provisioned."""
        response = self._send("PUT", path, api_version, body)
        return self._wait(response, path, api_version)

    def _get(self, path: str, api_version: str) -> Dict[str, Any]:
        return self._send("GET", path, api_version).json()

    def _send(
        self,
        method: str,
        url: str,
        api_version: Optional[str] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Send a request and raise on error responses.

        Args:
            method: HTTP method
            url: Resource id or absolute operation URL
            api_version: api-version query parameter, omitted for operation URLs
            body: JSON body

        Returns:
            Successful response

        Raises:
            ManagementApiError: If the service returned an error status
        """
        params = {"api-version": api_version} if api_version else None
        response = self._http.request(method, url, params=params, json=body)
        _raise_for_status(response)
        return response

    def _wait(self, response: httpx.Response, path: str, api_version: str) -> Dict[str, Any]:
        """
        Wait for the operation started by response and return the final resource.

        Raises:
            OperationFailedError: If the operation failed or was canceled
            OperationTimeoutError: If the operation outlived the timeout
        """
        deadline = self._clock() + self.timeout

        async_url = response.headers.get("Azure-AsyncOperation")
        if async_url:
            self._poll_async_operation(async_url, response, deadline)
            return self._get(path, api_version)

        location = response.headers.get("Location")
        if response.status_code == 202 and location:
            final = self._poll_location(location, response, deadline)
            return _json(final) or self._get(path, api_version)

        body = _json(response) or self._get(path, api_version)
        previous = response
        while True:
            state = _provisioning_state(body)
            if state is None or state in SUCCEEDED_STATES:
                return body
            if state in FAILED_STATES:
                raise OperationFailedError(state, f"{path} provisioning {state}")

            self._pause(previous, path, deadline)
            previous = self._send("GET", path, api_version)
            body = previous.json()

    def _poll_async_operation(
        self, url: str, previous: httpx.Response, deadline: float
    ) -> None:
        """Poll an Azure-AsyncOperation URL until it reaches a terminal status."""
        while True:
            self._pause(previous, url, deadline)
            previous = self._send("GET", url)
            payload = _json(previous)
            status = str(payload.get("status", "")).lower()

            if status in SUCCEEDED_STATES:
                return
            if status in FAILED_STATES:
                error = payload.get("error") or {}
                raise OperationFailedError(payload.get("status", status), error.get("message"))

    def _poll_location(
        self, url: str, previous: httpx.Response, deadline: float
    ) -> httpx.Response:
        """Poll a Location URL until it stops answering 202."""
        while True:
            self._pause(previous, url, deadline)
            previous = self._send("GET", url)
            if previous.status_code != 202:
                return previous

    def _pause(self, previous: httpx.Response, url: str, deadline: float) -> None:
        """Sleep before the next poll, honouring Retry-After and the deadline."""
        if self._clock() >= deadline:
            raise OperationTimeoutError(url, self.timeout)

        delay = self.poll_interval
        retry_after = previous.headers.get("Retry-After")
        if retry_after:
            try:
                delay = float(retry_after)
            except ValueError:
                pass

        logger.debug("Waiting for long-running operation", url=url, delay=delay)
        self._sleep(delay)


def _raise_for_status(response: httpx.Response) -> None:
    """Translate an error response into a ManagementApiError."""
    if response.is_success:
        return

    error = _json(response).get("error") or {}
    if not isinstance(error, dict):
        error = {"message": str(error)}
    code = error.get("code") or response.reason_phrase
    message = error.get("message") or response.text

    if response.status_code == 404:
        raise ResourceNotFoundError(code, message)

    raise ManagementApiError(response.status_code, code, message)


def _json(response: httpx.Response) -> Dict[str, Any]:
    """Decode a JSON object body, empty bodies become {}."""
    if not response.content:
        return {}
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _provisioning_state(body: Dict[str, Any]) -> Optional[str]:
    state = (body.get("properties") or {}).get("provisioningState")
    return state.lower() if state else None


def _plan_handle(body: Dict[str, Any]) -> PlanHandle:
    properties = body.get("properties") or {}
    return PlanHandle(
        id=body["id"],
        name=body["name"],
        region=body["location"],
        target_capacity=properties.get("targetWorkerCount") or 0,
    )


def _contact_body(contact: ContactInfo) -> Dict[str, Any]:
    return {
        "email": contact.email,
        "nameFirst": contact.first_name,
        "nameLast": contact.last_name,
        "phone": contact.phone,
        "addressMailing": {
            "address1": contact.address.address1,
            "city": contact.address.city,
            "country": contact.address.country,
            "postalCode": contact.address.postal_code,
            "state": contact.address.state,
        },
    }
