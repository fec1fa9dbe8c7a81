"""Unit tests for the Resource Manager REST client."""

import json

import httpx
import pytest

from engine.arm import ArmProvisioningClient
from engine.auth import ServicePrincipalCredentials
from engine.errors import (
    ManagementApiError,
    OperationFailedError,
    OperationTimeoutError,
    ResourceNotFoundError,
)
from models.resources import (
    ContactAddress,
    ContactInfo,
    PlanHandle,
    PlanPatch,
    ResourceGroupHandle,
    RoutingMethod,
    SiteConfig,
)


SUBSCRIPTION = "sub-1"
GROUP_ID = f"/subscriptions/{SUBSCRIPTION}/resourceGroups/rg1"
PLAN_ID = f"{GROUP_ID}/providers/Microsoft.Web/serverfarms/plan1"
APP_ID = f"{GROUP_ID}/providers/Microsoft.Web/sites/app1"
PROFILE_ID = f"{GROUP_ID}/providers/Microsoft.Network/trafficManagerProfiles/tm1"
DOMAIN_ID = f"{GROUP_ID}/providers/Microsoft.DomainRegistration/domains/example.com"
OPERATION_URL = f"https://management.azure.com/subscriptions/{SUBSCRIPTION}/operations/op1"
OPERATION_PATH = f"/subscriptions/{SUBSCRIPTION}/operations/op1"

GROUP = ResourceGroupHandle(id=GROUP_ID, name="rg1", region="eastus")


class FakeManagementApi:
    """
    Scripted Resource Manager endpoint.

    Responses are queued per (method, path); the last response of a queue is
    repeated once the others are used up.
    """

    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, method, path, *responses):
        self.routes.setdefault((method, path), []).extend(responses)

    def __call__(self, request):
        self.requests.append(request)

        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(
                500,
                json={"error": {"code": "Unexpected", "message": str(request.url)}},
            )

        spec = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(
            spec.get("status", 200),
            json=spec.get("json"),
            headers=spec.get("headers"),
        )

    def sent(self, method, path):
        return [
            request
            for request in self.requests
            if request.method == method and request.url.path == path
        ]


class StaticAuth(httpx.Auth):
    def auth_flow(self, request):
        request.headers["Authorization"] = "Bearer test-token"
        yield request


def plan_body(capacity=1, state="Succeeded"):
    return {
        "id": PLAN_ID,
        "name": "plan1",
        "location": "westus",
        "properties": {"provisioningState": state, "targetWorkerCount": capacity},
    }


def body_of(request):
    return json.loads(request.content)


@pytest.fixture
def api():
    return FakeManagementApi()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def client(api, sleeps):
    arm = ArmProvisioningClient(
        subscription_id=SUBSCRIPTION,
        auth=StaticAuth(),
        poll_interval=2.0,
        transport=httpx.MockTransport(api),
        sleep=sleeps.append,
    )
    yield arm
    arm.close()


class TestRequests:
    """Test request construction for every resource type."""

    def test_create_resource_group(self, api, client):
        """Test resource group creation."""
        api.add(
            "PUT",
            GROUP_ID,
            {
                "status": 201,
                "json": {
                    "id": GROUP_ID,
                    "name": "rg1",
                    "location": "eastus",
                    "properties": {"provisioningState": "Succeeded"},
                },
            },
        )

        group = client.create_resource_group("rg1", "eastus")

        assert group == GROUP
        request = api.requests[0]
        assert request.url.params["api-version"] == "2021-04-01"
        assert request.headers["Authorization"] == "Bearer test-token"
        assert body_of(request) == {"location": "eastus"}

    def test_create_domain(self, api, client):
        """Test that the contact is sent for every domain role."""
        api.add("PUT", DOMAIN_ID, {"json": {"id": DOMAIN_ID, "name": "example.com"}})
        contact = ContactInfo(
            email="jondoe@contoso.com",
            first_name="Jon",
            last_name="Doe",
            phone="4258828080",
            address=ContactAddress(
                address1="123 4th Ave",
                city="Redmond",
                country="United States",
                postal_code="98052",
                state="WA",
            ),
        )

        domain = client.create_or_update_domain(GROUP, "example.com", contact)

        assert domain.id == DOMAIN_ID
        body = body_of(api.requests[0])
        assert body["location"] == "global"
        properties = body["properties"]
        for role in ("contactAdmin", "contactBilling", "contactRegistrant", "contactTech"):
            assert properties[role]["nameFirst"] == "Jon"
            assert properties[role]["addressMailing"]["postalCode"] == "98052"
        assert properties["privacy"] is True
        assert properties["autoRenew"] is False

    def test_create_plan(self, api, client):
        """Test plan creation."""
        api.add("PUT", PLAN_ID, {"status": 201, "json": plan_body(capacity=1)})

        plan = client.create_or_update_plan(GROUP, "plan1", "westus")

        assert plan == PlanHandle(id=PLAN_ID, name="plan1", region="westus", target_capacity=1)
        body = body_of(api.requests[0])
        assert body["location"] == "westus"
        assert body["sku"] == {"name": "S1"}
        assert api.requests[0].url.params["api-version"] == "2022-09-01"

    def test_create_app(self, api, client):
        """Test that the app references its plan and carries its site config."""
        api.add(
            "PUT",
            APP_ID,
            {
                "json": {
                    "id": APP_ID,
                    "name": "app1",
                    "location": "eastus",
                    "properties": {"serverFarmId": PLAN_ID},
                }
            },
        )
        site_config = SiteConfig(net_framework_version="v4.6")

        app = client.create_or_update_app(GROUP, "app1", PLAN_ID, "eastus", site_config)

        assert app.plan_id == PLAN_ID
        assert app.site_config == site_config
        properties = body_of(api.requests[0])["properties"]
        assert properties["serverFarmId"] == PLAN_ID
        assert properties["siteConfig"] == {"netFrameworkVersion": "v4.6"}

    def test_create_routing_profile(self, api, client):
        """Test that every endpoint targets an app id."""
        api.add(
            "PUT",
            PROFILE_ID,
            {
                "json": {
                    "id": PROFILE_ID,
                    "name": "tm1",
                    "properties": {
                        "trafficRoutingMethod": "Weighted",
                        "endpoints": [
                            {"properties": {"targetResourceId": APP_ID}},
                        ],
                    },
                }
            },
        )

        profile = client.create_or_update_routing_profile(
            GROUP, "tm1", RoutingMethod.WEIGHTED, [APP_ID]
        )

        assert profile.routing_method == RoutingMethod.WEIGHTED
        assert profile.endpoints == [APP_ID]
        properties = body_of(api.requests[0])["properties"]
        assert properties["trafficRoutingMethod"] == "Weighted"
        assert properties["dnsConfig"]["relativeName"] == "tm1"
        endpoint = properties["endpoints"][0]
        assert endpoint["name"] == "endpoint1"
        assert endpoint["properties"]["targetResourceId"] == APP_ID
        assert endpoint["properties"]["weight"] == 1

    def test_update_plan(self, api, client):
        """Test that scaling patches only the worker count."""
        api.add("PATCH", PLAN_ID, {"json": plan_body(capacity=4)})
        plan = PlanHandle(id=PLAN_ID, name="plan1", region="westus", target_capacity=2)

        updated = client.update_plan(plan, PlanPatch(target_capacity=4))

        assert updated.target_capacity == 4
        assert body_of(api.requests[0]) == {"properties": {"targetWorkerCount": 4}}

    def test_plan_without_worker_count(self, api, client):
        """Test that a missing worker count reads as zero."""
        body = plan_body()
        del body["properties"]["targetWorkerCount"]
        api.add("PUT", PLAN_ID, {"json": body})

        plan = client.create_or_update_plan(GROUP, "plan1", "westus")

        assert plan.target_capacity == 0


class TestLongRunningOperations:
    """Test waiting for long-running operations."""

    def test_async_operation_header(self, api, client, sleeps):
        """Test polling the Azure-AsyncOperation URL, then reading the resource."""
        api.add(
            "PUT",
            PLAN_ID,
            {
                "status": 201,
                "json": plan_body(state="Creating"),
                "headers": {"Azure-AsyncOperation": OPERATION_URL},
            },
        )
        api.add(
            "GET",
            OPERATION_PATH,
            {"json": {"status": "InProgress"}},
            {"json": {"status": "Succeeded"}},
        )
        api.add("GET", PLAN_ID, {"json": plan_body(capacity=1)})

        plan = client.create_or_update_plan(GROUP, "plan1", "westus")

        assert plan.target_capacity == 1
        assert len(api.sent("GET", OPERATION_PATH)) == 2
        assert len(api.sent("GET", PLAN_ID)) == 1
        assert sleeps == [2.0, 2.0]

    def test_async_operation_failed(self, api, client):
        """Test that a failed operation raises with the service message."""
        api.add(
            "PUT",
            PLAN_ID,
            {"status": 201, "headers": {"Azure-AsyncOperation": OPERATION_URL}},
        )
        api.add(
            "GET",
            OPERATION_PATH,
            {"json": {"status": "Failed", "error": {"message": "Quota exceeded"}}},
        )

        with pytest.raises(OperationFailedError) as exc_info:
            client.create_or_update_plan(GROUP, "plan1", "westus")

        assert exc_info.value.status == "Failed"
        assert exc_info.value.message == "Quota exceeded"

    def test_location_header(self, api, client, sleeps):
        """Test polling a Location URL until it stops answering 202."""
        location = f"https://management.azure.com/subscriptions/{SUBSCRIPTION}/operationresults/r1"
        api.add("PUT", PLAN_ID, {"status": 202, "headers": {"Location": location}})
        api.add(
            "GET",
            f"/subscriptions/{SUBSCRIPTION}/operationresults/r1",
            {"status": 202, "headers": {"Location": location}},
            {"json": plan_body(capacity=3)},
        )

        plan = client.create_or_update_plan(GROUP, "plan1", "westus")

        assert plan.target_capacity == 3
        assert len(sleeps) == 2

    def test_provisioning_state(self, api, client, sleeps):
        """Test polling the resource until provisioningState is terminal."""
        api.add("PUT", PLAN_ID, {"status": 201, "json": plan_body(state="Creating")})
        api.add(
            "GET",
            PLAN_ID,
            {"json": plan_body(state="InProgress")},
            {"json": plan_body(state="Succeeded", capacity=1)},
        )

        plan = client.create_or_update_plan(GROUP, "plan1", "westus")

        assert plan.target_capacity == 1
        assert len(api.sent("GET", PLAN_ID)) == 2
        assert sleeps == [2.0, 2.0]

    def test_provisioning_state_failed(self, api, client):
        """Test that a failed provisioningState raises."""
        api.add("PUT", PLAN_ID, {"status": 201, "json": plan_body(state="Failed")})

        with pytest.raises(OperationFailedError) as exc_info:
            client.create_or_update_plan(GROUP, "plan1", "westus")

        assert exc_info.value.status == "failed"

    def test_retry_after(self, api, client, sleeps):
        """Test that Retry-After overrides the poll interval."""
        api.add(
            "PUT",
            PLAN_ID,
            {
                "status": 201,
                "json": plan_body(state="Creating"),
                "headers": {"Retry-After": "7"},
            },
        )
        api.add("GET", PLAN_ID, {"json": plan_body()})

        client.create_or_update_plan(GROUP, "plan1", "westus")

        assert sleeps == [7.0]

    def test_timeout(self, api, sleeps):
        """Test that an operation outliving the timeout raises."""
        times = iter([0.0, 5.0, 11.0])
        arm = ArmProvisioningClient(
            subscription_id=SUBSCRIPTION,
            auth=StaticAuth(),
            timeout=10.0,
            transport=httpx.MockTransport(api),
            sleep=sleeps.append,
            clock=lambda: next(times),
        )
        api.add("PUT", PLAN_ID, {"status": 201, "json": plan_body(state="Creating")})
        api.add("GET", PLAN_ID, {"json": plan_body(state="Creating")})

        with pytest.raises(OperationTimeoutError) as exc_info:
            arm.create_or_update_plan(GROUP, "plan1", "westus")

        assert exc_info.value.timeout == 10.0
        assert len(sleeps) == 1
        arm.close()


class TestErrors:
    """Test error translation."""

    def test_not_found(self, api, client):
        """Test that 404 becomes ResourceNotFoundError with the service code."""
        api.add(
            "PUT",
            PLAN_ID,
            {
                "status": 404,
                "json": {
                    "error": {
                        "code": "ResourceGroupNotFound",
                        "message": "Resource group 'rg1' could not be found.",
                    }
                },
            },
        )

        with pytest.raises(ResourceNotFoundError) as exc_info:
            client.create_or_update_plan(GROUP, "plan1", "westus")

        assert exc_info.value.status_code == 404
        assert exc_info.value.code == "ResourceGroupNotFound"

    def test_conflict(self, api, client):
        """Test that other error statuses become ManagementApiError."""
        api.add(
            "PUT",
            PLAN_ID,
            {"status": 409, "json": {"error": {"code": "Conflict", "message": "Busy"}}},
        )

        with pytest.raises(ManagementApiError) as exc_info:
            client.create_or_update_plan(GROUP, "plan1", "westus")

        assert exc_info.value.status_code == 409
        assert exc_info.value.code == "Conflict"
        assert exc_info.value.message == "Busy"

    def test_string_error_field(self, api, client):
        """Test that a plain string error is used as the message."""
        api.add("PUT", GROUP_ID, {"status": 400, "json": {"error": "invalid_request"}})

        with pytest.raises(ManagementApiError) as exc_info:
            client.create_resource_group("rg1", "eastus")

        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "Bad Request"
        assert exc_info.value.message == "invalid_request"

    def test_string_error_field_not_found(self, api, client):
        """Test that a 404 with a string error is still translated."""
        api.add("PUT", PLAN_ID, {"status": 404, "json": {"error": "missing"}})

        with pytest.raises(ResourceNotFoundError) as exc_info:
            client.create_or_update_plan(GROUP, "plan1", "westus")

        assert exc_info.value.message == "missing"

    def test_error_without_body(self, api, client):
        """Test that an empty error body falls back to the reason phrase."""
        api.add("PUT", PLAN_ID, {"status": 503})

        with pytest.raises(ManagementApiError) as exc_info:
            client.create_or_update_plan(GROUP, "plan1", "westus")

        assert exc_info.value.status_code == 503
        assert exc_info.value.code == "Service Unavailable"


class TestDeleteResourceGroup:
    """Test resource group deletion."""

    def test_delete_completes_immediately(self, api, client, sleeps):
        """Test deletion answered with 200."""
        api.add("DELETE", GROUP_ID, {"status": 200})

        client.delete_resource_group(GROUP)

        assert len(api.sent("DELETE", GROUP_ID)) == 1
        assert sleeps == []

    def test_delete_polls_location(self, api, client, sleeps):
        """Test that deletion waits for the Location URL to finish."""
        location = f"https://management.azure.com/subscriptions/{SUBSCRIPTION}/operationresults/d1"
        api.add("DELETE", GROUP_ID, {"status": 202, "headers": {"Location": location}})
        api.add(
            "GET",
            f"/subscriptions/{SUBSCRIPTION}/operationresults/d1",
            {"status": 202},
            {"status": 200},
        )

        client.delete_resource_group(GROUP)

        assert len(sleeps) == 2

    def test_delete_missing_group(self, api, client):
        """Test deleting a group that does not exist."""
        api.add(
            "DELETE",
            GROUP_ID,
            {"status": 404, "json": {"error": {"code": "ResourceGroupNotFound", "message": "gone"}}},
        )

        with pytest.raises(ResourceNotFoundError):
            client.delete_resource_group(GROUP)


class TestFromCredentials:
    """Test building an authenticated client."""

    def test_token_acquired_once(self, api, sleeps):
        """Test that the token is requested once and sent with every call."""
        credentials = ServicePrincipalCredentials(
            clientId="app-id",
            clientSecret="secret",
            tenantId="tenant-1",
            subscriptionId=SUBSCRIPTION,
        )
        api.add(
            "POST",
            "/tenant-1/oauth2/v2.0/token",
            {"json": {"access_token": "tok", "expires_in": 3600}},
        )
        api.add("PUT", PLAN_ID, {"json": plan_body()})

        with ArmProvisioningClient.from_credentials(
            credentials, transport=httpx.MockTransport(api), sleep=sleeps.append
        ) as arm:
            assert arm.subscription_id == SUBSCRIPTION
            arm.create_or_update_plan(GROUP, "plan1", "westus")
            arm.create_or_update_plan(GROUP, "plan1", "westus")

        assert len(api.sent("POST", "/tenant-1/oauth2/v2.0/token")) == 1
        for request in api.sent("PUT", PLAN_ID):
            assert request.headers["Authorization"] == "Bearer tok"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
