"""
In memory management service.

This client is used for tests and local dry runs.
It behaves like a management API keyed by resource group and resource id.

Features
- ARM shaped resource ids, one ownership tree per resource group
- Referential checks: apps need an existing plan, profiles need existing apps
- Every call is recorded for inspection
- Failures can be injected on the nth call of any operation
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

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

from .client import (
    APP_TYPE,
    DOMAIN_TYPE,
    PLAN_TYPE,
    ROUTING_PROFILE_TYPE,
    resource_group_path,
    resource_path,
)
from .errors import ManagementApiError, ResourceNotFoundError


logger = structlog.get_logger()


@dataclass(frozen=True)
class RecordedCall:
    """A single call made against the in memory service."""

    operation: str
    arguments: Dict[str, Any]


@dataclass
class InMemoryProvisioningClient:
    """
    In memory provisioning client.

    default_capacity
    target_capacity of newly created plans.

    fail_on
    Optional mapping of operation name to the 1-based call number that
    should fail with a ManagementApiError. Operation names are the method
    names, e.g. create_or_update_plan.

    operation_polls
    Number of status polls each simulated long-running operation needs
    before it reports completion.
    """

    subscription_id: str = "00000000-0000-0000-0000-000000000000"
    default_capacity: int = 1
    fail_on: Dict[str, int] = field(default_factory=dict)
    operation_polls: int = 0

    calls: List[RecordedCall] = field(default_factory=list)
    groups: Dict[str, ResourceGroupHandle] = field(default_factory=dict)
    resources: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    polls: int = 0

    def create_resource_group(self, name: str, region: str) -> Optional[ResourceGroupHandle]:
        self._record("create_resource_group", name=name, region=region)

        group = self.groups.get(name)
        if group is None:
            group = ResourceGroupHandle(
                id=resource_group_path(self.subscription_id, name),
                name=name,
                region=region,
            )
            self.groups[name] = group
            self.resources[name] = {}

        self._complete()
        return group

    def create_or_update_domain(
        self, group: ResourceGroupHandle, name: str, contact: ContactInfo
    ) -> DomainHandle:
        self._record("create_or_update_domain", group=group.name, name=name, contact=contact)
        owned = self._owned(group)

        domain = DomainHandle(id=resource_path(group, DOMAIN_TYPE, name), name=name)
        owned[domain.id] = domain

        self._complete()
        return domain

    def create_or_update_plan(
        self, group: ResourceGroupHandle, name: str, region: str
    ) -> PlanHandle:
        self._record("create_or_update_plan", group=group.name, name=name, region=region)
        owned = self._owned(group)

        plan_id = resource_path(group, PLAN_TYPE, name)
        existing = owned.get(plan_id)
        plan = PlanHandle(
            id=plan_id,
            name=name,
            region=region,
            target_capacity=existing.target_capacity if existing else self.default_capacity,
        )
        owned[plan_id] = plan

        self._complete()
        return plan

    def create_or_update_app(
        self,
        group: ResourceGroupHandle,
        name: str,
        plan_id: str,
        region: str,
        site_config: SiteConfig,
    ) -> AppHandle:
        self._record(
            "create_or_update_app",
            group=group.name,
            name=name,
            plan_id=plan_id,
            region=region,
            site_config=site_config,
        )
        owned = self._owned(group)

        if not isinstance(self._find(plan_id), PlanHandle):
            raise ResourceNotFoundError("PlanNotFound", f"Plan {plan_id} does not exist")

        app = AppHandle(
            id=resource_path(group, APP_TYPE, name),
            name=name,
            region=region,
            plan_id=plan_id,
            site_config=site_config,
        )
        owned[app.id] = app

        self._complete()
        return app

    def create_or_update_routing_profile(
        self,
        group: ResourceGroupHandle,
        name: str,
        routing_method: RoutingMethod,
        endpoints: List[str],
    ) -> RoutingProfileHandle:
        self._record(
            "create_or_update_routing_profile",
            group=group.name,
            name=name,
            routing_method=routing_method,
            endpoints=list(endpoints),
        )
        owned = self._owned(group)

        for endpoint in endpoints:
            if not isinstance(self._find(endpoint), AppHandle):
                raise ResourceNotFoundError("EndpointNotFound", f"App {endpoint} does not exist")

        profile = RoutingProfileHandle(
            id=resource_path(group, ROUTING_PROFILE_TYPE, name),
            name=name,
            routing_method=routing_method,
            endpoints=list(endpoints),
        )
        owned[profile.id] = profile

        self._complete()
        return profile

    def update_plan(self, plan: PlanHandle, patch: PlanPatch) -> PlanHandle:
        self._record("update_plan", plan_id=plan.id, target_capacity=patch.target_capacity)

        current = self._find(plan.id)
        if not isinstance(current, PlanHandle):
            raise ResourceNotFoundError("PlanNotFound", f"Plan {plan.id} does not exist")

        updated = replace(current, target_capacity=patch.target_capacity)
        for owned in self.resources.values():
            if plan.id in owned:
                owned[plan.id] = updated

        self._complete()
        return updated

    def delete_resource_group(self, group: ResourceGroupHandle) -> None:
        self._record("delete_resource_group", name=group.name)

        if group.name not in self.groups:
            raise ResourceNotFoundError(
                "ResourceGroupNotFound", f"Resource group {group.name} could not be found"
            )

        removed = self.resources.pop(group.name, {})
        del self.groups[group.name]

        self._complete()
        logger.debug("Deleted resource group", name=group.name, removed=len(removed))

    def calls_for(self, operation: str) -> List[RecordedCall]:
        """Return the recorded calls of one operation, in call order."""
        return [call for call in self.calls if call.operation == operation]

    def owned_by(self, group_name: str) -> List[Any]:
        """Return the handles owned by a group, in creation order."""
        return list(self.resources.get(group_name, {}).values())

    def _record(self, operation: str, **arguments: Any) -> None:
        """Record a call and raise if a failure is injected for it."""
        self.calls.append(RecordedCall(operation=operation, arguments=arguments))

        fail_at = self.fail_on.get(operation)
        if fail_at is not None and len(self.calls_for(operation)) == fail_at:
            raise ManagementApiError(
                500, "InjectedFailure", f"{operation} call {fail_at} failed"
            )

    def _complete(self) -> None:
        """Poll the simulated long-running operation until it finishes."""
        for _ in range(self.operation_polls):
            self.polls += 1

    def _owned(self, group: ResourceGroupHandle) -> Dict[str, Any]:
        """Return the resource table of an existing group."""
        if group.name not in self.groups:
            raise ResourceNotFoundError(
                "ResourceGroupNotFound", f"Resource group {group.name} could not be found"
            )
        return self.resources[group.name]

    def _find(self, resource_id: str) -> Optional[Any]:
        """Look up a resource in any group."""
        for owned in self.resources.values():
            if resource_id in owned:
                return owned[resource_id]
        return None
