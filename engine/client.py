"""
Provisioning client interface.

The orchestrator only talks to this protocol. Every call blocks until the
remote long-running operation has finished and returns the resulting handle.
Polling, authentication and transport are the implementation's concern.
"""

from typing import List, Optional, Protocol

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


class ProvisioningClient(Protocol):
    """Blocking management API client."""

    subscription_id: str

    def create_resource_group(self, name: str, region: str) -> Optional[ResourceGroupHandle]:
        """Create the group owning every other resource of the run."""

    def create_or_update_domain(
        self, group: ResourceGroupHandle, name: str, contact: ContactInfo
    ) -> DomainHandle:
        """Purchase a domain."""

    def create_or_update_plan(
        self, group: ResourceGroupHandle, name: str, region: str
    ) -> PlanHandle:
        """Create a compute plan in a region."""

    def create_or_update_app(
        self,
        group: ResourceGroupHandle,
        name: str,
        plan_id: str,
        region: str,
        site_config: SiteConfig,
    ) -> AppHandle:
        """Create a web app hosted on an existing plan."""

    def create_or_update_routing_profile(
        self,
        group: ResourceGroupHandle,
        name: str,
        routing_method: RoutingMethod,
        endpoints: List[str],
    ) -> RoutingProfileHandle:
        """Create a routing profile whose endpoints are existing app ids."""

    def update_plan(self, plan: PlanHandle, patch: PlanPatch) -> PlanHandle:
        """Apply a patch to a plan and return the updated handle."""

    def delete_resource_group(self, group: ResourceGroupHandle) -> None:
        """Delete a group and everything it owns."""


# Resource types of the handles, used to build resource ids
DOMAIN_TYPE = "Microsoft.DomainRegistration/domains"
PLAN_TYPE = "Microsoft.Web/serverfarms"
APP_TYPE = "Microsoft.Web/sites"
ROUTING_PROFILE_TYPE = "Microsoft.Network/trafficManagerProfiles"


def resource_group_path(subscription_id: str, group_name: str) -> str:
    """Build the id of a resource group."""
    return f"/subscriptions/{subscription_id}/resourceGroups/{group_name}"


def resource_path(group: ResourceGroupHandle, resource_type: str, name: str) -> str:
    """Build the id of a resource owned by a group."""
    return f"{group.id}/providers/{resource_type}/{name}"
