"""Handles returned by the management API for provisioned resources."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional


class RoutingMethod(str, Enum):
    """Traffic routing methods supported by routing profiles."""

    WEIGHTED = "Weighted"
    PRIORITY = "Priority"
    PERFORMANCE = "Performance"
    GEOGRAPHIC = "Geographic"


@dataclass(frozen=True)
class ContactAddress:
    """Mailing address of a domain contact."""

    address1: str
    city: str
    country: str
    postal_code: str
    state: str


@dataclass(frozen=True)
class ContactInfo:
    """Registrant contact used when purchasing a domain."""

    email: str
    first_name: str
    last_name: str
    phone: str
    address: ContactAddress
    privacy: bool = True
    auto_renew: bool = False


@dataclass(frozen=True)
class SiteConfig:
    """Runtime version settings of a web app."""

    windows_fx_version: Optional[str] = None
    linux_fx_version: Optional[str] = None
    net_framework_version: Optional[str] = None

    def to_properties(self) -> Dict[str, str]:
        """Render the non-empty fields with management API property names."""
        properties = {
            "windowsFxVersion": self.windows_fx_version,
            "linuxFxVersion": self.linux_fx_version,
            "netFrameworkVersion": self.net_framework_version,
        }
        return {key: value for key, value in properties.items() if value is not None}


@dataclass(frozen=True)
class ResourceGroupHandle:
    id: str
    name: str
    region: str


@dataclass(frozen=True)
class DomainHandle:
    id: str
    name: str


@dataclass(frozen=True)
class CertificateArtifact:
    """Self-signed certificate written to the local filesystem."""

    domain: str
    path: Path


@dataclass(frozen=True)
class PlanHandle:
    """Compute plan. Apps reference it through ``id``."""

    id: str
    name: str
    region: str
    target_capacity: int = 0


@dataclass(frozen=True)
class PlanPatch:
    target_capacity: int


@dataclass(frozen=True)
class AppHandle:
    id: str
    name: str
    region: str
    plan_id: str
    site_config: SiteConfig = field(default_factory=SiteConfig)


@dataclass(frozen=True)
class RoutingProfileHandle:
    id: str
    name: str
    routing_method: RoutingMethod
    endpoints: List[str] = field(default_factory=list)


@dataclass
class ProvisionedResources:
    """Every handle obtained during a run, in creation order."""

    group: Optional[ResourceGroupHandle] = None
    domain: Optional[DomainHandle] = None
    certificate: Optional[CertificateArtifact] = None
    plans: List[PlanHandle] = field(default_factory=list)
    apps: List[AppHandle] = field(default_factory=list)
    routing_profile: Optional[RoutingProfileHandle] = None

    def replace_plan(self, updated: PlanHandle) -> None:
        """Swap the tracked handle of a plan for its updated version."""
        # Resource ids are case-insensitive
        for index, plan in enumerate(self.plans):
            if plan.id.lower() == updated.id.lower():
                self.plans[index] = updated
                return
        raise KeyError(updated.id)


def describe(resource: Any) -> Dict[str, Any]:
    """
    Flatten a handle into log-friendly key/value pairs.

    Args:
        resource: Any handle dataclass

    Returns:
        Dictionary of the handle's fields with enums and paths as strings
    """
    summary: Dict[str, Any] = {"resource_type": type(resource).__name__}
    for key, value in vars(resource).items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, Path):
            value = str(value)
        elif isinstance(value, SiteConfig):
            value = value.to_properties()
        elif isinstance(value, list):
            value = list(value)
        summary[key] = value
    return summary


__all__ = [
    "RoutingMethod",
    "ContactAddress",
    "ContactInfo",
    "SiteConfig",
    "ResourceGroupHandle",
    "DomainHandle",
    "CertificateArtifact",
    "PlanHandle",
    "PlanPatch",
    "AppHandle",
    "RoutingProfileHandle",
    "ProvisionedResources",
    "describe",
]
