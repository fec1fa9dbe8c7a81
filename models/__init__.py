"""Domain models for the web app provisioning sample."""

from .config import (
    SampleConfig,
    NamingConfig,
    NamePattern,
    DomainConfig,
    WorkflowPlan,
    PlanSpec,
    AppSpec,
    from_sample_config,
    load_sample_config,
)
from .resources import (
    AppHandle,
    CertificateArtifact,
    ContactInfo,
    DomainHandle,
    PlanHandle,
    PlanPatch,
    ProvisionedResources,
    ResourceGroupHandle,
    RoutingMethod,
    RoutingProfileHandle,
    SiteConfig,
)
from .run import CleanupOutcome, InvalidTransitionError, RunResult, RunStatus

__all__ = [
    "SampleConfig",
    "NamingConfig",
    "NamePattern",
    "DomainConfig",
    "WorkflowPlan",
    "PlanSpec",
    "AppSpec",
    "from_sample_config",
    "load_sample_config",
    "AppHandle",
    "CertificateArtifact",
    "ContactInfo",
    "DomainHandle",
    "PlanHandle",
    "PlanPatch",
    "ProvisionedResources",
    "ResourceGroupHandle",
    "RoutingMethod",
    "RoutingProfileHandle",
    "SiteConfig",
    "CleanupOutcome",
    "InvalidTransitionError",
    "RunResult",
    "RunStatus",
]
