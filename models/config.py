"""Sample layout schema and workflow model."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from .resources import ContactAddress, ContactInfo, RoutingMethod, SiteConfig


# Name generator contract: (prefix, max_length) -> name
NameGenerator = Callable[[str, int], str]


# Pydantic models for the sample layout
class NamePattern(BaseModel):
    """Prefix and maximum length of a generated resource name."""

    prefix: str
    max_length: int = Field(..., gt=0)

    @field_validator("max_length")
    @classmethod
    def validate_room_for_suffix(cls, v: int, info: Any) -> int:
        """Validate that the random suffix has at least one character."""
        prefix = info.data.get("prefix", "")
        try:
            rendered = prefix.format(index=0)
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError("prefix may only contain the {index} placeholder") from e
        if v <= len(rendered):
            raise ValueError("max_length must be longer than the prefix")
        return v


class NamingConfig(BaseModel):
    """Name patterns for every generated resource."""

    resource_group: NamePattern = NamePattern(prefix="rgNEMV_", max_length=24)
    plan: NamePattern = Field(
        NamePattern(prefix="jplan{index}_", max_length=15),
        description="{index} is replaced with the 1-based plan number",
    )
    app: NamePattern = Field(
        NamePattern(prefix="webapp{index}-", max_length=20),
        description="{index} is replaced with the 1-based app number",
    )
    domain: NamePattern = NamePattern(prefix="jsdkdemo-", max_length=20)
    domain_suffix: str = ".com"
    routing_profile: NamePattern = NamePattern(prefix="jsdktm-", max_length=20)


class AddressConfig(BaseModel):
    """Mailing address of the domain registrant."""

    address1: str = "123 4th Ave"
    city: str = "Redmond"
    country: str = "United States"
    postal_code: str = "98052"
    state: str = "WA"


class ContactConfig(BaseModel):
    """Domain registrant contact."""

    email: str = "jondoe@contoso.com"
    first_name: str = "Jon"
    last_name: str = "Doe"
    phone: str = "4258828080"
    address: AddressConfig = Field(default_factory=AddressConfig)


class DomainConfig(BaseModel):
    """Domain purchase options."""

    contact: ContactConfig = Field(default_factory=ContactConfig)
    privacy: bool = True
    auto_renew: bool = False


class SiteSettings(BaseModel):
    """Runtime versions applied to every web app."""

    windows_fx_version: Optional[str] = None
    linux_fx_version: Optional[str] = None
    net_framework_version: Optional[str] = "v4.6"


class SampleConfig(BaseModel):
    """Top-level layout of the provisioning sample."""

    group_region: str = "eastus"
    app_region: str = Field("eastus", description="Region every web app is created in")
    plan_regions: List[str] = Field(
        default_factory=lambda: ["westus", "westeurope", "southeastasia"],
        description="One plan is created per region, in this order",
    )
    app_plan_assignment: List[int] = Field(
        default_factory=lambda: [0, 1, 2, 0, 0],
        validate_default=True,
        description="Index into plan_regions of the plan hosting each app",
    )
    routing_endpoint_count: int = Field(
        3,
        validate_default=True,
        description="The first N apps become routing profile endpoints",
    )
    routing_method: RoutingMethod = RoutingMethod.WEIGHTED
    scale_factor: int = Field(2, ge=1)
    site: SiteSettings = Field(default_factory=SiteSettings)
    domain: DomainConfig = Field(default_factory=DomainConfig)
    naming: NamingConfig = Field(default_factory=NamingConfig)
    certificate_file: str = "webapp_managelinuxwebappwithtrafficmanager.pfx"

    @field_validator("plan_regions")
    @classmethod
    def validate_plan_regions(cls, v: List[str]) -> List[str]:
        """Validate that at least one plan is requested."""
        if not v:
            raise ValueError("at least one plan region is required")
        return v

    @field_validator("app_plan_assignment")
    @classmethod
    def validate_assignment(cls, v: List[int], info: Any) -> List[int]:
        """Validate that every app is bound to a plan created in the same run."""
        plan_count = len(info.data.get("plan_regions") or [])
        for index in v:
            if index < 0 or index >= plan_count:
                raise ValueError(
                    f"app plan index {index} out of range for {plan_count} plans"
                )
        return v

    @field_validator("routing_endpoint_count")
    @classmethod
    def validate_endpoint_count(cls, v: int, info: Any) -> int:
        """Validate that the routing profile has endpoints to point at."""
        app_count = len(info.data.get("app_plan_assignment") or [])
        if v < 1 or v > app_count:
            raise ValueError(f"routing_endpoint_count must be between 1 and {app_count}")
        return v


def load_sample_config(path: Optional[Union[str, Path]] = None) -> SampleConfig:
    """
    Load the sample layout from a YAML file.

    Args:
        path: YAML file path; the built-in layout is used when None

    Returns:
        Validated SampleConfig
    """
    if path is None:
        return SampleConfig()

    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return SampleConfig(**data)


# Internal workflow model (converted from SampleConfig)
@dataclass
class PlanSpec:
    """Plan to create."""

    name: str
    region: str


@dataclass
class AppSpec:
    """Web app to create."""

    name: str
    plan_index: int
    region: str
    site_config: SiteConfig = field(default_factory=SiteConfig)


@dataclass
class WorkflowPlan:
    """
    Names and layout of a single run.

    Every name is generated before the first remote call so the whole run can
    be logged up front.
    """

    group_name: str
    group_region: str
    domain_name: str
    contact: ContactInfo
    certificate_path: Path
    routing_profile_name: str
    plans: List[PlanSpec] = field(default_factory=list)
    apps: List[AppSpec] = field(default_factory=list)
    routing_method: RoutingMethod = RoutingMethod.WEIGHTED
    routing_endpoint_count: int = 3
    scale_factor: int = 2


def from_sample_config(
    config: SampleConfig,
    namer: NameGenerator,
    certificate_dir: Union[str, Path] = ".",
) -> WorkflowPlan:
    """
    Convert the sample layout into a WorkflowPlan with generated names.

    Args:
        config: Sample layout
        namer: Name generator called with (prefix, max_length)
        certificate_dir: Directory the certificate file is written to

    Returns:
        WorkflowPlan ready for the orchestrator
    """
    naming = config.naming

    plans = [
        PlanSpec(
            name=_generate(namer, naming.plan, index + 1),
            region=region,
        )
        for index, region in enumerate(config.plan_regions)
    ]

    site_config = SiteConfig(
        windows_fx_version=config.site.windows_fx_version,
        linux_fx_version=config.site.linux_fx_version,
        net_framework_version=config.site.net_framework_version,
    )
    apps = [
        AppSpec(
            name=_generate(namer, naming.app, index + 1),
            plan_index=plan_index,
            region=config.app_region,
            site_config=site_config,
        )
        for index, plan_index in enumerate(config.app_plan_assignment)
    ]

    return WorkflowPlan(
        group_name=_generate(namer, naming.resource_group),
        group_region=config.group_region,
        domain_name=_generate(namer, naming.domain) + naming.domain_suffix,
        contact=_build_contact(config.domain),
        certificate_path=Path(certificate_dir) / config.certificate_file,
        routing_profile_name=_generate(namer, naming.routing_profile),
        plans=plans,
        apps=apps,
        routing_method=config.routing_method,
        routing_endpoint_count=config.routing_endpoint_count,
        scale_factor=config.scale_factor,
    )


def _generate(namer: NameGenerator, pattern: NamePattern, index: int = 0) -> str:
    """Generate a name from a pattern."""
    return namer(pattern.prefix.format(index=index), pattern.max_length)


def _build_contact(domain: DomainConfig) -> ContactInfo:
    """Build the registrant contact handed to the management API."""
    contact = domain.contact
    return ContactInfo(
        email=contact.email,
        first_name=contact.first_name,
        last_name=contact.last_name,
        phone=contact.phone,
        address=ContactAddress(
            address1=contact.address.address1,
            city=contact.address.city,
            country=contact.address.country,
            postal_code=contact.address.postal_code,
            state=contact.address.state,
        ),
        privacy=domain.privacy,
        auto_renew=domain.auto_renew,
    )
