"""Provisioning and teardown sequence."""

from pathlib import Path
from typing import Callable, Optional, Union

import structlog

from models.config import NameGenerator, SampleConfig, WorkflowPlan, from_sample_config
from models.resources import (
    CertificateArtifact,
    PlanPatch,
    ProvisionedResources,
    ResourceGroupHandle,
    describe,
)
from models.run import CleanupOutcome, RunResult, RunStatus

from .certificate import create_self_signed_certificate
from .client import ProvisioningClient
from .errors import ProvisioningError
from .naming import create_password, random_resource_name


logger = structlog.get_logger()

CertificateGenerator = Callable[[str, Path, str], Optional[Path]]


class Orchestrator:
    """
    Runs the fixed provisioning sequence against a provisioning client.

    Steps:
    1. Create the resource group
    2. Purchase a domain
    3. Create a self-signed certificate for the domain (local only)
    4. Create one plan per configured region
    5. Create the web apps on their plans
    6. Create a routing profile in front of the first apps
    7. Scale every plan up by the scale factor

    Once the resource group exists it is deleted on every exit path.
    """

    def __init__(
        self,
        config: Optional[SampleConfig] = None,
        namer: NameGenerator = random_resource_name,
        certificate_generator: CertificateGenerator = create_self_signed_certificate,
        password_factory: Callable[[], str] = create_password,
        certificate_dir: Union[str, Path] = ".",
    ):
        """
        Initialize orchestrator.

        Args:
            config: Sample layout, the built-in layout when None
            namer: Name generator called with (prefix, max_length)
            certificate_generator: Called with (domain, output_path, password)
            password_factory: Produces the certificate export password
            certificate_dir: Directory the certificate is written to
        """
        self.config = config or SampleConfig()
        self.namer = namer
        self.certificate_generator = certificate_generator
        self.password_factory = password_factory
        self.certificate_dir = Path(certificate_dir)

    def run(self, client: ProvisioningClient) -> RunResult:
        """
        Provision every resource, then delete the resource group.

        Args:
            client: Blocking provisioning client

        Returns:
            RunResult with the handles obtained and the cleanup outcome

        Raises:
            Exception: Whatever the client raised while creating the resource group
        """
        result = RunResult()
        workflow = from_sample_config(self.config, self.namer, self.certificate_dir)

        logger.info(
            "Starting provisioning run",
            resource_group=workflow.group_name,
            domain=workflow.domain_name,
            plans=[plan.name for plan in workflow.plans],
            apps=[app.name for app in workflow.apps],
            routing_profile=workflow.routing_profile_name,
        )

        # Nothing exists yet, so a failure here propagates without cleanup
        logger.info(
            "Creating resource group",
            name=workflow.group_name,
            region=workflow.group_region,
        )
        group = client.create_resource_group(workflow.group_name, workflow.group_region)
        result.resources.group = group
        result.advance(RunStatus.GROUP_CREATED)

        if group is not None:
            logger.info("Created resource group", **describe(group))

        try:
            result.advance(RunStatus.PROVISIONING)

            if group is None:
                raise ProvisioningError(
                    f"Resource group {workflow.group_name} was not returned by the client"
                )

            self._provision(client, group, workflow, result.resources)
            result.advance(RunStatus.SUCCEEDED)

        except Exception as e:
            logger.error(
                "Provisioning failed",
                resource_group=workflow.group_name,
                error=str(e),
                exc_info=True,
            )
            result.record_failure(e)
            result.advance(RunStatus.FAILED)

        finally:
            # Interrupts skip the except block above
            if result.status is RunStatus.PROVISIONING:
                result.advance(RunStatus.FAILED)

            result.advance(RunStatus.CLEANING_UP)
            self._cleanup(client, group, workflow.group_name, result)
            result.advance(RunStatus.DONE)

        logger.info(
            "Provisioning run finished",
            resource_group=workflow.group_name,
            succeeded=result.succeeded,
            cleanup=result.cleanup.value,
        )

        return result

    def _provision(
        self,
        client: ProvisioningClient,
        group: ResourceGroupHandle,
        workflow: WorkflowPlan,
        resources: ProvisionedResources,
    ) -> None:
        """Create every resource in order, recording handles as they arrive."""
        # Purchase a domain
        logger.info("Purchasing domain", name=workflow.domain_name)
        resources.domain = client.create_or_update_domain(
            group, workflow.domain_name, workflow.contact
        )
        logger.info("Purchased domain", **describe(resources.domain))

        # Self-signed certificate for the domain
        logger.info("Creating self-signed certificate", path=str(workflow.certificate_path))
        path = self.certificate_generator(
            workflow.domain_name, workflow.certificate_path, self.password_factory()
        )
        resources.certificate = CertificateArtifact(
            domain=workflow.domain_name,
            path=Path(path) if path else workflow.certificate_path,
        )

        # Plans, one per region
        for spec in workflow.plans:
            logger.info("Creating plan", name=spec.name, region=spec.region)
            plan = client.create_or_update_plan(group, spec.name, spec.region)
            resources.plans.append(plan)
            logger.info("Created plan", **describe(plan))

        # Web apps bound to the plans created above
        for spec in workflow.apps:
            plan = resources.plans[spec.plan_index]
            logger.info("Creating web app", name=spec.name, plan=plan.name, region=spec.region)
            app = client.create_or_update_app(
                group, spec.name, plan.id, spec.region, spec.site_config
            )
            resources.apps.append(app)
            logger.info("Created web app", **describe(app))

        # Routing profile in front of the first apps
        endpoints = [app.id for app in resources.apps[: workflow.routing_endpoint_count]]
        logger.info(
            "Creating routing profile",
            name=workflow.routing_profile_name,
            routing_method=workflow.routing_method.value,
            endpoints=len(endpoints),
        )
        resources.routing_profile = client.create_or_update_routing_profile(
            group, workflow.routing_profile_name, workflow.routing_method, endpoints
        )
        logger.info("Created routing profile", **describe(resources.routing_profile))

        # Scale up the plans
        for plan in list(resources.plans):
            target = plan.target_capacity * workflow.scale_factor
            logger.info(
                "Scaling up plan",
                name=plan.name,
                current_capacity=plan.target_capacity,
                target_capacity=target,
            )
            updated = client.update_plan(plan, PlanPatch(target_capacity=target))
            resources.replace_plan(updated)
            logger.info("Scaled up plan", **describe(updated))

    def _cleanup(
        self,
        client: ProvisioningClient,
        group: Optional[ResourceGroupHandle],
        group_name: str,
        result: RunResult,
    ) -> None:
        """Delete the resource group. Never raises."""
        if group is None:
            logger.info(
                "Did not create any resources. No clean up is necessary",
                resource_group=group_name,
            )
            result.cleanup = CleanupOutcome.SKIPPED
            return

        try:
            logger.info("Deleting resource group", name=group.name)
            client.delete_resource_group(group)
            logger.info("Deleted resource group", name=group.name)
            result.cleanup = CleanupOutcome.DELETED

        except Exception as e:
            logger.error(
                "Failed to delete resource group",
                name=group.name,
                error=str(e),
                exc_info=True,
            )
            result.cleanup = CleanupOutcome.FAILED
            result.cleanup_error = str(e)
