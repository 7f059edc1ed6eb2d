"""
Deployment client: project identity, project ensure and upload.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from shopforge.core.errors import ProviderRequestError
from shopforge.core.strings import normalize_hostname, sanitize_project_name

from .build import AssetBundle
from .config import ProviderConfig
from .provider import DeploymentStatus, HostingProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProjectIdentity:
    """
    A store's publishing target on the hosting provider.

    Derived only from the store's domain and name, so every republish of the
    same store lands in the same project and the stable hostname never
    changes.
    """

    name: str
    stable_hostname: str

    @classmethod
    def for_store(
        cls,
        *,
        domain: str | None,
        store_name: str | None,
        suffix: str = "vercel.app",
    ) -> ProjectIdentity:
        name = sanitize_project_name(domain, store_name)
        return cls.named(name, suffix)

    @classmethod
    def named(cls, name: str, suffix: str = "vercel.app") -> ProjectIdentity:
        return cls(name=name, stable_hostname=f"{name}.{suffix}")

    @property
    def stable_url(self) -> str:
        return f"https://{self.stable_hostname}"


@dataclass(frozen=True)
class CreatedDeployment:
    """A deployment that has been accepted by the provider, not yet READY."""

    status: DeploymentStatus
    project: ProjectIdentity
    rerouted: bool = False

    @property
    def id(self) -> str:
        return self.status.id


class DeploymentClient:
    """
    Upload an asset bundle as a new deployment.

    Usage:
        client = DeploymentClient(provider, config)
        created = await client.deploy(bundle, project, custom_domain="shop.example.com")
    """

    def __init__(self, provider: HostingProvider, config: ProviderConfig):
        self.provider = provider
        self.config = config

    async def resolve_target(
        self, project: ProjectIdentity, custom_domain: str | None
    ) -> ProjectIdentity:
        """
        Decide which project receives the deployment.

        When the custom domain already belongs to another project, the
        deployment goes there only if ``reroute_to_domain_owner`` is enabled.
        Otherwise the store keeps its own project and the domain conflict is
        left to the alias step, which reports it as a warning.
        """
        domain = normalize_hostname(custom_domain)
        if not domain:
            return project

        try:
            owner = await self.provider.resolve_domain_owner(domain)
        except ProviderRequestError as e:
            if not e.is_transient:
                raise
            logger.warning("Could not look up owner of %s: %s", domain, e.message)
            return project

        if owner is None or owner == project.name:
            return project

        if not self.config.reroute_to_domain_owner:
            logger.warning(
                "Domain %s is bound to project %s; deploying to %s without rerouting",
                domain,
                owner,
                project.name,
            )
            return project

        logger.warning(
            "Domain %s is bound to project %s; rerouting deployment from %s",
            domain,
            owner,
            project.name,
        )
        return ProjectIdentity.named(owner, self.config.stable_domain_suffix)

    async def deploy(
        self,
        bundle: AssetBundle,
        project: ProjectIdentity,
        custom_domain: str | None = None,
    ) -> CreatedDeployment:
        """
        Ensure the project exists and create a deployment from ``bundle``.

        Raises:
            DeploymentError: any provider or transport failure
        """
        target = await self.resolve_target(project, custom_domain)
        project_id = await self.provider.ensure_project(target.name)
        logger.info("Uploading %d files to project %s (%s)", len(bundle), target.name, project_id)

        status = await self.provider.create_deployment(
            target.name, bundle.upload_files(), self.config.target
        )
        logger.info("Created deployment %s in project %s", status.id, target.name)
        return CreatedDeployment(status=status, project=target, rerouted=target != project)
