"""
Alias assignment.

The stable alias is always bound and its failure is fatal: without it the
publish has no durable URL. The custom domain is best effort; every failure
there becomes an AliasError that is logged and reported as a warning.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from shopforge.core.errors import AliasError, DeploymentError, ProviderRequestError
from shopforge.core.strings import normalize_hostname

from .client import ProjectIdentity
from .provider import DomainRegistration, HostingProvider

logger = logging.getLogger(__name__)


@dataclass
class AliasResult:
    """Outcome of alias assignment. ``url`` is always usable."""

    url: str
    stable_hostname: str
    custom_domain: str | None = None
    custom_bound: bool = False
    warnings: list[str] = field(default_factory=list)


class AliasManager:
    """
    Bind the stable alias and, optionally, a custom domain.

    All operations are idempotent: binding an alias that already points at
    an older deployment moves it, and an already-registered domain is fine.
    """

    def __init__(self, provider: HostingProvider):
        self.provider = provider

    async def assign(
        self,
        deployment_id: str,
        project: ProjectIdentity,
        custom_domain: str | None = None,
    ) -> AliasResult:
        """
        Raises:
            DeploymentError: the stable alias could not be bound
        """
        try:
            await self.provider.bind_alias(deployment_id, project.stable_hostname)
        except ProviderRequestError as e:
            raise DeploymentError(
                f"could not bind {project.stable_hostname} to {deployment_id}: {e.message}",
                stage="aliasing",
                detail=e.detail,
            ) from e
        logger.info("Bound %s to deployment %s", project.stable_hostname, deployment_id)

        result = AliasResult(url=project.stable_url, stable_hostname=project.stable_hostname)
        if not custom_domain:
            return result

        domain = normalize_hostname(custom_domain)
        result.custom_domain = domain or custom_domain
        try:
            if domain is None:
                raise AliasError(f"{custom_domain!r} is not a valid hostname", stage="aliasing")
            if domain == project.stable_hostname:
                return result
            await self._bind_custom(deployment_id, project, domain, result)
        except AliasError as e:
            logger.warning("Custom domain not assigned, using %s: %s", result.url, e)
            result.warnings.append(e.message)
        return result

    async def _bind_custom(
        self,
        deployment_id: str,
        project: ProjectIdentity,
        domain: str,
        result: AliasResult,
    ) -> None:
        try:
            registration = await self.provider.register_domain(project.name, domain)
            if registration is DomainRegistration.CREATED:
                logger.info("Registered %s to project %s", domain, project.name)
        except ProviderRequestError as e:
            if not e.is_conflict:
                raise AliasError(
                    f"could not register {domain}: {e.message}", stage="aliasing", detail=e.detail
                ) from e
            message = f"{domain} is registered elsewhere or not permitted ({e.status_code})"
            logger.warning("%s", message)
            result.warnings.append(message)

        try:
            await self.provider.bind_alias(deployment_id, domain)
        except ProviderRequestError as e:
            raise AliasError(
                f"could not bind {domain}: {e.message}", stage="aliasing", detail=e.detail
            ) from e

        result.custom_bound = True
        result.url = f"https://{domain}"
        logger.info("Bound %s to deployment %s", domain, deployment_id)
