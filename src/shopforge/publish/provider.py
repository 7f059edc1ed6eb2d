"""
Hosting provider contract and its Vercel REST implementation.

The pipeline depends only on the HostingProvider protocol. VercelProvider
maps it onto the Vercel REST API over ``httpx``; tests substitute an
in-memory fake.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol, runtime_checkable

import httpx

from shopforge.core.errors import ProviderRequestError

from .config import ProviderConfig

logger = logging.getLogger(__name__)


# =============================================================================
# Contract types
# =============================================================================


class DeploymentState(StrEnum):
    QUEUED = "QUEUED"
    BUILDING = "BUILDING"
    READY = "READY"
    ERROR = "ERROR"

    @property
    def is_terminal(self) -> bool:
        return self in (DeploymentState.READY, DeploymentState.ERROR)

    @classmethod
    def from_provider(cls, value: str | None) -> DeploymentState:
        """Map a provider ``readyState`` onto the four pipeline states."""
        return _READY_STATES.get((value or "").upper(), cls.QUEUED)


_READY_STATES: dict[str, DeploymentState] = {
    "QUEUED": DeploymentState.QUEUED,
    "INITIALIZING": DeploymentState.QUEUED,
    "BUILDING": DeploymentState.BUILDING,
    "READY": DeploymentState.READY,
    "ERROR": DeploymentState.ERROR,
    "CANCELED": DeploymentState.ERROR,
}


@dataclass(frozen=True)
class DeploymentStatus:
    """Provider view of one deployment."""

    id: str
    state: DeploymentState
    url: str | None = None
    aliases: tuple[str, ...] = ()
    error: str | None = None


class DomainRegistration(StrEnum):
    CREATED = "created"
    ALREADY_EXISTS = "already_exists"


@runtime_checkable
class HostingProvider(Protocol):
    """Operations the publish pipeline needs from a hosting provider."""

    async def ensure_project(self, name: str) -> str:
        """Look up or create the project; returns its id. Idempotent."""
        ...

    async def create_deployment(
        self, project_name: str, files: Sequence[dict[str, Any]], target: str
    ) -> DeploymentStatus:
        ...

    async def get_deployment(self, deployment_id: str) -> DeploymentStatus:
        ...

    async def bind_alias(self, deployment_id: str, hostname: str) -> None:
        """Point ``hostname`` at the deployment, rebinding if already bound."""
        ...

    async def register_domain(self, project_name: str, hostname: str) -> DomainRegistration:
        ...

    async def resolve_domain_owner(self, hostname: str) -> str | None:
        """Name of the project currently serving ``hostname``, if any."""
        ...

    async def delete_deployment(self, deployment_id: str) -> bool:
        ...


# =============================================================================
# Vercel implementation
# =============================================================================


def _error_detail(data: Any) -> str | None:
    """Best diagnostic message a deployment or error payload carries."""
    if not isinstance(data, dict):
        return None
    if data.get("errorMessage"):
        return str(data["errorMessage"])
    for build in data.get("builds") or []:
        if isinstance(build, dict) and build.get("error"):
            error = build["error"]
            return str(error.get("message") if isinstance(error, dict) else error)
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return None


def _error_code(data: Any) -> str | None:
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        code = data["error"].get("code")
        return str(code) if code else None
    return None


class VercelProvider:
    """
    HostingProvider over the Vercel REST API.

    Usage:
        async with VercelProvider(config) as provider:
            project_id = await provider.ensure_project("my-shop")
    """

    def __init__(self, config: ProviderConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self._client = client
        self._owns_client = client is None

    async def __aenter__(self) -> VercelProvider:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.api_base_url,
                timeout=self.config.request_timeout,
            )
        return self._client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Send one request and return the decoded JSON body.

        Raises:
            ProviderConfigError: no token configured
            ProviderRequestError: transport failure or non-2xx response
        """
        token = self.config.require_token()
        query = dict(params or {})
        if self.config.team_id:
            query["teamId"] = self.config.team_id

        started = time.monotonic()
        try:
            response = await self._get_client().request(
                method,
                path,
                json=json,
                params=query or None,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TimeoutException as e:
            raise ProviderRequestError(f"{method} {path} timed out") from e
        except httpx.RequestError as e:
            raise ProviderRequestError(f"{method} {path} failed: {e}") from e

        latency_ms = (time.monotonic() - started) * 1000
        logger.debug("%s %s -> %s (%.1fms)", method, path, response.status_code, latency_ms)

        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {"raw": response.text[:500]}

        if response.is_error:
            logger.debug("Provider error payload for %s %s: %s", method, path, data)
            raise ProviderRequestError(
                f"{method} {path} returned {response.status_code}: "
                f"{_error_detail(data) or response.reason_phrase}",
                status_code=response.status_code,
                code=_error_code(data),
                detail=data,
            )
        return data

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    async def ensure_project(self, name: str) -> str:
        try:
            data = await self._request("GET", f"/v9/projects/{name}")
            return str(data.get("id") or name)
        except ProviderRequestError as e:
            if not e.is_not_found:
                raise

        try:
            data = await self._request("POST", "/v11/projects", json={"name": name})
            logger.info("Created hosting project %s", name)
            return str(data.get("id") or name)
        except ProviderRequestError as e:
            # Lost a race with a concurrent create: the project exists now
            if e.status_code != 409:
                raise
        data = await self._request("GET", f"/v9/projects/{name}")
        return str(data.get("id") or name)

    # -------------------------------------------------------------------------
    # Deployments
    # -------------------------------------------------------------------------

    def _status(self, data: dict[str, Any], fallback_id: str = "") -> DeploymentStatus:
        state = DeploymentState.from_provider(data.get("readyState") or data.get("status"))
        aliases = data.get("alias") or []
        return DeploymentStatus(
            id=str(data.get("id") or data.get("uid") or fallback_id),
            state=state,
            url=data.get("url"),
            aliases=tuple(str(a) for a in aliases if a),
            error=_error_detail(data) if state is DeploymentState.ERROR else None,
        )

    async def create_deployment(
        self, project_name: str, files: Sequence[dict[str, Any]], target: str
    ) -> DeploymentStatus:
        payload = {
            "name": project_name,
            "project": project_name,
            "files": list(files),
            "target": target,
            "projectSettings": {"framework": None},
        }
        data = await self._request(
            "POST",
            "/v13/deployments",
            json=payload,
            params={"skipAutoDetectionConfirmation": "1"},
        )
        status = self._status(data)
        if not status.id:
            raise ProviderRequestError(
                "deployment response carried no id", stage="uploading", detail=data
            )
        return status

    async def get_deployment(self, deployment_id: str) -> DeploymentStatus:
        data = await self._request("GET", f"/v13/deployments/{deployment_id}")
        return self._status(data, fallback_id=deployment_id)

    async def delete_deployment(self, deployment_id: str) -> bool:
        try:
            await self._request("DELETE", f"/v13/deployments/{deployment_id}")
        except ProviderRequestError as e:
            if e.is_not_found:
                return False
            raise
        return True

    # -------------------------------------------------------------------------
    # Aliases and domains
    # -------------------------------------------------------------------------

    async def bind_alias(self, deployment_id: str, hostname: str) -> None:
        await self._request(
            "POST", f"/v2/deployments/{deployment_id}/aliases", json={"alias": hostname}
        )

    async def register_domain(self, project_name: str, hostname: str) -> DomainRegistration:
        try:
            await self._request(
                "POST", f"/v10/projects/{project_name}/domains", json={"name": hostname}
            )
        except ProviderRequestError as e:
            if e.status_code == 409 and e.code in ("domain_already_exists", "domain_exists"):
                return DomainRegistration.ALREADY_EXISTS
            raise
        return DomainRegistration.CREATED

    async def resolve_domain_owner(self, hostname: str) -> str | None:
        try:
            alias = await self._request("GET", f"/v4/aliases/{hostname}")
        except ProviderRequestError as e:
            if e.is_not_found:
                return None
            raise

        project_id = alias.get("projectId")
        if not project_id:
            return None
        try:
            project = await self._request("GET", f"/v9/projects/{project_id}")
        except ProviderRequestError as e:
            if e.is_not_found:
                return None
            raise
        return project.get("name") or None
