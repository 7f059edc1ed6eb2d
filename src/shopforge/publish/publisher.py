"""
Publisher: the one entry point the rest of the application calls.

Stages run strictly in order:

    VALIDATING -> SCAFFOLDING -> SYNTHESIZING -> BUILDING -> UPLOADING
    -> POLLING -> ALIASING -> DONE

and every exit path, including unexpected exceptions and cancellation,
passes through CLEANUP, which removes the build workspace. A layout error
aborts before anything touches the filesystem.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from shopforge.core.errors import PublishCancelledError, PublishError
from shopforge.core.normalizer import LayoutNormalizer

from .aliases import AliasManager
from .backoff import Deadline, Sleep, bounded
from .build import BuildRunner
from .client import DeploymentClient, ProjectIdentity
from .config import ProviderConfig, PublishConfig
from .locks import StoreLockRegistry, get_lock_registry
from .poller import DeploymentPoller
from .provider import HostingProvider
from .synthesizer import synthesize
from .workspace import BuildWorkspace, ProjectScaffolder, WorkspaceJanitor

logger = logging.getLogger(__name__)


class PublishStage(StrEnum):
    VALIDATING = "validating"
    SCAFFOLDING = "scaffolding"
    SYNTHESIZING = "synthesizing"
    BUILDING = "building"
    UPLOADING = "uploading"
    POLLING = "polling"
    ALIASING = "aliasing"
    DONE = "done"
    CLEANUP = "cleanup"
    FINISHED = "finished"


@dataclass(frozen=True)
class PublishRequest:
    """
    What to publish.

    Attributes:
        store_id: Lock key and workspace prefix
        store_name: Display name (site title, project name fallback)
        layout: Raw layout value, normalized before use
        domain: Store domain, preferred source of the project name
        custom_domain: Hostname to bind in addition to the stable alias
    """

    store_id: str
    store_name: str
    layout: Any
    domain: str | None = None
    custom_domain: str | None = None


@dataclass(frozen=True)
class PublishResult:
    """A successful publish. ``url`` is always a usable public URL."""

    url: str
    deployment_id: str
    published_at: datetime
    stable_url: str
    project_name: str
    custom_domain_bound: bool = False
    warnings: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "deploymentId": self.deployment_id,
            "publishedAt": self.published_at.isoformat(),
            "stableUrl": self.stable_url,
            "projectName": self.project_name,
            "customDomainBound": self.custom_domain_bound,
            "warnings": list(self.warnings),
        }


@dataclass(frozen=True)
class PublishOutcome:
    """Either a result or a classified error, never both."""

    result: PublishResult | None = None
    error: PublishError | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None


@dataclass
class _Attempt:
    request: PublishRequest
    deadline: Deadline
    cancel: asyncio.Event | None
    stage: PublishStage = PublishStage.VALIDATING
    workspace: BuildWorkspace | None = None
    warnings: list[str] = field(default_factory=list)

    def enter(self, stage: PublishStage) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise PublishCancelledError("publish was cancelled", stage=self.stage.value)
        self.deadline.check(stage.value)
        self.stage = stage
        logger.info("Store %s: %s", self.request.store_id, stage.value)


class Publisher:
    """
    Run the publish pipeline for one store at a time.

    Usage:
        publisher = Publisher(provider, load_provider_config())
        result = await publisher.publish(PublishRequest(store_id, name, layout))
    """

    def __init__(
        self,
        provider: HostingProvider,
        provider_config: ProviderConfig,
        publish_config: PublishConfig | None = None,
        *,
        locks: StoreLockRegistry | None = None,
        poll_sleep: Sleep | None = None,
    ):
        self.provider = provider
        self.provider_config = provider_config
        self.config = publish_config or PublishConfig()
        self.locks = locks or get_lock_registry()

        self.scaffolder = ProjectScaffolder(
            self.config.get_workspace_root(), self.config.output_dir
        )
        self.builder = BuildRunner(self.config)
        self.client = DeploymentClient(provider, provider_config)
        self.poller = DeploymentPoller(provider, provider_config, sleep=poll_sleep)
        self.aliases = AliasManager(provider)
        self.janitor = WorkspaceJanitor()

    async def publish(
        self,
        request: PublishRequest,
        *,
        deadline: Deadline | None = None,
        cancel: asyncio.Event | None = None,
    ) -> PublishResult:
        """
        Publish a store.

        Raises:
            PublishInProgressError: the store is already publishing
            PublishError: any fatal pipeline failure, classified by subclass
        """
        with self.locks.hold(request.store_id):
            attempt = _Attempt(
                request=request,
                deadline=deadline or Deadline(self.config.publish_timeout),
                cancel=cancel,
            )
            try:
                return await self._run(attempt)
            except PublishError as e:
                e.with_stage(attempt.stage.value)
                logger.error("Publish failed for store %s: %s", request.store_id, e)
                raise
            except asyncio.CancelledError:
                logger.warning(
                    "Publish cancelled for store %s during %s", request.store_id, attempt.stage
                )
                raise
            except Exception as e:
                logger.exception(
                    "Unexpected error publishing store %s during %s",
                    request.store_id,
                    attempt.stage,
                )
                raise PublishError(
                    f"unexpected error: {type(e).__name__}", stage=attempt.stage.value
                ) from e
            finally:
                attempt.stage = PublishStage.CLEANUP
                if not self.janitor.cleanup(attempt.workspace):
                    logger.error("Workspace for store %s was not removed", request.store_id)
                attempt.stage = PublishStage.FINISHED

    async def try_publish(
        self,
        request: PublishRequest,
        *,
        deadline: Deadline | None = None,
        cancel: asyncio.Event | None = None,
    ) -> PublishOutcome:
        """Like publish(), but returns the error instead of raising it."""
        try:
            result = await self.publish(request, deadline=deadline, cancel=cancel)
        except PublishError as e:
            return PublishOutcome(error=e)
        return PublishOutcome(result=result)

    async def _run(self, attempt: _Attempt) -> PublishResult:
        request = attempt.request

        attempt.enter(PublishStage.VALIDATING)
        layout = LayoutNormalizer(
            site_name=request.store_name,
            ensure_core_pages=self.config.core_pages,
        ).normalize(request.layout)
        self.provider_config.require_token()

        attempt.enter(PublishStage.SCAFFOLDING)
        attempt.workspace = self.scaffolder.scaffold(request.store_id, request.store_name)

        attempt.enter(PublishStage.SYNTHESIZING)
        generated = synthesize(layout, attempt.workspace.root)
        attempt.warnings.extend(generated.warnings)

        attempt.enter(PublishStage.BUILDING)
        bundle = await self.builder.run(attempt.workspace, attempt.deadline)

        attempt.enter(PublishStage.UPLOADING)
        project = ProjectIdentity.for_store(
            domain=request.domain,
            store_name=request.store_name,
            suffix=self.provider_config.stable_domain_suffix,
        )
        created = await bounded(
            self.client.deploy(bundle, project, request.custom_domain),
            deadline=attempt.deadline,
            cancel=attempt.cancel,
            stage=PublishStage.UPLOADING.value,
        )

        attempt.enter(PublishStage.POLLING)
        await self.poller.wait_until_ready(
            created.id, deadline=attempt.deadline, cancel=attempt.cancel
        )

        attempt.enter(PublishStage.ALIASING)
        aliases = await self.aliases.assign(created.id, created.project, request.custom_domain)
        attempt.warnings.extend(aliases.warnings)

        attempt.stage = PublishStage.DONE
        result = PublishResult(
            url=aliases.url,
            deployment_id=created.id,
            published_at=datetime.now(UTC),
            stable_url=created.project.stable_url,
            project_name=created.project.name,
            custom_domain_bound=aliases.custom_bound,
            warnings=tuple(attempt.warnings),
        )
        logger.info(
            "Published store %s at %s (deployment %s)",
            request.store_id,
            result.url,
            result.deployment_id,
        )
        return result
