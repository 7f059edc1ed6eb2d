"""
Deployment poller: wait for QUEUED -> BUILDING -> READY | ERROR.
"""

from __future__ import annotations

import asyncio
import logging

from shopforge.core.errors import DeploymentError, ProviderRequestError, PublishTimeoutError

from .backoff import BackoffSchedule, Deadline, Sleep, backoff_attempts, bounded
from .config import ProviderConfig
from .provider import DeploymentState, DeploymentStatus, HostingProvider

logger = logging.getLogger(__name__)


class DeploymentPoller:
    """
    Poll a deployment until it reaches a terminal state.

    The loop is bounded by ``poll_max_attempts`` and by the caller's deadline,
    which also cuts short a status request that is still in flight.
    """

    def __init__(
        self,
        provider: HostingProvider,
        config: ProviderConfig,
        *,
        sleep: Sleep | None = None,
    ):
        self.provider = provider
        self.config = config
        self.schedule = BackoffSchedule.from_config(config)
        self._sleep = sleep

    async def wait_until_ready(
        self,
        deployment_id: str,
        *,
        deadline: Deadline | None = None,
        cancel: asyncio.Event | None = None,
    ) -> DeploymentStatus:
        """
        Return the READY status.

        Raises:
            DeploymentError: the deployment ended in ERROR, or the provider
                refused the status request
            PublishTimeoutError: attempts or deadline exhausted
            PublishCancelledError: ``cancel`` was set
        """
        last_state: DeploymentState | None = None

        async for attempt in backoff_attempts(
            self.schedule,
            deadline=deadline,
            cancel=cancel,
            sleep=self._sleep,
            stage="polling",
        ):
            try:
                status = await bounded(
                    self.provider.get_deployment(deployment_id),
                    deadline=deadline,
                    cancel=cancel,
                    stage="polling",
                )
            except ProviderRequestError as e:
                if e.is_not_found and attempt.number < self.config.poll_not_found_grace:
                    logger.debug(
                        "Deployment %s not queryable yet (attempt %d)",
                        deployment_id,
                        attempt.number,
                    )
                    continue
                if e.is_transient:
                    logger.warning(
                        "Status check %d for %s failed: %s",
                        attempt.number,
                        deployment_id,
                        e.message,
                    )
                    continue
                raise e.with_stage("polling")

            if status.state != last_state:
                logger.info(
                    "Deployment %s is %s (attempt %d/%d)",
                    deployment_id,
                    status.state,
                    attempt.number,
                    self.schedule.max_attempts,
                )
                last_state = status.state

            if not status.state.is_terminal:
                continue
            if status.state is DeploymentState.READY:
                return status
            reason = status.error or "unknown error"
            raise DeploymentError(
                f"deployment {deployment_id} failed: {reason}",
                stage="polling",
                detail=status.error,
            )

        raise PublishTimeoutError(
            f"deployment {deployment_id} not ready after {self.schedule.max_attempts} checks "
            f"(last state: {last_state or 'unknown'})",
            stage="polling",
        )
