"""
Publish pipeline: scaffold, synthesize, build, deploy, poll, alias, clean up.
"""

from __future__ import annotations

from .config import ProviderConfig, PublishConfig, load_provider_config, load_publish_config
from .provider import DeploymentState, DeploymentStatus, HostingProvider, VercelProvider
from .publisher import PublishOutcome, Publisher, PublishRequest, PublishResult, PublishStage

__all__ = [
    "DeploymentState",
    "DeploymentStatus",
    "HostingProvider",
    "ProviderConfig",
    "PublishConfig",
    "PublishOutcome",
    "PublishRequest",
    "PublishResult",
    "PublishStage",
    "Publisher",
    "VercelProvider",
    "load_provider_config",
    "load_publish_config",
]
