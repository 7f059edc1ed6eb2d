"""
Configuration for the publish pipeline.

Two layers:

- ProviderConfig: hosting provider credentials and polling limits, read from
  the environment once and passed explicitly into the deployment client,
  poller and alias manager.
- PublishConfig: local build settings, loaded from the [publish] section of
  shopforge.toml.
"""

from __future__ import annotations

import logging
import os
import tempfile
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from shopforge.core.errors import ProviderConfigError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://api.vercel.com"


# =============================================================================
# Provider configuration
# =============================================================================


@dataclass(frozen=True)
class ProviderConfig:
    """Hosting provider settings.

    Attributes:
        token: API bearer token
        api_base_url: Provider REST API root
        team_id: Optional team scope appended to every request
        target: Deployment target environment
        request_timeout: Per-request timeout in seconds (uploads can be large)
        poll_max_attempts: Status checks before giving up
        poll_fast_attempts: Number of early checks using the short interval
        poll_fast_interval: Seconds between early checks
        poll_slow_interval: Seconds between later checks
        poll_not_found_grace: Early attempts during which 404 is transient
        stable_domain_suffix: Suffix of the project-derived stable hostname
        reroute_to_domain_owner: Deploy into the project that already owns
            the requested custom domain instead of the store's own project
    """

    token: str | None = None
    api_base_url: str = DEFAULT_API_BASE_URL
    team_id: str | None = None
    target: str = "production"
    request_timeout: float = 300.0
    poll_max_attempts: int = 30
    poll_fast_attempts: int = 5
    poll_fast_interval: float = 5.0
    poll_slow_interval: float = 10.0
    poll_not_found_grace: int = 10
    stable_domain_suffix: str = "vercel.app"
    reroute_to_domain_owner: bool = False

    def __post_init__(self) -> None:
        if self.poll_max_attempts < 1:
            raise ValueError("poll_max_attempts must be at least 1")
        if self.poll_fast_interval < 0 or self.poll_slow_interval < 0:
            raise ValueError("poll intervals must not be negative")

    @property
    def is_configured(self) -> bool:
        return bool(self.token)

    def require_token(self) -> str:
        """Return the token or raise ProviderConfigError."""
        if not self.token:
            raise ProviderConfigError(
                "hosting provider token is not configured "
                "(set SHOPFORGE_PROVIDER_TOKEN or VERCEL_TOKEN)"
            )
        return self.token

    @property
    def max_poll_wait(self) -> float:
        """Upper bound on the total sleep time of one poll loop (waits between checks)."""
        waits = self.poll_max_attempts - 1
        fast = min(self.poll_fast_attempts, waits)
        slow = waits - fast
        return fast * self.poll_fast_interval + slow * self.poll_slow_interval

    def with_overrides(self, **changes: Any) -> ProviderConfig:
        return replace(self, **changes)

    def __repr__(self) -> str:
        token = "***" if self.token else None
        return (
            f"ProviderConfig(token={token!r}, api_base_url={self.api_base_url!r}, "
            f"team_id={self.team_id!r}, target={self.target!r})"
        )


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s=%r", name, raw)
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


def load_provider_config() -> ProviderConfig:
    """Build ProviderConfig from environment variables.

    Environment variables:
        - SHOPFORGE_PROVIDER_TOKEN / VERCEL_TOKEN -> token
        - SHOPFORGE_PROVIDER_URL -> api_base_url
        - SHOPFORGE_TEAM_ID / VERCEL_TEAM_ID -> team_id
        - SHOPFORGE_POLL_MAX_ATTEMPTS, SHOPFORGE_POLL_FAST_INTERVAL,
          SHOPFORGE_POLL_SLOW_INTERVAL -> polling limits
        - SHOPFORGE_REROUTE_TO_DOMAIN_OWNER=1 -> reroute_to_domain_owner
    """
    defaults = ProviderConfig()
    return ProviderConfig(
        token=os.environ.get("SHOPFORGE_PROVIDER_TOKEN") or os.environ.get("VERCEL_TOKEN"),
        api_base_url=(os.environ.get("SHOPFORGE_PROVIDER_URL") or DEFAULT_API_BASE_URL).rstrip(
            "/"
        ),
        team_id=os.environ.get("SHOPFORGE_TEAM_ID") or os.environ.get("VERCEL_TEAM_ID"),
        poll_max_attempts=_env_int("SHOPFORGE_POLL_MAX_ATTEMPTS", defaults.poll_max_attempts),
        poll_fast_interval=_env_float(
            "SHOPFORGE_POLL_FAST_INTERVAL", defaults.poll_fast_interval
        ),
        poll_slow_interval=_env_float(
            "SHOPFORGE_POLL_SLOW_INTERVAL", defaults.poll_slow_interval
        ),
        reroute_to_domain_owner=os.environ.get("SHOPFORGE_REROUTE_TO_DOMAIN_OWNER", "0")
        in ("1", "true", "yes"),
    )


# =============================================================================
# Local build configuration
# =============================================================================


def _default_workspace_root() -> str:
    return str(Path(tempfile.gettempdir()) / "shopforge-builds")


class PublishConfig(BaseModel):
    """Build workspace and toolchain configuration."""

    workspace_root: str = Field(default_factory=_default_workspace_root)
    install_command: list[str] = Field(default_factory=lambda: ["npm", "install"])
    build_command: list[str] = Field(default_factory=lambda: ["npm", "run", "build"])
    output_dir: str = "dist"
    build_timeout: float = Field(default=600.0, gt=0)
    publish_timeout: float = Field(default=900.0, gt=0)
    core_pages: bool = True
    stderr_tail: int = Field(default=4000, ge=0)

    def get_workspace_root(self) -> Path:
        return Path(self.workspace_root).expanduser()


def load_publish_config(toml_path: Path) -> PublishConfig:
    """
    Load publish configuration from shopforge.toml.

    Args:
        toml_path: Path to shopforge.toml file

    Returns:
        PublishConfig with values from file or defaults
    """
    if not toml_path.exists():
        return PublishConfig()

    try:
        with open(toml_path, "rb") as f:
            data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.warning("Could not read %s: %s", toml_path, e)
        return PublishConfig()

    section = data.get("publish", {})
    if not section:
        return PublishConfig()

    return PublishConfig.model_validate(section)
