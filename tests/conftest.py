"""Shared pytest fixtures for shopforge tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from shopforge.publish.config import ProviderConfig, PublishConfig
from shopforge.publish.locks import StoreLockRegistry
from shopforge.publish.publisher import Publisher
from tests.fakes import FakeProvider
from tests.support import make_publish_config, no_sleep


@pytest.fixture
def provider_config() -> ProviderConfig:
    return ProviderConfig(
        token="test-token",
        poll_max_attempts=5,
        poll_fast_interval=0.0,
        poll_slow_interval=0.0,
    )


@pytest.fixture
def publish_config(tmp_path: Path) -> PublishConfig:
    return make_publish_config(tmp_path)


@pytest.fixture
def workspace_root(publish_config: PublishConfig) -> Path:
    return publish_config.get_workspace_root()


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def publisher(
    fake_provider: FakeProvider,
    provider_config: ProviderConfig,
    publish_config: PublishConfig,
) -> Publisher:
    return Publisher(
        fake_provider,
        provider_config,
        publish_config,
        locks=StoreLockRegistry(),
        poll_sleep=no_sleep,
    )


@pytest.fixture
def sample_layout() -> dict[str, Any]:
    """A small layout as the AI generator would produce it."""
    return {
        "theme": {"primaryColor": "#10b981"},
        "pages": [
            {
                "name": "Home",
                "sections": [
                    {
                        "type": "navbar",
                        "logo": "Acme",
                        "links": [
                            {"text": "Home", "type": "page", "pageName": "Home"},
                            {"text": "Shop", "type": "page", "pageName": "Products"},
                            {"text": "Blog", "url": "https://blog.example.com"},
                        ],
                    },
                    {
                        "type": "hero",
                        "title": "Fresh goods",
                        "subtitle": "Delivered daily",
                        "buttonText": "Shop Now",
                        "buttonLink": {"type": "page", "pageName": "Products"},
                    },
                    {
                        "type": "collection",
                        "title": "Featured",
                        "items": [
                            {"name": "Apples", "price": "3.50"},
                            {"name": "Pears", "price": "4.00"},
                        ],
                    },
                    {"type": "footer", "companyName": "Acme", "tagline": "Since 1999"},
                ],
            },
            {
                "name": "About",
                "sections": [{"type": "textblock", "heading": "About", "content": "Family run."}],
            },
        ],
    }
