"""
Store model.

Only the fields the publish pipeline reads or writes; products, teams and
accounts live elsewhere.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict


class Store(BaseModel):
    """A storefront and its publish metadata."""

    id: str
    owner_id: str
    store_name: str
    domain: str | None = None
    custom_domain: str | None = None
    layout: Any = None
    published_url: str | None = None
    deployment_id: str | None = None
    project_name: str | None = None
    last_published: datetime | None = None
    created_at: datetime | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_published(self) -> bool:
        return bool(self.published_url)

    @property
    def has_layout(self) -> bool:
        return self.layout not in (None, "", {}, [])

    def publish_status(self) -> dict[str, Any]:
        return {
            "isPublished": self.is_published,
            "publishedUrl": self.published_url,
            "lastPublished": self.last_published.isoformat() if self.last_published else None,
            "deploymentId": self.deployment_id,
            "hasLayout": self.has_layout,
        }
