"""
Store publishing routes.

Mounted at ``/api/store``. Every route requires the caller to own the store.
Pipeline errors propagate as PublishError and are turned into response
envelopes by the handlers installed in ``create_app``.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel

from shopforge.core.errors import LayoutError, PublishError, PublishInProgressError
from shopforge.core.normalizer import LayoutNormalizer
from shopforge.publish.publisher import Publisher, PublishRequest
from shopforge.stores import Store, StoreRepository

logger = logging.getLogger(__name__)


class LayoutBody(BaseModel):
    layout: Any = None


class PublishBody(BaseModel):
    layout: Any = None


def envelope(
    message: str | None = None, data: Any = None, *, success: bool = True
) -> dict[str, Any]:
    """Response body shared by all routes: ``{success, message?, data?}``."""
    body: dict[str, Any] = {"success": success}
    if message is not None:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return body


def header_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """Default owner identity: the ``X-User-Id`` header."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Authentication required")
    return x_user_id


def create_publish_routes(
    repository: StoreRepository,
    publisher: Publisher,
    auth_dep: Any | None = None,
) -> APIRouter:
    """Create store publishing routes.

    Args:
        repository: Store persistence
        publisher: Publish pipeline
        auth_dep: Dependency returning the caller's user id (default: X-User-Id header)

    Returns:
        FastAPI APIRouter mounted at ``/api/store``.
    """
    router = APIRouter(prefix="/api/store", tags=["Publish"])
    user_dep = auth_dep or header_user_id

    def owned_store(store_id: str, user_id: str = Depends(user_dep)) -> Store:
        store = repository.get(store_id)
        if store is None:
            raise HTTPException(status_code=404, detail="Store not found")
        if store.owner_id != user_id:
            raise HTTPException(status_code=403, detail="You do not have access to this store")
        return store

    # =========================================================================
    # Publish
    # =========================================================================

    @router.post("/{store_id}/publish")
    async def publish_store(
        body: PublishBody | None = None,
        store: Store = Depends(owned_store),
    ) -> dict[str, Any]:
        """Build and deploy the store's layout."""
        # publish() takes the lock with no await after this check.
        if publisher.locks.is_held(store.id):
            raise PublishInProgressError(store.id)
        if body is not None and body.layout is not None:
            store = repository.update_layout(store.id, body.layout)
        if not store.has_layout:
            raise LayoutError("store has no layout to publish", stage="validating")

        result = await publisher.publish(
            PublishRequest(
                store_id=store.id,
                store_name=store.store_name,
                layout=store.layout,
                domain=store.domain,
                custom_domain=store.custom_domain,
            )
        )
        repository.mark_published(
            store.id,
            url=result.url,
            deployment_id=result.deployment_id,
            published_at=result.published_at,
            project_name=result.project_name,
        )
        return envelope("Store published successfully", result.to_dict())

    @router.get("/{store_id}/publish/status")
    async def publish_status(store: Store = Depends(owned_store)) -> dict[str, Any]:
        return envelope(data=store.publish_status())

    @router.delete("/{store_id}/unpublish")
    async def unpublish_store(
        purge: bool = Query(default=False),
        store: Store = Depends(owned_store),
    ) -> dict[str, Any]:
        """Clear publish metadata; with ``purge`` also delete the remote deployment."""
        purged = False
        if purge and store.deployment_id:
            try:
                purged = await publisher.provider.delete_deployment(store.deployment_id)
            except PublishError as e:
                logger.warning(
                    "Could not delete deployment %s of store %s: %s",
                    store.deployment_id,
                    store.id,
                    e,
                )
        repository.clear_published(store.id)
        return envelope("Store unpublished successfully", {"deploymentDeleted": purged})

    # =========================================================================
    # Layout
    # =========================================================================

    @router.put("/{store_id}/layout")
    async def save_layout(body: LayoutBody, store: Store = Depends(owned_store)) -> dict[str, Any]:
        """Persist a layout for a future publish. Stored as given."""
        if body.layout is None:
            raise LayoutError("layout is missing", stage="validating")
        repository.update_layout(store.id, body.layout)
        return envelope("Layout saved successfully", {"hasLayout": True})

    @router.get("/{store_id}/layout/summary")
    async def layout_summary(store: Store = Depends(owned_store)) -> dict[str, Any]:
        """Structure of the stored layout, without its content."""
        if not store.has_layout:
            return envelope(data={"hasLayout": False})
        try:
            layout = LayoutNormalizer(site_name=store.store_name).normalize(store.layout)
        except LayoutError as e:
            return envelope(data={"hasLayout": True, "valid": False, "error": e.public_message})
        return envelope(data={"hasLayout": True, "valid": True, **layout.summary()})

    return router
