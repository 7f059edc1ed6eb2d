"""HTTP surface for store publishing."""

from __future__ import annotations

from .app import create_app
from .routes import create_publish_routes

__all__ = ["create_app", "create_publish_routes"]
