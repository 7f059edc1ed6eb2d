"""
shopforge - publish storefront layouts as static websites.

A layout document (hand-written or AI-authored JSON) is normalized, rendered
into a small Vite + React project, built, uploaded to a hosting provider and
bound to a stable public hostname.
"""

from __future__ import annotations

from ._version import get_version
from .core.errors import (
    AliasError,
    BuildError,
    DeploymentError,
    LayoutError,
    PublishError,
    PublishTimeoutError,
    ScaffoldError,
)

__version__ = get_version()

__all__ = [
    "__version__",
    "PublishError",
    "LayoutError",
    "ScaffoldError",
    "BuildError",
    "DeploymentError",
    "PublishTimeoutError",
    "AliasError",
]
