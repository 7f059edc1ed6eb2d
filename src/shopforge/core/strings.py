"""
String utility functions for shopforge.

Slugs for page paths, and names that must satisfy the naming rules of npm
and of the hosting provider.
"""

from __future__ import annotations

import re

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_NON_NAME_CHARS = re.compile(r"[^a-z0-9._-]")
_DASH_RUN = re.compile(r"-+")

# Hosting provider project names are limited to 100 characters
MAX_PROJECT_NAME_LENGTH = 100


def slugify(value: object) -> str:
    """
    Convert a display name to a URL slug.

    Examples:
        >>> slugify("Our Products!")
        'our-products'
        >>> slugify("  ")
        ''
    """
    text = str(value or "").lower().strip()
    return _NON_ALNUM.sub("-", text).strip("-")


def _sanitize_name(value: str, fallback: str) -> str:
    name = _NON_NAME_CHARS.sub("-", value.lower())
    name = _DASH_RUN.sub("-", name).strip("-")
    name = name[:MAX_PROJECT_NAME_LENGTH].strip("-")
    return name or fallback


def sanitize_project_name(*candidates: str | None) -> str:
    """
    Derive a stable hosting project name.

    The first non-empty candidate wins (store domain before store name), so
    the same store always maps to the same project across republishes.

    Examples:
        >>> sanitize_project_name("My Shop", None)
        'my-shop'
        >>> sanitize_project_name(None, "")
        'store'
    """
    preferred = next((c for c in candidates if c and c.strip()), "store")
    return _sanitize_name(preferred, "store")


def sanitize_package_name(store_name: str | None) -> str:
    """Sanitize a store name for use as an npm package name."""
    return _sanitize_name(store_name or "", "my-store")


def normalize_hostname(value: str | None) -> str | None:
    """
    Reduce user input such as ``https://Shop.Example.com/`` to a bare hostname.

    Returns None when nothing usable remains.
    """
    if not value:
        return None
    host = value.strip().lower()
    host = re.sub(r"^[a-z][a-z0-9+.-]*://", "", host)
    host = host.split("/", 1)[0].split("?", 1)[0].split(":", 1)[0]
    host = host.rstrip(".")
    if not host or "." not in host or not re.fullmatch(r"[a-z0-9.-]+", host):
        return None
    return host
