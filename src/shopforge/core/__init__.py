"""
Core layout handling: error taxonomy, canonical layout model, JSON repair
and normalization.
"""

from __future__ import annotations

from .errors import LayoutError, PublishError
from .layout import Page, Section, SectionType, SiteLayout, Theme
from .normalizer import LayoutNormalizer, normalize_layout

__all__ = [
    "LayoutError",
    "LayoutNormalizer",
    "Page",
    "PublishError",
    "Section",
    "SectionType",
    "SiteLayout",
    "Theme",
    "normalize_layout",
]
