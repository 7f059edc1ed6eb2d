"""
Canonical site layout model.

A SiteLayout is what the normalizer produces from an untrusted layout
document. Construction validates the structural invariants, so any SiteLayout
instance in the pipeline is known to be well formed:

- at least one page
- every page path starts with ``/`` and paths are unique
- every page starts with exactly one navbar section and ends with exactly one
  footer section
- section ids are unique across the document
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# =============================================================================
# Section catalog
# =============================================================================


class SectionType(StrEnum):
    """Section types with a dedicated renderer."""

    NAVBAR = "navbar"
    HERO = "hero"
    FEATURES = "features"
    COLLECTION = "collection"
    PRODUCTS = "products"
    TESTIMONIALS = "testimonials"
    PRICING = "pricing"
    CTA = "cta"
    GALLERY = "gallery"
    TEXTBLOCK = "textblock"
    NEWSLETTER = "newsletter"
    FOOTER = "footer"


SECTION_CATALOG: frozenset[str] = frozenset(t.value for t in SectionType)
DEFAULT_SECTION_TYPE = SectionType.TEXTBLOCK.value


def is_known_section_type(section_type: str) -> bool:
    return section_type in SECTION_CATALOG


# =============================================================================
# Models
# =============================================================================


class Theme(BaseModel):
    """Site-wide colours and fonts."""

    primary_color: str = Field(default="#3b82f6", alias="primaryColor")
    banner_url: str = Field(default="", alias="bannerUrl")
    logo_url: str = Field(default="", alias="logoUrl")
    fonts: str = "Inter, ui-sans-serif, system-ui"

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Section(BaseModel):
    """
    One content block on a page.

    Type-specific fields (``title``, ``items``, ``links`` ...) are kept as
    extra attributes and passed through to the renderer untouched.
    """

    id: str
    type: str = DEFAULT_SECTION_TYPE
    variant: str | None = None

    model_config = ConfigDict(extra="allow", frozen=True)

    @property
    def is_known(self) -> bool:
        return is_known_section_type(self.type)

    @property
    def extra_fields(self) -> dict[str, Any]:
        """Type-specific fields, excluding id/type/variant."""
        return dict(self.model_extra or {})

    def get(self, key: str, default: Any = None) -> Any:
        return (self.model_extra or {}).get(key, default)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class Page(BaseModel):
    """A routable page with an ordered section sequence."""

    name: str
    path: str
    description: str = ""
    sections: list[Section] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_page(self) -> Page:
        if not self.path.startswith("/"):
            raise ValueError(f"page path must start with '/': {self.path!r}")
        types = [s.type for s in self.sections]
        if len(types) < 2 or types[0] != SectionType.NAVBAR or types[-1] != SectionType.FOOTER:
            raise ValueError(f"page {self.name!r} must start with a navbar and end with a footer")
        if types.count(SectionType.NAVBAR) != 1 or types.count(SectionType.FOOTER) != 1:
            raise ValueError(f"page {self.name!r} must have exactly one navbar and one footer")
        return self

    @property
    def body_sections(self) -> list[Section]:
        """Sections between the navbar and the footer."""
        return self.sections[1:-1]

    def to_document(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "description": self.description,
            "sections": [s.to_document() for s in self.sections],
        }


class SiteLayout(BaseModel):
    """Root layout document: an ordered list of pages plus a theme."""

    pages: list[Page]
    theme: Theme = Field(default_factory=Theme)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_layout(self) -> SiteLayout:
        if not self.pages:
            raise ValueError("layout must contain at least one page")
        paths = [p.path for p in self.pages]
        if len(set(paths)) != len(paths):
            raise ValueError("page paths must be unique")
        ids = [s.id for p in self.pages for s in p.sections]
        if len(set(ids)) != len(ids):
            raise ValueError("section ids must be unique")
        return self

    @property
    def home(self) -> Page:
        for page in self.pages:
            if page.path == "/":
                return page
        return self.pages[0]

    def page_by_name(self, name: str) -> Page | None:
        """Look up a page by display name (case-insensitive)."""
        wanted = name.strip().lower()
        for page in self.pages:
            if page.name.lower() == wanted:
                return page
        return None

    def page_by_path(self, path: str) -> Page | None:
        for page in self.pages:
            if page.path == path:
                return page
        return None

    def section_types(self) -> list[str]:
        """Distinct section types in first-seen order."""
        seen: dict[str, None] = {}
        for page in self.pages:
            for section in page.sections:
                seen.setdefault(section.type, None)
        return list(seen)

    def to_document(self) -> dict[str, Any]:
        return {
            "theme": self.theme.model_dump(by_alias=True),
            "pages": [p.to_document() for p in self.pages],
        }

    def summary(self) -> dict[str, Any]:
        """Structure info without content, for diagnostics."""
        return {
            "pages": len(self.pages),
            "sections": {p.path: len(p.sections) for p in self.pages},
            "sectionTypes": self.section_types(),
        }
