"""
Layout normalization.

Turns an untrusted layout value (a dict, a list, JSON text possibly damaged
by an LLM, or nothing at all) into a canonical SiteLayout, or raises
LayoutError. Normalization is deterministic: the same input always yields
the same layout, including generated section ids and placeholder content.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from .errors import LayoutError
from .json_repair import JSONRepairError, repair_json
from .layout import DEFAULT_SECTION_TYPE, Page, Section, SectionType, SiteLayout, Theme
from .strings import slugify

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CorePage:
    """A page every storefront must have."""

    name: str
    path: str
    aliases: tuple[str, ...] = ()

    def matches(self, name: str, path: str) -> bool:
        slug = slugify(name)
        return path == self.path or slug == slugify(self.name) or slug in self.aliases


CORE_PAGES: tuple[CorePage, ...] = (
    CorePage("Home", "/", aliases=("home", "index")),
    CorePage("About", "/about", aliases=("about-us",)),
    CorePage("Products", "/products", aliases=("collection", "shop", "catalog", "store")),
    CorePage("Contact", "/contact", aliases=("contact-us",)),
)

DEFAULT_SITE_NAME = "My Store"


class LayoutNormalizer:
    """
    Validate and repair a layout document.

    Usage:
        normalizer = LayoutNormalizer(site_name="Acme")
        layout = normalizer.normalize(raw)
    """

    def __init__(self, *, site_name: str | None = None, ensure_core_pages: bool = True):
        self.site_name = (site_name or "").strip() or DEFAULT_SITE_NAME
        self.ensure_core_pages = ensure_core_pages

    def normalize(self, raw: Any) -> SiteLayout:
        """
        Normalize ``raw`` into a SiteLayout.

        Raises:
            LayoutError: when the input is absent, unparsable or unusable
        """
        try:
            document = self._parse(raw)
            return self._build(document)
        except LayoutError:
            raise
        except ValidationError as exc:
            raise LayoutError(
                f"layout failed validation: {exc.error_count()} error(s)",
                stage="validating",
                detail=str(exc),
            ) from exc
        except (TypeError, ValueError, KeyError, AttributeError, RecursionError) as exc:
            raise LayoutError(f"layout could not be normalized: {exc}", stage="validating") from exc

    # =========================================================================
    # Parsing
    # =========================================================================

    def _parse(self, raw: Any) -> dict[str, Any]:
        if raw is None:
            raise LayoutError("layout is missing", stage="validating")

        value = raw
        if isinstance(raw, bytes | bytearray):
            value = raw.decode("utf-8", errors="replace")
        if isinstance(value, str):
            if not value.strip():
                raise LayoutError("layout is empty", stage="validating")
            try:
                result = repair_json(value)
            except JSONRepairError as exc:
                raise LayoutError("unparsable", stage="validating", detail=exc.attempts) from exc
            if result.repaired:
                logger.info("Layout JSON needed repair: %s", [s.value for s in result.steps])
            value = result.value

        return self._coerce_document(value)

    def _coerce_document(self, value: Any) -> dict[str, Any]:
        """Bring the known document shapes into ``{pages: [...], theme: {...}}``."""
        if isinstance(value, list):
            return {"pages": [{"name": "Home", "sections": value}]}
        if not isinstance(value, dict):
            raise LayoutError(
                f"layout must be an object, got {type(value).__name__}", stage="validating"
            )

        document = copy.deepcopy(value)
        theme = document.get("theme")

        # AI output wraps the layout: {"theme": {...}, "layout": {...}}
        if "pages" not in document and "sections" not in document and "layout" in document:
            inner = document["layout"]
            document = self._coerce_document(inner)
            if theme is not None and "theme" not in document:
                document["theme"] = theme
            return document

        if "pages" in document:
            if not isinstance(document["pages"], list):
                raise LayoutError("'pages' must be a list", stage="validating")
            return document

        sections = document.get("sections")
        if sections is None:
            sections = []
        if not isinstance(sections, list):
            raise LayoutError("'sections' must be a list", stage="validating")
        return {"pages": [{"name": "Home", "sections": sections}], "theme": theme}

    # =========================================================================
    # Building
    # =========================================================================

    def _build(self, document: dict[str, Any]) -> SiteLayout:
        ids = _IdAllocator()
        raw_pages = [p for p in document["pages"] if isinstance(p, dict)]
        skipped = len(document["pages"]) - len(raw_pages)
        if skipped:
            logger.warning("Dropped %d page entries that were not objects", skipped)

        drafts: list[_PageDraft] = []
        used_paths: set[str] = set()
        for index, raw_page in enumerate(raw_pages):
            draft = self._draft_page(raw_page, index, ids, used_paths)
            drafts.append(draft)

        if self.ensure_core_pages:
            self._add_missing_core_pages(drafts, ids, used_paths)

        if not drafts:
            raise LayoutError("layout has no pages", stage="validating")

        navbar_template = _first_of_type(drafts, SectionType.NAVBAR) or self._default_navbar(
            drafts
        )
        footer_template = _first_of_type(drafts, SectionType.FOOTER) or self._default_footer(
            drafts
        )

        pages = [
            Page(
                name=d.name,
                path=d.path,
                description=d.description,
                sections=self._bracket(d, navbar_template, footer_template, ids),
            )
            for d in drafts
        ]
        return SiteLayout(pages=pages, theme=_coerce_theme(document.get("theme")))

    def _draft_page(
        self,
        raw_page: dict[str, Any],
        index: int,
        ids: _IdAllocator,
        used_paths: set[str],
    ) -> _PageDraft:
        name = _clean_text(raw_page.get("name")) or _clean_text(raw_page.get("title"))
        name = name or f"Page {index + 1}"

        path = _normalize_path(raw_page.get("path"), name)
        if raw_page.get("path") is None and slugify(name) in CORE_PAGES[0].aliases:
            path = "/"
        path = _unique_path(path, used_paths)

        raw_sections = raw_page.get("sections")
        if not isinstance(raw_sections, list):
            raw_sections = []
        sections = [
            self._normalize_section(raw, f"{path}#{pos}", ids)
            for pos, raw in enumerate(raw_sections)
        ]
        return _PageDraft(
            name=name,
            path=path,
            description=_clean_text(raw_page.get("description")),
            sections=sections,
        )

    def _normalize_section(self, raw: Any, position: str, ids: _IdAllocator) -> dict[str, Any]:
        if not isinstance(raw, dict):
            section: dict[str, Any] = {
                "type": DEFAULT_SECTION_TYPE,
                "heading": "Text Block",
                "content": "Content here",
            }
        else:
            section = dict(raw)

        section_type = section.get("type")
        if isinstance(section_type, str) and section_type.strip():
            section["type"] = section_type.strip().lower()
        else:
            section["type"] = DEFAULT_SECTION_TYPE

        variant = section.get("variant")
        if variant is not None and not isinstance(variant, str):
            section.pop("variant")

        section["id"] = ids.claim(section.get("id"), section, position)
        return section

    def _bracket(
        self,
        draft: _PageDraft,
        navbar_template: dict[str, Any],
        footer_template: dict[str, Any],
        ids: _IdAllocator,
    ) -> list[Section]:
        """Navbar first, footer last, each exactly once."""
        navbar = next((s for s in draft.sections if s["type"] == SectionType.NAVBAR), None)
        footer = next((s for s in draft.sections if s["type"] == SectionType.FOOTER), None)
        body = [
            s for s in draft.sections if s["type"] not in (SectionType.NAVBAR, SectionType.FOOTER)
        ]
        if navbar is None:
            navbar = ids.copy_section(navbar_template, f"{draft.path}#navbar")
        if footer is None:
            footer = ids.copy_section(footer_template, f"{draft.path}#footer")
        return [Section.model_validate(s) for s in [navbar, *body, footer]]

    # =========================================================================
    # Placeholders
    # =========================================================================

    def _add_missing_core_pages(
        self,
        drafts: list[_PageDraft],
        ids: _IdAllocator,
        used_paths: set[str],
    ) -> None:
        for core in CORE_PAGES:
            if any(core.matches(d.name, d.path) for d in drafts):
                continue
            path = _unique_path(core.path, used_paths)
            sections = [
                self._normalize_section(s, f"{path}#{pos}", ids)
                for pos, s in enumerate(self._placeholder_sections(core, drafts))
            ]
            draft = _PageDraft(name=core.name, path=path, description="", sections=sections)
            logger.debug("Synthesized missing core page %s", core.name)
            if core.path == "/":
                drafts.insert(0, draft)
            else:
                drafts.append(draft)

    def _placeholder_sections(self, core: CorePage, drafts: list[_PageDraft]) -> list[dict]:
        name = self.site_name
        if core.path == "/":
            return [
                {
                    "type": "hero",
                    "title": f"Welcome to {name}",
                    "subtitle": "Discover our latest products",
                    "buttonText": "Shop Now",
                    "buttonLink": {"type": "page", "pageName": "Products"},
                }
            ]
        if core.path == "/about":
            return [
                {
                    "type": "textblock",
                    "heading": f"About {name}",
                    "content": f"{name} is an independent shop dedicated to quality products "
                    "and friendly service.",
                }
            ]
        if core.path == "/products":
            existing = _first_of_type(drafts, SectionType.COLLECTION) or _first_of_type(
                drafts, SectionType.PRODUCTS
            )
            items = copy.deepcopy(existing.get("items", [])) if existing else []
            return [{"type": "collection", "title": "Our Products", "items": items}]
        return [
            {
                "type": "textblock",
                "heading": "Contact Us",
                "content": f"Questions about an order? Get in touch with the {name} team.",
            },
            {
                "type": "newsletter",
                "title": "Stay Updated",
                "subtitle": "Subscribe for news and offers",
                "buttonText": "Subscribe",
            },
        ]

    def _default_navbar(self, drafts: list[_PageDraft]) -> dict[str, Any]:
        return {
            "type": SectionType.NAVBAR.value,
            "logo": self.site_name,
            "links": [{"text": d.name, "type": "page", "pageName": d.name} for d in drafts],
        }

    def _default_footer(self, drafts: list[_PageDraft]) -> dict[str, Any]:
        return {
            "type": SectionType.FOOTER.value,
            "companyName": self.site_name,
            "tagline": "Thanks for shopping with us",
            "links": [{"text": d.name, "type": "page", "pageName": d.name} for d in drafts],
        }


# =============================================================================
# Helpers
# =============================================================================


@dataclass
class _PageDraft:
    name: str
    path: str
    description: str
    sections: list[dict[str, Any]]


class _IdAllocator:
    """Hands out document-unique section ids derived from section content."""

    def __init__(self) -> None:
        self._used: set[str] = set()

    def claim(self, wanted: Any, section: dict[str, Any], position: str) -> str:
        if isinstance(wanted, str | int) and not isinstance(wanted, bool):
            candidate = str(wanted).strip()
            if candidate and candidate not in self._used:
                self._used.add(candidate)
                return candidate
        return self._derive(section, position)

    def copy_section(self, template: dict[str, Any], position: str) -> dict[str, Any]:
        section = copy.deepcopy(template)
        section["id"] = self._derive(section, position)
        return section

    def _derive(self, section: dict[str, Any], position: str) -> str:
        content = {k: v for k, v in section.items() if k != "id"}
        payload = json.dumps(content, sort_keys=True, default=str) + position
        digest = hashlib.sha1(payload.encode("utf-8")).hexdigest()
        base = f"{section.get('type', 'section')}-{digest[:8]}"
        candidate = base
        n = 2
        while candidate in self._used:
            candidate = f"{base}-{n}"
            n += 1
        self._used.add(candidate)
        return candidate


def _first_of_type(drafts: list[_PageDraft], section_type: str) -> dict[str, Any] | None:
    for draft in drafts:
        for section in draft.sections:
            if section["type"] == section_type:
                return section
    return None


def _clean_text(value: Any) -> str:
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return ""


def _normalize_path(raw_path: Any, name: str) -> str:
    """Build ``/segment/segment`` from a given path, else from the page name."""
    if isinstance(raw_path, str) and raw_path.strip():
        segments = [slugify(s) for s in raw_path.strip().split("/")]
        segments = [s for s in segments if s]
        return "/" + "/".join(segments)
    slug = slugify(name)
    return f"/{slug}" if slug else "/page"


def _unique_path(path: str, used: set[str]) -> str:
    candidate = path
    n = 2
    while candidate in used:
        base = path.rstrip("/") or "/page"
        candidate = f"{base}-{n}"
        n += 1
    used.add(candidate)
    return candidate


def _coerce_theme(raw: Any) -> Theme:
    if not isinstance(raw, dict):
        return Theme()
    known = {k: v for k, v in raw.items() if isinstance(v, str) and v.strip()}
    try:
        return Theme.model_validate(known)
    except ValidationError:
        logger.warning("Ignoring invalid theme")
        return Theme()


def normalize_layout(
    raw: Any, *, site_name: str | None = None, ensure_core_pages: bool = True
) -> SiteLayout:
    """Convenience wrapper around LayoutNormalizer.normalize."""
    return LayoutNormalizer(site_name=site_name, ensure_core_pages=ensure_core_pages).normalize(raw)
