"""Tests for layout normalization and the canonical layout model."""

from __future__ import annotations

import json
from typing import Any

import pytest
from pydantic import ValidationError

from shopforge.core.errors import LayoutError
from shopforge.core.layout import Page, Section, SiteLayout
from shopforge.core.normalizer import CORE_PAGES, LayoutNormalizer, normalize_layout


def _section_types(page: Page) -> list[str]:
    return [s.type for s in page.sections]


def _all_ids(layout: SiteLayout) -> list[str]:
    return [s.id for p in layout.pages for s in p.sections]


class TestInvalidInput:
    """Tests for inputs that cannot become a layout."""

    def test_missing_layout(self) -> None:
        """Test None is rejected before any work happens."""
        with pytest.raises(LayoutError, match="missing") as exc_info:
            normalize_layout(None)
        assert exc_info.value.stage == "validating"

    def test_empty_string(self) -> None:
        """Test blank text is rejected."""
        with pytest.raises(LayoutError, match="empty"):
            normalize_layout("   ")

    def test_unparsable_text(self) -> None:
        """Test text that no repair step can parse."""
        with pytest.raises(LayoutError, match="unparsable") as exc_info:
            normalize_layout("not json at all")
        assert len(exc_info.value.detail) == 4

    def test_scalar_document(self) -> None:
        """Test a JSON scalar is not a layout."""
        with pytest.raises(LayoutError, match="must be an object"):
            normalize_layout(42)

    def test_pages_not_a_list(self) -> None:
        """Test a malformed pages field is rejected."""
        with pytest.raises(LayoutError, match="'pages' must be a list"):
            normalize_layout({"pages": "Home"})

    def test_no_pages_without_core_pages(self) -> None:
        """Test an empty page list fails when placeholders are disabled."""
        with pytest.raises(LayoutError, match="no pages"):
            normalize_layout({"pages": []}, ensure_core_pages=False)


class TestTruncatedOutput:
    """Tests for repairing generator output end to end."""

    def test_truncated_fenced_layout(self) -> None:
        """Test a truncated fenced layout yields Home with navbar, hero, footer."""
        text = '```json\n{"pages":[{"name":"Home","sections":[{"type":"hero","title":"Hi"},'
        layout = normalize_layout(text)

        home = layout.page_by_path("/")
        assert home is not None
        assert home.name == "Home"
        assert _section_types(home) == ["navbar", "hero", "footer"]
        assert home.sections[1].get("title") == "Hi"

    def test_trailing_comma_and_mismatched_closer(self) -> None:
        """Test a comma before a closer that skips the open section object is repaired."""
        text = '{"pages":[{"name":"Home","sections":[{"type":"hero","title":"Hi",]}]}'
        layout = normalize_layout(text, ensure_core_pages=False)

        assert [page.name for page in layout.pages] == ["Home"]
        home = layout.pages[0]
        assert home.sections[0].type == "navbar"
        assert home.sections[-1].type == "footer"
        heroes = [s for s in home.sections if s.type == "hero"]
        assert len(heroes) == 1
        assert heroes[0].get("title") == "Hi"

    def test_bytes_input(self) -> None:
        """Test raw bytes are decoded before parsing."""
        layout = normalize_layout(b'{"sections": [{"type": "hero"}]}')
        assert _section_types(layout.home) == ["navbar", "hero", "footer"]


class TestDocumentShapes:
    """Tests for coercing the accepted document shapes."""

    def test_empty_object_gets_core_pages(self) -> None:
        """Test an empty document becomes the four core pages."""
        layout = normalize_layout({})
        assert [p.path for p in layout.pages] == ["/", "/about", "/products", "/contact"]
        for page in layout.pages:
            assert _section_types(page)[0] == "navbar"
            assert _section_types(page)[-1] == "footer"

    def test_bare_section_array(self) -> None:
        """Test a list of sections becomes a Home page."""
        layout = normalize_layout(
            [{"type": "hero", "title": "A"}, {"type": "cta"}], ensure_core_pages=False
        )
        assert len(layout.pages) == 1
        assert layout.pages[0].path == "/"
        assert _section_types(layout.pages[0]) == ["navbar", "hero", "cta", "footer"]

    def test_sections_object(self) -> None:
        """Test a single-page {sections} document."""
        layout = normalize_layout({"sections": [{"type": "gallery"}]}, ensure_core_pages=False)
        assert _section_types(layout.home) == ["navbar", "gallery", "footer"]

    def test_wrapped_layout_keeps_theme(self) -> None:
        """Test a {theme, layout} wrapper is unwrapped."""
        layout = normalize_layout(
            {
                "theme": {"primaryColor": "#ff0000"},
                "layout": {"pages": [{"name": "Home", "sections": []}]},
            }
        )
        assert layout.theme.primary_color == "#ff0000"
        assert layout.home.name == "Home"

    def test_non_object_pages_dropped(self) -> None:
        """Test page entries that are not objects are skipped."""
        layout = normalize_layout(
            {"pages": ["junk", {"name": "Home", "sections": []}]}, ensure_core_pages=False
        )
        assert [p.name for p in layout.pages] == ["Home"]


class TestPages:
    """Tests for page names and paths."""

    def test_path_from_name(self) -> None:
        """Test paths are derived from page names."""
        layout = normalize_layout({"pages": [{"name": "Our Story", "sections": []}]})
        assert layout.page_by_name("Our Story").path == "/our-story"

    def test_explicit_path_cleaned(self) -> None:
        """Test given paths are slugified per segment."""
        layout = normalize_layout(
            {"pages": [{"name": "FAQ", "path": "help/Common Questions/", "sections": []}]}
        )
        assert layout.page_by_name("FAQ").path == "/help/common-questions"

    def test_duplicate_paths_made_unique(self) -> None:
        """Test colliding paths get numeric suffixes."""
        layout = normalize_layout(
            {
                "pages": [
                    {"name": "Sale", "sections": []},
                    {"name": "Sale", "sections": []},
                    {"name": "Sale", "sections": []},
                ]
            },
            ensure_core_pages=False,
        )
        assert [p.path for p in layout.pages] == ["/sale", "/sale-2", "/sale-3"]

    def test_name_fallbacks(self) -> None:
        """Test title is used as a name, then a positional name."""
        layout = normalize_layout(
            {"pages": [{"title": "Lookbook", "sections": []}, {"sections": []}]},
            ensure_core_pages=False,
        )
        assert [p.name for p in layout.pages] == ["Lookbook", "Page 2"]

    def test_index_page_is_root(self) -> None:
        """Test a page called Index without a path is the root page."""
        layout = normalize_layout({"pages": [{"name": "Index", "sections": []}]})
        assert layout.home.name == "Index"
        assert [p.path for p in layout.pages].count("/") == 1


class TestCorePages:
    """Tests for placeholder core pages."""

    def test_existing_core_pages_not_duplicated(self) -> None:
        """Test a Shop page satisfies the Products core page."""
        layout = normalize_layout(
            {
                "pages": [
                    {"name": "Home", "sections": []},
                    {"name": "Shop", "sections": []},
                    {"name": "About Us", "sections": []},
                    {"name": "Contact", "sections": []},
                ]
            }
        )
        assert [p.name for p in layout.pages] == ["Home", "Shop", "About Us", "Contact"]

    def test_home_inserted_first(self) -> None:
        """Test a missing Home page is placed before the others."""
        layout = normalize_layout({"pages": [{"name": "About", "sections": []}]}, site_name="Acme")
        assert layout.pages[0].path == "/"
        hero = layout.pages[0].body_sections[0]
        assert hero.type == "hero"
        assert hero.get("title") == "Welcome to Acme"

    def test_products_placeholder_copies_items(self) -> None:
        """Test the Products placeholder reuses items from an existing collection."""
        items = [{"name": "Mug", "price": "12"}]
        layout = normalize_layout(
            {"pages": [{"name": "Home", "sections": [{"type": "collection", "items": items}]}]}
        )
        products = layout.page_by_path("/products")
        assert products is not None
        assert products.body_sections[0].get("items") == items

    def test_contact_has_newsletter(self) -> None:
        """Test the Contact placeholder carries a newsletter section."""
        layout = normalize_layout({})
        contact = layout.page_by_path("/contact")
        assert _section_types(contact) == ["navbar", "textblock", "newsletter", "footer"]

    def test_core_page_catalog(self) -> None:
        """Test the core page list."""
        assert [c.path for c in CORE_PAGES] == ["/", "/about", "/products", "/contact"]


class TestSections:
    """Tests for section normalization."""

    def test_navbar_and_footer_bracket_every_page(self) -> None:
        """Test every page has exactly one navbar first and one footer last."""
        layout = normalize_layout(
            {
                "pages": [
                    {
                        "name": "Home",
                        "sections": [
                            {"type": "hero"},
                            {"type": "navbar", "logo": "First"},
                            {"type": "footer"},
                            {"type": "navbar", "logo": "Second"},
                            {"type": "cta"},
                        ],
                    },
                    {"name": "Blog", "sections": [{"type": "textblock"}]},
                ]
            }
        )
        home = layout.home
        assert _section_types(home) == ["navbar", "hero", "cta", "footer"]
        assert home.sections[0].get("logo") == "First"
        blog = layout.page_by_name("Blog")
        assert blog.sections[0].get("logo") == "First"

    def test_default_navbar_links_every_page(self) -> None:
        """Test a generated navbar links to all pages."""
        layout = normalize_layout({}, site_name="Acme")
        navbar = layout.home.sections[0]
        assert navbar.get("logo") == "Acme"
        assert [link["pageName"] for link in navbar.get("links")] == [
            "Home",
            "About",
            "Products",
            "Contact",
        ]

    def test_type_defaults_and_case(self) -> None:
        """Test missing types default to textblock and types are lowercased."""
        layout = normalize_layout(
            {"sections": [{"title": "x"}, {"type": " HERO "}, "loose text"]},
            ensure_core_pages=False,
        )
        body = layout.home.body_sections
        assert [s.type for s in body] == ["textblock", "hero", "textblock"]
        assert body[2].get("heading") == "Text Block"

    def test_unknown_type_preserved(self) -> None:
        """Test unknown section types pass through for the fallback renderer."""
        layout = normalize_layout({"sections": [{"type": "Carousel"}]}, ensure_core_pages=False)
        section = layout.home.body_sections[0]
        assert section.type == "carousel"
        assert section.is_known is False

    def test_invalid_variant_dropped(self) -> None:
        """Test a non-string variant is removed."""
        layout = normalize_layout(
            {"sections": [{"type": "hero", "variant": 3}]}, ensure_core_pages=False
        )
        assert layout.home.body_sections[0].variant is None

    def test_ids_unique(self) -> None:
        """Test duplicate and missing ids are replaced with unique ones."""
        layout = normalize_layout(
            {
                "pages": [
                    {"name": "Home", "sections": [{"id": "x", "type": "hero"}, {"id": "x"}]},
                    {"name": "Blog", "sections": [{"id": "x", "type": "cta"}, {"type": "cta"}]},
                ]
            }
        )
        ids = _all_ids(layout)
        assert len(ids) == len(set(ids))
        assert layout.home.body_sections[0].id == "x"

    def test_extra_fields_pass_through(self) -> None:
        """Test type-specific fields are kept untouched."""
        layout = normalize_layout(
            {"sections": [{"type": "pricing", "plans": [{"name": "Pro", "price": 9}]}]},
            ensure_core_pages=False,
        )
        assert layout.home.body_sections[0].extra_fields == {
            "plans": [{"name": "Pro", "price": 9}]
        }


class TestDeterminism:
    """Tests for repeatable output."""

    def test_same_input_same_layout(self, sample_layout: dict[str, Any]) -> None:
        """Test normalizing twice yields identical documents, ids included."""
        first = normalize_layout(sample_layout, site_name="Acme").to_document()
        second = normalize_layout(json.dumps(sample_layout), site_name="Acme").to_document()
        assert first == second

    def test_input_not_mutated(self, sample_layout: dict[str, Any]) -> None:
        """Test the caller's document is left alone."""
        before = json.dumps(sample_layout, sort_keys=True)
        normalize_layout(sample_layout)
        assert json.dumps(sample_layout, sort_keys=True) == before


class TestTheme:
    """Tests for theme coercion."""

    def test_defaults(self) -> None:
        """Test a missing theme falls back to defaults."""
        layout = normalize_layout({})
        assert layout.theme.primary_color == "#3b82f6"

    def test_non_string_values_ignored(self) -> None:
        """Test junk theme values are dropped."""
        layout = normalize_layout({"theme": {"primaryColor": 7, "bannerUrl": "https://x.io/b.png"}})
        assert layout.theme.primary_color == "#3b82f6"
        assert layout.theme.banner_url == "https://x.io/b.png"


class TestLayoutModel:
    """Tests for the structural validators on the layout model."""

    def _section(self, sid: str, stype: str) -> Section:
        return Section(id=sid, type=stype)

    def test_page_requires_navbar_first(self) -> None:
        """Test a page must start with a navbar."""
        with pytest.raises(ValidationError):
            Page(name="Home", path="/", sections=[self._section("f", "footer")])

    def test_page_path_must_be_absolute(self) -> None:
        """Test page paths start with a slash."""
        with pytest.raises(ValidationError):
            Page(
                name="Home",
                path="home",
                sections=[self._section("n", "navbar"), self._section("f", "footer")],
            )

    def test_layout_rejects_duplicate_ids(self) -> None:
        """Test section ids must be unique across pages."""
        page_a = Page(
            name="A", path="/a", sections=[self._section("n", "navbar"), self._section("f", "footer")]
        )
        page_b = Page(
            name="B", path="/b", sections=[self._section("n", "navbar"), self._section("g", "footer")]
        )
        with pytest.raises(ValidationError):
            SiteLayout(pages=[page_a, page_b])

    def test_summary(self) -> None:
        """Test summary reports structure without content."""
        summary = LayoutNormalizer().normalize({}).summary()
        assert summary["pages"] == 4
        assert summary["sections"]["/contact"] == 4
        assert summary["sectionTypes"][0] == "navbar"
