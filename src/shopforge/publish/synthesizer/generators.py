"""
Generators that write the storefront source tree.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any

from shopforge.core.layout import Page

from .base import Generator, GeneratorResult, js_literal
from .links import LinkResolver
from .templates import (
    FALLBACK_COMPONENT,
    FALLBACK_TEMPLATE,
    RENDERER_NAMES,
    app_css,
    renderer_source,
    section_renderer_source,
)

logger = logging.getLogger(__name__)


def page_component_names(pages: list[Page]) -> list[str]:
    """
    PascalCase component names for pages, unique and valid as identifiers.

    Examples:
        "Home" -> "HomePage", "about us" -> "AboutUsPage", "404" -> "Page404Page"
    """
    names: list[str] = []
    used: set[str] = set()
    for page in pages:
        words = re.findall(r"[A-Za-z0-9]+", page.name) or ["Untitled"]
        base = "".join(w[:1].upper() + w[1:] for w in words)
        if base[0].isdigit():
            base = f"Page{base}"
        candidate = f"{base}Page"
        n = 2
        while candidate in used:
            candidate = f"{base}{n}Page"
            n += 1
        used.add(candidate)
        names.append(candidate)
    return names


class RenderersGenerator(Generator):
    """One renderer per distinct section type, plus the fallback and dispatcher."""

    def generate(self, artifacts: Mapping[str, Any]) -> GeneratorResult:
        result = GeneratorResult()
        components: list[str] = []
        unknown: list[str] = []

        for section_type in self.layout.section_types():
            component = RENDERER_NAMES.get(section_type)
            if component is None:
                unknown.append(section_type)
                continue
            if component in components:
                continue
            components.append(component)
            self._write(
                result, f"src/components/sections/{component}.jsx", renderer_source(component)
            )

        self._write(
            result, f"src/components/sections/{FALLBACK_COMPONENT}.jsx", FALLBACK_TEMPLATE
        )
        self._write(
            result, "src/components/SectionRenderer.jsx", section_renderer_source(components)
        )

        if unknown:
            result.warnings.append(f"unknown section types rendered by fallback: {', '.join(unknown)}")
            logger.warning("Section types without a renderer: %s", unknown)

        result.artifacts["renderers"] = components
        return result


class PagesGenerator(Generator):
    """One routed page component per layout page, sections embedded as data."""

    def generate(self, artifacts: Mapping[str, Any]) -> GeneratorResult:
        result = GeneratorResult()
        resolver = LinkResolver(self.layout)
        names = page_component_names(self.layout.pages)
        routes: list[tuple[str, str]] = []

        for page, component in zip(self.layout.pages, names, strict=True):
            sections = [resolver.rewrite_section(s.to_document()) for s in page.sections]
            source = f"""import SectionRenderer from '../components/SectionRenderer.jsx'

const sections = {js_literal(sections)}

export default function {component}() {{
  return (
    <div className="page">
      {{sections.map((section) => (
        <SectionRenderer key={{section.id}} section={{section}} />
      ))}}
    </div>
  )
}}
"""
            self._write(result, f"src/pages/{component}.jsx", source)
            routes.append((page.path, component))

        result.artifacts["routes"] = routes
        return result


class AppGenerator(Generator):
    """Hash router over the routes ``PagesGenerator`` published, and the stylesheet."""

    def generate(self, artifacts: Mapping[str, Any]) -> GeneratorResult:
        result = GeneratorResult()
        page_routes: list[tuple[str, str]] = artifacts["routes"]
        home = self.layout.home.path

        imports = "\n".join(f"import {name} from './pages/{name}.jsx'" for _, name in page_routes)
        routes = "\n".join(
            f"        <Route path={js_literal(path)} element={{<{name} />}} />"
            for path, name in page_routes
        )
        source = f"""import {{ HashRouter, Navigate, Route, Routes }} from 'react-router-dom'
import './App.css'
{imports}

export default function App() {{
  return (
    <HashRouter>
      <Routes>
{routes}
        <Route path="*" element={{<Navigate to={js_literal(home)} replace />}} />
      </Routes>
    </HashRouter>
  )
}}
"""
        self._write(result, "src/App.jsx", source)
        self._write(result, "src/App.css", app_css(self.layout.theme))
        return result
