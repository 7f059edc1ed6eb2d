"""
Component synthesis: render a canonical SiteLayout into React sources.

Output inside the workspace:
    src/App.jsx                         hash router, one route per page
    src/App.css                         theme custom properties and styles
    src/pages/<Name>Page.jsx            one per page, sections embedded as data
    src/components/SectionRenderer.jsx  type -> renderer table with fallback
    src/components/sections/*.jsx       one renderer per distinct section type

Synthesis is deterministic: the same layout always produces byte-identical
files.
"""

from __future__ import annotations

import logging
from pathlib import Path

from shopforge.core.errors import ScaffoldError
from shopforge.core.layout import SiteLayout

from .base import CompositeGenerator, Generator, GeneratorResult
from .generators import AppGenerator, PagesGenerator, RenderersGenerator
from .links import LinkResolver

logger = logging.getLogger(__name__)


class ComponentSynthesizer(CompositeGenerator):
    """
    Write all generated sources for a layout.

    Usage:
        result = ComponentSynthesizer(layout, workspace.root).generate()
    """

    def get_generators(self) -> list[Generator]:
        return [
            RenderersGenerator(self.layout, self.output_dir),
            PagesGenerator(self.layout, self.output_dir),
            AppGenerator(self.layout, self.output_dir),
        ]


def synthesize(layout: SiteLayout, root: Path) -> GeneratorResult:
    """
    Synthesize sources into ``root``.

    Raises:
        ScaffoldError: when the files cannot be written
    """
    try:
        result = ComponentSynthesizer(layout, root).generate()
    except OSError as e:
        raise ScaffoldError(f"could not write generated sources: {e}", stage="synthesizing") from e

    logger.info(
        "Synthesized %d files for %d pages (%d renderers)",
        len(result.files_created),
        len(layout.pages),
        len(result.artifacts["renderers"]),
    )
    return result


__all__ = [
    "ComponentSynthesizer",
    "GeneratorResult",
    "LinkResolver",
    "synthesize",
]
