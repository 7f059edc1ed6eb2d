"""
Generator plumbing for source synthesis.

A synthesizer is a chain of generators over one canonical layout. Each
generator writes its part of the workspace and may publish artifacts (the
route table, the renderer list) that later generators in the chain read.
Filesystem failures propagate as OSError; the caller turns them into a
ScaffoldError.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from shopforge.core.layout import SiteLayout


@dataclass
class GeneratorResult:
    """
    Files written by one or more generators.

    Attributes:
        files_created: Written paths, in write order
        artifacts: Values later generators read (see ``CompositeGenerator``)
        warnings: Non-fatal problems worth showing to the store owner
    """

    files_created: list[Path] = field(default_factory=list)
    artifacts: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)

    def merge(self, other: GeneratorResult) -> None:
        self.files_created.extend(other.files_created)
        self.artifacts.update(other.artifacts)
        self.warnings.extend(other.warnings)


def ensure_dir(path: Path) -> None:
    """Ensure a directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)


def write_file(path: Path, content: str) -> None:
    """Write text as UTF-8, creating parent directories."""
    ensure_dir(path.parent)
    path.write_text(content, encoding="utf-8")


def js_literal(value: Any) -> str:
    """
    Render a JSON-compatible value as a JavaScript expression.

    ``<`` is escaped so that embedded text can never close a script tag.
    """
    text = json.dumps(value, indent=2, ensure_ascii=False, sort_keys=False)
    return text.replace("<", "\\u003c").replace("\u2028", "\\u2028").replace("\u2029", "\\u2029")


class Generator(ABC):
    """Writes part of the synthesized source tree for a layout."""

    def __init__(self, layout: SiteLayout, output_dir: Path):
        self.layout = layout
        self.output_dir = output_dir

    @abstractmethod
    def generate(self, artifacts: Mapping[str, Any]) -> GeneratorResult:
        """
        Write this generator's files.

        Args:
            artifacts: Artifacts published by the generators that ran before
        """

    def _write(self, result: GeneratorResult, relative: str, content: str) -> Path:
        path = self.output_dir / relative
        write_file(path, content)
        result.files_created.append(path)
        return path


class CompositeGenerator(Generator):
    """Runs sub-generators in order, feeding each the artifacts so far."""

    @abstractmethod
    def get_generators(self) -> list[Generator]:
        """Sub-generators, in dependency order."""

    def generate(self, artifacts: Mapping[str, Any] | None = None) -> GeneratorResult:
        combined = GeneratorResult(artifacts=dict(artifacts or {}))
        for generator in self.get_generators():
            combined.merge(generator.generate(combined.artifacts))
        return combined
