"""Helpers shared by test modules: a fake Node toolchain and small utilities."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

from shopforge.publish.config import PublishConfig

# Stands in for `npm run build`: checks that sources were synthesized and
# writes a small dist/ tree, including a file that must never be uploaded.
BUILD_SCRIPT = """
import pathlib
assert pathlib.Path("src/App.jsx").exists(), "App.jsx missing"
out = pathlib.Path("dist")
(out / "assets").mkdir(parents=True, exist_ok=True)
(out / "index.html").write_text('<!doctype html><div id="root"></div>')
(out / "assets" / "app.js").write_text("console.log('store')")
(out / "favicon.png").write_bytes(bytes([137, 80, 78, 71, 0, 255]))
(out / "package.json").write_text("{}")
"""

# Same output without checking for synthesized sources.
PLAIN_BUILD_SCRIPT = BUILD_SCRIPT.replace(
    'assert pathlib.Path("src/App.jsx").exists(), "App.jsx missing"\n', ""
)


def python_command(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def make_publish_config(root: Path, **overrides: Any) -> PublishConfig:
    values: dict[str, Any] = {
        "workspace_root": str(root / "builds"),
        "install_command": python_command("pass"),
        "build_command": python_command(BUILD_SCRIPT),
        "build_timeout": 60,
    }
    values.update(overrides)
    return PublishConfig(**values)


async def no_sleep(_delay: float) -> None:
    return None


class RecordingSleep:
    """Async sleep stand-in that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def workspaces_left(root: Path) -> list[Path]:
    """Workspace directories still on disk under ``root``."""
    if not root.exists():
        return []
    return list(root.iterdir())
