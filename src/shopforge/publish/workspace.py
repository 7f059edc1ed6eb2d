"""
Build workspaces: creation (scaffolding) and guaranteed removal.

Every publish attempt gets its own directory under the workspace root,
named from the store id plus a random per-attempt suffix, so concurrent
attempts never share files even if the per-store lock is bypassed.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import stat
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path

from shopforge.core.errors import ScaffoldError
from shopforge.core.strings import sanitize_package_name

from .synthesizer.base import ensure_dir, write_file

logger = logging.getLogger(__name__)

VITE_VERSION = "^6.0.1"
REACT_VERSION = "^18.3.1"
ROUTER_VERSION = "^6.26.2"


@dataclass(frozen=True)
class BuildWorkspace:
    """An ephemeral project directory owned by one publish attempt."""

    root: Path
    store_id: str
    output_dir_name: str = "dist"

    @property
    def src_dir(self) -> Path:
        return self.root / "src"

    @property
    def components_dir(self) -> Path:
        return self.root / "src" / "components"

    @property
    def output_dir(self) -> Path:
        return self.root / self.output_dir_name

    def exists(self) -> bool:
        return self.root.exists()


# =============================================================================
# Scaffolding
# =============================================================================


class ProjectScaffolder:
    """
    Create a minimal Vite + React project skeleton.

    Usage:
        scaffolder = ProjectScaffolder(Path("/tmp/builds"))
        workspace = scaffolder.scaffold("store-1", "Acme Goods")
    """

    def __init__(self, workspace_root: Path, output_dir_name: str = "dist"):
        self.workspace_root = workspace_root
        self.output_dir_name = output_dir_name

    def scaffold(self, store_id: str, store_name: str) -> BuildWorkspace:
        """
        Create the workspace and write the project skeleton.

        Raises:
            ScaffoldError: on any filesystem failure. A partially written
                workspace is removed before the error propagates.
        """
        safe_id = re.sub(r"[^A-Za-z0-9_-]", "-", store_id)[:40] or "store"
        try:
            ensure_dir(self.workspace_root)
            root = Path(tempfile.mkdtemp(prefix=f"{safe_id}-", dir=self.workspace_root))
        except OSError as e:
            raise ScaffoldError(
                f"could not create workspace under {self.workspace_root}: {e}",
                stage="scaffolding",
            ) from e

        workspace = BuildWorkspace(
            root=root, store_id=store_id, output_dir_name=self.output_dir_name
        )
        try:
            self._write_skeleton(workspace, store_name or "My Store")
        except OSError as e:
            WorkspaceJanitor().cleanup(workspace)
            raise ScaffoldError(
                f"could not write project skeleton: {e}", stage="scaffolding"
            ) from e

        logger.info("Scaffolded workspace %s for store %s", root, store_id)
        return workspace

    def _write_skeleton(self, workspace: BuildWorkspace, store_name: str) -> None:
        root = workspace.root
        ensure_dir(workspace.components_dir)
        ensure_dir(root / "public")

        write_file(root / "package.json", self._package_json(store_name))
        write_file(root / "vite.config.js", self._vite_config())
        write_file(root / "index.html", self._index_html(store_name))
        write_file(workspace.src_dir / "main.jsx", _MAIN_JSX)
        write_file(workspace.src_dir / "index.css", _INDEX_CSS)
        write_file(root / "public" / "favicon.svg", _FAVICON_SVG)

    def _package_json(self, store_name: str) -> str:
        package = {
            "name": sanitize_package_name(store_name),
            "private": True,
            "version": "0.0.0",
            "type": "module",
            "scripts": {
                "dev": "vite",
                "build": "vite build",
                "preview": "vite preview",
            },
            "dependencies": {
                "react": REACT_VERSION,
                "react-dom": REACT_VERSION,
                "react-router-dom": ROUTER_VERSION,
            },
            "devDependencies": {
                "@vitejs/plugin-react": "^4.3.3",
                "vite": VITE_VERSION,
            },
        }
        return json.dumps(package, indent=2) + "\n"

    def _vite_config(self) -> str:
        return f"""import {{ defineConfig }} from 'vite'
import react from '@vitejs/plugin-react'

export default defineConfig({{
  plugins: [react()],
  build: {{
    outDir: '{self.output_dir_name}'
  }}
}})
"""

    def _index_html(self, store_name: str) -> str:
        title = (
            store_name.replace("&", "&amp;")
            .replace("<", "&lt;")
            .replace(">", "&gt;")
            .replace('"', "&quot;")
        )
        return f"""<!doctype html>
<html lang="en">
  <head>
    <meta charset="UTF-8" />
    <link rel="icon" type="image/svg+xml" href="/favicon.svg" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <meta name="description" content="{title} - Online Store" />
    <title>{title}</title>
  </head>
  <body>
    <div id="root"></div>
    <script type="module" src="/src/main.jsx"></script>
  </body>
</html>
"""


_MAIN_JSX = """import { StrictMode } from 'react'
import { createRoot } from 'react-dom/client'
import App from './App.jsx'
import './index.css'

createRoot(document.getElementById('root')).render(
  <StrictMode>
    <App />
  </StrictMode>,
)
"""

_INDEX_CSS = """* {
  margin: 0;
  padding: 0;
  box-sizing: border-box;
}

body {
  font-family: var(--font-body, -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif);
  -webkit-font-smoothing: antialiased;
  line-height: 1.5;
  color: #333;
}

#root {
  min-height: 100vh;
}

.container {
  max-width: 1200px;
  margin: 0 auto;
  padding: 0 20px;
}
"""

_FAVICON_SVG = (
    '<svg xmlns="http://www.w3.org/2000/svg" viewBox="0 0 32 32">'
    '<rect width="32" height="32" rx="6" fill="#3b82f6"/>'
    '<path d="M9 12h14l-2 11H11z" fill="#fff"/></svg>\n'
)


# =============================================================================
# Cleanup
# =============================================================================


def _rmtree(root: Path) -> None:
    """Remove ``root``, clearing read-only bits (npm caches) and retrying once."""

    def make_writable_and_retry(func, path, exc) -> None:  # type: ignore[no-untyped-def]
        # Only paths inside the workspace are touched.
        targets = [path]
        parent = os.path.dirname(path)
        if Path(parent).is_relative_to(root):
            targets.insert(0, parent)
        try:
            for target in targets:
                os.chmod(target, stat.S_IWRITE | stat.S_IREAD | stat.S_IEXEC)
            func(path)
        except FileNotFoundError:
            pass

    if sys.version_info >= (3, 12):
        shutil.rmtree(root, onexc=make_writable_and_retry)
    else:
        shutil.rmtree(root, onerror=make_writable_and_retry)


class WorkspaceJanitor:
    """Remove build workspaces. Idempotent: a missing workspace is fine."""

    def cleanup(self, workspace: BuildWorkspace | Path | None) -> bool:
        """
        Delete the workspace recursively.

        Never raises, so it is safe to call from a ``finally`` block without
        masking the original error.

        Returns:
            True if nothing is left on disk afterwards
        """
        if workspace is None:
            return True
        root = workspace.root if isinstance(workspace, BuildWorkspace) else workspace
        if not root.exists():
            return True

        try:
            _rmtree(root)
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Failed to remove workspace %s: %s", root, e)

        removed = not root.exists()
        if removed:
            logger.debug("Removed workspace %s", root)
        return removed
