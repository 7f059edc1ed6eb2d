"""
Build runner and asset bundle collection.

The toolchain runs in two external steps inside the workspace (dependency
install, then compile/bundle). Each step is bounded by the build timeout and
by whatever remains of the publish deadline; on expiry the process is killed
so no orphaned toolchain keeps running after the workspace is removed.
"""

from __future__ import annotations

import asyncio
import base64
import logging
import os
import time
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import Any

from shopforge.core.errors import BuildError, PublishTimeoutError

from .backoff import Deadline
from .config import PublishConfig
from .workspace import BuildWorkspace

logger = logging.getLogger(__name__)

# Never served: manifests, framework config and source trees
DENIED_FILE_NAMES = frozenset(
    {
        "package.json",
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "vite.config.js",
        "vite.config.ts",
    }
)
DENIED_DIR_NAMES = frozenset({"node_modules", ".git", "src", "public"})

TEXT_EXTENSIONS = frozenset(
    {
        ".html",
        ".htm",
        ".css",
        ".js",
        ".mjs",
        ".cjs",
        ".json",
        ".map",
        ".txt",
        ".md",
        ".svg",
        ".xml",
        ".csv",
        ".webmanifest",
    }
)


def is_denied(relative: PurePosixPath) -> bool:
    """Whether a bundle-relative path is excluded from upload."""
    if relative.name in DENIED_FILE_NAMES:
        return True
    return any(part in DENIED_DIR_NAMES for part in relative.parts[:-1])


# =============================================================================
# Asset bundle
# =============================================================================


@dataclass(frozen=True)
class AssetFile:
    """One file of the bundle, addressed by its POSIX path relative to the bundle root."""

    path: str
    content: bytes

    @property
    def is_text(self) -> bool:
        return PurePosixPath(self.path).suffix.lower() in TEXT_EXTENSIONS

    @property
    def encoding(self) -> str:
        if self.is_text:
            try:
                self.content.decode("utf-8")
            except UnicodeDecodeError:
                return "base64"
            return "utf-8"
        return "base64"

    def to_upload(self) -> dict[str, Any]:
        """Upload entry: ``{file, data, encoding}``."""
        if self.encoding == "utf-8":
            data = self.content.decode("utf-8")
        else:
            data = base64.b64encode(self.content).decode("ascii")
        return {"file": self.path, "data": data, "encoding": self.encoding}


@dataclass(frozen=True)
class AssetBundle:
    """The complete, filtered output of a build."""

    files: tuple[AssetFile, ...]

    @classmethod
    def from_directory(cls, root: Path) -> AssetBundle:
        """Collect every non-denied file below ``root`` in sorted path order."""
        collected: list[AssetFile] = []
        for path in sorted(p for p in root.rglob("*") if p.is_file()):
            relative = PurePosixPath(path.relative_to(root).as_posix())
            if is_denied(relative):
                continue
            collected.append(AssetFile(path=str(relative), content=path.read_bytes()))
        return cls(files=tuple(collected))

    def __len__(self) -> int:
        return len(self.files)

    def __iter__(self) -> Iterator[AssetFile]:
        return iter(self.files)

    @property
    def paths(self) -> list[str]:
        return [f.path for f in self.files]

    @property
    def total_bytes(self) -> int:
        return sum(len(f.content) for f in self.files)

    def upload_files(self) -> list[dict[str, Any]]:
        return [f.to_upload() for f in self.files]


# =============================================================================
# Runner
# =============================================================================


def _tail(output: bytes, limit: int) -> str:
    text = output.decode("utf-8", errors="replace").strip()
    if limit and len(text) > limit:
        return text[-limit:]
    return text


async def _kill(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        return
    await proc.wait()


class BuildRunner:
    """
    Run install and build inside a workspace and collect the output.

    Usage:
        runner = BuildRunner(PublishConfig())
        bundle = await runner.run(workspace, deadline)
    """

    def __init__(self, config: PublishConfig, env: dict[str, str] | None = None):
        self.config = config
        self.env = env

    async def run(self, workspace: BuildWorkspace, deadline: Deadline | None = None) -> AssetBundle:
        """
        Build the workspace.

        Raises:
            BuildError: a step failed, timed out, or produced no output
            PublishTimeoutError: the publish deadline expired during the build
        """
        await self._run_step("install", self.config.install_command, workspace, deadline)
        await self._run_step("build", self.config.build_command, workspace, deadline)

        output = workspace.output_dir
        if not output.is_dir():
            raise BuildError(
                f"build finished without producing {self.config.output_dir}/", stage="building"
            )
        bundle = AssetBundle.from_directory(output)
        if not bundle:
            raise BuildError("build output contains no servable files", stage="building")

        logger.info(
            "Collected %d assets (%d bytes) for store %s",
            len(bundle),
            bundle.total_bytes,
            workspace.store_id,
        )
        return bundle

    async def _run_step(
        self,
        name: str,
        command: list[str],
        workspace: BuildWorkspace,
        deadline: Deadline | None,
    ) -> None:
        timeout = self.config.build_timeout
        bounded_by_deadline = False
        if deadline is not None:
            deadline.check("building")
            remaining = deadline.remaining()
            if remaining is not None and remaining < timeout:
                timeout = remaining
                bounded_by_deadline = True

        logger.info("Running %s step for store %s: %s", name, workspace.store_id, " ".join(command))
        started = time.monotonic()
        env = {**os.environ, **self.env} if self.env else None
        try:
            proc = await asyncio.create_subprocess_exec(
                *command,
                cwd=workspace.root,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=env,
            )
        except OSError as e:
            raise BuildError(
                f"{name} step could not start {command[0]!r}: {e}", stage="building"
            ) from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except TimeoutError:
            await _kill(proc)
            if bounded_by_deadline:
                raise PublishTimeoutError(
                    f"publish deadline expired during {name} step", stage="building"
                ) from None
            raise BuildError(
                f"{name} step timed out after {timeout:.0f}s", stage="building"
            ) from None
        except asyncio.CancelledError:
            await _kill(proc)
            raise

        elapsed = time.monotonic() - started
        if proc.returncode != 0:
            detail = _tail(stderr or stdout, self.config.stderr_tail)
            logger.error(
                "%s step failed for store %s (exit %s): %s",
                name,
                workspace.store_id,
                proc.returncode,
                detail,
            )
            raise BuildError(
                f"{name} step failed with exit code {proc.returncode}",
                stage="building",
                detail=detail,
            )
        logger.info("%s step finished in %.1fs", name, elapsed)
