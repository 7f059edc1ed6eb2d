"""End-to-end tests for the publish pipeline with a fake provider and toolchain."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import pytest

from shopforge.core.errors import (
    BuildError,
    DeploymentError,
    LayoutError,
    ProviderConfigError,
    PublishCancelledError,
    PublishError,
    PublishInProgressError,
    PublishTimeoutError,
    ScaffoldError,
)
from shopforge.publish.backoff import Deadline
from shopforge.publish.config import ProviderConfig, PublishConfig
from shopforge.publish.locks import StoreLockRegistry
from shopforge.publish.publisher import Publisher, PublishRequest, PublishStage
from tests.fakes import FakeProvider
from tests.support import make_publish_config, no_sleep, python_command, workspaces_left

pytestmark = pytest.mark.slow


def make_publisher(
    provider: FakeProvider, provider_config: ProviderConfig, publish_config: PublishConfig
) -> Publisher:
    return Publisher(
        provider,
        provider_config,
        publish_config,
        locks=StoreLockRegistry(),
        poll_sleep=no_sleep,
    )


@pytest.fixture
def request_for(sample_layout: dict[str, Any]):
    def build(**overrides: Any) -> PublishRequest:
        values: dict[str, Any] = {
            "store_id": "store-1",
            "store_name": "Acme Goods",
            "layout": sample_layout,
        }
        values.update(overrides)
        return PublishRequest(**values)

    return build


class TestSuccessfulPublish:
    """Tests for the happy path."""

    @pytest.mark.asyncio
    async def test_publish(
        self,
        publisher: Publisher,
        fake_provider: FakeProvider,
        workspace_root: Path,
        request_for,
    ) -> None:
        """Test a layout is built, uploaded, polled and aliased."""
        result = await publisher.publish(request_for())

        assert result.url == "https://acme-goods.vercel.app"
        assert result.stable_url == result.url
        assert result.project_name == "acme-goods"
        assert result.deployment_id == "dpl_1"
        assert result.published_at.tzinfo is not None
        assert fake_provider.aliases == {"acme-goods.vercel.app": "dpl_1"}

        uploaded = {f["file"] for f in fake_provider.deployments["dpl_1"]["files"]}
        assert uploaded == {"index.html", "assets/app.js", "favicon.png"}
        assert workspaces_left(workspace_root) == []

    @pytest.mark.asyncio
    async def test_result_serialization(self, publisher: Publisher, request_for) -> None:
        """Test the result dict uses the API field names."""
        data = (await publisher.publish(request_for())).to_dict()
        assert set(data) >= {"url", "deploymentId", "publishedAt", "stableUrl", "projectName"}
        assert data["customDomainBound"] is False

    @pytest.mark.asyncio
    async def test_republish_moves_stable_alias(
        self, publisher: Publisher, fake_provider: FakeProvider, request_for
    ) -> None:
        """Test republishing keeps the URL and points it at the new deployment."""
        first = await publisher.publish(request_for())
        second = await publisher.publish(request_for())

        assert first.url == second.url
        assert second.deployment_id == "dpl_2"
        assert fake_provider.aliases["acme-goods.vercel.app"] == "dpl_2"
        assert list(fake_provider.projects) == ["acme-goods"]

    @pytest.mark.asyncio
    async def test_domain_names_project(self, publisher: Publisher, request_for) -> None:
        """Test the store domain takes precedence for the project name."""
        result = await publisher.publish(request_for(domain="acme.shop"))
        assert result.project_name == "acme.shop"
        assert result.url == "https://acme.shop.vercel.app"

    @pytest.mark.asyncio
    async def test_custom_domain(
        self, publisher: Publisher, fake_provider: FakeProvider, request_for
    ) -> None:
        """Test a free custom domain becomes the primary URL."""
        result = await publisher.publish(request_for(custom_domain="shop.acme.com"))

        assert result.url == "https://shop.acme.com"
        assert result.stable_url == "https://acme-goods.vercel.app"
        assert result.custom_domain_bound is True
        assert fake_provider.aliases["shop.acme.com"] == result.deployment_id

    @pytest.mark.asyncio
    async def test_domain_owned_elsewhere(
        self,
        publisher: Publisher,
        fake_provider: FakeProvider,
        request_for,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """Test a custom domain owned by another project falls back to the stable URL."""
        fake_provider.domain_owners["shop.acme.com"] = "someone-else"

        with caplog.at_level(logging.WARNING):
            result = await publisher.publish(request_for(custom_domain="shop.acme.com"))

        assert result.url == "https://acme-goods.vercel.app"
        assert result.custom_domain_bound is False
        assert result.warnings
        assert any(
            r.levelno == logging.WARNING and "shop.acme.com" in r.getMessage()
            for r in caplog.records
        )

    @pytest.mark.asyncio
    async def test_unknown_section_warns(self, publisher: Publisher, request_for) -> None:
        """Test unknown section types are reported as warnings, not failures."""
        layout = {"sections": [{"type": "carousel"}]}
        result = await publisher.publish(request_for(layout=layout))
        assert any("carousel" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_try_publish_success(self, publisher: Publisher, request_for) -> None:
        """Test try_publish wraps a successful result."""
        outcome = await publisher.try_publish(request_for())
        assert outcome.ok
        assert outcome.result is not None


class TestFailures:
    """Tests for fatal failures, each leaving no workspace behind."""

    @pytest.mark.asyncio
    async def test_missing_layout(
        self,
        publisher: Publisher,
        fake_provider: FakeProvider,
        workspace_root: Path,
        request_for,
    ) -> None:
        """Test an absent layout fails before any workspace exists."""
        with pytest.raises(LayoutError) as exc_info:
            await publisher.publish(request_for(layout=None))

        assert exc_info.value.stage == "validating"
        assert not workspace_root.exists()
        assert fake_provider.calls == []

    @pytest.mark.asyncio
    async def test_missing_token(
        self,
        fake_provider: FakeProvider,
        publish_config: PublishConfig,
        workspace_root: Path,
        request_for,
    ) -> None:
        """Test a missing provider token fails before any build work."""
        publisher = make_publisher(fake_provider, ProviderConfig(token=None), publish_config)

        with pytest.raises(ProviderConfigError):
            await publisher.publish(request_for())

        assert not workspace_root.exists()

    @pytest.mark.asyncio
    async def test_build_failure(
        self,
        fake_provider: FakeProvider,
        provider_config: ProviderConfig,
        tmp_path: Path,
        request_for,
    ) -> None:
        """Test a failing build surfaces BuildError and nothing is uploaded."""
        config = make_publish_config(
            tmp_path,
            build_command=python_command("import sys; sys.stderr.write('vite: error'); sys.exit(1)"),
        )
        publisher = make_publisher(fake_provider, provider_config, config)

        with pytest.raises(BuildError) as exc_info:
            await publisher.publish(request_for())

        assert exc_info.value.stage == "building"
        assert "vite: error" in exc_info.value.detail
        assert "create_deployment" not in fake_provider.call_names()
        assert workspaces_left(config.get_workspace_root()) == []

    @pytest.mark.asyncio
    async def test_scaffold_failure(
        self,
        publisher: Publisher,
        workspace_root: Path,
        request_for,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test a synthesis write failure is a ScaffoldError with cleanup."""

        def broken(layout: Any, root: Path) -> Any:
            raise ScaffoldError("disk full", stage="synthesizing")

        monkeypatch.setattr("shopforge.publish.publisher.synthesize", broken)

        with pytest.raises(ScaffoldError):
            await publisher.publish(request_for())
        assert workspaces_left(workspace_root) == []

    @pytest.mark.asyncio
    async def test_deployment_error(
        self,
        publisher: Publisher,
        fake_provider: FakeProvider,
        workspace_root: Path,
        request_for,
    ) -> None:
        """Test a deployment ending in ERROR fails with the provider reason."""
        fake_provider.error_message = "Build failed: missing module"

        with pytest.raises(DeploymentError, match="missing module") as exc_info:
            await publisher.publish(request_for())

        assert exc_info.value.stage == "polling"
        assert fake_provider.aliases == {}
        assert workspaces_left(workspace_root) == []

    @pytest.mark.asyncio
    async def test_poll_timeout(
        self,
        publisher: Publisher,
        fake_provider: FakeProvider,
        workspace_root: Path,
        request_for,
    ) -> None:
        """Test a deployment that never becomes ready times out."""
        fake_provider.never_ready = True

        with pytest.raises(PublishTimeoutError) as exc_info:
            await publisher.publish(request_for())

        assert exc_info.value.retryable is True
        assert fake_provider.call_names().count("get_deployment") == 5
        assert workspaces_left(workspace_root) == []

    @pytest.mark.asyncio
    async def test_unexpected_exception(
        self,
        publisher: Publisher,
        workspace_root: Path,
        request_for,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        """Test an unexpected exception is wrapped and the workspace removed."""

        async def explode(*args: Any, **kwargs: Any) -> Any:
            raise RuntimeError("kaboom")

        monkeypatch.setattr(publisher.builder, "run", explode)

        with pytest.raises(PublishError) as exc_info:
            await publisher.publish(request_for())

        error = exc_info.value
        assert type(error) is PublishError
        assert error.stage == "building"
        assert isinstance(error.__cause__, RuntimeError)
        assert workspaces_left(workspace_root) == []

    @pytest.mark.asyncio
    async def test_try_publish_returns_error(self, publisher: Publisher, request_for) -> None:
        """Test try_publish returns the classified error."""
        outcome = await publisher.try_publish(request_for(layout="not json at all"))
        assert not outcome.ok
        assert isinstance(outcome.error, LayoutError)

    @pytest.mark.asyncio
    async def test_lock_released_after_failure(self, publisher: Publisher, request_for) -> None:
        """Test a failed publish does not keep the store locked."""
        with pytest.raises(LayoutError):
            await publisher.publish(request_for(layout=None))
        assert publisher.locks.is_held("store-1") is False


class TestCancellation:
    """Tests for deadlines and cancellation."""

    @pytest.mark.asyncio
    async def test_cancel_before_start(
        self, publisher: Publisher, workspace_root: Path, request_for
    ) -> None:
        """Test a set cancel event stops the pipeline immediately."""
        cancel = asyncio.Event()
        cancel.set()

        with pytest.raises(PublishCancelledError):
            await publisher.publish(request_for(), cancel=cancel)
        assert not workspace_root.exists()

    @pytest.mark.asyncio
    async def test_expired_deadline(
        self, publisher: Publisher, workspace_root: Path, request_for
    ) -> None:
        """Test an expired deadline fails with a timeout."""
        with pytest.raises(PublishTimeoutError):
            await publisher.publish(request_for(), deadline=Deadline(0))
        assert not workspace_root.exists()

    @pytest.mark.asyncio
    async def test_task_cancellation_cleans_up(
        self,
        publisher: Publisher,
        fake_provider: FakeProvider,
        workspace_root: Path,
        request_for,
    ) -> None:
        """Test cancelling the publish task mid-upload removes the workspace."""
        fake_provider.gate = asyncio.Event()
        task = asyncio.create_task(publisher.publish(request_for()))
        await asyncio.wait_for(fake_provider.create_started.wait(), timeout=30)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert workspaces_left(workspace_root) == []
        assert publisher.locks.is_held("store-1") is False

    @pytest.mark.asyncio
    async def test_cancel_event_interrupts_upload(
        self,
        publisher: Publisher,
        fake_provider: FakeProvider,
        workspace_root: Path,
        request_for,
    ) -> None:
        """Test setting the cancel event while the upload hangs ends the publish."""
        fake_provider.gate = asyncio.Event()
        cancel = asyncio.Event()
        task = asyncio.create_task(publisher.publish(request_for(), cancel=cancel))
        await asyncio.wait_for(fake_provider.create_started.wait(), timeout=30)

        cancel.set()
        with pytest.raises(PublishCancelledError) as exc_info:
            await asyncio.wait_for(task, timeout=5)

        assert exc_info.value.stage == PublishStage.UPLOADING.value
        assert fake_provider.deployments == {}
        assert workspaces_left(workspace_root) == []
        assert publisher.locks.is_held("store-1") is False


class TestConcurrency:
    """Tests for concurrent publishes of the same store."""

    @pytest.mark.asyncio
    async def test_second_publish_rejected(
        self,
        publisher: Publisher,
        fake_provider: FakeProvider,
        workspace_root: Path,
        request_for,
    ) -> None:
        """Test a concurrent publish is rejected while the first completes."""
        fake_provider.gate = asyncio.Event()
        first = asyncio.create_task(publisher.publish(request_for()))
        await asyncio.wait_for(fake_provider.create_started.wait(), timeout=30)

        with pytest.raises(PublishInProgressError) as exc_info:
            await publisher.publish(request_for())
        assert exc_info.value.http_status == 409

        fake_provider.gate.set()
        result = await first

        assert result.deployment_id == "dpl_1"
        assert len(fake_provider.deployments) == 1
        assert workspaces_left(workspace_root) == []

    @pytest.mark.asyncio
    async def test_other_store_not_blocked(
        self, publisher: Publisher, fake_provider: FakeProvider, request_for
    ) -> None:
        """Test different stores publish independently."""
        results = await asyncio.gather(
            publisher.publish(request_for(store_id="a", store_name="Shop A")),
            publisher.publish(request_for(store_id="b", store_name="Shop B")),
        )
        assert {r.project_name for r in results} == {"shop-a", "shop-b"}


class TestStages:
    """Tests for stage bookkeeping."""

    def test_stage_order(self) -> None:
        """Test the pipeline stage names."""
        assert [s.value for s in PublishStage][:8] == [
            "validating",
            "scaffolding",
            "synthesizing",
            "building",
            "uploading",
            "polling",
            "aliasing",
            "done",
        ]
