"""Unit tests for BaseBuildStage lifecycle enforcement and individual stages."""

from __future__ import annotations

from pathlib import Path

import pytest

from binstamp.core.artifact_cache import ArtifactCache, RemoteArtifactStore
from binstamp.core.errors import SourceLayoutError, StageExecutionError
from binstamp.core.toolchain import ToolchainPlanner
from binstamp.models.build import BuildSpec, PlaceholderOfSize
from binstamp.stages import STAGE_ORDER, STAGE_REGISTRY, get_stage
from binstamp.stages.base import BaseBuildStage, BuildContext, BuildLayout
from binstamp.stages.s1_acquire import AcquireSourceStage, source_url
from binstamp.stages.s3_compile import file_contains
from binstamp.stages.s4_publish import PublishArtifactStage

# ---------------------------------------------------------------------------
# Concrete test stage implementations
# ---------------------------------------------------------------------------


class _DoneStage(BaseBuildStage):
    executed = False

    @property
    def stage_id(self) -> str:
        return "test_done"

    @property
    def display_name(self) -> str:
        return "Done Test Stage"

    def is_done(self, ctx):
        return True

    def execute(self, ctx):
        self.executed = True
        return None


class _FailingStage(BaseBuildStage):
    @property
    def stage_id(self) -> str:
        return "test_failing"

    @property
    def display_name(self) -> str:
        return "Failing Test Stage"

    def is_done(self, ctx):
        return False

    def execute(self, ctx):
        raise ValueError("boom")


@pytest.fixture
def spec() -> BuildSpec:
    return BuildSpec(
        runtime_version="10.16.0",
        platform="linux",
        arch="x64",
        source=PlaceholderOfSize(megabytes=2),
    )


@pytest.fixture
def ctx(spec, settings, runner, transport, linux_host) -> BuildContext:
    return BuildContext(
        spec=spec,
        host=linux_host,
        settings=settings,
        runner=runner,
        transport=transport,
        planner=ToolchainPlanner(
            linux_host,
            builder_image="acme/node-builder",
            builder_image_version=3,
            workdir=settings.workdir,
        ),
        layout=BuildLayout(
            build_dir=settings.build_dir, runtime_version="10.16.0", host=linux_host
        ),
    )


class TestRegistry:
    def test_order_matches_registry(self):
        assert STAGE_ORDER == list(STAGE_REGISTRY)

    def test_get_stage(self):
        assert isinstance(get_stage("acquire"), AcquireSourceStage)

    def test_unknown_stage(self):
        with pytest.raises(KeyError, match="Unknown stage_id"):
            get_stage("deploy")


class TestLifecycle:
    def test_done_stage_skips_execute(self, ctx):
        stage = _DoneStage()
        outcome = stage.run_stage(ctx)
        assert outcome.skipped is True
        assert stage.executed is False

    def test_failure_wrapped(self, ctx):
        with pytest.raises(StageExecutionError) as excinfo:
            _FailingStage().run_stage(ctx)
        assert excinfo.value.stage_id == "test_failing"
        assert isinstance(excinfo.value.cause, ValueError)
        assert excinfo.value.exit_code is None


class TestContext:
    def test_placeholder_content(self, ctx):
        assert len(ctx.module_content) == 2 * 1024 * 1024
        assert ctx.slot_size == 2
        assert ctx.artifact_name == "linux-x64-10.16.0-v1-2MB"

    def test_layout(self, ctx, settings):
        assert ctx.layout.source_archive == settings.build_dir / "node-v10.16.0.tar.gz"
        assert ctx.layout.pristine_dir == settings.build_dir / "pristine" / "10.16.0"
        assert ctx.layout.result_file == (
            settings.build_dir / "node-v10.16.0" / "out" / "Release" / "node"
        )


class TestAcquire:
    def test_source_url(self):
        assert source_url("https://nodejs.org/dist/", "10.16.0") == (
            "https://nodejs.org/dist/v10.16.0/node-v10.16.0.tar.gz"
        )

    def test_reuses_downloaded_archive(self, ctx, session, make_source_tarball):
        ctx.layout.build_dir.mkdir(parents=True)
        ctx.layout.source_archive.write_bytes(make_source_tarball("10.16.0"))
        outcome = AcquireSourceStage().run_stage(ctx)
        assert outcome.skipped is False
        assert session.requests == []
        assert (ctx.layout.source_dir / "configure").is_file()

    def test_truncated_archive_downloaded_again(
        self, ctx, session, make_response, make_source_tarball
    ):
        good = make_source_tarball("10.16.0")
        url = f"{ctx.settings.source_base_url}/v10.16.0/node-v10.16.0.tar.gz"
        session.add("GET", url, make_response(200, body=good))
        ctx.layout.build_dir.mkdir(parents=True)
        ctx.layout.source_archive.write_bytes(good[: len(good) // 2])

        outcome = AcquireSourceStage().run_stage(ctx)

        assert outcome.skipped is False
        assert [r["url"] for r in session.requests] == [url]
        assert ctx.layout.source_archive.read_bytes() == good
        assert (ctx.layout.source_dir / "configure").is_file()

    def test_unreadable_download_removed(
        self, ctx, session, make_response, make_source_tarball
    ):
        good = make_source_tarball("10.16.0")
        url = f"{ctx.settings.source_base_url}/v10.16.0/node-v10.16.0.tar.gz"
        session.add("GET", url, make_response(200, body=good[: len(good) // 2]))

        with pytest.raises(StageExecutionError) as excinfo:
            AcquireSourceStage().run_stage(ctx)

        assert isinstance(excinfo.value.cause, SourceLayoutError)
        assert not ctx.layout.source_archive.exists()
        assert not ctx.layout.source_dir.exists()

    def test_archive_without_configure(self, ctx, make_source_tarball):
        ctx.layout.build_dir.mkdir(parents=True)
        ctx.layout.source_archive.write_bytes(
            make_source_tarball("10.16.0", with_configure=False)
        )
        with pytest.raises(StageExecutionError) as excinfo:
            AcquireSourceStage().run_stage(ctx)
        assert isinstance(excinfo.value.cause, SourceLayoutError)


class TestPublish:
    def _compiled(self, ctx) -> Path:
        result = ctx.layout.result_file
        result.parent.mkdir(parents=True)
        result.write_bytes(b"runtime")
        return result

    def test_nothing_enabled_is_done(self, ctx):
        assert PublishArtifactStage().is_done(ctx) is True

    def test_remote_upload(self, ctx, transport, session, make_response):
        self._compiled(ctx)
        base = "https://github.com/acme/runtimes/releases/download/v9.9.9"
        api = "https://api.example.org/repos/acme/runtimes/releases/tags/v9.9.9"
        ctx.remote = RemoteArtifactStore(transport, base, api, token="t")
        session.add(
            "GET", api, make_response(200, json_data={"upload_url": "https://up.example.org/a{?name}"})
        )
        session.add("POST", "https://up.example.org/a?name=linux-x64-10.16.0-v1-2MB", make_response(201))

        outcome = PublishArtifactStage().run_stage(ctx)

        assert outcome.skipped is False
        assert "uploaded" in outcome.detail
        assert [r["method"] for r in session.requests] == ["HEAD", "HEAD", "GET", "POST"]

    def test_cache_only(self, ctx, settings):
        self._compiled(ctx)
        ctx.cache = ArtifactCache(settings.cache_dir)
        PublishArtifactStage().run_stage(ctx)
        assert ctx.cache.exists("linux-x64-10.16.0-v1-2MB")
        assert PublishArtifactStage().is_done(ctx) is True


class TestFileContains:
    def test_found(self, tmp_path: Path):
        path = tmp_path / "f"
        path.write_bytes(b"abc-needle-xyz")
        assert file_contains(path, b"needle") is True

    def test_absent(self, tmp_path: Path):
        path = tmp_path / "f"
        path.write_bytes(b"abc")
        assert file_contains(path, b"needle") is False

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "f"
        path.write_bytes(b"")
        assert file_contains(path, b"needle") is False
