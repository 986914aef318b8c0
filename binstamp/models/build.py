"""Build combination models — what one orchestrator run builds, and its outcome."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from binstamp.models.host import normalize_arch, normalize_platform
from binstamp.models.stages import BuildState, BuildTransition

_VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")


class RealScript(BaseModel):
    """Compile a real application script straight into the runtime."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["script"] = "script"
    path: Path
    app_name: str | None = None


class PlaceholderOfSize(BaseModel):
    """Compile an inert placeholder slot of ``megabytes`` MiB into the runtime."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["placeholder"] = "placeholder"
    megabytes: int

    @field_validator("megabytes")
    @classmethod
    def _even_and_at_least_two(cls, value: int) -> int:
        if value < 2 or value % 2 != 0:
            raise ValueError(f"slot size must be an even number >= 2, got {value}")
        return value


ApplicationSource = Annotated[RealScript | PlaceholderOfSize, Field(discriminator="kind")]


class BuildSpec(BaseModel):
    """One build combination. Immutable once an orchestration run starts."""

    model_config = ConfigDict(frozen=True)

    runtime_version: str
    platform: str
    arch: str
    build_version: str = "v1"
    pointer_compression: bool = False
    source: ApplicationSource

    @field_validator("runtime_version")
    @classmethod
    def _semver(cls, value: str) -> str:
        value = value.strip().removeprefix("v")
        if not _VERSION_RE.match(value):
            raise ValueError(f"runtime version must look like 10.16.0, got {value!r}")
        return value

    @field_validator("platform")
    @classmethod
    def _platform(cls, value: str) -> str:
        return normalize_platform(value)

    @field_validator("arch")
    @classmethod
    def _arch(cls, value: str) -> str:
        return normalize_arch(value)

    @property
    def runtime_major(self) -> int:
        return int(self.runtime_version.split(".", 1)[0])

    @property
    def platform_tag(self) -> str:
        """Platform segment of the artifact name; pointer compression folds in here."""
        return f"{self.platform}-ptrc" if self.pointer_compression else self.platform

    def describe(self) -> str:
        return (
            f"version={self.runtime_version} platform={self.platform_tag} "
            f"arch={self.arch} build={self.build_version}"
        )


class BuildResult(BaseModel):
    """Outcome of one orchestrator run."""

    model_config = ConfigDict(frozen=True)

    spec: BuildSpec
    state: BuildState
    slot_size: int
    artifact_name: str
    result_file: Path
    transitions: list[BuildTransition] = []

    @property
    def skipped_stages(self) -> list[str]:
        return [t.stage_id for t in self.transitions if t.skipped]


class BatchFailure(BaseModel):
    """A build combination that failed inside a batch."""

    model_config = ConfigDict(frozen=True)

    spec: BuildSpec
    error: str
    stage_id: str | None = None
    exit_code: int | None = None


class BatchReport(BaseModel):
    """Results and failures of a batch, reported after all work finished."""

    model_config = ConfigDict(frozen=True)

    results: list[BuildResult] = []
    failures: list[BatchFailure] = []

    @property
    def ok(self) -> bool:
        return not self.failures
