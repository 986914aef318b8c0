"""binstamp data models — all Pydantic v2, all frozen (immutable)."""

from binstamp.models.artifacts import AppBundle, CachedArtifact, StampResult
from binstamp.models.build import (
    ApplicationSource,
    BatchFailure,
    BatchReport,
    BuildResult,
    BuildSpec,
    PlaceholderOfSize,
    RealScript,
)
from binstamp.models.host import HostEnvironment, normalize_arch, normalize_platform
from binstamp.models.stages import (
    DEFAULT_STAGE_DEFINITIONS,
    VALID_TRANSITIONS,
    BuildState,
    BuildTransition,
    StageDefinition,
)

__all__ = [
    # host
    "HostEnvironment",
    "normalize_platform",
    "normalize_arch",
    # build
    "ApplicationSource",
    "RealScript",
    "PlaceholderOfSize",
    "BuildSpec",
    "BuildResult",
    "BatchFailure",
    "BatchReport",
    # stages
    "BuildState",
    "BuildTransition",
    "StageDefinition",
    "VALID_TRANSITIONS",
    "DEFAULT_STAGE_DEFINITIONS",
    # artifacts
    "AppBundle",
    "CachedArtifact",
    "StampResult",
]
