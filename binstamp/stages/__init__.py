"""binstamp build stages — registry mapping stage_id to stage class.

Usage::

    from binstamp.stages import STAGE_ORDER, get_stage

    for stage_id in STAGE_ORDER:
        outcome = get_stage(stage_id).run_stage(ctx)
"""

from __future__ import annotations

from binstamp.stages.base import BaseBuildStage, BuildContext, BuildLayout, StageOutcome
from binstamp.stages.s1_acquire import AcquireSourceStage
from binstamp.stages.s2_patch import PatchSourceStage
from binstamp.stages.s3_compile import CompileRuntimeStage
from binstamp.stages.s4_publish import PublishArtifactStage

# ---------------------------------------------------------------------------
# Stage registry: stage_id -> stage class
# ---------------------------------------------------------------------------

STAGE_REGISTRY: dict[str, type[BaseBuildStage]] = {
    "acquire": AcquireSourceStage,
    "patch": PatchSourceStage,
    "compile": CompileRuntimeStage,
    "publish": PublishArtifactStage,
}

# Execution order; publish only runs when caching or uploading is enabled.
STAGE_ORDER: list[str] = ["acquire", "patch", "compile", "publish"]


def get_stage(stage_id: str) -> BaseBuildStage:
    """Instantiate and return a stage by its ``stage_id``.

    Raises ``KeyError`` if the stage_id is not registered.
    """
    try:
        cls = STAGE_REGISTRY[stage_id]
    except KeyError:
        raise KeyError(
            f"Unknown stage_id {stage_id!r}. "
            f"Registered stages: {sorted(STAGE_REGISTRY.keys())}"
        ) from None
    return cls()


__all__ = [
    "BaseBuildStage",
    "BuildContext",
    "BuildLayout",
    "StageOutcome",
    "STAGE_REGISTRY",
    "STAGE_ORDER",
    "get_stage",
    "AcquireSourceStage",
    "PatchSourceStage",
    "CompileRuntimeStage",
    "PublishArtifactStage",
]
