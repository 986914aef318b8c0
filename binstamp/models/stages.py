"""Build state machine models — deterministic, linear transitions."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class BuildState(str, Enum):
    """Where one build combination stands in the source pipeline."""

    UNACQUIRED = "unacquired"
    ACQUIRED = "acquired"
    PATCHED = "patched"
    COMPILED = "compiled"
    PUBLISHED = "published"
    FAILED = "failed"


# Valid state transitions, enforced by BuildStageMachine.
# PUBLISHED is terminal; FAILED can only restart from the beginning.
VALID_TRANSITIONS: dict[BuildState, set[BuildState]] = {
    BuildState.UNACQUIRED: {BuildState.ACQUIRED, BuildState.FAILED},
    BuildState.ACQUIRED: {BuildState.PATCHED, BuildState.FAILED},
    BuildState.PATCHED: {BuildState.COMPILED, BuildState.FAILED},
    BuildState.COMPILED: {BuildState.PUBLISHED, BuildState.FAILED},
    BuildState.PUBLISHED: set(),  # terminal
    BuildState.FAILED: {BuildState.UNACQUIRED},  # restart
}


class StageDefinition(BaseModel):
    """A pipeline stage and the transition it performs when it completes."""

    model_config = ConfigDict(frozen=True)

    stage_id: str
    display_name: str
    ordinal: int
    from_state: BuildState
    to_state: BuildState


class BuildTransition(BaseModel):
    """Records one state transition for the run report."""

    model_config = ConfigDict(frozen=True)

    stage_id: str
    from_state: BuildState
    to_state: BuildState
    skipped: bool = False  # entry guard found the work already done
    detail: str | None = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


DEFAULT_STAGE_DEFINITIONS: list[StageDefinition] = [
    StageDefinition(
        stage_id="acquire",
        display_name="Acquire Source",
        ordinal=1,
        from_state=BuildState.UNACQUIRED,
        to_state=BuildState.ACQUIRED,
    ),
    StageDefinition(
        stage_id="patch",
        display_name="Patch Source",
        ordinal=2,
        from_state=BuildState.ACQUIRED,
        to_state=BuildState.PATCHED,
    ),
    StageDefinition(
        stage_id="compile",
        display_name="Compile Runtime",
        ordinal=3,
        from_state=BuildState.PATCHED,
        to_state=BuildState.COMPILED,
    ),
    StageDefinition(
        stage_id="publish",
        display_name="Cache & Publish",
        ordinal=4,
        from_state=BuildState.COMPILED,
        to_state=BuildState.PUBLISHED,
    ),
]
