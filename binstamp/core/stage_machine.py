"""Deterministic build state machine.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- Stages complete in their defined order
- FAILED can only restart from UNACQUIRED
- Every transition recorded in the in-memory run log

Nothing here is persisted: on a new run the orchestrator starts from
UNACQUIRED and the stages' existence guards fast-forward through work that
is already on disk.
"""

from __future__ import annotations

from binstamp.core.errors import InvalidTransitionError
from binstamp.models.stages import (
    DEFAULT_STAGE_DEFINITIONS,
    VALID_TRANSITIONS,
    BuildState,
    BuildTransition,
    StageDefinition,
)


class BuildStageMachine:
    """Tracks one build combination through its stages.

    Parameters
    ----------
    definitions:
        Ordered stage definitions; defaults to the standard pipeline.
    """

    def __init__(self, definitions: list[StageDefinition] | None = None) -> None:
        self._definitions = {
            d.stage_id: d for d in (definitions or DEFAULT_STAGE_DEFINITIONS)
        }
        self._state = BuildState.UNACQUIRED
        self._transitions: list[BuildTransition] = []

    @property
    def state(self) -> BuildState:
        return self._state

    @property
    def transitions(self) -> list[BuildTransition]:
        return list(self._transitions)

    def definition(self, stage_id: str) -> StageDefinition:
        try:
            return self._definitions[stage_id]
        except KeyError:
            raise InvalidTransitionError(
                f"Unknown stage {stage_id!r}. Known: {sorted(self._definitions)}"
            ) from None

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def complete(
        self, stage_id: str, *, skipped: bool = False, detail: str | None = None
    ) -> BuildTransition:
        """Record that ``stage_id`` finished (or was found already done)."""
        definition = self.definition(stage_id)
        if self._state != definition.from_state:
            raise InvalidTransitionError(
                f"Cannot complete {stage_id} while in {self._state.value}; "
                f"it requires {definition.from_state.value}"
            )
        return self._move(stage_id, definition.to_state, skipped=skipped, detail=detail)

    def fail(self, stage_id: str, detail: str) -> BuildTransition:
        return self._move(stage_id, BuildState.FAILED, detail=detail)

    def restart(self) -> BuildTransition:
        return self._move("restart", BuildState.UNACQUIRED)

    def _move(
        self,
        stage_id: str,
        target: BuildState,
        *,
        skipped: bool = False,
        detail: str | None = None,
    ) -> BuildTransition:
        allowed = VALID_TRANSITIONS.get(self._state, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition from {self._state.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )
        transition = BuildTransition(
            stage_id=stage_id,
            from_state=self._state,
            to_state=target,
            skipped=skipped,
            detail=detail,
        )
        self._transitions.append(transition)
        self._state = target
        return transition
