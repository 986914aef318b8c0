"""Tests for the BuildStageMachine — ordered transitions, failure, restart."""

from __future__ import annotations

import pytest

from binstamp.core.errors import InvalidTransitionError
from binstamp.core.stage_machine import BuildStageMachine
from binstamp.models.stages import BuildState


@pytest.fixture
def machine() -> BuildStageMachine:
    return BuildStageMachine()


class TestBuildStageMachine:
    def test_starts_unacquired(self, machine: BuildStageMachine):
        assert machine.state is BuildState.UNACQUIRED
        assert machine.transitions == []

    def test_full_pipeline(self, machine: BuildStageMachine):
        for stage_id in ("acquire", "patch", "compile", "publish"):
            machine.complete(stage_id)
        assert machine.state is BuildState.PUBLISHED
        assert [t.to_state for t in machine.transitions] == [
            BuildState.ACQUIRED,
            BuildState.PATCHED,
            BuildState.COMPILED,
            BuildState.PUBLISHED,
        ]

    def test_out_of_order_rejected(self, machine: BuildStageMachine):
        with pytest.raises(InvalidTransitionError):
            machine.complete("compile")
        assert machine.state is BuildState.UNACQUIRED

    def test_repeat_rejected(self, machine: BuildStageMachine):
        machine.complete("acquire")
        with pytest.raises(InvalidTransitionError):
            machine.complete("acquire")

    def test_skipped_recorded(self, machine: BuildStageMachine):
        transition = machine.complete("acquire", skipped=True, detail="already done")
        assert transition.skipped is True
        assert transition.detail == "already done"

    def test_fail_then_restart(self, machine: BuildStageMachine):
        machine.complete("acquire")
        machine.fail("patch", "patch exited 1")
        assert machine.state is BuildState.FAILED
        with pytest.raises(InvalidTransitionError):
            machine.complete("patch")
        machine.restart()
        assert machine.state is BuildState.UNACQUIRED

    def test_published_is_terminal(self, machine: BuildStageMachine):
        for stage_id in ("acquire", "patch", "compile", "publish"):
            machine.complete(stage_id)
        with pytest.raises(InvalidTransitionError):
            machine.fail("publish", "late failure")

    def test_unknown_stage(self, machine: BuildStageMachine):
        with pytest.raises(InvalidTransitionError, match="Unknown stage"):
            machine.complete("deploy")

    def test_transitions_is_a_copy(self, machine: BuildStageMachine):
        machine.complete("acquire")
        machine.transitions.clear()
        assert len(machine.transitions) == 1
