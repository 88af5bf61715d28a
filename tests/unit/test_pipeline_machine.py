"""Tests for the PipelineMachine: per-iteration transitions and absorbing states."""

from __future__ import annotations

import pytest

from mimikry.core.pipeline_machine import InvalidTransitionError, PipelineMachine
from mimikry.models.pipeline import PipelineState

LOOP = [
    PipelineState.BUILDING,
    PipelineState.TAGGING,
    PipelineState.PUSHING,
    PipelineState.CLEANING,
    PipelineState.IDLE,
]


class TestPipelineMachine:
    def test_starts_idle(self):
        machine = PipelineMachine()
        assert machine.state == PipelineState.IDLE
        assert machine.history == []

    def test_full_iteration(self):
        machine = PipelineMachine()
        machine.begin("12.3")
        assert machine.version == "12.3"
        for target in LOOP:
            machine.transition(target)
        assert machine.state == PipelineState.IDLE
        assert machine.version == ""
        assert [t.to_state for t in machine.history] == [PipelineState.PREPARING, *LOOP]
        assert all(t.version == "12.3" for t in machine.history)

    def test_skipping_a_step_is_rejected(self):
        machine = PipelineMachine()
        machine.begin("12.3")
        with pytest.raises(InvalidTransitionError):
            machine.transition(PipelineState.PUSHING)

    def test_begin_requires_idle(self):
        machine = PipelineMachine()
        machine.begin("12.3")
        with pytest.raises(InvalidTransitionError):
            machine.begin("12.4")

    def test_detail_recorded(self):
        machine = PipelineMachine()
        machine.begin("12.3")
        machine.transition(PipelineState.BUILDING)
        entry = machine.transition(PipelineState.TAGGING, detail="acme/postgres:12.3")
        assert entry.detail == "acme/postgres:12.3"
        assert entry.from_state == PipelineState.BUILDING

    @pytest.mark.parametrize("steps", [0, 1, 3])
    def test_fail_from_any_state(self, steps):
        machine = PipelineMachine()
        machine.begin("12.3")
        for target in LOOP[:steps]:
            machine.transition(target)
        machine.fail("boom")
        assert machine.state == PipelineState.FAILED
        assert machine.is_terminal

    def test_terminal_states_are_absorbing(self):
        machine = PipelineMachine()
        machine.cancel("signal")
        assert machine.state == PipelineState.CANCELLED
        assert machine.get_available_transitions() == set()
        assert machine.fail("later") is None
        assert machine.state == PipelineState.CANCELLED
        with pytest.raises(InvalidTransitionError):
            machine.transition(PipelineState.PREPARING)
