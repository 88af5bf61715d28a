"""Per-iteration pipeline state machine.

Enforces:
- Valid state transitions only (VALID_TRANSITIONS table)
- CANCELLED and FAILED are absorbing
- Every transition recorded in an in-memory history, tagged with the
  version being processed
"""

from __future__ import annotations

import logging

from mimikry.models.pipeline import (
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    PipelineState,
    PipelineTransition,
)

logger = logging.getLogger(__name__)


class InvalidTransitionError(RuntimeError):
    """Raised when a requested state transition is not valid."""


class PipelineMachine:
    """Tracks the coordinator's state across iterations.

    ``IDLE -> PREPARING -> BUILDING -> TAGGING -> PUSHING -> CLEANING -> IDLE``
    once per version; CANCELLED and FAILED are reachable from every
    non-terminal state.
    """

    def __init__(self) -> None:
        self._state = PipelineState.IDLE
        self._version = ""
        self._history: list[PipelineTransition] = []

    # ------------------------------------------------------------------
    # State queries
    # ------------------------------------------------------------------

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def version(self) -> str:
        """Original text of the version currently being processed."""
        return self._version

    @property
    def history(self) -> list[PipelineTransition]:
        return list(self._history)

    @property
    def is_terminal(self) -> bool:
        return self._state in TERMINAL_STATES

    def get_available_transitions(self) -> set[PipelineState]:
        return set(VALID_TRANSITIONS.get(self._state, set()))

    # ------------------------------------------------------------------
    # Transition logic
    # ------------------------------------------------------------------

    def begin(self, version: str) -> PipelineTransition:
        """Start an iteration for ``version`` (IDLE -> PREPARING)."""
        if self._state != PipelineState.IDLE:
            raise InvalidTransitionError(
                f"Cannot start {version}: pipeline is {self._state.value}, not idle"
            )
        self._version = version
        return self.transition(PipelineState.PREPARING)

    def transition(self, target: PipelineState, *, detail: str = "") -> PipelineTransition:
        """Move to ``target``, recording the transition.

        Raises :class:`InvalidTransitionError` if the move is not allowed.
        """
        current = self._state
        allowed = VALID_TRANSITIONS.get(current, set())
        if target not in allowed:
            raise InvalidTransitionError(
                f"Cannot transition from {current.value} to {target.value}. "
                f"Allowed: {sorted(s.value for s in allowed)}"
            )

        entry = PipelineTransition(
            from_state=current,
            to_state=target,
            version=self._version,
            detail=detail,
        )
        self._history.append(entry)
        self._state = target
        logger.debug(
            "[%s] %s -> %s%s",
            self._version or "-",
            current.value,
            target.value,
            f" ({detail})" if detail else "",
        )

        if target == PipelineState.IDLE:
            self._version = ""
        return entry

    def cancel(self, detail: str = "") -> PipelineTransition | None:
        """Enter CANCELLED unless already terminal."""
        if self.is_terminal:
            return None
        return self.transition(PipelineState.CANCELLED, detail=detail)

    def fail(self, detail: str = "") -> PipelineTransition | None:
        """Enter FAILED unless already terminal."""
        if self.is_terminal:
            return None
        return self.transition(PipelineState.FAILED, detail=detail)
