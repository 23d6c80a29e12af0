"""Authoritative in-memory puzzle state.

This is the only component allowed to mutate :class:`PuzzleState`.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from propbridge.models.state import PropAction, PuzzleState, StateChange

_logger = logging.getLogger(__name__)

StateObserver = Callable[[StateChange], None]

_UNSOLVED = PuzzleState()


class StateStore:
    """Holds the puzzle state and enforces its transition rules.

    States are Unsolved, SolvedByPlayer and SolvedByOverride.  The first
    transition into a solved state wins until the next :meth:`reset`.
    Observers are called synchronously, in registration order, after each
    transition that occurred.
    """

    def __init__(self) -> None:
        self._state = _UNSOLVED
        self._observers: list[StateObserver] = []

    @property
    def state(self) -> PuzzleState:
        return self._state

    def add_observer(self, observer: StateObserver) -> Callable[[], None]:
        """Register *observer*; returns a callable that unregisters it."""
        self._observers.append(observer)

        def _remove() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return _remove

    def player_solve(self) -> bool:
        """Mark the puzzle solved by the player. No-op when already solved."""
        if self._state.solved:
            return False
        self._transition(PropAction.SOLVED, PuzzleState(solved=True, override=False))
        return True

    def force_solve(self) -> bool:
        """Mark the puzzle solved by GM override. No-op when already solved."""
        if self._state.solved:
            return False
        self._transition(PropAction.FORCE_SOLVED, PuzzleState(solved=True, override=True))
        return True

    def reset(self) -> bool:
        """Return to unsolved.

        Always reported as a transition, even from the unsolved state, so
        it doubles as a resynchronization of every observer.
        """
        self._transition(PropAction.RESET, _UNSOLVED)
        return True

    def _transition(self, action: PropAction, new_state: PuzzleState) -> None:
        change = StateChange(action=action, previous=self._state, current=new_state)
        self._state = new_state
        _logger.info(
            "Puzzle %s (solved=%s override=%s)",
            action.value,
            new_state.solved,
            new_state.override,
        )
        for observer in list(self._observers):
            observer(change)
