from __future__ import annotations

import pytest
from pydantic import ValidationError

from propbridge.models.state import ChangeSource, PropAction, PuzzleState, StateChange
from propbridge.state.store import StateStore


def _record(store: StateStore) -> list[StateChange]:
    changes: list[StateChange] = []
    store.add_observer(changes.append)
    return changes


def test_fresh_store_is_unsolved() -> None:
    store = StateStore()
    assert store.state == PuzzleState(solved=False, override=False)
    assert store.state.last_change_source == ChangeSource.SYSTEM


def test_player_solve_is_idempotent() -> None:
    store = StateStore()
    changes = _record(store)

    assert store.player_solve() is True
    assert store.player_solve() is False

    assert store.state == PuzzleState(solved=True, override=False)
    assert store.state.last_change_source == ChangeSource.PLAYER
    assert [c.action for c in changes] == [PropAction.SOLVED]


def test_force_solve_is_idempotent() -> None:
    store = StateStore()
    changes = _record(store)

    assert store.force_solve() is True
    assert store.force_solve() is False

    assert store.state == PuzzleState(solved=True, override=True)
    assert store.state.last_change_source == ChangeSource.GM
    assert len(changes) == 1


def test_force_solve_after_player_solve_keeps_player_provenance() -> None:
    store = StateStore()
    store.player_solve()

    assert store.force_solve() is False
    assert store.state.override is False


def test_player_solve_after_force_solve_keeps_override() -> None:
    store = StateStore()
    store.force_solve()

    assert store.player_solve() is False
    assert store.state.override is True


@pytest.mark.parametrize("solve", ["player_solve", "force_solve", None])
def test_reset_from_any_state(solve: str | None) -> None:
    store = StateStore()
    if solve is not None:
        getattr(store, solve)()
    changes = _record(store)

    assert store.reset() is True

    assert store.state == PuzzleState(solved=False, override=False)
    assert changes[-1].action == PropAction.RESET
    assert changes[-1].source == ChangeSource.SYSTEM


def test_reset_when_already_unsolved_still_notifies() -> None:
    store = StateStore()
    changes = _record(store)

    store.reset()

    assert len(changes) == 1
    assert changes[0].previous == changes[0].current


def test_override_invariant_holds_across_sequences() -> None:
    store = StateStore()
    ops = ["force_solve", "player_solve", "reset", "player_solve", "force_solve", "reset", "reset"]
    for op in ops:
        getattr(store, op)()
        assert not store.state.override or store.state.solved


def test_override_without_solved_is_rejected() -> None:
    with pytest.raises(ValidationError):
        PuzzleState(solved=False, override=True)


def test_observers_run_in_order_and_can_be_removed() -> None:
    store = StateStore()
    calls: list[str] = []
    store.add_observer(lambda _c: calls.append("first"))
    remove = store.add_observer(lambda _c: calls.append("second"))

    store.player_solve()
    remove()
    store.reset()

    assert calls == ["first", "second", "first"]


def test_observer_sees_state_already_applied() -> None:
    store = StateStore()
    seen: list[PuzzleState] = []
    store.add_observer(lambda _c: seen.append(store.state))

    store.force_solve()

    assert seen == [PuzzleState(solved=True, override=True)]
