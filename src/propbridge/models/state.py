"""Puzzle state model and transition vocabulary."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, model_validator


class ChangeSource(StrEnum):
    SYSTEM = "system"
    PLAYER = "player"
    GM = "gm"


class PropAction(StrEnum):
    SOLVED = "solved"
    FORCE_SOLVED = "force_solved"
    RESET = "reset"

    @property
    def source(self) -> ChangeSource:
        """Who is credited with this action in published events."""
        return _ACTION_SOURCES[self]


_ACTION_SOURCES: dict[PropAction, ChangeSource] = {
    PropAction.SOLVED: ChangeSource.PLAYER,
    PropAction.FORCE_SOLVED: ChangeSource.GM,
    PropAction.RESET: ChangeSource.SYSTEM,
}


class PuzzleState(BaseModel):
    """Authoritative solved/override pair.

    ``override`` marks a GM-forced solve and can only be set together
    with ``solved``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    solved: bool = False
    override: bool = False

    @model_validator(mode="after")
    def _override_implies_solved(self) -> PuzzleState:
        if self.override and not self.solved:
            raise ValueError("override cannot be set on an unsolved puzzle")
        return self

    @property
    def last_change_source(self) -> ChangeSource:
        if self.override:
            return ChangeSource.GM
        if self.solved:
            return ChangeSource.PLAYER
        return ChangeSource.SYSTEM

    @property
    def locked(self) -> bool:
        """Maglock position matching this state (energized while unsolved)."""
        return not self.solved


class StateChange(BaseModel):
    """A transition that actually occurred, as seen by store observers."""

    model_config = ConfigDict(frozen=True)

    action: PropAction
    previous: PuzzleState
    current: PuzzleState

    @property
    def source(self) -> ChangeSource:
        return self.action.source


class PropCommand(StrEnum):
    """GM commands accepted from the bus."""

    FORCE_SOLVED = "force_solved"
    RESET = "reset"
