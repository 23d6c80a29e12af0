"""Dispatch between channels and the state store.

Inbound events become store transitions; the router is also the store
observer that fans each transition out to the actuator, the bus and the UI.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from propbridge.actuator import ActuationResult, Actuator
from propbridge.models.messages import UiPushMessage
from propbridge.models.state import PropAction, PropCommand, StateChange
from propbridge.state.store import StateStore

_logger = logging.getLogger(__name__)

# GM transitions arrive over the bus; the UI only hears about them via a push.
_UI_PUSHES: dict[PropAction, UiPushMessage] = {
    PropAction.FORCE_SOLVED: UiPushMessage(type="force_solve"),
    PropAction.RESET: UiPushMessage(type="reset"),
}


class StatusPublisher(Protocol):
    def publish_status(self) -> None:
        ...

    def publish_event(self, change: StateChange) -> None:
        ...


class UiNotifier(Protocol):
    def push(self, message: UiPushMessage) -> bool:
        ...


class Router:
    def __init__(
        self,
        store: StateStore,
        actuator: Actuator,
        publisher: StatusPublisher,
        notifier: UiNotifier,
    ) -> None:
        self._store = store
        self._actuator = actuator
        self._publisher = publisher
        self._notifier = notifier
        self._actuations: set[asyncio.Task[ActuationResult]] = set()
        store.add_observer(self._on_state_change)

    def handle_ui_solved(self) -> None:
        if not self._store.player_solve():
            _logger.debug("UI solve ignored; puzzle already solved")

    def handle_command(self, command: PropCommand) -> None:
        if command is PropCommand.FORCE_SOLVED:
            if not self._store.force_solve():
                _logger.debug("force_solved ignored; puzzle already solved")
        elif command is PropCommand.RESET:
            self._store.reset()

    async def wait_idle(self) -> None:
        """Wait for in-flight actuation commands to be issued."""
        while self._actuations:
            await asyncio.wait(set(self._actuations))

    def _on_state_change(self, change: StateChange) -> None:
        self._actuate(change.current.locked)
        self._publisher.publish_status()
        self._publisher.publish_event(change)
        push = _UI_PUSHES.get(change.action)
        if push is not None:
            self._notifier.push(push)

    def _actuate(self, locked: bool) -> None:
        task = asyncio.get_running_loop().create_task(self._actuator.set_locked(locked))
        self._actuations.add(task)
        task.add_done_callback(self._actuation_done)

    def _actuation_done(self, task: asyncio.Task[ActuationResult]) -> None:
        self._actuations.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _logger.error("Actuation raised", exc_info=exc)
            return
        result = task.result()
        if not result.ok:
            _logger.warning(
                "Maglock did not move to %s; puzzle state kept: %s",
                "locked" if result.locked else "unlocked",
                result.error,
            )
