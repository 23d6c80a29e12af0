"""Process wiring for one prop controller."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import Any

from propbridge.actuator import Actuator, GpiosetActuator
from propbridge.bus import BusBridge
from propbridge.config import PropConfig
from propbridge.locallink import LocalLink
from propbridge.models.state import PropCommand
from propbridge.router import Router
from propbridge.state.store import StateStore

_logger = logging.getLogger(__name__)


class PropController:
    """Owns the store and every channel around it.

    Usage::

        async with PropController(config) as controller:
            await stop_event.wait()
    """

    def __init__(self, config: PropConfig, *, actuator: Actuator | None = None) -> None:
        self._config = config
        self.store = StateStore()
        self.actuator: Actuator = actuator or GpiosetActuator(config)
        self.bus = BusBridge(config, self.store, on_command=self._on_command)
        self.link = LocalLink(config, self.store, on_solved=self._on_ui_solved)
        self.router = Router(self.store, self.actuator, self.bus, self.link)

    def _on_command(self, command: PropCommand) -> None:
        self.router.handle_command(command)

    def _on_ui_solved(self) -> None:
        self.router.handle_ui_solved()

    async def __aenter__(self) -> PropController:
        config = self._config
        _logger.info("Prop controller starting")
        _logger.info("Config: prop=%s mqtt=%s", config.prop_id, config.mqtt_broker)
        _logger.info(
            "Config: gpio=%s line %s, ws port %s",
            config.gpio_chip,
            config.gpio_line,
            config.ws_port,
        )
        if config.lock_on_start:
            await self.actuator.set_locked(True)
        try:
            await self.link.start()
            self.bus.start()
        except BaseException:
            await self.__aexit__(*sys.exc_info())
            raise
        return self

    async def __aexit__(self, *exc: Any) -> None:
        _logger.info(
            "Prop controller shutting down (bus connected=%s, ui connected=%s)",
            self.bus.is_connected,
            self.link.session is not None,
        )
        await self.router.wait_idle()
        await self.actuator.close()
        await asyncio.get_running_loop().run_in_executor(None, self.bus.stop)
        await self.link.stop()


async def run(config: PropConfig, *, actuator: Actuator | None = None) -> None:
    """Run the controller until SIGINT or SIGTERM."""
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        async with PropController(config, actuator=actuator):
            await stop_event.wait()
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)
