"""Maglock actuation through an external line-setting utility.

The channel is open-loop: success means the utility started, not that the
lock moved.  libgpiod v2 ``gpioset`` keeps the line requested for as long
as it runs, so the process is kept alive until the next command.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import dataclass
from typing import Protocol

from propbridge.config import PropConfig
from propbridge.exceptions import ActuationError

_logger = logging.getLogger(__name__)

LOCKED_VALUE = "1"
UNLOCKED_VALUE = "0"


@dataclass(frozen=True)
class ActuationResult:
    """Outcome of one ``set_locked`` command."""

    locked: bool
    ok: bool
    error: str | None = None

    def raise_for_status(self) -> None:
        if not self.ok:
            raise ActuationError(self.error or "actuation failed", locked=self.locked)


class Actuator(Protocol):
    """Structural actuator interface.

    The router only depends on this, so tests can pass a recording double
    instead of spawning processes.
    """

    async def set_locked(self, locked: bool) -> ActuationResult:
        ...

    async def close(self) -> None:
        ...


class GpiosetActuator:
    """Drives one hardware line with ``gpioset -c <chip> <line>=<value>``.

    Every call replaces the running process, even when the value is
    unchanged.  Calls are serialized so lines are driven in call order.
    """

    def __init__(self, config: PropConfig) -> None:
        self._executable = config.gpioset_path
        self._chip = config.gpio_chip
        self._line = config.gpio_line
        self._process: asyncio.subprocess.Process | None = None
        self._lock = asyncio.Lock()
        self._closed = False

    @property
    def is_holding(self) -> bool:
        """Whether a line-setting process is currently running."""
        process = self._process
        return process is not None and process.returncode is None

    def build_args(self, locked: bool) -> list[str]:
        value = LOCKED_VALUE if locked else UNLOCKED_VALUE
        return [self._executable, "-c", self._chip, f"{self._line}={value}"]

    async def set_locked(self, locked: bool) -> ActuationResult:
        async with self._lock:
            if self._closed:
                _logger.debug("Actuator closed; not driving line to %s", int(locked))
                return ActuationResult(locked=locked, ok=False, error="actuator closed")
            await self._terminate()
            args = self.build_args(locked)
            try:
                self._process = await asyncio.create_subprocess_exec(
                    *args,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.DEVNULL,
                )
            except OSError as exc:
                _logger.error("Failed to start %s: %s", self._executable, exc)
                _logger.error("Is gpiod installed? Try: sudo apt install gpiod")
                return ActuationResult(locked=locked, ok=False, error=str(exc))

            _logger.info("Maglock %s", "LOCKED" if locked else "UNLOCKED")
            return ActuationResult(locked=locked, ok=True)

    async def close(self) -> None:
        """Stop the running process and refuse further commands."""
        async with self._lock:
            self._closed = True
            if self.is_holding:
                _logger.info("Releasing maglock line %s", self._line)
            await self._terminate()

    async def _terminate(self) -> None:
        process = self._process
        self._process = None
        if process is None or process.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            process.terminate()
        await process.wait()
