from __future__ import annotations

from typing import Any

import pytest

from propbridge.actuator import ActuationResult, GpiosetActuator
from propbridge.config import PropConfig
from propbridge.exceptions import ActuationError


class _FakeProcess:
    def __init__(self, args: tuple[str, ...]) -> None:
        self.args = args
        self.returncode: int | None = None
        self.terminated = False

    def terminate(self) -> None:
        self.terminated = True
        self.returncode = -15

    async def wait(self) -> int:
        assert self.returncode is not None
        return self.returncode


class _Spawner:
    def __init__(self) -> None:
        self.processes: list[_FakeProcess] = []

    async def __call__(self, *args: str, **_kwargs: Any) -> _FakeProcess:
        process = _FakeProcess(args)
        self.processes.append(process)
        return process


@pytest.fixture
def spawner(monkeypatch: pytest.MonkeyPatch) -> _Spawner:
    fake = _Spawner()
    monkeypatch.setattr("propbridge.actuator.asyncio.create_subprocess_exec", fake)
    return fake


def _actuator() -> GpiosetActuator:
    return GpiosetActuator(PropConfig(gpio_chip="gpiochip4", gpio_line=22))


@pytest.mark.asyncio
async def test_lock_and_unlock_values(spawner: _Spawner) -> None:
    actuator = _actuator()

    locked = await actuator.set_locked(True)
    unlocked = await actuator.set_locked(False)

    assert locked == ActuationResult(locked=True, ok=True)
    assert unlocked.ok
    assert spawner.processes[0].args == ("gpioset", "-c", "gpiochip4", "22=1")
    assert spawner.processes[1].args == ("gpioset", "-c", "gpiochip4", "22=0")


@pytest.mark.asyncio
async def test_each_command_replaces_previous_process(spawner: _Spawner) -> None:
    actuator = _actuator()

    await actuator.set_locked(True)
    await actuator.set_locked(True)

    first, second = spawner.processes
    assert first.terminated
    assert not second.terminated
    assert actuator.is_holding


@pytest.mark.asyncio
async def test_close_releases_line(spawner: _Spawner) -> None:
    actuator = _actuator()
    await actuator.set_locked(False)

    await actuator.close()

    assert spawner.processes[0].terminated
    assert not actuator.is_holding


@pytest.mark.asyncio
async def test_start_failure_is_reported_not_raised(
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    async def missing(*_args: str, **_kwargs: Any) -> Any:
        raise FileNotFoundError(2, "No such file or directory", "gpioset")

    monkeypatch.setattr("propbridge.actuator.asyncio.create_subprocess_exec", missing)
    actuator = _actuator()

    result = await actuator.set_locked(True)

    assert not result.ok
    assert result.locked is True
    assert "No such file" in (result.error or "")
    assert "Is gpiod installed?" in caplog.text
    with pytest.raises(ActuationError):
        result.raise_for_status()


@pytest.mark.asyncio
async def test_commands_after_close_are_refused(spawner: _Spawner) -> None:
    actuator = _actuator()
    await actuator.set_locked(True)
    await actuator.close()

    result = await actuator.set_locked(False)

    assert not result.ok
    assert result.error == "actuator closed"
    assert len(spawner.processes) == 1
    assert not actuator.is_holding
