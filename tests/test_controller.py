from __future__ import annotations

import asyncio
import os
import signal
from types import SimpleNamespace
from typing import Any

import paho.mqtt.client as mqtt
import pytest

from propbridge.__main__ import _overrides, _parse_args
from propbridge.actuator import ActuationResult
from propbridge.config import PropConfig
from propbridge.controller import PropController, run
from propbridge.locallink import LocalLink
from propbridge.models.state import PuzzleState


class _RecordingActuator:
    def __init__(self) -> None:
        self.calls: list[bool] = []
        self.closed = False

    async def set_locked(self, locked: bool) -> ActuationResult:
        self.calls.append(locked)
        return ActuationResult(locked=locked, ok=True)

    async def close(self) -> None:
        self.closed = True


class _FakeMqttClient:
    def __init__(self, **_kwargs: Any) -> None:
        self.published: list[str] = []
        self.connected_to: tuple[str, int] | None = None
        self.disconnected = False
        self.loop_running = False

    def enable_logger(self, _logger: Any) -> None:
        pass

    def will_set(self, *_args: Any, **_kwargs: Any) -> None:
        pass

    def reconnect_delay_set(self, **_kwargs: Any) -> None:
        pass

    def connect_async(self, host: str, port: int, keepalive: int = 60) -> None:
        self.connected_to = (host, port)

    def loop_start(self) -> None:
        self.loop_running = True

    def loop_stop(self) -> None:
        self.loop_running = False

    def disconnect(self) -> None:
        self.disconnected = True

    def publish(self, topic: str, _payload: str, **_kwargs: Any) -> Any:
        self.published.append(topic)
        return SimpleNamespace(rc=mqtt.MQTT_ERR_SUCCESS)


@pytest.mark.asyncio
async def test_controller_lifecycle(monkeypatch: pytest.MonkeyPatch) -> None:
    clients: list[_FakeMqttClient] = []

    def factory(**kwargs: Any) -> _FakeMqttClient:
        client = _FakeMqttClient(**kwargs)
        clients.append(client)
        return client

    monkeypatch.setattr("propbridge.bus.mqtt.Client", factory)
    actuator = _RecordingActuator()
    config = PropConfig(mqtt_broker="localhost:1883", ws_host="127.0.0.1", ws_port=0)

    async with PropController(config, actuator=actuator) as controller:
        assert actuator.calls == [True]
        assert clients[0].connected_to == ("localhost", 1883)
        assert clients[0].loop_running

        controller.router.handle_ui_solved()
        await controller.router.wait_idle()
        assert controller.store.state == PuzzleState(solved=True, override=False)

    assert actuator.calls == [True, False]
    assert actuator.closed
    assert clients[0].disconnected
    assert not clients[0].loop_running


@pytest.mark.asyncio
async def test_controller_can_skip_initial_lock(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("propbridge.bus.mqtt.Client", _FakeMqttClient)
    actuator = _RecordingActuator()
    config = PropConfig(ws_host="127.0.0.1", ws_port=0, lock_on_start=False)

    async with PropController(config, actuator=actuator):
        pass

    assert actuator.calls == []


def test_cli_overrides() -> None:
    args = _parse_args(["--broker", "mqtt://b:1883", "--gpio-line", "5", "--no-lock-on-start", "-v"])

    assert _overrides(args) == {"mqtt_broker": "mqtt://b:1883", "gpio_line": 5, "lock_on_start": False}
    assert args.verbose


class _LoggingActuator(_RecordingActuator):
    def __init__(self, log: list[str]) -> None:
        super().__init__()
        self._log = log

    async def close(self) -> None:
        self._log.append("actuator.close")
        await super().close()


@pytest.mark.asyncio
async def test_sigterm_stops_actuator_then_bus_then_link(monkeypatch: pytest.MonkeyPatch) -> None:
    log: list[str] = []
    clients: list[_FakeMqttClient] = []

    class _LoggingMqttClient(_FakeMqttClient):
        def disconnect(self) -> None:
            log.append("bus.disconnect")
            super().disconnect()

    def factory(**kwargs: Any) -> _FakeMqttClient:
        client = _LoggingMqttClient(**kwargs)
        clients.append(client)
        return client

    original_stop = LocalLink.stop

    async def logging_stop(self: LocalLink) -> None:
        log.append("link.stop")
        await original_stop(self)

    monkeypatch.setattr("propbridge.bus.mqtt.Client", factory)
    monkeypatch.setattr(LocalLink, "stop", logging_stop)
    actuator = _LoggingActuator(log)
    config = PropConfig(ws_host="127.0.0.1", ws_port=0)

    task = asyncio.create_task(run(config, actuator=actuator))

    async def _started() -> None:
        while not (clients and clients[0].loop_running):
            await asyncio.sleep(0.01)

    await asyncio.wait_for(_started(), timeout=2.0)
    os.kill(os.getpid(), signal.SIGTERM)
    await asyncio.wait_for(task, timeout=2.0)

    assert log == ["actuator.close", "bus.disconnect", "link.stop"]
    assert actuator.calls == [True]
    assert not clients[0].loop_running


@pytest.mark.asyncio
async def test_failed_startup_releases_maglock(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("propbridge.bus.mqtt.Client", _FakeMqttClient)

    async def failing_start(_self: LocalLink) -> None:
        raise OSError(98, "Address already in use")

    monkeypatch.setattr(LocalLink, "start", failing_start)
    actuator = _RecordingActuator()

    with pytest.raises(OSError):
        async with PropController(PropConfig(), actuator=actuator):
            pass

    assert actuator.calls == [True]
    assert actuator.closed
