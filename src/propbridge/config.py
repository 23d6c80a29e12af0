"""Controller configuration for propbridge."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from propbridge.exceptions import PropConfigError

DEFAULT_MQTT_PORT = 1883


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def parse_broker(raw_broker: str) -> tuple[str, int]:
    """Split a broker URL (``mqtt://host:port``, ``host:port`` or ``host``)."""
    value = raw_broker.strip()
    if not value:
        raise PropConfigError("Broker value is empty")

    if "://" in value:
        value = value.split("://", 1)[1]
    if "/" in value:
        value = value.split("/", 1)[0]

    host, _, maybe_port = value.rpartition(":")
    if host and maybe_port.isdigit():
        return host, int(maybe_port)
    if host:
        raise PropConfigError(f"Invalid broker port in {raw_broker!r}")
    return value, DEFAULT_MQTT_PORT


@dataclasses.dataclass(frozen=True)
class Topics:
    """MQTT topics used by one prop."""

    status: str
    event: str
    cmd: str
    broadcast_cmd: str


@dataclasses.dataclass(frozen=True)
class PropConfig:
    """Controller configuration.

    Parameters
    ----------
    prop_id : str
        Identifier of this prop on the room bus.
    prop_name : str
        Human readable name published in status records.
    site : str
        Site segment of the topic hierarchy.
    room : str
        Room segment of the topic hierarchy.
    topic_prefix : str
        Namespace the whole topic hierarchy lives under.
    mqtt_broker : str
        Broker URL, e.g. ``mqtt://192.168.1.99:1883``.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    mqtt_reconnect_seconds : int
        Fixed delay between reconnect attempts.
    gpio_chip : str
        Hardware controller the maglock line belongs to.
    gpio_line : int
        Line driving the maglock MOSFET.
    gpioset_path : str
        Line-setting executable (libgpiod v2 ``gpioset``).
    ws_host : str
        Interface the local UI link listens on.
    ws_port : int
        Port the local UI link listens on (``0`` picks a free port).
    lock_on_start : bool
        Energize the maglock when the controller starts.
    """

    prop_id: str = "hollywood_cryptex"
    prop_name: str = "Cryptex"
    site: str = "ey1"
    room: str = "hollywood"
    topic_prefix: str = "ey"
    mqtt_broker: str = "mqtt://192.168.1.99:1883"
    mqtt_keepalive: int = 60
    mqtt_reconnect_seconds: int = 5
    gpio_chip: str = "gpiochip0"
    gpio_line: int = 17
    gpioset_path: str = "gpioset"
    ws_host: str = "0.0.0.0"
    ws_port: int = 9000
    lock_on_start: bool = True

    def __post_init__(self) -> None:
        if not self.prop_id.strip():
            raise PropConfigError("prop_id must be non-empty")
        if self.gpio_line < 0:
            raise PropConfigError(f"gpio_line must be >= 0, got {self.gpio_line}")
        if not 0 <= self.ws_port < 65536:
            raise PropConfigError(f"ws_port out of range: {self.ws_port}")
        if self.mqtt_reconnect_seconds <= 0:
            raise PropConfigError("mqtt_reconnect_seconds must be positive")
        parse_broker(self.mqtt_broker)

    @property
    def broker_address(self) -> tuple[str, int]:
        return parse_broker(self.mqtt_broker)

    @property
    def topics(self) -> Topics:
        room_base = f"{self.topic_prefix}/{self.site}/{self.room}"
        base = f"{room_base}/prop/{self.prop_id}"
        return Topics(
            status=f"{base}/status",
            event=f"{base}/event",
            cmd=f"{base}/cmd",
            broadcast_cmd=f"{room_base}/all/cmd",
        )

    @classmethod
    def from_env(cls, **overrides: Any) -> PropConfig:
        """Create configuration from environment variables.

        Reads ``MQTT_BROKER`` and the optional ``PROP_*`` variables.
        Explicit keyword arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        PropConfig
            Populated configuration.
        """
        env = os.environ

        _ENV_CONFIG_MAP = {
            "MQTT_BROKER": "mqtt_broker",
            "PROP_MQTT_BROKER": "mqtt_broker",
            "PROP_ID": "prop_id",
            "PROP_NAME": "prop_name",
            "PROP_SITE": "site",
            "PROP_ROOM": "room",
            "PROP_TOPIC_PREFIX": "topic_prefix",
            "PROP_GPIO_CHIP": "gpio_chip",
            "PROP_GPIOSET_PATH": "gpioset_path",
            "PROP_WS_HOST": "ws_host",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_INT_MAP = {
            "PROP_GPIO_LINE": "gpio_line",
            "PROP_WS_PORT": "ws_port",
            "PROP_MQTT_KEEPALIVE": "mqtt_keepalive",
            "PROP_MQTT_RECONNECT_SECONDS": "mqtt_reconnect_seconds",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is None or field_name in overrides:
                continue
            try:
                config_kwargs[field_name] = int(val)
            except ValueError as exc:
                raise PropConfigError(f"{env_key} must be an integer, got {val!r}") from exc

        if "lock_on_start" not in overrides:
            config_kwargs["lock_on_start"] = _env_bool(env.get("PROP_LOCK_ON_START"), True)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
