"""Command-line entry point: ``propbridge`` / ``python -m propbridge``."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from typing import Any

from propbridge.config import PropConfig
from propbridge.controller import run
from propbridge.exceptions import PropConfigError


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Escape-room prop controller bridging a touch UI, MQTT and a maglock.",
    )
    parser.add_argument("--broker", help="MQTT broker URL (default: $MQTT_BROKER).")
    parser.add_argument("--prop-id", help="Prop identifier on the room bus.")
    parser.add_argument("--prop-name", help="Human readable prop name.")
    parser.add_argument("--site", help="Site segment of the topic hierarchy.")
    parser.add_argument("--room", help="Room segment of the topic hierarchy.")
    parser.add_argument("--gpio-chip", help="GPIO chip driving the maglock.")
    parser.add_argument("--gpio-line", type=int, help="GPIO line driving the maglock.")
    parser.add_argument("--ws-port", type=int, help="Local UI WebSocket port.")
    parser.add_argument(
        "--no-lock-on-start",
        action="store_true",
        help="Leave the maglock untouched at start-up.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args(argv)


def _overrides(args: argparse.Namespace) -> dict[str, Any]:
    mapping = {
        "broker": "mqtt_broker",
        "prop_id": "prop_id",
        "prop_name": "prop_name",
        "site": "site",
        "room": "room",
        "gpio_chip": "gpio_chip",
        "gpio_line": "gpio_line",
        "ws_port": "ws_port",
    }
    overrides: dict[str, Any] = {}
    for arg_name, field_name in mapping.items():
        value = getattr(args, arg_name)
        if value is not None:
            overrides[field_name] = value
    if args.no_lock_on_start:
        overrides["lock_on_start"] = False
    return overrides


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = PropConfig.from_env(**_overrides(args))
    except PropConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return 2

    asyncio.run(run(config))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
