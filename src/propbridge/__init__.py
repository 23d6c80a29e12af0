"""propbridge - Escape-room prop controller bridging UI, MQTT and a maglock."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("propbridge")
except PackageNotFoundError:
    __version__ = "0+local"
from propbridge.actuator import ActuationResult, Actuator, GpiosetActuator
from propbridge.bus import BusBridge
from propbridge.config import PropConfig, Topics
from propbridge.controller import PropController, run
from propbridge.exceptions import ActuationError, PropConfigError, PropError, ProtocolError
from propbridge.locallink import LocalLink, SessionSlot
from propbridge.models import ChangeSource, PropAction, PropCommand, PuzzleState, StateChange
from propbridge.router import Router
from propbridge.state import StateStore

__all__ = [
    "__version__",
    "ActuationError",
    "ActuationResult",
    "Actuator",
    "BusBridge",
    "ChangeSource",
    "GpiosetActuator",
    "LocalLink",
    "PropAction",
    "PropCommand",
    "PropConfig",
    "PropConfigError",
    "PropController",
    "PropError",
    "ProtocolError",
    "PuzzleState",
    "Router",
    "SessionSlot",
    "StateChange",
    "StateStore",
    "Topics",
    "run",
]
