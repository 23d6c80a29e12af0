"""Data models for propbridge state and wire messages."""

from propbridge.models.messages import (
    CommandMessage,
    EventMessage,
    StatusMessage,
    UiInboundMessage,
    UiPushMessage,
    UiStateMessage,
    now_ms,
    parse_command,
    parse_ui_message,
)
from propbridge.models.state import ChangeSource, PropAction, PropCommand, PuzzleState, StateChange

__all__ = [
    "ChangeSource",
    "CommandMessage",
    "EventMessage",
    "PropAction",
    "PropCommand",
    "PuzzleState",
    "StateChange",
    "StatusMessage",
    "UiInboundMessage",
    "UiPushMessage",
    "UiStateMessage",
    "now_ms",
    "parse_command",
    "parse_ui_message",
]
