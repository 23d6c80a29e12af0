"""Wire messages for the room bus and the local UI link.

Inbound payloads come from peers we do not control.  The ``parse_*``
helpers turn anything unexpected into :class:`ProtocolError`, which the
channel boundaries catch and drop.
"""

from __future__ import annotations

import json
import time
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from propbridge.exceptions import ProtocolError
from propbridge.models.state import ChangeSource, PropAction, PuzzleState


def now_ms() -> int:
    """Current epoch timestamp in milliseconds."""
    return int(time.time() * 1000)


class _WireModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
    )

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Bus
# ---------------------------------------------------------------------------


class StatusMessage(_WireModel):
    """Retained presence/state record."""

    type: Literal["status"] = "status"
    prop_id: str = Field(alias="propId")
    name: str
    online: bool
    solved: bool
    override: bool
    timestamp: int = Field(default_factory=now_ms)
    last_change_source: ChangeSource | None = Field(default=None, alias="lastChangeSource")

    @classmethod
    def online_from(cls, prop_id: str, name: str, state: PuzzleState) -> StatusMessage:
        return cls(
            prop_id=prop_id,
            name=name,
            online=True,
            solved=state.solved,
            override=state.override,
            last_change_source=state.last_change_source,
        )

    @classmethod
    def offline(cls, prop_id: str, name: str) -> StatusMessage:
        """Last-will payload registered with the broker at connect time."""
        return cls(prop_id=prop_id, name=name, online=False, solved=False, override=False)


class EventMessage(_WireModel):
    """Non-retained record of one discrete action."""

    type: Literal["event"] = "event"
    prop_id: str = Field(alias="propId")
    action: PropAction
    source: ChangeSource
    timestamp: int = Field(default_factory=now_ms)


class CommandMessage(_WireModel):
    """Inbound GM command.

    ``command`` is kept as a free string so unknown commands survive
    parsing and can be logged by the bridge.
    """

    type: Literal["cmd"]
    prop_id: str | None = Field(default=None, alias="propId")
    command: str
    params: Any = None

    @field_validator("prop_id", mode="before")
    @classmethod
    def _empty_prop_id_is_broadcast(cls, value: Any) -> Any:
        if value == "":
            return None
        return value

    def is_addressed_to(self, prop_id: str) -> bool:
        return self.prop_id is None or self.prop_id == prop_id


# ---------------------------------------------------------------------------
# Local UI link
# ---------------------------------------------------------------------------


class UiStateMessage(_WireModel):
    """Snapshot sent to the UI as soon as it connects."""

    type: Literal["state"] = "state"
    solved: bool
    override: bool

    @classmethod
    def from_state(cls, state: PuzzleState) -> UiStateMessage:
        return cls(solved=state.solved, override=state.override)


class UiPushMessage(_WireModel):
    """Out-of-band nudge for GM-originated transitions."""

    type: Literal["force_solve", "reset"]


class UiInboundMessage(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str


def _load_object(payload: bytes | str, channel: str) -> dict[str, Any]:
    try:
        decoded = json.loads(payload)
    except (UnicodeDecodeError, ValueError) as exc:
        raise ProtocolError(f"payload is not JSON: {exc}", channel=channel) from exc
    except RecursionError as exc:
        raise ProtocolError("payload nests too deeply", channel=channel) from exc
    if not isinstance(decoded, dict):
        raise ProtocolError("payload is not a JSON object", channel=channel)
    return decoded


def parse_command(payload: bytes | str) -> CommandMessage:
    """Parse a bus command payload or raise :class:`ProtocolError`."""
    data = _load_object(payload, "bus")
    try:
        return CommandMessage.model_validate(data)
    except ValidationError as exc:
        raise ProtocolError(f"invalid command: {exc.error_count()} error(s)", channel="bus") from exc


def parse_ui_message(payload: bytes | str) -> UiInboundMessage:
    """Parse a local-link frame or raise :class:`ProtocolError`."""
    data = _load_object(payload, "ui")
    try:
        return UiInboundMessage.model_validate(data)
    except ValidationError as exc:
        raise ProtocolError("UI message without a string type", channel="ui") from exc
