"""Wire messages exchanged with the backend: one JSON object per text frame."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any


class MessageDecodeError(ValueError):
    """An inbound frame could not be turned into a Message."""


@dataclass(frozen=True)
class Message:
    """Envelope with a ``type`` discriminator.

    Every other top-level key of the JSON object is carried in ``payload``
    and flattened back on encode.
    """

    type: str
    payload: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.type:
            raise ValueError("Message must have a type")

    def get(self, key: str, default: Any = None) -> Any:
        return self.payload.get(key, default)

    def to_dict(self) -> dict:
        return {**self.payload, "type": self.type}

    @classmethod
    def from_dict(cls, data: dict) -> Message:
        msg_type = data.get("type")
        if not isinstance(msg_type, str) or not msg_type:
            raise MessageDecodeError("Message is missing a string 'type' field")
        payload = {k: v for k, v in data.items() if k != "type"}
        return cls(type=msg_type, payload=payload)


def now_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def make_heartbeat(hostname: str, server_id: str | None = None) -> Message:
    """Build a fresh heartbeat; never cached so the timestamp is current."""
    return Message(
        type="heartbeat",
        payload={
            "hostname": hostname,
            "serverId": server_id or None,
            "timestamp": now_ms(),
        },
    )


def encode_message(message: Message) -> str:
    return json.dumps(message.to_dict(), default=str)


def decode_message(frame: str | bytes) -> Message:
    """Decode one inbound text (or binary UTF-8) frame.

    Raises MessageDecodeError for anything that is not a JSON object with a
    string ``type``.
    """
    if isinstance(frame, (bytes, bytearray, memoryview)):
        try:
            frame = bytes(frame).decode("utf-8")
        except UnicodeDecodeError as e:
            raise MessageDecodeError(f"Frame is not valid UTF-8: {e}") from e

    try:
        data = json.loads(frame)
    except json.JSONDecodeError as e:
        raise MessageDecodeError(f"Frame is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise MessageDecodeError(f"Expected a JSON object, got {type(data).__name__}")

    return Message.from_dict(data)
