"""JSON-RPC 2.0 framing for the local control socket (one JSON object per line)."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INTERNAL_ERROR = -32603


class ControlProtocolError(ValueError):
    """A control socket line is not a usable JSON-RPC message."""


@dataclass(frozen=True)
class ControlRequest:
    method: str
    params: dict[str, Any] = field(default_factory=dict)
    id: int | str | None = None

    @property
    def is_notification(self) -> bool:
        return self.id is None

    def to_dict(self) -> dict:
        d: dict = {"jsonrpc": "2.0", "method": self.method, "params": self.params}
        if self.id is not None:
            d["id"] = self.id
        return d


@dataclass(frozen=True)
class ControlResponse:
    id: int | str | None = None
    result: Any = None
    error: dict | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict:
        d: dict = {"jsonrpc": "2.0", "id": self.id}
        if self.error is not None:
            d["error"] = self.error
        else:
            d["result"] = self.result
        return d

    @classmethod
    def failure(cls, id: int | str | None, code: int, message: str) -> ControlResponse:
        return cls(id=id, error={"code": code, "message": message})


def encode_line(msg: ControlRequest | ControlResponse) -> bytes:
    return json.dumps(msg.to_dict(), default=str).encode() + b"\n"


def decode_line(line: bytes) -> ControlRequest | ControlResponse:
    try:
        data = json.loads(line)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ControlProtocolError(f"Parse error: {e}") from e

    if not isinstance(data, dict):
        raise ControlProtocolError("Expected a JSON object")

    if "method" in data:
        if not isinstance(data["method"], str):
            raise ControlProtocolError("'method' must be a string")
        params = data.get("params") or {}
        if not isinstance(params, dict):
            raise ControlProtocolError("'params' must be an object")
        return ControlRequest(method=data["method"], params=params, id=data.get("id"))

    return ControlResponse(
        id=data.get("id"),
        result=data.get("result"),
        error=data.get("error"),
    )
