"""JSON-RPC 2.0 message types and their wire encoding."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from acp_bridge.errors import InvalidMessageError

JSONRPC_VERSION = "2.0"

MessageId = Union[int, str]


@dataclass
class Request:
    """A call that expects exactly one response with the same id."""

    id: MessageId
    method: str
    params: Any = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": self.id, "method": self.method}
        if self.params is not None:
            d["params"] = self.params
        return d


@dataclass
class Notification:
    """A one-way message, never answered."""

    method: str
    params: Any = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "method": self.method}
        if self.params is not None:
            d["params"] = self.params
        return d


@dataclass
class Response:
    """Reply to a request: either a result or an error object."""

    id: MessageId | None
    result: Any = None
    error: dict[str, Any] | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"jsonrpc": JSONRPC_VERSION, "id": self.id}
        if self.error is not None:
            d["error"] = self.error
        else:
            d["result"] = self.result
        return d


Message = Union[Request, Notification, Response]


class StreamDirection(str, Enum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"


@dataclass(frozen=True)
class StreamEvent:
    """A frame seen by the connection, passed to observers."""

    direction: StreamDirection
    message: dict[str, Any]


def _valid_id(value: Any) -> bool:
    return isinstance(value, (int, str)) and not isinstance(value, bool)


def decode_message(data: Any) -> Message:
    """Classify a parsed JSON value as a request, notification, or response.

    Raises:
        InvalidMessageError: The value is none of the three. ``message_id`` is
            set when the value carried a usable id, so the caller can answer.
    """
    if not isinstance(data, dict):
        raise InvalidMessageError(f"Expected a JSON object, got {type(data).__name__}")

    raw_id = data.get("id")
    message_id = raw_id if _valid_id(raw_id) else None

    if "method" in data:
        method = data["method"]
        if not isinstance(method, str) or not method:
            raise InvalidMessageError("Method must be a non-empty string", message_id)
        if raw_id is None:
            return Notification(method=method, params=data.get("params"))
        if message_id is None:
            raise InvalidMessageError("Request id must be a string or integer")
        return Request(id=message_id, method=method, params=data.get("params"))

    if "result" in data or "error" in data:
        error = data.get("error")
        if error is not None and not isinstance(error, dict):
            raise InvalidMessageError("Error must be an object", message_id)
        if message_id is None and error is None:
            raise InvalidMessageError("Response without a valid id")
        return Response(id=message_id, result=data.get("result"), error=error)

    raise InvalidMessageError("Not a request, response, or notification", message_id)


def encode_message(message: Message | dict[str, Any]) -> bytes:
    """Serialize to one compact JSON line terminated by a newline."""
    data = message if isinstance(message, dict) else message.to_dict()
    return (json.dumps(data, separators=(",", ":"), ensure_ascii=False) + "\n").encode("utf-8")
