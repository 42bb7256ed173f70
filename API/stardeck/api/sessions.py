import asyncio
from typing import Type, TypeVar

from fastapi import WebSocket
from pydantic import BaseModel, ValidationError

from stardeck.domain.errors import ProtocolError

M = TypeVar("M", bound=BaseModel)

# RFC 6455 "unsupported data"
CLOSE_PROTOCOL_ERROR = 1003


async def receive_model(websocket: WebSocket, model: Type[M]) -> M:
    """Read the opening message of a session and parse it as ``model``."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise ProtocolError("connection closed before the request was sent")
    payload = message.get("text")
    if payload is None:
        payload = message.get("bytes") or b""
    try:
        return model.model_validate_json(payload)
    except ValidationError as e:
        raise ProtocolError(f"Invalid {model.__name__}: {e.error_count()} error(s)") from e


async def watch_disconnect(websocket: WebSocket, cancelled: asyncio.Event) -> None:
    """Set ``cancelled`` once the observer goes away. Further client messages are ignored."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            cancelled.set()
            return
