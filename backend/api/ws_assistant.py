# backend/api/ws_assistant.py
import json
import logging
from functools import partial
from typing import Any, Dict

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from api.deps import get_registry
from services.connection_registry import ConnectionRegistry

log = logging.getLogger(__name__)

router = APIRouter()


async def send_json_safe(ws: WebSocket, payload: Dict[str, Any]) -> None:
    try:
        await ws.send_json(payload)
    except (RuntimeError, WebSocketDisconnect):
        # connection is probably closed
        pass


def parse_frame(raw: str):
    """`{"event": str, "data": {...}}` -> (event, data). Raises ValueError on anything else."""
    frame = json.loads(raw)
    if not isinstance(frame, dict):
        raise ValueError("frame must be a JSON object")
    event = frame.get("event")
    if not isinstance(event, str) or not event:
        raise ValueError("frame is missing 'event'")
    data = frame.get("data")
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError("'data' must be a JSON object")
    return event, data


@router.websocket("/ws")
async def assistant_ws(
    websocket: WebSocket,
    registry: ConnectionRegistry = Depends(get_registry),
):
    await websocket.accept()
    handle = await registry.connect(partial(send_json_safe, websocket))

    try:
        while True:
            raw = await websocket.receive_text()
            orchestrator = registry.get(handle)
            if orchestrator is None:
                break
            try:
                event, data = parse_frame(raw)
            except ValueError as e:
                registry.submit(handle, partial(orchestrator.reject, f"Malformed frame: {e}"))
                continue
            registry.submit(handle, partial(orchestrator.handle, event, data))
    except WebSocketDisconnect:
        pass
    finally:
        await registry.disconnect(handle)
