"""
MES Dashboard Realtime — WebSocket and SSE endpoints
"""
import json
import logging

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import StreamingResponse

from app import config
from app.store.engine import get_store
from app.store.kinds import EQUIPMENT

from .broadcaster import get_broadcaster
from .sse import sse_event_generator

logger = logging.getLogger("realtime.routes")


def register_realtime_routes(app: FastAPI):
    """Register the live equipment channel (WebSocket + SSE fallback)."""

    async def equipment_socket(websocket: WebSocket):
        broadcaster = get_broadcaster()
        await broadcaster.connect(websocket)
        try:
            while True:
                text = await websocket.receive_text()
                try:
                    data = json.loads(text)
                except ValueError:
                    logger.debug(f"[WS] Ignoring malformed frame: {text[:200]!r}")
                    continue
                await broadcaster.handle_client_message(websocket, data)
        except WebSocketDisconnect:
            broadcaster.disconnect(websocket)
        except Exception as e:
            logger.warning(f"[WS] Connection error: {e}")
            broadcaster.disconnect(websocket)

    app.add_api_websocket_route("/ws", equipment_socket)
    app.add_api_websocket_route("/socket", equipment_socket)

    @app.get("/api/equipments/events")
    async def equipment_events():
        """SSE stream of equipment events."""
        store = get_store(EQUIPMENT.name)
        return StreamingResponse(
            sse_event_generator(store.list, config.get_config("sse_keepalive_seconds", 30)),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache"},
        )

    logger.info("[Realtime] Routes registered")
