# ============================================================================
# MES Dashboard Realtime — WebSocket Broadcaster
# ============================================================================
# Pushes equipment changes to every connected dashboard.
# Delivery is best-effort and at-most-once; there is no replay for clients
# that connect late (they get the full list on connect instead).
# ============================================================================

from fastapi import WebSocket
from typing import Any, Dict, List, Optional
import logging
from datetime import datetime

from app.errors import EntityNotFound
from app.store.engine import coerce_id, get_store
from app.store.kinds import EQUIPMENT

logger = logging.getLogger("realtime.broadcaster")

# Server -> client events
INITIAL_EQUIPMENTS = "initialEquipments"
EQUIPMENT_ADDED = "equipmentAdded"
EQUIPMENT_UPDATED = "equipmentUpdated"
EQUIPMENT_DELETED = "equipmentDeleted"
STATUS_UPDATE = "statusUpdate"

# Client -> server events
UPDATE_STATUS = "updateStatus"


def make_message(event_type: str, data: Any) -> Dict:
    return {
        "type": event_type,
        "data": data,
        "timestamp": datetime.now().isoformat(),
    }


class EquipmentBroadcaster:
    """
    Manages WebSocket connections for the equipment dashboard.

    Features:
    - Full equipment snapshot on connect
    - Broadcast of created / updated / deleted equipment
    - Direct status updates from clients, applied through the equipment store
    - Optional mirroring into the SSE fallback
    """

    def __init__(self, sse_manager=None):
        self._connections: List[WebSocket] = []
        self._sse = sse_manager

    async def connect(self, websocket: WebSocket):
        """Accept a connection and send the current equipment list."""
        await websocket.accept()
        self._connections.append(websocket)
        logger.info(f"[WS] Client connected. Total connections: {self.count_connections()}")

        equipments = get_store(EQUIPMENT.name).list()
        await self._send_to_websocket(websocket, make_message(INITIAL_EQUIPMENTS, equipments))

    def disconnect(self, websocket: WebSocket):
        if websocket in self._connections:
            self._connections.remove(websocket)
            logger.info(f"[WS] Client disconnected. Total connections: {self.count_connections()}")

    def count_connections(self) -> int:
        return len(self._connections)

    # ---- Core Send/Broadcast ----

    async def _send_to_websocket(self, ws: WebSocket, message: Dict) -> bool:
        try:
            await ws.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"[WS] Send failed: {e}")
            return False

    async def broadcast(self, event_type: str, data: Any) -> int:
        """Send an event to all connections. Returns the number delivered."""
        message = make_message(event_type, data)

        sent_count = 0
        failed_connections = []
        for ws in list(self._connections):
            if await self._send_to_websocket(ws, message):
                sent_count += 1
            else:
                failed_connections.append(ws)

        for ws in failed_connections:
            self.disconnect(ws)

        if self._sse is not None:
            await self._sse.broadcast_event(event_type, data)

        return sent_count

    # ---- Equipment events ----

    async def equipment_added(self, equipment: Dict) -> int:
        return await self.broadcast(EQUIPMENT_ADDED, equipment)

    async def equipment_updated(self, equipment: Dict) -> int:
        return await self.broadcast(EQUIPMENT_UPDATED, equipment)

    async def equipment_deleted(self, equipment_id: int) -> int:
        return await self.broadcast(EQUIPMENT_DELETED, equipment_id)

    async def apply_status_update(self, equipment_id: Any, status: Any, user: Optional[str] = None) -> bool:
        """
        Apply a status pushed by a client.

        Goes through the equipment store so the change is persisted and
        recorded in history. Unknown ids are ignored.
        """
        parsed = coerce_id(equipment_id)
        if parsed is None:
            logger.debug(f"[WS] updateStatus ignored, bad id {equipment_id!r}")
            return False
        equipment_id = parsed
        if status is None:
            logger.debug(f"[WS] updateStatus ignored for {equipment_id}, no status")
            return False

        try:
            get_store(EQUIPMENT.name).update(equipment_id, {"status": status, "user": user})
        except EntityNotFound:
            logger.debug(f"[WS] updateStatus ignored, unknown equipment {equipment_id}")
            return False

        await self.broadcast(STATUS_UPDATE, {"id": equipment_id, "status": status})
        return True

    # ---- WebSocket Message Handler ----

    async def handle_client_message(self, websocket: WebSocket, data: Dict):
        """Route an incoming message from a client."""
        if not isinstance(data, dict):
            logger.debug(f"[WS] Ignoring non-object message: {data!r}")
            return

        msg_type = data.get("type")
        payload = data.get("data")
        if not isinstance(payload, dict):
            payload = data

        if msg_type == UPDATE_STATUS:
            await self.apply_status_update(payload.get("id"), payload.get("status"), payload.get("user"))

        elif msg_type == "ping":
            await self._send_to_websocket(websocket, make_message("pong", None))

        else:
            logger.debug(f"[WS] Unknown message type: {msg_type}")


# Singleton instance
_broadcaster = None


def get_broadcaster() -> EquipmentBroadcaster:
    """Get or create the singleton broadcaster instance."""
    global _broadcaster
    if _broadcaster is None:
        from .sse import get_sse_manager
        _broadcaster = EquipmentBroadcaster(get_sse_manager())
    return _broadcaster


def reset_broadcaster() -> EquipmentBroadcaster:
    """Drop all connections and start a fresh broadcaster (app startup)."""
    global _broadcaster
    _broadcaster = None
    return get_broadcaster()
