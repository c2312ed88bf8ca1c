# ============================================================================
# MES Dashboard Realtime — Server-Sent Events Fallback
# ============================================================================
# Same event feed as the WebSocket channel, for viewers that cannot open one.
# Receive-only: status pushes still go through the WebSocket.
# ============================================================================

import asyncio
import itertools
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger("realtime.sse")


class SSEManager:
    """One event queue per subscribed viewer."""

    def __init__(self):
        self._queues: Dict[int, asyncio.Queue] = {}
        self._ids = itertools.count(1)

    def subscribe(self) -> int:
        subscriber_id = next(self._ids)
        self._queues[subscriber_id] = asyncio.Queue()
        return subscriber_id

    def unsubscribe(self, subscriber_id: int):
        self._queues.pop(subscriber_id, None)

    def get_queue(self, subscriber_id: int) -> Optional[asyncio.Queue]:
        return self._queues.get(subscriber_id)

    def count_subscribers(self) -> int:
        return len(self._queues)

    async def send_event(self, subscriber_id: int, event_type: str, data: Any):
        queue = self._queues.get(subscriber_id)
        if queue:
            await queue.put({
                "event": event_type,
                "data": data,
                "timestamp": datetime.now().isoformat(),
            })

    async def broadcast_event(self, event_type: str, data: Any, exclude: List[int] = None):
        exclude = exclude or []
        for subscriber_id in list(self._queues.keys()):
            if subscriber_id not in exclude:
                await self.send_event(subscriber_id, event_type, data)


# Singleton SSE manager
_sse_manager = None


def get_sse_manager() -> SSEManager:
    global _sse_manager
    if _sse_manager is None:
        _sse_manager = SSEManager()
    return _sse_manager


def reset_sse_manager() -> SSEManager:
    global _sse_manager
    _sse_manager = None
    return get_sse_manager()


def format_event(event_type: str, data: Any) -> str:
    return f"event: {event_type}\ndata: {json.dumps(data, ensure_ascii=False)}\n\n"


async def sse_event_generator(snapshot: Callable[[], List[Dict]], keepalive_seconds: float = 30):
    """
    Async generator for SSE frames.

    Subscribes before taking the initialEquipments snapshot, then relays
    broadcasts. Sends a keepalive comment after keepalive_seconds without events.
    """
    manager = get_sse_manager()
    subscriber_id = manager.subscribe()
    queue = manager.get_queue(subscriber_id)
    logger.info(f"[SSE] Subscriber {subscriber_id} connected")

    try:
        yield format_event("initialEquipments", snapshot())
        while True:
            try:
                event = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
                yield format_event(event["event"], event["data"])
            except asyncio.TimeoutError:
                yield ": keepalive\n\n"
    finally:
        manager.unsubscribe(subscriber_id)
        logger.info(f"[SSE] Subscriber {subscriber_id} disconnected")
