"""
MES Dashboard — Realtime Tests
===============================
Tests: WebSocket feed (snapshot, fan-out, direct status), broadcaster, SSE fallback
"""

import asyncio
import pytest
from tests.conftest import FakeWebSocket, find_by_id, read_document

from app.realtime.broadcaster import EquipmentBroadcaster, make_message
from app.realtime.sse import SSEManager, get_sse_manager, sse_event_generator


def _create_equipment(client, name="Feeder"):
    resp = client.post("/api/equipments", json={"name": name, "iconUrl": "f.png", "x": 1, "y": 1})
    assert resp.status_code == 201
    return resp.json()


def _ping(ws):
    """Round-trip a ping; proves nothing else was queued ahead of it."""
    ws.send_json({"type": "ping"})
    msg = ws.receive_json()
    assert msg["type"] == "pong", f"unexpected event before pong: {msg}"


# ============================================================================
# WEBSOCKET FEED (through the app)
# ============================================================================

class TestWebSocketFeed:

    def test_initial_snapshot_first(self, client):
        _create_equipment(client, "Snapshot")
        expected = client.get("/api/equipments").json()
        with client.websocket_connect("/ws") as ws:
            msg = ws.receive_json()
            assert msg["type"] == "initialEquipments"
            assert msg["data"] == expected
            _ping(ws)

    def test_socket_alias(self, client):
        with client.websocket_connect("/socket") as ws:
            assert ws.receive_json()["type"] == "initialEquipments"

    def test_rest_mutations_are_broadcast(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()

            eq = _create_equipment(client, "Broadcasted")
            msg = ws.receive_json()
            assert msg["type"] == "equipmentAdded"
            assert msg["data"] == eq

            updated = client.put(f"/api/equipments/{eq['id']}", json={"status": "running"}).json()
            msg = ws.receive_json()
            assert msg["type"] == "equipmentUpdated"
            assert msg["data"] == updated

            client.delete(f"/api/equipments/{eq['id']}")
            msg = ws.receive_json()
            assert msg["type"] == "equipmentDeleted"
            assert msg["data"] == eq["id"]

    def test_failed_update_is_not_broadcast(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            assert client.put("/api/equipments/42", json={"status": "x"}).status_code == 404
            _ping(ws)

    def test_process_and_line_mutations_are_not_broadcast(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            stage = client.post("/api/processTitles", json={"title": "Quiet", "x": 0, "y": 0}).json()
            client.put(f"/api/processTitles/{stage['id']}", json={"yield": 90})
            client.post("/api/lineNames", json={"name": "Quiet line", "x": 0, "y": 0})
            _ping(ws)

    def test_direct_status_update(self, client):
        eq = _create_equipment(client, "Direct")
        with client.websocket_connect("/ws") as watcher, client.websocket_connect("/ws") as sender:
            watcher.receive_json()
            sender.receive_json()

            sender.send_json({"type": "updateStatus", "data": {"id": eq["id"], "status": "alarm", "user": "bob"}})
            for ws in (sender, watcher):
                msg = ws.receive_json()
                assert msg["type"] == "statusUpdate"
                assert msg["data"] == {"id": eq["id"], "status": "alarm"}

        stored = find_by_id(client.get("/api/equipments").json(), eq["id"])
        assert stored["status"] == "alarm"
        assert stored["history"][-1]["value"] == "alarm"
        assert stored["history"][-1]["user"] == "bob"
        assert find_by_id(read_document("equipments.json"), eq["id"])["status"] == "alarm"

    def test_direct_status_flat_message(self, client):
        eq = _create_equipment(client, "Flat")
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "updateStatus", "id": eq["id"], "status": "running"})
            msg = ws.receive_json()
            assert msg["type"] == "statusUpdate"
        stored = find_by_id(client.get("/api/equipments").json(), eq["id"])
        assert stored["history"][-1]["user"] == "unknown"

    def test_direct_status_unknown_id_ignored(self, client):
        before = client.get("/api/equipments").json()
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "updateStatus", "data": {"id": 12345, "status": "running"}})
            ws.send_json({"type": "updateStatus", "data": {"id": "not-a-number", "status": "running"}})
            ws.send_json({"type": "unknownEvent"})
            _ping(ws)
        assert client.get("/api/equipments").json() == before

    def test_malformed_frame_keeps_connection(self, client):
        eq = _create_equipment(client, "Garbled")
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_text("{not json")
            ws.send_text("")
            _ping(ws)
            ws.send_json({"type": "updateStatus", "data": {"id": eq["id"], "status": "running"}})
            assert ws.receive_json()["type"] == "statusUpdate"

    def test_direct_status_fractional_id_ignored(self, client):
        eq = _create_equipment(client, "Fraction")
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.send_json({"type": "updateStatus", "data": {"id": eq["id"] + 0.5, "status": "alarm"}})
            _ping(ws)
        assert find_by_id(client.get("/api/equipments").json(), eq["id"])["status"] == "idle"


# ============================================================================
# BROADCASTER (unit)
# ============================================================================

class TestBroadcaster:

    def test_connect_sends_snapshot(self, isolated_stores):
        isolated_stores["equipment"].create({"name": "A", "iconUrl": "a.png", "x": 0, "y": 0})
        bc = EquipmentBroadcaster()
        ws = FakeWebSocket()
        asyncio.run(bc.connect(ws))
        assert ws.accepted
        assert ws.types() == ["initialEquipments"]
        assert ws.sent[0]["data"] == isolated_stores["equipment"].list()
        assert bc.count_connections() == 1

    def test_broadcast_drops_failed_connections(self, isolated_stores):
        bc = EquipmentBroadcaster()
        good, bad = FakeWebSocket(), FakeWebSocket()

        async def scenario():
            await bc.connect(good)
            await bc.connect(bad)
            bad.fail = True
            return await bc.equipment_deleted(7)

        assert asyncio.run(scenario()) == 1
        assert bc.count_connections() == 1
        assert good.types() == ["initialEquipments", "equipmentDeleted"]
        assert good.sent[-1]["data"] == 7

    def test_status_update_goes_through_store(self, isolated_stores):
        store = isolated_stores["equipment"]
        eq = store.create({"name": "M", "iconUrl": "m.png", "x": 0, "y": 0})
        bc = EquipmentBroadcaster()
        ws = FakeWebSocket()

        async def scenario():
            await bc.connect(ws)
            ok = await bc.apply_status_update(eq["id"], "running", "carol")
            missing = await bc.apply_status_update(eq["id"] + 1, "running")
            no_status = await bc.apply_status_update(eq["id"], None)
            return ok, missing, no_status

        assert asyncio.run(scenario()) == (True, False, False)
        assert ws.types() == ["initialEquipments", "statusUpdate"]
        stored = store.get(eq["id"])
        assert stored["status"] == "running"
        assert len(stored["history"]) == 1
        assert stored["history"][0]["user"] == "carol"

    def test_status_update_rejects_non_integral_ids(self, isolated_stores):
        store = isolated_stores["equipment"]
        eq = store.create({"name": "N", "iconUrl": "n.png", "x": 0, "y": 0})
        bc = EquipmentBroadcaster()

        async def scenario():
            bad = [await bc.apply_status_update(raw, "alarm")
                   for raw in (eq["id"] + 0.7, float("inf"), float("nan"), True, "x")]
            ok = await bc.apply_status_update(str(eq["id"]), "running")
            return bad, ok

        bad, ok = asyncio.run(scenario())
        assert bad == [False] * 5
        assert ok is True
        stored = store.get(eq["id"])
        assert stored["status"] == "running"
        assert [h["value"] for h in stored["history"]] == ["running"]

    def test_broadcast_mirrors_to_sse(self, isolated_stores):
        sse = SSEManager()
        bc = EquipmentBroadcaster(sse)

        async def scenario():
            sub = sse.subscribe()
            await bc.broadcast("equipmentAdded", {"id": 1})
            return await sse.get_queue(sub).get()

        event = asyncio.run(scenario())
        assert event["event"] == "equipmentAdded"
        assert event["data"] == {"id": 1}

    def test_disconnect_is_idempotent(self, isolated_stores):
        bc = EquipmentBroadcaster()
        ws = FakeWebSocket()
        asyncio.run(bc.connect(ws))
        bc.disconnect(ws)
        bc.disconnect(ws)
        assert bc.count_connections() == 0

    def test_message_envelope(self):
        msg = make_message("statusUpdate", {"id": 1, "status": "idle"})
        assert msg["type"] == "statusUpdate"
        assert msg["data"] == {"id": 1, "status": "idle"}
        assert "timestamp" in msg


# ============================================================================
# SSE FALLBACK
# ============================================================================

class TestSSE:

    def test_stream_starts_with_snapshot_then_relays(self):
        async def scenario():
            gen = sse_event_generator(lambda: [{"id": 1}], keepalive_seconds=5)
            first = await gen.__anext__()
            await get_sse_manager().broadcast_event("equipmentDeleted", 1)
            second = await gen.__anext__()
            subscribers = get_sse_manager().count_subscribers()
            await gen.aclose()
            return first, second, subscribers

        first, second, subscribers = asyncio.run(scenario())
        assert first == 'event: initialEquipments\ndata: [{"id": 1}]\n\n'
        assert second == "event: equipmentDeleted\ndata: 1\n\n"
        assert subscribers >= 1

    def test_keepalive(self):
        async def scenario():
            gen = sse_event_generator(lambda: [], keepalive_seconds=0.01)
            await gen.__anext__()
            frame = await gen.__anext__()
            await gen.aclose()
            return frame

        assert asyncio.run(scenario()) == ": keepalive\n\n"

    def test_unsubscribe_on_close(self):
        manager = get_sse_manager()
        before = manager.count_subscribers()

        async def scenario():
            gen = sse_event_generator(lambda: [], keepalive_seconds=5)
            await gen.__anext__()
            await gen.aclose()

        asyncio.run(scenario())
        assert manager.count_subscribers() == before
