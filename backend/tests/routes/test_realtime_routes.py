import json

from greycat.routes.realtime import handle_client_frame
from greycat.services.messaging.hub import BroadcastHub, WebSocketConnection


class TestClientFrames:
    def setup_method(self):
        self.hub = BroadcastHub()
        self.connection = self.hub.register(WebSocketConnection())

    def _send(self, frame):
        raw = frame if isinstance(frame, str) else json.dumps(frame)
        return handle_client_frame(self.hub, self.connection, raw)

    def test_join_and_leave_room(self):
        joined = self._send({"event": "joinRoom", "channelId": "c1"})
        assert joined == {"event": "roomJoined", "data": {"channelId": "c1"}}
        assert self.hub.topics_for(self.connection.id) == {"c1"}

        left = self._send({"event": "leaveRoom", "channelId": "c1"})
        assert left == {"event": "roomLeft", "data": {"channelId": "c1"}}
        assert self.hub.topics_for(self.connection.id) == set()

    def test_invalid_frames_get_error_replies(self):
        assert self._send("{not json")["event"] == "error"
        assert self._send(["joinRoom"])["event"] == "error"
        assert self._send({"event": "dance", "channelId": "c1"})["event"] == "error"
        assert self._send({"event": "joinRoom"})["event"] == "error"
        assert self.hub.topics_for(self.connection.id) == set()


def test_websocket_subscriber_receives_channel_events(client, public_channel, alice, auth_headers):
    channel_id = public_channel["id"]

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "joinRoom", "channelId": channel_id})
        assert ws.receive_json() == {"event": "roomJoined", "data": {"channelId": channel_id}}

        sent = client.post(
            f"/channels/{channel_id}/messages", json={"text": "live"}, headers=auth_headers(alice)
        ).json()["message"]
        frame = ws.receive_json()
        assert frame["event"] == "new_message"
        assert frame["data"]["id"] == sent["id"]

        client.delete(f"/messages/{sent['id']}", headers=auth_headers(alice))
        frame = ws.receive_json()
        assert frame == {
            "event": "message_deleted",
            "data": {"msgId": sent["id"], "channelId": channel_id, "soft": False},
        }


def test_websocket_leave_room_stops_delivery(client, app, public_channel):
    channel_id = public_channel["id"]

    with client.websocket_connect("/ws") as ws:
        ws.send_json({"event": "joinRoom", "channelId": channel_id})
        ws.receive_json()
        ws.send_json({"event": "leaveRoom", "channelId": channel_id})
        assert ws.receive_json()["event"] == "roomLeft"

        assert app.state.hub.subscribers(channel_id) == set()


def test_stream_of_missing_channel_is_404(client):
    response = client.get("/channels/does-not-exist/stream")

    assert response.status_code == 404
    assert response.json()["success"] is False
