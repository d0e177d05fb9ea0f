from contextlib import ExitStack

import pytest
from starlette.websockets import WebSocketDisconnect


def ws_url(token):
    return f"/api/ws/chat?token={token}"


def test_connect_requires_valid_token(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/api/ws/chat"):
            pass
    assert exc_info.value.code == 1008

    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect(ws_url("not-a-token")):
            pass


def test_presence_is_broadcast_on_connect_and_disconnect(client, alice, bob):
    alice_user, _, alice_token = alice
    bob_user, _, bob_token = bob

    with client.websocket_connect(ws_url(bob_token)) as bob_ws:
        assert bob_ws.receive_json() == {"type": "getOnlineUsers", "data": [bob_user["_id"]]}

        with client.websocket_connect(ws_url(alice_token)) as alice_ws:
            online = {"type": "getOnlineUsers", "data": [bob_user["_id"], alice_user["_id"]]}
            assert alice_ws.receive_json() == online
            assert bob_ws.receive_json() == online

            assert client.get("/api/ws/online-users").json() == {
                "online_users": [bob_user["_id"], alice_user["_id"]],
                "count": 2,
            }

        assert bob_ws.receive_json() == {"type": "getOnlineUsers", "data": [bob_user["_id"]]}


def test_connected_receiver_gets_new_message(client, alice, bob):
    alice_user, alice_headers, _ = alice
    bob_user, _, bob_token = bob

    with client.websocket_connect(ws_url(bob_token)) as bob_ws:
        bob_ws.receive_json()

        data = client.post(
            f"/api/messages/send/{bob_user['_id']}", json={"text": "hi"}, headers=alice_headers
        ).json()

        frame = bob_ws.receive_json()
        assert frame["type"] == "newMessage"
        assert frame["data"]["text"] == "hi"
        assert frame["data"]["senderId"] == alice_user["_id"]
        assert frame["data"]["_id"] == data["newMessage"]["_id"]


def test_deletions_are_pushed_to_counterpart(client, alice, bob):
    alice_user, alice_headers, _ = alice
    bob_user, _, bob_token = bob

    sent = client.post(
        f"/api/messages/send/{bob_user['_id']}", json={"text": "soon gone"}, headers=alice_headers
    ).json()["newMessage"]

    with client.websocket_connect(ws_url(bob_token)) as bob_ws:
        bob_ws.receive_json()

        client.request(
            "DELETE",
            f"/api/messages/delete-message/{sent['_id']}",
            json={"userId": alice_user["_id"]},
            headers=alice_headers,
        )
        assert bob_ws.receive_json() == {"type": "messageDeleted", "data": {"messageId": sent["_id"]}}

        client.delete(f"/api/messages/delete-messages/{bob_user['_id']}", headers=alice_headers)
        assert bob_ws.receive_json() == {"type": "messagesDeleted", "data": {"by": alice_user["_id"]}}


def test_client_deletion_notice_is_relayed(client, alice, bob):
    _, _, alice_token = alice
    bob_user, _, bob_token = bob

    with client.websocket_connect(ws_url(bob_token)) as bob_ws:
        bob_ws.receive_json()
        with client.websocket_connect(ws_url(alice_token)) as alice_ws:
            alice_ws.receive_json()
            bob_ws.receive_json()

            alice_ws.send_json({"action": "deleteMessage", "data": {"messageId": 7, "receiverId": bob_user["_id"]}})
            assert bob_ws.receive_json() == {"type": "messageDeleted", "data": {"messageId": 7}}


def test_ping_unknown_and_malformed_frames(client, alice):
    _, _, token = alice

    with client.websocket_connect(ws_url(token)) as ws:
        ws.receive_json()

        ws.send_json({"action": "ping"})
        assert ws.receive_json() == {"type": "pong", "data": None}

        ws.send_json({"action": "dance", "data": {}})
        assert ws.receive_json() == {"type": "error", "data": {"message": "Unknown action: dance"}}

        ws.send_text("{not json")
        assert ws.receive_json() == {"type": "error", "data": {"message": "Invalid message format"}}

        ws.send_json({"action": "deleteMessage", "data": {"messageId": "x"}})
        assert ws.receive_json() == {"type": "error", "data": {"message": "Invalid deleteMessage payload"}}


def test_stale_socket_disconnect_keeps_user_online(client, alice, bob):
    _, alice_headers, _ = alice
    bob_user, _, bob_token = bob

    stale = ExitStack()
    first = stale.enter_context(client.websocket_connect(ws_url(bob_token)))
    first.receive_json()

    with client.websocket_connect(ws_url(bob_token)) as second:
        assert second.receive_json() == {"type": "getOnlineUsers", "data": [bob_user["_id"]]}

        stale.close()
        assert client.get("/api/ws/online-users").json()["online_users"] == [bob_user["_id"]]

        client.post(f"/api/messages/send/{bob_user['_id']}", json={"text": "latest"}, headers=alice_headers)
        assert second.receive_json()["data"]["text"] == "latest"

    assert client.get("/api/ws/online-users").json() == {"online_users": [], "count": 0}


def test_binary_frame_closes_socket_and_clears_presence(client, alice, bob):
    _, _, alice_token = alice
    bob_user, _, bob_token = bob

    with client.websocket_connect(ws_url(bob_token)) as bob_ws:
        bob_ws.receive_json()
        with client.websocket_connect(ws_url(alice_token)) as alice_ws:
            alice_ws.receive_json()
            bob_ws.receive_json()

            alice_ws.send_bytes(b"\x00")
            with pytest.raises(WebSocketDisconnect) as exc_info:
                alice_ws.receive_json()
            assert exc_info.value.code == 1011

            assert bob_ws.receive_json() == {"type": "getOnlineUsers", "data": [bob_user["_id"]]}
            assert client.get("/api/ws/online-users").json() == {
                "online_users": [bob_user["_id"]],
                "count": 1,
            }


def test_deleting_connected_user_drops_their_socket(client, alice, bob):
    alice_user, alice_headers, alice_token = alice
    bob_user, _, bob_token = bob

    with client.websocket_connect(ws_url(bob_token)) as bob_ws:
        bob_ws.receive_json()
        with client.websocket_connect(ws_url(alice_token)) as alice_ws:
            alice_ws.receive_json()
            bob_ws.receive_json()

            data = client.delete(f"/api/auth/delete/{bob_user['_id']}", headers=alice_headers).json()
            assert data["success"] is True

            assert alice_ws.receive_json() == {"type": "getOnlineUsers", "data": [alice_user["_id"]]}
            with pytest.raises(WebSocketDisconnect) as exc_info:
                bob_ws.receive_json()
            assert exc_info.value.code == 1008

            assert client.get("/api/ws/online-users").json() == {
                "online_users": [alice_user["_id"]],
                "count": 1,
            }
