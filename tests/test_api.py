"""
End-to-end tests through the HTTP API and the websocket relay.

Each test gets a fresh application lifespan and therefore a fresh in-memory
database.
"""
import json

from fastapi.testclient import TestClient


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}


class TestUserRoutes:
    def test_register_returns_201_with_token(self, client):
        response = client.post(
            "/api/user", json={"name": "Alice", "email": "alice@example.com", "password": "secret123"}
        )

        assert response.status_code == 201
        body = response.json()
        assert body["token"]
        assert "password" not in body

    def test_register_missing_fields_is_400(self, client):
        response = client.post("/api/user", json={"name": "Alice"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Please fill all the fields"

    def test_register_duplicate_email_is_400(self, client, register):
        register("Alice", "alice@example.com")

        response = client.post(
            "/api/user", json={"name": "Again", "email": "alice@example.com", "password": "secret123"}
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "User already exists"

    def test_login(self, client, register):
        user, _ = register("Alice", "alice@example.com")

        response = client.post("/api/user/login", json={"email": "alice@example.com", "password": "secret123"})

        assert response.status_code == 200
        assert response.json()["id"] == user["id"]

    def test_login_bad_password_is_401(self, client, register):
        register("Alice", "alice@example.com")

        response = client.post("/api/user/login", json={"email": "alice@example.com", "password": "nope"})

        assert response.status_code == 401

    def test_search_requires_token(self, client):
        assert client.get("/api/user").status_code == 401

    def test_search_rejects_bad_token(self, client):
        response = client.get("/api/user", headers={"Authorization": "Bearer nonsense"})

        assert response.status_code == 401

    def test_search_excludes_caller(self, client, register):
        _, alice_headers = register("Alice", "alice@example.com")
        bob, _ = register("Bob", "bob@example.com")

        response = client.get("/api/user", params={"search": "example"}, headers=alice_headers)

        assert response.status_code == 200
        assert [u["id"] for u in response.json()] == [bob["id"]]

    def test_change_password(self, client, register):
        _, headers = register("Alice", "alice@example.com")

        response = client.put(
            "/api/user/password",
            json={"oldPassword": "secret123", "newPassword": "better-secret"},
            headers=headers,
        )

        assert response.status_code == 200
        login = client.post("/api/user/login", json={"email": "alice@example.com", "password": "better-secret"})
        assert login.status_code == 200

    def test_upload_picture(self, client, register):
        _, headers = register("Alice", "alice@example.com")

        response = client.post(
            "/api/user/picture",
            files={"file": ("me.png", b"\x89PNG fake", "image/png")},
            headers=headers,
        )

        assert response.status_code == 200
        picture = response.json()["picture"]
        assert picture.startswith("/uploads/") and picture.endswith(".png")
        assert client.get(picture).content == b"\x89PNG fake"

    def test_upload_rejects_non_images(self, client, register):
        _, headers = register("Alice", "alice@example.com")

        response = client.post(
            "/api/user/picture",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=headers,
        )

        assert response.status_code == 400


class TestChatRoutes:
    def test_access_chat_is_idempotent(self, client, register):
        alice, headers = register("Alice", "alice@example.com")
        bob, _ = register("Bob", "bob@example.com")

        first = client.post("/api/chat", json={"userId": bob["id"]}, headers=headers)
        second = client.post("/api/chat", json={"userId": bob["id"]}, headers=headers)

        assert first.status_code == 200
        assert first.json()["id"] == second.json()["id"]
        assert first.json()["kind"] == "direct"
        assert {u["id"] for u in first.json()["users"]} == {alice["id"], bob["id"]}

    def test_access_chat_without_user_id_is_400(self, client, register):
        _, headers = register("Alice", "alice@example.com")

        response = client.post("/api/chat", json={}, headers=headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "No user ID is provided"

    def test_create_group_with_json_encoded_users(self, client, register):
        alice, headers = register("Alice", "alice@example.com")
        bob, _ = register("Bob", "bob@example.com")
        carol, _ = register("Carol", "carol@example.com")

        response = client.post(
            "/api/chat/group",
            json={"name": "Team", "users": json.dumps([bob["id"], carol["id"]])},
            headers=headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["kind"] == "group"
        assert body["chat_name"] == "Team"
        assert body["group_admin"]["id"] == alice["id"]
        assert [u["id"] for u in body["users"]] == [bob["id"], carol["id"], alice["id"]]

    def test_create_group_with_one_member_is_400(self, client, register):
        _, headers = register("Alice", "alice@example.com")
        bob, _ = register("Bob", "bob@example.com")

        response = client.post("/api/chat/group", json={"name": "Team", "users": [bob["id"]]}, headers=headers)

        assert response.status_code == 400

    def test_group_lifecycle(self, client, register):
        _, headers = register("Alice", "alice@example.com")
        bob, bob_headers = register("Bob", "bob@example.com")
        carol, _ = register("Carol", "carol@example.com")
        dave, _ = register("Dave", "dave@example.com")
        group = client.post(
            "/api/chat/group", json={"name": "Team", "users": [bob["id"], carol["id"]]}, headers=headers
        ).json()

        renamed = client.put("/api/chat/group/rename", json={"chatId": group["id"], "chatName": "Crew"}, headers=headers)
        assert renamed.status_code == 200
        assert renamed.json()["chat_name"] == "Crew"

        added = client.put("/api/chat/group/add", json={"chatId": group["id"], "userId": dave["id"]}, headers=headers)
        assert added.status_code == 200
        assert dave["id"] in [u["id"] for u in added.json()["users"]]

        removed = client.request(
            "DELETE", "/api/chat/group/remove", json={"chatId": group["id"], "userId": bob["id"]}, headers=headers
        )
        assert removed.status_code == 200
        assert bob["id"] not in [u["id"] for u in removed.json()["users"]]

        bob_chats = client.get("/api/chat", headers=bob_headers).json()
        assert group["id"] not in [c["id"] for c in bob_chats]

    def test_rename_unknown_chat_is_400(self, client, register):
        _, headers = register("Alice", "alice@example.com")

        response = client.put("/api/chat/group/rename", json={"chatId": 9999, "chatName": "X"}, headers=headers)

        assert response.status_code == 400

    def test_add_to_unknown_chat_is_404(self, client, register):
        alice, headers = register("Alice", "alice@example.com")

        response = client.put("/api/chat/group/add", json={"chatId": 9999, "userId": alice["id"]}, headers=headers)

        assert response.status_code == 404

    def test_remove_from_unknown_chat_is_404(self, client, register):
        alice, headers = register("Alice", "alice@example.com")

        response = client.request(
            "DELETE", "/api/chat/group/remove", json={"chatId": 9999, "userId": alice["id"]}, headers=headers
        )

        assert response.status_code == 404

    def test_chat_routes_require_token(self, client):
        assert client.get("/api/chat").status_code == 401


class TestMessageRoutes:
    def test_send_and_list(self, client, register):
        _, headers = register("Alice", "alice@example.com")
        bob, bob_headers = register("Bob", "bob@example.com")
        chat = client.post("/api/chat", json={"userId": bob["id"]}, headers=headers).json()

        sent = client.post("/api/message", json={"content": "hi", "chatId": chat["id"]}, headers=headers)

        assert sent.status_code == 201
        listed = client.get(f"/api/message/{chat['id']}", headers=bob_headers)
        assert listed.status_code == 200
        assert [m["id"] for m in listed.json()] == [sent.json()["id"]]
        bob_chats = client.get("/api/chat", headers=bob_headers).json()
        assert bob_chats[0]["latest_message"]["id"] == sent.json()["id"]

    def test_send_without_content_is_400(self, client, register):
        _, headers = register("Alice", "alice@example.com")
        bob, _ = register("Bob", "bob@example.com")
        chat = client.post("/api/chat", json={"userId": bob["id"]}, headers=headers).json()

        response = client.post("/api/message", json={"chatId": chat["id"]}, headers=headers)

        assert response.status_code == 400

    def test_non_member_cannot_send(self, client, register):
        _, headers = register("Alice", "alice@example.com")
        bob, _ = register("Bob", "bob@example.com")
        _, carol_headers = register("Carol", "carol@example.com")
        chat = client.post("/api/chat", json={"userId": bob["id"]}, headers=headers).json()

        response = client.post("/api/message", json={"content": "hi", "chatId": chat["id"]}, headers=carol_headers)

        assert response.status_code == 400

    def test_list_unknown_chat_is_400(self, client, register):
        _, headers = register("Alice", "alice@example.com")

        assert client.get("/api/message/9999", headers=headers).status_code == 400


class TestRealtime:
    def test_setup_is_acknowledged(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_json({"event": "setup", "data": {"id": 1}})

            assert ws.receive_json() == {"event": "connected"}

    def test_typing_and_message_delivery(self, client, register):
        alice, headers = register("Alice", "alice@example.com")
        bob, _ = register("Bob", "bob@example.com")
        chat = client.post("/api/chat", json={"userId": bob["id"]}, headers=headers).json()

        with client.websocket_connect("/ws") as alice_ws, client.websocket_connect("/ws") as bob_ws:
            # frames on one socket are handled in order, so the ack means the join is done too
            for ws, user in ((alice_ws, alice), (bob_ws, bob)):
                ws.send_json({"event": "join chat", "data": chat["id"]})
                ws.send_json({"event": "setup", "data": user})
                assert ws.receive_json() == {"event": "connected"}

            alice_ws.send_json({"event": "typing", "data": chat["id"]})
            assert bob_ws.receive_json() == {"event": "typing", "data": chat["id"]}

            message = client.post(
                "/api/message", json={"content": "hi", "chatId": chat["id"]}, headers=headers
            ).json()
            alice_ws.send_json({"event": "new message", "data": message})

            received = bob_ws.receive_json()
            assert received["event"] == "message received"
            assert received["data"]["id"] == message["id"]
            assert received["data"]["content"] == "hi"

    def test_binary_frame_is_dropped_and_connection_survives(self, client):
        with client.websocket_connect("/ws") as ws:
            ws.send_bytes(b"\x00\x01")
            ws.send_json({"event": "setup", "data": {"id": 1}})

            assert ws.receive_json() == {"event": "connected"}


class TestUnhandledErrors:
    def test_unexpected_failure_returns_generic_500(self, monkeypatch):
        from main import app
        from chat_backend.services import chats as chat_service

        async def broken_fetch_chats(user_id):
            raise RuntimeError("database exploded")

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.post(
                "/api/user", json={"name": "Alice", "email": "alice@example.com", "password": "secret123"}
            )
            headers = {"Authorization": f"Bearer {response.json()['token']}"}
            monkeypatch.setattr(chat_service, "fetch_chats", broken_fetch_chats)

            response = client.get("/api/chat", headers=headers)

        assert response.status_code == 500
        assert response.json() == {"detail": "Internal server error"}
