from fastapi.testclient import TestClient

from greycat.services.channel_service import ChannelService


def _create(client, headers, name="team-chat", **extra):
    return client.post("/channels", json={"name": name, **extra}, headers=headers)


class TestCreateChannel:
    def test_requires_authentication(self, client):
        response = _create(client, {})

        assert response.status_code == 401
        assert response.json() == {
            "success": False,
            "message": "Not authenticated",
            "code": "NOT_AUTHENTICATED",
        }

    def test_creates_channel(self, client, alice, auth_headers):
        response = _create(client, auth_headers(alice), name="Team-Chat", isPrivate=True)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["channel"]["name"] == "team-chat"
        assert body["channel"]["isPrivate"] is True

    def test_invalid_slug_is_a_logical_failure(self, client, alice, auth_headers):
        response = _create(client, auth_headers(alice), name="no spaces")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["code"] == "INVALID_CHANNEL_NAME"

    def test_duplicate_slug_is_a_conflict(self, client, alice, bob, auth_headers):
        _create(client, auth_headers(alice))

        response = _create(client, auth_headers(bob), name="TEAM-CHAT")

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["message"] == "Channel name taken"

    def test_unknown_fields_are_rejected(self, client, alice, auth_headers):
        response = _create(client, auth_headers(alice), owner="someone-else")

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_session_cookie_authenticates(self, client, alice):
        from greycat.auth import create_access_token
        from greycat.core.config import settings

        client.cookies.set(settings.session_cookie_name, create_access_token(alice.id))
        try:
            response = _create(client, {}, name="cookie-made")
        finally:
            client.cookies.clear()

        assert response.json()["success"] is True


class TestReadChannels:
    def test_list_is_public(self, client, public_channel, private_channel):
        response = client.get("/channels")

        assert response.status_code == 200
        assert [c["name"] for c in response.json()["channels"]] == ["team-chat"]

    def test_detail(self, client, public_channel):
        response = client.get(f"/channels/{public_channel['id']}")

        body = response.json()
        assert body["success"] is True
        assert body["channel"]["title"] == "Team Chat"
        assert [m["handle"] for m in body["channel"]["members"]] == ["alice"]

    def test_missing_channel_detail_is_404(self, client):
        response = client.get("/channels/does-not-exist")

        assert response.status_code == 404
        assert response.json()["success"] is False
        assert response.json()["message"] == "Channel not found"


class TestMembershipRoutes:
    def test_join_and_leave(self, client, public_channel, bob, auth_headers):
        url = f"/channels/{public_channel['id']}"

        assert client.post(f"{url}/join", headers=auth_headers(bob)).json() == {"success": True}
        assert client.post(f"{url}/join", headers=auth_headers(bob)).json() == {"success": True}
        members = client.get(url).json()["channel"]["members"]
        assert [m["handle"] for m in members] == ["alice", "bob"]

        assert client.post(f"{url}/leave", headers=auth_headers(bob)).json() == {"success": True}
        members = client.get(url).json()["channel"]["members"]
        assert [m["handle"] for m in members] == ["alice"]

    def test_join_missing_channel_is_a_logical_failure(self, client, bob, auth_headers):
        response = client.post("/channels/nope/join", headers=auth_headers(bob))

        assert response.status_code == 200
        assert response.json()["success"] is False


class TestModeratorRoutes:
    def test_grant_and_revoke(self, client, public_channel, alice, bob, auth_headers):
        url = f"/channels/{public_channel['id']}/moderators"

        granted = client.post(url, json={"userId": bob.id}, headers=auth_headers(alice))
        assert granted.json() == {"success": True}

        revoked = client.delete(f"{url}/{bob.id}", headers=auth_headers(alice))
        assert revoked.json() == {"success": True}

    def test_non_moderator_is_forbidden(self, client, public_channel, bob, carol, auth_headers):
        url = f"/channels/{public_channel['id']}/moderators"

        response = client.post(url, json={"userId": carol.id}, headers=auth_headers(bob))

        assert response.status_code == 403
        assert response.json()["success"] is False


class TestMessagesUnderChannel:
    def test_send_and_list(self, client, public_channel, alice, auth_headers):
        url = f"/channels/{public_channel['id']}/messages"

        sent = client.post(url, json={"text": "hello"}, headers=auth_headers(alice))
        assert sent.status_code == 200
        assert sent.json()["message"]["text"] == "hello"

        listed = client.get(url, params={"page": 0, "limit": 10})
        assert [m["text"] for m in listed.json()["messages"]] == ["hello"]

    def test_private_channel_history_is_readable_but_posting_is_forbidden(
        self, client, private_channel, alice, carol, auth_headers
    ):
        url = f"/channels/{private_channel['id']}/messages"
        client.post(url, json={"text": "members only"}, headers=auth_headers(alice))

        listed = client.get(url, headers=auth_headers(carol))
        assert listed.json()["success"] is True
        assert len(listed.json()["messages"]) == 1

        posted = client.post(url, json={"text": "hi"}, headers=auth_headers(carol))
        assert posted.status_code == 403
        assert posted.json()["message"] == "Private channel: join first"

    def test_negative_page_is_a_logical_failure(self, client, public_channel):
        response = client.get(f"/channels/{public_channel['id']}/messages", params={"page": -1})

        assert response.status_code == 200
        assert response.json()["success"] is False

    def test_unexpected_fault_is_a_generic_500(self, app, public_channel, monkeypatch):
        def explode(self):
            raise RuntimeError("connection reset by peer")

        monkeypatch.setattr(ChannelService, "list_public", explode)

        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/channels")

        assert response.status_code == 500
        assert response.json() == {"success": False, "message": "Server error"}


class TestPrivateMembershipRoutes:
    def test_outsider_join_is_forbidden(self, client, private_channel, carol, auth_headers):
        response = client.post(f"/channels/{private_channel['id']}/join", headers=auth_headers(carol))

        assert response.status_code == 403
        assert response.json()["code"] == "NOT_INVITED"

    def test_moderator_adds_member_who_can_then_post(
        self, client, private_channel, alice, bob, auth_headers
    ):
        url = f"/channels/{private_channel['id']}"

        added = client.post(f"{url}/members", json={"userId": bob.id}, headers=auth_headers(alice))
        assert added.json() == {"success": True}

        posted = client.post(f"{url}/messages", json={"text": "hi"}, headers=auth_headers(bob))
        assert posted.json()["success"] is True

    def test_non_moderator_cannot_add_members(
        self, client, private_channel, bob, carol, auth_headers
    ):
        url = f"/channels/{private_channel['id']}/members"

        response = client.post(url, json={"userId": carol.id}, headers=auth_headers(bob))

        assert response.status_code == 403


def test_messages_of_unknown_channel_list_as_empty(client):
    response = client.get("/channels/does-not-exist/messages")

    assert response.status_code == 200
    assert response.json() == {"success": True, "messages": []}
