"""Integration tests for the HTTP and WebSocket API."""

import pytest
from starlette.websockets import WebSocketDisconnect


def _as(uid: str) -> dict[str, str]:
    return {"X-User-Id": uid}


@pytest.mark.integration
class TestHttpApi:
    """REST endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_identity_required(self, client):
        assert client.get("/categories").status_code == 401

    def test_first_login_creates_profile_and_default_category(self, client, owner_id):
        response = client.post("/profiles/me", json={"email": "sam@example.com"}, headers=_as(owner_id))

        assert response.status_code == 200
        assert response.json()["name"] == "sam"

        categories = client.get("/categories", headers=_as(owner_id)).json()
        assert [c["name"] for c in categories] == ["My Tasks"]

        client.post("/profiles/me", json={}, headers=_as(owner_id))
        assert len(client.get("/categories", headers=_as(owner_id)).json()) == 1

    def test_category_crud_and_reorder(self, client, owner_id):
        ids = [
            client.post("/categories", json={"name": name}, headers=_as(owner_id)).json()["id"] for name in "ABC"
        ]

        renamed = client.patch(f"/categories/{ids[0]}", json={"name": "A2"}, headers=_as(owner_id))
        assert renamed.json()["name"] == "A2"

        reordered = client.post("/categories/reorder", json={"from_index": 0, "to_index": 2}, headers=_as(owner_id))
        assert [(c["name"], c["order"]) for c in reordered.json()] == [("B", 0), ("C", 1), ("A2", 2)]

        removed = client.delete(f"/categories/{ids[1]}", headers=_as(owner_id))
        assert removed.json() == {"result": "deleted"}
        assert [c["name"] for c in client.get("/categories", headers=_as(owner_id)).json()] == ["C", "A2"]

    def test_validation_errors(self, client, owner_id):
        assert client.post("/categories", json={"name": "   "}, headers=_as(owner_id)).status_code == 422

        category_id = client.post("/categories", json={"name": "A"}, headers=_as(owner_id)).json()["id"]
        response = client.post(f"/categories/{category_id}/tasks", json={"title": ""}, headers=_as(owner_id))
        assert response.status_code == 422

        response = client.post("/categories/reorder", json={"from_index": 0, "to_index": 5}, headers=_as(owner_id))
        assert response.status_code == 422
        assert response.json()["code"] == "ERR_VALIDATION"

    def test_share_and_join_flow(self, client, owner_id, member_id):
        created = client.post("/categories", json={"name": "House", "shared": True}, headers=_as(owner_id)).json()
        assert created["is_shared"] is True
        code = created["share_code"]

        joined = client.post("/categories/join", json={"code": code.lower()}, headers=_as(member_id))
        assert joined.status_code == 200
        assert joined.json()["members"] == [owner_id, member_id]

        again = client.post("/categories/join", json={"code": code}, headers=_as(member_id))
        assert again.status_code == 409
        assert again.json()["code"] == "ERR_ALREADY_MEMBER"

        unknown = client.post("/categories/join", json={"code": "ZZZZZZZZ"}, headers=_as(member_id))
        assert unknown.status_code == 404
        assert unknown.json()["code"] == "ERR_SHARE_CODE_NOT_FOUND"

        shared = client.get("/categories/shared", headers=_as(member_id)).json()
        assert [c["id"] for c in shared] == [created["id"]]

        left = client.delete(f"/categories/{created['id']}", headers=_as(member_id))
        assert left.json() == {"result": "left"}
        assert client.get("/categories/shared", headers=_as(member_id)).json() == []

    def test_members_endpoint(self, client, owner_id, member_id):
        client.post("/profiles/me", json={"display_name": "Owner"}, headers=_as(owner_id))
        client.post("/profiles/me", json={"display_name": "Friend"}, headers=_as(member_id))
        created = client.post("/categories", json={"name": "House", "shared": True}, headers=_as(owner_id)).json()
        client.post("/categories/join", json={"code": created["share_code"]}, headers=_as(member_id))

        members = client.get(f"/categories/{created['id']}/members", headers=_as(member_id)).json()

        assert [m["name"] for m in members] == ["Owner", "Friend"]

    def test_task_lifecycle(self, client, owner_id):
        category_id = client.post("/categories", json={"name": "Groceries"}, headers=_as(owner_id)).json()["id"]

        created = client.post(
            f"/categories/{category_id}/tasks/import",
            json={"text": "Groceries\n- Milk\n- Eggs\n- Bread"},
            headers=_as(owner_id),
        )
        assert created.status_code == 201
        milk, eggs, bread = created.json()

        done = client.patch(f"/tasks/{milk['id']}", json={"completed": True}, headers=_as(owner_id))
        assert done.json()["completed"] is True

        reordered = client.post(
            f"/categories/{category_id}/tasks/reorder",
            json={"from_index": 1, "to_index": 0},
            headers=_as(owner_id),
        )
        assert [t["title"] for t in reordered.json()] == ["Bread", "Eggs"]

        export = client.get(f"/categories/{category_id}/export", headers=_as(owner_id))
        assert export.text == "Groceries\nBread\nEggs\nMilk"

        assert client.delete(f"/tasks/{eggs['id']}", headers=_as(owner_id)).status_code == 204
        assert client.delete(f"/tasks/{eggs['id']}", headers=_as(owner_id)).status_code == 404

        titles = [t["title"] for t in client.get(f"/categories/{category_id}/tasks", headers=_as(owner_id)).json()]
        assert sorted(titles) == ["Bread", "Milk"]
        assert bread["title"] == "Bread"

    def test_outsider_is_forbidden(self, client, owner_id, member_id):
        category_id = client.post("/categories", json={"name": "Private"}, headers=_as(owner_id)).json()["id"]

        response = client.get(f"/categories/{category_id}/tasks", headers=_as(member_id))

        assert response.status_code == 403
        assert response.json()["code"] == "ERR_PERMISSION_DENIED"

    def test_unknown_category(self, client, owner_id):
        assert client.get("/categories/12345/tasks", headers=_as(owner_id)).status_code == 404


@pytest.mark.integration
class TestLiveApi:
    """WebSocket snapshot streams."""

    def test_personal_categories_stream(self, client, owner_id):
        with client.websocket_connect("/live/categories", headers=_as(owner_id)) as websocket:
            assert websocket.receive_json() == []

            client.post("/categories", json={"name": "Work"}, headers=_as(owner_id))

            assert [c["name"] for c in websocket.receive_json()] == ["Work"]

    def test_task_stream_for_shared_member(self, client, owner_id, member_id):
        created = client.post("/categories", json={"name": "House", "shared": True}, headers=_as(owner_id)).json()
        client.post("/categories/join", json={"code": created["share_code"]}, headers=_as(member_id))

        with client.websocket_connect(f"/live/categories/{created['id']}/tasks?uid={member_id}") as websocket:
            assert websocket.receive_json() == []

            client.post(f"/categories/{created['id']}/tasks", json={"title": "Bins"}, headers=_as(owner_id))

            assert [t["title"] for t in websocket.receive_json()] == ["Bins"]

    def test_stream_rejects_outsiders(self, client, owner_id, member_id):
        category_id = client.post("/categories", json={"name": "Private"}, headers=_as(owner_id)).json()["id"]

        with pytest.raises(WebSocketDisconnect), client.websocket_connect(
            f"/live/categories/{category_id}/tasks", headers=_as(member_id)
        ) as websocket:
            websocket.receive_json()
