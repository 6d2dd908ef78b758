from pymongo.errors import ServerSelectionTimeoutError

import database
import main


def signup(client, email="Abebe@AAU.edu.et", name="Abebe Kebede"):
    return client.post("/api/auth", json={"action": "signup", "email": email, "name": name})


def post_item(client, **overrides):
    body = {
        "title": "Calculator",
        "description": "Casio fx-991 left in lecture hall 3",
        "category": "Electronics",
        "location": "Science Faculty",
        "status": "LOST",
        "posterId": "u1",
        "posterName": "Abebe",
    }
    body.update(overrides)
    return client.post("/api/items", json=body)


def test_root(client):
    assert client.get("/").json() == {"message": "Campus Lost & Found Backend Running"}


def test_signup_normalizes_email(client):
    res = signup(client)
    assert res.status_code == 200
    user = res.json()
    assert user["email"] == "abebe@aau.edu.et"
    assert user["id"]
    assert user["createdAt"] > 0


def test_signup_twice_returns_existing_account(client, mongo):
    first = signup(client).json()
    second = signup(client, email="abebe@aau.edu.et", name="Someone Else").json()
    assert second["id"] == first["id"]
    assert second["name"] == "Abebe Kebede"
    assert mongo["users"].count_documents({}) == 1


def test_signup_requires_name_and_email(client):
    assert signup(client, name="  ").status_code == 400
    res = client.post("/api/auth", json={"action": "signup", "name": "No Email"})
    assert res.status_code == 400
    assert res.json()["detail"] == "Email is required"


def test_login_unknown_email_is_404(client):
    res = client.post("/api/auth", json={"action": "login", "email": "ghost@aau.edu.et"})
    assert res.status_code == 404


def test_login_finds_user_case_insensitively(client):
    created = signup(client).json()
    res = client.post("/api/auth", json={"action": "login", "email": "ABEBE@aau.edu.et"})
    assert res.json()["id"] == created["id"]


def test_update_user_keeps_identity_fields(client):
    created = signup(client).json()
    res = client.post("/api/auth", json={
        "action": "update",
        "userId": created["id"],
        "updates": {"email": "hijack@x.com", "createdAt": 1, "department": "Physics"},
    })
    assert res.status_code == 200
    user = res.json()
    assert user["department"] == "Physics"
    assert user["email"] == created["email"]
    assert user["createdAt"] == created["createdAt"]


def test_update_missing_user_is_404(client):
    res = client.post("/api/auth", json={"action": "update", "userId": "000000000000000000000000", "updates": {}})
    assert res.status_code == 404
    res = client.post("/api/auth", json={"action": "update", "userId": "local_abc", "updates": {"bio": "x"}})
    assert res.status_code == 404


def test_update_user_rejects_non_string_profile_field(client):
    created = signup(client).json()
    res = client.post("/api/auth", json={
        "action": "update", "userId": created["id"], "updates": {"level": 3, "bio": "x"},
    })
    assert res.status_code == 400
    login = client.post("/api/auth", json={"action": "login", "email": created["email"]}).json()
    assert "level" not in login
    assert "bio" not in login


def test_unknown_auth_action_is_400(client):
    assert client.post("/api/auth", json={"action": "reset", "email": "a@aau.edu.et"}).status_code == 400


def test_signup_rejects_bad_profile_extras(client):
    res = client.post("/api/auth", json={
        "action": "signup", "email": "a@aau.edu.et", "name": "A", "updates": {"phoneNumber": ["0911"]},
    })
    assert res.status_code == 400
    assert client.get("/api/users").json() == []


def test_list_users(client):
    signup(client, email="a@aau.edu.et", name="A")
    signup(client, email="b@aau.edu.et", name="B")
    emails = {u["email"] for u in client.get("/api/users").json()}
    assert emails == {"a@aau.edu.et", "b@aau.edu.et"}


def test_created_items_start_unverified(client):
    res = post_item(client, isVerified=True, createdAt=5)
    item = res.json()
    assert item["isVerified"] is False
    assert item["createdAt"] != 5
    assert client.get("/api/items").json() == []
    assert [i["id"] for i in client.get("/api/items", params={"all": "true"}).json()] == [item["id"]]


def test_item_requires_title_and_description(client):
    assert post_item(client, title=" ").status_code == 400


def test_put_updates_fields_but_not_identity(client):
    item = post_item(client).json()
    res = client.put("/api/items", json={
        "itemId": item["id"], "status": "RECLAIMED", "createdAt": 1, "id": "other",
    })
    assert res.status_code == 200
    updated = res.json()
    assert updated["status"] == "RECLAIMED"
    assert updated["createdAt"] == item["createdAt"]
    assert updated["id"] == item["id"]


def test_put_rejects_unknown_status_before_writing(client, mongo):
    item = post_item(client).json()
    res = client.put("/api/items", json={"itemId": item["id"], "status": "BOGUS", "title": "Renamed"})
    assert res.status_code == 400
    stored = mongo["items"].find_one()
    assert stored["status"] == "LOST"
    assert stored["title"] == "Calculator"
    # The listing still parses
    assert client.get("/api/items", params={"all": "true"}).status_code == 200


def test_put_requires_item_id(client):
    assert client.put("/api/items", json={"status": "FOUND"}).status_code == 400


def test_put_unknown_item_is_404(client):
    res = client.put("/api/items", json={"itemId": "000000000000000000000000", "status": "FOUND"})
    assert res.status_code == 404


def test_patch_verifies_item(client):
    item = post_item(client).json()
    res = client.patch("/api/items", json={"itemId": item["id"], "isVerified": True})
    assert res.json()["isVerified"] is True
    assert [i["id"] for i in client.get("/api/items").json()] == [item["id"]]


def test_delete_item(client):
    item = post_item(client).json()
    assert client.delete("/api/items", params={"itemId": item["id"]}).json() == {"success": True}
    assert client.delete("/api/items", params={"itemId": item["id"]}).status_code == 404


def test_messages_for_user_sorted_oldest_first(client, mongo):
    mongo["messages"].insert_many([
        {"senderId": "u2", "receiverId": "u1", "itemId": "i1", "content": "later", "timestamp": 20},
        {"senderId": "u1", "receiverId": "u2", "itemId": "i1", "content": "first", "timestamp": 10},
        {"senderId": "u3", "receiverId": "u4", "itemId": "i1", "content": "not mine", "timestamp": 15},
    ])
    msgs = client.get("/api/messages", params={"userId": "u1"}).json()
    assert [m["content"] for m in msgs] == ["first", "later"]
    assert all("_id" not in m for m in msgs)


def test_messages_require_user_id(client):
    assert client.get("/api/messages").status_code == 400


def test_send_message_stamps_timestamp(client):
    res = client.post("/api/messages", json={"senderId": "u1", "receiverId": "u2", "itemId": "i1", "content": "Hi"})
    msg = res.json()
    assert msg["id"]
    assert msg["timestamp"] > 0


def test_send_message_needs_content_or_image(client):
    body = {"senderId": "u1", "receiverId": "u2", "itemId": "i1", "content": "  "}
    assert client.post("/api/messages", json=body).status_code == 400
    body["image"] = "data:image/png;base64,AAAA"
    assert client.post("/api/messages", json=body).status_code == 200


def test_unconfigured_database_is_reported(client, monkeypatch):
    monkeypatch.setattr(database, "db", None)
    monkeypatch.setattr(database, "config_error", "DATABASE_URL is not set")
    res = client.get("/api/items")
    assert res.status_code == 500
    assert res.json()["detail"] == "Database not configured: DATABASE_URL is not set"
    report = client.get("/test").json()
    assert report["configured"] is False
    assert report["config_error"] == "DATABASE_URL is not set"
    assert report["connected"] is False


def test_diagnostics_list_collections(client):
    post_item(client)
    report = client.get("/test").json()
    assert report["configured"] is True
    assert report["config_error"] is None
    assert report["connected"] is True
    assert report["collections"] == ["items"]


def test_database_errors_become_500(client, monkeypatch):
    def down(*args, **kwargs):
        raise ServerSelectionTimeoutError("no servers")

    monkeypatch.setattr(main, "get_documents", down)
    res = client.get("/api/items")
    assert res.status_code == 500
    assert res.json() == {"detail": "Database connection failed"}


def test_placeholder_configuration_disables_database():
    assert database.connect(None, "lostfound") == (None, "DATABASE_URL is not set")
    assert database.connect("YOUR_MONGODB_URI", "lostfound")[0] is None
    assert database.connect("mongodb://localhost", "<db-name>") == (None, "DATABASE_NAME is not set")
