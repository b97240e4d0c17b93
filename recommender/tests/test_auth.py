from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from recommender.app import app
from recommender.auth.users import UserStore
from recommender.places.models import LatLng
from recommender.recommendations.errors import NotFound, ValidationError
from recommender.recommendations.models import UserPreferences

client = TestClient(app)


def _login_user(c):
    c.post("/auth/login", json={"username": "user", "password": "user123"})


def _login_admin(c):
    c.post("/auth/login", json={"username": "admin", "password": "admin123"})


# ── User store ───────────────────────────────────────────────────────────


def test_store_seeds_demo_users():
    store = UserStore()
    assert store.authenticate("user", "user123")["role"] == "user"
    assert store.authenticate("admin", "admin123")["role"] == "admin"


def test_store_never_exposes_password_hash():
    store = UserStore(seed_demo_users=False)
    user = store.create("alice", "secret", email="alice@example.com")
    assert "password_hash" not in user
    assert store.get(user["id"]) == user


def test_store_rejects_duplicate_username():
    store = UserStore(seed_demo_users=False)
    store.create("alice", "secret")
    with pytest.raises(ValidationError):
        store.create("alice", "other")


def test_store_authenticate_wrong_password():
    store = UserStore(seed_demo_users=False)
    store.create("alice", "secret")
    assert store.authenticate("alice", "wrong") is None
    assert store.authenticate("bob", "secret") is None


def test_store_preferences_default_and_update():
    store = UserStore(seed_demo_users=False)
    user = store.create("alice", "secret")
    assert store.get_preferences(user["id"]) == UserPreferences.default()

    prefs = UserPreferences(categories=["Coffee"], price_range=[1, 2])
    store.update_preferences(user["id"], prefs)
    assert store.get_preferences(user["id"]) == prefs
    assert store.stats(user["id"])["preferred_categories"] == ["Coffee"]


def test_store_location_and_delete():
    store = UserStore(seed_demo_users=False)
    user = store.create("alice", "secret")
    store.update_location(user["id"], LatLng(lat=40.7, lng=-74.0), address="NYC")
    assert store.stats(user["id"])["has_location"] is True

    store.delete(user["id"])
    assert store.get(user["id"]) is None
    assert store.stats(user["id"]) is None
    with pytest.raises(NotFound):
        store.delete(user["id"])
    with pytest.raises(NotFound):
        store.update_preferences(user["id"], UserPreferences.default())


# ── Login / Logout ───────────────────────────────────────────────────────


def test_login_success_user():
    resp = client.post("/auth/login", json={"username": "user", "password": "user123"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["user"]["username"] == "user"
    assert body["user"]["role"] == "user"


def test_login_success_admin():
    resp = client.post("/auth/login", json={"username": "admin", "password": "admin123"})
    assert resp.status_code == 200
    assert resp.json()["user"]["role"] == "admin"


def test_login_wrong_password():
    resp = client.post("/auth/login", json={"username": "user", "password": "wrong"})
    assert resp.status_code == 401


def test_login_unknown_user():
    resp = client.post("/auth/login", json={"username": "nobody", "password": "x"})
    assert resp.status_code == 401


def test_auth_me_when_logged_in():
    _login_user(client)
    resp = client.get("/auth/me")
    assert resp.status_code == 200
    body = resp.json()
    assert body["username"] == "user"
    assert body["preferences"]["price_range"] == [1, 4]
    assert body["stats"]["has_location"] in (True, False)


def test_auth_me_not_logged_in():
    c = TestClient(app)  # fresh client, no session
    resp = c.get("/auth/me")
    assert resp.status_code == 401


def test_logout():
    _login_user(client)
    resp = client.post("/auth/logout")
    assert resp.status_code == 200
    assert resp.json()["status"] == "logged_out"
    resp = client.get("/auth/me")
    assert resp.status_code == 401


# ── Register / preferences ───────────────────────────────────────────────


def test_register_logs_in_new_user():
    c = TestClient(app)
    resp = c.post("/auth/register", json={
        "username": "register-test-user",
        "password": "pw12345",
        "email": "new@example.com",
        "preferences": {"categories": ["Bakery"], "price_range": [1, 2]},
    })
    assert resp.status_code == 201
    assert resp.json()["user"]["email"] == "new@example.com"

    me = c.get("/auth/me").json()
    assert me["username"] == "register-test-user"
    assert me["preferences"]["categories"] == ["Bakery"]


def test_register_duplicate_username():
    resp = TestClient(app).post("/auth/register", json={"username": "user", "password": "x"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"


def test_register_invalid_price_range():
    resp = TestClient(app).post("/auth/register", json={
        "username": "bad-prefs", "password": "x", "preferences": {"price_range": [3, 1]},
    })
    assert resp.status_code == 422


def test_update_preferences():
    c = TestClient(app)
    c.post("/auth/register", json={"username": "prefs-test-user", "password": "pw"})
    resp = c.put("/auth/preferences", json={
        "categories": ["Coffee"],
        "price_range": [1, 2],
        "max_distance": 500,
        "preferred_hours": {"start": 7, "end": 11},
    })
    assert resp.status_code == 200
    assert resp.json()["max_distance"] == 500
    assert c.get("/auth/me").json()["preferences"]["categories"] == ["Coffee"]


def test_update_preferences_requires_login():
    assert TestClient(app).put("/auth/preferences", json={}).status_code == 401


# ── Route protection ─────────────────────────────────────────────────────


def test_feedback_requires_login():
    c = TestClient(app)
    resp = c.post("/feedback", json={"place_id": "4b5e", "rating": 5})
    assert resp.status_code == 401


def test_history_requires_login():
    assert TestClient(app).get("/user/history").status_code == 401


def test_popular_requires_admin():
    c = TestClient(app)
    _login_user(c)
    assert c.get("/analytics/popular").status_code == 403


def test_popular_allowed_for_admin():
    c = TestClient(app)
    _login_admin(c)
    resp = c.get("/analytics/popular")
    assert resp.status_code == 200
    assert resp.json()["timeframe"] == "week"


def test_cleanup_requires_admin():
    c = TestClient(app)
    _login_user(c)
    assert c.post("/admin/cleanup").status_code == 403


# ── Public endpoints stay public ─────────────────────────────────────────


def test_health_is_public():
    c = TestClient(app)
    resp = c.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
