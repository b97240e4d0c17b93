from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any

import bcrypt

from ..places.models import LatLng
from ..recommendations.errors import NotFound, ValidationError
from ..recommendations.models import UserPreferences

logger = logging.getLogger(__name__)


def _hash_password(plain: str) -> str:
    return bcrypt.hashpw(plain.encode(), bcrypt.gensalt()).decode()


def _verify_password(plain: str, hashed: str) -> bool:
    return bcrypt.checkpw(plain.encode(), hashed.encode())


def _public(record: dict[str, Any]) -> dict[str, Any]:
    """Session/API view of a user record, without the password hash."""
    return {
        "id": record["id"],
        "username": record["username"],
        "role": record["role"],
        "email": record.get("email"),
    }


class UserStore:
    """In-memory user records. Per-record writes are last-write-wins."""

    def __init__(self, seed_demo_users: bool = True) -> None:
        self._users: dict[str, dict[str, Any]] = {}
        self._lock = threading.Lock()
        if seed_demo_users:
            self._seed_users()

    def _seed_users(self) -> None:
        """Pre-seed demo users."""
        self.create("user", "user123")
        self.create("admin", "admin123", role="admin")

    def create(
        self,
        username: str,
        password: str,
        role: str = "user",
        email: str | None = None,
        preferences: UserPreferences | None = None,
    ) -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        record = {
            "id": uuid.uuid4().hex,
            "username": username,
            "email": email,
            "role": role,
            "password_hash": _hash_password(password),
            "preferences": preferences or UserPreferences.default(),
            "location": None,
            "created_at": now,
            "updated_at": now,
        }
        with self._lock:
            if any(u["username"] == username for u in self._users.values()):
                raise ValidationError("Username already taken", details=[username])
            self._users[record["id"]] = record
        logger.info("User created: %s", username)
        return _public(record)

    def _require(self, user_id: str) -> dict[str, Any]:
        record = self._users.get(user_id)
        if record is None:
            raise NotFound(f"User {user_id} not found")
        return record

    def get(self, user_id: str) -> dict[str, Any] | None:
        record = self._users.get(user_id)
        return _public(record) if record else None

    def authenticate(self, username: str, password: str) -> dict[str, Any] | None:
        """Verify credentials. Returns the public user view or ``None``."""
        record = next((u for u in self._users.values() if u["username"] == username), None)
        if record and _verify_password(password, record["password_hash"]):
            return _public(record)
        return None

    def get_preferences(self, user_id: str) -> UserPreferences | None:
        record = self._users.get(user_id)
        return record["preferences"] if record else None

    def update_preferences(self, user_id: str, preferences: UserPreferences) -> None:
        with self._lock:
            record = self._require(user_id)
            record["preferences"] = preferences
            record["updated_at"] = datetime.now(timezone.utc)
        logger.info("User preferences updated: %s", user_id)

    def update_location(self, user_id: str, location: LatLng, address: str | None = None) -> None:
        with self._lock:
            record = self._require(user_id)
            record["location"] = {"lat": location.lat, "lng": location.lng, "address": address}
            record["updated_at"] = datetime.now(timezone.utc)

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._require(user_id)
            del self._users[user_id]
        logger.info("User deleted: %s", user_id)

    def stats(self, user_id: str) -> dict[str, Any] | None:
        record = self._users.get(user_id)
        if record is None:
            return None
        preferences: UserPreferences = record["preferences"]
        return {
            "join_date": record["created_at"],
            "last_active": record["updated_at"],
            "has_location": record["location"] is not None,
            "preferred_categories": preferences.categories,
            "price_range": preferences.price_range,
        }
