import itertools
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from fishing_api import repository
from fishing_api.errors import DuplicateAccountError, NotFoundError
from fishing_api.main import app


class FakeRepository:
    """In-memory stand-in for fishing_api.repository with the same semantics."""

    def __init__(self):
        self.users: Dict[int, Dict[str, Any]] = {}
        self.game_data: Dict[int, Dict[str, Any]] = {}
        self.inventory: Dict[int, Dict[str, Any]] = {}
        self._user_ids = itertools.count(1)
        self._game_ids = itertools.count(1)
        self._fish_ids = itertools.count(1)
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)

    def _now(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def create_account(self, username: str, password_hash: str) -> Dict[str, Any]:
        if any(u["username"] == username for u in self.users.values()):
            raise DuplicateAccountError()
        user_id = next(self._user_ids)
        self.users[user_id] = {"id": user_id, "username": username, "password": password_hash}
        self.game_data[user_id] = {
            "id": next(self._game_ids),
            "user_id": user_id,
            "money": 0,
            "fishing_rod": repository.DEFAULT_ROD,
            "owned_rods": [repository.DEFAULT_ROD],
            "last_saved": self._now(),
        }
        return {"id": user_id, "username": username}

    def find_user_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        for user in self.users.values():
            if user["username"] == username:
                return dict(user)
        return None

    def find_user_by_id(self, user_id: int) -> Optional[Dict[str, Any]]:
        user = self.users.get(user_id)
        return {"id": user["id"], "username": user["username"]} if user else None

    def get_game_data(self, user_id: int) -> Optional[Dict[str, Any]]:
        row = self.game_data.get(user_id)
        return dict(row) if row else None

    def list_inventory(self, user_id: int) -> List[Dict[str, Any]]:
        rows = [dict(r) for r in self.inventory.values() if r["user_id"] == user_id]
        return sorted(rows, key=lambda r: (r["caught_at"], r["id"]), reverse=True)

    def save_game_data(self, user_id: int, money: int, fishing_rod: str, owned_rods) -> int:
        row = self.game_data.get(user_id)
        if row is None:
            return 0
        row.update(
            money=money,
            fishing_rod=fishing_rod,
            owned_rods=repository.normalize_owned_rods(owned_rods, fishing_rod),
            last_saved=self._now(),
        )
        return 1

    def add_fish(self, user_id: int, name: str, rarity: str, weight: float, price: int, colour: str) -> int:
        if user_id not in self.users:
            raise NotFoundError("Player not found")
        fish_id = next(self._fish_ids)
        self.inventory[fish_id] = {
            "id": fish_id,
            "user_id": user_id,
            "fish_name": name,
            "rarity": rarity,
            "weight": round(weight, 1),
            "price": price,
            "colour": colour,
            "favourite": False,
            "caught_at": self._now(),
        }
        return fish_id

    def set_favourite(self, fish_id: int, user_id: int, favourite: bool) -> int:
        row = self.inventory.get(fish_id)
        if row is None or row["user_id"] != user_id:
            return 0
        row["favourite"] = favourite
        return 1

    def sell_unfavourited(self, user_id: int) -> int:
        sold = [i for i, r in self.inventory.items() if r["user_id"] == user_id and not r["favourite"]]
        for fish_id in sold:
            del self.inventory[fish_id]
        return len(sold)

    def delete_game_data(self, user_id: int) -> None:
        self.game_data.pop(user_id, None)


_PATCHED = (
    "create_account",
    "find_user_by_username",
    "find_user_by_id",
    "get_game_data",
    "list_inventory",
    "save_game_data",
    "add_fish",
    "set_favourite",
    "sell_unfavourited",
)


@pytest.fixture
def fake_repo(monkeypatch):
    fake = FakeRepository()
    for name in _PATCHED:
        monkeypatch.setattr(repository, name, getattr(fake, name))
    return fake


@pytest.fixture
def client(fake_repo):
    # No context manager: the startup hook (real database) is not run.
    return TestClient(app)


def auth_headers(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def player(client):
    """A registered player: dict with userId, username, accessToken and headers."""
    resp = client.post("/api/register", json={"username": "alice", "password": "secret1"})
    assert resp.status_code == 200
    data = resp.json()
    data["headers"] = auth_headers(data["accessToken"])
    return data
