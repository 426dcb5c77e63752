"""
SQL access for players, game state and inventory.

One function per store operation used by the request handlers. Functions
return plain dicts (or counts) and raise the domain errors from
``fishing_api.errors`` for constraint violations the handlers must report.
"""
from typing import Any, Dict, List, Optional, Sequence

from psycopg2 import errors as pg_errors

from fishing_api import db
from fishing_api.errors import DuplicateAccountError, NotFoundError

DEFAULT_ROD = "normal"

_GAME_DATA_COLUMNS = "id, user_id, money, fishing_rod, owned_rods, last_saved"
_INVENTORY_COLUMNS = "id, user_id, fish_name, rarity, weight, price, colour, favourite, caught_at"


def normalize_owned_rods(owned_rods: Sequence[str], equipped_rod: str) -> List[str]:
    """Deduplicate owned rods, keeping order, and add the default and equipped rods."""
    result: List[str] = []
    for rod in [DEFAULT_ROD, *owned_rods, equipped_rod]:
        if rod not in result:
            result.append(rod)
    return result


def _inventory_row(row: Dict[str, Any]) -> Dict[str, Any]:
    row["weight"] = float(row["weight"])
    return row


# PUBLIC_INTERFACE
def create_account(username: str, password_hash: str) -> Dict[str, Any]:
    """Insert a user and its default game state in one transaction."""
    try:
        with db.transaction() as cur:
            cur.execute(
                "INSERT INTO users (username, password) VALUES (%s, %s) RETURNING id, username",
                [username, password_hash],
            )
            user = dict(cur.fetchone())
            cur.execute(
                "INSERT INTO game_data (user_id, money, fishing_rod, owned_rods) VALUES (%s, 0, %s, %s)",
                [user["id"], DEFAULT_ROD, [DEFAULT_ROD]],
            )
    except pg_errors.UniqueViolation:
        raise DuplicateAccountError()
    return user


# PUBLIC_INTERFACE
def find_user_by_username(username: str) -> Optional[Dict[str, Any]]:
    """Return id, username and password hash for a username, or None."""
    return db.fetch_one("SELECT id, username, password FROM users WHERE username=%s", [username])


# PUBLIC_INTERFACE
def find_user_by_id(user_id: int) -> Optional[Dict[str, Any]]:
    return db.fetch_one("SELECT id, username FROM users WHERE id=%s", [user_id])


# PUBLIC_INTERFACE
def get_game_data(user_id: int) -> Optional[Dict[str, Any]]:
    return db.fetch_one(f"SELECT {_GAME_DATA_COLUMNS} FROM game_data WHERE user_id=%s", [user_id])


# PUBLIC_INTERFACE
def list_inventory(user_id: int) -> List[Dict[str, Any]]:
    """All caught fish of a player, most recent catch first."""
    rows = db.fetch_all(
        f"SELECT {_INVENTORY_COLUMNS} FROM inventory WHERE user_id=%s ORDER BY caught_at DESC, id DESC",
        [user_id],
    )
    return [_inventory_row(r) for r in rows]


# PUBLIC_INTERFACE
def save_game_data(user_id: int, money: int, fishing_rod: str, owned_rods: Sequence[str]) -> int:
    """Overwrite a player's game state. Returns affected rowcount (0 when the row is missing)."""
    return db.execute(
        """
        UPDATE game_data
        SET money=%s, fishing_rod=%s, owned_rods=%s, last_saved=NOW()
        WHERE user_id=%s
        """,
        [money, fishing_rod, normalize_owned_rods(owned_rods, fishing_rod), user_id],
    )


# PUBLIC_INTERFACE
def add_fish(user_id: int, name: str, rarity: str, weight: float, price: int, colour: str) -> int:
    """Insert a caught fish and return its id."""
    try:
        row = db.execute_returning_one(
            """
            INSERT INTO inventory (user_id, fish_name, rarity, weight, price, colour, favourite)
            VALUES (%s, %s, %s, %s, %s, %s, FALSE)
            RETURNING id
            """,
            [user_id, name, rarity, round(weight, 1), price, colour],
        )
    except pg_errors.ForeignKeyViolation:
        raise NotFoundError("Player not found")
    return int(row["id"])


# PUBLIC_INTERFACE
def set_favourite(fish_id: int, user_id: int, favourite: bool) -> int:
    """Flag or unflag one of the player's fish. Returns affected rowcount."""
    return db.execute(
        "UPDATE inventory SET favourite=%s WHERE id=%s AND user_id=%s",
        [favourite, fish_id, user_id],
    )


# PUBLIC_INTERFACE
def sell_unfavourited(user_id: int) -> int:
    """Delete every non-favourite fish of a player. Returns the number sold."""
    return db.execute("DELETE FROM inventory WHERE user_id=%s AND favourite=FALSE", [user_id])
