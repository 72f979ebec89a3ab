"""User and friendship storage for the server."""

from __future__ import annotations

import sqlite3
from enum import IntEnum
from typing import Optional

_SCHEMA = """
CREATE TABLE IF NOT EXISTS userInfo (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name VARCHAR(32) UNIQUE NOT NULL,
    pwd VARCHAR(32) NOT NULL,
    online INTEGER NOT NULL DEFAULT 0
);
CREATE TABLE IF NOT EXISTS friend (
    id INTEGER NOT NULL,
    friendId INTEGER NOT NULL,
    PRIMARY KEY (id, friendId)
);
"""


class SearchResult(IntEnum):
    NOT_FOUND = -1
    OFFLINE = 0
    ONLINE = 1


class AddFriendResult(IntEnum):
    UNKNOWN = -1
    EXISTED = 0
    ONLINE = 1
    OFFLINE = 2
    NOT_EXIST = 3


class UserDatabase:
    """Registered users, their online state and their friendships."""

    def __init__(self, path: str = ":memory:") -> None:
        self._conn = sqlite3.connect(path)
        self._conn.executescript(_SCHEMA)
        self._conn.commit()

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "UserDatabase":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _online_state(self, name: str) -> Optional[int]:
        row = self._conn.execute(
            "SELECT online FROM userInfo WHERE name = ?", (name,)
        ).fetchone()
        return None if row is None else int(row[0])

    def register(self, name: Optional[str], pwd: Optional[str]) -> bool:
        """Add a user; False if the name is taken."""
        if name is None or pwd is None:
            return False
        try:
            with self._conn:
                self._conn.execute(
                    "INSERT INTO userInfo(name, pwd) VALUES (?, ?)", (name, pwd)
                )
        except sqlite3.IntegrityError:
            return False
        return True

    def login(self, name: Optional[str], pwd: Optional[str]) -> bool:
        """Mark a user online; False on bad credentials or if already online."""
        if name is None or pwd is None:
            return False
        with self._conn:
            row = self._conn.execute(
                "SELECT id FROM userInfo WHERE name = ? AND pwd = ? AND online = 0",
                (name, pwd),
            ).fetchone()
            if row is None:
                return False
            self._conn.execute(
                "UPDATE userInfo SET online = 1 WHERE name = ? AND pwd = ?",
                (name, pwd),
            )
        return True

    def set_offline(self, name: Optional[str]) -> None:
        if name is None:
            return
        with self._conn:
            self._conn.execute("UPDATE userInfo SET online = 0 WHERE name = ?", (name,))

    def all_online(self) -> list[str]:
        rows = self._conn.execute(
            "SELECT name FROM userInfo WHERE online = 1 ORDER BY id"
        ).fetchall()
        return [row[0] for row in rows]

    def search_user(self, name: Optional[str]) -> SearchResult:
        if name is None:
            return SearchResult.NOT_FOUND
        state = self._online_state(name)
        if state is None:
            return SearchResult.NOT_FOUND
        return SearchResult.ONLINE if state == 1 else SearchResult.OFFLINE

    def check_add_friend(self, pername: Optional[str], name: Optional[str]) -> AddFriendResult:
        """Decide what happens when ``name`` asks to befriend ``pername``."""
        if pername is None or name is None:
            return AddFriendResult.UNKNOWN
        existing = self._conn.execute(
            """
            SELECT 1 FROM friend
            WHERE (id = (SELECT id FROM userInfo WHERE name = ?)
                   AND friendId = (SELECT id FROM userInfo WHERE name = ?))
               OR (id = (SELECT id FROM userInfo WHERE name = ?)
                   AND friendId = (SELECT id FROM userInfo WHERE name = ?))
            """,
            (pername, name, name, pername),
        ).fetchone()
        if existing is not None:
            return AddFriendResult.EXISTED
        state = self._online_state(pername)
        if state is None:
            return AddFriendResult.NOT_EXIST
        return AddFriendResult.ONLINE if state == 1 else AddFriendResult.OFFLINE

    def agree_add_friend(self, pername: Optional[str], name: Optional[str]) -> None:
        if pername is None or name is None:
            return
        with self._conn:
            self._conn.execute(
                """
                INSERT OR IGNORE INTO friend(id, friendId)
                SELECT a.id, b.id FROM userInfo a, userInfo b
                WHERE a.name = ? AND b.name = ?
                """,
                (pername, name),
            )

    def online_friends(self, name: Optional[str]) -> list[str]:
        """Names of the user's friends that are online."""
        if name is None:
            return []
        added_me = self._conn.execute(
            """
            SELECT name FROM userInfo WHERE online = 1 AND id IN
              (SELECT id FROM friend WHERE friendId =
                (SELECT id FROM userInfo WHERE name = ?))
            ORDER BY id
            """,
            (name,),
        ).fetchall()
        added_by_me = self._conn.execute(
            """
            SELECT name FROM userInfo WHERE online = 1 AND id IN
              (SELECT friendId FROM friend WHERE id =
                (SELECT id FROM userInfo WHERE name = ?))
            ORDER BY id
            """,
            (name,),
        ).fetchall()
        return [row[0] for row in added_me] + [row[0] for row in added_by_me]

    def delete_friend(self, name: Optional[str], friend_name: Optional[str]) -> bool:
        if name is None or friend_name is None:
            return False
        query = """
            DELETE FROM friend
            WHERE id = (SELECT id FROM userInfo WHERE name = ?)
              AND friendId = (SELECT id FROM userInfo WHERE name = ?)
        """
        with self._conn:
            self._conn.execute(query, (name, friend_name))
            self._conn.execute(query, (friend_name, name))
        return True