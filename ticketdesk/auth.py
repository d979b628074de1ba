"""User lookup and authentication against a comma-separated users file."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path

DEFAULT_USERS_FILE = "users.txt"
_FIELD_MAX = 63


@dataclass(frozen=True)
class User:
    """One account: login name, password and role."""

    username: str
    password: str
    role: str


def parse_user_line(line: str) -> User | None:
    """Parse a ``username,password,role`` line; return None if it is malformed."""
    text = line.split("\n", 1)[0]
    parts = text.split(",", 2)
    if len(parts) != 3:
        return None
    username, password, role = parts
    if not 0 < len(username) <= _FIELD_MAX:
        return None
    if not 0 < len(password) <= _FIELD_MAX:
        return None
    if not role:
        return None
    return User(username, password, role[:_FIELD_MAX])


class UserStore:
    """Read-only access to the users file."""

    def __init__(self, path: str | Path = DEFAULT_USERS_FILE) -> None:
        self.path = Path(path)

    def _users(self) -> Iterator[User]:
        try:
            handle = self.path.open(encoding="utf-8", errors="replace")
        except OSError:
            return
        with handle:
            for line in handle:
                user = parse_user_line(line)
                if user is not None:
                    yield user

    def find(self, username: str, case_sensitive: bool = True) -> User | None:
        """Return the first user with this name, or None."""
        if case_sensitive:
            wanted = username
            return next((u for u in self._users() if u.username == wanted), None)
        wanted = username.lower()
        return next((u for u in self._users() if u.username.lower() == wanted), None)

    def authenticate(self, username: str, password: str) -> str | None:
        """Return the user's role if the credentials match, otherwise None."""
        user = self.find(username, case_sensitive=True)
        if user is not None and user.password == password:
            return user.role
        return None

    def get_role(self, username: str) -> str | None:
        """Return the role of a user matched case-insensitively, or None."""
        user = self.find(username, case_sensitive=False)
        return user.role if user is not None else None