"""User store abstraction + in-memory and JSON file implementations."""

import asyncio
import json
import os
import tempfile
from abc import ABC, abstractmethod

from src.users.models import User


class UserStore(ABC):
    """Abstract base for user persistence."""

    @abstractmethod
    async def list_users(self) -> list[User]:
        """Return all users ordered by creation time."""
        ...

    @abstractmethod
    async def create_user(self, user: User) -> User:
        """Persist a new user and return it."""
        ...


class MemoryUserStore(UserStore):
    """Process-local store. Contents live as long as the Lambda container."""

    def __init__(self):
        self._users: dict[str, User] = {}

    async def list_users(self) -> list[User]:
        return sorted(self._users.values(), key=lambda u: u.created_at)

    async def create_user(self, user: User) -> User:
        self._users[user.user_id] = user
        return user


class JSONUserStore(UserStore):
    """File-backed store. Reloads on mtime change, rewrites atomically."""

    def __init__(self, path: str):
        self._path = path
        self._users: list[User] = []
        self._last_mtime: float = 0.0
        self._lock = asyncio.Lock()
        self._load()

    def _load(self) -> None:
        """Load users from the JSON file."""
        try:
            mtime = os.path.getmtime(self._path)
        except OSError:
            self._users = []
            return

        if mtime == self._last_mtime and self._users:
            return

        with open(self._path, encoding="utf-8") as f:
            data = json.load(f)

        self._users = [User.from_dict(entry) for entry in data.get("users", [])]
        self._last_mtime = mtime

    def _write(self) -> None:
        directory = os.path.dirname(os.path.abspath(self._path))
        fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump({"users": [u.to_dict() for u in self._users]}, f, indent=2)
            os.replace(tmp_path, self._path)
        except BaseException:
            os.unlink(tmp_path)
            raise
        self._last_mtime = os.path.getmtime(self._path)

    async def list_users(self) -> list[User]:
        self._load()  # reload if file changed
        return sorted(self._users, key=lambda u: u.created_at)

    async def create_user(self, user: User) -> User:
        async with self._lock:
            self._load()
            self._users.append(user)
            self._write()
        return user
