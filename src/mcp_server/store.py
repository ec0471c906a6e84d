"""Credential and subscription storage.

All access goes through point reads and point upserts keyed by
(user_id, tool_name). Two implementations are provided: an in-memory
store for tests and development, and a SQLite store for deployments.
"""

import asyncio
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from functools import partial
from pathlib import Path
from typing import Any, Callable, Iterator, Optional, TypeVar

from shared.logging import get_logger
from shared.models import Credential, ToolDescriptor, ToolSubscription, User

logger = get_logger(__name__)

T = TypeVar("T")


class CredentialStore(ABC):
    """
    Persistence for subscriptions and OAuth credentials.

    Implementations must keep at most one subscription and one credential
    per (user_id, tool_name); saves are upserts.
    """

    @abstractmethod
    async def get_subscription(self, user_id: str, tool_name: str) -> Optional[ToolSubscription]:
        ...

    @abstractmethod
    async def list_subscriptions(self, user_id: str) -> list[ToolSubscription]:
        ...

    @abstractmethod
    async def save_subscription(self, subscription: ToolSubscription) -> None:
        ...

    @abstractmethod
    async def get_credential(self, user_id: str, tool_name: str) -> Optional[Credential]:
        ...

    @abstractmethod
    async def save_credential(self, credential: Credential) -> None:
        ...

    @abstractmethod
    async def save_user(self, user: User) -> None:
        ...

    @abstractmethod
    async def sync_tools(self, tools: list[ToolDescriptor]) -> None:
        """Record the registered tools so subscriptions can reference them."""
        ...

    async def close(self) -> None:
        """Release any held resources."""
        return None


class MemoryStore(CredentialStore):
    """Dictionary-backed store. State lives as long as the process."""

    def __init__(self) -> None:
        self._subscriptions: dict[tuple[str, str], ToolSubscription] = {}
        self._credentials: dict[tuple[str, str], Credential] = {}
        self._users: dict[str, User] = {}
        self._tools: dict[str, ToolDescriptor] = {}

    async def get_subscription(self, user_id: str, tool_name: str) -> Optional[ToolSubscription]:
        return self._subscriptions.get((user_id, tool_name))

    async def list_subscriptions(self, user_id: str) -> list[ToolSubscription]:
        return [s for (uid, _), s in self._subscriptions.items() if uid == user_id]

    async def save_subscription(self, subscription: ToolSubscription) -> None:
        key = (subscription.user_id, subscription.tool_name)
        self._subscriptions[key] = subscription.model_copy()

    async def get_credential(self, user_id: str, tool_name: str) -> Optional[Credential]:
        credential = self._credentials.get((user_id, tool_name))
        # Callers get a copy so a half-built refresh never leaks into the store
        return credential.model_copy() if credential else None

    async def save_credential(self, credential: Credential) -> None:
        key = (credential.user_id, credential.tool_name)
        self._credentials[key] = credential.model_copy()

    async def save_user(self, user: User) -> None:
        self._users[user.id] = user

    async def sync_tools(self, tools: list[ToolDescriptor]) -> None:
        for tool in tools:
            self._tools[tool.name] = tool


class SQLiteStore(CredentialStore):
    """
    SQLite-backed store.

    Blocking sqlite3 calls run in the default executor so the event loop
    is never held up by disk I/O.
    """

    SCHEMA = """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        email TEXT,
        name TEXT
    );

    CREATE TABLE IF NOT EXISTS tools (
        name TEXT PRIMARY KEY,
        description TEXT,
        auth_provider TEXT,
        auth_config TEXT,
        auth_required BOOLEAN DEFAULT 0
    );

    CREATE TABLE IF NOT EXISTS tool_subscriptions (
        user_id TEXT NOT NULL,
        tool_name TEXT NOT NULL,
        authorized BOOLEAN DEFAULT 1,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (user_id, tool_name)
    );

    CREATE TABLE IF NOT EXISTS credentials (
        user_id TEXT NOT NULL,
        tool_name TEXT NOT NULL,
        access_token TEXT,
        refresh_token TEXT,
        expires_at TEXT,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        UNIQUE (user_id, tool_name)
    );

    CREATE INDEX IF NOT EXISTS idx_subscriptions_user ON tool_subscriptions(user_id);
    """

    def __init__(self, db_path: str = "data/mcp_tools.db") -> None:
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(db_path, check_same_thread=False, timeout=30.0)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        with self._transaction() as conn:
            conn.executescript(self.SCHEMA)
        logger.info("Credential store initialized", db_path=db_path)

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    async def _run(self, fn: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(fn, *args))

    # Subscriptions

    def _get_subscription(self, user_id: str, tool_name: str) -> Optional[ToolSubscription]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT user_id, tool_name, authorized FROM tool_subscriptions "
                "WHERE user_id = ? AND tool_name = ?",
                (user_id, tool_name)
            ).fetchone()
        return self._row_to_subscription(row) if row else None

    def _list_subscriptions(self, user_id: str) -> list[ToolSubscription]:
        with self._transaction() as conn:
            rows = conn.execute(
                "SELECT user_id, tool_name, authorized FROM tool_subscriptions WHERE user_id = ?",
                (user_id,)
            ).fetchall()
        return [self._row_to_subscription(row) for row in rows]

    def _save_subscription(self, subscription: ToolSubscription) -> None:
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO tool_subscriptions (user_id, tool_name, authorized)
                VALUES (?, ?, ?)
                ON CONFLICT (user_id, tool_name) DO UPDATE SET authorized = excluded.authorized
                """,
                (subscription.user_id, subscription.tool_name, int(subscription.authorized))
            )

    async def get_subscription(self, user_id: str, tool_name: str) -> Optional[ToolSubscription]:
        return await self._run(self._get_subscription, user_id, tool_name)

    async def list_subscriptions(self, user_id: str) -> list[ToolSubscription]:
        return await self._run(self._list_subscriptions, user_id)

    async def save_subscription(self, subscription: ToolSubscription) -> None:
        await self._run(self._save_subscription, subscription)

    # Credentials

    def _get_credential(self, user_id: str, tool_name: str) -> Optional[Credential]:
        with self._transaction() as conn:
            row = conn.execute(
                "SELECT user_id, tool_name, access_token, refresh_token, expires_at "
                "FROM credentials WHERE user_id = ? AND tool_name = ?",
                (user_id, tool_name)
            ).fetchone()
        if not row:
            return None
        expires_at = row["expires_at"]
        return Credential(
            user_id=row["user_id"],
            tool_name=row["tool_name"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
        )

    def _save_credential(self, credential: Credential) -> None:
        expires_at = credential.expires_at.isoformat() if credential.expires_at else None
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO credentials (user_id, tool_name, access_token, refresh_token, expires_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (user_id, tool_name) DO UPDATE SET
                    access_token = excluded.access_token,
                    refresh_token = excluded.refresh_token,
                    expires_at = excluded.expires_at,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (
                    credential.user_id,
                    credential.tool_name,
                    credential.access_token,
                    credential.refresh_token,
                    expires_at,
                )
            )

    async def get_credential(self, user_id: str, tool_name: str) -> Optional[Credential]:
        return await self._run(self._get_credential, user_id, tool_name)

    async def save_credential(self, credential: Credential) -> None:
        await self._run(self._save_credential, credential)

    # Users and tools

    def _save_user(self, user: User) -> None:
        with self._transaction() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO users (id, email, name) VALUES (?, ?, ?)",
                (user.id, user.email, user.name)
            )

    def _sync_tools(self, tools: list[ToolDescriptor]) -> None:
        with self._transaction() as conn:
            conn.executemany(
                """
                INSERT INTO tools (name, description, auth_provider, auth_required)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (name) DO UPDATE SET
                    description = excluded.description,
                    auth_provider = excluded.auth_provider,
                    auth_required = excluded.auth_required
                """,
                [
                    (t.name, t.description, t.auth_provider, int(t.auth_required))
                    for t in tools
                ]
            )

    async def save_user(self, user: User) -> None:
        await self._run(self._save_user, user)

    async def sync_tools(self, tools: list[ToolDescriptor]) -> None:
        await self._run(self._sync_tools, tools)
        logger.info("Tools synced to store", count=len(tools))

    async def close(self) -> None:
        with self._lock:
            self._conn.close()

    @staticmethod
    def _row_to_subscription(row: sqlite3.Row) -> ToolSubscription:
        return ToolSubscription(
            user_id=row["user_id"],
            tool_name=row["tool_name"],
            authorized=bool(row["authorized"]),
        )
