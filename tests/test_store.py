"""Tests for credential and subscription storage."""

from datetime import datetime, timedelta, timezone

import pytest

from shared.models import Credential, ToolDescriptor, ToolSubscription, User, utcnow


@pytest.fixture
def sqlite_store():
    from mcp_server.store import SQLiteStore

    return SQLiteStore(":memory:")


def insert_raw_credential(store, expires_at):
    """Write a row the way an external consent flow would, bypassing the model."""
    store._conn.execute(
        "INSERT INTO credentials (user_id, tool_name, access_token, refresh_token, expires_at) "
        "VALUES (?, ?, ?, ?, ?)",
        ("u1", "GMAIL_SENDER", "a1", "r1", expires_at),
    )
    store._conn.commit()


class TestSQLiteStore:
    """Tests for the SQLite-backed store."""

    @pytest.mark.asyncio
    async def test_offsetless_expiry_read_as_utc(self, sqlite_store):
        """An expiry stored without an offset comes back as UTC."""
        insert_raw_credential(sqlite_store, "2026-10-19T12:30:00")

        credential = await sqlite_store.get_credential("u1", "GMAIL_SENDER")

        assert credential.expires_at == datetime(2026, 10, 19, 12, 30, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_subscription_roundtrip(self, sqlite_store):
        """Saved subscriptions are read back by (user, tool)."""
        await sqlite_store.save_subscription(ToolSubscription(user_id="u1", tool_name="get_weather"))

        subscription = await sqlite_store.get_subscription("u1", "get_weather")

        assert subscription == ToolSubscription(user_id="u1", tool_name="get_weather", authorized=True)
        assert await sqlite_store.get_subscription("u1", "calculate") is None
        assert await sqlite_store.get_subscription("u2", "get_weather") is None

    @pytest.mark.asyncio
    async def test_subscription_upsert(self, sqlite_store):
        """Saving the same (user, tool) again updates the single row."""
        await sqlite_store.save_subscription(ToolSubscription(user_id="u1", tool_name="a"))
        await sqlite_store.save_subscription(ToolSubscription(user_id="u1", tool_name="a", authorized=False))

        subscriptions = await sqlite_store.list_subscriptions("u1")

        assert subscriptions == [ToolSubscription(user_id="u1", tool_name="a", authorized=False)]

    @pytest.mark.asyncio
    async def test_list_subscriptions_per_user(self, sqlite_store):
        """Listing is scoped to one user."""
        for user_id, tool_name in (("u1", "a"), ("u1", "b"), ("u2", "c")):
            await sqlite_store.save_subscription(ToolSubscription(user_id=user_id, tool_name=tool_name))

        names = sorted(s.tool_name for s in await sqlite_store.list_subscriptions("u1"))

        assert names == ["a", "b"]

    @pytest.mark.asyncio
    async def test_credential_roundtrip(self, sqlite_store):
        """Credentials keep their timezone-aware expiry."""
        expires_at = utcnow() + timedelta(hours=1)
        await sqlite_store.save_credential(Credential(
            user_id="u1",
            tool_name="GMAIL_SENDER",
            access_token="a1",
            refresh_token="r1",
            expires_at=expires_at,
        ))

        credential = await sqlite_store.get_credential("u1", "GMAIL_SENDER")

        assert credential.access_token == "a1"
        assert credential.refresh_token == "r1"
        assert credential.expires_at == expires_at
        assert credential.expires_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_credential_overwrite(self, sqlite_store):
        """A second save replaces the tokens for the same (user, tool)."""
        await sqlite_store.save_credential(Credential(user_id="u1", tool_name="t", access_token="a1"))
        await sqlite_store.save_credential(Credential(
            user_id="u1", tool_name="t", access_token="a2", refresh_token="r2"
        ))

        credential = await sqlite_store.get_credential("u1", "t")

        assert credential.access_token == "a2"
        assert credential.refresh_token == "r2"
        assert credential.expires_at is None

    @pytest.mark.asyncio
    async def test_missing_credential(self, sqlite_store):
        """Unknown (user, tool) has no credential."""
        assert await sqlite_store.get_credential("u1", "t") is None

    @pytest.mark.asyncio
    async def test_sync_tools_and_users(self, sqlite_store):
        """Registered tools and users are recorded."""
        await sqlite_store.sync_tools([
            ToolDescriptor(name="get_weather", description="Weather"),
            ToolDescriptor(name="GMAIL_SENDER", description="Mail", auth_provider="google"),
        ])
        await sqlite_store.sync_tools([ToolDescriptor(name="get_weather", description="Weather v2")])
        await sqlite_store.save_user(User(id="u1", email="u1@example.com"))

        rows = sqlite_store._conn.execute(
            "SELECT name, description, auth_provider, auth_required FROM tools ORDER BY name"
        ).fetchall()
        users = sqlite_store._conn.execute("SELECT id, email FROM users").fetchall()

        assert [tuple(r) for r in rows] == [
            ("GMAIL_SENDER", "Mail", "google", 1),
            ("get_weather", "Weather v2", None, 0),
        ]
        assert [tuple(u) for u in users] == [("u1", "u1@example.com")]


class TestMemoryStore:
    """Tests for the in-memory store."""

    @pytest.mark.asyncio
    async def test_returns_copies(self):
        """Mutating a returned credential does not change the store."""
        from mcp_server.store import MemoryStore

        store = MemoryStore()
        await store.save_credential(Credential(user_id="u1", tool_name="t", access_token="a1"))

        credential = await store.get_credential("u1", "t")
        credential.access_token = "tampered"

        assert (await store.get_credential("u1", "t")).access_token == "a1"
