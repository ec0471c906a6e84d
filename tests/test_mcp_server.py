"""Tests for MCP Server components."""

import json
import types
from unittest.mock import AsyncMock

import httpx
import pytest

from shared.config import Settings
from shared.models import (
    TextContent,
    ToolCallStatus,
    ToolDescriptor,
    ToolResult,
    ToolSubscription,
)


async def echo_handler(arguments, context):
    return ToolResult(content=[TextContent(text=f"echo {arguments.get('value')} for {context.user_id}")])


async def failing_handler(arguments, context):
    raise RuntimeError("database is on fire")


ECHO_TOOL = ToolDescriptor(
    name="echo",
    description="Echo a value",
    input_schema={
        "type": "object",
        "properties": {"value": {"type": "string"}},
        "required": ["value"]
    }
)


async def make_router(subscriptions=(), registry=None, require_authorized_flag=False, audit_logger=None):
    """Router over an in-memory store with the given (user, tool, authorized) rows."""
    from mcp_server.auth import AuthorizationGate
    from mcp_server.registry import build_registry
    from mcp_server.router import JsonRpcRouter
    from mcp_server.store import MemoryStore
    from mcp_server.tokens import TokenLifecycleManager
    from tools import TOOL_MODULES

    store = MemoryStore()
    for user_id, tool_name, authorized in subscriptions:
        await store.save_subscription(
            ToolSubscription(user_id=user_id, tool_name=tool_name, authorized=authorized)
        )

    registry = registry or build_registry(TOOL_MODULES)
    tokens = TokenLifecycleManager(store, providers={}, tool_providers=registry.auth_providers())

    return JsonRpcRouter(
        registry=registry,
        gate=AuthorizationGate(store, require_authorized_flag=require_authorized_flag),
        tokens=tokens,
        http=httpx.AsyncClient(),
        settings=Settings(),
        audit_logger=audit_logger,
    )


def call_message(name, arguments=None, request_id=1):
    params = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    return {"jsonrpc": "2.0", "id": request_id, "method": "tools/call", "params": params}


class TestToolDescriptor:
    """Tests for the tool descriptor wire shape."""

    def test_server_side_fields_not_serialized(self):
        """auth_provider and display_name never reach clients."""
        tool = ToolDescriptor(
            name="GMAIL_SENDER",
            description="Send email",
            auth_provider="google",
            display_name="Gmail"
        )

        wire = tool.to_mcp()

        assert wire["name"] == "GMAIL_SENDER"
        assert wire["inputSchema"]["type"] == "object"
        assert "auth_provider" not in wire
        assert "display_name" not in wire
        assert "outputSchema" not in wire
        assert tool.auth_required
        assert tool.label == "Gmail"

    def test_descriptor_is_immutable(self):
        """Descriptors cannot be changed after construction."""
        from pydantic import ValidationError

        tool = ToolDescriptor(name="echo")

        with pytest.raises(ValidationError):
            tool.name = "other"


class TestToolRegistry:
    """Tests for the ToolRegistry."""

    def test_register_and_lookup(self):
        """Registered tools are found by name."""
        from mcp_server.registry import ToolRegistry

        registry = ToolRegistry()
        registry.register(ECHO_TOOL, echo_handler)

        assert registry.get("echo") is ECHO_TOOL
        assert registry.lookup("echo") is echo_handler
        assert "echo" in registry
        assert registry.lookup("missing") is None

    def test_list_preserves_registration_order(self):
        """list_tools returns descriptors in registration order."""
        from mcp_server.registry import ToolRegistry

        registry = ToolRegistry()
        for name in ("b_tool", "a_tool", "c_tool"):
            registry.register(ToolDescriptor(name=name), echo_handler)

        assert [t.name for t in registry.list_tools()] == ["b_tool", "a_tool", "c_tool"]

    def test_duplicate_replaces_in_place(self):
        """A duplicate name replaces the earlier entry but keeps its position."""
        from mcp_server.registry import ToolRegistry

        registry = ToolRegistry()
        registry.register(ToolDescriptor(name="first"), echo_handler)
        registry.register(ToolDescriptor(name="second"), echo_handler)
        replacement = ToolDescriptor(name="first", description="replacement")
        registry.register(replacement, failing_handler)

        assert [t.name for t in registry.list_tools()] == ["first", "second"]
        assert registry.get("first").description == "replacement"
        assert registry.lookup("first") is failing_handler
        assert len(registry) == 2

    def test_frozen_registry_rejects_registration(self):
        """No registrations after freeze."""
        from mcp_server.registry import ToolRegistry

        registry = ToolRegistry()
        registry.freeze()

        with pytest.raises(RuntimeError):
            registry.register(ECHO_TOOL, echo_handler)

    def test_discover_skips_invalid_modules(self):
        """Modules without TOOL and handler are skipped."""
        from mcp_server.registry import build_registry

        good = types.ModuleType("good_tool")
        good.TOOL = ECHO_TOOL
        good.handler = echo_handler
        bad = types.ModuleType("bad_tool")
        bad.TOOL = {"name": "not a descriptor"}

        registry = build_registry([bad, good])

        assert [t.name for t in registry.list_tools()] == ["echo"]
        assert registry.frozen

    def test_builtin_tools_and_providers(self):
        """The built-in tool modules register with their OAuth providers."""
        from mcp_server.registry import build_registry
        from tools import TOOL_MODULES

        registry = build_registry(TOOL_MODULES)
        names = [t.name for t in registry.list_tools()]

        assert names[:3] == ["get_weather", "calculate", "get_time"]
        for name in (
            "GMAIL_SENDER", "CALENDAR_EVENT_CREATOR", "GOOGLE_ANALYTICS_REPORTER",
            "get_uber_price", "book_uber_ride", "manage_artifact", "get_youtube_trending",
        ):
            assert name in registry

        providers = registry.auth_providers()
        assert providers["GMAIL_SENDER"] == "google"
        assert providers["CALENDAR_EVENT_CREATOR"] == "google"
        assert providers["GOOGLE_ANALYTICS_REPORTER"] == "google"
        assert providers["book_uber_ride"] == "uber"
        assert "get_weather" not in providers
        assert "get_uber_price" not in providers

    def test_validate_input(self):
        """Arguments are checked against the input schema."""
        from mcp_server.registry import ToolRegistry

        registry = ToolRegistry()
        registry.register(ECHO_TOOL, echo_handler)

        assert registry.validate_input("echo", {"value": "x"}) == (True, [])

        is_valid, errors = registry.validate_input("echo", {"value": 3})
        assert not is_valid
        assert errors == ["value: 3 is not of type 'string'"]

    def test_malformed_schema_rejected_at_registration(self):
        """A broken input schema fails when the tool registers."""
        from jsonschema import SchemaError
        from mcp_server.registry import ToolRegistry

        registry = ToolRegistry()
        broken = ToolDescriptor(name="broken", description="x", input_schema={"type": "nope"})

        with pytest.raises(SchemaError):
            registry.register(broken, echo_handler)
        assert "broken" not in registry


class TestAuthorizationGate:
    """Tests for subscription-based tool authorization."""

    @pytest.mark.asyncio
    async def test_filter_visible_keeps_registry_order(self):
        """Only subscribed tools are listed, in registry order."""
        from mcp_server.auth import AuthorizationGate
        from mcp_server.store import MemoryStore

        store = MemoryStore()
        await store.save_subscription(ToolSubscription(user_id="u1", tool_name="c"))
        await store.save_subscription(ToolSubscription(user_id="u1", tool_name="a"))
        await store.save_subscription(ToolSubscription(user_id="u2", tool_name="b"))
        tools = [ToolDescriptor(name=n) for n in ("a", "b", "c")]

        gate = AuthorizationGate(store)
        visible = await gate.filter_visible("u1", tools)

        assert [t.name for t in visible] == ["a", "c"]

    @pytest.mark.asyncio
    async def test_authorize_requires_subscription(self):
        """Calls need a subscription row."""
        from mcp_server.auth import AuthorizationGate
        from mcp_server.store import MemoryStore

        store = MemoryStore()
        await store.save_subscription(ToolSubscription(user_id="u1", tool_name="a"))
        gate = AuthorizationGate(store)

        assert await gate.authorize("u1", "a")
        assert not await gate.authorize("u1", "b")
        assert not await gate.authorize("u2", "a")

    @pytest.mark.asyncio
    async def test_authorize_is_a_point_read(self):
        """authorize looks up exactly the (user, tool) pair."""
        from mcp_server.auth import AuthorizationGate

        store = AsyncMock()
        store.get_subscription.return_value = None
        gate = AuthorizationGate(store)

        assert not await gate.authorize("u1", "GMAIL_SENDER")
        store.get_subscription.assert_awaited_once_with("u1", "GMAIL_SENDER")
        store.list_subscriptions.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_authorized_flag_policy(self):
        """With the flag policy, unauthorized rows hide and deny the tool."""
        from mcp_server.auth import AuthorizationGate
        from mcp_server.store import MemoryStore

        store = MemoryStore()
        await store.save_subscription(ToolSubscription(user_id="u1", tool_name="a", authorized=False))
        tools = [ToolDescriptor(name="a")]

        lenient = AuthorizationGate(store)
        strict = AuthorizationGate(store, require_authorized_flag=True)

        assert await lenient.authorize("u1", "a")
        assert [t.name for t in await lenient.filter_visible("u1", tools)] == ["a"]
        assert not await strict.authorize("u1", "a")
        assert await strict.filter_visible("u1", tools) == []


class TestIdentityResolver:
    """Tests for caller identity resolution."""

    def test_query_user_when_auth_optional(self):
        """Without require_auth the userId query parameter is used."""
        from mcp_server.auth import IdentityResolver

        resolver = IdentityResolver("secret")

        assert resolver.resolve("u1", None) == "u1"
        assert resolver.resolve(None, None) is None

    def test_bearer_token_when_auth_required(self):
        """With require_auth the token subject wins over the query."""
        from mcp_server.auth import IdentityResolver

        resolver = IdentityResolver("secret", require_auth=True)
        token = resolver.create_token("u1")

        assert resolver.resolve("someone-else", f"Bearer {token}") == "u1"

    def test_missing_or_bad_token_rejected(self):
        """Missing or invalid tokens raise 401."""
        from fastapi import HTTPException
        from mcp_server.auth import IdentityResolver

        resolver = IdentityResolver("secret", require_auth=True)
        forged = IdentityResolver("other-secret").create_token("u1")

        with pytest.raises(HTTPException) as exc_info:
            resolver.resolve("u1", None)
        assert exc_info.value.status_code == 401

        with pytest.raises(HTTPException):
            resolver.resolve(None, f"Bearer {forged}")


class TestAuditLogger:
    """Tests for audit logging."""

    def test_sensitive_arguments_redacted(self):
        """Sensitive arguments are redacted in entries."""
        from mcp_server.audit import AuditLogger

        audit = AuditLogger(enabled=False)
        entry = audit.create_entry(
            user_id="u1",
            tool_name="login",
            arguments={"username": "alice", "password": "hunter2", "nested": {"api_key": "k"}},
            status=ToolCallStatus.SUCCESS,
            execution_time_ms=5.0
        )

        assert entry.arguments["username"] == "alice"
        assert entry.arguments["password"] == "[REDACTED]"
        assert entry.arguments["nested"]["api_key"] == "[REDACTED]"
        assert entry.execution_time_ms == 5.0

    @pytest.mark.asyncio
    async def test_flush_writes_json_lines(self, tmp_path):
        """Flushed entries are appended as JSON lines."""
        from mcp_server.audit import AuditLogger

        log_path = tmp_path / "audit" / "audit.log"
        audit = AuditLogger(log_path=str(log_path), enabled=True)

        await audit.log(audit.create_entry("u1", "get_weather", {}, ToolCallStatus.SUCCESS))
        await audit.log(audit.create_entry("u1", "GMAIL_SENDER", {}, ToolCallStatus.DENIED))
        await audit.flush()

        lines = log_path.read_text().splitlines()
        assert [json.loads(line)["status"] for line in lines] == ["success", "denied"]
        assert audit.counts == {"success": 1, "denied": 1}

    def test_redaction_matches_secret_fragments(self):
        """Keys that merely contain a secret word are redacted, lists included."""
        from mcp_server.audit import redact

        redacted = redact({
            "client_secret": "s",
            "items": [{"refreshToken": "r", "title": "keep"}],
            "to": "a@b.c",
        })

        assert redacted == {
            "client_secret": "[REDACTED]",
            "items": [{"refreshToken": "[REDACTED]", "title": "keep"}],
            "to": "a@b.c",
        }

    @pytest.mark.asyncio
    async def test_batch_written_when_full(self, tmp_path):
        """A full batch is written without an explicit flush."""
        from mcp_server.audit import AuditLogger

        log_path = tmp_path / "audit.log"
        audit = AuditLogger(log_path=str(log_path), enabled=True, batch_size=2)

        await audit.log(audit.create_entry("u1", "get_time", {}, ToolCallStatus.SUCCESS))
        assert not log_path.exists()

        await audit.log(audit.create_entry("u1", "get_time", {}, ToolCallStatus.ERROR))
        assert len(log_path.read_text().splitlines()) == 2


class TestJsonRpcDispatch:
    """Tests for envelope classification and error shaping."""

    @pytest.mark.asyncio
    async def test_initialize(self):
        """initialize reports protocol version and server info."""
        router = await make_router()

        outcome = await router.dispatch(
            {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"clientInfo": {"name": "test"}}},
            None
        )

        assert outcome.status_code == 200
        assert outcome.body == {
            "jsonrpc": "2.0",
            "result": {
                "protocolVersion": "2024-11-05",
                "capabilities": {"tools": {}},
                "serverInfo": {"name": "example-server", "version": "1.0.0"},
            },
            "id": 1,
        }

    @pytest.mark.asyncio
    async def test_ping(self):
        """ping returns an empty result."""
        router = await make_router()

        outcome = await router.dispatch({"jsonrpc": "2.0", "id": "p", "method": "ping"}, None)

        assert outcome.body == {"jsonrpc": "2.0", "result": {}, "id": "p"}

    @pytest.mark.asyncio
    async def test_unparseable_body(self):
        """Invalid JSON is a parse error with HTTP 400 and a null id."""
        from shared.models import RpcErrorCode

        router = await make_router()

        outcome = await router.dispatch_raw(b"{not json", "u1")

        assert outcome.status_code == 400
        assert outcome.body["error"]["code"] == RpcErrorCode.PARSE_ERROR
        assert outcome.body["id"] is None

    @pytest.mark.asyncio
    async def test_non_object_body(self):
        """A JSON array or scalar is a parse error."""
        router = await make_router()

        outcome = await router.dispatch_raw(b"[1, 2]", "u1")

        assert outcome.status_code == 400
        assert outcome.body["error"]["code"] == -32700

    @pytest.mark.asyncio
    async def test_wrong_jsonrpc_version(self):
        """A missing or wrong jsonrpc member is an invalid request."""
        router = await make_router()

        outcome = await router.dispatch({"id": 4, "method": "ping"}, "u1")

        assert outcome.status_code == 400
        assert outcome.body["error"]["code"] == -32600
        assert outcome.body["id"] == 4

    @pytest.mark.asyncio
    async def test_id_without_method(self):
        """An id with no method is an invalid request echoing the id."""
        router = await make_router()

        outcome = await router.dispatch({"jsonrpc": "2.0", "id": 9}, "u1")

        assert outcome.status_code == 400
        assert outcome.body["error"] == {"code": -32600, "message": "Invalid Request - missing method"}
        assert outcome.body["id"] == 9

    @pytest.mark.asyncio
    async def test_notification_has_no_body(self):
        """Notifications get 204 and are handed back for side effects."""
        router = await make_router()

        outcome = await router.dispatch(
            {"jsonrpc": "2.0", "method": "notifications/cancelled", "params": {"requestId": 3}},
            "u1"
        )

        assert outcome.status_code == 204
        assert outcome.body is None
        assert outcome.notification.method == "notifications/cancelled"
        await router.handle_notification(outcome.notification)

    @pytest.mark.asyncio
    async def test_null_id_is_a_request(self):
        """An explicit null id still gets a response."""
        router = await make_router()

        outcome = await router.dispatch({"jsonrpc": "2.0", "id": None, "method": "ping"}, None)

        assert outcome.status_code == 200
        assert outcome.body == {"jsonrpc": "2.0", "result": {}, "id": None}

    @pytest.mark.asyncio
    async def test_unknown_method(self):
        """Unknown methods get -32601 with the id preserved."""
        router = await make_router()

        outcome = await router.dispatch({"jsonrpc": "2.0", "id": 7, "method": "resources/list"}, "u1")

        assert outcome.status_code == 200
        assert outcome.body == {
            "jsonrpc": "2.0",
            "error": {"code": -32601, "message": "Method not found: resources/list"},
            "id": 7,
        }

    @pytest.mark.asyncio
    async def test_handler_exception_is_internal_error(self):
        """An exception inside a handler becomes -32603 with HTTP 500."""
        from mcp_server.registry import ToolRegistry

        registry = ToolRegistry()
        registry.register(ToolDescriptor(name="explode"), failing_handler)
        router = await make_router([("u1", "explode", True)], registry=registry)

        outcome = await router.dispatch(call_message("explode", {}, request_id=12), "u1")

        assert outcome.status_code == 500
        assert outcome.body["error"]["code"] == -32603
        assert outcome.body["error"]["message"] == "database is on fire"
        assert outcome.body["id"] == 12


class TestToolsList:
    """Tests for tools/list."""

    @pytest.mark.asyncio
    async def test_lists_only_subscribed_tools(self):
        """Users see exactly their subscribed tools."""
        router = await make_router([("u1", "get_weather", True), ("u1", "calculate", True)])

        outcome = await router.dispatch({"jsonrpc": "2.0", "id": 2, "method": "tools/list"}, "u1")

        tools = outcome.body["result"]["tools"]
        assert [t["name"] for t in tools] == ["get_weather", "calculate"]
        assert tools[0]["inputSchema"]["required"] == ["location"]
        assert all("auth_provider" not in t for t in tools)

    @pytest.mark.asyncio
    async def test_unknown_user_sees_nothing(self):
        """A user with no subscriptions gets an empty list."""
        router = await make_router([("u1", "get_weather", True)])

        outcome = await router.dispatch({"jsonrpc": "2.0", "id": 2, "method": "tools/list"}, "u2")

        assert outcome.body["result"] == {"tools": []}

    @pytest.mark.asyncio
    async def test_missing_user_is_invalid_params(self):
        """tools/list without a user id is -32602."""
        router = await make_router()

        outcome = await router.dispatch({"jsonrpc": "2.0", "id": 2, "method": "tools/list"}, None)

        assert outcome.status_code == 200
        assert outcome.body["error"]["code"] == -32602


class TestToolsCall:
    """Tests for tools/call."""

    @pytest.mark.asyncio
    async def test_unsubscribed_tool_denied(self):
        """Calling an unsubscribed tool returns a denial without running the handler."""
        from mcp_server.registry import ToolRegistry

        handler = AsyncMock(return_value=ToolResult(content=[TextContent(text="sent")]))
        registry = ToolRegistry()
        registry.register(ToolDescriptor(name="GMAIL_SENDER", auth_provider="google"), handler)
        registry.freeze()
        router = await make_router([("u1", "get_weather", True)], registry=registry)

        requests = []
        router.http = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: requests.append(request) or httpx.Response(200))
        )

        outcome = await router.dispatch(
            call_message("GMAIL_SENDER", {"toMail": "a@b.c", "subject": "s", "body": "b"}), "u1"
        )

        assert outcome.status_code == 200
        assert outcome.body["result"] == {
            "content": [{
                "type": "text",
                "text": '❌ Access denied. Tool "GMAIL_SENDER" is not subscribed for this user.',
            }],
            "isError": True,
        }
        handler.assert_not_awaited()
        assert requests == []

    @pytest.mark.asyncio
    async def test_subscribed_tool_without_handler(self):
        """A subscription to an unregistered tool reports it as not implemented."""
        router = await make_router([("u1", "ghost_tool", True)])

        outcome = await router.dispatch(call_message("ghost_tool", {}), "u1")

        assert outcome.body["result"]["isError"] is True
        assert outcome.body["result"]["content"][0]["text"] == '❌ Tool "ghost_tool" is not implemented.'

    @pytest.mark.asyncio
    async def test_calculate(self):
        """A permitted call returns the handler result verbatim."""
        router = await make_router([("u1", "calculate", True)])

        outcome = await router.dispatch(call_message("calculate", {"expression": "2+3*4"}), "u1")

        assert outcome.body["result"] == {
            "content": [{"type": "text", "text": "[User: u1] 2+3*4 = 14"}]
        }

    @pytest.mark.asyncio
    async def test_arguments_default_to_empty_object(self):
        """A call without arguments still reaches the handler."""
        router = await make_router([("u1", "get_time", True)])

        outcome = await router.dispatch(call_message("get_time"), "u1")

        assert "isError" not in outcome.body["result"]
        assert "Current time" in outcome.body["result"]["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_invalid_arguments(self):
        """Schema violations are reported as an error result."""
        router = await make_router([("u1", "calculate", True)])

        outcome = await router.dispatch(call_message("calculate", {}), "u1")

        result = outcome.body["result"]
        assert result["isError"] is True
        assert result["content"][0]["text"].startswith('❌ Invalid arguments for tool "calculate"')

    @pytest.mark.asyncio
    async def test_user_id_injected(self):
        """The handler sees the acting user and not a userId argument."""
        from mcp_server.registry import ToolRegistry

        seen = {}

        async def capture(arguments, context):
            seen["arguments"] = arguments
            seen["user"] = context.user_id
            return ToolResult(content=[TextContent(text="ok")])

        registry = ToolRegistry()
        registry.register(ToolDescriptor(name="capture"), capture)
        router = await make_router([("u1", "capture", True)], registry=registry)

        await router.dispatch(call_message("capture", {"a": 1, "userId": "spoofed"}), "u1")

        assert seen == {"arguments": {"a": 1}, "user": "u1"}

    @pytest.mark.asyncio
    async def test_missing_name_is_invalid_params(self):
        """tools/call without a tool name is -32602."""
        router = await make_router()

        outcome = await router.dispatch(
            {"jsonrpc": "2.0", "id": 3, "method": "tools/call", "params": {}}, "u1"
        )

        assert outcome.body["error"]["code"] == -32602
        assert outcome.body["id"] == 3

    @pytest.mark.asyncio
    async def test_missing_user_is_invalid_params(self):
        """tools/call without a user id is -32602."""
        router = await make_router()

        outcome = await router.dispatch(call_message("calculate", {"expression": "1"}), None)

        assert outcome.body["error"]["code"] == -32602

    @pytest.mark.asyncio
    async def test_unauthorized_row_with_flag_policy(self):
        """With the flag policy an unauthorized row is denied."""
        router = await make_router([("u1", "calculate", False)], require_authorized_flag=True)

        outcome = await router.dispatch(call_message("calculate", {"expression": "1+1"}), "u1")

        assert outcome.body["result"]["isError"] is True
        assert "Access denied" in outcome.body["result"]["content"][0]["text"]

    @pytest.mark.asyncio
    async def test_calls_are_audited(self, tmp_path):
        """Every call outcome is recorded."""
        from mcp_server.audit import AuditLogger

        log_path = tmp_path / "audit.log"
        audit = AuditLogger(log_path=str(log_path), enabled=True)
        router = await make_router([("u1", "calculate", True)], audit_logger=audit)

        await router.dispatch(call_message("calculate", {"expression": "1+1"}), "u1")
        await router.dispatch(call_message("GMAIL_SENDER", {}), "u1")
        await router.dispatch(call_message("calculate", {}), "u1")
        await audit.flush()

        statuses = [json.loads(line)["status"] for line in log_path.read_text().splitlines()]
        assert statuses == ["success", "denied", "invalid"]


class TestSettings:
    """Tests for YAML-backed settings."""

    def test_yaml_sections_and_env_expansion(self, tmp_path, monkeypatch):
        """Nested sections load and ${VAR} references expand."""
        monkeypatch.setenv("TEST_GOOGLE_SECRET", "from-env")
        config = tmp_path / "settings.yaml"
        config.write_text(
            "log_level: DEBUG\n"
            "mcp_server:\n"
            "  port: 9001\n"
            "  require_authorized_flag: true\n"
            "google:\n"
            "  client_secret: ${TEST_GOOGLE_SECRET}\n"
        )

        settings = Settings.from_yaml(config)

        assert settings.log_level == "DEBUG"
        assert settings.mcp_server.port == 9001
        assert settings.mcp_server.require_authorized_flag is True
        assert settings.google.client_secret == "from-env"

    def test_missing_file_gives_defaults(self, tmp_path):
        """A missing config file is not an error."""
        settings = Settings.from_yaml(tmp_path / "absent.yaml")

        assert settings.mcp_server.token_guard_seconds == 300

    def test_non_mapping_rejected(self, tmp_path):
        """The document must be a mapping."""
        config = tmp_path / "settings.yaml"
        config.write_text("- just\n- a list\n")

        with pytest.raises(ValueError):
            Settings.from_yaml(config)
