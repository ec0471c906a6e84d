"""MCP Server - JSON-RPC dispatch, tool registry, authorization and tokens.

The server advertises and executes only the tools a user is subscribed
to, keeps OAuth tokens fresh for provider-backed tools, and audits every
tool call.
"""

from mcp_server.registry import ToolContext, ToolRegistry, build_registry
from mcp_server.router import DispatchOutcome, JsonRpcRouter
from mcp_server.auth import AuthorizationGate, IdentityResolver
from mcp_server.audit import AuditLogger
from mcp_server.store import CredentialStore, MemoryStore, SQLiteStore
from mcp_server.tokens import TokenLifecycleManager

__all__ = [
    "ToolContext",
    "ToolRegistry",
    "build_registry",
    "DispatchOutcome",
    "JsonRpcRouter",
    "AuthorizationGate",
    "IdentityResolver",
    "AuditLogger",
    "CredentialStore",
    "MemoryStore",
    "SQLiteStore",
    "TokenLifecycleManager",
]
