"""Shared utilities and base classes for the MCP tool server."""

from shared.models import (
    AuditEntry,
    Credential,
    JsonRpcResponse,
    RpcEnvelope,
    ToolDescriptor,
    ToolResult,
    ToolSubscription,
)
from shared.config import Settings, get_settings
from shared.errors import ProviderError, ReauthRequired, ToolServerError
from shared.logging import get_logger, setup_logging

__all__ = [
    "AuditEntry",
    "Credential",
    "JsonRpcResponse",
    "RpcEnvelope",
    "ToolDescriptor",
    "ToolResult",
    "ToolSubscription",
    "Settings",
    "get_settings",
    "ProviderError",
    "ReauthRequired",
    "ToolServerError",
    "get_logger",
    "setup_logging",
]
