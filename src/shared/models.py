"""Core data models for the MCP tool server.

This module defines the shared data structures used across the server:
tool descriptors and results, the JSON-RPC envelope, persisted
subscriptions and credentials, and audit entries.
"""

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    """Timezone-aware current UTC time."""
    return datetime.now(timezone.utc)


class ToolDescriptor(BaseModel):
    """
    Complete definition of an MCP tool.

    Only ``name``, ``description``, ``inputSchema`` and ``outputSchema``
    are sent to clients. ``auth_provider`` and ``display_name`` stay
    server-side and drive the token lifecycle and user-facing messages.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(..., description="Unique tool name")
    description: str = Field(default="", description="Clear description for LLM usage")
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []},
        alias="inputSchema",
        description="JSON Schema for input validation"
    )
    output_schema: Optional[dict[str, Any]] = Field(
        default=None,
        alias="outputSchema",
        description="JSON Schema for output structure"
    )

    auth_provider: Optional[str] = Field(default=None, exclude=True)
    display_name: Optional[str] = Field(default=None, exclude=True)

    @property
    def auth_required(self) -> bool:
        return self.auth_provider is not None

    @property
    def label(self) -> str:
        """Human-readable name used in messages."""
        return self.display_name or self.name

    def to_mcp(self) -> dict[str, Any]:
        """Serialize for a ``tools/list`` response."""
        return self.model_dump(by_alias=True, exclude_none=True)


class TextContent(BaseModel):
    """A single text content block of a tool result."""
    type: Literal["text"] = "text"
    text: str


class ToolResult(BaseModel):
    """
    Result of a tool execution.

    The shape is uniform across all tools. ``isError`` is only
    serialized when set, so successful results carry ``content`` alone.
    """
    model_config = ConfigDict(populate_by_name=True)

    content: list[TextContent] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")

    @property
    def text(self) -> str:
        """All text blocks joined, mostly useful in tests and logs."""
        return "\n".join(block.text for block in self.content)

    def to_mcp(self) -> dict[str, Any]:
        data: dict[str, Any] = {"content": [block.model_dump() for block in self.content]}
        if self.is_error:
            data["isError"] = True
        return data


class ToolSubscription(BaseModel):
    """Allowlist membership of a tool for a user."""
    user_id: str
    tool_name: str
    authorized: bool = True


class Credential(BaseModel):
    """Stored OAuth2 token pair for a (user, tool)."""
    user_id: str
    tool_name: str
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Expiries written without an offset are UTC."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def seconds_remaining(self, now: Optional[datetime] = None) -> Optional[float]:
        """Seconds until expiry, negative once expired, None if unknown."""
        if self.expires_at is None:
            return None
        now = now or utcnow()
        return (self.expires_at - now).total_seconds()


class User(BaseModel):
    """A user record. The core only ever reads ``id``."""
    id: str
    email: Optional[str] = None
    name: Optional[str] = None


class RpcErrorCode(IntEnum):
    """JSON-RPC 2.0 error codes used by the server."""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class RpcEnvelope(BaseModel):
    """
    An inbound JSON-RPC message.

    ``has_id`` distinguishes an absent id from an explicit ``null`` id,
    which still makes the message a request.
    """
    jsonrpc: Optional[Any] = None
    id: Optional[Any] = None
    method: Optional[Any] = None
    params: Optional[Any] = None
    has_id: bool = False

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> "RpcEnvelope":
        return cls(
            jsonrpc=message.get("jsonrpc"),
            id=message.get("id"),
            method=message.get("method"),
            params=message.get("params"),
            has_id="id" in message,
        )

    @property
    def is_request(self) -> bool:
        return self.method is not None and self.has_id

    @property
    def is_notification(self) -> bool:
        return self.method is not None and not self.has_id


class JsonRpcError(BaseModel):
    """Error object of a JSON-RPC response."""
    code: int
    message: str
    data: Optional[Any] = None


class JsonRpcResponse(BaseModel):
    """Outbound JSON-RPC response."""
    jsonrpc: Literal["2.0"] = "2.0"
    id: Optional[Any] = None
    result: Optional[Any] = None
    error: Optional[JsonRpcError] = None

    @classmethod
    def success(cls, request_id: Any, result: Any) -> "JsonRpcResponse":
        return cls(id=request_id, result=result)

    @classmethod
    def failure(
        cls,
        request_id: Any,
        code: int,
        message: str,
        data: Optional[Any] = None
    ) -> "JsonRpcResponse":
        return cls(id=request_id, error=JsonRpcError(code=code, message=message, data=data))

    def to_wire(self) -> dict[str, Any]:
        """Dump with exactly one of ``result``/``error`` and ``id`` always present."""
        body: dict[str, Any] = {"jsonrpc": self.jsonrpc}
        if self.error is not None:
            body["error"] = self.error.model_dump(exclude_none=True)
        else:
            body["result"] = self.result
        body["id"] = self.id
        return body


class ToolCallStatus(str, Enum):
    """Outcome of a ``tools/call`` for the audit trail."""
    SUCCESS = "success"
    ERROR = "error"
    DENIED = "denied"
    NOT_FOUND = "not_found"
    INVALID = "invalid"


class AuditEntry(BaseModel):
    """
    Audit log entry for tool calls.

    Captures user, tool, arguments, timestamp, and outcome.
    """
    id: str
    timestamp: datetime = Field(default_factory=utcnow)

    user_id: str
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)

    status: ToolCallStatus
    execution_time_ms: float = 0
    request_id: Optional[Any] = None
