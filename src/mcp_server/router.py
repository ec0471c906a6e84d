"""JSON-RPC router for MCP Server.

Classifies inbound envelopes, routes MCP methods, and shapes responses
and errors per JSON-RPC 2.0. Tool calls go through authorization,
handler lookup, argument validation and auditing.
"""

import json
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import httpx

from shared.config import Settings
from shared.errors import InvalidParams, MethodNotFound
from shared.logging import get_logger, request_context
from shared.models import (
    JsonRpcResponse,
    RpcEnvelope,
    RpcErrorCode,
    TextContent,
    ToolCallStatus,
    ToolResult,
)
from mcp_server.audit import AuditLogger
from mcp_server.auth import AuthorizationGate
from mcp_server.registry import ToolContext, ToolRegistry
from mcp_server.tokens import TokenLifecycleManager

logger = get_logger(__name__)

JSONRPC_VERSION = "2.0"


@dataclass
class DispatchOutcome:
    """
    What the transport should send back.

    ``body`` is None for notifications, which are answered with an
    empty 204. ``notification`` carries the envelope whose side effects
    still have to run.
    """
    status_code: int
    body: Optional[dict[str, Any]] = None
    notification: Optional[RpcEnvelope] = None


def _error(status_code: int, request_id: Any, code: RpcErrorCode, message: str) -> DispatchOutcome:
    response = JsonRpcResponse.failure(request_id, int(code), message)
    return DispatchOutcome(status_code=status_code, body=response.to_wire())


def _text_result(text: str, is_error: bool = False) -> ToolResult:
    return ToolResult(content=[TextContent(text=text)], is_error=is_error)


class JsonRpcRouter:
    """
    Routes JSON-RPC envelopes to MCP methods.

    The router holds no per-request state; everything it needs is
    passed in at construction.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        gate: AuthorizationGate,
        tokens: TokenLifecycleManager,
        http: httpx.AsyncClient,
        settings: Settings,
        audit_logger: Optional[AuditLogger] = None
    ) -> None:
        self.registry = registry
        self.gate = gate
        self.tokens = tokens
        self.http = http
        self.settings = settings
        self.audit_logger = audit_logger or AuditLogger(enabled=False)
        self._methods: dict[str, Callable[[RpcEnvelope, Optional[str]], Awaitable[Any]]] = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._list_tools,
            "tools/call": self._call_tool_method,
        }

    async def dispatch_raw(self, raw: bytes, user_id: Optional[str]) -> DispatchOutcome:
        """Parse a request body and dispatch it."""
        try:
            message = json.loads(raw)
        except (ValueError, UnicodeDecodeError):
            logger.warning("Unparseable JSON-RPC body")
            return _error(400, None, RpcErrorCode.PARSE_ERROR, "Parse error or invalid request")
        return await self.dispatch(message, user_id)

    async def dispatch(self, message: Any, user_id: Optional[str]) -> DispatchOutcome:
        """
        Dispatch a decoded JSON-RPC message.

        Args:
            message: Decoded request body
            user_id: Acting user, if known

        Returns:
            Status code and body to send
        """
        if not isinstance(message, dict):
            return _error(400, None, RpcErrorCode.PARSE_ERROR, "Parse error or invalid request")

        envelope = RpcEnvelope.from_message(message)

        if envelope.jsonrpc != JSONRPC_VERSION:
            return _error(
                400, envelope.id, RpcErrorCode.INVALID_REQUEST,
                'Invalid Request - jsonrpc must be "2.0"'
            )

        if envelope.method is not None and not isinstance(envelope.method, str):
            return _error(
                400, envelope.id, RpcErrorCode.INVALID_REQUEST,
                "Invalid Request - method must be a string"
            )

        if envelope.is_notification:
            logger.debug("Notification received", method=envelope.method)
            return DispatchOutcome(status_code=204, notification=envelope)

        if not envelope.is_request:
            logger.warning("Invalid JSON-RPC message format")
            return _error(400, envelope.id, RpcErrorCode.INVALID_REQUEST, "Invalid Request - missing method")

        with request_context(rpc_id=envelope.id, method=envelope.method, user=user_id):
            logger.debug("Request received")

            try:
                result = await self._route(envelope, user_id)
            except MethodNotFound as e:
                logger.warning("Unknown method")
                return _error(200, envelope.id, RpcErrorCode.METHOD_NOT_FOUND, str(e))
            except InvalidParams as e:
                logger.warning("Invalid params", error=str(e))
                return _error(200, envelope.id, RpcErrorCode.INVALID_PARAMS, str(e))
            except Exception as e:
                logger.error("Error processing JSON-RPC request", error=str(e), exc_info=True)
                return _error(500, envelope.id, RpcErrorCode.INTERNAL_ERROR, str(e))

        response = JsonRpcResponse.success(envelope.id, result)
        return DispatchOutcome(status_code=200, body=response.to_wire())

    async def _route(self, envelope: RpcEnvelope, user_id: Optional[str]) -> Any:
        method = self._methods.get(envelope.method)
        if method is None:
            raise MethodNotFound(f"Method not found: {envelope.method}")
        return await method(envelope, user_id)

    async def handle_notification(self, envelope: RpcEnvelope) -> None:
        """Run the side effects of a notification after it was acknowledged."""
        params = envelope.params if isinstance(envelope.params, dict) else {}

        if envelope.method == "notifications/cancelled":
            logger.info(
                "Client cancelled request",
                request_id=params.get("requestId"),
                reason=params.get("reason")
            )
        elif envelope.method == "notifications/initialized":
            logger.info("Client initialized")
        else:
            logger.debug("Notification ignored", method=envelope.method)

    # Methods

    async def _initialize(self, envelope: RpcEnvelope, user_id: Optional[str]) -> dict[str, Any]:
        params = envelope.params if isinstance(envelope.params, dict) else {}
        server = self.settings.mcp_server

        logger.info(
            "Initializing client connection",
            user=user_id,
            client_info=params.get("clientInfo"),
            client_protocol=params.get("protocolVersion")
        )
        return {
            "protocolVersion": server.protocol_version,
            "capabilities": {"tools": {}},
            "serverInfo": {"name": server.name, "version": server.version},
        }

    async def _ping(self, envelope: RpcEnvelope, user_id: Optional[str]) -> dict[str, Any]:
        return {}

    async def _list_tools(self, envelope: RpcEnvelope, user_id: Optional[str]) -> dict[str, Any]:
        if not user_id:
            raise InvalidParams("userId is required for tools/list")

        visible = await self.gate.filter_visible(user_id, self.registry.list_tools())
        return {"tools": [tool.to_mcp() for tool in visible]}

    async def _call_tool_method(self, envelope: RpcEnvelope, user_id: Optional[str]) -> dict[str, Any]:
        params = envelope.params
        if not isinstance(params, dict):
            raise InvalidParams("Missing parameters for tools/call")

        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise InvalidParams("Missing tool name in tools/call params")

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise InvalidParams("tools/call arguments must be an object")

        if not user_id:
            raise InvalidParams("userId is required for tools/call")

        result = await self.call_tool(name, {**arguments, "userId": user_id}, envelope.id)
        return result.to_mcp()

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any],
        request_id: Optional[Any] = None
    ) -> ToolResult:
        """
        Authorize and execute a tool call.

        Args:
            name: Tool name
            arguments: Call arguments with the caller's ``userId`` injected
            request_id: JSON-RPC id, for the audit trail

        Returns:
            The handler's result, or an ``isError`` result for denials,
            unknown tools and invalid arguments
        """
        start_time = time.time()
        user_id = arguments.get("userId")
        tool_args = {k: v for k, v in arguments.items() if k != "userId"}

        if not user_id:
            return _text_result(f"No userId provided for tool: {name}", is_error=True)

        if not await self.gate.authorize(user_id, name):
            result = _text_result(
                f'❌ Access denied. Tool "{name}" is not subscribed for this user.',
                is_error=True
            )
            await self._audit(user_id, name, tool_args, ToolCallStatus.DENIED, start_time, request_id)
            return result

        handler = self.registry.lookup(name)
        if handler is None:
            result = _text_result(f'❌ Tool "{name}" is not implemented.', is_error=True)
            await self._audit(user_id, name, tool_args, ToolCallStatus.NOT_FOUND, start_time, request_id)
            return result

        is_valid, errors = self.registry.validate_input(name, tool_args)
        if not is_valid:
            result = _text_result(
                f'❌ Invalid arguments for tool "{name}": {"; ".join(errors)}',
                is_error=True
            )
            await self._audit(user_id, name, tool_args, ToolCallStatus.INVALID, start_time, request_id)
            return result

        context = ToolContext(
            user_id=user_id,
            tokens=self.tokens,
            http=self.http,
            settings=self.settings,
            request_id=request_id,
        )

        try:
            result = await handler(tool_args, context)
        except Exception:
            await self._audit(user_id, name, tool_args, ToolCallStatus.ERROR, start_time, request_id)
            raise

        status = ToolCallStatus.ERROR if result.is_error else ToolCallStatus.SUCCESS
        await self._audit(user_id, name, tool_args, status, start_time, request_id)
        return result

    async def _audit(
        self,
        user_id: str,
        tool_name: str,
        arguments: dict[str, Any],
        status: ToolCallStatus,
        start_time: float,
        request_id: Optional[Any]
    ) -> None:
        entry = self.audit_logger.create_entry(
            user_id=user_id,
            tool_name=tool_name,
            arguments=arguments,
            status=status,
            execution_time_ms=(time.time() - start_time) * 1000,
            request_id=request_id,
        )
        await self.audit_logger.log(entry)
