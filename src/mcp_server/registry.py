"""Tool Registry for MCP Server.

Tools are discovered from an explicit list of tool modules at startup.
Each module exports a ``TOOL`` descriptor and an async ``handler``.
Once built the registry is frozen and only read from.
"""

from dataclasses import dataclass
from types import ModuleType
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Optional

import httpx
from jsonschema import Draft7Validator

from shared.config import Settings
from shared.logging import get_logger
from shared.models import ToolDescriptor, ToolResult
from shared.schema import argument_errors, compile_validator

if TYPE_CHECKING:
    from mcp_server.tokens import TokenLifecycleManager

logger = get_logger(__name__)


@dataclass
class ToolContext:
    """Everything a handler needs besides its arguments."""
    user_id: str
    tokens: "TokenLifecycleManager"
    http: httpx.AsyncClient
    settings: Settings
    request_id: Optional[Any] = None


ToolHandler = Callable[[dict[str, Any], ToolContext], Awaitable[ToolResult]]


class ToolRegistry:
    """
    Registry of tool descriptors and their handlers.

    Responsibilities:
    - Register tools discovered at startup
    - Lookup handlers and descriptors by name
    - List descriptors in registration order
    - Validate call arguments against input schemas
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDescriptor] = {}
        self._handlers: dict[str, ToolHandler] = {}
        self._validators: dict[str, Draft7Validator] = {}
        self._frozen = False

    def register(self, tool: ToolDescriptor, handler: ToolHandler) -> None:
        """
        Register a tool.

        A duplicate name replaces the earlier registration but keeps its
        position in the listing order.

        Raises:
            RuntimeError: If the registry is already frozen
            jsonschema.SchemaError: If the input schema is malformed
        """
        if self._frozen:
            raise RuntimeError(f"Cannot register '{tool.name}': tool registry is frozen")

        validator = compile_validator(tool.input_schema)

        if tool.name in self._tools:
            logger.warning("Duplicate tool registration, replacing", tool=tool.name)

        self._tools[tool.name] = tool
        self._handlers[tool.name] = handler
        self._validators[tool.name] = validator

        logger.info(
            "Tool registered",
            tool=tool.name,
            auth_provider=tool.auth_provider
        )

    def freeze(self) -> None:
        """Refuse further registrations."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def get(self, tool_name: str) -> Optional[ToolDescriptor]:
        """Get a tool descriptor by name."""
        return self._tools.get(tool_name)

    def lookup(self, tool_name: str) -> Optional[ToolHandler]:
        """Get the handler registered for a tool, if any."""
        return self._handlers.get(tool_name)

    def list_tools(self) -> list[ToolDescriptor]:
        """All descriptors in registration order."""
        return list(self._tools.values())

    def auth_providers(self) -> dict[str, str]:
        """Tool name to OAuth provider name for provider-backed tools."""
        return {
            name: tool.auth_provider
            for name, tool in self._tools.items()
            if tool.auth_provider
        }

    def validate_input(
        self,
        tool_name: str,
        arguments: dict[str, Any]
    ) -> tuple[bool, list[str]]:
        """
        Validate call arguments against a tool's input schema.

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        validator = self._validators.get(tool_name)
        if validator is None:
            return False, [f"Tool '{tool_name}' not found"]

        errors = argument_errors(validator, arguments)
        return not errors, errors

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, tool_name: object) -> bool:
        return tool_name in self._tools


def discover_tools(modules: Iterable[ModuleType]) -> list[tuple[ToolDescriptor, ToolHandler]]:
    """
    Collect (descriptor, handler) pairs from tool modules.

    A module without a ``ToolDescriptor`` named ``TOOL`` or without a
    callable ``handler`` is skipped with a warning.
    """
    discovered: list[tuple[ToolDescriptor, ToolHandler]] = []

    for module in modules:
        tool = getattr(module, "TOOL", None)
        handler = getattr(module, "handler", None)

        if not isinstance(tool, ToolDescriptor) or not callable(handler):
            logger.warning("Skipping invalid tool module", module=module.__name__)
            continue

        discovered.append((tool, handler))

    return discovered


def build_registry(modules: Iterable[ModuleType]) -> ToolRegistry:
    """Discover tools from ``modules`` and return a frozen registry."""
    registry = ToolRegistry()
    for tool, handler in discover_tools(modules):
        registry.register(tool, handler)
    registry.freeze()

    logger.info("Tool registry built", tools=[t.name for t in registry.list_tools()])
    return registry
