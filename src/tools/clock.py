"""get_time - current server time."""

from datetime import datetime
from typing import Any

from shared.models import ToolDescriptor, ToolResult
from shared.schema import object_schema
from mcp_server.registry import ToolContext
from tools.base import text_result, user_prefix

TOOL = ToolDescriptor(
    name="get_time",
    description="Get current time",
    input_schema=object_schema({})
)


async def handler(arguments: dict[str, Any], context: ToolContext) -> ToolResult:
    now = datetime.now().astimezone()
    return text_result(f"{user_prefix(context)}Current time: {now:%Y-%m-%d %H:%M:%S %Z}")
