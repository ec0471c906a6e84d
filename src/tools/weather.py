"""get_weather - mock current conditions for a location."""

import random
from typing import Any

from shared.models import ToolDescriptor, ToolResult
from shared.schema import object_schema
from mcp_server.registry import ToolContext
from tools.base import error_result, text_result, user_prefix

CONDITIONS = ["sunny", "cloudy", "rainy", "snowy"]

TOOL = ToolDescriptor(
    name="get_weather",
    description="Get current weather for a location",
    input_schema=object_schema(
        {
            "location": {
                "type": "string",
                "description": "City name or coordinates"
            }
        },
        required=["location"]
    )
)


async def handler(arguments: dict[str, Any], context: ToolContext) -> ToolResult:
    location = arguments.get("location")
    if not location or not isinstance(location, str):
        return error_result("Location parameter is required and must be a string")

    temperature = random.randint(10, 39)
    condition = random.choice(CONDITIONS)

    return text_result(
        f"{user_prefix(context)}Weather in {location}: {condition}, {temperature}°C"
    )
