"""get_youtube_trending - trending videos via a configured webhook."""

import json
from typing import Any

from shared.errors import ProviderError
from shared.logging import get_logger
from shared.models import ToolDescriptor, ToolResult
from shared.schema import object_schema
from mcp_server.registry import ToolContext
from tools.base import ProviderClient, error_result, text_result, user_prefix

logger = get_logger(__name__)

TOOL = ToolDescriptor(
    name="get_youtube_trending",
    description="Get trending YouTube videos for a specific topic or category",
    input_schema=object_schema(
        {
            "prompts": {
                "type": "string",
                "description": "Topic or category to search for trending videos "
                               "(e.g., 'esports', 'gaming', 'music', 'tech')"
            }
        },
        required=["prompts"]
    )
)


async def handler(arguments: dict[str, Any], context: ToolContext) -> ToolResult:
    prompts = arguments.get("prompts")
    prefix = user_prefix(context)

    webhook_url = context.settings.tools.youtube_webhook_url
    if not webhook_url:
        return error_result("❌ Server configuration error: YouTube trending webhook not set.")

    client = ProviderClient(context.http)
    try:
        data = await client.request("POST", webhook_url, json={"prompts": prompts})
    except ProviderError as e:
        logger.error("YouTube trending lookup failed", error=e.message)
        return error_result(f"{prefix}Error fetching YouTube trending videos: {e.message}")

    return text_result(
        f'{prefix}Trending YouTube videos for "{prompts}":\n{json.dumps(data, indent=2)}'
    )
