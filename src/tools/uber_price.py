"""get_uber_price - price estimates between two locations."""

from typing import Any

from shared.errors import ProviderError
from shared.logging import get_logger
from shared.models import ToolDescriptor, ToolResult
from shared.schema import object_schema
from mcp_server.registry import ToolContext
from tools.base import ProviderClient, error_result, text_result, user_prefix
from tools.geo import GeocodingError, Route, resolve_route

logger = get_logger(__name__)

LOCATION_PROPERTIES: dict[str, Any] = {
    "pickup_address": {
        "type": "string",
        "description": "Complete pickup address including city, ZIP code, state, and country"
    },
    "destination_address": {
        "type": "string",
        "description": "Complete destination address including city, ZIP code, state, and country"
    },
    "pickup_latitude": {"type": "number", "description": "Pickup latitude (alternative to pickup_address)"},
    "pickup_longitude": {"type": "number", "description": "Pickup longitude (alternative to pickup_address)"},
    "destination_latitude": {
        "type": "number",
        "description": "Destination latitude (alternative to destination_address)"
    },
    "destination_longitude": {
        "type": "number",
        "description": "Destination longitude (alternative to destination_address)"
    },
}

TOOL = ToolDescriptor(
    name="get_uber_price",
    description="Get price estimates for Uber rides between pickup and destination locations",
    input_schema=object_schema(
        {
            **LOCATION_PROPERTIES,
            "seats": {
                "type": "number",
                "description": "Number of seats needed (defaults to 2, maximum 2)",
                "minimum": 1,
                "maximum": 2
            },
        }
    )
)


def format_estimates(prices: list[dict[str, Any]], route: Route, seats: int, prefix: str) -> str:
    lines = [
        f"{prefix}Uber Price Estimates:",
        "",
        f"Route: {route.pickup.label} → {route.destination.label}",
        f"Seats: {seats}",
        "",
    ]
    for index, price in enumerate(prices, start=1):
        distance = price.get("distance")
        duration = price.get("duration")
        lines.append(f"{index}. {price.get('display_name')}")
        lines.append(f"   💰 Price: {price.get('estimate')}")
        lines.append(f"   🚗 Product ID: {price.get('product_id')}")
        lines.append(f"   📏 Distance: {f'{distance} miles' if distance else 'N/A'}")
        lines.append(f"   ⏱️ Duration: {f'{round(duration / 60)} minutes' if duration else 'N/A'}")
        surge = price.get("surge_multiplier")
        if surge and surge > 1:
            lines.append(f"   ⚡ Surge: {surge}x")
        if price.get("low_estimate") and price.get("high_estimate"):
            lines.append(f"   📊 Range: ${price['low_estimate']} - ${price['high_estimate']}")
        lines.append("")
    return "\n".join(lines)


async def handler(arguments: dict[str, Any], context: ToolContext) -> ToolResult:
    prefix = user_prefix(context)
    seats = int(arguments.get("seats") or 2)
    uber = context.settings.uber

    if not uber.server_token:
        return error_result("❌ Server configuration error: Uber server token not set.")

    try:
        route = await resolve_route(context.http, context.settings.tools.geocoder_url, arguments)
    except GeocodingError as e:
        return error_result(f"{prefix}Error: {e}")

    client = ProviderClient(context.http, uber.base_url)
    try:
        data = await client.request(
            "GET",
            "/v1.2/estimates/price",
            authorization=f"Token {uber.server_token}",
            headers={"Accept-Language": "en_US"},
            params={
                "start_latitude": route.pickup.latitude,
                "start_longitude": route.pickup.longitude,
                "end_latitude": route.destination.latitude,
                "end_longitude": route.destination.longitude,
                "seat_count": seats,
            },
        )
    except ProviderError as e:
        logger.error("Uber price estimate failed", user=context.user_id, status_code=e.status_code, error=e.message)
        if "outside_coverage" in e.message or "distance_exceeded" in e.message:
            return error_result(f"{prefix}Error: Uber service is not available in the specified area.")
        return error_result(f"{prefix}Error getting Uber price estimates: {e.message}")

    prices = data.get("prices") or []
    if not prices:
        return text_result(
            f"{prefix}No price estimates available for this route. "
            "Please check if the addresses are valid or if Uber operates in these areas."
        )

    return text_result(format_estimates(prices, route, seats, prefix))
