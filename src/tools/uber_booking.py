"""book_uber_ride - request a ride on the user's Uber account."""

from typing import Any

from shared.errors import ProviderError, ReauthRequired
from shared.logging import get_logger
from shared.models import Credential, ToolDescriptor, ToolResult
from shared.schema import object_schema
from mcp_server.registry import ToolContext
from tools.base import ProviderClient, error_result, text_result, user_prefix
from tools.geo import GeocodingError, resolve_route
from tools.uber_price import LOCATION_PROPERTIES

logger = get_logger(__name__)

TOOL = ToolDescriptor(
    name="book_uber_ride",
    description="Book an Uber ride by providing pickup and destination details",
    input_schema=object_schema(
        {
            **LOCATION_PROPERTIES,
            "product_id": {
                "type": "string",
                "description": "Uber product ID. If not provided, the default available product is used"
            },
            "fare_id": {
                "type": "string",
                "description": "Upfront fare ID obtained from estimates (required for booking)"
            },
        },
        required=["fare_id"]
    ),
    auth_provider="uber",
    display_name="Uber",
)


def format_booking(ride: dict[str, Any], pickup: str, destination: str, prefix: str) -> str:
    driver = ride.get("driver") or {}
    vehicle = ride.get("vehicle") or {}
    vehicle_text = (
        f"{vehicle.get('make')} {vehicle.get('model')} ({vehicle.get('license_plate')})"
        if vehicle else "Not assigned yet"
    )
    eta = ride.get("eta")
    return "\n".join([
        f"{prefix}Uber ride booked successfully!",
        "",
        "Ride Details:",
        f"- Request ID: {ride.get('request_id')}",
        f"- Status: {ride.get('status')}",
        f"- Driver: {driver.get('name', 'Not assigned yet')}",
        f"- Vehicle: {vehicle_text}",
        f"- ETA: {f'{eta} minutes' if eta else 'Calculating...'}",
        f"- Pickup: {pickup}",
        f"- Destination: {destination}",
    ])


async def handler(arguments: dict[str, Any], context: ToolContext) -> ToolResult:
    prefix = user_prefix(context)
    fare_id = arguments.get("fare_id")
    if not fare_id:
        return error_result(
            f"{prefix}Error: fare_id is required for booking. "
            "Please get an estimate first to obtain the fare_id."
        )

    try:
        route = await resolve_route(context.http, context.settings.tools.geocoder_url, arguments)
    except GeocodingError as e:
        return error_result(f"{prefix}Error: {e}")

    body: dict[str, Any] = {
        "fare_id": fare_id,
        "start_latitude": route.pickup.latitude,
        "start_longitude": route.pickup.longitude,
        "end_latitude": route.destination.latitude,
        "end_longitude": route.destination.longitude,
    }
    if arguments.get("product_id"):
        body["product_id"] = arguments["product_id"]

    client = ProviderClient(context.http, context.settings.uber.base_url)

    async def request_ride(credential: Credential) -> dict[str, Any]:
        return await client.request(
            "POST",
            "/v1.2/requests",
            access_token=credential.access_token,
            json=body,
        )

    try:
        ride = await context.tokens.call_with_refresh(context.user_id, TOOL.name, request_ride)
    except ReauthRequired as e:
        logger.warning("Re-authentication required", user=context.user_id, tool=TOOL.name, reason=e.reason)
        return error_result(f"❌ {e.reason.rstrip('.')}. Please re-authenticate {TOOL.label}.")
    except ProviderError as e:
        logger.error("Uber ride request failed", user=context.user_id, status_code=e.status_code, error=e.message)
        if "no_drivers_available" in e.message:
            return error_result(
                f"{prefix}Sorry, no drivers are currently available in your area. Please try again later."
            )
        if "surge" in e.message:
            return error_result(
                f"{prefix}Surge pricing is in effect. Please confirm the higher fare and try booking again."
            )
        return error_result(f"{prefix}Error booking Uber ride: {e.message}")

    return text_result(format_booking(ride, route.pickup.label, route.destination.label, prefix))
